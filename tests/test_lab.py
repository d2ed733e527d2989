from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

from bgplab.common import CommandError, run_command
from bgplab.lab import ContainerLab, clab_container_name, launched
from bgplab.topology import RouterTopology


class FakeRunner:
    def __init__(self, output: str = "ok\n", fail_on: str = "") -> None:
        self.output = output
        self.fail_on = fail_on
        self.calls: list[tuple[list[str], float | None]] = []

    def __call__(self, cmd, check=True, timeout_s=None):  # type: ignore[no-untyped-def]
        self.calls.append((list(cmd), timeout_s))
        if self.fail_on and self.fail_on in cmd:
            raise CommandError(cmd, 1, "boom")
        return subprocess.CompletedProcess(cmd, 0, stdout=self.output)


def test_clab_container_name() -> None:
    assert clab_container_name("bgp-vlan", "R3") == "clab-bgp-vlan-R3"


def test_exec_cmd_wraps_docker_exec(eth_topology: RouterTopology) -> None:
    runner = FakeRunner(output="  42 ? Ss 0:00 bird\n")
    lab = ContainerLab(eth_topology, runner=runner, command_timeout_s=15.0)

    out = lab.exec_cmd("R2", ["ps", "ax"])

    assert out == "42 ? Ss 0:00 bird"
    assert runner.calls == [(["docker", "exec", "clab-bgp-R2", "ps", "ax"], 15.0)]


def test_exec_cmd_with_sudo(eth_topology: RouterTopology) -> None:
    runner = FakeRunner()
    lab = ContainerLab(eth_topology, runner=runner, use_sudo=True)
    lab.exec_cmd("R1", ["ip", "route", "show", "192.168.222.0/24"])
    assert runner.calls[0][0][:3] == ["sudo", "docker", "exec"]


def test_exec_cmd_unknown_router(eth_topology: RouterTopology) -> None:
    lab = ContainerLab(eth_topology, runner=FakeRunner())
    with pytest.raises(KeyError):
        lab.exec_cmd("R9", ["ps", "ax"])


def test_deploy_and_destroy_commands(eth_topology: RouterTopology) -> None:
    runner = FakeRunner()
    lab = ContainerLab(eth_topology, runner=runner, clab_bin="/usr/bin/containerlab", command_timeout_s=5.0)
    lab.deploy()
    lab.destroy()
    topo = str(eth_topology.source_path)
    assert runner.calls == [
        (["/usr/bin/containerlab", "deploy", "-t", topo, "--reconfigure"], None),
        (["/usr/bin/containerlab", "destroy", "-t", topo, "--cleanup"], None),
    ]


def test_run_local_runs_on_host(eth_topology: RouterTopology) -> None:
    runner = FakeRunner(output="fib\n")
    lab = ContainerLab(eth_topology, runner=runner)
    assert lab.run_local(["goes", "vnet", "show", "ip", "fib"]) == "fib"
    assert runner.calls[0][0] == ["goes", "vnet", "show", "ip", "fib"]


def test_launched_destroys_after_body_error(eth_topology: RouterTopology) -> None:
    runner = FakeRunner()

    def factory(topology, **kwargs):  # type: ignore[no-untyped-def]
        kwargs.pop("logger", None)
        kwargs["clab_bin"] = "clab"
        return ContainerLab(topology, runner=runner, **kwargs)

    with pytest.raises(RuntimeError, match="phase blew up"):
        with launched(eth_topology.source_path, lab_factory=factory):
            raise RuntimeError("phase blew up")
    verbs = [cmd[1] for cmd, _ in runner.calls]
    assert verbs == ["deploy", "destroy"]


def test_launched_destroys_after_failed_deploy(eth_topology: RouterTopology) -> None:
    runner = FakeRunner(fail_on="deploy")

    def factory(topology, **kwargs):  # type: ignore[no-untyped-def]
        kwargs.pop("logger", None)
        kwargs["clab_bin"] = "clab"
        return ContainerLab(topology, runner=runner, **kwargs)

    with pytest.raises(CommandError):
        with launched(eth_topology.source_path, lab_factory=factory):
            pytest.fail("body must not run when deploy fails")
    verbs = [cmd[1] for cmd, _ in runner.calls]
    assert verbs == ["deploy", "destroy"]


def test_launched_logs_destroy_failure(caplog, eth_topology: RouterTopology) -> None:
    runner = FakeRunner(fail_on="destroy")

    def factory(topology, **kwargs):  # type: ignore[no-untyped-def]
        kwargs.pop("logger", None)
        kwargs["clab_bin"] = "clab"
        return ContainerLab(topology, runner=runner, **kwargs)

    with launched(eth_topology.source_path, lab_factory=factory) as lab:
        assert lab.topology.lab_name == "bgp"
    assert "destroy failed for lab bgp" in caplog.text


def test_resolve_clab_bin_missing(monkeypatch, eth_topology: RouterTopology) -> None:
    monkeypatch.setattr("bgplab.common.shutil.which", lambda _name: None)
    lab = ContainerLab(eth_topology, runner=FakeRunner())
    with pytest.raises(RuntimeError, match="containerlab"):
        lab.deploy()


def test_run_command_nonzero_exit_raises() -> None:
    with pytest.raises(CommandError) as exc_info:
        run_command([sys.executable, "-c", "import sys; print('no route'); sys.exit(3)"])
    assert exc_info.value.returncode == 3
    assert exc_info.value.output == "no route"


def test_run_command_merges_stderr() -> None:
    proc = run_command([sys.executable, "-c", "import sys; sys.stderr.write('warn\\n')"])
    assert proc.stdout.strip() == "warn"


def test_run_command_missing_binary(tmp_path: Path) -> None:
    with pytest.raises(CommandError) as exc_info:
        run_command([str(tmp_path / "no-such-binary")])
    assert exc_info.value.returncode == -1


def test_run_command_timeout() -> None:
    with pytest.raises(CommandError) as exc_info:
        run_command([sys.executable, "-c", "import time; time.sleep(5)"], timeout_s=0.2)
    assert exc_info.value.returncode is None
    assert "timeout" in str(exc_info.value)