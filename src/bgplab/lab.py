from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List

from bgplab.common import pretty_cmd, resolve_clab_bin, run_command, with_sudo
from bgplab.topology import RouterTopology, load_topology


def clab_container_name(lab_name: str, node_name: str) -> str:
    return f"clab-{lab_name}-{node_name}"


class ContainerLab:
    """One containerlab deployment and command execution inside its routers."""

    def __init__(
        self,
        topology: RouterTopology,
        *,
        use_sudo: bool = False,
        clab_bin: str = "",
        command_timeout_s: float | None = None,
        runner: Callable[..., object] = run_command,
        logger: logging.Logger | None = None,
    ) -> None:
        self.topology = topology
        self._use_sudo = use_sudo
        self._clab_bin = clab_bin
        self._timeout_s = command_timeout_s
        self._run = runner
        self._log = logger or logging.getLogger("bgplab.lab")

    def container_name(self, hostname: str) -> str:
        self.topology.router(hostname)
        return clab_container_name(self.topology.lab_name, hostname)

    def deploy(self) -> None:
        cmd = [
            resolve_clab_bin(self._clab_bin),
            "deploy",
            "-t",
            str(self.topology.source_path),
            "--reconfigure",
        ]
        self._log.info("deploy lab %s: %s", self.topology.lab_name, pretty_cmd(cmd))
        self._run_text(with_sudo(cmd, self._use_sudo), timeout_s=None)

    def destroy(self) -> None:
        cmd = [
            resolve_clab_bin(self._clab_bin),
            "destroy",
            "-t",
            str(self.topology.source_path),
            "--cleanup",
        ]
        self._log.info("destroy lab %s: %s", self.topology.lab_name, pretty_cmd(cmd))
        self._run_text(with_sudo(cmd, self._use_sudo), timeout_s=None)

    def exec_cmd(self, hostname: str, argv: List[str]) -> str:
        """Run ``argv`` inside ``hostname``; stdout and stderr are combined."""
        cmd = ["docker", "exec", self.container_name(hostname), *argv]
        return self._run_text(with_sudo(cmd, self._use_sudo), timeout_s=self._timeout_s)

    def run_local(self, argv: List[str]) -> str:
        return self._run_text(list(argv), timeout_s=self._timeout_s)

    def _run_text(self, cmd: List[str], *, timeout_s: float | None) -> str:
        self._log.debug("run: %s", pretty_cmd(cmd))
        proc = self._run(cmd, check=True, timeout_s=timeout_s)
        return (getattr(proc, "stdout", "") or "").strip()


@contextmanager
def launched(
    topology_file: Path,
    *,
    use_sudo: bool = False,
    keep_lab: bool = False,
    clab_bin: str = "",
    command_timeout_s: float | None = None,
    lab_factory: Callable[..., ContainerLab] = ContainerLab,
    logger: logging.Logger | None = None,
) -> Iterator[ContainerLab]:
    """Deploy a lab and destroy it on every exit path, failed deploys included."""
    log = logger or logging.getLogger("bgplab.lab")
    topology = load_topology(topology_file)
    lab = lab_factory(
        topology,
        use_sudo=use_sudo,
        clab_bin=clab_bin,
        command_timeout_s=command_timeout_s,
        logger=log,
    )
    try:
        lab.deploy()
        yield lab
    finally:
        if keep_lab:
            log.warning(
                "keeping lab %s running (topology: %s)",
                topology.lab_name,
                topology.source_path,
            )
        else:
            try:
                lab.destroy()
            except RuntimeError as exc:
                log.error("destroy failed for lab %s: %s", topology.lab_name, exc)
