from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Tuple, Union

import pytest

from bgplab.scenario import Scenario, load_scenario
from bgplab.topology import RouterTopology, load_topology

REPO_ROOT = Path(__file__).resolve().parents[1]
SCENARIO_DIR = REPO_ROOT / "scenarios" / "bgp"

Response = Union[str, BaseException, Callable[[], str]]


class FakeLab:
    """Stands in for ContainerLab: scripted outputs keyed by (host, argv)."""

    def __init__(self, topology: RouterTopology, **kwargs) -> None:
        self.topology = topology
        self.kwargs = kwargs
        self.calls: List[Tuple[str, Tuple[str, ...]]] = []
        self.responses: Dict[Tuple[str, Tuple[str, ...]], List[Response]] = {}
        self.default = ""
        self.deployed = False
        self.destroyed = False
        self.deploy_error: Exception | None = None

    def script(self, host: str, argv: List[str], *outputs: Response) -> None:
        self.responses.setdefault((host, tuple(argv)), []).extend(outputs)

    def deploy(self) -> None:
        if self.deploy_error is not None:
            raise self.deploy_error
        self.deployed = True

    def destroy(self) -> None:
        self.destroyed = True

    def exec_cmd(self, hostname: str, argv: List[str]) -> str:
        self.topology.router(hostname)
        return self._respond(hostname, argv)

    def run_local(self, argv: List[str]) -> str:
        return self._respond("<host>", argv)

    def _respond(self, host: str, argv: List[str]) -> str:
        key = (host, tuple(argv))
        self.calls.append(key)
        queue = self.responses.get(key)
        if not queue:
            return self.default
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item()
        return item

    def commands_for(self, host: str) -> List[Tuple[str, ...]]:
        return [argv for h, argv in self.calls if h == host]


@pytest.fixture
def scenario() -> Scenario:
    return load_scenario(SCENARIO_DIR / "bgp.yaml")


@pytest.fixture
def eth_topology() -> RouterTopology:
    return load_topology(SCENARIO_DIR / "bgp.clab.yaml")


@pytest.fixture
def vlan_topology() -> RouterTopology:
    return load_topology(SCENARIO_DIR / "bgp-vlan.clab.yaml")


@pytest.fixture
def fake_lab(eth_topology: RouterTopology) -> FakeLab:
    return FakeLab(eth_topology)


@pytest.fixture
def fake_lab_cls() -> type:
    return FakeLab
