from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from bgplab.common import load_yaml, resolve_path
from bgplab.topology import RouterTopology


@dataclass(frozen=True)
class PingCheck:
    host: str
    target: str


@dataclass(frozen=True)
class NeighborCheck:
    host: str
    peer: str


@dataclass(frozen=True)
class RouteCheck:
    host: str
    route: str


@dataclass(frozen=True)
class Variant:
    name: str
    topology_file: Path


@dataclass(frozen=True)
class DaemonSettings:
    process: str = "bird"
    process_pattern: str = ".*bird.*"
    cli: List[str] = field(default_factory=lambda: ["birdc"])
    established_pattern: str = ".*Established.*"

    def show_protocol_cmd(self, peer: str) -> List[str]:
        return [*self.cli, "show", "protocols", "all", peer]


@dataclass(frozen=True)
class Timing:
    settle_s: float = 1.0
    poll_interval_s: float = 1.0
    neighbor_attempts: int = 120
    route_attempts: int = 60
    flap_pause_s: float = 1.0
    command_timeout_s: float | None = None


@dataclass(frozen=True)
class PingSettings:
    count: int = 3
    pattern: str = "[1-3] packets received"

    def cmd(self, target: str) -> List[str]:
        return ["ping", f"-c{self.count}", target]


@dataclass(frozen=True)
class Diagnostics:
    fib_dump: List[str] = field(default_factory=lambda: ["ip", "route", "show"])
    on_host: bool = False


@dataclass(frozen=True)
class Scenario:
    name: str
    source_path: Path
    variants: List[Variant]
    daemon: DaemonSettings
    timing: Timing
    ping: PingSettings
    diagnostics: Diagnostics
    connectivity: List[PingCheck]
    neighbors: List[NeighborCheck]
    routes: List[RouteCheck]
    inter_connectivity: List[PingCheck]

    def variant(self, name: str) -> Variant:
        for variant in self.variants:
            if variant.name == name:
                return variant
        known = ", ".join(v.name for v in self.variants)
        raise ValueError(f"Unknown variant {name!r}; expected one of: {known}")

    def referenced_hosts(self) -> List[str]:
        hosts: List[str] = []
        for table in (self.connectivity, self.neighbors, self.routes, self.inter_connectivity):
            for item in table:
                if item.host not in hosts:
                    hosts.append(item.host)
        for item in self.neighbors:
            if item.peer not in hosts:
                hosts.append(item.peer)
        return hosts

    def validate_against(self, topology: RouterTopology) -> None:
        known = set(topology.hostnames)
        missing = [host for host in self.referenced_hosts() if host not in known]
        if missing:
            raise ValueError(
                f"Scenario {self.name} references routers missing from topology "
                f"{topology.lab_name}: {', '.join(missing)}"
            )
        addresses = topology.addresses()
        unknown = []
        for check in (*self.connectivity, *self.inter_connectivity):
            if check.target not in addresses and check.target not in unknown:
                unknown.append(check.target)
        if unknown:
            raise ValueError(
                f"Scenario {self.name} pings addresses not assigned in topology "
                f"{topology.lab_name}: {', '.join(unknown)}"
            )


def _type_name(typ) -> str:
    if isinstance(typ, tuple):
        return " or ".join(t.__name__ for t in typ)
    return typ.__name__


def _require(obj: Dict[str, Any], key: str, typ):
    if key not in obj:
        raise ValueError(f"missing required field: {key}")
    if not isinstance(obj[key], typ):
        raise ValueError(f"field '{key}' must be {_type_name(typ)}")
    return obj[key]


def _optional(obj: Dict[str, Any], key: str, typ, default=None):
    if key not in obj or obj[key] is None:
        return default
    if not isinstance(obj[key], typ):
        raise ValueError(f"field '{key}' must be {_type_name(typ)}")
    return obj[key]


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key, {}) or {}
    if not isinstance(value, dict):
        raise ValueError(f"{key} must be a mapping")
    return value


def _argv(value: Any, key: str) -> List[str]:
    if isinstance(value, str):
        value = value.split()
    if not isinstance(value, list) or not value or not all(isinstance(x, str) for x in value):
        raise ValueError(f"{key} must be a non-empty list of strings")
    return list(value)


def _pairs(raw: Dict[str, Any], key: str, second: str) -> List[tuple[str, str]]:
    items = _optional(raw, key, list, [])
    out = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f"{key}[{idx}] must be a mapping")
        host = str(_require(item, "host", str)).strip()
        value = str(_require(item, second, str)).strip()
        if not host or not value:
            raise ValueError(f"{key}[{idx}] has an empty host or {second}")
        out.append((host, value))
    return out


def _reject_bool(obj: Dict[str, Any], key: str) -> None:
    if isinstance(obj.get(key), bool):
        raise ValueError(f"field '{key}' must be a number, not a boolean")


def _positive_int(obj: Dict[str, Any], key: str, default: int) -> int:
    _reject_bool(obj, key)
    value = int(_optional(obj, key, int, default))
    if value < 1:
        raise ValueError(f"timing.{key} must be >= 1")
    return value


def _non_negative(obj: Dict[str, Any], key: str, default: float) -> float:
    _reject_bool(obj, key)
    value = float(_optional(obj, key, (int, float), default))
    if value < 0:
        raise ValueError(f"timing.{key} must be >= 0")
    return value


def load_scenario(path: Path) -> Scenario:
    source_path = path.expanduser().resolve()
    raw = load_yaml(source_path)
    base_dir = source_path.parent

    variants_raw = _require(raw, "variants", dict)
    if not variants_raw:
        raise ValueError("scenario must declare at least one variant")
    variants = []
    for name, item in variants_raw.items():
        if not isinstance(item, dict):
            raise ValueError(f"variant {name} must be a mapping")
        topo = str(_require(item, "topology", str))
        variants.append(Variant(name=str(name), topology_file=resolve_path(topo, base_dir)))

    daemon_raw = _section(raw, "daemon")
    process = str(_optional(daemon_raw, "process", str, "bird"))
    daemon = DaemonSettings(
        process=process,
        process_pattern=str(
            _optional(daemon_raw, "process_pattern", str, f".*{re.escape(process)}.*")
        ),
        cli=_argv(daemon_raw.get("cli", ["birdc"]), "daemon.cli"),
        established_pattern=str(
            _optional(daemon_raw, "established_pattern", str, ".*Established.*")
        ),
    )

    timing_raw = _section(raw, "timing")
    _reject_bool(timing_raw, "command_timeout_s")
    command_timeout = _optional(timing_raw, "command_timeout_s", (int, float), None)
    timing = Timing(
        settle_s=_non_negative(timing_raw, "settle_s", 1.0),
        poll_interval_s=_non_negative(timing_raw, "poll_interval_s", 1.0),
        neighbor_attempts=_positive_int(timing_raw, "neighbor_attempts", 120),
        route_attempts=_positive_int(timing_raw, "route_attempts", 60),
        flap_pause_s=_non_negative(timing_raw, "flap_pause_s", 1.0),
        command_timeout_s=float(command_timeout) if command_timeout is not None else None,
    )

    ping_raw = _section(raw, "ping")
    _reject_bool(ping_raw, "count")
    ping = PingSettings(
        count=int(_optional(ping_raw, "count", int, 3)),
        pattern=str(_optional(ping_raw, "pattern", str, "[1-3] packets received")),
    )
    if ping.count < 1:
        raise ValueError("ping.count must be >= 1")

    diag_raw = _section(raw, "diagnostics")
    diagnostics = Diagnostics(
        fib_dump=_argv(diag_raw.get("fib_dump", ["ip", "route", "show"]), "diagnostics.fib_dump"),
        on_host=bool(_optional(diag_raw, "on_host", bool, False)),
    )

    routes = [RouteCheck(host=h, route=r) for h, r in _pairs(raw, "routes", "route")]
    for check in routes:
        try:
            ipaddress.ip_network(check.route, strict=True)
        except ValueError as exc:
            raise ValueError(f"invalid route prefix for {check.host}: {check.route}") from exc

    for pattern in (daemon.process_pattern, daemon.established_pattern, ping.pattern):
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ValueError(f"invalid pattern {pattern!r}: {exc}") from exc

    return Scenario(
        name=str(_optional(raw, "name", str, source_path.stem)),
        source_path=source_path,
        variants=variants,
        daemon=daemon,
        timing=timing,
        ping=ping,
        diagnostics=diagnostics,
        connectivity=[
            PingCheck(host=h, target=t) for h, t in _pairs(raw, "connectivity", "target")
        ],
        neighbors=[NeighborCheck(host=h, peer=p) for h, p in _pairs(raw, "neighbors", "peer")],
        routes=routes,
        inter_connectivity=[
            PingCheck(host=h, target=t) for h, t in _pairs(raw, "inter_connectivity", "target")
        ],
    )
