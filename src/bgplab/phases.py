from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Protocol, Tuple

from bgplab.checks import CheckFailed, assert_match, matches
from bgplab.poll import poll_until
from bgplab.scenario import PingCheck, Scenario
from bgplab.topology import RouterTopology


class Executor(Protocol):
    def exec_cmd(self, hostname: str, argv: List[str]) -> str: ...

    def run_local(self, argv: List[str]) -> str: ...


@dataclass
class PhaseContext:
    lab: Executor
    topology: RouterTopology
    scenario: Scenario
    sleep: Callable[[float], None] = time.sleep
    log: logging.Logger = field(default_factory=lambda: logging.getLogger("bgplab.phases"))


Details = List[Dict[str, Any]]


def _ping_all(ctx: PhaseContext, checks: List[PingCheck], *, dump_fib: bool) -> Details:
    details: Details = []
    for check in checks:
        ctx.log.info("ping %s from %s", check.target, check.host)
        out = ctx.lab.exec_cmd(check.host, ctx.scenario.ping.cmd(check.target))
        assert_match(out, ctx.scenario.ping.pattern, context=f"{check.host} -> {check.target}")
        row: Dict[str, Any] = {"host": check.host, "target": check.target}
        if dump_fib:
            row["fib"] = dump_forwarding_table(ctx, check.host)
        details.append(row)
    return details


def dump_forwarding_table(ctx: PhaseContext, host: str) -> str:
    """Run the configured forwarding-table dump. Output is logged, not matched."""
    argv = list(ctx.scenario.diagnostics.fib_dump)
    if ctx.scenario.diagnostics.on_host:
        out = ctx.lab.run_local(argv)
    else:
        out = ctx.lab.exec_cmd(host, argv)
    ctx.log.debug("forwarding table after %s:\n%s", host, out)
    return out


def check_connectivity(ctx: PhaseContext) -> Details:
    return _ping_all(ctx, ctx.scenario.connectivity, dump_fib=False)


def check_daemon(ctx: PhaseContext) -> Details:
    daemon = ctx.scenario.daemon
    ctx.sleep(ctx.scenario.timing.settle_s)
    details: Details = []
    for router in ctx.topology.routers:
        ctx.log.info("checking %s on %s", daemon.process, router.hostname)
        out = ctx.lab.exec_cmd(router.hostname, ["ps", "ax"])
        assert_match(out, daemon.process_pattern, context=f"{daemon.process} on {router.hostname}")
        details.append({"host": router.hostname, "process": daemon.process})
    return details


def check_neighbors(ctx: PhaseContext) -> Details:
    daemon = ctx.scenario.daemon
    timing = ctx.scenario.timing
    details: Details = []
    for check in ctx.scenario.neighbors:
        cmd = daemon.show_protocol_cmd(check.peer)

        def established() -> bool:
            return matches(ctx.lab.exec_cmd(check.host, cmd), daemon.established_pattern)

        result = poll_until(
            established,
            attempts=timing.neighbor_attempts,
            interval_s=timing.poll_interval_s,
            sleep=ctx.sleep,
        )
        if not result.ok:
            raise CheckFailed(f"No bgp peer established for {check.host} (peer {check.peer})")
        ctx.log.info(
            "%s: peer %s established after %d attempt(s)", check.host, check.peer, result.attempts
        )
        details.append({"host": check.host, "peer": check.peer, "attempts": result.attempts})
    return details


def check_routes(ctx: PhaseContext) -> Details:
    timing = ctx.scenario.timing
    details: Details = []
    for check in ctx.scenario.routes:
        cmd = ["ip", "route", "show", check.route]

        def present() -> bool:
            return check.route in ctx.lab.exec_cmd(check.host, cmd)

        result = poll_until(
            present,
            attempts=timing.route_attempts,
            interval_s=timing.poll_interval_s,
            sleep=ctx.sleep,
        )
        if not result.ok:
            raise CheckFailed(f"No bgp route for {check.host}: {check.route}")
        ctx.log.info(
            "%s: route %s present after %d attempt(s)", check.host, check.route, result.attempts
        )
        details.append({"host": check.host, "route": check.route, "attempts": result.attempts})
    return details


def check_inter_connectivity(ctx: PhaseContext) -> Details:
    return _ping_all(ctx, ctx.scenario.inter_connectivity, dump_fib=True)


def check_flap(ctx: PhaseContext) -> Details:
    pause = ctx.scenario.timing.flap_pause_s
    details: Details = []
    for router in ctx.topology.routers:
        for device in router.devices():
            ctx.log.info("flapping %s on %s", device, router.hostname)
            ctx.lab.exec_cmd(router.hostname, ["ip", "link", "set", "down", device])
            ctx.sleep(pause)
            ctx.lab.exec_cmd(router.hostname, ["ip", "link", "set", "up", device])
            ctx.sleep(pause)
            fib = dump_forwarding_table(ctx, router.hostname)
            details.append({"host": router.hostname, "device": device, "fib": fib})
    return details


PHASES: List[Tuple[str, Callable[[PhaseContext], Details]]] = [
    ("connectivity", check_connectivity),
    ("daemon", check_daemon),
    ("neighbors", check_neighbors),
    ("routes", check_routes),
    ("inter-connectivity", check_inter_connectivity),
    ("flap", check_flap),
]
PHASE_NAMES = tuple(name for name, _ in PHASES)
