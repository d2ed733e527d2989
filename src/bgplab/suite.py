"""Run scenario variants against freshly launched labs, one after another."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Sequence

from bgplab.checks import CheckFailed
from bgplab.common import CommandError
from bgplab.lab import ContainerLab, launched
from bgplab.phases import PHASE_NAMES, PHASES, PhaseContext
from bgplab.scenario import Scenario, Variant


@dataclass
class PhaseResult:
    name: str
    status: str
    duration_s: float = 0.0
    error: str = ""
    details: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class VariantResult:
    variant: str
    topology_file: str
    launched: bool = False
    error: str = ""
    phases: List[PhaseResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        if self.error or not self.launched:
            return False
        return all(phase.status == "passed" for phase in self.phases)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["passed"] = self.passed
        return out


@dataclass(frozen=True)
class SuiteOptions:
    use_sudo: bool = False
    keep_lab: bool = False
    clab_bin: str = ""
    variants: Sequence[str] = ()
    phases: Sequence[str] = ()


def select_phases(names: Sequence[str]) -> List[tuple]:
    unknown = [name for name in names if name not in PHASE_NAMES]
    if unknown:
        raise ValueError(
            f"Unknown phase(s): {', '.join(unknown)}; expected: {', '.join(PHASE_NAMES)}"
        )
    if not names:
        return list(PHASES)
    return [(name, func) for name, func in PHASES if name in names]


def run_phases(ctx: PhaseContext, phases: List[tuple], log: logging.Logger) -> List[PhaseResult]:
    results: List[PhaseResult] = []
    failed = ""
    for name, func in phases:
        if failed:
            results.append(
                PhaseResult(name=name, status="skipped", error=f"after failed phase {failed}")
            )
            continue
        log.info("[%s] phase %s", ctx.topology.lab_name, name)
        start = time.monotonic()
        try:
            details = func(ctx)
        except (CheckFailed, CommandError) as exc:
            log.error("[%s] phase %s failed: %s", ctx.topology.lab_name, name, exc)
            results.append(
                PhaseResult(
                    name=name,
                    status="failed",
                    duration_s=time.monotonic() - start,
                    error=str(exc),
                )
            )
            failed = name
            continue
        results.append(
            PhaseResult(
                name=name,
                status="passed",
                duration_s=time.monotonic() - start,
                details=details,
            )
        )
    return results


def run_variant(
    scenario: Scenario,
    variant: Variant,
    options: SuiteOptions,
    *,
    lab_factory: Callable[..., ContainerLab] = ContainerLab,
    sleep: Callable[[float], None] = time.sleep,
    logger: logging.Logger | None = None,
) -> VariantResult:
    log = logger or logging.getLogger("bgplab.suite")
    phases = select_phases(options.phases)
    result = VariantResult(variant=variant.name, topology_file=str(variant.topology_file))
    log.info("variant %s: launching %s", variant.name, variant.topology_file)
    try:
        with launched(
            variant.topology_file,
            use_sudo=options.use_sudo,
            keep_lab=options.keep_lab,
            clab_bin=options.clab_bin,
            command_timeout_s=scenario.timing.command_timeout_s,
            lab_factory=lab_factory,
        ) as lab:
            result.launched = True
            scenario.validate_against(lab.topology)
            ctx = PhaseContext(lab=lab, topology=lab.topology, scenario=scenario, sleep=sleep)
            result.phases = run_phases(ctx, phases, log)
    except (RuntimeError, ValueError, OSError) as exc:
        stage = "check setup" if result.launched else "launch"
        log.error("variant %s: %s failed: %s", variant.name, stage, exc)
        result.error = f"{stage} failed: {exc}"
    return result


def run_suite(
    scenario: Scenario,
    options: SuiteOptions,
    *,
    lab_factory: Callable[..., ContainerLab] = ContainerLab,
    sleep: Callable[[float], None] = time.sleep,
    logger: logging.Logger | None = None,
) -> List[VariantResult]:
    variants = (
        [scenario.variant(name) for name in options.variants]
        if options.variants
        else list(scenario.variants)
    )
    select_phases(options.phases)
    return [
        run_variant(scenario, variant, options, lab_factory=lab_factory, sleep=sleep, logger=logger)
        for variant in variants
    ]
