"""End-to-end BGP convergence checks for containerlab router topologies."""

from bgplab.lab import ContainerLab, launched
from bgplab.phases import PHASES, PhaseContext
from bgplab.scenario import Scenario, load_scenario
from bgplab.suite import SuiteOptions, run_suite
from bgplab.topology import InterfaceDescriptor, RouterRecord, RouterTopology, load_topology

__all__ = [
    "ContainerLab",
    "InterfaceDescriptor",
    "PHASES",
    "PhaseContext",
    "RouterRecord",
    "RouterTopology",
    "Scenario",
    "SuiteOptions",
    "launched",
    "load_scenario",
    "load_topology",
    "run_suite",
]
