from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from bgplab.common import load_yaml

IP_ADDR_RE = re.compile(r"\bip\s+(?:-4\s+)?addr\s+(?:add|replace)\s+([0-9A-Fa-f:.]+)/\d+\s+dev\s+(\S+)")
VLAN_LINK_RE = re.compile(
    r"\bip\s+link\s+add\s+link\s+(\S+)\s+name\s+(\S+)\s+type\s+vlan\s+id\s+(\d+)\b"
)


@dataclass(frozen=True)
class InterfaceDescriptor:
    name: str
    vlan: str = ""
    address: str = ""

    @property
    def device(self) -> str:
        if self.vlan:
            return f"{self.name}.{self.vlan}"
        return self.name


@dataclass(frozen=True)
class RouterRecord:
    hostname: str
    interfaces: List[InterfaceDescriptor]

    def devices(self) -> List[str]:
        return [intf.device for intf in self.interfaces]


@dataclass(frozen=True)
class RouterTopology:
    source_path: Path
    lab_name: str
    routers: List[RouterRecord]

    @property
    def hostnames(self) -> List[str]:
        return [router.hostname for router in self.routers]

    def addresses(self) -> Dict[str, str]:
        """Interface address -> owning router, for every address set in node exec lines."""
        out: Dict[str, str] = {}
        for router in self.routers:
            for intf in router.interfaces:
                if intf.address:
                    out[intf.address] = router.hostname
        return out

    def router(self, hostname: str) -> RouterRecord:
        for router in self.routers:
            if router.hostname == hostname:
                return router
        raise KeyError(f"Unknown router {hostname!r} in topology {self.lab_name}")


def load_topology(path: Path) -> RouterTopology:
    """Read a containerlab topology file into routers and their data interfaces.

    Interfaces are taken from link endpoints in order of appearance. A VLAN
    tag is attached when the node's ``exec`` list creates a VLAN sub-interface
    on top of the endpoint, and the address is taken from whichever device
    (parent or sub-interface) carries it.
    """
    source_path = path.expanduser().resolve()
    raw = load_yaml(source_path)
    lab_name = str(raw.get("name", "")).strip()
    if not lab_name:
        raise ValueError(f"Topology file has no lab name: {source_path}")

    topology = dict(raw.get("topology", {}))
    nodes = dict(topology.get("nodes", {}))
    links_raw = list(topology.get("links", []))
    if not nodes:
        raise ValueError(f"No nodes found in topology file: {source_path}")

    node_ifaces: Dict[str, List[str]] = {str(name): [] for name in nodes.keys()}
    for idx, link in enumerate(links_raw):
        endpoints = list(dict(link).get("endpoints", []))
        if len(endpoints) != 2:
            raise ValueError(f"Link entry #{idx} must contain exactly two endpoints: {link}")
        for endpoint in endpoints:
            node, iface = _parse_endpoint(str(endpoint))
            if node not in node_ifaces:
                raise ValueError(f"Unknown node in link entry #{idx}: {link}")
            if iface not in node_ifaces[node]:
                node_ifaces[node].append(iface)

    routers: List[RouterRecord] = []
    for name, node in nodes.items():
        hostname = str(name)
        exec_cmds = [str(cmd) for cmd in dict(node or {}).get("exec", [])]
        vlans = _parse_vlans(exec_cmds)
        addrs = _parse_iface_ips(exec_cmds)
        interfaces = []
        for iface in node_ifaces[hostname]:
            vlan = vlans.get(iface, "")
            device = f"{iface}.{vlan}" if vlan else iface
            interfaces.append(
                InterfaceDescriptor(
                    name=iface,
                    vlan=vlan,
                    address=addrs.get(device, addrs.get(iface, "")),
                )
            )
        routers.append(RouterRecord(hostname=hostname, interfaces=interfaces))

    return RouterTopology(
        source_path=source_path,
        lab_name=lab_name,
        routers=routers,
    )


def _parse_endpoint(text: str) -> tuple[str, str]:
    if ":" not in text:
        raise ValueError(f"Invalid endpoint format: {text}")
    node, iface = text.split(":", maxsplit=1)
    if not node or not iface:
        raise ValueError(f"Invalid endpoint format: {text}")
    return node, iface


def _parse_vlans(exec_cmds: List[str]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for text in exec_cmds:
        match = VLAN_LINK_RE.search(text)
        if not match:
            continue
        parent, sub_name, vlan_id = match.group(1), match.group(2), match.group(3)
        if sub_name != f"{parent}.{vlan_id}":
            raise ValueError(f"VLAN sub-interface must be named <parent>.<id>: {text}")
        out[parent] = vlan_id
    return out


def _parse_iface_ips(exec_cmds: List[str]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for text in exec_cmds:
        match = IP_ADDR_RE.search(text)
        if not match:
            continue
        out[match.group(2)] = match.group(1)
    return out
