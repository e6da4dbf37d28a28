from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class _LenientEnum(str, Enum):
    """str-valued enum that also parses member names and display labels."""

    @classmethod
    def parse(cls, value) -> Optional["_LenientEnum"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        if not key:
            return None
        for member in cls:
            candidates = {member.value, member.name.lower(), member.label.lower()}
            candidates.update(a.lower() for a in _ALIASES.get(member, ()))
            if key in candidates:
                return member
        return None

    @property
    def label(self) -> str:
        return _LABELS.get(self, self.value)


class DeviceKind(_LenientEnum):
    ROUTER = "router"
    SWITCH = "switch"
    MULTILAYER_SWITCH = "multilayer-switch"
    SERVER = "server"
    PC = "personal-computer"

    @property
    def prefix(self) -> str:
        # Used for default node names (ROUTER-1, MLS-2, ...).
        return _PREFIXES[self]


class OperatingSystem(_LenientEnum):
    LINUX = "linux"
    WINDOWS_SERVER = "windows-server"
    NONE = "none"


class Service(_LenientEnum):
    DHCP = "dhcp"
    DNS = "dns"
    WEB_APACHE = "web-apache"
    WEB_NGINX = "web-nginx"
    WEB_IIS = "web-iis"
    DIRECTORY = "directory-service"
    FILE_SERVER = "file-server"
    FTP = "ftp"
    SSH = "ssh"
    EMAIL = "email"


_PREFIXES = {
    DeviceKind.ROUTER: "ROUTER",
    DeviceKind.SWITCH: "SWITCH",
    DeviceKind.MULTILAYER_SWITCH: "MLS",
    DeviceKind.SERVER: "SERVER",
    DeviceKind.PC: "PC",
}

_LABELS = {
    DeviceKind.ROUTER: "Router",
    DeviceKind.SWITCH: "Switch",
    DeviceKind.MULTILAYER_SWITCH: "Multilayer Switch",
    DeviceKind.SERVER: "Server",
    DeviceKind.PC: "PC",
    OperatingSystem.LINUX: "Linux",
    OperatingSystem.WINDOWS_SERVER: "Windows Server",
    OperatingSystem.NONE: "No operating system",
    Service.DHCP: "DHCP",
    Service.DNS: "DNS",
    Service.WEB_APACHE: "Web (Apache)",
    Service.WEB_NGINX: "Web (Nginx)",
    Service.WEB_IIS: "Web (IIS)",
    Service.DIRECTORY: "Active Directory",
    Service.FILE_SERVER: "File Server",
    Service.FTP: "FTP",
    Service.SSH: "SSH",
    Service.EMAIL: "Email",
}

# Labels older project files were written with.
_ALIASES = {
    DeviceKind.MULTILAYER_SWITCH: ("mls",),
    DeviceKind.PC: ("pc", "host"),
    OperatingSystem.NONE: ("Nincs operációs rendszer",),
    Service.DIRECTORY: ("ad",),
    Service.FILE_SERVER: ("Fájl Szerver",),
}


# ───────────────────────────── Graph records ─────────────────────────────

DEFAULT_IP = "192.168.1.1"
DEFAULT_MASK = "255.255.255.0"


@dataclass
class NodeConfig:
    name: str
    ip_address: str = DEFAULT_IP
    subnet_mask: str = DEFAULT_MASK
    gateway: Optional[str] = None
    os: Optional[OperatingSystem] = None
    # Ordered set; meaningful only for servers.
    services: List[Service] = field(default_factory=list)
    vlan: Optional[int] = None


@dataclass
class Node:
    id: str
    kind: DeviceKind
    x: float
    y: float
    config: NodeConfig


@dataclass
class Link:
    id: str
    source_id: str
    target_id: str
    source_port: str
    target_port: str

    def touches(self, node_id: str) -> bool:
        return node_id in (self.source_id, self.target_id)

    def connects(self, a: str, b: str) -> bool:
        """Undirected: a-b is the same link as b-a."""
        return (self.source_id == a and self.target_id == b) or (
            self.source_id == b and self.target_id == a
        )

    def port_on(self, node_id: str) -> Optional[str]:
        if node_id == self.source_id:
            return self.source_port
        if node_id == self.target_id:
            return self.target_port
        return None
