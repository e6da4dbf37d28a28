from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from .model import DeviceKind, NodeConfig, OperatingSystem, Service

# Display order matters: the properties form lists services in this order.
WINDOWS_SERVICES: Tuple[Service, ...] = (
    Service.DIRECTORY,
    Service.WEB_IIS,
    Service.FILE_SERVER,
    Service.DNS,
    Service.DHCP,
    Service.FTP,
    Service.EMAIL,
)

LINUX_SERVICES: Tuple[Service, ...] = (
    Service.SSH,
    Service.WEB_APACHE,
    Service.WEB_NGINX,
    Service.FILE_SERVER,
    Service.DNS,
    Service.DHCP,
    Service.FTP,
    Service.EMAIL,
)

ALLOWED_SERVICES: Dict[OperatingSystem, Tuple[Service, ...]] = {
    OperatingSystem.WINDOWS_SERVER: WINDOWS_SERVICES,
    OperatingSystem.LINUX: LINUX_SERVICES,
    OperatingSystem.NONE: (),
}

# Config fields the properties form shows per device kind.
BASE_FIELDS = ("name", "ip_address", "subnet_mask")
CONFIG_FIELDS: Dict[DeviceKind, Tuple[str, ...]] = {
    DeviceKind.ROUTER: BASE_FIELDS,
    DeviceKind.SWITCH: BASE_FIELDS + ("vlan",),
    DeviceKind.MULTILAYER_SWITCH: BASE_FIELDS + ("vlan",),
    DeviceKind.SERVER: BASE_FIELDS + ("gateway", "os", "services"),
    DeviceKind.PC: BASE_FIELDS + ("gateway", "vlan"),
}


def allowed_services(os: Optional[OperatingSystem]) -> Tuple[Service, ...]:
    if os is None:
        return ()
    return ALLOWED_SERVICES[os]


def is_service_allowed(os: Optional[OperatingSystem], service: Service) -> bool:
    return service in allowed_services(os)


def filter_services(services: Iterable[Service], os: Optional[OperatingSystem]) -> List[Service]:
    """Keep the services legal under ``os``, preserving order and dropping repeats."""
    allowed = allowed_services(os)
    out: List[Service] = []
    for s in services:
        if s in allowed and s not in out:
            out.append(s)
    return out


def supports_services(kind: DeviceKind) -> bool:
    return kind is DeviceKind.SERVER


def default_os(kind: DeviceKind) -> OperatingSystem:
    if kind is DeviceKind.SERVER:
        return OperatingSystem.LINUX
    return OperatingSystem.NONE


def config_fields(kind: DeviceKind) -> Tuple[str, ...]:
    return CONFIG_FIELDS[kind]


def change_os(config: NodeConfig, os: OperatingSystem) -> NodeConfig:
    """New config running ``os``; services invalid under it are dropped silently."""
    return replace(config, os=os, services=filter_services(config.services, os))


def toggle_service(config: NodeConfig, service: Service) -> NodeConfig:
    # Legality is the form's job; this only flips membership.
    services = list(config.services)
    if service in services:
        services.remove(service)
    else:
        services.append(service)
    return replace(config, services=services)
