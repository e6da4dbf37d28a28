from __future__ import annotations

from typing import Iterable, Union

from .model import DeviceKind

FALLBACK_PORT = "port"


def default_port_name(kind: Union[DeviceKind, str], index: int = 0) -> str:
    """Cisco-ish default label for port ``index`` on a device of ``kind``."""
    k = DeviceKind.parse(kind)
    if k is DeviceKind.ROUTER:
        return f"Gi0/{index}"
    if k is DeviceKind.SWITCH:
        # Access ports start at Fa0/1
        return f"Fa0/{index + 1}"
    if k is DeviceKind.MULTILAYER_SWITCH:
        return f"Gi0/{index + 1}"
    if k in (DeviceKind.SERVER, DeviceKind.PC):
        return f"eth{index}"
    return f"port{index}"


def suggest_port_name(kind: Union[DeviceKind, str], taken: Iterable[str] = ()) -> str:
    """First default label for ``kind`` that is not already in ``taken``."""
    used = set(taken)
    index = 0
    while True:
        name = default_port_name(kind, index)
        if name not in used:
            return name
        index += 1


def normalize_port_name(name) -> str:
    # Anything the user typed is accepted; only an empty label is replaced.
    if not name:
        return FALLBACK_PORT
    return str(name)
