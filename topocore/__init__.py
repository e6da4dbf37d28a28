"""Topology graph model and canvas interaction core for net-planner.

This package is intentionally stdlib-only and designed for unit testing.
"""

from .model import DeviceKind, OperatingSystem, Service, Node, NodeConfig, Link
from .store import TopologyStore
from .controller import InteractionController
from .errors import (
    TopologyError,
    NotFoundError,
    DuplicateLinkError,
    SelfLinkError,
    MalformedDocumentError,
)

__all__ = [
    "DeviceKind",
    "OperatingSystem",
    "Service",
    "Node",
    "NodeConfig",
    "Link",
    "TopologyStore",
    "InteractionController",
    "TopologyError",
    "NotFoundError",
    "DuplicateLinkError",
    "SelfLinkError",
    "MalformedDocumentError",
]
