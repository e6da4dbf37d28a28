from __future__ import annotations


class TopologyError(Exception):
    """Base class for every rejection raised by the topology core."""


class NotFoundError(TopologyError, KeyError):
    def __init__(self, what: str, ident: str):
        self.what = what
        self.ident = ident
        super().__init__(f"Unknown {what} '{ident}'")

    def __str__(self) -> str:
        # KeyError would repr() the message otherwise.
        return f"Unknown {self.what} '{self.ident}'"


class DuplicateLinkError(TopologyError, ValueError):
    def __init__(self, a: str, b: str):
        self.a = a
        self.b = b
        super().__init__(f"Nodes '{a}' and '{b}' are already connected")


class SelfLinkError(TopologyError, ValueError):
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Cannot connect node '{node_id}' to itself")


class MalformedDocumentError(TopologyError, ValueError):
    """Raised when a project document cannot be loaded."""
