from __future__ import annotations

import random
import uuid
from dataclasses import replace
from typing import Any, Callable, Iterable, List, Optional, Tuple

from . import policy
from .errors import DuplicateLinkError, NotFoundError, SelfLinkError, TopologyError
from .model import DeviceKind, Link, Node, NodeConfig
from .ports import normalize_port_name

# New devices land near this point, scattered so they don't stack exactly.
DEFAULT_ORIGIN = (150.0, 150.0)
DEFAULT_SCATTER = 50.0

Listener = Callable[..., None]


def _new_id() -> str:
    return str(uuid.uuid4())


class TopologyStore:
    """Authoritative in-memory graph: ordered nodes and links.

    All mutations are synchronous. Every mutation either completes fully or
    raises a ``TopologyError`` subclass without touching the graph. Listeners
    are called as ``listener(kind, **data)`` after each successful mutation.
    """

    def __init__(
        self,
        id_factory: Callable[[], str] = _new_id,
        rng: Optional[random.Random] = None,
    ):
        self._nodes: List[Node] = []
        self._links: List[Link] = []
        self._new_id = id_factory
        self._rng = rng or random.Random()
        self._listeners: List[Listener] = []

    # ───────────────────────────── Listeners ─────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: str, **data: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(kind, **data)
            except Exception:
                pass

    # ───────────────────────────── Queries ─────────────────────────────

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes)

    @property
    def links(self) -> List[Link]:
        return list(self._links)

    def find_node(self, node_id: str) -> Optional[Node]:
        for n in self._nodes:
            if n.id == node_id:
                return n
        return None

    def get_node(self, node_id: str) -> Node:
        node = self.find_node(node_id)
        if node is None:
            raise NotFoundError("node", node_id)
        return node

    def find_link(self, link_id: str) -> Optional[Link]:
        for l in self._links:
            if l.id == link_id:
                return l
        return None

    def find_link_between(self, a: str, b: str) -> Optional[Link]:
        for l in self._links:
            if l.connects(a, b):
                return l
        return None

    def has_link_between(self, a: str, b: str) -> bool:
        return self.find_link_between(a, b) is not None

    def links_of(self, node_id: str) -> List[Link]:
        return [l for l in self._links if l.touches(node_id)]

    def ports_in_use(self, node_id: str) -> List[str]:
        return [l.port_on(node_id) for l in self._links if l.touches(node_id)]

    # ───────────────────────────── Nodes ─────────────────────────────

    def add_node(self, kind: DeviceKind, x: Optional[float] = None, y: Optional[float] = None) -> Node:
        kind = DeviceKind(kind)
        if x is None:
            x = DEFAULT_ORIGIN[0] + self._rng.random() * DEFAULT_SCATTER
        if y is None:
            y = DEFAULT_ORIGIN[1] + self._rng.random() * DEFAULT_SCATTER

        config = NodeConfig(
            name=f"{kind.prefix}-{len(self._nodes) + 1}",
            os=policy.default_os(kind),
        )
        node = Node(id=self._new_id(), kind=kind, x=float(x), y=float(y), config=config)
        self._nodes.append(node)
        self._emit("add_node", id=node.id, type=kind.value, x=node.x, y=node.y)
        return node

    def move_node(self, node_id: str, x: float, y: float) -> Node:
        node = self.get_node(node_id)
        node.x = float(x)
        node.y = float(y)
        self._emit("move_node", id=node_id, x=node.x, y=node.y)
        return node

    def update_node_config(self, node_id: str, config: NodeConfig) -> Node:
        """Replace a node's configuration.

        When the operating system changes on a server, services not allowed
        under the new OS are dropped without notice.
        """
        node = self.get_node(node_id)
        services = list(dict.fromkeys(config.services))
        if policy.supports_services(node.kind) and config.os != node.config.os:
            services = policy.filter_services(services, config.os)
        node.config = replace(config, services=services)
        self._emit("update_node_config", id=node_id, name=node.config.name)
        return node

    def delete_node(self, node_id: str) -> List[Link]:
        """Remove a node and every link touching it in one step.

        Returns the links that were removed with it.
        """
        node = self.get_node(node_id)
        doomed = [l for l in self._links if l.touches(node_id)]
        nodes = [n for n in self._nodes if n is not node]
        links = [l for l in self._links if not l.touches(node_id)]
        self._nodes, self._links = nodes, links
        self._emit("delete_node", id=node_id, links=[l.id for l in doomed])
        return doomed

    # ───────────────────────────── Links ─────────────────────────────

    def add_link(self, source_id: str, target_id: str, source_port: str, target_port: str) -> Link:
        if source_id == target_id:
            raise SelfLinkError(source_id)
        self.get_node(source_id)
        self.get_node(target_id)
        if self.has_link_between(source_id, target_id):
            raise DuplicateLinkError(source_id, target_id)

        link = Link(
            id=self._new_id(),
            source_id=source_id,
            target_id=target_id,
            source_port=normalize_port_name(source_port),
            target_port=normalize_port_name(target_port),
        )
        self._links.append(link)
        self._emit(
            "add_link",
            id=link.id,
            a=source_id,
            b=target_id,
            a_port=link.source_port,
            b_port=link.target_port,
        )
        return link

    def remove_link(self, link_id: str) -> Link:
        link = self.find_link(link_id)
        if link is None:
            raise NotFoundError("link", link_id)
        self._links = [l for l in self._links if l is not link]
        self._emit("remove_link", id=link_id, a=link.source_id, b=link.target_id)
        return link

    # ───────────────────────────── Bulk ─────────────────────────────

    def replace_all(self, nodes: Iterable[Node], links: Iterable[Link]) -> None:
        """Swap in a whole new graph (used by load).

        The new graph must satisfy the store invariants; otherwise a
        ``TopologyError`` is raised and the current graph is kept.
        """
        nodes = list(nodes)
        links = list(links)
        check_invariants(nodes, links)
        self._nodes, self._links = nodes, links
        self._emit("replace_all", nodeCount=len(nodes), linkCount=len(links))

    def clear(self) -> None:
        self._nodes, self._links = [], []
        self._emit("clear")


def check_invariants(nodes: List[Node], links: List[Link]) -> None:
    ids = set()
    for n in nodes:
        if n.id in ids:
            raise TopologyError(f"Duplicate node id '{n.id}'")
        ids.add(n.id)

    link_ids = set()
    pairs: set[Tuple[str, str]] = set()
    for l in links:
        if l.id in link_ids:
            raise TopologyError(f"Duplicate link id '{l.id}'")
        link_ids.add(l.id)
        if l.source_id == l.target_id:
            raise SelfLinkError(l.source_id)
        for end in (l.source_id, l.target_id):
            if end not in ids:
                raise NotFoundError("node", end)
        key = tuple(sorted((l.source_id, l.target_id)))
        if key in pairs:
            raise DuplicateLinkError(l.source_id, l.target_id)
        pairs.add(key)
