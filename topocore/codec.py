from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import MalformedDocumentError, TopologyError
from .model import DeviceKind, Link, Node, NodeConfig, OperatingSystem, Service
from .ports import normalize_port_name
from .store import TopologyStore

DOCUMENT_VERSION = "1.0"
CONTENT_TYPE = "application/json"
FILE_PREFIX = "network-topology"


def _now_iso(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


def default_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{FILE_PREFIX}-{now.strftime('%Y-%m-%d')}.json"


# ───────────────────────────── Encode ─────────────────────────────


def node_to_dict(node: Node) -> Dict[str, Any]:
    c = node.config
    config: Dict[str, Any] = {
        "name": c.name,
        "ipAddress": c.ip_address,
        "subnetMask": c.subnet_mask,
    }
    if c.gateway is not None:
        config["gateway"] = c.gateway
    if c.os is not None:
        config["os"] = c.os.value
    config["services"] = [s.value for s in c.services]
    if c.vlan is not None:
        config["vlan"] = c.vlan
    return {
        "id": node.id,
        "type": node.kind.value,
        "x": node.x,
        "y": node.y,
        "config": config,
    }


def link_to_dict(link: Link) -> Dict[str, Any]:
    return {
        "id": link.id,
        "sourceId": link.source_id,
        "targetId": link.target_id,
        "sourcePort": link.source_port,
        "targetPort": link.target_port,
    }


def encode(nodes: Sequence[Node], links: Sequence[Link], now: Optional[datetime] = None) -> Dict[str, Any]:
    return {
        "version": DOCUMENT_VERSION,
        "timestamp": _now_iso(now),
        "nodes": [node_to_dict(n) for n in nodes],
        "links": [link_to_dict(l) for l in links],
    }


def dumps(store: TopologyStore, now: Optional[datetime] = None) -> str:
    return json.dumps(encode(store.nodes, store.links, now), indent=2, ensure_ascii=False)


# ───────────────────────────── Decode ─────────────────────────────


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _config_from_dict(raw: Any, kind: DeviceKind, fallback_name: str) -> NodeConfig:
    if not isinstance(raw, dict):
        raw = {}

    services: List[Service] = []
    raw_services = raw.get("services")
    if isinstance(raw_services, list):
        for s in raw_services:
            svc = Service.parse(s)
            if svc is not None and svc not in services:
                services.append(svc)

    vlan = raw.get("vlan")
    if isinstance(vlan, bool) or not isinstance(vlan, (int, str)):
        vlan = None
    else:
        try:
            vlan = int(vlan)
        except ValueError:
            vlan = None

    gateway = raw.get("gateway")
    return NodeConfig(
        name=_as_text(raw.get("name"), fallback_name),
        ip_address=_as_text(raw.get("ipAddress")),
        subnet_mask=_as_text(raw.get("subnetMask")),
        gateway=None if gateway is None else str(gateway),
        os=OperatingSystem.parse(raw.get("os")),
        services=services,
        vlan=vlan,
    )


def node_from_dict(raw: Any) -> Optional[Node]:
    """Build a Node from a document entry; None when the entry is unusable."""
    if not isinstance(raw, dict):
        return None
    node_id = raw.get("id")
    kind = DeviceKind.parse(raw.get("type"))
    x = _as_float(raw.get("x"))
    y = _as_float(raw.get("y"))
    if not node_id or kind is None or x is None or y is None:
        return None
    node_id = str(node_id)
    return Node(
        id=node_id,
        kind=kind,
        x=x,
        y=y,
        config=_config_from_dict(raw.get("config"), kind, node_id),
    )


def link_from_dict(raw: Any) -> Optional[Link]:
    if not isinstance(raw, dict):
        return None
    link_id = raw.get("id")
    a = raw.get("sourceId")
    b = raw.get("targetId")
    if not link_id or not a or not b:
        return None
    return Link(
        id=str(link_id),
        source_id=str(a),
        target_id=str(b),
        source_port=normalize_port_name(raw.get("sourcePort")),
        target_port=normalize_port_name(raw.get("targetPort")),
    )


def _require_shape(data: Any) -> Tuple[list, list]:
    if not isinstance(data, dict):
        raise MalformedDocumentError("Invalid project file: expected an object at top-level")
    nodes = data.get("nodes")
    links = data.get("links")
    if not isinstance(nodes, list) or not isinstance(links, list):
        raise MalformedDocumentError("Invalid project file: 'nodes' and 'links' must be lists")
    return nodes, links


def decode(data: Any) -> Tuple[List[Node], List[Link]]:
    """Turn a parsed document into nodes and links that satisfy the store invariants.

    Unusable entries are skipped: nodes without id/kind/position, links with
    a missing endpoint, self-links and repeated node pairs (first one wins).
    Repeated node ids make the whole document malformed.
    """
    raw_nodes, raw_links = _require_shape(data)

    nodes: List[Node] = []
    ids = set()
    for raw in raw_nodes:
        node = node_from_dict(raw)
        if node is None:
            continue
        if node.id in ids:
            raise MalformedDocumentError(f"Invalid project file: duplicate node id '{node.id}'")
        ids.add(node.id)
        nodes.append(node)

    links: List[Link] = []
    link_ids = set()
    pairs = set()
    for raw in raw_links:
        link = link_from_dict(raw)
        if link is None or link.id in link_ids:
            continue
        if link.source_id == link.target_id:
            continue
        if link.source_id not in ids or link.target_id not in ids:
            continue
        key = tuple(sorted((link.source_id, link.target_id)))
        if key in pairs:
            continue
        pairs.add(key)
        link_ids.add(link.id)
        links.append(link)

    return nodes, links


def loads(text: str) -> Tuple[List[Node], List[Link]]:
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedDocumentError(f"Invalid project file: {e}") from e
    return decode(data)


def load_into(store: TopologyStore, text: str) -> Tuple[int, int]:
    """Replace the store's graph with the document in ``text``.

    Either the whole graph is replaced or, on any error, the store is left
    exactly as it was and ``MalformedDocumentError`` is raised.
    """
    nodes, links = loads(text)
    try:
        store.replace_all(nodes, links)
    except TopologyError as e:
        raise MalformedDocumentError(f"Invalid project file: {e}") from e
    return len(nodes), len(links)


def write_path(store: TopologyStore, path: str, now: Optional[datetime] = None) -> None:
    text = dumps(store, now)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


def read_path(store: TopologyStore, path: str) -> Tuple[int, int]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except UnicodeDecodeError as e:
        raise MalformedDocumentError(f"Invalid project file: {e}") from e
    return load_into(store, text)


# ───────────────────────────── Validation report ─────────────────────────────


def find_problems(data: Any) -> List[str]:
    """Full validation report for a document; empty when it loads cleanly."""
    problems: List[str] = []
    if not isinstance(data, dict):
        return ["Top-level must be an object."]
    if data.get("version") != DOCUMENT_VERSION:
        problems.append(f"version must be '{DOCUMENT_VERSION}'.")

    nodes = data.get("nodes")
    links = data.get("links")
    if not isinstance(nodes, list):
        problems.append("'nodes' must be a list.")
        nodes = []
    if not isinstance(links, list):
        problems.append("'links' must be a list.")
        links = []

    ids = set()
    for i, n in enumerate(nodes):
        if not isinstance(n, dict):
            problems.append(f"nodes[{i}] must be an object.")
            continue
        nid = n.get("id")
        if not nid or not isinstance(nid, str):
            problems.append(f"nodes[{i}].id must be a string.")
            continue
        if nid in ids:
            problems.append(f"Duplicate node id: {nid}")
        ids.add(nid)
        if DeviceKind.parse(n.get("type")) is None:
            problems.append(f"nodes[{i}].type '{n.get('type')}' is not a known device kind.")
        for k in ("x", "y"):
            if _as_float(n.get(k)) is None:
                problems.append(f"nodes[{i}].{k} must be a number.")
        config = n.get("config")
        if isinstance(config, dict):
            if config.get("os") is not None and OperatingSystem.parse(config.get("os")) is None:
                problems.append(f"nodes[{i}].config.os '{config.get('os')}' is not a known operating system.")
            services = config.get("services")
            if services is not None and not isinstance(services, list):
                problems.append(f"nodes[{i}].config.services must be a list.")
                services = []
            for s in services or []:
                if Service.parse(s) is None:
                    problems.append(f"nodes[{i}].config.services has unknown service '{s}'.")

    seen = set()
    for i, e in enumerate(links):
        if not isinstance(e, dict):
            problems.append(f"links[{i}] must be an object.")
            continue
        a = e.get("sourceId")
        b = e.get("targetId")
        if not a or not b:
            problems.append(f"links[{i}] must include 'sourceId' and 'targetId'.")
            continue
        if not isinstance(a, str) or not isinstance(b, str):
            problems.append(f"links[{i}].sourceId and targetId must be strings.")
            continue
        if a == b:
            problems.append(f"links[{i}] connects '{a}' to itself.")
            continue
        if a not in ids:
            problems.append(f"links[{i}].sourceId references missing node '{a}'.")
        if b not in ids:
            problems.append(f"links[{i}].targetId references missing node '{b}'.")
        key = tuple(sorted((str(a), str(b))))
        if key in seen:
            problems.append(f"Duplicate link between {key[0]} and {key[1]}.")
        seen.add(key)
    return problems


# ───────────────────────────── Analysis text ─────────────────────────────


def describe_topology(nodes: Sequence[Node], links: Sequence[Link]) -> str:
    """Plain-text description of the network for the analysis collaborator."""
    names = {n.id: n.config.name for n in nodes}

    node_lines: List[str] = []
    for n in nodes:
        c = n.config
        node_lines.append(f"{c.name} ({n.kind.label})")
        node_lines.append(f"  - IP: {c.ip_address}/{c.subnet_mask}")
        if n.kind is DeviceKind.SERVER:
            os_label = c.os.label if c.os is not None else OperatingSystem.NONE.label
            services = ", ".join(s.label for s in c.services) or "None"
            node_lines.append(f"  - OS: {os_label}")
            node_lines.append(f"  - Services: {services}")

    link_lines = [
        f"  - Link: {names.get(l.source_id, l.source_id)} <---> {names.get(l.target_id, l.target_id)}"
        for l in links
    ]

    return (
        "Devices:\n"
        + ("\n".join(node_lines) or "  (none)")
        + "\n\nLinks:\n"
        + ("\n".join(link_lines) or "  (none)")
    )
