"""
Optional: MCP server for net-planner project documents.

Lets an MCP client (MCP Inspector, a desktop assistant, a remote model)
validate a saved project document, turn it into the plain-text network
description used for reviews, and look up default port names.

Run (example):
  pip install -e .
  python -m mcp_server.planner_mcp_server

Then connect an MCP client to:
  http://localhost:8000/mcp
"""

from __future__ import annotations

from typing import Any, Dict, List

from mcp.server.fastmcp import FastMCP

from topocore.codec import decode, describe_topology, find_problems
from topocore.errors import MalformedDocumentError
from topocore.model import DeviceKind
from topocore.ports import default_port_name

mcp = FastMCP(
    "Net Planner MCP Server",
    instructions="Tools for validating and describing net-planner topology project JSON.",
    stateless_http=True,
    json_response=True,
)

MAX_PORT_NAMES = 48


@mcp.tool()
def validate_project_json(document: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a project document; returns the list of problems found."""
    problems = find_problems(document)
    return {"ok": len(problems) == 0, "problems": problems}


@mcp.tool()
def describe_project_json(document: Dict[str, Any]) -> Dict[str, Any]:
    """Plain-text description (devices + links) of a project document."""
    try:
        nodes, links = decode(document)
    except MalformedDocumentError as e:
        return {"ok": False, "error": str(e), "description": ""}
    return {
        "ok": True,
        "nodeCount": len(nodes),
        "linkCount": len(links),
        "description": describe_topology(nodes, links),
    }


@mcp.tool()
def default_port_names(kind: str, count: int = 4) -> Dict[str, Any]:
    """First ``count`` default port labels for a device kind."""
    k = DeviceKind.parse(kind)
    count = max(0, min(int(count), MAX_PORT_NAMES))
    names: List[str] = [default_port_name(k if k is not None else kind, i) for i in range(count)]
    return {"kind": k.value if k is not None else kind, "known": k is not None, "ports": names}


if __name__ == "__main__":
    # Streamable HTTP is the recommended transport for remote MCP.
    mcp.run(transport="streamable-http")
