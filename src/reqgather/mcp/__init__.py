"""
MCP Package - tools and resources exposed to MCP-compatible agents.

Tools mutate or query the store; resources are read-only URI views.
Both take the store handle explicitly.
"""

from reqgather.mcp import resources, tools
from reqgather.mcp.resources import read_resource, summarize_requirements
from reqgather.mcp.tools import ToolResult

__all__ = [
    "ToolResult",
    "read_resource",
    "summarize_requirements",
    "resources",
    "tools",
]
