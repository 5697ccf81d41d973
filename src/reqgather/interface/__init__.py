"""
Interface module - All external interfaces to the Requirements Gatherer.

This module contains:
- api.py: FastAPI REST API
- cli.py: Command-line interface
- mcp_server.py: MCP (Model Context Protocol) server
"""

from reqgather.interface.api import create_app

__all__ = [
    "create_app",
]
