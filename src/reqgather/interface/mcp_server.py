"""
MCP Server - Model Context Protocol server for Claude/Cursor integration.

Exposes the requirements store as an MCP tool server over WebSocket:
- Project operations (create_project, update_project, find_projects, ...)
- Requirement operations (create_requirement, update_requirement, ...)
- Read-only resources (requirements://..., projects://...)

Every tool failure is reported with a kind of not_found, invalid_input or
storage_failure.
"""

import asyncio
import json
from typing import Any

from websockets.asyncio.server import serve
from websockets.exceptions import ConnectionClosed

from reqgather.core.config import settings, setup_logging, get_logger
from reqgather.core.types import RequirementPriority, RequirementStatus, RequirementType
from reqgather.mcp import resources as mcp_resources
from reqgather.mcp import tools as mcp_tools
from reqgather.storage.base import RequirementsStore
from reqgather.storage.factory import create_storage

logger = get_logger("mcp_server")

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "requirements-gatherer"
SERVER_VERSION = "1.0.0"

_TYPES = [t.value for t in RequirementType]
_PRIORITIES = [p.value for p in RequirementPriority]
_STATUSES = [s.value for s in RequirementStatus]


class MCPServer:
    """
    MCP (Model Context Protocol) server for the requirements store.

    Provides a WebSocket interface that Claude and other MCP-compatible
    clients can use to manage projects and requirements.
    """

    def __init__(self, store: RequirementsStore):
        self.store = store
        self.tools = self._define_tools()

    def _define_tools(self) -> list[dict]:
        """Define available MCP tools."""
        return [
            # ===================
            # Project Tools
            # ===================
            {
                "name": "create_project",
                "description": "Create a new project. Use this first when the user wants to gather requirements for something new.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "Project name"},
                        "description": {"type": "string", "description": "What the project is about"}
                    },
                    "required": ["name"]
                }
            },
            {
                "name": "update_project",
                "description": "Update a project's name or description.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string"},
                        "name": {"type": "string"},
                        "description": {"type": "string"}
                    },
                    "required": ["id"]
                }
            },
            {
                "name": "delete_project",
                "description": "Delete a project along with all its requirements. This cannot be undone.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string"}
                    },
                    "required": ["id"]
                }
            },
            {
                "name": "get_project",
                "description": "Retrieve a project by its ID.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string"}
                    },
                    "required": ["id"]
                }
            },
            {
                "name": "find_projects",
                "description": "Find projects by name (case-insensitive). Returns all projects if no search term is provided.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "searchTerm": {"type": "string"}
                    }
                }
            },

            # ===================
            # Requirement Tools
            # ===================
            {
                "name": "create_requirement",
                "description": "Create a new requirement for a project.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "title": {"type": "string"},
                        "description": {"type": "string"},
                        "type": {"type": "string", "enum": _TYPES},
                        "priority": {"type": "string", "enum": _PRIORITIES},
                        "projectId": {"type": "string"},
                        "tags": {"type": "array", "items": {"type": "string"}}
                    },
                    "required": ["title", "description", "type", "priority", "projectId"]
                }
            },
            {
                "name": "update_requirement",
                "description": "Update an existing requirement. Supplying tags replaces the whole tag set.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string"},
                        "title": {"type": "string"},
                        "description": {"type": "string"},
                        "type": {"type": "string", "enum": _TYPES},
                        "priority": {"type": "string", "enum": _PRIORITIES},
                        "status": {"type": "string", "enum": _STATUSES},
                        "tags": {"type": "array", "items": {"type": "string"}}
                    },
                    "required": ["id"]
                }
            },
            {
                "name": "delete_requirement",
                "description": "Delete an existing requirement.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string"}
                    },
                    "required": ["id"]
                }
            },
            {
                "name": "get_requirement",
                "description": "Retrieve a requirement by its ID.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string"}
                    },
                    "required": ["id"]
                }
            },
            {
                "name": "list_project_requirements",
                "description": "List all requirements for a project.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "projectId": {"type": "string"}
                    },
                    "required": ["projectId"]
                }
            },
        ]

    async def handle_message(self, message: Any) -> dict:
        """Handle an incoming MCP message."""
        if not isinstance(message, dict):
            return {
                "jsonrpc": "2.0",
                "id": None,
                "error": {"code": -32600, "message": "Invalid request: expected a JSON object"}
            }

        method = message.get("method")
        params = message.get("params")
        if not isinstance(params, dict):
            params = {}
        msg_id = message.get("id")

        if method == "initialize":
            return {
                "jsonrpc": "2.0",
                "id": msg_id,
                "result": {
                    "protocolVersion": PROTOCOL_VERSION,
                    "serverInfo": {
                        "name": SERVER_NAME,
                        "version": SERVER_VERSION
                    },
                    "capabilities": {
                        "tools": {},
                        "resources": {}
                    }
                }
            }

        elif method == "tools/list":
            return {
                "jsonrpc": "2.0",
                "id": msg_id,
                "result": {
                    "tools": self.tools
                }
            }

        elif method == "tools/call":
            tool_name = params.get("name")
            tool_args = params.get("arguments") or {}

            result = await self._execute_tool(tool_name, tool_args)

            response: dict[str, Any] = {
                "content": [
                    {
                        "type": "text",
                        "text": json.dumps(result.to_payload(), indent=2, default=str)
                    }
                ]
            }
            if result.is_error:
                response["isError"] = True

            return {"jsonrpc": "2.0", "id": msg_id, "result": response}

        elif method == "resources/list":
            return {
                "jsonrpc": "2.0",
                "id": msg_id,
                "result": {
                    "resources": mcp_resources.RESOURCES,
                    "resourceTemplates": mcp_resources.RESOURCE_TEMPLATES,
                }
            }

        elif method == "resources/read":
            uri = params.get("uri", "")
            data = mcp_resources.read_resource(self.store, uri)
            if data is None:
                return {
                    "jsonrpc": "2.0",
                    "id": msg_id,
                    "error": {
                        "code": -32002,
                        "message": f"Resource not found: {uri}"
                    }
                }
            return {
                "jsonrpc": "2.0",
                "id": msg_id,
                "result": {
                    "contents": [
                        {
                            "uri": uri,
                            "mimeType": "application/json",
                            "text": json.dumps(data, indent=2, default=str)
                        }
                    ]
                }
            }

        else:
            return {
                "jsonrpc": "2.0",
                "id": msg_id,
                "error": {
                    "code": -32601,
                    "message": f"Method not found: {method}"
                }
            }

    async def _execute_tool(self, name: str, args: Any) -> mcp_tools.ToolResult:
        """Execute an MCP tool."""
        if not isinstance(args, dict):
            return mcp_tools.ToolResult(error="Tool arguments must be an object", kind="invalid_input")

        store = self.store
        try:
            # Project tools
            if name == "create_project":
                return mcp_tools.create_project(
                    store,
                    name=args["name"],
                    description=args.get("description", ""),
                )

            elif name == "update_project":
                return mcp_tools.update_project(
                    store,
                    id=args["id"],
                    name=args.get("name"),
                    description=args.get("description"),
                )

            elif name == "delete_project":
                return mcp_tools.delete_project(store, id=args["id"])

            elif name == "get_project":
                return mcp_tools.get_project(store, id=args["id"])

            elif name == "find_projects":
                return mcp_tools.find_projects(store, search_term=args.get("searchTerm"))

            # Requirement tools
            elif name == "create_requirement":
                return mcp_tools.create_requirement(
                    store,
                    title=args["title"],
                    description=args["description"],
                    type=args["type"],
                    priority=args["priority"],
                    project_id=args["projectId"],
                    tags=args.get("tags"),
                )

            elif name == "update_requirement":
                fields = {
                    key: args[key] for key in mcp_tools.REQUIREMENT_UPDATE_FIELDS if key in args
                }
                return mcp_tools.update_requirement(store, id=args["id"], **fields)

            elif name == "delete_requirement":
                return mcp_tools.delete_requirement(store, id=args["id"])

            elif name == "get_requirement":
                return mcp_tools.get_requirement(store, id=args["id"])

            elif name == "list_project_requirements":
                return mcp_tools.list_project_requirements(store, project_id=args["projectId"])

            else:
                return mcp_tools.ToolResult(error=f"Unknown tool: {name}", kind="invalid_input")

        except KeyError as e:
            return mcp_tools.ToolResult(error=f"Missing argument: {e.args[0]}", kind="invalid_input")
        except (TypeError, AttributeError) as e:
            logger.warning(f"Bad arguments for tool {name}: {e}")
            return mcp_tools.ToolResult(error=f"Invalid arguments: {e}", kind="invalid_input")

    async def handle_connection(self, websocket):
        """Handle a WebSocket connection."""
        logger.info(f"New connection from {websocket.remote_address}")

        try:
            async for message in websocket:
                try:
                    data = json.loads(message)
                    response = await self.handle_message(data)
                    await websocket.send(json.dumps(response))
                except json.JSONDecodeError:
                    await websocket.send(json.dumps({
                        "jsonrpc": "2.0",
                        "id": None,
                        "error": {"code": -32700, "message": "Parse error"}
                    }))
        except ConnectionClosed:
            logger.info("Connection closed")

    async def start(self, host: str | None = None, port: int | None = None):
        """Start the MCP server."""
        host = host or settings.mcp_host
        port = port or settings.mcp_port

        logger.info(f"Starting MCP server on {host}:{port} ({self.store.storage_type} storage)")

        async with serve(self.handle_connection, host, port):
            await asyncio.Future()  # Run forever


def main():
    """Main entry point for MCP server."""
    setup_logging()

    store = create_storage()
    server = MCPServer(store)

    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        logger.info("Server stopped")
    finally:
        store.close()


if __name__ == "__main__":
    main()
