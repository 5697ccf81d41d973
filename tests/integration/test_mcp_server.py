"""Integration tests for the MCP server and its tools and resources."""

import json

import pytest

from reqgather.core.errors import PersistenceError
from reqgather.interface.mcp_server import MCPServer
from reqgather.mcp import tools
from reqgather.mcp.resources import read_resource, summarize_requirements


@pytest.fixture
def server(store) -> MCPServer:
    return MCPServer(store)


async def call_tool(server: MCPServer, name: str, /, **arguments) -> tuple[dict, object]:
    """Invoke a tool and return (raw result, decoded payload)."""
    response = await server.handle_message({
        "jsonrpc": "2.0",
        "id": 1,
        "method": "tools/call",
        "params": {"name": name, "arguments": arguments},
    })
    result = response["result"]
    return result, json.loads(result["content"][0]["text"])


class TestProtocol:
    """Tests for JSON-RPC method handling."""

    @pytest.mark.asyncio
    async def test_initialize(self, server):
        response = await server.handle_message({"jsonrpc": "2.0", "id": 1, "method": "initialize"})

        assert response["id"] == 1
        assert response["result"]["serverInfo"]["name"] == "requirements-gatherer"

    @pytest.mark.asyncio
    async def test_tools_list(self, server):
        response = await server.handle_message({"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
        names = {tool["name"] for tool in response["result"]["tools"]}

        assert names == {
            "create_project", "update_project", "delete_project", "get_project",
            "find_projects", "create_requirement", "update_requirement",
            "delete_requirement", "get_requirement", "list_project_requirements",
        }

    @pytest.mark.asyncio
    async def test_unknown_method(self, server):
        response = await server.handle_message({"jsonrpc": "2.0", "id": 3, "method": "nope"})

        assert response["error"]["code"] == -32601


class TestTools:
    """Tests for tool calls over the protocol."""

    @pytest.mark.asyncio
    async def test_project_and_requirement_flow(self, server):
        """Create a project and requirement, then list them."""
        _, project = await call_tool(server, "create_project", name="Mobile App")
        _, req = await call_tool(
            server, "create_requirement",
            title="Login", description="Email sign-in", type="functional",
            priority="high", projectId=project["id"], tags=["auth"],
        )
        _, listing = await call_tool(server, "list_project_requirements", projectId=project["id"])

        assert req["status"] == "draft"
        assert listing["count"] == 1
        assert listing["requirements"][0]["tags"] == ["auth"]

    @pytest.mark.asyncio
    async def test_update_requirement_tags(self, server):
        _, project = await call_tool(server, "create_project", name="Mobile App")
        _, req = await call_tool(
            server, "create_requirement",
            title="Login", description="Email sign-in", type="functional",
            priority="high", projectId=project["id"], tags=["auth", "mvp"],
        )

        _, updated = await call_tool(server, "update_requirement", id=req["id"], tags=["auth", "security"])

        assert set(updated["tags"]) == {"auth", "security"}

    @pytest.mark.asyncio
    async def test_find_projects(self, server):
        await call_tool(server, "create_project", name="Mobile App")
        await call_tool(server, "create_project", name="Billing")

        _, found = await call_tool(server, "find_projects", searchTerm="MOBILE")
        _, everything = await call_tool(server, "find_projects")

        assert found["count"] == 1
        assert everything["count"] == 2

    @pytest.mark.asyncio
    async def test_not_found_kind(self, server):
        result, payload = await call_tool(server, "get_project", id="missing")

        assert result["isError"] is True
        assert payload["kind"] == "not_found"

    @pytest.mark.asyncio
    async def test_invalid_input_kind(self, server):
        result, payload = await call_tool(
            server, "create_requirement",
            title="Login", description="Email sign-in", type="functional",
            priority="high", projectId="missing",
        )

        assert result["isError"] is True
        assert payload["kind"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_missing_argument(self, server):
        result, payload = await call_tool(server, "create_project")

        assert result["isError"] is True
        assert payload["kind"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, server):
        _, payload = await call_tool(server, "drop_everything")

        assert payload["kind"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_non_object_arguments(self, server):
        """A list instead of an arguments object is rejected, not raised."""
        response = await server.handle_message({
            "jsonrpc": "2.0",
            "id": 4,
            "method": "tools/call",
            "params": {"name": "update_requirement", "arguments": ["x"]},
        })
        result = response["result"]

        assert result["isError"] is True
        assert json.loads(result["content"][0]["text"])["kind"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_reserved_argument_names_ignored(self, server, store, make_requirement):
        """An argument named like a tool parameter does not break the call."""
        project = store.create_project({"name": "Alpha"})
        req = make_requirement(store, project.id)

        result, payload = await call_tool(
            server, "update_requirement", id=req.id, store="other", title="Renamed",
        )

        assert "isError" not in result
        assert payload["title"] == "Renamed"

    @pytest.mark.asyncio
    async def test_reserved_argument_on_missing_requirement(self, server):
        result, payload = await call_tool(server, "update_requirement", id="missing", store="other")

        assert result["isError"] is True
        assert payload["kind"] == "not_found"

    @pytest.mark.asyncio
    async def test_non_object_message(self, server):
        """A JSON array at the top level gets an error reply."""
        response = await server.handle_message(["not", "a", "request"])

        assert response["error"]["code"] == -32600

    @pytest.mark.asyncio
    async def test_non_object_params(self, server):
        response = await server.handle_message({"jsonrpc": "2.0", "id": 5, "method": "tools/list", "params": "x"})

        assert len(response["result"]["tools"]) == 10

    @pytest.mark.asyncio
    async def test_cascade_via_delete_project(self, server, store):
        _, project = await call_tool(server, "create_project", name="Doomed")
        await call_tool(
            server, "create_requirement",
            title="Login", description="Email sign-in", type="functional",
            priority="high", projectId=project["id"],
        )

        _, deleted = await call_tool(server, "delete_project", id=project["id"])

        assert deleted == {"deleted": True, "id": project["id"]}
        assert store.list_requirements() == []


class TestToolFunctions:
    """Direct tests of the tool functions."""

    def test_storage_failure_kind(self, store, monkeypatch):
        def _fail(*args, **kwargs):
            raise PersistenceError("disk full")

        monkeypatch.setattr(store, "create_project", _fail)

        result = tools.create_project(store, name="Alpha")

        assert result.is_error
        assert result.kind == "storage_failure"

    def test_update_requirement_ignores_unknown_fields(self, store, make_requirement):
        project = store.create_project({"name": "Alpha"})
        req = make_requirement(store, project.id)

        result = tools.update_requirement(store, id=req.id, projectId="elsewhere", title="Renamed")

        assert result.data["title"] == "Renamed"
        assert result.data["projectId"] == project.id


class TestResources:
    """Tests for resource reads."""

    @pytest.fixture
    def seeded(self, store, make_requirement):
        project = store.create_project({"name": "Alpha"})
        make_requirement(store, project.id, title="One", type="functional", tags=["api", "ux"])
        make_requirement(store, project.id, title="Two", type="technical", priority="low", tags=["api"])
        return project

    def test_summary(self, store, seeded):
        summary = read_resource(store, "requirements://summary")

        assert summary["totalRequirements"] == 2
        assert summary["byType"] == {"functional": 1, "technical": 1}
        assert summary["byStatus"] == {"draft": 2}
        assert summary["topTags"]["api"] == 2

    def test_filters(self, store, seeded):
        assert len(read_resource(store, "requirements://type/technical")) == 1
        assert len(read_resource(store, "requirements://priority/low")) == 1
        assert len(read_resource(store, "requirements://tag/ux")) == 1
        assert len(read_resource(store, f"requirements://project/{seeded.id}")) == 2

    def test_projects(self, store, seeded):
        assert read_resource(store, "projects://list")[0]["id"] == seeded.id
        assert read_resource(store, f"projects://{seeded.id}")["name"] == "Alpha"

    def test_unknown_uri(self, store):
        assert read_resource(store, "requirements://missing-id") is None
        assert read_resource(store, "files://list") is None
        assert read_resource(store, "not-a-uri") is None

    def test_top_tags_limited(self):
        from reqgather.core.types import Requirement

        reqs = [
            Requirement(title="T", description="D", type="functional", priority="low", tags=[f"t{i}"])
            for i in range(15)
        ]

        assert len(summarize_requirements(reqs)["topTags"]) == 10

    @pytest.mark.asyncio
    async def test_read_missing_resource_over_protocol(self, server):
        response = await server.handle_message({
            "jsonrpc": "2.0",
            "id": 9,
            "method": "resources/read",
            "params": {"uri": "requirements://missing-id"},
        })

        assert response["error"]["code"] == -32002
