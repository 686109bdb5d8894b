MISSING_ID = "00000000-0000-4000-8000-000000000000"

TOOL_BODY = {
    "name": "web_search",
    "description": "Search the web",
    "category": "search",
    "parameters": [
        {"name": "query", "type": "string", "required": True, "description": "Search terms",
         "validation": {"minLength": 1, "maxLength": 200}},
    ],
}


def _create_tool(client, **overrides):
    resp = client.post("/api/mcp/tools", json={**TOOL_BODY, **overrides})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def _create_agent(client, tool_access=None):
    body = {
        "name": "Runner",
        "description": "",
        "configuration": {"model": "gpt-4", "temperature": 0.1, "maxTokens": 100},
    }
    if tool_access is not None:
        body["permissions"] = {
            "memoryAccess": "read", "toolAccess": tool_access, "rateLimitRpm": 60, "maxMemorySize": 100,
        }
    return client.post("/api/agents", json=body).json()["data"]


def _execute(client, tool_id, agent_id, parameters=None):
    return client.post("/api/mcp/execute", json={
        "toolId": tool_id, "agentId": agent_id, "parameters": parameters or {},
    })


def test_register_tool_defaults(client):
    tool = _create_tool(client)
    assert tool["isActive"] is True
    assert tool["permissions"] == []
    assert tool["usageStats"] == {"totalExecutions": 0, "successRate": 1, "averageExecutionTime": 0}
    assert tool["parameters"][0]["validation"]["maxLength"] == 200

    assert client.get(f"/api/mcp/tools/{tool['id']}").json()["data"]["name"] == "web_search"


def test_list_tools(client):
    search = _create_tool(client)
    _create_tool(client, name="calc", category="math")
    disabled = _create_tool(client, name="old", category="legacy", isActive=False)

    data = client.get("/api/mcp/tools").json()["data"]
    assert data["total"] == 2
    assert data["categories"] == ["legacy", "math", "search"]

    data = client.get("/api/mcp/tools", params={"isActive": "false"}).json()["data"]
    assert [t["id"] for t in data["tools"]] == [disabled["id"]]

    data = client.get("/api/mcp/tools", params={"category": "search"}).json()["data"]
    assert [t["id"] for t in data["tools"]] == [search["id"]]


def test_update_and_delete_tool(client):
    tool = _create_tool(client)
    resp = client.put(f"/api/mcp/tools/{tool['id']}", json={"isActive": False, "permissions": ["admin"], "name": "ignored"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["isActive"] is False
    assert data["permissions"] == ["admin"]
    assert data["name"] == "web_search"

    assert client.delete(f"/api/mcp/tools/{tool['id']}").json()["message"] == "MCP tool deleted successfully"
    assert client.get(f"/api/mcp/tools/{tool['id']}").status_code == 404
    assert client.get("/api/mcp/tools/xyz").json()["error"] == "Invalid tool ID format"


def test_execute_success(client):
    tool = _create_tool(client)
    agent = _create_agent(client)

    resp = _execute(client, tool["id"], agent["id"], {"query": "weather"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "success"
    assert data["result"]["message"] == "Tool web_search executed successfully"
    assert data["result"]["parameters"] == {"query": "weather"}
    assert data["executionId"]
    assert data["executionTime"] >= 0

    stats = client.get(f"/api/mcp/tools/{tool['id']}").json()["data"]["usageStats"]
    assert stats["totalExecutions"] == 1
    assert stats["successRate"] == 1

    logs = client.get(f"/api/agents/{agent['id']}/logs").json()["data"]["logs"]
    assert [(log["operation"], log["status"], log["resource"]) for log in logs] == [("execute", "success", "mcp_tool")]


def test_execute_unknown_tool_or_agent(client):
    tool = _create_tool(client)
    agent = _create_agent(client)

    resp = _execute(client, MISSING_ID, agent["id"])
    assert resp.status_code == 404
    payload = resp.json()
    assert payload["success"] is False
    assert payload["data"]["status"] == "error"
    assert payload["data"]["error"]["code"] == "NOT_FOUND"
    assert payload["error"] == f"MCP tool with id {MISSING_ID} not found"

    resp = _execute(client, tool["id"], MISSING_ID)
    assert resp.status_code == 404
    assert resp.json()["error"] == f"Agent with id {MISSING_ID} not found"

    assert _execute(client, "bad", agent["id"]).status_code == 400


def test_execute_inactive_tool_is_forbidden(client):
    tool = _create_tool(client, isActive=False)
    agent = _create_agent(client)

    resp = _execute(client, tool["id"], agent["id"])
    assert resp.status_code == 403
    assert resp.json()["data"]["error"]["message"] == "Tool is not active"


def test_execute_without_tool_access_is_denied_and_logged(client):
    tool = _create_tool(client)
    allowed = _create_tool(client, name="calc")
    agent = _create_agent(client, tool_access=[allowed["id"]])

    resp = _execute(client, tool["id"], agent["id"])
    assert resp.status_code == 403
    assert resp.json()["error"] == "Agent does not have permission to use this tool"

    stats = client.get(f"/api/mcp/tools/{tool['id']}").json()["data"]["usageStats"]
    assert stats["totalExecutions"] == 1
    assert stats["successRate"] == 0

    logs = client.get(f"/api/agents/{agent['id']}/logs").json()["data"]["logs"]
    assert [log["status"] for log in logs] == ["denied"]

    assert _execute(client, allowed["id"], agent["id"]).status_code == 200


def test_execute_validation(client):
    resp = client.post("/api/mcp/execute", json={"toolId": MISSING_ID, "agentId": MISSING_ID, "timeout": 301})
    assert resp.status_code == 400
    assert "timeout" in resp.json()["error"]
