import pytest

from agentdash.db.models import ToolParameter


@pytest.mark.asyncio
async def test_record_execution_running_stats(storage, clock):
    tool = await storage.tools.create(
        name="web_search",
        description="Search the web",
        category="search",
        parameters=[ToolParameter(name="q", type="string", required=True, description="query")],
    )
    assert tool.usage_stats.total_executions == 0
    assert tool.usage_stats.success_rate == 1
    assert tool.last_used is None

    await storage.tools.record_execution(tool.id, 100, success=True)
    updated = await storage.tools.record_execution(tool.id, 300, success=False)

    assert updated.usage_stats.total_executions == 2
    assert updated.usage_stats.average_execution_time == 200
    assert updated.usage_stats.success_rate == 0.5
    assert updated.last_used == clock.current

    stored = await storage.tools.get_by_id(tool.id)
    assert stored.usage_stats == updated.usage_stats
    assert stored.parameters[0].name == "q"


@pytest.mark.asyncio
async def test_record_execution_unknown_tool(storage):
    assert await storage.tools.record_execution("55555555-5555-4555-8555-555555555555", 10, success=True) is None


@pytest.mark.asyncio
async def test_update_tool_flags(storage):
    tool = await storage.tools.create(name="calc", description="math", category="util")
    updated = await storage.tools.update(tool.id, {"is_active": False, "permissions": ["admin"]})
    assert updated.is_active is False
    assert updated.permissions == ["admin"]
    assert updated.name == "calc"


@pytest.mark.asyncio
async def test_timestamp_shaped_default_value_stays_text(storage):
    since = ToolParameter(name="since", type="string", required=False, description="lower bound", default_value="2025-06-01T12:00:00Z")
    window = ToolParameter(name="window", type="object", required=False, description="range", default_value={"from": "2025-06-01T12:00:00+02:00"})
    tool = await storage.tools.create(name="history", description="past events", category="data", parameters=[since, window])

    stored = await storage.tools.get_by_id(tool.id)
    assert [p.default_value for p in stored.parameters] == ["2025-06-01T12:00:00Z", {"from": "2025-06-01T12:00:00+02:00"}]
