import pytest

from agentdash.db.models import AgentConfig, AgentPermissions


def _config(**overrides):
    return AgentConfig(**{"model": "gpt-4", "temperature": 0.7, "max_tokens": 1000, **overrides})


@pytest.mark.asyncio
async def test_create_applies_defaults(storage, clock):
    agent = await storage.agents.create(name="Scout", configuration=_config(), description="recon")

    assert agent.status == "offline"
    assert agent.permissions == AgentPermissions(memory_access="read", tool_access=[], rate_limit_rpm=60, max_memory_size=100)
    assert agent.metrics.total_requests == 0
    assert agent.metrics.uptime == 100
    assert agent.last_seen == clock.current

    fetched = await storage.agents.get_by_id(agent.id)
    assert fetched == agent


@pytest.mark.asyncio
async def test_update_merges_and_keeps_identity(storage, clock):
    agent = await storage.agents.create(name="Scout", configuration=_config())

    updated = await storage.agents.update(agent.id, {
        "id": "something-else",
        "status": "online",
        "configuration": _config(temperature=0.2),
    })
    assert updated.id == agent.id
    assert updated.status == "online"
    assert updated.configuration.temperature == 0.2
    assert updated.name == "Scout"

    assert await storage.agents.update("00000000-0000-4000-8000-000000000000", {"status": "online"}) is None


@pytest.mark.asyncio
async def test_reads_have_no_side_effects_touch_does(storage, clock):
    agent = await storage.agents.create(name="Scout", configuration=_config())
    seen = agent.last_seen

    await storage.agents.get_by_id(agent.id)
    assert (await storage.agents.get_by_id(agent.id)).last_seen == seen

    touched = await storage.agents.touch(agent.id)
    assert touched.last_seen > seen
    assert await storage.agents.touch("00000000-0000-4000-8000-000000000000") is None


@pytest.mark.asyncio
async def test_delete(storage):
    agent = await storage.agents.create(name="Scout", configuration=_config())
    assert await storage.agents.delete(agent.id) is True
    assert await storage.agents.delete(agent.id) is False
    assert await storage.agents.get_all() == []
