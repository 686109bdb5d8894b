from datetime import datetime, timedelta, timezone

import pytest

from agentdash.db.models import LogDetails

AGENT = "66666666-6666-4666-8666-666666666666"
OTHER = "77777777-7777-4777-8777-777777777777"


@pytest.mark.asyncio
async def test_logs_rotate_per_utc_day(storage, storage_config, clock):
    clock.current = datetime(2025, 3, 14, 23, 59, 58, tzinfo=timezone.utc)
    yesterday = await storage.access_logs.create(AGENT, "read", "memory_entry", "m1", response_time=3)
    clock.current = datetime(2025, 3, 15, 8, 0, tzinfo=timezone.utc)
    await storage.access_logs.create(AGENT, "execute", "mcp_tool", "t1", status="denied",
                                     details=LogDetails(error_message="nope"))
    await storage.access_logs.create(OTHER, "write", "agent", "a1")

    if storage_config.backend == "json":
        logs_dir = storage_config.data_dir / "logs"
        assert sorted(p.name for p in logs_dir.iterdir()) == [
            "access-2025-03-14.json",
            "access-2025-03-15.json",
        ]

    today = await storage.access_logs.get_by_agent(AGENT)
    assert [log.operation for log in today] == ["execute"]
    assert today[0].details.error_message == "nope"

    since = await storage.access_logs.get_by_agent(AGENT, since=yesterday.timestamp - timedelta(seconds=1))
    assert [log.operation for log in since] == ["execute", "read"]


@pytest.mark.asyncio
async def test_logs_since_filters_by_time_and_limit(storage, clock):
    first = await storage.access_logs.create(AGENT, "read", "memory_entry", "m1")
    for i in range(3):
        await storage.access_logs.create(AGENT, "search", "memory", f"q{i}")

    after_first = await storage.access_logs.get_by_agent(AGENT, since=first.timestamp + timedelta(milliseconds=1))
    assert [log.resource_id for log in after_first] == ["q2", "q1", "q0"]

    assert len(await storage.access_logs.get_by_agent(AGENT, limit=2)) == 2
    assert await storage.access_logs.get_by_agent(OTHER) == []
