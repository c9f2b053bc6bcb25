import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.config import settings
from app.services.attendance_service import AttendanceService, attendance_service
from app.services.status_cache import status_cache


class FakeRedis:
    """In-memory stand-in for the redis.asyncio client methods the cache uses."""

    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value

    async def incr(self, key):
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    def bump(self, key):
        self.store[key] = str(int(self.store.get(key, 0)) + 1)


class BrokenRedis:
    async def get(self, key):
        raise RedisConnectionError("Connection refused")

    async def set(self, key, value, ex=None):
        raise RedisConnectionError("Connection refused")

    async def incr(self, key):
        raise RedisConnectionError("Connection refused")


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(settings, "STATUS_CACHE_ENABLED", True)
    monkeypatch.setattr(status_cache, "client", fake)
    return fake


PREFIX = "attendance:status:org-1:member-1"
GENERATION_KEY = f"{PREFIX}:generation"


def test_status_is_cached_and_invalidated(client, clock, member, fake_redis):
    assert client.get("/api/attendance/status", params=member).json() == {"active": None}
    assert f"{PREFIX}:0" in fake_redis.store

    client.post("/api/attendance/clock-in", json=member)
    assert fake_redis.store[GENERATION_KEY] == "1"

    clock.set(10)
    active = client.get("/api/attendance/status", params=member).json()["active"]
    assert active["elapsed_seconds"] == 3600
    assert f"{PREFIX}:1" in fake_redis.store


def test_cached_status_recomputes_elapsed(client, clock, member, fake_redis):
    client.post("/api/attendance/clock-in", json=member)
    client.get("/api/attendance/status", params=member)

    clock.set(11, 30)
    active = client.get("/api/attendance/status", params=member).json()["active"]
    assert active["elapsed_seconds"] == 9000
    assert active["elapsed_formatted"] == "02:30:00"


def test_break_invalidates_cached_status(client, clock, member, fake_redis):
    client.post("/api/attendance/clock-in", json=member)
    client.get("/api/attendance/status", params=member)

    clock.set(12)
    client.post("/api/attendance/break/start", json=member)

    active = client.get("/api/attendance/status", params=member).json()["active"]
    assert active["on_break"] is True
    assert active["break_used_today"] is True


def test_clock_out_between_read_and_cache_write_is_not_served(
    client, clock, member, fake_redis, session_factory, monkeypatch
):
    client.post("/api/attendance/clock-in", json=member)
    clock.set(17)

    original = attendance_service.break_used_today

    def clock_out_mid_request(db, member_id, org_id, day):
        # Runs after /status has read the open session, before it is cached
        other = session_factory()
        try:
            AttendanceService().clock_out(other, member_id, org_id, now=clock())
        finally:
            other.close()
        fake_redis.bump(GENERATION_KEY)
        return original(db, member_id, org_id, day)

    monkeypatch.setattr(attendance_service, "break_used_today", clock_out_mid_request)
    in_flight = client.get("/api/attendance/status", params=member).json()
    assert in_flight["active"] is not None
    monkeypatch.setattr(attendance_service, "break_used_today", original)

    assert client.get("/api/attendance/status", params=member).json() == {"active": None}


def test_write_under_retired_generation_is_ignored(fake_redis):
    async def interleave():
        generation, cached = await status_cache.get("org-1", "member-1")
        assert cached is None
        await status_cache.invalidate("org-1", "member-1")
        await status_cache.set("org-1", "member-1", generation, {"active": None})
        return await status_cache.get("org-1", "member-1")

    generation, cached = asyncio.run(interleave())
    assert generation == 1
    assert cached is None


def test_unreachable_redis_falls_back_to_database(client, clock, member, monkeypatch):
    monkeypatch.setattr(settings, "STATUS_CACHE_ENABLED", True)
    monkeypatch.setattr(status_cache, "client", BrokenRedis())

    response = client.post("/api/attendance/clock-in", json=member)
    assert response.status_code == 201

    active = client.get("/api/attendance/status", params=member).json()["active"]
    assert active["time_in"] == "2024-03-04T09:00:00"


def test_cache_disabled_does_not_touch_redis(client, clock, member, monkeypatch):
    monkeypatch.setattr(status_cache, "client", BrokenRedis())

    response = client.get("/api/attendance/status", params=member)
    assert response.status_code == 200
