"""
Tests for submission lock strategies.
"""

import asyncio
from datetime import date, timedelta

import pytest
import redis.asyncio as redis
from prometheus_client import REGISTRY

from labbook.services.interfaces import DatabaseSubmissionLock, LocalSubmissionLock
from labbook.services.lock_service import RedisSubmissionLock
from labbook.services.strategy_factory import get_submission_lock_strategy

DAY = date(2024, 6, 2)


class FakeRedis:
    """Just enough of redis.asyncio.Redis for SET NX and the release script."""

    def __init__(self):
        self.store = {}
        self.evals = []

    async def set(self, key, value, nx=False, px=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def eval(self, script, numkeys, key, token):
        self.evals.append((key, token))
        if self.store.get(key) == token:
            del self.store[key]
            return 1
        return 0


class BrokenRedis:
    async def set(self, *args, **kwargs):
        raise redis.ConnectionError("connection refused")

    async def eval(self, *args, **kwargs):
        raise redis.ConnectionError("connection refused")


@pytest.mark.asyncio
async def test_local_lock_serializes_same_key():
    """Only one holder at a time for the same resource and date."""
    lock = LocalSubmissionLock()
    inside = 0
    max_inside = 0

    async def writer():
        nonlocal inside, max_inside
        async with lock.hold(1, DAY):
            inside += 1
            max_inside = max(max_inside, inside)
            await asyncio.sleep(0.01)
            inside -= 1

    await asyncio.gather(*(writer() for _ in range(5)))
    assert max_inside == 1


@pytest.mark.asyncio
async def test_local_lock_independent_keys():
    lock = LocalSubmissionLock()
    async with lock.hold(1, DAY):
        # Would block forever if keys were shared
        await asyncio.wait_for(lock.acquire(2, DAY), timeout=1)


@pytest.mark.asyncio
async def test_local_lock_released_on_error():
    lock = LocalSubmissionLock()
    with pytest.raises(RuntimeError):
        async with lock.hold(1, DAY):
            raise RuntimeError("admission failed")

    token = await asyncio.wait_for(lock.acquire(1, DAY), timeout=1)
    await lock.release(1, DAY, token)


@pytest.mark.asyncio
async def test_local_lock_drops_idle_keys():
    """One-off dates do not accumulate locks for the life of the process."""
    lock = LocalSubmissionLock()
    for offset in range(200):
        async with lock.hold(1, DAY + timedelta(days=offset)):
            assert lock.active_keys() == 1
    assert lock.active_keys() == 0


@pytest.mark.asyncio
async def test_local_lock_keeps_key_while_contended():
    lock = LocalSubmissionLock()
    held = asyncio.Event()
    proceed = asyncio.Event()

    async def first():
        async with lock.hold(1, DAY):
            held.set()
            await proceed.wait()

    async def second():
        await held.wait()
        async with lock.hold(1, DAY):
            pass

    tasks = [asyncio.create_task(first()), asyncio.create_task(second())]
    await held.wait()
    await asyncio.sleep(0)
    assert lock.active_keys() == 1
    proceed.set()
    await asyncio.gather(*tasks)
    assert lock.active_keys() == 0


@pytest.mark.asyncio
async def test_local_lock_cancelled_waiter_is_forgotten():
    lock = LocalSubmissionLock()
    token = await lock.acquire(1, DAY)
    waiter = asyncio.create_task(lock.acquire(1, DAY))
    await asyncio.sleep(0)
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter
    await lock.release(1, DAY, token)
    assert lock.active_keys() == 0

@pytest.mark.asyncio
async def test_database_lock_is_noop():
    lock = DatabaseSubmissionLock()
    async with lock.hold(1, DAY):
        async with lock.hold(1, DAY):
            pass


def test_lock_key_format():
    assert LocalSubmissionLock.key(7, DAY) == "submit:7:2024-06-02"


@pytest.mark.parametrize(
    "name,cls",
    [
        ("database", DatabaseSubmissionLock),
        ("local", LocalSubmissionLock),
        ("redis", RedisSubmissionLock),
    ],
)
def test_strategy_factory(name, cls):
    assert isinstance(get_submission_lock_strategy(name), cls)


def test_strategy_factory_unknown_name():
    with pytest.raises(ValueError):
        get_submission_lock_strategy("zookeeper")


@pytest.mark.asyncio
async def test_redis_lock_acquire_and_release():
    client = FakeRedis()
    lock = RedisSubmissionLock(client=client, ttl_ms=1000)

    async with lock.hold(3, DAY):
        assert "submit:3:2024-06-02" in client.store

    assert client.store == {}
    assert client.evals[0][0] == "submit:3:2024-06-02"


@pytest.mark.asyncio
async def test_redis_lock_waits_for_holder():
    client = FakeRedis()
    lock = RedisSubmissionLock(client=client, ttl_ms=1000, wait_timeout=1)
    order = []

    async def writer(name):
        async with lock.hold(3, DAY):
            order.append(f"{name}-in")
            await asyncio.sleep(0.05)
            order.append(f"{name}-out")

    await asyncio.gather(writer("a"), writer("b"))
    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


@pytest.mark.asyncio
async def test_redis_lock_gives_up_after_timeout():
    """A stuck holder does not block submissions past the wait timeout."""
    client = FakeRedis()
    client.store["submit:3:2024-06-02"] = "someone-else"
    lock = RedisSubmissionLock(client=client, ttl_ms=1000, wait_timeout=0.05)

    token = await lock.acquire(3, DAY)
    assert token is None
    await lock.release(3, DAY, token)
    assert client.store["submit:3:2024-06-02"] == "someone-else"


@pytest.mark.asyncio
async def test_redis_lock_release_keeps_foreign_token():
    client = FakeRedis()
    lock = RedisSubmissionLock(client=client, ttl_ms=1000)

    token = await lock.acquire(3, DAY)
    # TTL expired and another worker took over
    client.store["submit:3:2024-06-02"] = "other-token"
    await lock.release(3, DAY, token)
    assert client.store["submit:3:2024-06-02"] == "other-token"


@pytest.mark.asyncio
async def test_redis_lock_fails_open():
    lock = RedisSubmissionLock(client=BrokenRedis(), ttl_ms=1000)

    async with lock.hold(3, DAY):
        pass

    assert REGISTRY.get_sample_value("submission_lock_fail_open") == 1


@pytest.mark.asyncio
async def test_redis_lock_without_redis(monkeypatch):
    """With Redis disabled the lock proceeds without a token."""

    async def no_redis():
        return None

    monkeypatch.setattr("labbook.services.lock_service.get_redis", no_redis)
    lock = RedisSubmissionLock(ttl_ms=1000)

    assert await lock.acquire(3, DAY) is None
