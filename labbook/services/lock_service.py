"""
Redis submission lock for multi-worker deployments.
Implements SubmissionLock using SET NX PX with a random token.

Fail-open:
  On Redis failure the lock admits the writer anyway. The booking
  transaction still locks the resource row, re-validates the slot after
  insert and hits the exclusion constraint, so a Redis outage degrades
  throughput protection, never correctness.
"""

import asyncio
import uuid
from datetime import date

import redis.asyncio as redis

from labbook.core.config import get_settings
from labbook.core.logging import get_logger
from labbook.core.metrics import redis_connection_errors, submission_lock_fail_open
from labbook.infrastructure.redis_client import get_redis
from labbook.services.interfaces.submission_lock import SubmissionLock

logger = get_logger(__name__)

# Delete the key only if we still own it
RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""

POLL_INTERVAL_SECONDS = 0.02


class RedisSubmissionLock(SubmissionLock):
    """
    Distributed single-writer lock per (resource, date).

    Use when:
    - Several API workers share one database
    - Popular machines see bursts of submissions for the same day
    """

    def __init__(self, client=None, ttl_ms: int = None, wait_timeout: float = None):
        settings = get_settings()
        self._client = client
        self.ttl_ms = ttl_ms or settings.SUBMISSION_LOCK_TTL_MS
        self.wait_timeout = wait_timeout if wait_timeout is not None else self.ttl_ms / 1000

    async def _redis(self):
        if self._client is None:
            self._client = await get_redis()
        return self._client

    async def acquire(self, resource_id: int, booking_date: date) -> object:
        key = self.key(resource_id, booking_date)
        token = uuid.uuid4().hex
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_timeout

        try:
            client = await self._redis()
            if client is None:
                return None
            while True:
                if await client.set(key, token, nx=True, px=self.ttl_ms):
                    submission_lock_fail_open.set(0)
                    return token
                if loop.time() >= deadline:
                    # Holder is stuck or slow; its TTL will expire. Proceed unlocked.
                    logger.warning("submission_lock_timeout", key=key)
                    return None
                await asyncio.sleep(POLL_INTERVAL_SECONDS)
        except redis.RedisError as e:
            redis_connection_errors.inc()
            submission_lock_fail_open.set(1)
            logger.error("submission_lock_fail_open", key=key, error=str(e))
            return None

    async def release(self, resource_id: int, booking_date: date, token: object) -> None:
        if token is None:
            return
        key = self.key(resource_id, booking_date)
        try:
            client = await self._redis()
            if client is not None:
                await client.eval(RELEASE_SCRIPT, 1, key, token)
        except redis.RedisError as e:
            redis_connection_errors.inc()
            logger.error("submission_lock_release_failed", key=key, error=str(e))
