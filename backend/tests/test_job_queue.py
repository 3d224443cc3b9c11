"""
Testes da RedisJobQueue contra um Redis real.

Usam TEST_REDIS_URL (ou REDIS_URL); sem Redis acessível os testes são
ignorados. Cada teste usa uma fila com nome próprio e apaga suas chaves.
"""

import json
import os
import uuid
from datetime import datetime, timezone

import pytest
from redis.asyncio import Redis
from redis.exceptions import RedisError

from circulation.core.config import get_settings
from circulation.core.ids import BorrowerId, JobId
from circulation.models.enums import JobStatus, NotificationType
from circulation.schemas.notification import NotificationJob
from circulation.services.job_queue import RedisJobQueue

settings = get_settings()


@pytest.fixture
async def redis_queue():
    client = Redis.from_url(
        os.environ.get("TEST_REDIS_URL", settings.REDIS_URL),
        socket_connect_timeout=2,
    )
    try:
        await client.ping()
    except (RedisError, OSError) as exc:
        await client.aclose()
        pytest.skip(f"Redis indisponível: {exc}")

    queue = RedisJobQueue(client, name=f"test-notifications-{uuid.uuid4().hex}")
    yield queue

    async for key in client.scan_iter(match=f"{queue.name}*"):
        await client.delete(key)
    await client.aclose()


def make_job() -> NotificationJob:
    return NotificationJob(
        id=JobId.generate(),
        type=NotificationType.RESERVATION_AVAILABLE,
        borrower_id=BorrowerId("leitor-1"),
        subject_id="titulo-1",
        enqueued_at=datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc),
        max_attempts=4,
    )


class TestRedisJobQueue:
    """Testes para a fila de jobs no Redis."""

    @pytest.mark.anyio
    async def test_push_stores_exchange_payload(self, redis_queue):
        job = make_job()

        await redis_queue.push(job)

        raw = await redis_queue.redis.hget(redis_queue._job_key(job.id), "payload")
        assert json.loads(raw) == job.to_payload()

        popped = await redis_queue.pop(timeout=1)
        assert popped.id == job.id
        assert popped.title_id == "titulo-1"
        assert (popped.max_attempts, popped.attempts) == (4, 0)

    @pytest.mark.anyio
    async def test_set_status_keeps_ttl(self, redis_queue):
        job = make_job()
        await redis_queue.push(job)

        await redis_queue.set_status(job.id, JobStatus.PROCESSING, 1)

        status = await redis_queue.get_status(job.id)
        assert (status.status, status.attempts, status.max_attempts) == (JobStatus.PROCESSING, 1, 4)
        assert await redis_queue.redis.ttl(redis_queue._job_key(job.id)) > 0

    @pytest.mark.anyio
    async def test_set_status_does_not_recreate_expired_job(self, redis_queue):
        job = make_job()
        await redis_queue.push(job)
        await redis_queue.pop(timeout=1)
        await redis_queue.redis.delete(redis_queue._job_key(job.id))

        await redis_queue.set_status(job.id, JobStatus.COMPLETED, 1)

        assert await redis_queue.redis.exists(redis_queue._job_key(job.id)) == 0
        assert await redis_queue.get_status(job.id) is None

    @pytest.mark.anyio
    async def test_requeue_goes_to_front_with_attempts(self, redis_queue):
        first = make_job()
        second = make_job()
        await redis_queue.push(first)
        await redis_queue.push(second)
        popped = await redis_queue.pop(timeout=1)

        await redis_queue.requeue(popped, 2)

        status = await redis_queue.get_status(first.id)
        assert (status.status, status.attempts) == (JobStatus.PENDING, 2)
        again = await redis_queue.pop(timeout=1)
        assert again.id == first.id
        assert again.attempts == 2
