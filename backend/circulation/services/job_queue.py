"""
Filas de jobs de notificação.

RedisJobQueue:
    - Lista "<nome>" com os IDs pendentes (LPUSH / BRPOP)
    - Hash "<nome>:job:<id>" com payload (formato de troca), status e
      tentativas, expirando após ttl_seconds
    Compartilhada entre processos (API e worker).

InMemoryJobQueue:
    asyncio.Queue + dict de status, para testes e desenvolvimento.

requeue() devolve à fila um job interrompido no meio (parada dos
workers), preservando as tentativas já feitas.
"""

import asyncio
import json
from typing import Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from circulation.core.errors import QueueUnavailable
from circulation.core.ids import JobId
from circulation.core.logging import get_logger
from circulation.models.enums import JobStatus
from circulation.schemas.notification import JobStatusInfo, NotificationJob

logger = get_logger(__name__)


class JobQueue(Protocol):
    async def push(self, job: NotificationJob) -> None: ...

    async def pop(self, timeout: float = 1.0) -> NotificationJob | None: ...

    async def requeue(self, job: NotificationJob, attempts: int) -> None: ...

    async def get_status(self, job_id: JobId) -> JobStatusInfo | None: ...

    async def set_status(
        self,
        job_id: JobId,
        status: JobStatus,
        attempts: int | None = None,
    ) -> None: ...


def _decode(value):
    return value.decode() if isinstance(value, bytes) else value


class RedisJobQueue:
    """Fila de jobs sobre listas e hashes do Redis."""

    def __init__(self, redis: Redis, name: str = "notifications", ttl_seconds: int = 7 * 24 * 3600):
        self.redis = redis
        self.name = name
        self.ttl_seconds = ttl_seconds

    def _job_key(self, job_id: str) -> str:
        return f"{self.name}:job:{job_id}"

    async def push(self, job: NotificationJob) -> None:
        """Grava o job e coloca seu ID no fim da fila."""
        key = self._job_key(job.id)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping={
                    "payload": json.dumps(job.to_payload()),
                    "status": JobStatus.PENDING.value,
                    "attempts": job.attempts,
                    "max_attempts": job.max_attempts,
                })
                pipe.expire(key, self.ttl_seconds)
                pipe.lpush(self.name, str(job.id))
                await pipe.execute()
        except RedisError as exc:
            raise QueueUnavailable(str(exc)) from exc

    async def pop(self, timeout: float = 1.0) -> NotificationJob | None:
        """Retira o próximo job (bloqueia até timeout segundos)."""
        try:
            item = await self.redis.brpop([self.name], timeout=timeout)
            if item is None:
                return None
            job_id = _decode(item[1])
            data = await self.redis.hgetall(self._job_key(job_id))
        except RedisError as exc:
            raise QueueUnavailable(str(exc)) from exc

        data = {_decode(k): _decode(v) for k, v in data.items()}
        if "payload" not in data:
            logger.warning(f"Job {job_id} retirado da fila sem payload (expirado?)")
            return None

        try:
            return NotificationJob.from_payload(
                job_id,
                json.loads(data["payload"]),
                max_attempts=int(data["max_attempts"]),
                attempts=int(data.get("attempts", 0)),
            )
        except (KeyError, ValueError) as exc:
            raise QueueUnavailable(f"Payload inválido para job {job_id}: {exc}") from exc

    async def requeue(self, job: NotificationJob, attempts: int) -> None:
        """Volta o job para PENDING e o coloca na frente da fila."""
        key = self._job_key(job.id)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping={
                    "payload": json.dumps(job.to_payload()),
                    "status": JobStatus.PENDING.value,
                    "attempts": attempts,
                    "max_attempts": job.max_attempts,
                })
                pipe.expire(key, self.ttl_seconds)
                pipe.rpush(self.name, str(job.id))
                await pipe.execute()
        except RedisError as exc:
            raise QueueUnavailable(str(exc)) from exc

    async def get_status(self, job_id: JobId) -> JobStatusInfo | None:
        try:
            data = await self.redis.hgetall(self._job_key(job_id))
        except RedisError as exc:
            raise QueueUnavailable(str(exc)) from exc

        if not data:
            return None

        data = {_decode(k): _decode(v) for k, v in data.items()}
        return JobStatusInfo(
            id=job_id,
            status=JobStatus(data["status"]),
            attempts=int(data.get("attempts", 0)),
            max_attempts=int(data.get("max_attempts", 0)),
        )

    async def set_status(
        self,
        job_id: JobId,
        status: JobStatus,
        attempts: int | None = None,
    ) -> None:
        """
        Atualiza status/tentativas de um job existente.

        Hash já expirado não é recriado: o HSET só roda se a chave existe.
        """
        key = self._job_key(job_id)
        mapping: dict[str, str | int] = {"status": status.value}
        if attempts is not None:
            mapping["attempts"] = attempts
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(key)
                        if not await pipe.exists(key):
                            logger.warning(f"Status do job {job_id} não atualizado: registro expirado")
                            return
                        pipe.multi()
                        pipe.hset(key, mapping=mapping)
                        await pipe.execute()
                        return
                    except WatchError:
                        continue
        except RedisError as exc:
            raise QueueUnavailable(str(exc)) from exc


class InMemoryJobQueue:
    """Fila de jobs em processo."""

    def __init__(self):
        self._queue: asyncio.Queue[NotificationJob] = asyncio.Queue()
        self._status: dict[str, JobStatusInfo] = {}
        self.unavailable = False
        self.enqueued: list[NotificationJob] = []

    async def push(self, job: NotificationJob) -> None:
        if self.unavailable:
            raise QueueUnavailable("fila em memória marcada como indisponível")
        self._status[str(job.id)] = JobStatusInfo(
            id=job.id,
            status=JobStatus.PENDING,
            attempts=job.attempts,
            max_attempts=job.max_attempts,
        )
        self._queue.put_nowait(job)
        self.enqueued.append(job)

    async def pop(self, timeout: float = 1.0) -> NotificationJob | None:
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def requeue(self, job: NotificationJob, attempts: int) -> None:
        if self.unavailable:
            raise QueueUnavailable("fila em memória marcada como indisponível")
        self._status[str(job.id)] = JobStatusInfo(
            id=job.id,
            status=JobStatus.PENDING,
            attempts=attempts,
            max_attempts=job.max_attempts,
        )
        self._queue.put_nowait(job.model_copy(update={"attempts": attempts}))

    async def get_status(self, job_id: JobId) -> JobStatusInfo | None:
        if self.unavailable:
            raise QueueUnavailable("fila em memória marcada como indisponível")
        return self._status.get(str(job_id))

    async def set_status(
        self,
        job_id: JobId,
        status: JobStatus,
        attempts: int | None = None,
    ) -> None:
        current = self._status.get(str(job_id))
        if current is None:
            logger.warning(f"Status de job desconhecido ignorado: {job_id}")
            return
        update: dict = {"status": status}
        if attempts is not None:
            update["attempts"] = attempts
        self._status[str(job_id)] = current.model_copy(update=update)
