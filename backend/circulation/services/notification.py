"""
Service de notificações: enfileiramento e entrega com retentativas.

Fluxo de um job:
    1. enqueue() grava o job na fila (não entrega nada)
    2. Um worker retira o job e resolve leitor/título/empréstimo
    3. A mensagem é renderizada e entregue pelo transporte
    4. Falha de transporte -> nova tentativa após o intervalo configurado,
       até max_attempts; depois disso o job fica FAILED
    5. Cada tentativa gera exatamente um registro no histórico

Contexto ausente (leitor, título ou empréstimo apagados) é falha
permanente: o job termina FAILED na primeira tentativa.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from circulation.core.clock import utcnow
from circulation.core.config import Settings, get_settings
from circulation.core.errors import (
    DomainError,
    ErrorKind,
    PersistenceUnavailable,
    QueueUnavailable,
    guard_persistence,
    infrastructure_error,
)
from circulation.core.ids import BorrowerId, JobId, LoanId, TitleId
from circulation.core.logging import get_logger
from circulation.core.result import Err, Ok, Result
from circulation.models.base import new_uuid
from circulation.models.enums import JobStatus, NotificationType
from circulation.repositories.interfaces import NotificationHistoryRepository, UnitOfWorkFactory
from circulation.schemas.book import BorrowerRead, TitleRead
from circulation.schemas.loan import LoanRead
from circulation.schemas.notification import (
    JobStatusInfo,
    NotificationHistoryRecord,
    NotificationJob,
    OutboundMessage,
)
from circulation.services.job_queue import JobQueue
from circulation.services.transport import Transport

logger = get_logger(__name__)


# ==========================================
# Contexto e renderização
# ==========================================

@dataclass(frozen=True)
class NotificationContext:
    """Dados necessários para renderizar uma mensagem."""
    borrower: BorrowerRead
    title: TitleRead
    loan: LoanRead | None = None


class NotificationContextResolver:
    """Busca leitor, título e empréstimo referenciados por um job."""

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self.uow_factory = uow_factory

    async def resolve(self, job: NotificationJob) -> Result[NotificationContext, DomainError]:
        """
        Resolve o contexto do job.

        Returns:
            Ok(NotificationContext) ou Err(SEND_ERROR) com o motivo

        Raises:
            PersistenceUnavailable: banco fora do ar (falha transitória)
        """
        async with self.uow_factory() as uow:
            borrower = await uow.borrowers.get(job.borrower_id)
            if borrower is None:
                return Err(_missing(job, f"Leitor não encontrado: {job.borrower_id}"))

            if job.type == NotificationType.RESERVATION_AVAILABLE:
                title = await uow.titles.get(job.subject_id)
                if title is None:
                    return Err(_missing(job, f"Título não encontrado: {job.subject_id}"))
                return Ok(NotificationContext(borrower=borrower, title=title))

            loan = await uow.loans.get(job.subject_id)
            if loan is None:
                return Err(_missing(job, f"Empréstimo não encontrado: {job.subject_id}"))
            copy = await uow.copies.get(loan.book_copy_id)
            title = await uow.titles.get(copy.book_title_id) if copy else None
            if title is None:
                return Err(_missing(job, f"Título do empréstimo não encontrado: {job.subject_id}"))
            return Ok(NotificationContext(borrower=borrower, title=title, loan=loan))


def _missing(job: NotificationJob, message: str) -> DomainError:
    return DomainError(
        ErrorKind.SEND_ERROR,
        message,
        {"job_id": str(job.id), "attempts": 1, "permanent": True},
    )


def render_message(
    job: NotificationJob,
    context: NotificationContext,
    hold_days: int = 7,
) -> OutboundMessage:
    """Monta assunto e corpo da mensagem para o tipo do job."""
    borrower = context.borrower
    title = context.title.title

    if job.type == NotificationType.RESERVATION_AVAILABLE:
        subject = f"[Biblioteca] Sua reserva está disponível: {title}"
        body = (
            f"Olá, {borrower.name}.\n\n"
            f"O livro \"{title}\" que você reservou foi devolvido e está separado para você.\n\n"
            f"A reserva vale por {hold_days} dias. Retire o livro na biblioteca dentro desse prazo.\n\n"
            f"Biblioteca"
        )
    else:
        due = context.loan.due_at.strftime("%d/%m/%Y") if context.loan else "-"
        subject = f"[Biblioteca] Empréstimo em atraso: {title}"
        body = (
            f"Olá, {borrower.name}.\n\n"
            f"O prazo de devolução do livro \"{title}\" venceu em {due}.\n\n"
            f"Por favor, devolva o livro o quanto antes.\n\n"
            f"Biblioteca"
        )

    return OutboundMessage(to=borrower.email, subject=subject, body=body, job_id=job.id)


# ==========================================
# Dispatcher
# ==========================================

class NotificationDispatcher:
    """
    Pipeline assíncrono de entrega de notificações.

    Args:
        queue: Fila de jobs (Redis ou memória)
        transport: Transporte de saída
        history: Histórico de tentativas
        resolver: Resolve o contexto dos jobs
        settings: Tentativas, intervalo, backoff e concorrência
        clock: Relógio (injetável nos testes)
        sleep: Função de espera entre tentativas (injetável nos testes)
    """

    def __init__(
        self,
        queue: JobQueue,
        transport: Transport,
        history: NotificationHistoryRepository,
        resolver: NotificationContextResolver,
        settings: Settings | None = None,
        clock: Callable = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        poll_timeout: float = 1.0,
    ):
        self.queue = queue
        self.transport = transport
        self.history = history
        self.resolver = resolver
        self.settings = settings or get_settings()
        self.clock = clock
        self.sleep = sleep
        self.poll_timeout = poll_timeout
        self._workers: list[asyncio.Task] = []
        self._stopping = asyncio.Event()

    # ==========================================
    # Enfileiramento
    # ==========================================

    async def enqueue(self, job: NotificationJob) -> Result[JobId, DomainError]:
        """
        Admite um job na fila. A entrega acontece nos workers.

        Returns:
            Ok(job_id) ou Err(QUEUE_ERROR)
        """
        try:
            await self.queue.push(job)
        except QueueUnavailable as exc:
            return Err(infrastructure_error(exc, logger, ErrorKind.QUEUE_ERROR))

        logger.info(f"Job {job.id} ({job.type.value}) enfileirado para leitor {job.borrower_id}")
        return Ok(job.id)

    def build_job(
        self,
        job_type: NotificationType,
        borrower_id: BorrowerId,
        subject_id: str,
    ) -> NotificationJob:
        return NotificationJob(
            id=JobId.generate(),
            type=job_type,
            borrower_id=borrower_id,
            subject_id=str(subject_id),
            enqueued_at=self.clock(),
            max_attempts=self.settings.NOTIFICATION_MAX_ATTEMPTS,
        )

    async def notify_reservation_available(
        self,
        borrower_id: BorrowerId,
        title_id: TitleId,
    ) -> Result[JobId, DomainError]:
        """Enfileira o aviso de reserva disponível."""
        job = self.build_job(NotificationType.RESERVATION_AVAILABLE, borrower_id, title_id)
        return await self.enqueue(job)

    async def notify_overdue(
        self,
        borrower_id: BorrowerId,
        loan_id: LoanId,
    ) -> Result[JobId, DomainError]:
        """Enfileira o lembrete de empréstimo em atraso."""
        job = self.build_job(NotificationType.OVERDUE_REMINDER, borrower_id, loan_id)
        return await self.enqueue(job)

    # ==========================================
    # Consultas
    # ==========================================

    async def get_job_status(self, job_id: JobId) -> Result[JobStatusInfo, DomainError]:
        """
        Situação de um job.

        Returns:
            Ok(JobStatusInfo) ou Err(JOB_NOT_FOUND | QUEUE_ERROR)
        """
        try:
            info = await self.queue.get_status(job_id)
        except QueueUnavailable as exc:
            return Err(infrastructure_error(exc, logger, ErrorKind.QUEUE_ERROR))

        if info is None:
            return Err(DomainError(
                ErrorKind.JOB_NOT_FOUND,
                "Job não encontrado",
                {"job_id": str(job_id)},
            ))
        return Ok(info)

    @guard_persistence
    async def history_for_borrower(
        self,
        borrower_id: BorrowerId,
    ) -> Result[list[NotificationHistoryRecord], DomainError]:
        """Histórico de tentativas de entrega para um leitor."""
        return Ok(await self.history.list_for_borrower(borrower_id))

    # ==========================================
    # Entrega
    # ==========================================

    def retry_delay(self, attempt: int) -> float:
        """Intervalo antes da próxima tentativa (attempt = tentativa que falhou)."""
        base = self.settings.NOTIFICATION_RETRY_DELAY_SECONDS
        if self.settings.NOTIFICATION_RETRY_BACKOFF == "exponential":
            return base * (2 ** (attempt - 1))
        return base

    async def process_job(self, job: NotificationJob) -> Result[None, DomainError]:
        """
        Entrega um job, com retentativas.

        Começa na tentativa job.attempts + 1. Se o worker for cancelado no
        meio (parada do serviço), o job volta para a fila como PENDING com
        as tentativas já concluídas. Um erro inesperado encerra o job como
        FAILED, com a tentativa registrada no histórico.

        Returns:
            Ok(None) se alguma tentativa teve sucesso, ou Err(SEND_ERROR)
            com o número de tentativas feitas
        """
        last_error = "nenhuma tentativa realizada"
        attempt = completed = job.attempts

        try:
            for attempt in range(job.attempts + 1, job.max_attempts + 1):
                await self._set_status(job.id, JobStatus.PROCESSING, attempt)

                try:
                    context = await self.resolver.resolve(job)
                except PersistenceUnavailable as exc:
                    last_error = f"Banco indisponível ao resolver contexto: {exc}"
                    await self._record(job, attempt, None, success=False, error=last_error)
                    completed = attempt
                    await self._wait_before_retry(job, attempt)
                    continue

                if context.is_err():
                    error = context.error
                    logger.warning(f"Job {job.id} descartado: {error.message}")
                    await self._record(job, attempt, None, success=False, error=error.message)
                    await self._set_status(job.id, JobStatus.FAILED, attempt)
                    return Err(DomainError(
                        ErrorKind.SEND_ERROR,
                        error.message,
                        {"job_id": str(job.id), "attempts": attempt, "permanent": True},
                    ))

                message = render_message(job, context.value, self.settings.HOLD_DURATION_DAYS)
                sent = await self.transport.send(message)

                if sent.is_ok():
                    await self._record(job, attempt, message, success=True)
                    await self._set_status(job.id, JobStatus.COMPLETED, attempt)
                    logger.info(f"Job {job.id} entregue na tentativa {attempt}")
                    return Ok(None)

                last_error = sent.error.message
                logger.warning(f"Job {job.id} falhou na tentativa {attempt}/{job.max_attempts}: {last_error}")
                await self._record(job, attempt, message, success=False, error=last_error)
                completed = attempt
                await self._wait_before_retry(job, attempt)
        except asyncio.CancelledError:
            await self._requeue(job, completed)
            raise
        except Exception as exc:
            logger.exception(f"Erro inesperado no job {job.id} (tentativa {attempt})")
            if completed < attempt:
                await self._record(job, attempt, None, success=False, error=f"Erro inesperado: {exc}")
            await self._set_status(job.id, JobStatus.FAILED, attempt)
            return Err(DomainError(
                ErrorKind.SEND_ERROR,
                f"Erro inesperado na entrega: {exc}",
                {"job_id": str(job.id), "attempts": attempt},
            ))

        await self._set_status(job.id, JobStatus.FAILED, job.max_attempts)
        logger.error(f"Job {job.id} falhou após {job.max_attempts} tentativa(s)")
        return Err(DomainError(
            ErrorKind.SEND_ERROR,
            f"Falha na entrega após {job.max_attempts} tentativa(s): {last_error}",
            {"job_id": str(job.id), "attempts": job.max_attempts},
        ))

    async def _requeue(self, job: NotificationJob, completed: int) -> None:
        """Devolve à fila um job interrompido, com as tentativas já feitas."""
        if completed >= job.max_attempts:
            await self._set_status(job.id, JobStatus.FAILED, completed)
            return
        try:
            await self.queue.requeue(job, completed)
        except QueueUnavailable as exc:
            logger.error(f"Job {job.id} interrompido e não devolvido à fila: {exc}")
            return
        logger.warning(f"Job {job.id} interrompido após {completed} tentativa(s), devolvido à fila")

    async def _wait_before_retry(self, job: NotificationJob, attempt: int) -> None:
        if attempt < job.max_attempts:
            await self.sleep(self.retry_delay(attempt))

    async def _record(
        self,
        job: NotificationJob,
        attempt: int,
        message: OutboundMessage | None,
        success: bool,
        error: str | None = None,
    ) -> None:
        record = NotificationHistoryRecord(
            id=new_uuid(),
            job_id=job.id,
            job_type=job.type,
            borrower_id=job.borrower_id,
            subject_id=job.subject_id,
            recipient=message.to if message else None,
            subject=message.subject if message else None,
            attempt=attempt,
            sent_at=self.clock(),
            success=success,
            error_message=error,
        )
        try:
            await self.history.add(record)
        except PersistenceUnavailable as exc:
            logger.error(
                f"Histórico da tentativa {attempt} do job {job.id} não gravado: {exc}",
                exc_info=exc,
            )

    async def _set_status(self, job_id: JobId, status: JobStatus, attempts: int | None = None) -> None:
        try:
            await self.queue.set_status(job_id, status, attempts)
        except QueueUnavailable as exc:
            logger.warning(f"Status do job {job_id} não atualizado ({status.value}): {exc}")

    # ==========================================
    # Workers
    # ==========================================

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._workers)

    async def start(self, concurrency: int | None = None) -> None:
        """Sobe o pool de workers (padrão: NOTIFICATION_WORKER_CONCURRENCY)."""
        if self.running:
            return
        size = concurrency or self.settings.NOTIFICATION_WORKER_CONCURRENCY
        self._stopping = asyncio.Event()
        self._workers = [
            asyncio.create_task(self._run_worker(index), name=f"notification-worker-{index}")
            for index in range(size)
        ]
        logger.info(f"{size} worker(s) de notificação iniciados")

    async def stop(self, grace_seconds: float = 5.0) -> None:
        """
        Para os workers.

        Jobs em andamento têm grace_seconds para terminar; depois disso as
        tasks são canceladas e cada job interrompido volta para a fila como
        PENDING, com as tentativas já feitas.
        """
        if not self._workers:
            return
        self._stopping.set()
        _, pending = await asyncio.wait(self._workers, timeout=grace_seconds)
        for task in pending:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Workers de notificação encerrados")

    async def drain(self) -> int:
        """Processa, no task atual, todos os jobs já enfileirados."""
        processed = 0
        while True:
            job = await self.queue.pop(timeout=0.05)
            if job is None:
                return processed
            await self.process_job(job)
            processed += 1

    async def _run_worker(self, index: int) -> None:
        while not self._stopping.is_set():
            try:
                job = await self.queue.pop(timeout=self.poll_timeout)
            except QueueUnavailable as exc:
                logger.warning(f"Worker {index}: fila indisponível: {exc}")
                await asyncio.sleep(self.poll_timeout)
                continue

            if job is None:
                continue

            try:
                await self.process_job(job)
            except Exception:
                logger.exception(f"Worker {index}: erro inesperado no job {job.id}")
                await self._set_status(job.id, JobStatus.FAILED)
