"""
Service da fila de reservas (FIFO por título).

Regras de negócio:
    - Reserva só é permitida se NENHUMA cópia do título está AVAILABLE
    - Um leitor tem no máximo uma reserva PENDING/NOTIFIED por título
    - Posições das reservas PENDING/NOTIFIED de um título são sempre 1..N
    - Quando uma cópia volta, a reserva PENDING de menor posição vira
      NOTIFIED, a cópia fica RESERVED para ela e o leitor é avisado
    - A reserva NOTIFIED vale por HOLD_DURATION_DAYS; vencida, expira e a
      cópia passa para o próximo da fila

Concorrência:
    Toda operação que mexe nas posições trava a linha do título
    (SELECT ... FOR UPDATE) antes de contar ou renumerar.
"""

from datetime import timedelta

from circulation.core.clock import utcnow
from circulation.core.config import Settings, get_settings
from circulation.core.errors import DomainError, ErrorKind, guard_persistence
from circulation.core.ids import BorrowerId, CopyId, ReservationId, TitleId
from circulation.core.logging import get_logger
from circulation.core.result import Err, Ok, Result
from circulation.models.enums import CopyStatus, ReservationStatus
from circulation.repositories.interfaces import UnitOfWork, UnitOfWorkFactory
from circulation.schemas.reservation import (
    ExpireReservationsResult,
    Promotion,
    ReservationRead,
)
from circulation.services.inventory import InventoryLedger
from circulation.services.notification import NotificationDispatcher

logger = get_logger(__name__)


def _title_not_found(title_id: TitleId) -> Err[DomainError]:
    return Err(DomainError(
        ErrorKind.TITLE_NOT_FOUND,
        "Título não encontrado",
        {"title_id": str(title_id)},
    ))


def _reservation_not_found(reservation_id: ReservationId) -> Err[DomainError]:
    return Err(DomainError(
        ErrorKind.RESERVATION_NOT_FOUND,
        "Reserva não encontrada",
        {"reservation_id": str(reservation_id)},
    ))


class ReservationQueue:
    """Service para operações da fila de reservas."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        ledger: InventoryLedger,
        dispatcher: NotificationDispatcher,
        settings: Settings | None = None,
        clock=utcnow,
    ):
        self.uow_factory = uow_factory
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()
        self.clock = clock

    @property
    def hold_duration(self) -> timedelta:
        return timedelta(days=self.settings.HOLD_DURATION_DAYS)

    # ==========================================
    # Criação e consulta
    # ==========================================

    @guard_persistence
    async def create_reservation(
        self,
        borrower_id: BorrowerId,
        title_id: TitleId,
    ) -> Result[ReservationRead, DomainError]:
        """
        Coloca o leitor na fila de um título.

        Ordem das validações:
            1. Leitor existe -> BORROWER_NOT_FOUND
            2. Título existe -> TITLE_NOT_FOUND
            3. Sem reserva ativa do leitor para o título -> ALREADY_RESERVED
            4. Nenhuma cópia AVAILABLE -> BOOK_AVAILABLE

        A posição (ativas + 1) é calculada e gravada com a linha do título
        travada, então duas reservas simultâneas nunca recebem a mesma
        posição.

        Returns:
            Ok(reserva PENDING) ou Err com o motivo
        """
        async with self.uow_factory() as uow:
            borrower = await uow.borrowers.get(borrower_id)
            if borrower is None:
                return Err(DomainError(
                    ErrorKind.BORROWER_NOT_FOUND,
                    "Leitor não encontrado",
                    {"borrower_id": str(borrower_id)},
                ))

            title = await uow.titles.get_for_update(title_id)
            if title is None:
                return _title_not_found(title_id)

            existing = await uow.reservations.get_active_for(borrower.id, title.id)
            if existing is not None:
                return Err(DomainError(
                    ErrorKind.ALREADY_RESERVED,
                    "Você já possui uma reserva ativa para este título",
                    {
                        "reservation_id": str(existing.id),
                        "queue_position": existing.queue_position,
                    },
                ))

            counts = await uow.copies.count_by_status(title.id)
            if counts.available > 0:
                return Err(DomainError(
                    ErrorKind.BOOK_AVAILABLE,
                    "Há cópias disponíveis. Faça um empréstimo diretamente.",
                    {"title_id": str(title.id), "available_copies": counts.available},
                ))

            position = await uow.reservations.count_active(title.id) + 1
            reservation = await uow.reservations.add(ReservationRead(
                id=ReservationId.generate(),
                borrower_id=borrower.id,
                book_title_id=title.id,
                reserved_at=self.clock(),
                status=ReservationStatus.PENDING,
                queue_position=position,
            ))
            await uow.commit()

        logger.info(
            f"Reserva {reservation.id} criada: leitor {borrower.id}, "
            f"título {title.id}, posição {position}"
        )
        return Ok(reservation)

    @guard_persistence
    async def get_reservation(self, reservation_id: ReservationId) -> Result[ReservationRead, DomainError]:
        """Busca uma reserva. Err(RESERVATION_NOT_FOUND) se não existir."""
        async with self.uow_factory() as uow:
            reservation = await uow.reservations.get(reservation_id)
        if reservation is None:
            return _reservation_not_found(reservation_id)
        return Ok(reservation)

    @guard_persistence
    async def list_queue(self, title_id: TitleId) -> Result[list[ReservationRead], DomainError]:
        """Fila atual do título (PENDING e NOTIFIED, em ordem)."""
        async with self.uow_factory() as uow:
            if await uow.titles.get(title_id) is None:
                return _title_not_found(title_id)
            return Ok(await uow.reservations.list_active(title_id))

    # ==========================================
    # Promoção (devolução de cópia)
    # ==========================================

    async def promote_next(
        self,
        uow: UnitOfWork,
        title_id: TitleId,
        copy_id: CopyId | None = None,
    ) -> Promotion | None:
        """
        Promove a reserva PENDING de menor posição, dentro de uma transação.

        A cópia informada (ou, sem ela, qualquer cópia AVAILABLE do título)
        passa AVAILABLE -> RESERVED, separada para a reserva promovida.

        Returns:
            Promotion, ou None se não há ninguém esperando ou nenhuma cópia
            pôde ser separada (a cópia continua AVAILABLE)
        """
        candidate = await uow.reservations.first_pending(title_id)
        if candidate is None:
            return None

        if copy_id is None:
            available = await uow.copies.first_available(title_id)
            if available is None:
                return None
            copy_id = available.id

        reserved = await self.ledger.apply(
            uow, copy_id, CopyStatus.AVAILABLE, CopyStatus.RESERVED,
            hold_reservation_id=candidate.id,
        )
        if reserved.is_err():
            logger.info(f"Cópia {copy_id} não pôde ser separada: {reserved.error.message}")
            return None

        now = self.clock()
        promoted = await uow.reservations.update(
            candidate.id,
            status=ReservationStatus.NOTIFIED,
            notified_at=now,
            expires_at=now + self.hold_duration,
        )
        logger.info(
            f"Reserva {promoted.id} promovida para NOTIFIED "
            f"(cópia {copy_id}, expira em {promoted.expires_at.isoformat()})"
        )
        return Promotion(reservation=promoted, book_copy_id=copy_id)

    async def announce(self, promotion: Promotion | None) -> None:
        """
        Enfileira o aviso de reserva disponível, após o commit.

        Falha na fila não desfaz a promoção: fica registrada no log com o
        correlation_id e a reserva continua NOTIFIED.
        """
        if promotion is None:
            return
        reservation = promotion.reservation
        result = await self.dispatcher.notify_reservation_available(
            reservation.borrower_id,
            reservation.book_title_id,
        )
        if result.is_err():
            logger.error(
                f"Aviso da reserva {reservation.id} não enfileirado: "
                f"{result.error.to_dict()}"
            )

    @guard_persistence
    async def process_returned_book(
        self,
        title_id: TitleId,
        copy_id: CopyId | None = None,
    ) -> Result[Promotion | None, DomainError]:
        """
        Oferece uma cópia devolvida ao primeiro da fila.

        Args:
            title_id: Título da cópia devolvida
            copy_id: Cópia devolvida (None = qualquer cópia AVAILABLE)

        Returns:
            Ok(Promotion) se alguém foi promovido, Ok(None) caso contrário
        """
        async with self.uow_factory() as uow:
            if await uow.titles.get_for_update(title_id) is None:
                return _title_not_found(title_id)
            promotion = await self.promote_next(uow, title_id, copy_id)
            await uow.commit()

        await self.announce(promotion)
        return Ok(promotion)

    # ==========================================
    # Saída da fila (expiração, cancelamento, retirada)
    # ==========================================

    async def renumber(self, uow: UnitOfWork, title_id: TitleId) -> None:
        """Reescreve as posições ativas do título como 1..N, mantendo a ordem."""
        for position, reservation in enumerate(await uow.reservations.list_active(title_id), start=1):
            if reservation.queue_position != position:
                await uow.reservations.update(reservation.id, queue_position=position)

    async def _release_hold(
        self,
        uow: UnitOfWork,
        reservation: ReservationRead,
    ) -> Promotion | None:
        """Libera a cópia separada para a reserva e a oferece ao próximo."""
        held = await uow.copies.get_held_by(reservation.id)
        if held is None:
            return None

        released = await self.ledger.apply(
            uow, held.id, CopyStatus.RESERVED, CopyStatus.AVAILABLE,
            expected_hold=reservation.id,
        )
        if released.is_err():
            logger.warning(f"Cópia {held.id} não liberada: {released.error.message}")
            return None

        return await self.promote_next(uow, reservation.book_title_id, held.id)

    async def fulfill(self, uow: UnitOfWork, reservation: ReservationRead) -> ReservationRead | None:
        """
        Marca a reserva como FULFILLED (leitor retirou o livro).

        Chamado pelo LoanManager dentro da transação do empréstimo, que já
        segura o lock do título.

        Returns:
            A reserva atendida, ou None se ela não está mais NOTIFIED
            (expirou ou foi cancelada antes do empréstimo)
        """
        current = await uow.reservations.get(reservation.id)
        if current is None or current.status != ReservationStatus.NOTIFIED:
            logger.info(f"Reserva {reservation.id} não está mais NOTIFIED, empréstimo recusado")
            return None

        fulfilled = await uow.reservations.update(
            reservation.id,
            status=ReservationStatus.FULFILLED,
        )
        await self.renumber(uow, reservation.book_title_id)
        logger.info(f"Reserva {reservation.id} atendida")
        return fulfilled

    @guard_persistence
    async def expire_stale_reservations(self) -> Result[ExpireReservationsResult, DomainError]:
        """
        Expira reservas NOTIFIED com prazo vencido.

        Para cada reserva vencida (uma transação por reserva):
            1. status -> EXPIRED
            2. a cópia separada volta a AVAILABLE e é oferecida ao próximo
               PENDING da fila (mesma lógica da devolução)
            3. posições do título renumeradas para 1..N

        Rodar de novo sem novas reservas vencidas não altera nada.
        """
        now = self.clock()
        async with self.uow_factory() as uow:
            stale = await uow.reservations.list_expired(now)

        expired_count = 0
        promotions: list[Promotion] = []
        affected: list[TitleId] = []

        for candidate in stale:
            async with self.uow_factory() as uow:
                await uow.titles.get_for_update(candidate.book_title_id)
                reservation = await uow.reservations.get(candidate.id)
                # Outra varredura pode ter chegado antes
                if (
                    reservation is None
                    or reservation.status != ReservationStatus.NOTIFIED
                    or reservation.expires_at is None
                    or reservation.expires_at >= now
                ):
                    continue

                await uow.reservations.update(reservation.id, status=ReservationStatus.EXPIRED)
                promotion = await self._release_hold(uow, reservation)
                await self.renumber(uow, reservation.book_title_id)
                await uow.commit()

            expired_count += 1
            if reservation.book_title_id not in affected:
                affected.append(reservation.book_title_id)
            if promotion is not None:
                promotions.append(promotion)
            logger.info(f"Reserva {reservation.id} expirada")

        for promotion in promotions:
            await self.announce(promotion)

        return Ok(ExpireReservationsResult(
            expired_count=expired_count,
            promoted_count=len(promotions),
            affected_title_ids=affected,
            message=f"{expired_count} reserva(s) expirada(s), {len(promotions)} promovida(s)",
        ))

    @guard_persistence
    async def cancel_reservation(self, reservation_id: ReservationId) -> Result[ReservationRead, DomainError]:
        """
        Cancela uma reserva PENDING ou NOTIFIED.

        Se a reserva tinha uma cópia separada, a cópia é oferecida ao
        próximo da fila (ou volta a AVAILABLE). As posições são renumeradas.

        Returns:
            Ok(reserva CANCELLED) ou Err(RESERVATION_NOT_FOUND | RESERVATION_NOT_ACTIVE)
        """
        async with self.uow_factory() as uow:
            reservation = await uow.reservations.get(reservation_id)
            if reservation is None:
                return _reservation_not_found(reservation_id)

            await uow.titles.get_for_update(reservation.book_title_id)
            reservation = await uow.reservations.get(reservation_id)
            if not reservation.is_active:
                return Err(DomainError(
                    ErrorKind.RESERVATION_NOT_ACTIVE,
                    f"Reserva com status {reservation.status.value} não pode ser cancelada",
                    {"reservation_id": str(reservation.id), "status": reservation.status.value},
                ))

            cancelled = await uow.reservations.update(reservation.id, status=ReservationStatus.CANCELLED)
            promotion = None
            if reservation.status == ReservationStatus.NOTIFIED:
                promotion = await self._release_hold(uow, reservation)
            await self.renumber(uow, reservation.book_title_id)
            await uow.commit()

        logger.info(f"Reserva {reservation.id} cancelada")
        await self.announce(promotion)
        return Ok(cancelled)
