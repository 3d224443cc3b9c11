"""
Contratos dos repositories usados pelo núcleo de circulação.

Os services dependem apenas destes Protocols; existem duas implementações:
    - SQLAlchemy (repositories/*.py + SqlAlchemyUnitOfWork)
    - Memória (repositories/memory.py), usada nos testes
"""

from datetime import datetime
from typing import Any, Callable, Collection, Protocol

from circulation.core.ids import BorrowerId, CopyId, LoanId, ReservationId, TitleId
from circulation.models.enums import CopyStatus
from circulation.schemas.book import BorrowerRead, CopyRead, CopyStatusCounts, TitleRead
from circulation.schemas.loan import LoanRead, OverdueRecordRead
from circulation.schemas.notification import NotificationHistoryRecord
from circulation.schemas.reservation import ReservationRead


class BorrowerRepository(Protocol):
    async def get(self, borrower_id: BorrowerId) -> BorrowerRead | None: ...

    async def get_for_update(self, borrower_id: BorrowerId) -> BorrowerRead | None: ...

    async def add(self, borrower: BorrowerRead) -> BorrowerRead: ...


class TitleRepository(Protocol):
    async def get(self, title_id: TitleId) -> TitleRead | None: ...

    async def get_for_update(self, title_id: TitleId) -> TitleRead | None: ...

    async def add(self, title: TitleRead) -> TitleRead: ...


class CopyRepository(Protocol):
    async def get(self, copy_id: CopyId) -> CopyRead | None: ...

    async def add(self, copy: CopyRead) -> CopyRead: ...

    async def compare_and_set_status(
        self,
        copy_id: CopyId,
        sources: Collection[CopyStatus],
        target: CopyStatus,
        hold_reservation_id: ReservationId | None = None,
        expected_hold: ReservationId | None = None,
    ) -> CopyRead | None:
        """
        Troca o status apenas se o status atual estiver em sources (e, com
        expected_hold, se a cópia estiver separada para essa reserva).
        """
        ...

    async def first_available(self, title_id: TitleId) -> CopyRead | None: ...

    async def get_held_by(self, reservation_id: ReservationId) -> CopyRead | None: ...

    async def count_by_status(self, title_id: TitleId) -> CopyStatusCounts: ...


class LoanRepository(Protocol):
    async def get(self, loan_id: LoanId) -> LoanRead | None: ...

    async def add(self, loan: LoanRead) -> LoanRead: ...

    async def count_open_by_borrower(self, borrower_id: BorrowerId) -> int: ...

    async def get_open_by_copy(self, copy_id: CopyId) -> LoanRead | None: ...

    async def list_open_by_copies(self, copy_ids: Collection[CopyId]) -> dict[str, LoanRead]: ...

    async def close(self, loan_id: LoanId, returned_at: datetime) -> LoanRead | None:
        """Preenche returned_at apenas se o empréstimo ainda estiver aberto."""
        ...

    async def list_overdue(self, now: datetime) -> list[LoanRead]: ...


class OverdueRecordRepository(Protocol):
    async def add(self, record: OverdueRecordRead) -> OverdueRecordRead: ...

    async def list_for_loan(self, loan_id: LoanId) -> list[OverdueRecordRead]: ...


class ReservationRepository(Protocol):
    async def get(self, reservation_id: ReservationId) -> ReservationRead | None: ...

    async def add(self, reservation: ReservationRead) -> ReservationRead: ...

    async def get_active_for(
        self,
        borrower_id: BorrowerId,
        title_id: TitleId,
    ) -> ReservationRead | None: ...

    async def count_active(self, title_id: TitleId) -> int: ...

    async def list_active(self, title_id: TitleId) -> list[ReservationRead]:
        """Reservas PENDING/NOTIFIED do título em ordem de fila."""
        ...

    async def first_pending(self, title_id: TitleId) -> ReservationRead | None: ...

    async def list_expired(self, now: datetime) -> list[ReservationRead]: ...

    async def update(self, reservation_id: ReservationId, **fields: Any) -> ReservationRead | None: ...


class UnitOfWork(Protocol):
    """
    Transação de uma operação do núcleo.

    Uso:
        async with uow_factory() as uow:
            ...
            await uow.commit()

    Sair do bloco sem commit desfaz tudo. Falhas do banco chegam aos
    services como PersistenceUnavailable.
    """
    borrowers: BorrowerRepository
    titles: TitleRepository
    copies: CopyRepository
    loans: LoanRepository
    overdue_records: OverdueRecordRepository
    reservations: ReservationRepository

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    async def __aenter__(self) -> "UnitOfWork": ...

    async def __aexit__(self, exc_type, exc, tb) -> None: ...


UnitOfWorkFactory = Callable[[], UnitOfWork]


class NotificationHistoryRepository(Protocol):
    """Histórico de entregas, fora da transação das operações de circulação."""

    async def add(self, record: NotificationHistoryRecord) -> None: ...

    async def list_for_borrower(self, borrower_id: BorrowerId) -> list[NotificationHistoryRecord]: ...
