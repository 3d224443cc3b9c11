"""
Implementação em memória dos repositories e da unidade de trabalho.

Usada nos testes e no modo de desenvolvimento sem banco. Cada unidade de
trabalho segura o lock do store do início ao fim e restaura um snapshot
quando sai sem commit, reproduzindo atomicidade e isolamento de uma
transação serializável.
"""

import asyncio
import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Collection

from circulation.core.errors import PersistenceUnavailable
from circulation.core.ids import (
    BorrowerId,
    CopyId,
    LoanId,
    ReservationId,
    TitleId,
)
from circulation.models.enums import CopyStatus, ReservationStatus
from circulation.schemas.book import BorrowerRead, CopyRead, CopyStatusCounts, TitleRead
from circulation.schemas.loan import LoanRead, OverdueRecordRead
from circulation.schemas.notification import NotificationHistoryRecord
from circulation.schemas.reservation import ReservationRead


@dataclass
class MemoryStore:
    """
    Estado compartilhado entre as unidades de trabalho em memória.

    Os dicts guardam as entidades por ID; a ordem de inserção faz o papel
    de created_at nas ordenações.
    """
    borrowers: dict[str, BorrowerRead] = field(default_factory=dict)
    titles: dict[str, TitleRead] = field(default_factory=dict)
    copies: dict[str, CopyRead] = field(default_factory=dict)
    loans: dict[str, LoanRead] = field(default_factory=dict)
    overdue_records: dict[str, OverdueRecordRead] = field(default_factory=dict)
    reservations: dict[str, ReservationRead] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    unavailable: bool = False

    _TABLES = ("borrowers", "titles", "copies", "loans", "overdue_records", "reservations")

    def snapshot(self) -> dict[str, dict]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self._TABLES}

    def restore(self, snapshot: dict[str, dict]) -> None:
        for name, table in snapshot.items():
            setattr(self, name, copy.deepcopy(table))

    # ==========================================
    # Carga de dados (testes e desenvolvimento)
    # ==========================================

    def seed_borrower(self, name: str = "Leitor", email: str | None = None, loan_limit: int = 5) -> BorrowerRead:
        borrower_id = BorrowerId.generate()
        borrower = BorrowerRead(
            id=borrower_id,
            name=name,
            email=email or f"{borrower_id}@example.com",
            loan_limit=loan_limit,
        )
        self.borrowers[borrower.id] = borrower
        return borrower

    def seed_title(self, title: str = "Título", author: str | None = None) -> TitleRead:
        entity = TitleRead(id=TitleId.generate(), title=title, author=author)
        self.titles[entity.id] = entity
        return entity

    def seed_copy(
        self,
        title_id: TitleId,
        status: CopyStatus = CopyStatus.AVAILABLE,
        location: str = "",
    ) -> CopyRead:
        entity = CopyRead(
            id=CopyId.generate(),
            book_title_id=title_id,
            location=location,
            status=status,
        )
        self.copies[entity.id] = entity
        return entity


class _MemoryRepository:
    """Base dos repositories em memória: um dict do store por entidade."""

    table: str

    def __init__(self, store: MemoryStore):
        self.store = store

    @property
    def rows(self) -> dict[str, Any]:
        return getattr(self.store, self.table)

    async def get(self, id: Any):
        return self.rows.get(str(id))

    async def get_for_update(self, id: Any):
        # O lock do store já isola a unidade de trabalho inteira
        return self.rows.get(str(id))

    async def add(self, entity):
        self.rows[str(entity.id)] = entity
        return entity


class MemoryBorrowerRepository(_MemoryRepository):
    table = "borrowers"


class MemoryTitleRepository(_MemoryRepository):
    table = "titles"


class MemoryCopyRepository(_MemoryRepository):
    table = "copies"

    async def compare_and_set_status(
        self,
        copy_id: CopyId,
        sources: Collection[CopyStatus],
        target: CopyStatus,
        hold_reservation_id: ReservationId | None = None,
        expected_hold: ReservationId | None = None,
    ) -> CopyRead | None:
        current = self.rows.get(str(copy_id))
        if current is None or current.status not in sources:
            return None
        if expected_hold is not None and current.hold_reservation_id != expected_hold:
            return None
        updated = current.model_copy(update={
            "status": target,
            "hold_reservation_id": hold_reservation_id if target == CopyStatus.RESERVED else None,
        })
        self.rows[str(copy_id)] = updated
        return updated

    async def first_available(self, title_id: TitleId) -> CopyRead | None:
        for entity in self.rows.values():
            if entity.book_title_id == title_id and entity.status == CopyStatus.AVAILABLE:
                return entity
        return None

    async def get_held_by(self, reservation_id: ReservationId) -> CopyRead | None:
        for entity in self.rows.values():
            if entity.hold_reservation_id == reservation_id and entity.status == CopyStatus.RESERVED:
                return entity
        return None

    async def count_by_status(self, title_id: TitleId) -> CopyStatusCounts:
        counts = {status.value.lower(): 0 for status in CopyStatus}
        for entity in self.rows.values():
            if entity.book_title_id == title_id:
                counts[entity.status.value.lower()] += 1
        return CopyStatusCounts(total=sum(counts.values()), **counts)


class MemoryLoanRepository(_MemoryRepository):
    table = "loans"

    async def count_open_by_borrower(self, borrower_id: BorrowerId) -> int:
        return sum(
            1 for loan in self.rows.values()
            if loan.borrower_id == borrower_id and loan.returned_at is None
        )

    async def get_open_by_copy(self, copy_id: CopyId) -> LoanRead | None:
        for loan in self.rows.values():
            if loan.book_copy_id == copy_id and loan.returned_at is None:
                return loan
        return None

    async def list_open_by_copies(self, copy_ids: Collection[CopyId]) -> dict[str, LoanRead]:
        wanted = {str(copy_id) for copy_id in copy_ids}
        return {
            str(loan.book_copy_id): loan
            for loan in self.rows.values()
            if str(loan.book_copy_id) in wanted and loan.returned_at is None
        }

    async def close(self, loan_id: LoanId, returned_at: datetime) -> LoanRead | None:
        current = self.rows.get(str(loan_id))
        if current is None or current.returned_at is not None:
            return None
        updated = current.model_copy(update={"returned_at": returned_at})
        self.rows[str(loan_id)] = updated
        return updated

    async def list_overdue(self, now: datetime) -> list[LoanRead]:
        overdue = [
            loan for loan in self.rows.values()
            if loan.returned_at is None and loan.due_at < now
        ]
        return sorted(overdue, key=lambda loan: loan.due_at)


class MemoryOverdueRecordRepository(_MemoryRepository):
    table = "overdue_records"

    async def list_for_loan(self, loan_id: LoanId) -> list[OverdueRecordRead]:
        return [record for record in self.rows.values() if record.loan_id == loan_id]


class MemoryReservationRepository(_MemoryRepository):
    table = "reservations"

    def _active(self, title_id: TitleId) -> list[ReservationRead]:
        return [
            reservation for reservation in self.rows.values()
            if reservation.book_title_id == title_id and reservation.is_active
        ]

    async def get_active_for(
        self,
        borrower_id: BorrowerId,
        title_id: TitleId,
    ) -> ReservationRead | None:
        for reservation in self._active(title_id):
            if reservation.borrower_id == borrower_id:
                return reservation
        return None

    async def count_active(self, title_id: TitleId) -> int:
        return len(self._active(title_id))

    async def list_active(self, title_id: TitleId) -> list[ReservationRead]:
        # sorted é estável: empates de posição ficam em ordem de inserção
        return sorted(
            self._active(title_id),
            key=lambda reservation: (reservation.queue_position, reservation.reserved_at),
        )

    async def first_pending(self, title_id: TitleId) -> ReservationRead | None:
        for reservation in await self.list_active(title_id):
            if reservation.status == ReservationStatus.PENDING:
                return reservation
        return None

    async def list_expired(self, now: datetime) -> list[ReservationRead]:
        expired = [
            reservation for reservation in self.rows.values()
            if reservation.status == ReservationStatus.NOTIFIED
            and reservation.expires_at is not None
            and reservation.expires_at < now
        ]
        return sorted(expired, key=lambda reservation: reservation.expires_at)

    async def update(self, reservation_id: ReservationId, **fields: Any) -> ReservationRead | None:
        current = self.rows.get(str(reservation_id))
        if current is None:
            return None
        updated = current.model_copy(update=fields)
        self.rows[str(reservation_id)] = updated
        return updated


class MemoryUnitOfWork:
    """
    Unidade de trabalho em memória.

    Segura MemoryStore.lock durante todo o bloco; sair sem commit
    restaura o estado do início (ou do último commit).
    """

    def __init__(self, store: MemoryStore):
        self.store = store
        self.borrowers = MemoryBorrowerRepository(store)
        self.titles = MemoryTitleRepository(store)
        self.copies = MemoryCopyRepository(store)
        self.loans = MemoryLoanRepository(store)
        self.overdue_records = MemoryOverdueRecordRepository(store)
        self.reservations = MemoryReservationRepository(store)
        self._snapshot: dict[str, dict] | None = None

    async def __aenter__(self) -> "MemoryUnitOfWork":
        if self.store.unavailable:
            raise PersistenceUnavailable("memory store marcado como indisponível")
        await self.store.lock.acquire()
        self._snapshot = self.store.snapshot()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await self.rollback()
        finally:
            self.store.lock.release()

    async def commit(self) -> None:
        if self.store.unavailable:
            raise PersistenceUnavailable("memory store marcado como indisponível")
        self._snapshot = self.store.snapshot()

    async def rollback(self) -> None:
        if self._snapshot is not None:
            self.store.restore(self._snapshot)


def memory_unit_of_work_factory(store: MemoryStore):
    """Retorna uma factory de MemoryUnitOfWork sobre o store informado."""

    def factory() -> MemoryUnitOfWork:
        return MemoryUnitOfWork(store)

    return factory


class MemoryNotificationHistoryRepository:
    """Histórico de notificações em memória (ordem de gravação)."""

    def __init__(self):
        self.records: list[NotificationHistoryRecord] = []

    async def add(self, record: NotificationHistoryRecord) -> None:
        self.records.append(record)

    async def list_for_borrower(self, borrower_id: BorrowerId) -> list[NotificationHistoryRecord]:
        return [record for record in self.records if record.borrower_id == borrower_id]
