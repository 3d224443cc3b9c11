"""
Testes da ReservationQueue (fila FIFO por título).
"""

import asyncio
from datetime import timedelta

import pytest

from circulation.core.errors import ErrorKind
from circulation.core.ids import BorrowerId, ReservationId, TitleId
from circulation.models.enums import CopyStatus, NotificationType, ReservationStatus


def active_positions(store, title_id) -> list[int]:
    """Posições das reservas PENDING/NOTIFIED de um título, ordenadas."""
    return sorted(
        reservation.queue_position
        for reservation in store.reservations.values()
        if reservation.book_title_id == title_id and reservation.is_active
    )


@pytest.fixture
def borrowed_copy(store, title):
    """Única cópia do título, já emprestada."""
    return store.seed_copy(title.id, CopyStatus.BORROWED)


# ==========================================
# create_reservation
# ==========================================

class TestCreateReservation:
    """Testes para criação de reservas."""

    @pytest.mark.anyio
    async def test_positions_follow_arrival(self, services, store, clock, borrower, other_borrower, title, borrowed_copy):
        first = await services.reservations.create_reservation(borrower.id, title.id)
        second = await services.reservations.create_reservation(other_borrower.id, title.id)

        assert first.value.queue_position == 1
        assert first.value.status == ReservationStatus.PENDING
        assert first.value.reserved_at == clock.now
        assert second.value.queue_position == 2

    @pytest.mark.anyio
    async def test_copy_available_refuses(self, services, borrower, title, book_copy):
        result = await services.reservations.create_reservation(borrower.id, title.id)

        assert result.error.kind == ErrorKind.BOOK_AVAILABLE
        assert result.error.context["available_copies"] == 1

    @pytest.mark.anyio
    async def test_title_without_copies_accepts(self, services, borrower, title):
        result = await services.reservations.create_reservation(borrower.id, title.id)

        assert result.value.queue_position == 1

    @pytest.mark.anyio
    async def test_already_reserved(self, services, borrower, title, borrowed_copy):
        first = (await services.reservations.create_reservation(borrower.id, title.id)).value

        result = await services.reservations.create_reservation(borrower.id, title.id)

        assert result.error.kind == ErrorKind.ALREADY_RESERVED
        assert result.error.context["reservation_id"] == first.id

    @pytest.mark.anyio
    async def test_cancelled_reservation_allows_new_one(self, services, borrower, title, borrowed_copy):
        first = (await services.reservations.create_reservation(borrower.id, title.id)).value
        await services.reservations.cancel_reservation(first.id)

        result = await services.reservations.create_reservation(borrower.id, title.id)

        assert result.is_ok()
        assert result.value.queue_position == 1

    @pytest.mark.anyio
    async def test_borrower_not_found(self, services, title):
        result = await services.reservations.create_reservation(BorrowerId("inexistente"), title.id)

        assert result.error.kind == ErrorKind.BORROWER_NOT_FOUND

    @pytest.mark.anyio
    async def test_title_not_found(self, services, borrower):
        result = await services.reservations.create_reservation(borrower.id, TitleId("inexistente"))

        assert result.error.kind == ErrorKind.TITLE_NOT_FOUND

    @pytest.mark.anyio
    async def test_concurrent_reservations_get_contiguous_positions(self, services, store, title, borrowed_copy):
        borrowers = [store.seed_borrower(f"Leitor {index}") for index in range(6)]

        results = await asyncio.gather(*[
            services.reservations.create_reservation(borrower.id, title.id)
            for borrower in borrowers
        ])

        assert all(result.is_ok() for result in results)
        assert active_positions(store, title.id) == [1, 2, 3, 4, 5, 6]


# ==========================================
# Promoção, expiração e cancelamento
# ==========================================

class TestQueueLifecycle:
    """Testes para a vida da reserva na fila."""

    @pytest.mark.anyio
    async def test_returned_copy_goes_to_head_of_queue(
        self, services, store, clock, borrower, other_borrower, title
    ):
        holder = store.seed_borrower("Davi")
        copy = store.seed_copy(title.id)
        loan = (await services.loans.create_loan(holder.id, copy.id)).value
        first = (await services.reservations.create_reservation(borrower.id, title.id)).value
        second = (await services.reservations.create_reservation(other_borrower.id, title.id)).value

        await services.loans.return_book(loan.id)

        assert store.reservations[first.id].status == ReservationStatus.NOTIFIED
        assert store.reservations[first.id].expires_at == clock.now + timedelta(days=7)
        assert store.reservations[second.id].status == ReservationStatus.PENDING
        assert store.copies[copy.id].status == CopyStatus.RESERVED
        assert [job.type for job in services.queue.enqueued] == [NotificationType.RESERVATION_AVAILABLE]
        assert services.queue.enqueued[0].borrower_id == borrower.id

    @pytest.mark.anyio
    async def test_fulfilled_reservation_leaves_queue(
        self, services, store, borrower, other_borrower, title
    ):
        holder = store.seed_borrower("Davi")
        copy = store.seed_copy(title.id)
        loan = (await services.loans.create_loan(holder.id, copy.id)).value
        first = (await services.reservations.create_reservation(borrower.id, title.id)).value
        second = (await services.reservations.create_reservation(other_borrower.id, title.id)).value
        await services.loans.return_book(loan.id)

        await services.loans.create_loan(borrower.id, copy.id)

        assert store.reservations[first.id].status == ReservationStatus.FULFILLED
        assert store.reservations[second.id].queue_position == 1
        assert active_positions(store, title.id) == [1]

    @pytest.mark.anyio
    async def test_fulfill_refuses_reservation_no_longer_notified(
        self, services, store, clock, borrower, title
    ):
        holder = store.seed_borrower("Davi")
        copy = store.seed_copy(title.id)
        loan = (await services.loans.create_loan(holder.id, copy.id)).value
        reservation = (await services.reservations.create_reservation(borrower.id, title.id)).value
        await services.loans.return_book(loan.id)
        notified = store.reservations[reservation.id]
        clock.advance(days=8)
        await services.reservations.expire_stale_reservations()

        async with services.uow_factory() as uow:
            fulfilled = await services.reservations.fulfill(uow, notified)

        assert fulfilled is None
        assert store.reservations[reservation.id].status == ReservationStatus.EXPIRED

    @pytest.mark.anyio
    async def test_expiry_passes_copy_to_next(self, services, store, clock, borrower, other_borrower, title):
        holder = store.seed_borrower("Davi")
        copy = store.seed_copy(title.id)
        loan = (await services.loans.create_loan(holder.id, copy.id)).value
        first = (await services.reservations.create_reservation(borrower.id, title.id)).value
        second = (await services.reservations.create_reservation(other_borrower.id, title.id)).value
        await services.loans.return_book(loan.id)
        clock.advance(days=8)

        result = await services.reservations.expire_stale_reservations()

        summary = result.value
        assert summary.expired_count == 1
        assert summary.promoted_count == 1
        assert summary.affected_title_ids == [title.id]
        assert store.reservations[first.id].status == ReservationStatus.EXPIRED
        promoted = store.reservations[second.id]
        assert promoted.status == ReservationStatus.NOTIFIED
        assert promoted.queue_position == 1
        assert promoted.expires_at == clock.now + timedelta(days=7)
        assert store.copies[copy.id].status == CopyStatus.RESERVED
        assert store.copies[copy.id].hold_reservation_id == second.id
        assert [job.borrower_id for job in services.queue.enqueued] == [borrower.id, other_borrower.id]

    @pytest.mark.anyio
    async def test_expiry_without_queue_releases_copy(self, services, store, clock, borrower, title):
        holder = store.seed_borrower("Davi")
        copy = store.seed_copy(title.id)
        loan = (await services.loans.create_loan(holder.id, copy.id)).value
        await services.reservations.create_reservation(borrower.id, title.id)
        await services.loans.return_book(loan.id)
        clock.advance(days=7, seconds=1)

        summary = (await services.reservations.expire_stale_reservations()).value

        assert summary.expired_count == 1
        assert summary.promoted_count == 0
        assert store.copies[copy.id].status == CopyStatus.AVAILABLE
        assert store.copies[copy.id].hold_reservation_id is None
        assert active_positions(store, title.id) == []

    @pytest.mark.anyio
    async def test_expiry_is_idempotent(self, services, store, clock, borrower, title):
        holder = store.seed_borrower("Davi")
        copy = store.seed_copy(title.id)
        loan = (await services.loans.create_loan(holder.id, copy.id)).value
        await services.reservations.create_reservation(borrower.id, title.id)
        await services.loans.return_book(loan.id)
        clock.advance(days=8)

        await services.reservations.expire_stale_reservations()
        snapshot = store.snapshot()
        again = (await services.reservations.expire_stale_reservations()).value

        assert again.expired_count == 0
        assert again.promoted_count == 0
        assert store.snapshot() == snapshot

    @pytest.mark.anyio
    async def test_not_expired_before_deadline(self, services, store, clock, borrower, title):
        holder = store.seed_borrower("Davi")
        copy = store.seed_copy(title.id)
        loan = (await services.loans.create_loan(holder.id, copy.id)).value
        reservation = (await services.reservations.create_reservation(borrower.id, title.id)).value
        await services.loans.return_book(loan.id)
        clock.advance(days=6)

        summary = (await services.reservations.expire_stale_reservations()).value

        assert summary.expired_count == 0
        assert store.reservations[reservation.id].status == ReservationStatus.NOTIFIED

    @pytest.mark.anyio
    async def test_cancel_pending_renumbers(self, services, store, title, borrowed_copy):
        borrowers = [store.seed_borrower(f"Leitor {index}") for index in range(3)]
        reservations = [
            (await services.reservations.create_reservation(borrower.id, title.id)).value
            for borrower in borrowers
        ]

        result = await services.reservations.cancel_reservation(reservations[0].id)

        assert result.value.status == ReservationStatus.CANCELLED
        assert store.reservations[reservations[1].id].queue_position == 1
        assert store.reservations[reservations[2].id].queue_position == 2
        assert active_positions(store, title.id) == [1, 2]

    @pytest.mark.anyio
    async def test_cancel_notified_hands_copy_to_next(self, services, store, borrower, other_borrower, title):
        holder = store.seed_borrower("Davi")
        copy = store.seed_copy(title.id)
        loan = (await services.loans.create_loan(holder.id, copy.id)).value
        first = (await services.reservations.create_reservation(borrower.id, title.id)).value
        second = (await services.reservations.create_reservation(other_borrower.id, title.id)).value
        await services.loans.return_book(loan.id)

        await services.reservations.cancel_reservation(first.id)

        assert store.reservations[second.id].status == ReservationStatus.NOTIFIED
        assert store.copies[copy.id].hold_reservation_id == second.id
        assert len(services.queue.enqueued) == 2

    @pytest.mark.anyio
    async def test_cancel_inactive(self, services, borrower, title, borrowed_copy):
        reservation = (await services.reservations.create_reservation(borrower.id, title.id)).value
        await services.reservations.cancel_reservation(reservation.id)

        result = await services.reservations.cancel_reservation(reservation.id)

        assert result.error.kind == ErrorKind.RESERVATION_NOT_ACTIVE
        assert result.error.context["status"] == "CANCELLED"

    @pytest.mark.anyio
    async def test_cancel_unknown(self, services):
        result = await services.reservations.cancel_reservation(ReservationId("inexistente"))

        assert result.error.kind == ErrorKind.RESERVATION_NOT_FOUND

    @pytest.mark.anyio
    async def test_process_queue_after_maintenance(self, services, store, borrower, title):
        copy = store.seed_copy(title.id, CopyStatus.MAINTENANCE)
        reservation = (await services.reservations.create_reservation(borrower.id, title.id)).value
        await services.ledger.restore_from_maintenance(copy.id)

        result = await services.reservations.process_returned_book(title.id)

        promotion = result.value
        assert promotion.reservation.id == reservation.id
        assert promotion.book_copy_id == copy.id
        assert store.copies[copy.id].status == CopyStatus.RESERVED

    @pytest.mark.anyio
    async def test_process_queue_without_waiting(self, services, title, book_copy):
        result = await services.reservations.process_returned_book(title.id)

        assert result.is_ok()
        assert result.value is None

    @pytest.mark.anyio
    async def test_list_queue(self, services, store, title, borrowed_copy):
        borrowers = [store.seed_borrower(f"Leitor {index}") for index in range(3)]
        for borrower in borrowers:
            await services.reservations.create_reservation(borrower.id, title.id)

        queue = (await services.reservations.list_queue(title.id)).value

        assert [reservation.borrower_id for reservation in queue] == [borrower.id for borrower in borrowers]
        assert [reservation.queue_position for reservation in queue] == [1, 2, 3]
