"""
Testes dos endpoints HTTP da API v1 (services em memória).
"""

import pytest
from httpx import ASGITransport, AsyncClient

from circulation.main import app
from circulation.models.enums import CopyStatus


# ==========================================
# Loans
# ==========================================

class TestLoansEndpoints:
    """Testes para /api/v1/loans."""

    @pytest.mark.anyio
    async def test_create_loan(self, client: AsyncClient, borrower, book_copy):
        response = await client.post(
            "/api/v1/loans",
            json={"borrowerId": borrower.id, "copyId": book_copy.id},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["borrower_id"] == borrower.id
        assert data["book_copy_id"] == book_copy.id
        assert data["returned_at"] is None

    @pytest.mark.anyio
    async def test_create_loan_accepts_snake_case(self, client: AsyncClient, borrower, book_copy):
        response = await client.post(
            "/api/v1/loans",
            json={"borrower_id": borrower.id, "copy_id": book_copy.id},
        )

        assert response.status_code == 201

    @pytest.mark.anyio
    async def test_create_loan_missing_field(self, client: AsyncClient, borrower):
        response = await client.post("/api/v1/loans", json={"borrowerId": borrower.id})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["type"] == "VALIDATION_ERROR"
        assert error["category"] == "validation"
        assert any(field["field"] == "copyId" for field in error["fields"])

    @pytest.mark.anyio
    async def test_create_loan_empty_id(self, client: AsyncClient, book_copy):
        response = await client.post("/api/v1/loans", json={"borrowerId": "  ", "copyId": book_copy.id})

        assert response.status_code == 400

    @pytest.mark.anyio
    async def test_create_loan_limit_exceeded(self, client: AsyncClient, store, title):
        limited = store.seed_borrower("Carla", loan_limit=1)
        first = store.seed_copy(title.id)
        second = store.seed_copy(title.id)
        await client.post("/api/v1/loans", json={"borrowerId": limited.id, "copyId": first.id})

        response = await client.post("/api/v1/loans", json={"borrowerId": limited.id, "copyId": second.id})

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["type"] == "LOAN_LIMIT_EXCEEDED"
        assert error["limit"] == 1
        assert error["current_count"] == 1

    @pytest.mark.anyio
    async def test_create_loan_unknown_copy(self, client: AsyncClient, borrower):
        response = await client.post("/api/v1/loans", json={"borrowerId": borrower.id, "copyId": "x"})

        assert response.status_code == 404
        assert response.json()["error"]["type"] == "COPY_NOT_FOUND"

    @pytest.mark.anyio
    async def test_get_and_return_loan(self, client: AsyncClient, clock, borrower, book_copy):
        created = await client.post(
            "/api/v1/loans",
            json={"borrowerId": borrower.id, "copyId": book_copy.id},
        )
        loan_id = created.json()["id"]

        fetched = await client.get(f"/api/v1/loans/{loan_id}")
        clock.advance(days=15)
        returned = await client.post(f"/api/v1/loans/{loan_id}/return")
        again = await client.post(f"/api/v1/loans/{loan_id}/return")

        assert fetched.status_code == 200
        assert fetched.json()["id"] == loan_id
        assert returned.status_code == 200
        assert returned.json()["is_overdue"] is True
        assert returned.json()["overdue_days"] == 1
        assert again.status_code == 409
        assert again.json()["error"]["type"] == "ALREADY_RETURNED"

    @pytest.mark.anyio
    async def test_return_on_time_omits_overdue_days(self, client: AsyncClient, borrower, book_copy):
        created = await client.post(
            "/api/v1/loans",
            json={"borrowerId": borrower.id, "copyId": book_copy.id},
        )

        response = await client.post(f"/api/v1/loans/{created.json()['id']}/return")

        assert response.json()["is_overdue"] is False
        assert "overdue_days" not in response.json()

    @pytest.mark.anyio
    async def test_get_unknown_loan(self, client: AsyncClient):
        response = await client.get("/api/v1/loans/inexistente")

        assert response.status_code == 404
        assert response.json()["error"]["type"] == "LOAN_NOT_FOUND"

    @pytest.mark.anyio
    async def test_persistence_unavailable(self, client: AsyncClient, store, borrower, book_copy):
        store.unavailable = True

        response = await client.post(
            "/api/v1/loans",
            json={"borrowerId": borrower.id, "copyId": book_copy.id},
        )

        assert response.status_code == 503
        error = response.json()["error"]
        assert error["type"] == "PERSISTENCE_UNAVAILABLE"
        assert error["category"] == "infrastructure"
        assert "correlation_id" in error


# ==========================================
# Reservations
# ==========================================

class TestReservationsEndpoints:
    """Testes para /api/v1/reservations e filas por título."""

    @pytest.mark.anyio
    async def test_reserve_when_available_is_refused(self, client: AsyncClient, borrower, title, book_copy):
        response = await client.post(
            "/api/v1/reservations",
            json={"borrowerId": borrower.id, "titleId": title.id},
        )

        assert response.status_code == 409
        assert response.json()["error"]["type"] == "BOOK_AVAILABLE"

    @pytest.mark.anyio
    async def test_reservation_flow(self, client: AsyncClient, store, clock, borrower, other_borrower, title):
        copy = store.seed_copy(title.id, CopyStatus.BORROWED)

        first = await client.post("/api/v1/reservations", json={"borrowerId": borrower.id, "titleId": title.id})
        second = await client.post(
            "/api/v1/reservations",
            json={"borrowerId": other_borrower.id, "titleId": title.id},
        )
        duplicate = await client.post(
            "/api/v1/reservations",
            json={"borrowerId": borrower.id, "titleId": title.id},
        )

        assert first.status_code == 201
        assert first.json()["queue_position"] == 1
        assert first.json()["status"] == "PENDING"
        assert second.json()["queue_position"] == 2
        assert duplicate.status_code == 409
        assert duplicate.json()["error"]["type"] == "ALREADY_RESERVED"

        await client.post(f"/api/v1/copies/{copy.id}/maintenance")
        await client.post(f"/api/v1/copies/{copy.id}/restore")
        promoted = await client.post(f"/api/v1/system/titles/{title.id}/process-queue")

        assert promoted.status_code == 200
        assert promoted.json()["reservation"]["id"] == first.json()["id"]
        assert promoted.json()["reservation"]["status"] == "NOTIFIED"
        assert promoted.json()["book_copy_id"] == copy.id

        queue = await client.get(f"/api/v1/titles/{title.id}/queue")
        assert [item["queue_position"] for item in queue.json()] == [1, 2]

        clock.advance(days=8)
        expired = await client.post("/api/v1/system/expire-reservations")
        assert expired.json()["expired_count"] == 1
        assert expired.json()["promoted_count"] == 1

        fetched = await client.get(f"/api/v1/reservations/{second.json()['id']}")
        assert fetched.json()["status"] == "NOTIFIED"
        assert fetched.json()["queue_position"] == 1

    @pytest.mark.anyio
    async def test_cancel(self, client: AsyncClient, store, borrower, title):
        store.seed_copy(title.id, CopyStatus.BORROWED)
        created = await client.post("/api/v1/reservations", json={"borrowerId": borrower.id, "titleId": title.id})
        reservation_id = created.json()["id"]

        cancelled = await client.post(f"/api/v1/reservations/{reservation_id}/cancel")
        again = await client.post(f"/api/v1/reservations/{reservation_id}/cancel")

        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "CANCELLED"
        assert again.status_code == 409
        assert again.json()["error"]["type"] == "RESERVATION_NOT_ACTIVE"

    @pytest.mark.anyio
    async def test_unknown_reservation(self, client: AsyncClient):
        response = await client.get("/api/v1/reservations/inexistente")

        assert response.status_code == 404
        assert response.json()["error"]["type"] == "RESERVATION_NOT_FOUND"

    @pytest.mark.anyio
    async def test_process_queue_nobody_waiting(self, client: AsyncClient, title, book_copy):
        response = await client.post(f"/api/v1/system/titles/{title.id}/process-queue")

        assert response.status_code == 200
        assert response.json() is None


# ==========================================
# Inventory
# ==========================================

class TestInventoryEndpoints:
    """Testes para /api/v1/copies e /api/v1/titles."""

    @pytest.mark.anyio
    async def test_register_and_get_copy(self, client: AsyncClient, title):
        created = await client.post("/api/v1/copies", json={"titleId": title.id, "location": "Estante 3"})
        fetched = await client.get(f"/api/v1/copies/{created.json()['id']}")

        assert created.status_code == 201
        assert created.json()["status"] == "AVAILABLE"
        assert fetched.json()["location"] == "Estante 3"

    @pytest.mark.anyio
    async def test_register_copy_unknown_title(self, client: AsyncClient):
        response = await client.post("/api/v1/copies", json={"titleId": "inexistente"})

        assert response.status_code == 404
        assert response.json()["error"]["type"] == "TITLE_NOT_FOUND"

    @pytest.mark.anyio
    async def test_invalid_transition(self, client: AsyncClient, book_copy):
        response = await client.post(f"/api/v1/copies/{book_copy.id}/restore")

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["type"] == "INVALID_TRANSITION"
        assert error["current_status"] == "AVAILABLE"

    @pytest.mark.anyio
    async def test_status_counts(self, client: AsyncClient, store, title):
        store.seed_copy(title.id, CopyStatus.AVAILABLE)
        store.seed_copy(title.id, CopyStatus.BORROWED)

        response = await client.get(f"/api/v1/titles/{title.id}/copies/status")

        assert response.json() == {
            "total": 2,
            "available": 1,
            "borrowed": 1,
            "reserved": 0,
            "maintenance": 0,
        }

    @pytest.mark.anyio
    async def test_loan_status(self, client: AsyncClient, borrower, book_copy):
        await client.post("/api/v1/loans", json={"borrowerId": borrower.id, "copyId": book_copy.id})

        single = await client.get(f"/api/v1/copies/{book_copy.id}/loan-status")
        bulk = await client.post("/api/v1/copies/loan-status", json={"copyIds": [book_copy.id, "outra"]})

        assert single.json()["is_borrowed"] is True
        assert bulk.status_code == 200
        assert bulk.json()[book_copy.id]["is_borrowed"] is True
        assert bulk.json()["outra"]["is_borrowed"] is False

    @pytest.mark.anyio
    async def test_bulk_loan_status_requires_ids(self, client: AsyncClient):
        response = await client.post("/api/v1/copies/loan-status", json={"copyIds": []})

        assert response.status_code == 400


# ==========================================
# Notifications / System
# ==========================================

class TestNotificationEndpoints:
    """Testes para /api/v1/notifications e /api/v1/system."""

    @pytest.mark.anyio
    async def test_overdue_reminders_and_job_status(self, client: AsyncClient, services, clock, borrower, book_copy):
        await client.post("/api/v1/loans", json={"borrowerId": borrower.id, "copyId": book_copy.id})
        clock.advance(days=15)

        response = await client.post("/api/v1/system/overdue-reminders")

        assert response.status_code == 200
        assert response.json()["enqueued"] == 1

        job = services.queue.enqueued[0]
        status = await client.get(f"/api/v1/notifications/jobs/{job.id}")
        assert status.json()["status"] == "PENDING"

        await services.dispatcher.drain()

        status = await client.get(f"/api/v1/notifications/jobs/{job.id}")
        history = await client.get(f"/api/v1/notifications/borrowers/{borrower.id}/history")
        assert status.json()["status"] == "COMPLETED"
        assert len(history.json()) == 1
        assert history.json()[0]["success"] is True
        assert history.json()[0]["recipient"] == borrower.email

    @pytest.mark.anyio
    async def test_unknown_job(self, client: AsyncClient):
        response = await client.get("/api/v1/notifications/jobs/inexistente")

        assert response.status_code == 404
        assert response.json()["error"]["type"] == "JOB_NOT_FOUND"

    @pytest.mark.anyio
    async def test_queue_unavailable(self, client: AsyncClient, services):
        services.queue.unavailable = True

        response = await client.get("/api/v1/notifications/jobs/qualquer")

        assert response.status_code == 503
        assert response.json()["error"]["type"] == "QUEUE_ERROR"


@pytest.mark.anyio
async def test_services_not_initialized():
    """Sem startup (e sem override), os endpoints respondem 503."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get("/api/v1/loans/qualquer")

    assert response.status_code == 503
