"""
Testes para o endpoint de healthcheck.
"""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient, ASGITransport

from circulation.main import app


@pytest.fixture
async def health_client():
    """Cliente HTTP sem services (o /health não depende deles)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def patch_checks(database_ok: bool = True, redis_ok: bool = True):
    database_error = None if database_ok else "connection refused"
    return (
        patch(
            "circulation.main.check_database_connection",
            AsyncMock(return_value=(database_ok, database_error)),
        ),
        patch("circulation.main.check_redis_connection", AsyncMock(return_value=redis_ok)),
    )


@pytest.mark.anyio
async def test_health_check_returns_healthy_status(health_client: AsyncClient):
    """Com PostgreSQL e Redis respondendo, o status é 'healthy'."""
    database_patch, redis_patch = patch_checks()
    with database_patch, redis_patch:
        response = await health_client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] is True
    assert data["redis"] is True


@pytest.mark.anyio
async def test_health_check_returns_app_info(health_client: AsyncClient):
    """Verifica se o endpoint /health retorna informações da aplicação."""
    database_patch, redis_patch = patch_checks()
    with database_patch, redis_patch:
        response = await health_client.get("/health")

    data = response.json()
    assert data["app_name"] == "Circulation API"
    assert "environment" in data


@pytest.mark.anyio
async def test_health_check_degraded_without_redis(health_client: AsyncClient):
    database_patch, redis_patch = patch_checks(redis_ok=False)
    with database_patch, redis_patch:
        response = await health_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["redis"] is False


@pytest.mark.anyio
async def test_health_check_degraded_without_database(health_client: AsyncClient):
    database_patch, redis_patch = patch_checks(database_ok=False)
    with database_patch, redis_patch:
        response = await health_client.get("/health")

    assert response.json()["status"] == "degraded"
    assert response.json()["database"] is False
