"""
Testes unitários para IDs, Result e taxonomia de erros.
"""

import logging
import uuid

import pytest
from pydantic import BaseModel, ValidationError

from circulation.core.errors import (
    DomainError,
    ErrorCategory,
    ErrorKind,
    PersistenceUnavailable,
    guard_persistence,
    infrastructure_error,
)
from circulation.core.ids import BorrowerId, CopyId, TitleId
from circulation.core.result import Err, Ok


# ==========================================
# IDs
# ==========================================

class TestEntityId:
    """Testes para os tipos de identificador."""

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            CopyId("   ")

    def test_rejects_non_string(self):
        with pytest.raises(TypeError):
            CopyId(42)

    def test_accepts_uuid(self):
        value = uuid.uuid4()
        assert CopyId(value) == str(value)

    def test_strips_whitespace(self):
        assert TitleId("  abc ") == "abc"

    def test_generate_is_unique(self):
        assert BorrowerId.generate() != BorrowerId.generate()

    def test_repr_shows_type(self):
        assert repr(CopyId("abc")) == "CopyId('abc')"

    def test_pydantic_field_validation(self):
        class Body(BaseModel):
            copy_id: CopyId

        assert isinstance(Body(copy_id="abc").copy_id, CopyId)

        with pytest.raises(ValidationError):
            Body(copy_id="")
        with pytest.raises(ValidationError):
            Body(copy_id=123)

    def test_pydantic_serializes_as_string(self):
        class Body(BaseModel):
            copy_id: CopyId

        assert Body(copy_id="abc").model_dump(mode="json") == {"copy_id": "abc"}


# ==========================================
# Result
# ==========================================

class TestResult:
    """Testes para Ok/Err."""

    def test_ok(self):
        result = Ok(10)
        assert result.is_ok()
        assert not result.is_err()
        assert result.unwrap() == 10

    def test_err(self):
        error = DomainError(ErrorKind.COPY_NOT_FOUND, "Cópia não encontrada")
        result = Err(error)
        assert result.is_err()
        with pytest.raises(ValueError):
            result.unwrap()

    def test_pattern_matching(self):
        match Ok("loan"):
            case Ok(value):
                assert value == "loan"
            case Err():
                pytest.fail("esperado Ok")


# ==========================================
# DomainError
# ==========================================

class TestDomainError:
    """Testes para categorias, status HTTP e serialização."""

    @pytest.mark.parametrize(
        "kind, category, http_status",
        [
            (ErrorKind.VALIDATION_ERROR, ErrorCategory.VALIDATION, 400),
            (ErrorKind.BORROWER_NOT_FOUND, ErrorCategory.NOT_FOUND, 404),
            (ErrorKind.JOB_NOT_FOUND, ErrorCategory.NOT_FOUND, 404),
            (ErrorKind.LOAN_LIMIT_EXCEEDED, ErrorCategory.CONFLICT, 409),
            (ErrorKind.BOOK_AVAILABLE, ErrorCategory.CONFLICT, 409),
            (ErrorKind.QUEUE_ERROR, ErrorCategory.INFRASTRUCTURE, 503),
            (ErrorKind.PERSISTENCE_UNAVAILABLE, ErrorCategory.INFRASTRUCTURE, 503),
            (ErrorKind.SEND_ERROR, ErrorCategory.DELIVERY, 502),
        ],
    )
    def test_category_and_status(self, kind, category, http_status):
        error = DomainError(kind, "msg")
        assert error.category == category
        assert error.http_status == http_status

    def test_every_kind_has_category(self):
        for kind in ErrorKind:
            assert DomainError(kind, "msg").category in ErrorCategory

    def test_to_dict_flattens_context(self):
        error = DomainError(
            ErrorKind.LOAN_LIMIT_EXCEEDED,
            "Limite atingido",
            {"limit": 5, "current_count": 5},
        )
        assert error.to_dict() == {
            "type": "LOAN_LIMIT_EXCEEDED",
            "category": "conflict",
            "message": "Limite atingido",
            "limit": 5,
            "current_count": 5,
        }

    def test_infrastructure_error_hides_details(self, caplog):
        logger = logging.getLogger("tests.errors")
        with caplog.at_level(logging.ERROR, logger="tests.errors"):
            error = infrastructure_error(RuntimeError("senha=segredo"), logger)

        assert error.kind == ErrorKind.PERSISTENCE_UNAVAILABLE
        assert "segredo" not in error.message
        correlation_id = error.context["correlation_id"]
        assert correlation_id in caplog.text

    @pytest.mark.anyio
    async def test_guard_persistence_converts_exception(self):
        @guard_persistence
        async def operation():
            raise PersistenceUnavailable("conexão recusada")

        result = await operation()

        assert result.is_err()
        assert result.error.kind == ErrorKind.PERSISTENCE_UNAVAILABLE
        assert "correlation_id" in result.error.context

    @pytest.mark.anyio
    async def test_guard_persistence_passes_results_through(self):
        @guard_persistence
        async def operation():
            return Ok(1)

        assert await operation() == Ok(1)
