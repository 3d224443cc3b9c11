"""
Taxonomia de erros do núcleo de circulação.

Categorias:
    - VALIDATION: entrada inválida (corrigível por quem chama, nunca repetida)
    - NOT_FOUND: entidade inexistente
    - CONFLICT: regra de negócio violada (determinística, não repetida)
    - INFRASTRUCTURE: fila ou banco indisponíveis (transitório)
    - DELIVERY: falha de envio de notificação (repetida pelo dispatcher)
"""

import enum
import functools
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from circulation.core.result import Err


class ErrorCategory(str, enum.Enum):
    """Categoria de um erro de domínio."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INFRASTRUCTURE = "infrastructure"
    DELIVERY = "delivery"


class ErrorKind(str, enum.Enum):
    """Tipo legível por máquina de um erro de domínio."""
    VALIDATION_ERROR = "VALIDATION_ERROR"

    NOT_FOUND = "NOT_FOUND"
    BORROWER_NOT_FOUND = "BORROWER_NOT_FOUND"
    COPY_NOT_FOUND = "COPY_NOT_FOUND"
    TITLE_NOT_FOUND = "TITLE_NOT_FOUND"
    LOAN_NOT_FOUND = "LOAN_NOT_FOUND"
    RESERVATION_NOT_FOUND = "RESERVATION_NOT_FOUND"
    JOB_NOT_FOUND = "JOB_NOT_FOUND"

    INVALID_TRANSITION = "INVALID_TRANSITION"
    BOOK_NOT_AVAILABLE = "BOOK_NOT_AVAILABLE"
    LOAN_LIMIT_EXCEEDED = "LOAN_LIMIT_EXCEEDED"
    ALREADY_RETURNED = "ALREADY_RETURNED"
    ALREADY_RESERVED = "ALREADY_RESERVED"
    BOOK_AVAILABLE = "BOOK_AVAILABLE"
    RESERVATION_NOT_ACTIVE = "RESERVATION_NOT_ACTIVE"

    QUEUE_ERROR = "QUEUE_ERROR"
    PERSISTENCE_UNAVAILABLE = "PERSISTENCE_UNAVAILABLE"

    SEND_ERROR = "SEND_ERROR"


_CATEGORIES: dict[ErrorKind, ErrorCategory] = {
    ErrorKind.VALIDATION_ERROR: ErrorCategory.VALIDATION,
    ErrorKind.NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.BORROWER_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.COPY_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.TITLE_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.LOAN_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.RESERVATION_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.JOB_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.INVALID_TRANSITION: ErrorCategory.CONFLICT,
    ErrorKind.BOOK_NOT_AVAILABLE: ErrorCategory.CONFLICT,
    ErrorKind.LOAN_LIMIT_EXCEEDED: ErrorCategory.CONFLICT,
    ErrorKind.ALREADY_RETURNED: ErrorCategory.CONFLICT,
    ErrorKind.ALREADY_RESERVED: ErrorCategory.CONFLICT,
    ErrorKind.BOOK_AVAILABLE: ErrorCategory.CONFLICT,
    ErrorKind.RESERVATION_NOT_ACTIVE: ErrorCategory.CONFLICT,
    ErrorKind.QUEUE_ERROR: ErrorCategory.INFRASTRUCTURE,
    ErrorKind.PERSISTENCE_UNAVAILABLE: ErrorCategory.INFRASTRUCTURE,
    ErrorKind.SEND_ERROR: ErrorCategory.DELIVERY,
}

_HTTP_STATUS: dict[ErrorCategory, int] = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.CONFLICT: 409,
    ErrorCategory.INFRASTRUCTURE: 503,
    ErrorCategory.DELIVERY: 502,
}


@dataclass(frozen=True)
class DomainError:
    """
    Erro de domínio retornado dentro de Err.

    Attributes:
        kind: Tipo do erro (ex.: LOAN_LIMIT_EXCEEDED)
        message: Mensagem para o usuário final
        context: Dados adicionais (ex.: {"limit": 5, "current_count": 5})
    """
    kind: ErrorKind
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self.kind]

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.category]

    def to_dict(self) -> dict[str, Any]:
        """Representação serializável usada nas respostas HTTP."""
        return {
            "type": self.kind.value,
            "category": self.category.value,
            "message": self.message,
            **{key: str(value) if isinstance(value, uuid.UUID) else value
               for key, value in self.context.items()},
        }


class PersistenceUnavailable(Exception):
    """Falha do banco de dados levantada pela unidade de trabalho."""


def infrastructure_error(
    exc: BaseException,
    logger: logging.Logger,
    kind: ErrorKind = ErrorKind.PERSISTENCE_UNAVAILABLE,
) -> DomainError:
    """
    Converte uma falha de infraestrutura em DomainError genérico.

    O detalhe interno vai apenas para o log, associado a um
    correlation_id que também é devolvido a quem chamou.
    """
    correlation_id = uuid.uuid4().hex
    logger.error(
        f"Falha de infraestrutura ({kind.value}) correlation_id={correlation_id}: {exc}",
        exc_info=exc,
    )
    return DomainError(
        kind,
        "Serviço temporariamente indisponível. Tente novamente.",
        {"correlation_id": correlation_id},
    )


class QueueUnavailable(Exception):
    """Falha da fila de jobs (Redis fora do ar, payload corrompido)."""


F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def guard_persistence(func: F) -> F:
    """
    Decorator para operações públicas dos services.

    Converte PersistenceUnavailable em Err(PERSISTENCE_UNAVAILABLE) com
    correlation_id, mantendo a regra de nunca levantar exceção pela
    fronteira do núcleo.
    """
    logger = logging.getLogger(func.__module__)

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PersistenceUnavailable as exc:
            return Err(infrastructure_error(exc, logger))

    return wrapper
