"""
Tradução de resultados do núcleo para respostas HTTP.

Formato de erro:
    {"error": {"type": "...", "category": "...", "message": "...", ...contexto}}

Mapeamento de status:
    validation -> 400, not_found -> 404, conflict -> 409,
    infrastructure -> 503 (com correlation_id), delivery -> 502
"""

from typing import TypeVar

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from circulation.core.errors import DomainError, ErrorKind
from circulation.core.result import Result

T = TypeVar("T")


class DomainException(Exception):
    """Leva um DomainError do endpoint até o exception handler."""

    def __init__(self, error: DomainError):
        super().__init__(error.message)
        self.error = error


def unwrap(result: Result[T, DomainError]) -> T:
    """Retorna o valor de Ok ou levanta DomainException para Err."""
    if result.is_err():
        raise DomainException(result.error)
    return result.value


def error_response(error: DomainError) -> JSONResponse:
    return JSONResponse(
        status_code=error.http_status,
        content={"error": jsonable_encoder(error.to_dict())},
    )


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    return error_response(exc.error)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Campos ausentes ou malformados viram VALIDATION_ERROR (400)."""
    fields = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": {
            "type": ErrorKind.VALIDATION_ERROR.value,
            "category": "validation",
            "message": "Requisição inválida",
            "fields": fields,
        }},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
