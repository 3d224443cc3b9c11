"""
Schemas base reutilizáveis em toda a aplicação.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Schema base com configurações padrão."""
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
    )


class RequestSchema(BaseModel):
    """
    Schema base para corpos de requisição.

    Aceita tanto camelCase (borrowerId) quanto snake_case (borrower_id).
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class ErrorResponse(BaseModel):
    """
    Resposta de erro padrão.

    Formato:
        {"error": {"type": "LOAN_LIMIT_EXCEEDED", "category": "conflict",
                   "message": "...", "limit": 5, "current_count": 5}}
    """
    error: dict[str, Any]
