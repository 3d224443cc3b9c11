"""
Tipos de identificador por entidade.

Cada entidade tem seu próprio tipo de ID (subclasse de str) para que o
type checker acuse a troca de um CopyId por um TitleId, por exemplo.
A construção rejeita valores vazios.
"""

import uuid
from typing import Any

from pydantic import GetCoreSchemaHandler, GetJsonSchemaHandler
from pydantic.json_schema import JsonSchemaValue
from pydantic_core import core_schema


class EntityId(str):
    """Identificador opaco não vazio."""

    def __new__(cls, value: Any):
        if isinstance(value, uuid.UUID):
            value = str(value)
        if not isinstance(value, str):
            raise TypeError(f"{cls.__name__} deve ser str, recebido {type(value).__name__}")
        value = value.strip()
        if not value:
            raise ValueError(f"{cls.__name__} não pode ser vazio")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str.__repr__(self)})"

    @classmethod
    def generate(cls):
        """Gera um novo identificador aleatório (UUID4)."""
        return cls(str(uuid.uuid4()))

    @classmethod
    def __get_pydantic_core_schema__(
        cls,
        source_type: Any,
        handler: GetCoreSchemaHandler,
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.to_string_ser_schema(),
        )

    @classmethod
    def _validate(cls, value: Any):
        # Pydantic só converte ValueError em ValidationError
        try:
            return cls(value)
        except TypeError as exc:
            raise ValueError(str(exc)) from exc

    @classmethod
    def __get_pydantic_json_schema__(
        cls,
        schema: core_schema.CoreSchema,
        handler: GetJsonSchemaHandler,
    ) -> JsonSchemaValue:
        return {"type": "string", "minLength": 1}


class BorrowerId(EntityId):
    pass


class CopyId(EntityId):
    pass


class TitleId(EntityId):
    pass


class LoanId(EntityId):
    pass


class ReservationId(EntityId):
    pass


class JobId(EntityId):
    pass
