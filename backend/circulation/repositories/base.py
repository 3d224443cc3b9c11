"""
Repository base com operações genéricas.

Os repositories recebem a sessão da unidade de trabalho e nunca fazem
commit; quem decide o fim da transação é o service.
"""

import uuid
from typing import Any, Generic, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from circulation.db.session import Base

ModelType = TypeVar("ModelType", bound=Base)
SchemaType = TypeVar("SchemaType", bound=BaseModel)


def as_uuid_key(value: Any) -> str | None:
    """
    Normaliza um ID para comparação com colunas UUID.

    Retorna None quando o valor não é um UUID válido, o que equivale a
    "registro inexistente" para as buscas.
    """
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return None


class BaseRepository(Generic[ModelType, SchemaType]):
    """
    Repository base.

    Fornece métodos genéricos para:
    - get: Buscar por ID (retorna a entidade de domínio)
    - get_for_update: Buscar por ID travando a linha (SELECT ... FOR UPDATE)
    - add: Inserir registro

    As leituras usam populate_existing: dentro de uma transação, uma
    releitura depois de um lock enxerga o que outras transações gravaram.
    """

    def __init__(
        self,
        model: Type[ModelType],
        schema: Type[SchemaType],
        db: AsyncSession,
    ):
        self.model = model
        self.schema = schema
        self.db = db

    def _to_entity(self, instance: ModelType | None) -> SchemaType | None:
        if instance is None:
            return None
        return self.schema.model_validate(instance)

    async def get(self, id: Any) -> SchemaType | None:
        """Busca registro por ID."""
        key = as_uuid_key(id)
        if key is None:
            return None
        result = await self.db.execute(
            select(self.model)
            .where(self.model.id == key)
            .execution_options(populate_existing=True)
        )
        return self._to_entity(result.scalar_one_or_none())

    async def get_for_update(self, id: Any) -> SchemaType | None:
        """Busca registro por ID travando a linha até o fim da transação."""
        key = as_uuid_key(id)
        if key is None:
            return None
        result = await self.db.execute(
            select(self.model)
            .where(self.model.id == key)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._to_entity(result.scalar_one_or_none())

    async def add(self, entity: SchemaType) -> SchemaType:
        """Insere novo registro a partir da entidade de domínio."""
        instance = self.model(**entity.model_dump())
        self.db.add(instance)
        await self.db.flush()
        return entity

