"""
Service do inventário: máquina de estados de disponibilidade das cópias.

Transições permitidas:
    AVAILABLE   -> BORROWED     (empréstimo)
    BORROWED    -> AVAILABLE    (devolução)
    AVAILABLE   -> RESERVED     (promoção da fila de reservas)
    RESERVED    -> BORROWED     (reserva retirada)
    RESERVED    -> AVAILABLE    (reserva expirada/cancelada sem fila)
    qualquer    -> MAINTENANCE  (administrativo)
    MAINTENANCE -> AVAILABLE    (administrativo)

Toda troca de status é um único UPDATE condicional contra o status
persistido; nunca "ler, decidir em memória e gravar".
"""

from circulation.core.errors import DomainError, ErrorKind, guard_persistence
from circulation.core.ids import CopyId, ReservationId, TitleId
from circulation.core.logging import get_logger
from circulation.core.result import Err, Ok, Result
from circulation.models.enums import CopyStatus
from circulation.repositories.interfaces import UnitOfWork, UnitOfWorkFactory
from circulation.schemas.book import CopyRead, CopyStatusCounts

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[CopyStatus, frozenset[CopyStatus]] = {
    CopyStatus.BORROWED: frozenset({CopyStatus.AVAILABLE, CopyStatus.RESERVED}),
    CopyStatus.AVAILABLE: frozenset({CopyStatus.BORROWED, CopyStatus.RESERVED, CopyStatus.MAINTENANCE}),
    CopyStatus.RESERVED: frozenset({CopyStatus.AVAILABLE}),
    CopyStatus.MAINTENANCE: frozenset({CopyStatus.AVAILABLE, CopyStatus.BORROWED, CopyStatus.RESERVED}),
}
"""Para cada status de destino, os status de origem aceitos."""


def is_allowed(source: CopyStatus, target: CopyStatus) -> bool:
    """Verifica se a aresta source -> target existe na máquina de estados."""
    return source in ALLOWED_TRANSITIONS[target]


class InventoryLedger:
    """
    Autoridade única sobre o status das cópias.

    Os métodos públicos abrem a própria transação. LoanManager e
    ReservationQueue usam apply() dentro da transação deles.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self.uow_factory = uow_factory

    # ==========================================
    # Transição (dentro de uma transação existente)
    # ==========================================

    async def apply(
        self,
        uow: UnitOfWork,
        copy_id: CopyId,
        from_expected: CopyStatus | None,
        to: CopyStatus,
        hold_reservation_id: ReservationId | None = None,
        expected_hold: ReservationId | None = None,
    ) -> Result[CopyRead, DomainError]:
        """
        Troca o status da cópia de forma atômica.

        Args:
            uow: Unidade de trabalho corrente
            copy_id: Cópia a ser alterada
            from_expected: Status atual exigido (None = qualquer origem válida)
            to: Status de destino
            hold_reservation_id: Reserva para a qual a cópia fica separada
                (apenas quando to == RESERVED)
            expected_hold: Reserva para a qual a cópia precisa estar
                separada no momento da troca

        Returns:
            Ok(cópia atualizada) ou Err(NOT_FOUND | INVALID_TRANSITION)
        """
        sources = ALLOWED_TRANSITIONS[to]
        if from_expected is not None:
            sources = sources & {from_expected}

        updated = await uow.copies.compare_and_set_status(
            copy_id, sources, to, hold_reservation_id, expected_hold
        )
        if updated is not None:
            logger.debug(f"Cópia {copy_id}: -> {to.value}")
            return Ok(updated)

        current = await uow.copies.get(copy_id)
        if current is None:
            return Err(DomainError(
                ErrorKind.NOT_FOUND,
                "Cópia não encontrada",
                {"copy_id": str(copy_id)},
            ))

        expected = from_expected.value if from_expected else None
        logger.info(
            f"Transição recusada para cópia {copy_id}: "
            f"atual={current.status.value} esperado={expected} destino={to.value}"
        )
        return Err(DomainError(
            ErrorKind.INVALID_TRANSITION,
            f"Transição inválida: {current.status.value} -> {to.value}",
            {
                "copy_id": str(copy_id),
                "current_status": current.status.value,
                "expected_status": expected,
                "target_status": to.value,
            },
        ))

    # ==========================================
    # Operações públicas
    # ==========================================

    @guard_persistence
    async def transition(
        self,
        copy_id: CopyId,
        from_expected: CopyStatus | None,
        to: CopyStatus,
    ) -> Result[CopyRead, DomainError]:
        """Versão autônoma de apply(), em transação própria."""
        async with self.uow_factory() as uow:
            result = await self.apply(uow, copy_id, from_expected, to)
            if result.is_ok():
                await uow.commit()
            return result

    @guard_persistence
    async def get_copy(self, copy_id: CopyId) -> Result[CopyRead, DomainError]:
        """Busca uma cópia. Err(COPY_NOT_FOUND) se não existir."""
        async with self.uow_factory() as uow:
            copy = await uow.copies.get(copy_id)
        if copy is None:
            return Err(DomainError(
                ErrorKind.COPY_NOT_FOUND,
                "Cópia não encontrada",
                {"copy_id": str(copy_id)},
            ))
        return Ok(copy)

    @guard_persistence
    async def register_copy(
        self,
        title_id: TitleId,
        location: str = "",
    ) -> Result[CopyRead, DomainError]:
        """
        Cadastra uma nova cópia física de um título.

        Toda cópia nasce AVAILABLE.

        Raises:
            Err(TITLE_NOT_FOUND): Título inexistente
        """
        async with self.uow_factory() as uow:
            title = await uow.titles.get(title_id)
            if title is None:
                return Err(DomainError(
                    ErrorKind.TITLE_NOT_FOUND,
                    "Título não encontrado",
                    {"title_id": str(title_id)},
                ))

            copy = await uow.copies.add(CopyRead(
                id=CopyId.generate(),
                book_title_id=title.id,
                location=location,
                status=CopyStatus.AVAILABLE,
            ))
            await uow.commit()

        logger.info(f"Cópia {copy.id} cadastrada para o título {title.id}")
        return Ok(copy)

    async def send_to_maintenance(self, copy_id: CopyId) -> Result[CopyRead, DomainError]:
        """Retira a cópia de circulação (qualquer status -> MAINTENANCE)."""
        return await self.transition(copy_id, None, CopyStatus.MAINTENANCE)

    async def restore_from_maintenance(self, copy_id: CopyId) -> Result[CopyRead, DomainError]:
        """Devolve a cópia à circulação (MAINTENANCE -> AVAILABLE)."""
        return await self.transition(copy_id, CopyStatus.MAINTENANCE, CopyStatus.AVAILABLE)

    @guard_persistence
    async def count_by_status(self, title_id: TitleId) -> Result[CopyStatusCounts, DomainError]:
        """Contagem de cópias do título por status."""
        async with self.uow_factory() as uow:
            if await uow.titles.get(title_id) is None:
                return Err(DomainError(
                    ErrorKind.TITLE_NOT_FOUND,
                    "Título não encontrado",
                    {"title_id": str(title_id)},
                ))
            return Ok(await uow.copies.count_by_status(title_id))
