"""
Dependencies FastAPI para acesso aos services de circulação.

Os services são montados no startup (lifespan) e guardados em
app.state.services. Nos testes, get_services é sobrescrito via
app.dependency_overrides com services em memória.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from circulation.services.container import CirculationServices
from circulation.services.inventory import InventoryLedger
from circulation.services.loan import LoanManager
from circulation.services.notification import NotificationDispatcher
from circulation.services.reservation import ReservationQueue


def get_services(request: Request) -> CirculationServices:
    """
    Dependency que retorna os services da aplicação.

    Raises:
        HTTPException 503: Aplicação ainda não terminou o startup
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Serviços de circulação não inicializados",
        )
    return services


Services = Annotated[CirculationServices, Depends(get_services)]


def get_loan_manager(services: Services) -> LoanManager:
    return services.loans


def get_reservation_queue(services: Services) -> ReservationQueue:
    return services.reservations


def get_ledger(services: Services) -> InventoryLedger:
    return services.ledger


def get_dispatcher(services: Services) -> NotificationDispatcher:
    return services.dispatcher


# Type aliases para uso nos endpoints
Loans = Annotated[LoanManager, Depends(get_loan_manager)]
Reservations = Annotated[ReservationQueue, Depends(get_reservation_queue)]
Ledger = Annotated[InventoryLedger, Depends(get_ledger)]
Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
