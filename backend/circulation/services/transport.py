"""
Transportes de saída das notificações.

- WebhookTransport: POST JSON para o gateway de envio (httpx)
- LoggingTransport: apenas registra a mensagem no log (desenvolvimento)

Um transporte nunca levanta exceção: falhas viram Err(SEND_ERROR) e o
dispatcher decide se tenta de novo.
"""

from typing import Protocol

import httpx

from circulation.core.errors import DomainError, ErrorKind
from circulation.core.logging import get_logger
from circulation.core.result import Err, Ok, Result
from circulation.schemas.notification import OutboundMessage

logger = get_logger(__name__)


class Transport(Protocol):
    async def send(self, message: OutboundMessage) -> Result[None, DomainError]: ...


class WebhookTransport:
    """
    Entrega mensagens via HTTP POST.

    Args:
        url: Endpoint do gateway (ex.: serviço de email)
        timeout: Timeout por requisição em segundos
        client: httpx.AsyncClient compartilhado (opcional; útil nos testes
            com httpx.MockTransport)
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def send(self, message: OutboundMessage) -> Result[None, DomainError]:
        try:
            response = await self.client.post(self.url, json=message.model_dump(mode="json"))
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            return Err(DomainError(
                ErrorKind.SEND_ERROR,
                f"Gateway respondeu {exc.response.status_code}",
                {"status_code": exc.response.status_code},
            ))
        except httpx.HTTPError as exc:
            return Err(DomainError(
                ErrorKind.SEND_ERROR,
                f"Falha ao contatar gateway: {exc.__class__.__name__}",
            ))
        return Ok(None)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


class LoggingTransport:
    """Transporte que só escreve a mensagem no log (nada fica guardado)."""

    async def send(self, message: OutboundMessage) -> Result[None, DomainError]:
        logger.info(f"[notificação] para={message.to} assunto={message.subject!r}")
        return Ok(None)

    async def aclose(self) -> None:
        return None
