"""
Relógio da aplicação.

Os services recebem o relógio por injeção (parâmetro clock) para que os
testes possam avançar o tempo sem patch global.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Momento atual em UTC, sempre com timezone."""
    return datetime.now(timezone.utc)
