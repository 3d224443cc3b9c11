"""
Tipo Result para retornos de operações de domínio.

As operações do núcleo de circulação nunca levantam exceções para
resultados esperados (livro indisponível, limite excedido, etc.).
Em vez disso retornam Ok(valor) ou Err(erro), e quem chama decide
o que fazer com cada caso.

Uso:
    result = await loan_manager.create_loan(borrower_id, copy_id)
    match result:
        case Ok(loan):
            ...
        case Err(error):
            ...
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Variante de sucesso carregando o valor produzido."""
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Variante de falha carregando o erro tipado."""
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self):
        raise ValueError(f"unwrap() chamado em Err: {self.error!r}")


Result = Union[Ok[T], Err[E]]
