"""
Model de leitor (borrower).

O cadastro completo de usuários vive fora do núcleo de circulação; aqui
ficam apenas os campos que a circulação consulta.
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from circulation.db.session import Base
from circulation.models.base import UUIDMixin, TimestampMixin

DEFAULT_LOAN_LIMIT = 5


class Borrower(Base, UUIDMixin, TimestampMixin):
    """
    Leitor habilitado a emprestar e reservar livros.

    Attributes:
        id: UUID único do leitor
        name: Nome completo
        email: Endereço usado nas notificações
        loan_limit: Máximo de empréstimos abertos simultâneos
    """
    __tablename__ = "borrowers"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    loan_limit: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_LOAN_LIMIT,
    )

    def __repr__(self) -> str:
        return f"<Borrower {self.email}>"
