"""
Models de livros: BookTitle (título) e BookCopy (cópia física).
"""

from typing import Optional

from sqlalchemy import ForeignKey, Index, String, Uuid, Enum as SQLEnum, text
from sqlalchemy.orm import Mapped, mapped_column

from circulation.db.session import Base
from circulation.models.base import UUIDMixin, TimestampMixin
from circulation.models.enums import CopyStatus


class BookTitle(Base, UUIDMixin, TimestampMixin):
    """
    Título de um livro (obra).

    Um título pode ter múltiplas cópias físicas (BookCopy). As reservas
    são feitas contra o título, não contra uma cópia.

    Attributes:
        id: UUID único do título
        title: Título do livro
        author: Autor (texto livre, catálogo completo fica fora da circulação)
    """
    __tablename__ = "book_titles"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)

    def __repr__(self) -> str:
        return f"<BookTitle {self.title}>"


class BookCopy(Base, UUIDMixin, TimestampMixin):
    """
    Cópia física de um livro.

    O campo status é a única fonte de verdade sobre a possibilidade de
    emprestar a cópia, e só é alterado pelo InventoryLedger.

    Attributes:
        id: UUID único da cópia
        book_title_id: FK para o título do livro
        location: Estante/setor onde a cópia fica
        status: AVAILABLE, BORROWED, RESERVED ou MAINTENANCE
        hold_reservation_id: Reserva NOTIFIED para a qual a cópia está separada
    """
    __tablename__ = "book_copies"

    book_title_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("book_titles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    location: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    status: Mapped[CopyStatus] = mapped_column(
        SQLEnum(CopyStatus, name="copy_status"),
        nullable=False,
        default=CopyStatus.AVAILABLE,
        index=True,
    )
    hold_reservation_id: Mapped[Optional[str]] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey(
            "reservations.id",
            ondelete="SET NULL",
            use_alter=True,
            name="fk_book_copies_hold_reservation_id",
        ),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_book_copies_title_status", "book_title_id", "status"),
        # Localiza a cópia separada para uma reserva
        Index(
            "ix_book_copies_hold_reservation_id",
            "hold_reservation_id",
            postgresql_where=text("hold_reservation_id IS NOT NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<BookCopy {self.id} - {self.status.value}>"
