"""
Add FK constraint: book_copies.hold_reservation_id -> reservations.id

Uma cópia RESERVED aponta, via hold_reservation_id, para a reserva NOTIFIED
para a qual foi separada. Com ON DELETE SET NULL a referência some junto
com a reserva, e a cópia pode ser liberada pelo ledger.

Revision ID: 14c01f1ca940
Revises: bc96d9edf06f
Create Date: 2026-01-12 22:16:06.727989
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "14c01f1ca940"
down_revision: Union[str, Sequence[str], None] = "bc96d9edf06f"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CONSTRAINT_NAME = "fk_book_copies_hold_reservation_id"


def upgrade() -> None:
    op.create_foreign_key(
        constraint_name=CONSTRAINT_NAME,
        source_table="book_copies",
        referent_table="reservations",
        local_cols=["hold_reservation_id"],
        remote_cols=["id"],
        ondelete="SET NULL",
    )
    op.create_index(
        "ix_book_copies_hold_reservation_id",
        "book_copies",
        ["hold_reservation_id"],
        postgresql_where=sa.text("hold_reservation_id IS NOT NULL"),
    )


def downgrade() -> None:
    op.drop_index("ix_book_copies_hold_reservation_id", table_name="book_copies")
    op.drop_constraint(
        constraint_name=CONSTRAINT_NAME,
        table_name="book_copies",
        type_="foreignkey",
    )
