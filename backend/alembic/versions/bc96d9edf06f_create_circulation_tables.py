"""
Create circulation tables

Tabelas: borrowers, book_titles, book_copies, loans, overdue_records,
reservations e notification_history.

A FK book_copies.hold_reservation_id -> reservations.id fica para a
revisão seguinte (book_copies é criada antes de reservations).

Revision ID: bc96d9edf06f
Revises:
Create Date: 2026-01-12 21:40:12.318204
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "bc96d9edf06f"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

copy_status = sa.Enum("AVAILABLE", "BORROWED", "RESERVED", "MAINTENANCE", name="copy_status")
reservation_status = sa.Enum(
    "PENDING", "NOTIFIED", "FULFILLED", "EXPIRED", "CANCELLED",
    name="reservation_status",
)
notification_type = sa.Enum("RESERVATION_AVAILABLE", "OVERDUE_REMINDER", name="notification_type")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "borrowers",
        sa.Column("id", sa.Uuid(as_uuid=False), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("loan_limit", sa.Integer(), nullable=False, server_default="5"),
        *_timestamps(),
    )
    op.create_index("ix_borrowers_email", "borrowers", ["email"], unique=True)

    op.create_table(
        "book_titles",
        sa.Column("id", sa.Uuid(as_uuid=False), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("author", sa.String(300), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "book_copies",
        sa.Column("id", sa.Uuid(as_uuid=False), primary_key=True),
        sa.Column(
            "book_title_id",
            sa.Uuid(as_uuid=False),
            sa.ForeignKey("book_titles.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("location", sa.String(100), nullable=False, server_default=""),
        sa.Column("status", copy_status, nullable=False, server_default="AVAILABLE"),
        sa.Column("hold_reservation_id", sa.Uuid(as_uuid=False), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_book_copies_book_title_id", "book_copies", ["book_title_id"])
    op.create_index("ix_book_copies_status", "book_copies", ["status"])
    op.create_index("ix_book_copies_title_status", "book_copies", ["book_title_id", "status"])

    op.create_table(
        "loans",
        sa.Column("id", sa.Uuid(as_uuid=False), primary_key=True),
        sa.Column(
            "borrower_id",
            sa.Uuid(as_uuid=False),
            sa.ForeignKey("borrowers.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "book_copy_id",
            sa.Uuid(as_uuid=False),
            sa.ForeignKey("book_copies.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("borrowed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("returned_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_loans_borrower_id", "loans", ["borrower_id"])
    op.create_index("ix_loans_book_copy_id", "loans", ["book_copy_id"])
    op.create_index("ix_loans_borrower_open", "loans", ["borrower_id", "returned_at"])
    op.create_index("ix_loans_overdue", "loans", ["due_at", "returned_at"])
    op.create_index(
        "uq_loans_open_copy",
        "loans",
        ["book_copy_id"],
        unique=True,
        postgresql_where=sa.text("returned_at IS NULL"),
    )

    op.create_table(
        "overdue_records",
        sa.Column("id", sa.Uuid(as_uuid=False), primary_key=True),
        sa.Column(
            "loan_id",
            sa.Uuid(as_uuid=False),
            sa.ForeignKey("loans.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("overdue_days", sa.Integer(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_overdue_records_loan_id", "overdue_records", ["loan_id"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.Uuid(as_uuid=False), primary_key=True),
        sa.Column(
            "borrower_id",
            sa.Uuid(as_uuid=False),
            sa.ForeignKey("borrowers.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "book_title_id",
            sa.Uuid(as_uuid=False),
            sa.ForeignKey("book_titles.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("reserved_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", reservation_status, nullable=False, server_default="PENDING"),
        sa.Column("queue_position", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_reservations_borrower_id", "reservations", ["borrower_id"])
    op.create_index(
        "ix_reservations_title_queue",
        "reservations",
        ["book_title_id", "status", "queue_position"],
    )
    op.create_index("ix_reservations_expires", "reservations", ["status", "expires_at"])
    op.create_index(
        "uq_reservations_borrower_title_active",
        "reservations",
        ["borrower_id", "book_title_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('PENDING', 'NOTIFIED')"),
    )

    op.create_table(
        "notification_history",
        sa.Column("id", sa.Uuid(as_uuid=False), primary_key=True),
        sa.Column("job_id", sa.String(64), nullable=False),
        sa.Column("job_type", notification_type, nullable=False),
        sa.Column("borrower_id", sa.String(64), nullable=False),
        sa.Column("subject_id", sa.String(64), nullable=False),
        sa.Column("recipient", sa.String(255), nullable=True),
        sa.Column("subject", sa.String(500), nullable=True),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_notification_history_job_id", "notification_history", ["job_id"])
    op.create_index("ix_notification_history_borrower", "notification_history", ["borrower_id", "sent_at"])


def downgrade() -> None:
    op.drop_table("notification_history")
    op.drop_table("reservations")
    op.drop_table("overdue_records")
    op.drop_table("loans")
    op.drop_table("book_copies")
    op.drop_table("book_titles")
    op.drop_table("borrowers")

    bind = op.get_bind()
    notification_type.drop(bind, checkfirst=True)
    reservation_status.drop(bind, checkfirst=True)
    copy_status.drop(bind, checkfirst=True)
