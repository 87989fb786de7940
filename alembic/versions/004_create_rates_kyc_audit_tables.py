"""create exchange_rates, kyc_documents and audit_logs tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = "004"
down_revision = "003"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "exchange_rates",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("from_currency", sa.String(3), nullable=False),
        sa.Column("to_currency", sa.String(3), nullable=False),
        sa.Column("rate", sa.Numeric(12, 6), nullable=False),
        sa.Column("source", sa.String(32), server_default="mock", nullable=False),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.UniqueConstraint("from_currency", "to_currency", name="uq_exchange_rates_pair"),
        sa.CheckConstraint("rate > 0", name="ck_exchange_rates_rate_positive"),
    )

    documenttype = sa.Enum(
        "GOVERNMENT_ID", "PROOF_OF_ADDRESS", "BANK_STATEMENT", "OTHER",
        name="documenttype",
    )
    documenttype.create(op.get_bind(), checkfirst=True)

    documentstatus = sa.Enum("PENDING", "APPROVED", "REJECTED", name="documentstatus")
    documentstatus.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "kyc_documents",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id", UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False,
        ),
        sa.Column("type", documenttype, nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_path", sa.String(500), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("status", documentstatus, server_default="PENDING", nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.CheckConstraint("file_size > 0", name="ck_kyc_documents_size_positive"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id", UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True,
        ),
        sa.Column("action", sa.String(64), index=True, nullable=False),
        sa.Column("resource", sa.String(64), nullable=False),
        sa.Column("details", JSONB, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("kyc_documents")
    sa.Enum(name="documentstatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="documenttype").drop(op.get_bind(), checkfirst=True)
    op.drop_table("exchange_rates")
