"""create transactions table

Revision ID: 003
Revises: 002
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = "003"
down_revision = "002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    transactionstatus = sa.Enum(
        "PENDING", "PROCESSING", "COMPLETED", "FAILED", "CANCELLED",
        name="transactionstatus",
    )
    transactionstatus.create(op.get_bind(), checkfirst=True)

    risklevel = sa.Enum("LOW", "NORMAL", "HIGH", "CRITICAL", name="risklevel")
    risklevel.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "transactions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("reference", sa.String(16), unique=True, index=True, nullable=False),
        sa.Column(
            "user_id", UUID(as_uuid=True),
            sa.ForeignKey("users.id"), index=True, nullable=False,
        ),
        sa.Column(
            "beneficiary_id", UUID(as_uuid=True),
            sa.ForeignKey("beneficiaries.id"), index=True, nullable=False,
        ),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.String(3), server_default="INR", nullable=False),
        sa.Column("exchange_rate", sa.Numeric(12, 6), nullable=False),
        sa.Column("fee", sa.Numeric(18, 2), nullable=False),
        sa.Column("recipient_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("purpose", sa.String(255), nullable=True),
        sa.Column("status", transactionstatus, server_default="PENDING", nullable=False),
        sa.Column("risk_level", risklevel, server_default="LOW", nullable=False),
        sa.Column("risk_flags", JSONB, server_default="[]", nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        sa.CheckConstraint("exchange_rate > 0", name="ck_transactions_rate_positive"),
    )
    op.create_index("ix_transactions_status", "transactions", ["status"])
    op.create_index("ix_transactions_created_at", "transactions", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_transactions_created_at", table_name="transactions")
    op.drop_index("ix_transactions_status", table_name="transactions")
    op.drop_table("transactions")
    sa.Enum(name="risklevel").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="transactionstatus").drop(op.get_bind(), checkfirst=True)
