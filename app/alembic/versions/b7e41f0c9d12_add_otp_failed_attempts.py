"""Add failed_attempts to otp_confirmations

Revision ID: b7e41f0c9d12
Revises: a1c0d2e3f401
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "b7e41f0c9d12"
down_revision = "a1c0d2e3f401"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "otp_confirmations",
        sa.Column("failed_attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )


def downgrade() -> None:
    op.drop_column("otp_confirmations", "failed_attempts")
