"""pricing: property rates and booking totals

Revision ID: 20260315_0002
Revises: 20260301_0001
Create Date: 2026-03-15 10:00:00

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20260315_0002"
down_revision: Union[str, Sequence[str], None] = "20260301_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("properties") as batch:
        batch.add_column(sa.Column("base_price", sa.Numeric(12, 2), nullable=False, server_default="0"))
        batch.add_column(sa.Column("cleaning_fee", sa.Numeric(12, 2), nullable=False, server_default="0"))
        batch.add_column(sa.Column("currency", sa.String(3), nullable=False, server_default="AED"))

    with op.batch_alter_table("bookings") as batch:
        batch.add_column(sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"))
        batch.add_column(sa.Column("currency", sa.String(3), nullable=False, server_default="AED"))


def downgrade() -> None:
    with op.batch_alter_table("bookings") as batch:
        batch.drop_column("currency")
        batch.drop_column("total_amount")

    with op.batch_alter_table("properties") as batch:
        batch.drop_column("currency")
        batch.drop_column("cleaning_fee")
        batch.drop_column("base_price")
