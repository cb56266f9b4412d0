"""Create stock records

Revision ID: 3f1a9c2e7b10
Revises:
Create Date: 2024-09-30 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f1a9c2e7b10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "stock_records",
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("symbol", sa.String(length=32), nullable=False),
        sa.Column("series", sa.String(length=16), nullable=False),
        sa.Column("prev_close", sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column("open", sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column("high", sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column("low", sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column("last", sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column("close", sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column("vwap", sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column("volume", sa.BigInteger(), nullable=False),
        sa.Column("turnover", sa.Numeric(precision=24, scale=4), nullable=False),
        sa.Column("trades", sa.BigInteger(), nullable=False),
        sa.Column("deliverable", sa.BigInteger(), nullable=False),
        sa.Column("percent_deliverable", sa.Numeric(precision=10, scale=4), nullable=False),
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_stock_records_date"),
        "stock_records",
        ["date"],
        unique=False,
    )
    op.create_index(
        "ix_stock_records_symbol_date",
        "stock_records",
        ["symbol", "date"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_stock_records_symbol_date", table_name="stock_records")
    op.drop_index(op.f("ix_stock_records_date"), table_name="stock_records")
    op.drop_table("stock_records")
