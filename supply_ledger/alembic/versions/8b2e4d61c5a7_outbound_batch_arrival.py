"""outbound batch arrival confirmation

Revision ID: 8b2e4d61c5a7
Revises: 3f1c9a2b7d10
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8b2e4d61c5a7"
down_revision: Union[str, Sequence[str], None] = "3f1c9a2b7d10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TABLE_NAME = "outbound_batches"
FK_ARRIVAL_WAREHOUSE = "fk_outbound_batches_arrival_warehouse_id"


def upgrade() -> None:
    # Postgres : ADD VALUE hors transaction ; SQLite stocke l'enum en VARCHAR
    if op.get_bind().dialect.name == "postgresql":
        with op.get_context().autocommit_block():
            op.execute("ALTER TYPE movement_type ADD VALUE IF NOT EXISTS 'transfer_in'")

    with op.batch_alter_table(TABLE_NAME) as batch:
        batch.add_column(sa.Column("arrival_confirmed_at", sa.DateTime(timezone=True)))
        batch.add_column(sa.Column("arrival_warehouse_id", sa.BigInteger()))
        batch.add_column(sa.Column("arrival_warehouse_name", sa.String(200)))
        batch.create_foreign_key(
            FK_ARRIVAL_WAREHOUSE,
            "warehouses",
            ["arrival_warehouse_id"],
            ["id"],
            ondelete="RESTRICT",
        )


def downgrade() -> None:
    with op.batch_alter_table(TABLE_NAME) as batch:
        batch.drop_constraint(FK_ARRIVAL_WAREHOUSE, type_="foreignkey")
        batch.drop_column("arrival_warehouse_name")
        batch.drop_column("arrival_warehouse_id")
        batch.drop_column("arrival_confirmed_at")
    # Postgres ne sait pas retirer une valeur d'enum : transfer_in reste déclarée
