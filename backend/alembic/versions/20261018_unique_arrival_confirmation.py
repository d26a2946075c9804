"""Enforce one arrival_confirmations row per (arrival, item)

Revision ID: 20261018_unique_arrival_confirmation
Revises: 
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op


# revision identifiers, used by Alembic.
revision = "20261018_unique_arrival_confirmation"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Keep the oldest row of every duplicated pair
    op.execute(
        """
        DELETE FROM arrival_confirmations
        WHERE id IN (
            SELECT id FROM (
                SELECT id,
                       ROW_NUMBER() OVER (
                           PARTITION BY arrived_vehicle_id, item_id
                           ORDER BY confirmed_at, id
                       ) AS rn
                FROM arrival_confirmations
            ) ranked
            WHERE ranked.rn > 1
        )
        """
    )
    op.create_unique_constraint(
        "uq_arrival_confirmations_arrival_item",
        "arrival_confirmations",
        ["arrived_vehicle_id", "item_id"],
    )


def downgrade():
    op.drop_constraint(
        "uq_arrival_confirmations_arrival_item",
        "arrival_confirmations",
        type_="unique",
    )
