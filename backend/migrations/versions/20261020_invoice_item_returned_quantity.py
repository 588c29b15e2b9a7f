"""Track returned units on invoice items

Revision ID: sl0002_returned_qty
Revises: sl0001_initial
Create Date: 2026-10-20
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "sl0002_returned_qty"
down_revision = "sl0001_initial"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("invoice_items", schema=None) as batch_op:
        batch_op.add_column(
            sa.Column("returned_quantity", sa.Integer(), nullable=False, server_default="0")
        )
        batch_op.create_check_constraint(
            "ck_invoice_items_returned_within_sold",
            "returned_quantity >= 0 AND returned_quantity <= quantity",
        )

    # Backfill from the return lines already recorded
    op.execute(
        """
        UPDATE invoice_items
        SET returned_quantity = (
            SELECT COALESCE(SUM(return_items.quantity), 0)
            FROM return_items
            WHERE return_items.invoice_item_id = invoice_items.id
        )
        """
    )


def downgrade():
    with op.batch_alter_table("invoice_items", schema=None) as batch_op:
        batch_op.drop_constraint("ck_invoice_items_returned_within_sold", type_="check")
        batch_op.drop_column("returned_quantity")
