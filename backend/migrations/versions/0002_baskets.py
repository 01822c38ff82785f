"""Basket (cesta) catalog

Revision ID: 0002_baskets
Revises: 0001_initial
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002_baskets"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "baskets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(128), nullable=True),
        sa.Column("promo_price_cents", sa.Integer(), nullable=True),
        sa.Column("components", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("promo_price_cents >= 0", name="ck_baskets_promo_price_nonneg"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("baskets", schema=None) as batch_op:
        batch_op.create_index("ix_baskets_org_id", ["org_id"], unique=False)
        batch_op.create_index("ix_baskets_org_active", ["org_id", "is_active"], unique=False)


def downgrade():
    with op.batch_alter_table("baskets", schema=None) as batch_op:
        batch_op.drop_index("ix_baskets_org_active")
        batch_op.drop_index("ix_baskets_org_id")

    op.drop_table("baskets")
