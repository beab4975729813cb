"""create shopping stores, lists, shares and learned items

Revision ID: 0002_shopping_stores
Revises: 0001_auth_users
Create Date: 2026-10-18 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_shopping_stores"
down_revision = "0001_auth_users"
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("UpdatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade() -> None:
    op.create_table(
        "stores",
        sa.Column("Id", sa.String(length=36), primary_key=True),
        sa.Column("Name", sa.String(length=100), nullable=False),
        sa.Column("OwnerUserId", sa.Integer(), sa.ForeignKey("auth.users.Id"), nullable=False),
        sa.Column("Sections", sa.JSON(), nullable=False),
        sa.Column("Latitude", sa.Float(), nullable=True),
        sa.Column("Longitude", sa.Float(), nullable=True),
        *_timestamps(),
        schema="shopping",
    )
    op.create_index("ix_shopping_stores_owner_user_id", "stores", ["OwnerUserId"], schema="shopping")

    op.create_table(
        "store_shares",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("StoreId", sa.String(length=36), sa.ForeignKey("shopping.stores.Id"), nullable=False),
        sa.Column("UserId", sa.Integer(), sa.ForeignKey("auth.users.Id"), nullable=False),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("StoreId", "UserId", name="uq_store_shares_store_user"),
        schema="shopping",
    )
    op.create_index("ix_shopping_store_shares_user_id", "store_shares", ["UserId"], schema="shopping")

    op.create_table(
        "store_pending_shares",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("StoreId", sa.String(length=36), sa.ForeignKey("shopping.stores.Id"), nullable=False),
        sa.Column("Email", sa.String(length=254), nullable=False),
        sa.Column("InvitedByUserId", sa.Integer(), sa.ForeignKey("auth.users.Id"), nullable=False),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("StoreId", "Email", name="uq_store_pending_shares_store_email"),
        schema="shopping",
    )
    op.create_index("ix_shopping_store_pending_shares_email", "store_pending_shares", ["Email"], schema="shopping")

    op.create_table(
        "shopping_lists",
        sa.Column("StoreId", sa.String(length=36), sa.ForeignKey("shopping.stores.Id"), primary_key=True),
        sa.Column("Items", sa.JSON(), nullable=False),
        *_timestamps(),
        schema="shopping",
    )

    op.create_table(
        "learned_items",
        sa.Column("Id", sa.String(length=36), primary_key=True),
        sa.Column("StoreId", sa.String(length=36), sa.ForeignKey("shopping.stores.Id"), nullable=False),
        sa.Column("Name", sa.String(length=500), nullable=False),
        sa.Column("SectionId", sa.String(length=100), nullable=False),
        sa.Column("Frequency", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("LastUsed", sa.DateTime(timezone=True), nullable=False),
        sa.Column("CreatedByUserId", sa.Integer(), nullable=False),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        schema="shopping",
    )
    # Deliberately not unique: concurrent first adds of one name may both insert.
    op.create_index("ix_learned_items_store_name", "learned_items", ["StoreId", "Name"], schema="shopping")


def downgrade() -> None:
    op.drop_index("ix_learned_items_store_name", table_name="learned_items", schema="shopping")
    op.drop_table("learned_items", schema="shopping")
    op.drop_table("shopping_lists", schema="shopping")
    op.drop_index("ix_shopping_store_pending_shares_email", table_name="store_pending_shares", schema="shopping")
    op.drop_table("store_pending_shares", schema="shopping")
    op.drop_index("ix_shopping_store_shares_user_id", table_name="store_shares", schema="shopping")
    op.drop_table("store_shares", schema="shopping")
    op.drop_index("ix_shopping_stores_owner_user_id", table_name="stores", schema="shopping")
    op.drop_table("stores", schema="shopping")
