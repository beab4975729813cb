"""create auth schema and users

Revision ID: 0001_auth_users
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_auth_users"
down_revision = None
branch_labels = None
depends_on = None

SCHEMAS = ("auth", "shopping")


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "mssql":
        for schema in SCHEMAS:
            op.execute(
                f"IF NOT EXISTS (SELECT 1 FROM sys.schemas WHERE name = '{schema}') "
                f"EXEC('CREATE SCHEMA [{schema}]')"
            )
    elif bind.dialect.name == "postgresql":
        for schema in SCHEMAS:
            op.execute(f'CREATE SCHEMA IF NOT EXISTS "{schema}"')

    op.create_table(
        "users",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("Email", sa.String(length=254), nullable=False),
        sa.Column("DisplayName", sa.String(length=120), nullable=True),
        sa.Column("PasswordHash", sa.String(length=255), nullable=False),
        sa.Column("FailedLoginCount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("LockedUntil", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ApiKeyHash", sa.String(length=64), nullable=True),
        sa.Column("ApiKeyCreatedAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ApiKeyLastUsed", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "CreatedAt",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        schema="auth",
    )
    op.create_index("ix_auth_users_email", "users", ["Email"], unique=True, schema="auth")
    op.create_index("ix_auth_users_api_key_hash", "users", ["ApiKeyHash"], schema="auth")


def downgrade() -> None:
    op.drop_index("ix_auth_users_api_key_hash", table_name="users", schema="auth")
    op.drop_index("ix_auth_users_email", table_name="users", schema="auth")
    op.drop_table("users", schema="auth")
