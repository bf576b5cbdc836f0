"""create migration ledger tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

_PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "product_migrations",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("unit_key", sa.String(length=64), nullable=False, unique=True),
        sa.Column("source_parent_id", sa.BigInteger(), nullable=False),
        sa.Column("source_variant_id", sa.BigInteger(), nullable=True),
        sa.Column("dest_parent_id", sa.BigInteger(), nullable=True),
        sa.Column("dest_variant_id", sa.BigInteger(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_product_migrations_source_parent_id", "product_migrations", ["source_parent_id"])
    op.create_index("ix_product_migrations_source_variant_id", "product_migrations", ["source_variant_id"])
    op.create_index("ix_product_migrations_status", "product_migrations", ["status"])

    op.create_table(
        "customer_migrations",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("source_user_id", sa.BigInteger(), nullable=False, unique=True),
        sa.Column("dest_customer_id", sa.BigInteger(), nullable=True),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("customer_type", sa.String(length=50), nullable=False),
        sa.Column("dest_customer_group_id", sa.BigInteger(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_customer_migrations_dest_customer_id", "customer_migrations", ["dest_customer_id"])
    op.create_index("ix_customer_migrations_customer_email", "customer_migrations", ["customer_email"])
    op.create_index("ix_customer_migrations_status", "customer_migrations", ["status"])

    op.create_table(
        "order_migrations",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("source_order_id", sa.BigInteger(), nullable=False, unique=True),
        sa.Column("dest_order_id", sa.BigInteger(), nullable=True),
        sa.Column("source_customer_id", sa.BigInteger(), nullable=True),
        sa.Column("dest_customer_id", sa.BigInteger(), nullable=True),
        sa.Column("order_status", sa.String(length=50), nullable=False),
        sa.Column("order_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("order_date", sa.DateTime(), nullable=False),
        sa.Column("payment_method", sa.String(length=100), nullable=True),
        sa.Column("payment_method_title", sa.String(length=200), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("migration_data", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_order_migrations_dest_order_id", "order_migrations", ["dest_order_id"])
    op.create_index("ix_order_migrations_source_customer_id", "order_migrations", ["source_customer_id"])
    op.create_index("ix_order_migrations_order_date", "order_migrations", ["order_date"])
    op.create_index("ix_order_migrations_status", "order_migrations", ["status"])

    op.create_table(
        "product_verifications",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("unit_key", sa.String(length=64), nullable=False, unique=True),
        sa.Column("source_parent_id", sa.BigInteger(), nullable=False),
        sa.Column("source_variant_id", sa.BigInteger(), nullable=True),
        sa.Column("dest_parent_id", sa.BigInteger(), nullable=False),
        sa.Column("dest_variant_id", sa.BigInteger(), nullable=True),
        sa.Column("verification_status", sa.String(length=20), nullable=False),
        sa.Column("verification_message", sa.Text(), nullable=True),
        sa.Column("last_verified", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_product_verifications_source_parent_id", "product_verifications", ["source_parent_id"])
    op.create_index("ix_product_verifications_dest_parent_id", "product_verifications", ["dest_parent_id"])
    op.create_index("ix_product_verifications_verification_status", "product_verifications", ["verification_status"])
    op.create_index("ix_product_verifications_last_verified", "product_verifications", ["last_verified"])

    op.create_table(
        "migration_mappings",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("kind", sa.String(length=30), nullable=False),
        sa.Column("source_key", sa.String(length=255), nullable=False),
        sa.Column("dest_id", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("kind", "source_key", name="uq_mapping_kind_key"),
    )
    op.create_index("ix_mapping_kind", "migration_mappings", ["kind"])


def downgrade():
    op.drop_table("migration_mappings")
    op.drop_table("product_verifications")
    op.drop_table("order_migrations")
    op.drop_table("customer_migrations")
    op.drop_table("product_migrations")
