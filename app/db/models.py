from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from sqlalchemy import BigInteger, Integer, DateTime, Numeric, String, Text, JSON, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base
from app.core.workflow import MigrationStatus, VerificationStatus

# SQLite only autoincrements INTEGER PRIMARY KEY
_PK = BigInteger().with_variant(Integer, "sqlite")


class ProductMigration(Base):
    """One row per product or product variation."""
    __tablename__ = "product_migrations"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    unit_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    source_parent_id: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    source_variant_id: Mapped[int | None] = mapped_column(BigInteger, index=True, nullable=True)
    dest_parent_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    dest_variant_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=MigrationStatus.PENDING.value, index=True, nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def is_parent(self) -> bool:
        return self.source_variant_id is None


class CustomerMigration(Base):
    __tablename__ = "customer_migrations"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    source_user_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    dest_customer_id: Mapped[int | None] = mapped_column(BigInteger, index=True, nullable=True)
    customer_email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    customer_type: Mapped[str] = mapped_column(String(50), default="customer", nullable=False)
    dest_customer_group_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=MigrationStatus.PENDING.value, index=True, nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class OrderMigration(Base):
    __tablename__ = "order_migrations"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    source_order_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    dest_order_id: Mapped[int | None] = mapped_column(BigInteger, index=True, nullable=True)
    source_customer_id: Mapped[int | None] = mapped_column(BigInteger, index=True, nullable=True)
    dest_customer_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    order_status: Mapped[str] = mapped_column(String(50), nullable=False)
    order_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    order_date: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_method_title: Mapped[str | None] = mapped_column(String(200), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=MigrationStatus.PENDING.value, index=True, nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    migration_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class ProductVerification(Base):
    __tablename__ = "product_verifications"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    unit_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    source_parent_id: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    source_variant_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    dest_parent_id: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    dest_variant_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    verification_status: Mapped[str] = mapped_column(
        String(20), default=VerificationStatus.PENDING.value, index=True, nullable=False
    )
    verification_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_verified: Mapped[datetime | None] = mapped_column(DateTime, index=True, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class MigrationMapping(Base):
    """Persisted key -> destination id maps built by the one-shot migrators."""
    __tablename__ = "migration_mappings"
    __table_args__ = (
        UniqueConstraint("kind", "source_key", name="uq_mapping_kind_key"),
        Index("ix_mapping_kind", "kind"),
    )

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(30), nullable=False)
    source_key: Mapped[str] = mapped_column(String(255), nullable=False)
    dest_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
