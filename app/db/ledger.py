"""Migration ledgers: the sole record of what has been migrated.

Every write is a single-row update committed on its own, so a crash in the
middle of a batch leaves processed rows finalized and the rest untouched.
"""
from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import select, func, or_, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.core.workflow import (
    MigrationStatus,
    VerificationStatus,
    ProductUnit,
    ParentUnit,
)
from app.db.models import (
    ProductMigration,
    CustomerMigration,
    OrderMigration,
    ProductVerification,
)

log = logging.getLogger(__name__)

PENDING = MigrationStatus.PENDING.value
SUCCESS = MigrationStatus.SUCCESS.value
ERROR = MigrationStatus.ERROR.value


def _now() -> datetime:
    return datetime.utcnow()


def _insert(db: Session, row) -> bool:
    """Insert one row; a unique-key collision means another writer got there first."""
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    return True


def _status_counts(db: Session, column, *where) -> Dict[str, int]:
    counts = {PENDING: 0, SUCCESS: 0, ERROR: 0}
    rows = db.execute(select(column, func.count()).where(*where).group_by(column)).all()
    for status, count in rows:
        counts[status] = count
    counts["total"] = sum(counts.values())
    return counts


class ProductLedger:
    def __init__(self, db: Session):
        self.db = db

    def get(self, unit: ProductUnit) -> Optional[ProductMigration]:
        return self.db.scalar(select(ProductMigration).where(ProductMigration.unit_key == unit.key))

    def insert_if_absent(self, unit: ProductUnit) -> bool:
        """Create a pending row for the unit. Returns False when one already exists."""
        if self.get(unit) is not None:
            return False
        return _insert(self.db, ProductMigration(
            unit_key=unit.key,
            source_parent_id=unit.parent_id,
            source_variant_id=unit.variant_id,
            status=PENDING,
        ))

    def update(self, unit: ProductUnit, **fields: Any) -> None:
        fields["updated_at"] = _now()
        self.db.execute(
            update(ProductMigration).where(ProductMigration.unit_key == unit.key).values(**fields)
        )
        self.db.commit()

    def list_pending_parents(self, limit: int) -> List[int]:
        """Parent ids needing work: pending themselves, or owning a pending variation."""
        with_pending_variants = select(ProductMigration.source_parent_id).where(
            ProductMigration.source_variant_id.is_not(None),
            ProductMigration.status == PENDING,
        )
        stmt = (
            select(ProductMigration.source_parent_id)
            .where(
                ProductMigration.source_variant_id.is_(None),
                or_(
                    ProductMigration.status == PENDING,
                    ProductMigration.source_parent_id.in_(with_pending_variants),
                ),
            )
            .order_by(ProductMigration.id.asc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def remaining_count(self) -> int:
        with_pending_variants = select(ProductMigration.source_parent_id).where(
            ProductMigration.source_variant_id.is_not(None),
            ProductMigration.status == PENDING,
        )
        return self.db.scalar(
            select(func.count()).select_from(ProductMigration).where(
                ProductMigration.source_variant_id.is_(None),
                or_(
                    ProductMigration.status == PENDING,
                    ProductMigration.source_parent_id.in_(with_pending_variants),
                ),
            )
        ) or 0

    def variations_of(self, parent_id: int, status: Optional[str] = None) -> List[ProductMigration]:
        stmt = select(ProductMigration).where(
            ProductMigration.source_parent_id == parent_id,
            ProductMigration.source_variant_id.is_not(None),
        )
        if status:
            stmt = stmt.where(ProductMigration.status == status)
        return list(self.db.scalars(stmt.order_by(ProductMigration.id.asc())))

    def successful_rows(self, parent_id: int) -> List[ProductMigration]:
        return list(self.db.scalars(
            select(ProductMigration).where(
                ProductMigration.source_parent_id == parent_id,
                ProductMigration.status == SUCCESS,
            )
        ))

    def successful_parents(self) -> List[ProductMigration]:
        return list(self.db.scalars(
            select(ProductMigration).where(
                ProductMigration.source_variant_id.is_(None),
                ProductMigration.dest_parent_id.is_not(None),
                ProductMigration.status == SUCCESS,
            ).order_by(ProductMigration.id.asc())
        ))

    def dest_product_id(self, parent_id: int) -> Optional[int]:
        row = self.get(ParentUnit(parent_id))
        if row and row.status == SUCCESS:
            return row.dest_parent_id
        return None

    def reset_errors(self, limit: int) -> int:
        ids = list(self.db.scalars(
            select(ProductMigration.id)
            .where(ProductMigration.status == ERROR)
            .order_by(ProductMigration.id.asc())
            .limit(limit)
        ))
        if ids:
            self.db.execute(
                update(ProductMigration)
                .where(ProductMigration.id.in_(ids))
                .values(status=PENDING, message="Retrying migration", updated_at=_now())
            )
            self.db.commit()
        return len(ids)

    def stats(self) -> Dict[str, Dict[str, int]]:
        return {
            "products": _status_counts(self.db, ProductMigration.status, ProductMigration.source_variant_id.is_(None)),
            "variations": _status_counts(self.db, ProductMigration.status, ProductMigration.source_variant_id.is_not(None)),
        }

    def list_errors(self, limit: int = 50) -> List[ProductMigration]:
        return list(self.db.scalars(
            select(ProductMigration)
            .where(ProductMigration.status == ERROR)
            .order_by(ProductMigration.updated_at.desc(), ProductMigration.id.desc())
            .limit(limit)
        ))


class CustomerLedger:
    def __init__(self, db: Session):
        self.db = db

    def get(self, source_user_id: int) -> Optional[CustomerMigration]:
        return self.db.scalar(select(CustomerMigration).where(CustomerMigration.source_user_id == source_user_id))

    def insert_if_absent(self, source_user_id: int, email: str, customer_type: str, group_id: Optional[int]) -> bool:
        if self.get(source_user_id) is not None:
            return False
        return _insert(self.db, CustomerMigration(
            source_user_id=source_user_id,
            customer_email=email,
            customer_type=customer_type,
            dest_customer_group_id=group_id,
            status=PENDING,
        ))

    def update(self, source_user_id: int, **fields: Any) -> None:
        fields["updated_at"] = _now()
        self.db.execute(
            update(CustomerMigration).where(CustomerMigration.source_user_id == source_user_id).values(**fields)
        )
        self.db.commit()

    def list_pending(self, limit: int) -> List[CustomerMigration]:
        return list(self.db.scalars(
            select(CustomerMigration)
            .where(CustomerMigration.status == PENDING)
            .order_by(CustomerMigration.id.asc())
            .limit(limit)
        ))

    def dest_customer_id(self, source_user_id: Optional[int]) -> Optional[int]:
        if not source_user_id:
            return None
        row = self.get(source_user_id)
        if row and row.status == SUCCESS and row.dest_customer_id:
            return row.dest_customer_id
        return None

    def remaining_count(self) -> int:
        return self.db.scalar(
            select(func.count()).select_from(CustomerMigration).where(CustomerMigration.status == PENDING)
        ) or 0

    def reset_errors(self, limit: int) -> int:
        ids = list(self.db.scalars(
            select(CustomerMigration.id)
            .where(CustomerMigration.status == ERROR)
            .order_by(CustomerMigration.id.asc())
            .limit(limit)
        ))
        if ids:
            self.db.execute(
                update(CustomerMigration)
                .where(CustomerMigration.id.in_(ids))
                .values(status=PENDING, message="Retrying migration", updated_at=_now())
            )
            self.db.commit()
        return len(ids)

    def stats(self) -> Dict[str, int]:
        return _status_counts(self.db, CustomerMigration.status)

    def list_errors(self, limit: int = 50) -> List[CustomerMigration]:
        return list(self.db.scalars(
            select(CustomerMigration)
            .where(CustomerMigration.status == ERROR)
            .order_by(CustomerMigration.updated_at.desc(), CustomerMigration.id.desc())
            .limit(limit)
        ))


class OrderLedger:
    def __init__(self, db: Session):
        self.db = db

    def get(self, source_order_id: int) -> Optional[OrderMigration]:
        return self.db.scalar(select(OrderMigration).where(OrderMigration.source_order_id == source_order_id))

    def insert_if_absent(self, data: Dict[str, Any]) -> tuple[int, bool]:
        """Returns (row id, inserted). An existing source_order_id is a no-op."""
        existing = self.get(data["source_order_id"])
        if existing is not None:
            return existing.id, False
        row = OrderMigration(status=PENDING, **data)
        if not _insert(self.db, row):
            existing = self.get(data["source_order_id"])
            return existing.id, False
        return row.id, True

    def update(self, source_order_id: int, **fields: Any) -> None:
        fields["updated_at"] = _now()
        self.db.execute(
            update(OrderMigration).where(OrderMigration.source_order_id == source_order_id).values(**fields)
        )
        self.db.commit()

    def list_pending(self, limit: int) -> List[OrderMigration]:
        """Oldest orders first."""
        return list(self.db.scalars(
            select(OrderMigration)
            .where(OrderMigration.status == PENDING)
            .order_by(OrderMigration.order_date.asc(), OrderMigration.id.asc())
            .limit(limit)
        ))

    def remaining_count(self) -> int:
        return self.db.scalar(
            select(func.count()).select_from(OrderMigration).where(OrderMigration.status == PENDING)
        ) or 0

    def total_count(self) -> int:
        return self.db.scalar(select(func.count()).select_from(OrderMigration)) or 0

    def reset_errors(self, limit: int) -> int:
        ids = list(self.db.scalars(
            select(OrderMigration.id)
            .where(OrderMigration.status == ERROR)
            .order_by(OrderMigration.order_date.asc(), OrderMigration.id.asc())
            .limit(limit)
        ))
        if ids:
            self.db.execute(
                update(OrderMigration)
                .where(OrderMigration.id.in_(ids))
                .values(status=PENDING, message="Retrying migration", updated_at=_now())
            )
            self.db.commit()
        return len(ids)

    def stats(self) -> Dict[str, Any]:
        counts: Dict[str, Any] = _status_counts(self.db, OrderMigration.status)
        total_value, average_value = self.db.execute(
            select(func.sum(OrderMigration.order_total), func.avg(OrderMigration.order_total))
        ).one()
        counts["total_value"] = float(total_value or 0)
        counts["average_value"] = round(float(average_value or 0), 2)
        return counts

    def list_errors(self, limit: int = 50) -> List[OrderMigration]:
        return list(self.db.scalars(
            select(OrderMigration)
            .where(OrderMigration.status == ERROR)
            .order_by(OrderMigration.updated_at.desc(), OrderMigration.id.desc())
            .limit(limit)
        ))


class VerificationLedger:
    def __init__(self, db: Session):
        self.db = db

    def get(self, unit: ProductUnit) -> Optional[ProductVerification]:
        return self.db.scalar(select(ProductVerification).where(ProductVerification.unit_key == unit.key))

    def insert_if_absent(self, unit: ProductUnit, dest_parent_id: int, dest_variant_id: Optional[int] = None) -> bool:
        if self.get(unit) is not None:
            return False
        return _insert(self.db, ProductVerification(
            unit_key=unit.key,
            source_parent_id=unit.parent_id,
            source_variant_id=unit.variant_id,
            dest_parent_id=dest_parent_id,
            dest_variant_id=dest_variant_id,
            verification_status=VerificationStatus.PENDING.value,
        ))

    def list_pending(self, limit: int) -> List[ProductVerification]:
        return list(self.db.scalars(
            select(ProductVerification)
            .where(ProductVerification.verification_status == VerificationStatus.PENDING.value)
            .order_by(ProductVerification.id.asc())
            .limit(limit)
        ))

    def finish(self, record: ProductVerification, status: VerificationStatus, message: str, **fields: Any) -> None:
        now = _now()
        self.db.execute(
            update(ProductVerification)
            .where(ProductVerification.id == record.id)
            .values(
                verification_status=status.value,
                verification_message=message,
                last_verified=now,
                updated_at=now,
                **fields,
            )
        )
        self.db.commit()

    def remaining_count(self) -> int:
        return self.db.scalar(
            select(func.count()).select_from(ProductVerification)
            .where(ProductVerification.verification_status == VerificationStatus.PENDING.value)
        ) or 0

    def reset_failed(self, limit: int) -> int:
        ids = list(self.db.scalars(
            select(ProductVerification.id)
            .where(ProductVerification.verification_status == VerificationStatus.FAILED.value)
            .order_by(ProductVerification.id.asc())
            .limit(limit)
        ))
        if ids:
            self.db.execute(
                update(ProductVerification)
                .where(ProductVerification.id.in_(ids))
                .values(
                    verification_status=VerificationStatus.PENDING.value,
                    verification_message="Retrying verification",
                    updated_at=_now(),
                )
            )
            self.db.commit()
        return len(ids)

    def stats(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in VerificationStatus}
        rows = self.db.execute(
            select(ProductVerification.verification_status, func.count())
            .group_by(ProductVerification.verification_status)
        ).all()
        for status, count in rows:
            counts[status] = count
        counts["total"] = sum(counts.values())
        return counts

    def list_failed(self, limit: int = 50) -> List[ProductVerification]:
        return list(self.db.scalars(
            select(ProductVerification)
            .where(ProductVerification.verification_status == VerificationStatus.FAILED.value)
            .order_by(ProductVerification.last_verified.desc(), ProductVerification.id.desc())
            .limit(limit)
        ))

    def delete_failed_before(self, cutoff: datetime) -> int:
        result = self.db.execute(
            delete(ProductVerification).where(
                ProductVerification.verification_status == VerificationStatus.FAILED.value,
                ProductVerification.last_verified < cutoff,
            )
        )
        self.db.commit()
        return result.rowcount or 0
