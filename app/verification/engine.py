"""Verification and reconciliation of migrated products.

Each verification record is re-fetched from the destination, compared to
the source product and repaired where the destination is objectively wrong
(missing price, stale SKU, wrong inventory mode, missing weight, stale
supplier field). Price differences that are not zero are reported as issues
rather than overwritten.
"""
from __future__ import annotations
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
from sqlalchemy import inspect
from sqlalchemy.orm import Session
from app.core.bigcommerce import BigCommerceClient
from app.core.config import settings
from app.core.workflow import (
    MigrationStatus,
    ParentUnit,
    PreparationFailed,
    VariationUnit,
    VerificationStatus,
    UnitOutcome,
    is_api_error,
)
from app.db.ledger import ProductLedger, VerificationLedger
from app.db.mappings import MappingRepository
from app.db.models import ProductVerification
from app.db.session import init_db
from app.preparers.base import to_float
from app.preparers.product import ProductOptionBuilder, ProductPreparer, WEIGHT_RANGE_FIELD, inventory_tracking, weight_fields
from app.source.models import SourceProduct, SourceVariation
from app.source.store import SourceStore

log = logging.getLogger(__name__)

SUPPLIER_FIELD = "__supplier"
PRICE_TOLERANCE = 0.005


class _Diff:
    def __init__(self) -> None:
        self.updates: Dict[str, Any] = {}
        self.fixes: List[str] = []
        self.issues: List[str] = []

    def fix(self, field: str, value: Any, note: str) -> None:
        self.updates[field] = value
        self.fixes.append(note)

    def message(self) -> str:
        if not self.fixes and not self.issues:
            return "Verified - no fixes needed"
        parts = []
        if self.fixes:
            parts.append("fixed: " + ", ".join(self.fixes))
        if self.issues:
            parts.append("issues: " + "; ".join(self.issues))
        return "Verified - " + "; ".join(parts)


def _money(value: float) -> str:
    return f"{value:.2f}"


class VerificationEngine:
    def __init__(
        self,
        db: Session,
        client: BigCommerceClient,
        store: SourceStore,
        mappings: Optional[MappingRepository] = None,
        delay: Optional[float] = None,
        weight_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        weight_unit: Optional[str] = None,
    ):
        self.db = db
        self.client = client
        self.store = store
        self.ledger = VerificationLedger(db)
        self.products = ProductLedger(db)
        self.mappings = mappings or MappingRepository(db)
        self.delay = settings.verify_item_delay if delay is None else delay
        self.weight_delay = settings.weight_item_delay if weight_delay is None else weight_delay
        self.sleep = sleep
        self.weight_unit = weight_unit or settings.destination_weight_unit
        self.preparer = ProductPreparer(
            self.mappings,
            store,
            weight_unit=self.weight_unit,
            excluded_attributes=settings.excluded_variant_attributes,
        )
        self.options = ProductOptionBuilder(client, self.preparer)

    # Table lifecycle

    def init(self) -> Dict[str, Any]:
        bind = self.db.get_bind()
        table = ProductVerification.__tablename__
        if not inspect(bind).has_table(table):
            init_db(bind)
            log.info("Created verification table %s", table, extra={"entity": "verification"})
        stats = self.get_stats()
        return {
            "exists": True,
            "table_name": table,
            "stats": stats,
            "message": f"Verification table exists with {stats['total']} records",
        }

    def populate(self) -> Dict[str, int]:
        inserted = skipped = errors = 0
        for row in self.products.successful_parents():
            parent = ParentUnit(row.source_parent_id)
            if self.ledger.insert_if_absent(parent, row.dest_parent_id):
                inserted += 1
            else:
                skipped += 1

            product = self.store.get_product(row.source_parent_id)
            if product is None:
                errors += 1
                log.warning("Source product missing while seeding verification", extra={"entity": "verification", "unit": parent.key})
                continue
            if not product.is_variable:
                continue

            for variation in product.variations:
                unit = VariationUnit(product.id, variation.id)
                migrated = self.products.get(unit)
                dest_variant_id = None
                if migrated is not None and migrated.status == MigrationStatus.SUCCESS.value:
                    dest_variant_id = migrated.dest_variant_id
                if self.ledger.insert_if_absent(unit, row.dest_parent_id, dest_variant_id):
                    inserted += 1
                else:
                    skipped += 1

        log.info("Verification seeded: %d inserted, %d skipped, %d errors", inserted, skipped, errors, extra={"entity": "verification"})
        return {"inserted": inserted, "skipped": skipped, "errors": errors}

    # Batches

    def verify_batch(self, batch_size: int = 50) -> Dict[str, int]:
        verified = failed = 0
        for i, record in enumerate(self.ledger.list_pending(batch_size)):
            if i:
                self.sleep(self.delay)
            try:
                outcome = self.verify_and_fix(record)
            except Exception as e:
                log.exception("Unexpected failure verifying", extra={"entity": "verification", "unit": record.unit_key})
                outcome = UnitOutcome(False, f"Unexpected error: {e}")
            self.ledger.finish(
                record,
                VerificationStatus.VERIFIED if outcome.ok else VerificationStatus.FAILED,
                outcome.message,
            )
            if outcome.ok:
                verified += 1
            else:
                failed += 1

        remaining = self.ledger.remaining_count()
        log.info("Verify batch: %d verified, %d failed, %d remaining", verified, failed, remaining, extra={"entity": "verification"})
        return {"verified": verified, "failed": failed, "remaining": remaining}

    def reset_failed(self, batch_size: int = 20) -> int:
        return self.ledger.reset_failed(batch_size)

    def retry_failed(self, batch_size: int = 20) -> Dict[str, int]:
        reset = self.reset_failed(batch_size)
        result = self.verify_batch(batch_size)
        result["reset"] = reset
        return result

    def get_stats(self) -> Dict[str, int]:
        return self.ledger.stats()

    def list_failed(self, limit: int = 50) -> List[ProductVerification]:
        return self.ledger.list_failed(limit)

    def cleanup_old_failed(self, days_old: int = 30) -> Dict[str, Any]:
        cutoff = datetime.utcnow() - timedelta(days=days_old)
        deleted = self.ledger.delete_failed_before(cutoff)
        return {"deleted": deleted, "cutoff": cutoff.isoformat(sep=" ", timespec="seconds")}

    # Per-record reconciliation

    def verify_and_fix(self, record: ProductVerification) -> UnitOutcome:
        product = self.store.get_product(record.source_parent_id)
        if product is None:
            return UnitOutcome(False, "Source product not found")

        if record.source_variant_id is None:
            return self._verify_parent(record, product)

        variation = product.variation(record.source_variant_id)
        if variation is None:
            return UnitOutcome(False, "Source variation not found")
        if not record.dest_variant_id:
            return self._heal_variant(record, product, variation)
        return self._verify_variant(record, product, variation)

    def _verify_parent(self, record: ProductVerification, product: SourceProduct) -> UnitOutcome:
        response = self.client.get_product(record.dest_parent_id, include="custom_fields")
        remote = response.get("data") if not is_api_error(response) else None
        if not remote or int(remote.get("id") or 0) != record.dest_parent_id:
            return UnitOutcome(False, f"Product not found in destination: {response.get('error', 'ID mismatch')}")

        diff = _Diff()
        self._diff_price(diff, remote, product.regular_price)

        expected_tracking = inventory_tracking(product)
        if expected_tracking != "none" and remote.get("inventory_tracking") != expected_tracking:
            diff.fix("inventory_tracking", expected_tracking, f"inventory tracking set to {expected_tracking}")
        if product.manage_stock and not product.is_variable:
            stock = product.stock_quantity or 0
            if remote.get("inventory_level") != stock:
                diff.fix("inventory_level", stock, f"stock set to {stock}")

        if product.sku and remote.get("sku") != product.sku:
            diff.fix("sku", product.sku, "sku updated")
        if product.name and remote.get("name") != product.name:
            diff.fix("name", product.name, "name updated")

        custom_fields: List[dict] = []
        if not to_float(remote.get("weight")) and product.weight:
            weight, range_fields = weight_fields(product.weight, self.weight_unit, thorough=True)
            if weight > 0:
                diff.fix("weight", weight, f"weight set to {weight}{self.weight_unit}")
                custom_fields += range_fields

        supplier_field = self._supplier_field(product.id, remote.get("custom_fields") or [])
        if supplier_field:
            custom_fields.append(supplier_field)
            diff.fixes.append("supplier updated")
        if custom_fields:
            diff.updates["custom_fields"] = custom_fields

        if diff.updates:
            result = self.client.update_product(record.dest_parent_id, diff.updates)
            if is_api_error(result):
                return UnitOutcome(False, f"Fix failed: {result['error']}")
        return UnitOutcome(True, diff.message(), record.dest_parent_id)

    def _verify_variant(self, record: ProductVerification, product: SourceProduct, variation: SourceVariation) -> UnitOutcome:
        response = self.client.get_product_variant(record.dest_parent_id, record.dest_variant_id)
        remote = response.get("data") if not is_api_error(response) else None
        if not remote:
            return UnitOutcome(False, f"Variant not found in destination: {response.get('error', 'empty response')}")

        diff = _Diff()
        self._diff_price(diff, remote, variation.regular_price)
        if variation.manage_stock:
            stock = variation.stock_quantity or 0
            if remote.get("inventory_level") != stock:
                diff.fix("inventory_level", stock, f"stock set to {stock}")
        if variation.sku and remote.get("sku") != variation.sku:
            diff.fix("sku", variation.sku, "sku updated")
        if not to_float(remote.get("weight")) and variation.weight:
            weight, _ = weight_fields(variation.weight, self.weight_unit, thorough=True)
            if weight > 0:
                diff.fix("weight", weight, f"weight set to {weight}{self.weight_unit}")

        if diff.updates:
            result = self.client.update_product_variant(record.dest_parent_id, record.dest_variant_id, diff.updates)
            if is_api_error(result):
                return UnitOutcome(False, f"Fix failed: {result['error']}")
        return UnitOutcome(True, diff.message(), record.dest_variant_id)

    def _heal_variant(self, record: ProductVerification, product: SourceProduct, variation: SourceVariation) -> UnitOutcome:
        """Create a variant the original migration never managed to create."""
        unit = VariationUnit(product.id, variation.id)
        migrated = self.products.get(unit)
        if migrated is not None and migrated.status == MigrationStatus.SUCCESS.value and migrated.dest_variant_id:
            record.dest_variant_id = migrated.dest_variant_id
            self.db.commit()
            return self._verify_variant(record, product, variation)

        options = self.options.ensure(record.dest_parent_id, product)
        prepared = self.preparer.prepare_variant(product, variation, options)
        if isinstance(prepared, PreparationFailed):
            return UnitOutcome(False, f"Variant creation failed: {prepared.message}")

        response = self.client.create_product_variant(record.dest_parent_id, prepared.payload)
        data = response.get("data") if not is_api_error(response) else None
        if not data or not data.get("id"):
            return UnitOutcome(False, f"Variant creation failed: {response.get('error', 'no variant ID returned')}")

        variant_id = int(data["id"])
        record.dest_variant_id = variant_id
        self.db.commit()
        self.products.update(
            unit,
            status=MigrationStatus.SUCCESS.value,
            dest_parent_id=record.dest_parent_id,
            dest_variant_id=variant_id,
            message="Variation created during verification",
        )
        log.info("Healed missing variant %s", variant_id, extra={"entity": "verification", "unit": record.unit_key})
        return UnitOutcome(True, f"Verified - fixed: variant created ({variant_id})", variant_id)

    def _diff_price(self, diff: _Diff, remote: dict, source_price: Optional[str]) -> None:
        expected = to_float(source_price)
        if expected <= 0:
            return
        actual = to_float(remote.get("price"))
        if actual == 0:
            diff.fix("price", expected, f"price set to {_money(expected)}")
        elif abs(actual - expected) > PRICE_TOLERANCE:
            diff.issues.append(f"Price mismatch (destination {_money(actual)}, source {_money(expected)})")

    def _supplier_field(self, product_id: int, fields: List[dict]) -> Optional[dict]:
        """The supplier custom field to write, or None when it is already right."""
        supplier = self.store.get_supplier_name(product_id)
        if not supplier:
            return None
        for f in fields:
            if f.get("name") == SUPPLIER_FIELD:
                if f.get("value") == supplier:
                    return None
                return {"id": f["id"], "name": SUPPLIER_FIELD, "value": supplier}
        return {"name": SUPPLIER_FIELD, "value": supplier}

    # Weight-only pass

    def update_weights_batch(self, batch_size: int = 20) -> Dict[str, Any]:
        updated = failed = 0
        messages: List[str] = []
        for i, record in enumerate(self.ledger.list_pending(batch_size)):
            if i:
                self.sleep(self.weight_delay)
            try:
                outcome = self.fix_weight(record)
            except Exception as e:
                log.exception("Unexpected failure fixing weight", extra={"entity": "verification", "unit": record.unit_key})
                outcome = UnitOutcome(False, f"Unexpected error: {e}")
            if outcome.ok:
                updated += 1
                messages.append(outcome.message)
                self.ledger.finish(record, VerificationStatus.VERIFIED, outcome.message)
            else:
                failed += 1
                self.ledger.finish(record, VerificationStatus.FAILED, "Verification and weight update failed: " + outcome.message)
        return {"updated": updated, "failed": failed, "messages": messages, "remaining": self.ledger.remaining_count()}

    def fix_weight(self, record: ProductVerification) -> UnitOutcome:
        product = self.store.get_product(record.source_parent_id)
        if product is None:
            return UnitOutcome(False, "Source product not found")

        source_weight = product.weight
        if record.source_variant_id is not None:
            variation = product.variation(record.source_variant_id)
            if variation is None:
                return UnitOutcome(False, "Source variation not found")
            if not record.dest_variant_id:
                return UnitOutcome(False, "Variant has no destination id")
            source_weight = variation.weight

        if not source_weight:
            return UnitOutcome(True, "Verified - no source weight")

        weight, range_fields = weight_fields(source_weight, self.weight_unit, thorough=True)
        if record.source_variant_id is None:
            data: Dict[str, Any] = {"weight": weight}
            if range_fields:
                data["custom_fields"] = range_fields
            result = self.client.update_product(record.dest_parent_id, data)
        else:
            result = self.client.update_product_variant(record.dest_parent_id, record.dest_variant_id, {"weight": weight})
        if is_api_error(result):
            return UnitOutcome(False, str(result["error"]))

        message = f"Product verified and weight fixed (Weight: {source_weight} -> {weight}{self.weight_unit}"
        range_value = next((f["value"] for f in range_fields if f["name"] == WEIGHT_RANGE_FIELD), "")
        if range_value:
            message += f", Range: {range_value}"
        return UnitOutcome(True, message + ")")
