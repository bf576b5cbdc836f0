from __future__ import annotations
import logging
import time
from typing import Callable, Dict, List, Optional
from sqlalchemy.orm import Session
from app.core.bigcommerce import BigCommerceClient
from app.core.config import settings
from app.core.workflow import (
    MigrationStatus,
    ParentUnit,
    PreparationFailed,
    VariationUnit,
    is_api_error,
    product_unit,
)
from app.db.ledger import ProductLedger
from app.db.mappings import MappingRepository
from app.db.models import ProductMigration
from app.preparers.b2b import B2BHandler
from app.preparers.product import ProductOptionBuilder, ProductOptions, ProductPreparer
from app.source.models import SourceProduct
from app.source.store import SourceStore

log = logging.getLogger(__name__)

SUCCESS = MigrationStatus.SUCCESS.value
ERROR = MigrationStatus.ERROR.value
PENDING = MigrationStatus.PENDING.value


class _Tally:
    def __init__(self) -> None:
        self.processed = 0
        self.errors = 0

    def add(self, ok: bool) -> None:
        if ok:
            self.processed += 1
        else:
            self.errors += 1


class ProductBatchProcessor:
    """Advances pending product ledger rows in bounded batches.

    Parents drive their variations: a batch selects parent ids, creates the
    parent if it has no destination id yet, then works through that parent's
    pending variation rows. Every row ends the batch as success or error.
    """

    def __init__(
        self,
        db: Session,
        client: BigCommerceClient,
        store: SourceStore,
        mappings: Optional[MappingRepository] = None,
        delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        weight_unit: Optional[str] = None,
        excluded_attributes: Optional[List[str]] = None,
    ):
        self.db = db
        self.client = client
        self.store = store
        self.ledger = ProductLedger(db)
        self.mappings = mappings or MappingRepository(db)
        self.delay = settings.product_item_delay if delay is None else delay
        self.sleep = sleep
        self.preparer = ProductPreparer(
            self.mappings,
            store,
            weight_unit=weight_unit or settings.destination_weight_unit,
            excluded_attributes=settings.excluded_variant_attributes if excluded_attributes is None else excluded_attributes,
        )
        self.options = ProductOptionBuilder(client, self.preparer)
        self.b2b = B2BHandler(client, self.mappings)

    def prepare_products(self) -> Dict[str, int]:
        inserted = skipped = 0
        products = self.store.products(status="publish")
        for product in products:
            units = [ParentUnit(product.id)]
            if product.is_variable:
                units += [VariationUnit(product.id, v.id) for v in product.variations]
            for unit in units:
                if self.ledger.insert_if_absent(unit):
                    inserted += 1
                else:
                    skipped += 1
        log.info("Prepared products: %d inserted, %d skipped", inserted, skipped, extra={"entity": "product"})
        return {"inserted": inserted, "skipped": skipped, "total": len(products)}

    def process_batch(self, batch_size: int = 10) -> Dict[str, int]:
        tally = _Tally()
        parent_ids = self.ledger.list_pending_parents(batch_size)
        for i, parent_id in enumerate(parent_ids):
            if i:
                self.sleep(self.delay)
            try:
                self.migrate_parent(parent_id, tally)
            except Exception as e:
                log.exception("Unexpected failure migrating product", extra={"entity": "product", "unit": parent_id})
                self._fail_open_rows(parent_id, f"Unexpected error: {e}", tally)

        remaining = self.ledger.remaining_count()
        log.info(
            "Product batch: %d processed, %d errors, %d remaining",
            tally.processed, tally.errors, remaining, extra={"entity": "product"},
        )
        return {"processed": tally.processed, "errors": tally.errors, "remaining": remaining}

    def retry_errors(self, batch_size: int = 10) -> Dict[str, int]:
        reset = self.ledger.reset_errors(batch_size)
        result = self.process_batch(batch_size)
        result["reset"] = reset
        return result

    def get_stats(self) -> Dict[str, Dict[str, int]]:
        return self.ledger.stats()

    def list_errors(self, limit: int = 50) -> List[ProductMigration]:
        return self.ledger.list_errors(limit)

    def migrate_parent(self, parent_id: int, tally: _Tally) -> None:
        parent = ParentUnit(parent_id)
        row = self.ledger.get(parent)
        if row is not None and row.status == ERROR:
            # leaving error needs an explicit retry
            self._fail_open_rows(parent_id, "Parent product failed", tally)
            return
        product = self.store.get_product(parent_id)
        if product is None:
            self._fail_open_rows(parent_id, "Product not found in source store", tally)
            return

        dest_id = row.dest_parent_id if row is not None and row.status == SUCCESS else None
        if dest_id is None:
            dest_id = self._create_parent(product, tally)
            if dest_id is None:
                return

        self._migrate_variations(product, dest_id, tally)

    def _create_parent(self, product: SourceProduct, tally: _Tally) -> Optional[int]:
        parent = ParentUnit(product.id)
        prepared = self.preparer.prepare(product)
        if isinstance(prepared, PreparationFailed):
            self._fail_open_rows(product.id, prepared.message, tally)
            return None

        response = self.client.create_product(prepared.payload)
        data = response.get("data") if not is_api_error(response) else None
        if not data or not data.get("id"):
            message = response.get("error") or "No product ID returned"
            self._fail_open_rows(product.id, message, tally)
            return None

        dest_id = int(data["id"])
        self.ledger.update(parent, status=SUCCESS, dest_parent_id=dest_id, message="Product migrated successfully")
        tally.add(True)
        log.info("Created product %s", dest_id, extra={"entity": "product", "unit": parent.key})
        self.b2b.apply_b2b_pricing(product, data.get("base_variant_id"))
        return dest_id

    def _migrate_variations(self, product: SourceProduct, dest_id: int, tally: _Tally) -> None:
        rows = self.ledger.variations_of(product.id, status=PENDING)
        if not rows:
            return
        options = self.options.ensure(dest_id, product)
        for row in rows:
            ok = self.migrate_variation(product, dest_id, row.source_variant_id, options)
            tally.add(ok)

    def migrate_variation(self, product: SourceProduct, dest_id: int, variant_id: int, options: ProductOptions) -> bool:
        unit = VariationUnit(product.id, variant_id)
        variation = product.variation(variant_id)
        if variation is None:
            return self._fail(unit, "Variation not found in source store")

        prepared = self.preparer.prepare_variant(product, variation, options)
        if isinstance(prepared, PreparationFailed):
            message = prepared.message
            if options.failed:
                message += " (" + "; ".join(options.failed) + ")"
            return self._fail(unit, message, dest_parent_id=dest_id)

        response = self.client.create_product_variant(dest_id, prepared.payload)
        data = response.get("data") if not is_api_error(response) else None
        if not data or not data.get("id"):
            return self._fail(unit, response.get("error") or "No variant ID returned", dest_parent_id=dest_id)

        self.ledger.update(
            unit,
            status=SUCCESS,
            dest_parent_id=dest_id,
            dest_variant_id=int(data["id"]),
            message="Variation migrated successfully",
        )
        return True

    def _fail(self, unit, message: str, **fields) -> bool:
        self.ledger.update(unit, status=ERROR, message=message, **fields)
        log.error("Product unit failed: %s", message, extra={"entity": "product", "unit": unit.key})
        return False

    def _fail_open_rows(self, parent_id: int, message: str, tally: _Tally) -> None:
        """The parent failed: finalize it and every still-pending variation."""
        parent = ParentUnit(parent_id)
        row = self.ledger.get(parent)
        if row is not None and row.status == PENDING:
            tally.add(self._fail(parent, message))
        for variation_row in self.ledger.variations_of(parent_id, status=PENDING):
            tally.add(self._fail(product_unit(parent_id, variation_row.source_variant_id), "Parent product failed"))
