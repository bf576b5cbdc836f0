from __future__ import annotations
import json
import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
from sqlalchemy.orm import Session
from app.core.bigcommerce import BigCommerceClient
from app.core.config import settings
from app.core.workflow import MappingKind, MigrationStatus, PreparationFailed, is_api_error
from app.db.ledger import CustomerLedger, OrderLedger, ProductLedger
from app.db.mappings import MappingRepository
from app.db.models import OrderMigration
from app.preparers.order import OrderPreparer
from app.preparers.status import financial_status, status_name
from app.source.models import SourceOrder
from app.source.store import SourceStore

log = logging.getLogger(__name__)


class OrderBatchProcessor:
    """Migrates historical orders oldest-first through the v2 orders endpoint."""

    def __init__(
        self,
        db: Session,
        client: BigCommerceClient,
        store: SourceStore,
        mappings: Optional[MappingRepository] = None,
        status_overrides: Optional[Dict[str, int]] = None,
        delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.client = client
        self.store = store
        self.ledger = OrderLedger(db)
        self.products = ProductLedger(db)
        self.customers = CustomerLedger(db)
        self.mappings = mappings or MappingRepository(db)
        self.preparer = OrderPreparer(
            self.products,
            self.customers,
            store,
            status_overrides=settings.order_status_overrides if status_overrides is None else status_overrides,
        )
        self.delay = settings.order_item_delay if delay is None else delay
        self.sleep = sleep

    def _row_data(self, order: SourceOrder) -> Dict[str, Any]:
        return {
            "source_order_id": order.id,
            "source_customer_id": order.customer_id or None,
            "dest_customer_id": self.customers.dest_customer_id(order.customer_id),
            "order_status": order.status,
            "order_total": Decimal(str(order.total)),
            "order_date": order.date_created.replace(tzinfo=None),
            "payment_method": order.payment_method,
            "payment_method_title": order.payment_method_title,
        }

    def prepare_orders(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> Dict[str, int]:
        inserted = skipped = 0
        orders = self.store.orders(date_from=date_from, date_to=date_to, status=status)
        for order in orders:
            _, created = self.ledger.insert_if_absent(self._row_data(order))
            if created:
                inserted += 1
            else:
                skipped += 1
        log.info("Prepared orders: %d inserted, %d skipped", inserted, skipped, extra={"entity": "order"})
        return {"inserted": inserted, "skipped": skipped, "total": len(orders)}

    def process_batch(self, batch_size: int = 10) -> Dict[str, int]:
        processed = errors = 0
        for i, row in enumerate(self.ledger.list_pending(batch_size)):
            if i:
                self.sleep(self.delay)
            try:
                ok = self.migrate_order(row)
            except Exception as e:
                log.exception("Unexpected failure migrating order", extra={"entity": "order", "unit": row.source_order_id})
                self.ledger.update(row.source_order_id, status=MigrationStatus.ERROR.value, message=f"Unexpected error: {e}")
                ok = False
            if ok:
                processed += 1
            else:
                errors += 1

        remaining = self.ledger.remaining_count()
        log.info("Order batch: %d processed, %d errors, %d remaining", processed, errors, remaining, extra={"entity": "order"})
        return {"processed": processed, "errors": errors, "remaining": remaining}

    def migrate_order(self, row: OrderMigration) -> bool:
        order_id = row.source_order_id
        if row.dest_order_id:
            self.ledger.update(order_id, status=MigrationStatus.SUCCESS.value, message="Order already migrated.")
            return True

        order = self.store.get_order(order_id)
        if order is None:
            return self._fail(order_id, "Order not found in source store")

        prepared = self.preparer.prepare(order)
        if isinstance(prepared, PreparationFailed):
            return self._fail(order_id, prepared.message)

        payload = prepared.payload
        response = self.client.create_order(payload)
        if is_api_error(response):
            message = json.dumps({"api_error": response["error"], "sent_payload": payload}, default=str)
            return self._fail(order_id, message, migration_data=payload)

        dest_id = response.get("id")
        if not dest_id:
            return self._fail(order_id, "No order ID returned: " + json.dumps(response, default=str), migration_data=payload)

        outcome = f"{status_name(payload['status_id'])}, {financial_status(order.status, order.payment_method)}"
        self.ledger.update(
            order_id,
            status=MigrationStatus.SUCCESS.value,
            dest_order_id=int(dest_id),
            dest_customer_id=payload["customer_id"] or None,
            migration_data=payload,
            message=f"Order migrated ({outcome})",
        )
        return True

    def _fail(self, order_id: int, message: str, **fields) -> bool:
        self.ledger.update(order_id, status=MigrationStatus.ERROR.value, message=message, **fields)
        log.error("Order failed: %s", message[:500], extra={"entity": "order", "unit": order_id})
        return False

    def retry_errors(self, batch_size: int = 10) -> Dict[str, int]:
        reset = self.ledger.reset_errors(batch_size)
        result = self.process_batch(batch_size)
        result["reset"] = reset
        return result

    def get_stats(self) -> Dict[str, Any]:
        return self.ledger.stats()

    def list_errors(self, limit: int = 50) -> List[OrderMigration]:
        return self.ledger.list_errors(limit)

    def validate_order_dependencies(self) -> Dict[str, Any]:
        """Readiness report for starting order migration. Reads only."""
        product_stats = self.products.stats()["products"]
        customer_stats = self.customers.stats()
        category_count = len(self.mappings.get_map(MappingKind.CATEGORY))
        order_count = self.ledger.total_count()

        checks = {
            "products_migrated": {
                "passed": product_stats[MigrationStatus.SUCCESS.value] > 0 and product_stats[MigrationStatus.PENDING.value] == 0,
                "message": (
                    f"{product_stats[MigrationStatus.SUCCESS.value]} products migrated, "
                    f"{product_stats[MigrationStatus.PENDING.value]} pending"
                ),
            },
            "customers_migrated": {
                "passed": customer_stats[MigrationStatus.PENDING.value] == 0,
                "message": (
                    f"{customer_stats[MigrationStatus.SUCCESS.value]} customers migrated, "
                    f"{customer_stats[MigrationStatus.PENDING.value]} pending"
                ),
            },
            "categories_mapped": {
                "passed": category_count > 0,
                "message": f"{category_count} categories mapped",
            },
            "orders_prepared": {
                "passed": order_count > 0,
                "message": f"{order_count} orders prepared",
            },
        }
        checks["ready"] = all(c["passed"] for c in checks.values())
        return checks
