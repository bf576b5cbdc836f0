from __future__ import annotations
import json
import logging
import time
from typing import Callable, Dict, List, Mapping, Optional
from sqlalchemy.orm import Session
from app.core.bigcommerce import BigCommerceClient
from app.core.config import settings
from app.core.workflow import MappingKind, MigrationStatus, PreparationFailed, is_api_error
from app.db.ledger import CustomerLedger
from app.db.mappings import MappingRepository
from app.db.models import CustomerMigration
from app.preparers.customer import MIGRATED_ROLES, CustomerPreparer, customer_type
from app.source.store import SourceStore

log = logging.getLogger(__name__)


def group_table(mappings: MappingRepository, static: Optional[Mapping[str, int]] = None) -> Dict[str, int]:
    """Groups created by the B2B setup take precedence over the static table."""
    table = dict(settings.customer_group_ids if static is None else static)
    table.update(mappings.get_map(MappingKind.CUSTOMER_GROUP))
    return table


class CustomerBatchProcessor:
    def __init__(
        self,
        db: Session,
        client: BigCommerceClient,
        store: SourceStore,
        mappings: Optional[MappingRepository] = None,
        group_ids: Optional[Mapping[str, int]] = None,
        delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.client = client
        self.store = store
        self.ledger = CustomerLedger(db)
        self.mappings = mappings or MappingRepository(db)
        self.preparer = CustomerPreparer(group_table(self.mappings, group_ids))
        self.delay = settings.customer_item_delay if delay is None else delay
        self.sleep = sleep

    def prepare_customers(self) -> Dict[str, int]:
        inserted = skipped = 0
        customers = self.store.customers(roles=MIGRATED_ROLES)
        for customer in customers:
            ok = self.ledger.insert_if_absent(
                customer.id,
                email=customer.email,
                customer_type=customer_type(customer.roles),
                group_id=self.preparer.group_for(customer.roles),
            )
            if ok:
                inserted += 1
            else:
                skipped += 1
        log.info("Prepared customers: %d inserted, %d skipped", inserted, skipped, extra={"entity": "customer"})
        return {"inserted": inserted, "skipped": skipped, "total": len(customers)}

    def process_batch(self, batch_size: int = 10) -> Dict[str, int]:
        processed = errors = 0
        for i, row in enumerate(self.ledger.list_pending(batch_size)):
            if i:
                self.sleep(self.delay)
            try:
                ok = self.migrate_customer(row)
            except Exception as e:
                log.exception("Unexpected failure migrating customer", extra={"entity": "customer", "unit": row.source_user_id})
                self.ledger.update(row.source_user_id, status=MigrationStatus.ERROR.value, message=f"Unexpected error: {e}")
                ok = False
            if ok:
                processed += 1
            else:
                errors += 1

        remaining = self.ledger.remaining_count()
        log.info("Customer batch: %d processed, %d errors, %d remaining", processed, errors, remaining, extra={"entity": "customer"})
        return {"processed": processed, "errors": errors, "remaining": remaining}

    def migrate_customer(self, row: CustomerMigration) -> bool:
        user_id = row.source_user_id
        if row.dest_customer_id:
            self.ledger.update(user_id, status=MigrationStatus.SUCCESS.value, message="Customer already migrated")
            return True

        customer = self.store.get_customer(user_id)
        if customer is None:
            return self._fail(user_id, "User not found in source store")

        prepared = self.preparer.prepare(customer)
        if isinstance(prepared, PreparationFailed):
            return self._fail(user_id, prepared.message)

        response = self.client.create_customer(prepared.payload)
        if is_api_error(response):
            return self._fail(user_id, json.dumps({"response": response, "payload": prepared.payload}, default=str))

        created = response.get("data") or []
        if not created or not created[0].get("id"):
            return self._fail(user_id, "No customer ID returned: " + json.dumps(response, default=str))

        self.ledger.update(
            user_id,
            status=MigrationStatus.SUCCESS.value,
            dest_customer_id=int(created[0]["id"]),
            dest_customer_group_id=prepared.payload["customer_group_id"],
            message="Customer migrated successfully",
        )
        return True

    def _fail(self, user_id: int, message: str) -> bool:
        self.ledger.update(user_id, status=MigrationStatus.ERROR.value, message=message)
        log.error("Customer failed: %s", message, extra={"entity": "customer", "unit": user_id})
        return False

    def retry_errors(self, batch_size: int = 10) -> Dict[str, int]:
        reset = self.ledger.reset_errors(batch_size)
        result = self.process_batch(batch_size)
        result["reset"] = reset
        return result

    def get_stats(self) -> Dict[str, int]:
        return self.ledger.stats()

    def list_errors(self, limit: int = 50) -> List[CustomerMigration]:
        return self.ledger.list_errors(limit)
