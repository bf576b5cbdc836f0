"""Tests for order batch migration and the readiness report."""
import json
from datetime import datetime
import pytest
from app.core.workflow import MappingKind, MigrationStatus, ParentUnit
from app.db.ledger import CustomerLedger, OrderLedger, ProductLedger
from app.db.mappings import MappingRepository
from app.processors.orders import OrderBatchProcessor


@pytest.fixture
def processor(db, fake, store, sleeps):
    return OrderBatchProcessor(db, fake, store, delay=1.0, sleep=sleeps.append)


class TestPrepareOrders:
    def test_seeds_rows_with_order_metadata(self, processor, db):
        assert processor.prepare_orders() == {"inserted": 2, "skipped": 0, "total": 2}
        assert processor.prepare_orders()["skipped"] == 2

        row = OrderLedger(db).get(500)
        assert row.source_customer_id == 100
        assert row.order_status == "completed"
        assert float(row.order_total) == 88.0
        assert row.order_date == datetime(2023, 2, 1, 12, 0)
        assert OrderLedger(db).get(501).source_customer_id is None

    def test_filters_by_date_and_status(self, processor):
        assert processor.prepare_orders(date_from=datetime(2023, 1, 15))["total"] == 1
        assert processor.prepare_orders(status="processing")["inserted"] == 1


class TestOrderBatch:
    def test_oldest_first_and_failures_isolated(self, processor, db, fake, sleeps):
        processor.prepare_orders()

        result = processor.process_batch(10)

        assert result == {"processed": 1, "errors": 1, "remaining": 0}
        assert sleeps == [1.0]
        ledger = OrderLedger(db)
        assert "country code 'ZZ'" in ledger.get(501).message
        migrated = ledger.get(500)
        assert migrated.status == MigrationStatus.SUCCESS.value
        assert migrated.dest_order_id == fake.orders[0]["id"]
        assert migrated.migration_data["external_source"] == "M-MIG"
        assert migrated.message == "Order migrated (Completed, paid)"

    def test_api_error_keeps_sent_payload(self, processor, db, fake):
        fake.fail("POST", r"orders", "The field 'billing_address' is invalid.", status_code=400)
        processor.prepare_orders()
        processor.process_batch(10)

        row = OrderLedger(db).get(500)
        detail = json.loads(row.message)
        assert detail["api_error"] == "The field 'billing_address' is invalid."
        assert detail["sent_payload"]["staff_notes"].startswith("Migrated from WooCommerce")
        assert row.migration_data["customer_id"] == 0

    def test_customer_resolved_at_migration_time(self, processor, db, fake):
        processor.prepare_orders()
        customers = CustomerLedger(db)
        customers.insert_if_absent(100, "ada@example.com", "customer", 1)
        customers.update(100, status=MigrationStatus.SUCCESS.value, dest_customer_id=321)

        processor.process_batch(10)

        assert fake.orders[0]["customer_id"] == 321
        assert OrderLedger(db).get(500).dest_customer_id == 321

    def test_already_migrated_order_not_resent(self, processor, db, fake):
        processor.prepare_orders()
        OrderLedger(db).update(500, dest_order_id=42)

        processor.process_batch(10)

        assert OrderLedger(db).get(500).message == "Order already migrated."
        assert fake.orders == []

    def test_stats_and_error_listing(self, processor):
        processor.prepare_orders()
        processor.process_batch(10)

        stats = processor.get_stats()
        assert stats["success"] == 1
        assert stats["error"] == 1
        assert stats["total_value"] == 98.0
        assert stats["average_value"] == 49.0
        assert [r.source_order_id for r in processor.list_errors()] == [501]


class TestReadiness:
    def test_nothing_ready_on_empty_ledgers(self, processor):
        report = processor.validate_order_dependencies()

        assert report["ready"] is False
        assert report["products_migrated"]["passed"] is False
        assert report["customers_migrated"]["passed"] is True
        assert report["orders_prepared"] == {"passed": False, "message": "0 orders prepared"}

    def test_ready_when_all_checks_pass(self, processor, db):
        products = ProductLedger(db)
        products.insert_if_absent(ParentUnit(1))
        products.update(ParentUnit(1), status=MigrationStatus.SUCCESS.value, dest_parent_id=555)
        MappingRepository(db).replace(MappingKind.CATEGORY, {11: 901})
        processor.prepare_orders()

        report = processor.validate_order_dependencies()

        assert report["ready"] is True
        assert report["categories_mapped"]["message"] == "1 categories mapped"

    def test_report_is_read_only(self, processor, db, fake):
        processor.validate_order_dependencies()
        assert OrderLedger(db).total_count() == 0
        assert fake.calls == []
