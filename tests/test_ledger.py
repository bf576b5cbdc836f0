"""Tests for the migration ledgers and the mapping repository."""
from datetime import datetime, timedelta
from app.core.workflow import MappingKind, MigrationStatus, ParentUnit, VariationUnit, VerificationStatus, product_unit
from app.db.ledger import CustomerLedger, OrderLedger, ProductLedger, VerificationLedger
from app.db.mappings import MappingRepository


class TestProductUnits:
    def test_unit_keys(self):
        assert ParentUnit(5).key == "5"
        assert VariationUnit(5, 9).key == "5:9"
        assert product_unit(5) == ParentUnit(5)
        assert product_unit(5, 9) == VariationUnit(5, 9)

    def test_only_a_missing_variant_id_means_parent(self):
        assert product_unit(5, None) == ParentUnit(5)
        assert product_unit(5, 0) == VariationUnit(5, 0)
        assert product_unit(5, 0).key == "5:0"


class TestProductLedger:
    def test_insert_is_idempotent(self, db):
        ledger = ProductLedger(db)

        assert ledger.insert_if_absent(ParentUnit(1)) is True
        assert ledger.insert_if_absent(ParentUnit(1)) is False
        assert ledger.insert_if_absent(VariationUnit(1, 11)) is True

        row = ledger.get(VariationUnit(1, 11))
        assert row.status == MigrationStatus.PENDING.value
        assert row.source_parent_id == 1
        assert row.source_variant_id == 11
        assert not row.is_parent

    def test_concurrent_insert_collision_is_skipped(self, db, monkeypatch):
        ledger = ProductLedger(db)
        ledger.insert_if_absent(ParentUnit(1))

        # Simulate a second writer that checked before the first one committed
        monkeypatch.setattr(ledger, "get", lambda unit: None)
        assert ledger.insert_if_absent(ParentUnit(1)) is False

        assert ProductLedger(db).stats()["products"]["total"] == 1

    def test_pending_parents_include_parents_with_pending_variations(self, db):
        ledger = ProductLedger(db)
        for unit in (ParentUnit(1), ParentUnit(2), VariationUnit(2, 21), ParentUnit(3)):
            ledger.insert_if_absent(unit)
        ledger.update(ParentUnit(1), status=MigrationStatus.SUCCESS.value, dest_parent_id=100)
        ledger.update(ParentUnit(2), status=MigrationStatus.SUCCESS.value, dest_parent_id=200)

        assert ledger.list_pending_parents(10) == [2, 3]
        assert ledger.remaining_count() == 2
        assert ledger.list_pending_parents(1) == [2]

    def test_reset_errors_respects_limit(self, db):
        ledger = ProductLedger(db)
        for pid in (1, 2, 3):
            ledger.insert_if_absent(ParentUnit(pid))
            ledger.update(ParentUnit(pid), status=MigrationStatus.ERROR.value, message="boom")

        assert ledger.reset_errors(2) == 2

        stats = ledger.stats()["products"]
        assert stats["pending"] == 2
        assert stats["error"] == 1
        assert ledger.get(ParentUnit(1)).message == "Retrying migration"

    def test_stats_split_products_and_variations(self, db):
        ledger = ProductLedger(db)
        ledger.insert_if_absent(ParentUnit(1))
        ledger.insert_if_absent(VariationUnit(1, 11))
        ledger.insert_if_absent(VariationUnit(1, 12))
        ledger.update(VariationUnit(1, 12), status=MigrationStatus.ERROR.value)

        stats = ledger.stats()
        assert stats["products"] == {"pending": 1, "success": 0, "error": 0, "total": 1}
        assert stats["variations"] == {"pending": 1, "success": 0, "error": 1, "total": 2}

    def test_dest_product_id_only_for_successful_parent(self, db):
        ledger = ProductLedger(db)
        ledger.insert_if_absent(ParentUnit(1))
        ledger.update(ParentUnit(1), dest_parent_id=100)
        assert ledger.dest_product_id(1) is None

        ledger.update(ParentUnit(1), status=MigrationStatus.SUCCESS.value)
        assert ledger.dest_product_id(1) == 100


class TestCustomerAndOrderLedgers:
    def test_customer_insert_and_destination_lookup(self, db):
        ledger = CustomerLedger(db)
        assert ledger.insert_if_absent(7, "x@example.com", "customer", 1) is True
        assert ledger.insert_if_absent(7, "x@example.com", "customer", 1) is False

        assert ledger.dest_customer_id(7) is None
        ledger.update(7, status=MigrationStatus.SUCCESS.value, dest_customer_id=900)
        assert ledger.dest_customer_id(7) == 900
        assert ledger.dest_customer_id(None) is None

    def test_orders_listed_oldest_first(self, db):
        ledger = OrderLedger(db)
        base = {"order_status": "completed", "order_total": 10}
        ledger.insert_if_absent(dict(base, source_order_id=2, order_date=datetime(2023, 5, 1)))
        ledger.insert_if_absent(dict(base, source_order_id=1, order_date=datetime(2023, 1, 1)))
        _, inserted = ledger.insert_if_absent(dict(base, source_order_id=1, order_date=datetime(2023, 1, 1)))

        assert inserted is False
        assert [r.source_order_id for r in ledger.list_pending(10)] == [1, 2]

    def test_order_stats_include_values(self, db):
        ledger = OrderLedger(db)
        ledger.insert_if_absent({"source_order_id": 1, "order_status": "completed", "order_total": 10, "order_date": datetime(2023, 1, 1)})
        ledger.insert_if_absent({"source_order_id": 2, "order_status": "completed", "order_total": 25, "order_date": datetime(2023, 1, 2)})

        stats = ledger.stats()
        assert stats["total"] == 2
        assert stats["total_value"] == 35.0
        assert stats["average_value"] == 17.5


class TestVerificationLedger:
    def test_finish_and_failed_listing(self, db):
        ledger = VerificationLedger(db)
        ledger.insert_if_absent(ParentUnit(1), dest_parent_id=100)
        ledger.insert_if_absent(VariationUnit(1, 11), dest_parent_id=100, dest_variant_id=110)
        assert ledger.insert_if_absent(ParentUnit(1), dest_parent_id=100) is False

        first, second = ledger.list_pending(10)
        ledger.finish(first, VerificationStatus.VERIFIED, "Verified - no fixes needed")
        ledger.finish(second, VerificationStatus.FAILED, "Variant not found in destination")

        assert ledger.stats() == {"pending": 0, "verified": 1, "failed": 1, "total": 2}
        failed = ledger.list_failed()
        assert [r.unit_key for r in failed] == ["1:11"]
        assert failed[0].last_verified is not None

    def test_reset_and_cleanup(self, db):
        ledger = VerificationLedger(db)
        ledger.insert_if_absent(ParentUnit(1), dest_parent_id=100)
        record = ledger.list_pending(1)[0]
        ledger.finish(record, VerificationStatus.FAILED, "gone")

        assert ledger.delete_failed_before(datetime.utcnow() - timedelta(days=1)) == 0
        assert ledger.reset_failed(10) == 1
        assert ledger.remaining_count() == 1

        ledger.finish(record, VerificationStatus.FAILED, "gone again")
        assert ledger.delete_failed_before(datetime.utcnow() + timedelta(seconds=5)) == 1
        assert ledger.stats()["total"] == 0


class TestMappingRepository:
    def test_replace_overwrites_whole_kind(self, db):
        repo = MappingRepository(db)
        repo.replace(MappingKind.CATEGORY, {10: 900, 11: 901})
        repo.replace(MappingKind.BRAND, {"Acme": 5})
        repo.replace(MappingKind.CATEGORY, {12: 902})

        fresh = MappingRepository(db)
        assert fresh.get_map(MappingKind.CATEGORY) == {"12": 902}
        assert fresh.get(MappingKind.BRAND, "Acme") == 5
        assert fresh.get(MappingKind.CATEGORY, 10) is None

    def test_set_adds_one_key(self, db):
        repo = MappingRepository(db)
        repo.set(MappingKind.OPTION, "pa_color", 44)
        repo.set(MappingKind.OPTION, "pa_size", 45)
        assert MappingRepository(db).get_map(MappingKind.OPTION) == {"pa_color": 44, "pa_size": 45}
