"""Tests for customer preparation and batch migration."""
import json
import pytest
from app.core.workflow import MappingKind, MigrationStatus, Prepared, PreparationFailed
from app.db.ledger import CustomerLedger
from app.db.mappings import MappingRepository
from app.preparers.customer import CustomerPreparer, customer_addresses, customer_type
from app.processors.customers import CustomerBatchProcessor, group_table

GROUPS = {"customer": 1, "wholesale_customer": 2, "subscriber": 3}


@pytest.fixture
def processor(db, fake, store, sleeps):
    return CustomerBatchProcessor(db, fake, store, group_ids=GROUPS, delay=0.5, sleep=sleeps.append)


class TestCustomerPreparer:
    def test_wholesale_profile_preferred(self, store):
        result = CustomerPreparer(GROUPS).prepare(store.get_customer(101))

        assert isinstance(result, Prepared)
        payload = result.payload
        assert payload["customer_group_id"] == 2
        assert payload["phone"] == "555-0199"
        assert payload["company"] == "Hopper Gems"
        assert payload["tax_exempt_category"] == "wholesale"
        assert payload["addresses"][0]["address1"] == "9 Trade Ave"
        assert payload["form_fields"] == [{"name": "Primary Business", "value": "Retail"}]
        assert payload["authentication"] == {"force_password_reset": True}
        assert "wholesale_customer" in payload["notes"]

    def test_retail_customer_uses_billing(self, store):
        payload = CustomerPreparer(GROUPS).prepare(store.get_customer(100)).payload

        assert payload["customer_group_id"] == 1
        assert "tax_exempt_category" not in payload
        assert payload["addresses"][0]["country_code"] == "US"
        assert payload["addresses"][0]["phone"] == "555-0100"

    def test_missing_email_fails(self, store):
        result = CustomerPreparer(GROUPS).prepare(store.get_customer(102))
        assert result == PreparationFailed("Customer email is required")

    def test_unmapped_type_fails(self, store):
        result = CustomerPreparer({"customer": 1}).prepare(store.get_customer(101))
        assert result == PreparationFailed("Invalid customer type: wholesale_customer")

    def test_customer_type_and_shipping_address(self, store):
        assert customer_type(["subscriber", "wholesale_customer"]) == "wholesale_customer"
        assert customer_type(["subscriber"]) == "customer"

        customer = store.get_customer(100).model_copy(deep=True)
        customer.shipping.address_1 = "2 Side St"
        customer.shipping.country = "US"
        addresses = customer_addresses(customer)
        assert len(addresses) == 2
        assert "phone" not in addresses[1]


class TestGroupTable:
    def test_b2b_groups_override_static_table(self, db):
        MappingRepository(db).replace(MappingKind.CUSTOMER_GROUP, {"wholesale_customer": 42})
        table = group_table(MappingRepository(db), GROUPS)
        assert table == {"customer": 1, "wholesale_customer": 42, "subscriber": 3}


class TestCustomerBatch:
    def test_prepare_seeds_migratable_roles_only(self, processor, db):
        assert processor.prepare_customers() == {"inserted": 3, "skipped": 0, "total": 3}
        assert processor.prepare_customers()["skipped"] == 3
        assert CustomerLedger(db).get(103) is None
        assert CustomerLedger(db).get(101).customer_type == "wholesale_customer"

    def test_batch_isolates_failures(self, processor, db, fake, sleeps):
        processor.prepare_customers()

        result = processor.process_batch(10)

        assert result == {"processed": 2, "errors": 1, "remaining": 0}
        assert sleeps == [0.5, 0.5]
        ledger = CustomerLedger(db)
        assert ledger.get(100).dest_customer_id == fake.customers[0]["id"]
        assert ledger.get(101).dest_customer_group_id == 2
        assert ledger.get(102).message == "Customer email is required"
        assert processor.get_stats() == {"pending": 0, "success": 2, "error": 1, "total": 3}

    def test_api_error_message_keeps_payload(self, processor, db, fake):
        fake.fail("POST", r"customers", "Email already in use", when=lambda b: b[0]["email"] == "ada@example.com")
        processor.prepare_customers()
        processor.process_batch(10)

        detail = json.loads(CustomerLedger(db).get(100).message)
        assert detail["response"]["error"] == "Email already in use"
        assert detail["payload"]["email"] == "ada@example.com"

    def test_already_migrated_row_skips_remote_call(self, processor, db, fake):
        processor.prepare_customers()
        CustomerLedger(db).update(100, dest_customer_id=555)

        processor.process_batch(1)

        row = CustomerLedger(db).get(100)
        assert row.status == MigrationStatus.SUCCESS.value
        assert row.message == "Customer already migrated"
        assert fake.calls_to("POST", r"customers") == []

    def test_retry_after_fix(self, processor, db, fake):
        fake.fail("POST", r"customers", "Service unavailable", status_code=503)
        processor.prepare_customers()
        processor.process_batch(10)
        fake.failures.clear()

        result = processor.retry_errors(10)

        assert result["reset"] == 3
        assert result["processed"] == 2
        assert result["errors"] == 1
        assert [r.source_user_id for r in processor.list_errors()] == [102]
