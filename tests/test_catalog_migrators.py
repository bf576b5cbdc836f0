"""Tests for the one-shot category, attribute and B2B setup migrators."""
from app.core.workflow import MappingKind
from app.db.mappings import MappingRepository
from app.preparers.attribute import AttributeMigrator, color_hex, option_type
from app.preparers.b2b import B2BHandler
from app.preparers.category import CategoryMigrator, build_hierarchy, category_payload
from app.source.models import SourceCategory


class TestCategoryMigrator:
    def test_hierarchy_created_parent_first(self, db, fake, store):
        result = CategoryMigrator(fake, MappingRepository(db), store).migrate_all()

        assert (result["success"], result["error"], result["skipped"]) == (3, 0, 0)
        category_map = MappingRepository(db).get_map(MappingKind.CATEGORY)
        jewelry = category_map["10"]
        children = [c for c in fake.categories if c["parent_id"] == jewelry]
        assert sorted(c["name"] for c in children) == ["Necklaces", "Rings"]
        assert set(category_map) == {"10", "11", "12"}

    def test_existing_destination_category_reused(self, db, fake, store):
        fake.categories.append({"id": 900, "name": "Jewelry", "parent_id": 0})

        result = CategoryMigrator(fake, MappingRepository(db), store).migrate_all()

        assert (result["success"], result["skipped"]) == (2, 1)
        assert "Using existing category: Jewelry" in result["messages"]
        assert MappingRepository(db).get(MappingKind.CATEGORY, 10) == 900
        assert all(c["parent_id"] == 900 for c in fake.categories if c["name"] != "Jewelry")

    def test_rerun_skips_mapped_categories(self, db, fake, store):
        CategoryMigrator(fake, MappingRepository(db), store).migrate_all()
        posts = len(fake.calls_to("POST", r"catalog/categories"))

        result = CategoryMigrator(fake, MappingRepository(db), store).migrate_all()

        assert result["skipped"] == 3
        assert len(fake.calls_to("POST", r"catalog/categories")) == posts

    def test_failed_parent_leaves_subtree_unmapped(self, db, fake, store):
        fake.fail("POST", r"catalog/categories", "Name taken", when=lambda b: b["name"] == "Jewelry")

        result = CategoryMigrator(fake, MappingRepository(db), store).migrate_all()

        assert (result["success"], result["error"]) == (0, 1)
        assert MappingRepository(db).get_map(MappingKind.CATEGORY) == {}

    def test_payload_and_hierarchy_helpers(self):
        category = SourceCategory(id=5, name="Rings", slug="rings", parent_id=1, seo_title="Buy Rings")
        payload = category_payload(category, 900)
        assert payload["parent_id"] == 900
        assert payload["custom_url"]["url"] == "/rings/"
        assert payload["page_title"] == "Buy Rings"
        assert [c.id for c in build_hierarchy([category])[1]] == [5]


class TestAttributeMigrator:
    def test_options_created_with_typed_values(self, db, fake, store):
        migrator = AttributeMigrator(fake, MappingRepository(db), store, excluded=["metal"])

        result = migrator.migrate_all()

        assert result["options"] == {"success": 2, "error": 0, "skipped": 1}
        color = next(o for o in fake.options if o["display_name"] == "Color")
        assert color["type"] == "swatch"
        assert color["option_values"][0]["value_data"] == {"colors": ["#FFD700"]}
        size = next(o for o in fake.options if o["display_name"] == "Size")
        assert size["type"] == "rectangles"

        repo = MappingRepository(db)
        assert repo.get(MappingKind.OPTION, "pa_color") == color["id"]
        assert len(repo.get_map(MappingKind.OPTION_VALUE)) == 4

    def test_existing_option_values_synced_by_label(self, db, fake, store):
        fake.options.append({"id": 700, "display_name": "Color", "option_values": [{"id": 701, "label": "Gold"}]})

        AttributeMigrator(fake, MappingRepository(db), store, excluded=["metal"]).migrate_all()

        color = next(o for o in fake.options if o["id"] == 700)
        assert [v["label"] for v in color["option_values"]] == ["Gold", "Silver"]
        assert MappingRepository(db).get(MappingKind.OPTION, "pa_color") == 700

    def test_type_and_color_helpers(self):
        assert option_type("pa_colour") == "swatch"
        assert option_type("pa_ring-size") == "rectangles"
        assert option_type("pa_finish") == "dropdown"
        assert color_hex("rose-gold") == "#B76E79"
        assert color_hex("antique-gold") == "#FFD700"
        assert color_hex("teal", "#008080") == "#008080"
        assert color_hex("teal") is None


class TestB2BHandler:
    def test_groups_and_price_lists_persisted(self, db, fake):
        result = B2BHandler(fake, MappingRepository(db)).setup_b2b_features()

        assert result["customer_groups"] == {"success": 4, "error": 0}
        assert result["price_lists"] == {"success": 4, "error": 0}

        groups = MappingRepository(db).get_map(MappingKind.CUSTOMER_GROUP)
        assert set(groups) == {"wholesale_customer", "distributor", "dealer", "customer"}
        wholesale = next(g for g in fake.customer_groups if g["id"] == groups["wholesale_customer"])
        assert wholesale["discount_rules"] == [{"type": "all", "method": "percent", "amount": 20}]
        default = next(g for g in fake.customer_groups if g["id"] == groups["customer"])
        assert default["is_default"] is True

        lists = MappingRepository(db).get_map(MappingKind.PRICE_LIST)
        assert set(lists) == {"login_required", "wholesale_customer", "distributor", "dealer"}

    def test_group_failure_counted(self, db, fake):
        fake.fail("POST", r"customer_groups", "Group name exists", when=lambda b: b["name"] == "Dealer")

        result = B2BHandler(fake, MappingRepository(db)).setup_b2b_features()

        assert result["customer_groups"] == {"success": 3, "error": 1}
        assert "dealer" not in MappingRepository(db).get_map(MappingKind.CUSTOMER_GROUP)
