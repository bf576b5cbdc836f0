"""Shared fixtures: in-memory ledger database, fake destination API, sample source store."""
import copy
import itertools
import re
from datetime import datetime
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.bigcommerce import BigCommerceClient
from app.db.session import init_db
from app.source.models import (
    ProductAttribute,
    SourceAddress,
    SourceAttribute,
    SourceAttributeTerm,
    SourceCategory,
    SourceCustomer,
    SourceExport,
    SourceLineItem,
    SourceOrder,
    SourceProduct,
    SourceVariation,
)
from app.source.store import InMemorySourceStore


def _error(message: str, status_code: int = 422) -> dict:
    return {"error": message, "details": {"status_code": status_code, "raw_body": message, "parsed_body": None}}


class FakeBigCommerce(BigCommerceClient):
    """Stateful stand-in for the destination API.

    Overrides `request`, so every typed client method goes through the same
    routing table. `fail()` injects API errors for matching calls.
    """

    def __init__(self):
        super().__init__(store_hash="test-store", access_token="test-token")
        self.calls = []
        self.failures = []
        self._ids = itertools.count(1000)
        self.products = {}
        self.variants = {}
        self.product_options = {}
        self.categories = []
        self.options = []
        self.customers = []
        self.customer_groups = []
        self.price_lists = []
        self.price_list_records = {}
        self.orders = []
        self._routes = [
            ("GET", r"store", self._store),
            ("POST", r"catalog/products", self._create_product),
            ("GET", r"catalog/products/options", self._list_options),
            ("POST", r"catalog/products/options", self._create_option),
            ("GET", r"catalog/products/options/(\d+)/values", self._list_option_values),
            ("POST", r"catalog/products/options/(\d+)/values", self._create_option_value),
            ("GET", r"catalog/products/(\d+)", self._get_product),
            ("PUT", r"catalog/products/(\d+)", self._update_product),
            ("GET", r"catalog/products/(\d+)/options", self._get_product_options),
            ("POST", r"catalog/products/(\d+)/options", self._create_product_option),
            ("POST", r"catalog/products/(\d+)/options/(\d+)/values", self._create_product_option_value),
            ("POST", r"catalog/products/(\d+)/variants", self._create_variant),
            ("GET", r"catalog/products/(\d+)/variants/(\d+)", self._get_variant),
            ("PUT", r"catalog/products/(\d+)/variants/(\d+)", self._update_variant),
            ("GET", r"catalog/categories", self._list_categories),
            ("POST", r"catalog/categories", self._create_category),
            ("POST", r"catalog/brands", self._create_brand),
            ("POST", r"customers", self._create_customer),
            ("GET", r"customer_groups", self._list_groups),
            ("POST", r"customer_groups", self._create_group),
            ("POST", r"pricelists", self._create_price_list),
            ("PUT", r"pricelists/(\d+)/records", self._add_price_records),
            ("POST", r"orders", self._create_order),
            ("GET", r"orders/(\d+)", self._get_order),
        ]

    def fail(self, method, pattern, message="Simulated failure", when=None, status_code=422):
        self.failures.append((method, pattern, message, when, status_code))

    def calls_to(self, method, pattern):
        return [c for c in self.calls if c[0] == method and re.fullmatch(pattern, c[1].split("?")[0])]

    def request(self, endpoint, method="GET", body=None, api_version="v3"):
        method = method.upper()
        self.calls.append((method, endpoint, copy.deepcopy(body)))
        path = endpoint.split("?")[0]

        for f_method, pattern, message, when, status_code in self.failures:
            if f_method == method and re.fullmatch(pattern, path) and (when is None or when(body)):
                return _error(message, status_code)

        for r_method, pattern, handler in self._routes:
            if r_method != method:
                continue
            m = re.fullmatch(pattern, path)
            if m:
                args = [int(g) for g in m.groups()]
                return handler(*args, body) if method in ("POST", "PUT") else handler(*args)
        return _error(f"No fake route for {method} {path}", 404)

    def _next(self) -> int:
        return next(self._ids)

    def _store(self):
        return {"name": "Test Store", "domain": "test.example.com"}

    # products

    def _create_product(self, body):
        pid = self._next()
        product = dict(body, id=pid, base_variant_id=self._next())
        product["custom_fields"] = [dict(f, id=self._next()) for f in body.get("custom_fields", [])]
        self.products[pid] = product
        self.variants[pid] = {}
        self.product_options[pid] = []
        return {"data": copy.deepcopy(product)}

    def _get_product(self, pid):
        if pid not in self.products:
            return _error("The requested product was not found.", 404)
        return {"data": copy.deepcopy(self.products[pid])}

    def _update_product(self, pid, body):
        if pid not in self.products:
            return _error("The requested product was not found.", 404)
        product = self.products[pid]
        for key, value in body.items():
            if key != "custom_fields":
                product[key] = value
        for field in body.get("custom_fields", []):
            existing = next((f for f in product["custom_fields"] if "id" in field and f["id"] == field["id"]), None)
            if existing:
                existing.update(field)
            else:
                product["custom_fields"].append(dict(field, id=self._next()))
        return {"data": copy.deepcopy(product)}

    def _get_product_options(self, pid):
        return {"data": copy.deepcopy(self.product_options.get(pid, []))}

    def _create_product_option(self, pid, body):
        option = dict(body, id=self._next())
        option["option_values"] = [dict(v, id=self._next()) for v in body.get("option_values", [])]
        self.product_options.setdefault(pid, []).append(option)
        return {"data": copy.deepcopy(option)}

    def _create_product_option_value(self, pid, option_id, body):
        option = next(o for o in self.product_options[pid] if o["id"] == option_id)
        value = dict(body, id=self._next())
        option["option_values"].append(value)
        return {"data": copy.deepcopy(value)}

    def _create_variant(self, pid, body):
        if pid not in self.products:
            return _error("The requested product was not found.", 404)
        variant = dict(body, id=self._next(), product_id=pid)
        self.variants[pid][variant["id"]] = variant
        return {"data": copy.deepcopy(variant)}

    def _get_variant(self, pid, vid):
        variant = self.variants.get(pid, {}).get(vid)
        if variant is None:
            return _error("The requested variant was not found.", 404)
        return {"data": copy.deepcopy(variant)}

    def _update_variant(self, pid, vid, body):
        variant = self.variants.get(pid, {}).get(vid)
        if variant is None:
            return _error("The requested variant was not found.", 404)
        variant.update(body)
        return {"data": copy.deepcopy(variant)}

    # catalog

    def _list_categories(self):
        return {"data": copy.deepcopy(self.categories), "meta": {"pagination": {"total": len(self.categories)}}}

    def _create_category(self, body):
        category = dict(body, id=self._next())
        self.categories.append(category)
        return {"data": copy.deepcopy(category)}

    def _list_options(self):
        return {"data": copy.deepcopy(self.options)}

    def _create_option(self, body):
        option = dict(body, id=self._next(), option_values=[])
        self.options.append(option)
        return {"data": copy.deepcopy(option)}

    def _list_option_values(self, option_id):
        option = next((o for o in self.options if o["id"] == option_id), None)
        return {"data": copy.deepcopy(option["option_values"] if option else [])}

    def _create_option_value(self, option_id, body):
        option = next(o for o in self.options if o["id"] == option_id)
        value = dict(body, id=self._next())
        option["option_values"].append(value)
        return {"data": copy.deepcopy(value)}

    def _create_brand(self, body):
        return {"data": dict(body, id=self._next())}

    # customers, b2b

    def _create_customer(self, body):
        customer = dict(body[0], id=self._next())
        self.customers.append(customer)
        return {"data": [copy.deepcopy(customer)]}

    def _list_groups(self):
        return copy.deepcopy(self.customer_groups)

    def _create_group(self, body):
        group = dict(body, id=self._next())
        self.customer_groups.append(group)
        return copy.deepcopy(group)

    def _create_price_list(self, body):
        price_list = dict(body, id=self._next())
        self.price_lists.append(price_list)
        return {"data": copy.deepcopy(price_list)}

    def _add_price_records(self, list_id, body):
        self.price_list_records.setdefault(list_id, []).extend(body)
        return {}

    # orders

    def _create_order(self, body):
        order = dict(body, id=self._next())
        self.orders.append(order)
        return copy.deepcopy(order)

    def _get_order(self, order_id):
        order = next((o for o in self.orders if o["id"] == order_id), None)
        return copy.deepcopy(order) if order else _error("Order not found", 404)


def sample_export() -> SourceExport:
    us_billing = SourceAddress(
        first_name="Ada", last_name="Lovelace", address_1="1 Main St", city="Beverly Hills",
        state="CA", postcode="90210", country="US", phone="555-0100", email="ada@example.com",
    )
    return SourceExport(
        categories=[
            SourceCategory(id=10, name="Jewelry", slug="jewelry"),
            SourceCategory(id=11, name="Rings", slug="rings", parent_id=10),
            SourceCategory(id=12, name="Necklaces", slug="necklaces", parent_id=10),
        ],
        attributes=[
            SourceAttribute(id=1, name="pa_color", label="Color", terms=[
                SourceAttributeTerm(id=1, name="Gold", slug="gold"),
                SourceAttributeTerm(id=2, name="Silver", slug="silver"),
            ]),
            SourceAttribute(id=2, name="pa_size", label="Size", terms=[
                SourceAttributeTerm(id=3, name="6", slug="6"),
                SourceAttributeTerm(id=4, name="7", slug="7"),
            ]),
            SourceAttribute(id=3, name="metal", label="Metal", terms=[
                SourceAttributeTerm(id=5, name="14k", slug="14k"),
            ]),
        ],
        products=[
            SourceProduct(
                id=1, name="Gold Ring", sku="GR-1", regular_price="25.00", weight="29-3.5",
                manage_stock=True, stock_quantity=5, category_ids=[11, 99],
                image_urls=["https://img.example.com/ring.jpg", "https://img.example.com/ring-2.jpg"],
                role_based_prices={"wholesale_customer": 18.0},
            ),
            SourceProduct(
                id=2, name="Chain Necklace", type="variable", sku="CN", category_ids=[12],
                attributes=[
                    ProductAttribute(name="pa_color", label="Color", options=["Gold", "Silver"], variation=True),
                    ProductAttribute(name="metal", label="Metal", options=["14k"], variation=True),
                ],
                variations=[
                    SourceVariation(id=21, parent_id=2, sku="CN-G", regular_price="40.00",
                                    attributes={"pa_color": "Gold", "metal": "14k"}),
                    SourceVariation(id=22, parent_id=2, sku="CN-S", regular_price="35.00",
                                    attributes={"pa_color": "Silver", "metal": "14k"}),
                ],
            ),
            SourceProduct(id=3, name="Unreleased Bracelet", status="draft", sku="UB"),
        ],
        customers=[
            SourceCustomer(id=100, email="ada@example.com", first_name="Ada", last_name="Lovelace",
                           roles=["customer"], billing=us_billing),
            SourceCustomer(id=101, email="buyer@shop.example.com", first_name="Grace", last_name="Hopper",
                           roles=["wholesale_customer"],
                           wholesale={"company_name": "Hopper Gems", "phone": "555-0199",
                                      "address_1": "9 Trade Ave", "city": "Austin", "state": "TX",
                                      "postcode": "73301", "country": "US", "primary_business": "Retail"}),
            SourceCustomer(id=102, email="", first_name="No", last_name="Email", roles=["customer"]),
            SourceCustomer(id=103, email="admin@example.com", roles=["administrator"]),
        ],
        orders=[
            SourceOrder(
                id=500, status="completed", customer_id=100, date_created=datetime(2023, 2, 1, 12, 0),
                subtotal=80.0, total=88.0, total_tax=8.0, payment_method="stripe",
                coupon_codes=["SPRING10"], billing=us_billing,
                line_items=[
                    SourceLineItem(id=1, product_id=1, name="Gold Ring", quantity=2, subtotal=50.0, total=50.0, total_tax=4.0),
                    SourceLineItem(id=2, product_id=999, name="Old Ring", quantity=1, subtotal=30.0, total=30.0, total_tax=4.0),
                ],
            ),
            SourceOrder(
                id=501, status="processing", date_created=datetime(2023, 1, 1, 9, 30), total=10.0,
                billing=SourceAddress(first_name="Guest", address_1="?", country="ZZ"),
                line_items=[SourceLineItem(id=3, product_id=1, name="Gold Ring", quantity=1, subtotal=10.0, total=10.0)],
            ),
        ],
        suppliers={1: "Acme Metals"},
    )


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.close()


@pytest.fixture
def fake():
    return FakeBigCommerce()


@pytest.fixture
def store():
    return InMemorySourceStore(sample_export())


@pytest.fixture
def sleeps():
    """Records pacing delays instead of sleeping."""
    return []
