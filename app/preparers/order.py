from __future__ import annotations
import logging
import re
from datetime import timezone
from email.utils import format_datetime
from typing import List, Mapping, Optional
from app.core.workflow import (
    MigrationStatus,
    ParentUnit,
    Prepared,
    PreparationFailed,
    PrepareResult,
    VariationUnit,
)
from app.db.ledger import CustomerLedger, ProductLedger
from app.preparers.location import clean_state_and_zip, country_name
from app.preparers.status import map_status, payment_method_title
from app.source.models import SourceAddress, SourceLineItem, SourceOrder
from app.source.store import SourceStore

log = logging.getLogger(__name__)

CUSTOM_ITEM_SKU = "MIGRATED-CUSTOM"
EXTERNAL_SOURCE = "M-MIG"
MAX_NAME_LENGTH = 250

_FORBIDDEN = re.compile(r"[./\\|<>:*?\"']")
_CONTROL = re.compile(r"[\x00-\x1F\x7F]")


def sanitize_product_name(raw: str, product_id: Optional[int] = None) -> str:
    name = re.sub(r"\s+", " ", raw or "").strip()
    name = _FORBIDDEN.sub("", name)

    # "Ring SetRing Set" -> "Ring Set"
    half = len(name) // 2
    if len(name) > 10 and half > 5 and name[:half] == name[half:]:
        name = name[:half]

    if len(name) > MAX_NAME_LENGTH:
        name = name[: MAX_NAME_LENGTH - 3] + "..."
    name = _CONTROL.sub("", name).strip()

    if not name:
        name = "Custom Product" + (f" {product_id}" if product_id else "")
    return name


def rfc2822(order: SourceOrder) -> str:
    created = order.date_created
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return format_datetime(created)


def _unit_prices(item: SourceLineItem) -> dict:
    quantity = item.quantity
    return {
        "price_ex_tax": round(item.subtotal / quantity, 2),
        "price_inc_tax": round((item.total + item.total_tax) / quantity, 2),
    }


class AddressError(ValueError):
    pass


class OrderPreparer:
    """Builds the v2 order payload.

    Line items resolve through the product ledger; anything that cannot be
    resolved becomes a custom line item so the order still migrates.
    """

    def __init__(
        self,
        products: ProductLedger,
        customers: CustomerLedger,
        store: SourceStore,
        status_overrides: Optional[Mapping[str, int]] = None,
    ):
        self.products = products
        self.customers = customers
        self.store = store
        self.status_overrides = dict(status_overrides or {})

    def prepare(self, order: SourceOrder) -> PrepareResult:
        try:
            billing = self.billing_address(order)
            shipping = self.shipping_addresses(order)
        except AddressError as e:
            return PreparationFailed(str(e))

        products = [p for p in (self.line_item(i) for i in order.line_items) if p is not None]
        if not products:
            return PreparationFailed("Could not process any line items for this order")

        staff_notes = f"Migrated from WooCommerce. WC Order ID: {order.id}"
        if order.coupon_codes:
            staff_notes += " | Coupon(s) Used: " + ", ".join(order.coupon_codes)

        payload = {
            "customer_id": self.customers.dest_customer_id(order.customer_id) or 0,
            "status_id": map_status(order.status, self.status_overrides),
            "date_created": rfc2822(order),
            "billing_address": billing,
            "shipping_addresses": shipping,
            "products": products,
            "subtotal_ex_tax": order.subtotal,
            "subtotal_inc_tax": round(order.subtotal + (order.total_tax - order.shipping_tax), 2),
            "total_ex_tax": round(order.total - order.total_tax, 2),
            "total_inc_tax": order.total,
            "shipping_cost_ex_tax": order.shipping_total,
            "shipping_cost_inc_tax": round(order.shipping_total + order.shipping_tax, 2),
            "payment_method": payment_method_title(order.payment_method, order.payment_method_title),
            "staff_notes": staff_notes,
            "customer_message": order.customer_note,
            "discount_amount": order.discount_total,
            "external_source": EXTERNAL_SOURCE,
        }
        return Prepared(payload)

    def _located(self, addr: SourceAddress, kind: str, order_id: int) -> dict:
        code = (addr.country or "").strip().upper()
        name = country_name(code)
        if not name:
            raise AddressError(f"Invalid or unrecognized {kind} country code '{code}' for Order #{order_id}")
        cleaned = clean_state_and_zip(addr.state, addr.postcode, code)
        data = {
            "first_name": addr.first_name,
            "last_name": addr.last_name,
            "company": addr.company,
            "street_1": addr.address_1,
            "street_2": addr.address_2,
            "city": addr.city,
            "state": cleaned.state,
            "country": name,
            "country_iso2": code,
        }
        if cleaned.zip:
            data["zip"] = cleaned.zip
        return data

    def billing_address(self, order: SourceOrder) -> dict:
        data = self._located(order.billing, "billing", order.id)
        data["phone"] = order.billing.phone
        data["email"] = order.billing.email
        return data

    def shipping_addresses(self, order: SourceOrder) -> List[dict]:
        if not order.shipping.address_1:
            return []
        data = self._located(order.shipping, "shipping", order.id)
        data["shipping_method"] = order.shipping_method_title or "Migrated Shipping"
        return [data]

    def line_item(self, item: SourceLineItem) -> Optional[dict]:
        if item.quantity <= 0:
            return None
        mapped = self._mapped_item(item)
        return mapped if mapped is not None else self.custom_item(item)

    def _mapped_item(self, item: SourceLineItem) -> Optional[dict]:
        product = self.store.get_product(item.product_id) if item.product_id else None
        if product is None:
            return None
        if product.is_variable and not item.variation_id:
            # options are required on the destination; no variant to point at
            log.info("Line item %s names a variable product without a variation, using custom item", item.id,
                     extra={"entity": "order", "unit": item.product_id})
            return None
        unit = VariationUnit(item.product_id, item.variation_id) if item.variation_id else ParentUnit(item.product_id)
        row = self.products.get(unit)
        if row is None or row.status != MigrationStatus.SUCCESS.value or not row.dest_parent_id:
            log.info("Line item %s has no migrated product, using custom item", item.id, extra={"entity": "order", "unit": unit.key})
            return None
        data = {"product_id": row.dest_parent_id, "quantity": item.quantity, **_unit_prices(item)}
        if item.variation_id:
            if not row.dest_variant_id:
                return None
            data["variant_id"] = row.dest_variant_id
        return data

    def custom_item(self, item: SourceLineItem) -> dict:
        return {
            "name": sanitize_product_name(item.name, item.product_id),
            "quantity": item.quantity,
            "sku": CUSTOM_ITEM_SKU,
            **_unit_prices(item),
        }
