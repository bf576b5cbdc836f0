from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple
from app.core.bigcommerce import BigCommerceClient
from app.core.workflow import MappingKind, Prepared, PreparationFailed, PrepareResult, is_api_error
from app.db.mappings import MappingRepository
from app.preparers.attribute import color_hex, is_color_attribute, option_type
from app.preparers.base import custom_field, optional_price, to_float
from app.preparers.weight import convert_grams, normalize_weight
from app.source.models import ProductAttribute, SourceAttributeTerm, SourceProduct, SourceVariation
from app.source.store import SourceStore

log = logging.getLogger(__name__)

PRICE_HIDDEN_LABEL = "Login to see price"
WEIGHT_RANGE_FIELD = "weight_range_grams"


def inventory_tracking(product: SourceProduct) -> str:
    if product.is_variable:
        return "variant"
    return "product" if product.manage_stock else "none"


def weight_fields(weight: str, unit: str, thorough: bool = False) -> Tuple[float, List[dict]]:
    """Destination weight plus the audit custom field for ranges."""
    normalized = normalize_weight(weight, thorough=thorough)
    fields = []
    if normalized.is_range:
        fields.append(custom_field(WEIGHT_RANGE_FIELD, normalized.range_label))
    return convert_grams(normalized.grams, unit), fields


@dataclass
class OptionValueRef:
    option_id: int
    value_id: int


@dataclass
class ProductOptions:
    """attribute name -> option value label -> destination refs."""
    values: Dict[str, Dict[str, OptionValueRef]] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)

    def resolve(self, attribute: str, label: str) -> Optional[OptionValueRef]:
        return self.values.get(attribute, {}).get(label)


class ProductPreparer:
    def __init__(
        self,
        mappings: MappingRepository,
        store: SourceStore,
        weight_unit: str = "oz",
        excluded_attributes: Iterable[str] = (),
    ):
        self.mappings = mappings
        self.store = store
        self.weight_unit = weight_unit
        self.excluded = set(excluded_attributes)

    def variant_attributes(self, product: SourceProduct) -> List[ProductAttribute]:
        return [a for a in product.attributes if a.variation and a.name not in self.excluded]

    def prepare(self, product: SourceProduct) -> PrepareResult:
        if not product.name:
            return PreparationFailed("Product name is required")

        weight, custom_fields = weight_fields(product.weight, self.weight_unit)
        price = to_float(product.regular_price)
        data = {
            "name": product.name,
            "type": "physical",
            "sku": product.sku,
            "description": product.description,
            "weight": weight,
            "price": price,
            "retail_price": price,
            "inventory_tracking": inventory_tracking(product),
            "inventory_level": product.stock_quantity or 0,
            "is_visible": product.catalog_visibility != "hidden",
            "categories": self.categories(product),
        }
        sale_price = optional_price(product.sale_price)
        if sale_price is not None:
            data["sale_price"] = sale_price
        brand_id = self.brand(product)
        if brand_id:
            data["brand_id"] = brand_id
        images = self.images(product)
        if images:
            data["images"] = images

        data["custom_fields"] = self.attribute_fields(product) + custom_fields + self.related_fields(product)
        data.update(self.b2b_fields(product, data["custom_fields"]))
        return Prepared(data)

    def categories(self, product: SourceProduct) -> List[int]:
        category_map = self.mappings.get_map(MappingKind.CATEGORY)
        return [category_map[str(c)] for c in product.category_ids if str(c) in category_map]

    def brand(self, product: SourceProduct) -> Optional[int]:
        attr = product.attribute("brand")
        if attr and attr.options:
            return self.mappings.get(MappingKind.BRAND, attr.options[0])
        return None

    def images(self, product: SourceProduct) -> List[dict]:
        return [
            {"is_thumbnail": i == 0, "sort_order": i, "image_url": url}
            for i, url in enumerate(product.image_urls)
        ]

    def attribute_fields(self, product: SourceProduct) -> List[dict]:
        """Non-variant attributes and excluded variant attributes become custom fields."""
        return [
            custom_field(a.display_name, ", ".join(a.options))
            for a in product.attributes
            if a.options and (not a.variation or a.name in self.excluded)
        ]

    def related_fields(self, product: SourceProduct) -> List[dict]:
        fields = []
        for name, ids in (("cross_sell_products", product.cross_sell_ids), ("upsell_products", product.upsell_ids)):
            skus = []
            for pid in ids:
                related = self.store.get_product(pid)
                if related and related.sku:
                    skus.append(related.sku)
            if skus:
                fields.append(custom_field(name, ",".join(skus)))
        return fields

    def b2b_fields(self, product: SourceProduct, custom_fields: List[dict]) -> dict:
        data = {}
        if product.hide_price_until_login:
            data["is_price_hidden"] = True
            data["price_hidden_label"] = PRICE_HIDDEN_LABEL
        if product.role_based_prices:
            custom_fields.append(custom_field("role_based_pricing", json.dumps(product.role_based_prices)))
        if product.min_quantity:
            data["order_quantity_minimum"] = int(product.min_quantity)
        return data

    def prepare_variant(self, product: SourceProduct, variation: SourceVariation, options: ProductOptions) -> PrepareResult:
        option_values = []
        for attr in self.variant_attributes(product):
            label = variation.attributes.get(attr.name, "")
            ref = options.resolve(attr.name, label) if label else None
            if ref is None:
                return PreparationFailed(f"Unresolved option {attr.display_name}={label or '(any)'}")
            option_values.append({"option_id": ref.option_id, "id": ref.value_id})

        weight, _ = weight_fields(variation.weight, self.weight_unit)
        price = to_float(variation.regular_price)
        data = {
            "sku": variation.sku,
            "price": price,
            "retail_price": price,
            "weight": weight,
            "inventory_level": variation.stock_quantity or 0,
            "option_values": option_values,
        }
        sale_price = optional_price(variation.sale_price)
        if sale_price is not None:
            data["sale_price"] = sale_price
        return Prepared(data)


def used_values(product: SourceProduct, attr: ProductAttribute) -> List[str]:
    """Option labels actually chosen by at least one variation, in attribute order."""
    chosen = {v.attributes.get(attr.name) for v in product.variations}
    chosen.discard(None)
    chosen.discard("")
    ordered = [o for o in attr.options if o in chosen]
    ordered += sorted(chosen - set(ordered))
    return ordered


class ProductOptionBuilder:
    """Creates the per-product options a variable product's variants reference.

    Existing options on the destination product are reused, so building is
    safe to repeat for retried variants.
    """

    def __init__(self, client: BigCommerceClient, preparer: ProductPreparer):
        self.client = client
        self.preparer = preparer

    def ensure(self, dest_product_id: int, product: SourceProduct) -> ProductOptions:
        options = ProductOptions()
        response = self.client.get_product_options(dest_product_id)
        if is_api_error(response):
            options.failed.append(f"Could not load product options: {response['error']}")
            return options
        existing = {o.get("display_name"): o for o in response.get("data") or []}

        for attr in self.preparer.variant_attributes(product):
            labels = used_values(product, attr)
            if not labels:
                continue
            current = existing.get(attr.display_name)
            if current:
                self._sync_values(dest_product_id, product, attr, current, labels, options)
            else:
                self._create_option(dest_product_id, product, attr, labels, options)
        return options

    def _value_payload(self, product: SourceProduct, attr: ProductAttribute, label: str, sort_order: int) -> dict:
        data = {"label": label, "sort_order": sort_order, "is_default": False}
        if is_color_attribute(attr.name):
            term = self._term(attr.name, label)
            hex_value = color_hex(term.slug, term.color) if term else color_hex(label)
            if hex_value:
                data["value_data"] = {"colors": [hex_value]}
        return data

    def _term(self, attribute_name: str, label: str) -> Optional[SourceAttributeTerm]:
        for attribute in self.preparer.store.attributes():
            if attribute.name != attribute_name:
                continue
            for term in attribute.terms:
                if term.name == label:
                    return term
        return None

    def _create_option(self, dest_id: int, product: SourceProduct, attr: ProductAttribute, labels: List[str], options: ProductOptions) -> None:
        response = self.client.create_product_option(dest_id, {
            "display_name": attr.display_name,
            "type": option_type(attr.name),
            "option_values": [self._value_payload(product, attr, label, i) for i, label in enumerate(labels)],
        })
        if is_api_error(response) or not response.get("data", {}).get("id"):
            options.failed.append(f"{attr.display_name}: {response.get('error', 'no option id returned')}")
            log.warning("Option %s failed for product %s: %s", attr.display_name, product.id, response.get("error"))
            return
        option = response["data"]
        refs = options.values.setdefault(attr.name, {})
        for value in option.get("option_values") or []:
            refs[value["label"]] = OptionValueRef(int(option["id"]), int(value["id"]))

    def _sync_values(self, dest_id: int, product: SourceProduct, attr: ProductAttribute, current: dict, labels: List[str], options: ProductOptions) -> None:
        option_id = int(current["id"])
        refs = options.values.setdefault(attr.name, {})
        for value in current.get("option_values") or []:
            refs[value["label"]] = OptionValueRef(option_id, int(value["id"]))

        for i, label in enumerate(labels):
            if label in refs:
                continue
            response = self.client.create_product_option_value(dest_id, option_id, self._value_payload(product, attr, label, i))
            if is_api_error(response) or not response.get("data", {}).get("id"):
                log.warning("Option value %s=%s failed for product %s: %s", attr.display_name, label, product.id, response.get("error"))
                continue
            refs[label] = OptionValueRef(option_id, int(response["data"]["id"]))
