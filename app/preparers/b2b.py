from __future__ import annotations
import logging
from typing import Dict, Optional
from app.core.bigcommerce import BigCommerceClient
from app.core.workflow import MappingKind, is_api_error
from app.db.mappings import MappingRepository
from app.preparers.base import to_float
from app.source.models import SourceProduct

log = logging.getLogger(__name__)

B2B_ROLES = ("wholesale_customer", "distributor", "dealer", "customer")
DEFAULT_ROLE = "customer"
DEFAULT_DISCOUNTS = {"wholesale_customer": 20, "distributor": 30, "dealer": 25}
LOGIN_REQUIRED = "login_required"


def role_title(role: str) -> str:
    return role.replace("_", " ").capitalize()


class B2BHandler:
    """Customer groups and price lists for trade customers."""

    def __init__(self, client: BigCommerceClient, mappings: MappingRepository, discounts: Optional[Dict[str, float]] = None):
        self.client = client
        self.mappings = mappings
        self.discounts = dict(DEFAULT_DISCOUNTS if discounts is None else discounts)

    def setup_b2b_features(self) -> dict:
        groups = self.setup_customer_groups()
        price_lists = self.setup_price_lists(groups.pop("map"))
        return {"customer_groups": groups, "price_lists": price_lists}

    def setup_customer_groups(self) -> dict:
        results = {"success": 0, "error": 0}
        group_map: Dict[str, int] = {}
        for role in B2B_ROLES:
            data = {
                "name": role_title(role),
                "is_default": role == DEFAULT_ROLE,
                "category_access": {"type": "all"},
                "discount_rules": [],
            }
            discount = self.discounts.get(role)
            if discount:
                data["discount_rules"].append({"type": "all", "method": "percent", "amount": discount})

            response = self.client.create_customer_group(data)
            group_id = response.get("id") if not is_api_error(response) else None
            if group_id:
                group_map[role] = int(group_id)
                results["success"] += 1
            else:
                results["error"] += 1
                log.error("Customer group %s failed: %s", role, response.get("error"), extra={"entity": "b2b", "unit": role})

        self.mappings.replace(MappingKind.CUSTOMER_GROUP, group_map)
        results["map"] = group_map
        return results

    def setup_price_lists(self, group_map: Dict[str, int]) -> dict:
        results = {"success": 0, "error": 0}
        list_map: Dict[str, int] = {}

        wanted = [(LOGIN_REQUIRED, "Login Required Pricing", [])]
        for role, group_id in group_map.items():
            if role != DEFAULT_ROLE:
                wanted.append((role, f"{role_title(role)} Pricing", [group_id]))

        for key, name, groups in wanted:
            response = self.client.create_price_list({
                "name": name,
                "active": True,
                "is_default": False,
                "customer_groups": groups,
            })
            list_id = response.get("data", {}).get("id") if not is_api_error(response) else None
            if list_id:
                list_map[key] = int(list_id)
                results["success"] += 1
            else:
                results["error"] += 1
                log.error("Price list %s failed: %s", name, response.get("error"), extra={"entity": "b2b", "unit": key})

        self.mappings.replace(MappingKind.PRICE_LIST, list_map)
        return results

    def apply_b2b_pricing(self, product: SourceProduct, variant_id: Optional[int]) -> int:
        """Push role prices for one product's base variant. Failures are logged only."""
        if not product.role_based_prices or not variant_id:
            return 0
        price_lists = self.mappings.get_map(MappingKind.PRICE_LIST)
        applied = 0
        for role, price in product.role_based_prices.items():
            list_id = price_lists.get(role)
            if not list_id:
                continue
            response = self.client.add_price_list_record(list_id, {
                "variant_id": variant_id,
                "price": float(price),
                "retail_price": to_float(product.regular_price),
                "currency": "usd",
            })
            if is_api_error(response):
                log.warning(
                    "Price list record for role %s failed: %s", role, response["error"],
                    extra={"entity": "product", "unit": product.id},
                )
                continue
            applied += 1
        return applied
