from __future__ import annotations
from typing import Dict, List, Mapping, Optional
from app.core.workflow import Prepared, PreparationFailed, PrepareResult
from app.preparers.location import country_code
from app.source.models import SourceAddress, SourceCustomer

MIGRATED_ROLES = ("customer", "wholesale_customer", "subscriber")
WHOLESALE_ROLE = "wholesale_customer"

# Wholesale registration answers -> destination form field name
FORM_FIELDS = {
    "position_title": "Position/Title in Company",
    "primary_business": "Primary Business",
    "business_id_type": "Business ID Type",
    "business_id_number": "Business ID Number",
    "company_website": "Company Website",
}


def customer_type(roles: List[str]) -> str:
    return WHOLESALE_ROLE if WHOLESALE_ROLE in roles else "customer"


def is_tax_exempt(customer: SourceCustomer) -> bool:
    if customer.tax_exempt:
        return True
    return bool({"wholesale_customer", "distributor"}.intersection(customer.roles))


def _address(addr: SourceAddress, with_phone: bool = True) -> dict:
    data = {
        "first_name": addr.first_name,
        "last_name": addr.last_name,
        "company": addr.company,
        "address1": addr.address_1,
        "address2": addr.address_2,
        "city": addr.city,
        "state_or_province": addr.state,
        "postal_code": addr.postcode,
        "country_code": country_code(addr.country),
        "address_type": "residential",
    }
    if with_phone:
        data["phone"] = addr.phone
    return data


def _wholesale_address(w: Mapping[str, str]) -> SourceAddress:
    return SourceAddress(
        first_name=w.get("first_name", ""),
        last_name=w.get("last_name", ""),
        company=w.get("company_name", ""),
        address_1=w.get("address_1", ""),
        address_2=w.get("address_2", ""),
        city=w.get("city", ""),
        state=w.get("state", ""),
        postcode=w.get("postcode", ""),
        country=w.get("country", ""),
        phone=w.get("phone", ""),
    )


def customer_addresses(customer: SourceCustomer) -> List[dict]:
    addresses = []
    if customer.wholesale.get("address_1"):
        addresses.append(_address(_wholesale_address(customer.wholesale)))
    elif customer.billing.address_1:
        addresses.append(_address(customer.billing))

    shipping = customer.shipping
    if shipping.address_1 and shipping.address_1 != customer.billing.address_1:
        addresses.append(_address(shipping, with_phone=False))
    return addresses


def form_fields(wholesale: Mapping[str, str]) -> List[dict]:
    fields = []
    for key, name in FORM_FIELDS.items():
        value = wholesale.get(key)
        if value:
            fields.append({"name": name, "value": str(value)})
    return fields


class CustomerPreparer:
    def __init__(self, group_ids: Mapping[str, int]):
        self.group_ids: Dict[str, int] = dict(group_ids)

    def group_for(self, roles: List[str]) -> Optional[int]:
        return self.group_ids.get(customer_type(roles))

    def prepare(self, customer: SourceCustomer) -> PrepareResult:
        if not customer.email:
            return PreparationFailed("Customer email is required")
        ctype = customer_type(customer.roles)
        group_id = self.group_ids.get(ctype)
        if group_id is None:
            return PreparationFailed(f"Invalid customer type: {ctype}")

        w = customer.wholesale
        data = {
            "email": customer.email,
            "first_name": customer.first_name,
            "last_name": customer.last_name,
            "customer_group_id": group_id,
            "notes": "Migrated from WooCommerce. Original role: " + ", ".join(customer.roles),
            "accepts_product_review_abandoned_cart_emails": True,
            "trigger_account_created_notification": False,
            "origin_channel_id": 1,
            "channel_ids": [1],
            "authentication": {"force_password_reset": True},
        }
        phone = w.get("phone") or customer.billing.phone
        if phone:
            data["phone"] = phone
        company = w.get("company_name") or customer.billing.company
        if company:
            data["company"] = company
        if is_tax_exempt(customer):
            data["tax_exempt_category"] = "wholesale"

        addresses = customer_addresses(customer)
        if addresses:
            data["addresses"] = addresses
        fields = form_fields(w)
        if fields:
            data["form_fields"] = fields
        return Prepared(data)
