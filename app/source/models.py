from __future__ import annotations
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class SourceCategory(BaseModel):
    id: int
    name: str
    slug: str = ""
    parent_id: int = 0
    description: str = ""
    sort_order: int = 0
    seo_title: str = ""
    seo_description: str = ""


class SourceAttributeTerm(BaseModel):
    id: int
    name: str
    slug: str = ""
    sort_order: int = 0
    color: Optional[str] = None


class SourceAttribute(BaseModel):
    """A global attribute taxonomy (e.g. size, color) and its terms."""
    id: int
    name: str
    label: str
    sort_order: int = 0
    terms: List[SourceAttributeTerm] = Field(default_factory=list)


class ProductAttribute(BaseModel):
    """An attribute as attached to one product."""
    name: str
    label: str = ""
    options: List[str] = Field(default_factory=list)
    variation: bool = False

    @property
    def display_name(self) -> str:
        return self.label or self.name


class SourceVariation(BaseModel):
    id: int
    parent_id: int
    sku: str = ""
    regular_price: Optional[str] = None
    sale_price: Optional[str] = None
    weight: str = ""
    manage_stock: bool = False
    stock_quantity: Optional[int] = None
    # attribute name -> chosen option label
    attributes: Dict[str, str] = Field(default_factory=dict)


class SourceProduct(BaseModel):
    id: int
    name: str
    type: str = "simple"
    status: str = "publish"
    sku: str = ""
    description: str = ""
    regular_price: Optional[str] = None
    sale_price: Optional[str] = None
    weight: str = ""
    manage_stock: bool = False
    stock_quantity: Optional[int] = None
    catalog_visibility: str = "visible"
    category_ids: List[int] = Field(default_factory=list)
    attributes: List[ProductAttribute] = Field(default_factory=list)
    variations: List[SourceVariation] = Field(default_factory=list)
    image_urls: List[str] = Field(default_factory=list)
    cross_sell_ids: List[int] = Field(default_factory=list)
    upsell_ids: List[int] = Field(default_factory=list)
    hide_price_until_login: bool = False
    role_based_prices: Dict[str, float] = Field(default_factory=dict)
    min_quantity: Optional[int] = None

    @property
    def is_variable(self) -> bool:
        return self.type == "variable"

    def variation(self, variation_id: int) -> Optional[SourceVariation]:
        for v in self.variations:
            if v.id == variation_id:
                return v
        return None

    def attribute(self, name: str) -> Optional[ProductAttribute]:
        for a in self.attributes:
            if a.name == name:
                return a
        return None


class SourceAddress(BaseModel):
    first_name: str = ""
    last_name: str = ""
    company: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    state: str = ""
    postcode: str = ""
    country: str = ""
    phone: str = ""
    email: str = ""


class SourceCustomer(BaseModel):
    id: int
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    roles: List[str] = Field(default_factory=list)
    billing: SourceAddress = Field(default_factory=SourceAddress)
    shipping: SourceAddress = Field(default_factory=SourceAddress)
    # Wholesale registration profile: phone, company_name, address_1, ... plus form answers
    wholesale: Dict[str, str] = Field(default_factory=dict)
    tax_exempt: bool = False


class SourceLineItem(BaseModel):
    id: int
    product_id: int = 0
    variation_id: int = 0
    name: str = ""
    quantity: int = 1
    subtotal: float = 0.0
    total: float = 0.0
    total_tax: float = 0.0


class SourceOrder(BaseModel):
    id: int
    status: str = "pending"
    customer_id: int = 0
    date_created: datetime
    currency: str = "USD"
    subtotal: float = 0.0
    total: float = 0.0
    total_tax: float = 0.0
    shipping_total: float = 0.0
    shipping_tax: float = 0.0
    discount_total: float = 0.0
    payment_method: str = ""
    payment_method_title: str = ""
    customer_note: str = ""
    coupon_codes: List[str] = Field(default_factory=list)
    billing: SourceAddress = Field(default_factory=SourceAddress)
    shipping: SourceAddress = Field(default_factory=SourceAddress)
    shipping_method_title: str = ""
    line_items: List[SourceLineItem] = Field(default_factory=list)


class SourceExport(BaseModel):
    """The full read-only snapshot of the source store."""
    categories: List[SourceCategory] = Field(default_factory=list)
    attributes: List[SourceAttribute] = Field(default_factory=list)
    products: List[SourceProduct] = Field(default_factory=list)
    customers: List[SourceCustomer] = Field(default_factory=list)
    orders: List[SourceOrder] = Field(default_factory=list)
    # product id -> supplier name
    suppliers: Dict[int, str] = Field(default_factory=dict)
