from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

class MigrationStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"

class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"

class EntityKind(str, Enum):
    PRODUCT = "product"
    CUSTOMER = "customer"
    ORDER = "order"
    VERIFICATION = "verification"

class MappingKind(str, Enum):
    CATEGORY = "category"
    OPTION = "option"
    OPTION_VALUE = "option_value"
    BRAND = "brand"
    CUSTOMER_GROUP = "customer_group"
    PRICE_LIST = "price_list"


@dataclass(frozen=True)
class ParentUnit:
    """A simple product, or the parent row of a variable product."""
    parent_id: int

    @property
    def variant_id(self) -> Optional[int]:
        return None

    @property
    def key(self) -> str:
        return str(self.parent_id)


@dataclass(frozen=True)
class VariationUnit:
    """One variation of a variable product, owned by its parent."""
    parent_id: int
    variant_id: int

    @property
    def key(self) -> str:
        return f"{self.parent_id}:{self.variant_id}"


ProductUnit = Union[ParentUnit, VariationUnit]


def product_unit(parent_id: int, variant_id: Optional[int] = None) -> ProductUnit:
    if variant_id is not None:
        return VariationUnit(parent_id=parent_id, variant_id=variant_id)
    return ParentUnit(parent_id=parent_id)


@dataclass(frozen=True)
class Prepared:
    payload: Dict[str, Any]
    notes: list[str] = field(default_factory=list)

@dataclass(frozen=True)
class PreparationFailed:
    message: str

PrepareResult = Union[Prepared, PreparationFailed]


@dataclass
class UnitOutcome:
    ok: bool
    message: str
    dest_id: Optional[int] = None


def is_api_error(response: Any) -> bool:
    """The remote client signals every failure with an `error` key."""
    return isinstance(response, dict) and "error" in response
