from __future__ import annotations
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol
from app.source.models import (
    SourceAttribute,
    SourceCategory,
    SourceCustomer,
    SourceExport,
    SourceOrder,
    SourceProduct,
    SourceVariation,
)

log = logging.getLogger(__name__)


class MigrationError(Exception):
    pass


class SourceStore(Protocol):
    """Read-only query surface over the source platform's records."""

    def products(self, status: Optional[str] = "publish") -> List[SourceProduct]: ...

    def get_product(self, product_id: int) -> Optional[SourceProduct]: ...

    def get_variation(self, parent_id: int, variation_id: int) -> Optional[SourceVariation]: ...

    def categories(self) -> List[SourceCategory]: ...

    def attributes(self) -> List[SourceAttribute]: ...

    def customers(self, roles: Optional[Iterable[str]] = None) -> List[SourceCustomer]: ...

    def get_customer(self, user_id: int) -> Optional[SourceCustomer]: ...

    def orders(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> List[SourceOrder]: ...

    def get_order(self, order_id: int) -> Optional[SourceOrder]: ...

    def get_supplier_name(self, product_id: int) -> Optional[str]: ...


class InMemorySourceStore:
    """SourceStore over an already-loaded export."""

    def __init__(self, export: SourceExport):
        self.export = export
        self._products: Dict[int, SourceProduct] = {p.id: p for p in export.products}
        self._customers: Dict[int, SourceCustomer] = {c.id: c for c in export.customers}
        self._orders: Dict[int, SourceOrder] = {o.id: o for o in export.orders}

    def products(self, status: Optional[str] = "publish") -> List[SourceProduct]:
        items = sorted(self._products.values(), key=lambda p: p.id)
        if status:
            items = [p for p in items if p.status == status]
        return items

    def get_product(self, product_id: int) -> Optional[SourceProduct]:
        return self._products.get(product_id)

    def get_variation(self, parent_id: int, variation_id: int) -> Optional[SourceVariation]:
        product = self.get_product(parent_id)
        return product.variation(variation_id) if product else None

    def categories(self) -> List[SourceCategory]:
        return list(self.export.categories)

    def attributes(self) -> List[SourceAttribute]:
        return list(self.export.attributes)

    def customers(self, roles: Optional[Iterable[str]] = None) -> List[SourceCustomer]:
        items = sorted(self._customers.values(), key=lambda c: c.id)
        if roles is not None:
            wanted = set(roles)
            items = [c for c in items if wanted.intersection(c.roles)]
        return items

    def get_customer(self, user_id: int) -> Optional[SourceCustomer]:
        return self._customers.get(user_id)

    def orders(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> List[SourceOrder]:
        items = sorted(self._orders.values(), key=lambda o: (o.date_created, o.id))
        if date_from:
            items = [o for o in items if o.date_created >= date_from]
        if date_to:
            items = [o for o in items if o.date_created <= date_to]
        if status:
            items = [o for o in items if o.status == status]
        return items

    def get_order(self, order_id: int) -> Optional[SourceOrder]:
        return self._orders.get(order_id)

    def get_supplier_name(self, product_id: int) -> Optional[str]:
        return self.export.suppliers.get(product_id) or None


def load_source_store(path: Optional[str] = None) -> InMemorySourceStore:
    """Load the JSON export written by the source platform."""
    from app.core.config import settings

    export_path = Path(path or settings.source_export_path)
    if not export_path.exists():
        raise MigrationError(f"Source export not found: {export_path}")
    export = SourceExport.model_validate_json(export_path.read_text(encoding="utf-8"))
    log.info(
        "Loaded source export %s (%d products, %d customers, %d orders)",
        export_path, len(export.products), len(export.customers), len(export.orders),
    )
    return InMemorySourceStore(export)
