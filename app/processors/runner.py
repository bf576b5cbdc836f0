"""Entity name -> one bounded batch, shared by the Celery worker and the CLI."""
from __future__ import annotations
from typing import Any, Callable, Dict
from sqlalchemy.orm import Session
from app.core.bigcommerce import BigCommerceClient
from app.processors.customers import CustomerBatchProcessor
from app.processors.orders import OrderBatchProcessor
from app.processors.products import ProductBatchProcessor
from app.source.store import SourceStore
from app.verification.engine import VerificationEngine

BATCH_ENTITIES = ("product", "customer", "order", "verification", "weight")


def batch_function(entity: str, db: Session, client: BigCommerceClient, store: SourceStore) -> Callable[[int], Dict[str, Any]]:
    if entity == "product":
        return ProductBatchProcessor(db, client, store).process_batch
    if entity == "customer":
        return CustomerBatchProcessor(db, client, store).process_batch
    if entity == "order":
        return OrderBatchProcessor(db, client, store).process_batch
    if entity == "verification":
        return VerificationEngine(db, client, store).verify_batch
    if entity == "weight":
        return VerificationEngine(db, client, store).update_weights_batch
    raise ValueError(f"Unknown entity: {entity}")


def run_until_done(batch: Callable[[int], Dict[str, Any]], batch_size: int, max_batches: int = 0) -> Dict[str, Any]:
    """Call `batch` until nothing remains (or `max_batches` is reached)."""
    runs = 0
    result: Dict[str, Any] = {"remaining": 0}
    while True:
        result = batch(batch_size)
        runs += 1
        if result["remaining"] == 0 or (max_batches and runs >= max_batches):
            break
    result["batches"] = runs
    return result
