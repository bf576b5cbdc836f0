from __future__ import annotations
import logging
from sqlalchemy.orm import Session
from app.tasks.celery_app import celery_app
from app.core.bigcommerce import BigCommerceClient
from app.db.session import SessionLocal
from app.processors.runner import BATCH_ENTITIES, batch_function
from app.source.store import load_source_store

log = logging.getLogger(__name__)


@celery_app.task(name="run_batches")
def run_batches(entity: str, batch_size: int = 10) -> dict:
    """Run one bounded batch and re-enqueue while work remains."""
    if entity not in BATCH_ENTITIES:
        log.error("Unknown batch entity", extra={"entity": entity, "unit": "-"})
        return {"error": f"Unknown entity: {entity}"}

    db: Session = SessionLocal()
    client = BigCommerceClient()
    try:
        store = load_source_store()
        result = batch_function(entity, db, client, store)(batch_size)
        log.info("Batch finished: %s", result, extra={"entity": entity, "unit": "-"})
        if result["remaining"] > 0:
            run_batches.delay(entity, batch_size)
        return result
    except Exception:
        log.exception("Batch run failed", extra={"entity": entity, "unit": "-"})
        raise
    finally:
        client.close()
        db.close()
