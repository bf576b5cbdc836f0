from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.deps import get_client, get_store
from app.core.bigcommerce import BigCommerceClient
from app.db.session import get_db
from app.processors.orders import OrderBatchProcessor
from app.schemas.migration import (
    BatchRequest,
    BatchResponse,
    OrderErrorRow,
    OrderPrepareRequest,
    OrderReadiness,
    OrderStats,
    PrepareResponse,
)
from app.source.store import SourceStore

router = APIRouter(prefix="/orders")


def get_processor(
    db: Session = Depends(get_db),
    client: BigCommerceClient = Depends(get_client),
    store: SourceStore = Depends(get_store),
) -> OrderBatchProcessor:
    return OrderBatchProcessor(db, client, store)


@router.get("/readiness", response_model=OrderReadiness)
def validate_dependencies(processor: OrderBatchProcessor = Depends(get_processor)):
    return processor.validate_order_dependencies()


@router.post("/prepare", response_model=PrepareResponse)
def prepare_orders(req: OrderPrepareRequest, processor: OrderBatchProcessor = Depends(get_processor)):
    return processor.prepare_orders(date_from=req.date_from, date_to=req.date_to, status=req.status)


@router.post("/batch", response_model=BatchResponse)
def process_batch(req: BatchRequest, processor: OrderBatchProcessor = Depends(get_processor)):
    return processor.process_batch(req.batch_size)


@router.post("/retry", response_model=BatchResponse)
def retry_errors(req: BatchRequest, processor: OrderBatchProcessor = Depends(get_processor)):
    return processor.retry_errors(req.batch_size)


@router.get("/stats", response_model=OrderStats)
def get_stats(processor: OrderBatchProcessor = Depends(get_processor)):
    return processor.get_stats()


@router.get("/errors", response_model=List[OrderErrorRow])
def list_errors(limit: int = 50, processor: OrderBatchProcessor = Depends(get_processor)):
    return processor.list_errors(limit)
