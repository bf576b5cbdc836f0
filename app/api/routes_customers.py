from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.deps import get_client, get_store
from app.core.bigcommerce import BigCommerceClient
from app.db.session import get_db
from app.processors.customers import CustomerBatchProcessor
from app.schemas.migration import BatchRequest, BatchResponse, CustomerErrorRow, PrepareResponse, StatusCounts
from app.source.store import SourceStore

router = APIRouter(prefix="/customers")


def get_processor(
    db: Session = Depends(get_db),
    client: BigCommerceClient = Depends(get_client),
    store: SourceStore = Depends(get_store),
) -> CustomerBatchProcessor:
    return CustomerBatchProcessor(db, client, store)


@router.post("/prepare", response_model=PrepareResponse)
def prepare_customers(processor: CustomerBatchProcessor = Depends(get_processor)):
    return processor.prepare_customers()


@router.post("/batch", response_model=BatchResponse)
def process_batch(req: BatchRequest, processor: CustomerBatchProcessor = Depends(get_processor)):
    return processor.process_batch(req.batch_size)


@router.post("/retry", response_model=BatchResponse)
def retry_errors(req: BatchRequest, processor: CustomerBatchProcessor = Depends(get_processor)):
    return processor.retry_errors(req.batch_size)


@router.get("/stats", response_model=StatusCounts)
def get_stats(processor: CustomerBatchProcessor = Depends(get_processor)):
    return processor.get_stats()


@router.get("/errors", response_model=List[CustomerErrorRow])
def list_errors(limit: int = 50, processor: CustomerBatchProcessor = Depends(get_processor)):
    return processor.list_errors(limit)
