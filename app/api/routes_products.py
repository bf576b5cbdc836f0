from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.deps import get_client, get_store
from app.core.bigcommerce import BigCommerceClient
from app.db.session import get_db
from app.processors.products import ProductBatchProcessor
from app.schemas.migration import BatchRequest, BatchResponse, PrepareResponse, ProductErrorRow, ProductStats
from app.source.store import SourceStore

router = APIRouter(prefix="/products")


def get_processor(
    db: Session = Depends(get_db),
    client: BigCommerceClient = Depends(get_client),
    store: SourceStore = Depends(get_store),
) -> ProductBatchProcessor:
    return ProductBatchProcessor(db, client, store)


@router.post("/prepare", response_model=PrepareResponse)
def prepare_products(processor: ProductBatchProcessor = Depends(get_processor)):
    return processor.prepare_products()


@router.post("/batch", response_model=BatchResponse)
def process_batch(req: BatchRequest, processor: ProductBatchProcessor = Depends(get_processor)):
    return processor.process_batch(req.batch_size)


@router.post("/retry", response_model=BatchResponse)
def retry_errors(req: BatchRequest, processor: ProductBatchProcessor = Depends(get_processor)):
    return processor.retry_errors(req.batch_size)


@router.get("/stats", response_model=ProductStats)
def get_stats(processor: ProductBatchProcessor = Depends(get_processor)):
    return processor.get_stats()


@router.get("/errors", response_model=List[ProductErrorRow])
def list_errors(limit: int = 50, processor: ProductBatchProcessor = Depends(get_processor)):
    return processor.list_errors(limit)
