from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.deps import get_client, get_store
from app.core.bigcommerce import BigCommerceClient
from app.db.session import get_db
from app.schemas.migration import (
    BatchRequest,
    CleanupResponse,
    PopulateResponse,
    VerificationCounts,
    VerificationRow,
    VerificationTable,
    VerifyBatchResponse,
    WeightBatchResponse,
)
from app.source.store import SourceStore
from app.verification.engine import VerificationEngine

router = APIRouter(prefix="/verification")


def get_engine(
    db: Session = Depends(get_db),
    client: BigCommerceClient = Depends(get_client),
    store: SourceStore = Depends(get_store),
) -> VerificationEngine:
    return VerificationEngine(db, client, store)


@router.post("/init", response_model=VerificationTable)
def init_table(engine: VerificationEngine = Depends(get_engine)):
    return engine.init()


@router.post("/populate", response_model=PopulateResponse)
def populate(engine: VerificationEngine = Depends(get_engine)):
    return engine.populate()


@router.post("/batch", response_model=VerifyBatchResponse)
def verify_batch(req: BatchRequest, engine: VerificationEngine = Depends(get_engine)):
    return engine.verify_batch(req.batch_size)


@router.post("/retry", response_model=VerifyBatchResponse)
def retry_failed(req: BatchRequest, engine: VerificationEngine = Depends(get_engine)):
    return engine.retry_failed(req.batch_size)


@router.post("/weights", response_model=WeightBatchResponse)
def update_weights(req: BatchRequest, engine: VerificationEngine = Depends(get_engine)):
    return engine.update_weights_batch(req.batch_size)


@router.get("/stats", response_model=VerificationCounts)
def get_stats(engine: VerificationEngine = Depends(get_engine)):
    return engine.get_stats()


@router.get("/failed", response_model=List[VerificationRow])
def list_failed(limit: int = 50, engine: VerificationEngine = Depends(get_engine)):
    return engine.list_failed(limit)


@router.delete("/failed", response_model=CleanupResponse)
def cleanup_failed(days_old: int = 30, engine: VerificationEngine = Depends(get_engine)):
    return engine.cleanup_old_failed(days_old)
