from fastapi import APIRouter, HTTPException
from app.processors.runner import BATCH_ENTITIES
from app.schemas.migration import BatchRequest
from app.tasks.jobs import run_batches

router = APIRouter(prefix="/runs")


@router.post("/{entity}")
def start_run(entity: str, req: BatchRequest):
    """Hand batching to the worker; it re-enqueues itself until nothing remains."""
    if entity not in BATCH_ENTITIES:
        raise HTTPException(status_code=404, detail=f"Unknown entity: {entity}")
    task = run_batches.delay(entity, req.batch_size)
    return {"task_id": task.id, "entity": entity, "batch_size": req.batch_size}
