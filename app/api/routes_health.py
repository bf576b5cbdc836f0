from fastapi import APIRouter, Depends
from app.api.deps import get_client
from app.core.bigcommerce import BigCommerceClient

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/destination")
def destination_health(client: BigCommerceClient = Depends(get_client)):
    return client.test_connection()
