from fastapi import APIRouter
from app.api.routes_health import router as health_router
from app.api.routes_catalog import router as catalog_router
from app.api.routes_products import router as products_router
from app.api.routes_customers import router as customers_router
from app.api.routes_orders import router as orders_router
from app.api.routes_verification import router as verification_router
from app.api.routes_runs import router as runs_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(catalog_router, tags=["catalog"])
router.include_router(products_router, tags=["products"])
router.include_router(customers_router, tags=["customers"])
router.include_router(orders_router, tags=["orders"])
router.include_router(verification_router, tags=["verification"])
router.include_router(runs_router, tags=["runs"])
