import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI
from sqlalchemy import text
from alembic.config import Config
from alembic import command
from app.core.config import settings
from app.core.logging import configure_logging
from app.api.deps import _cached_store
from app.api.routes import router as api_router
from app.db.session import engine
from app.source.store import MigrationError

configure_logging()
log = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


def wait_for_database(max_retries: int = 30, retry_delay: float = 1.0) -> None:
    """Block until the ledger database accepts connections."""
    for attempt in range(1, max_retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            log.info("Ledger database reachable (%s)", engine.url.get_backend_name())
            return
        except Exception as e:
            if attempt == max_retries:
                log.error("Ledger database unreachable after %d attempts", max_retries)
                raise
            log.warning("Ledger database not ready (attempt %d/%d), retrying in %ss: %s",
                        attempt, max_retries, retry_delay, e)
            time.sleep(retry_delay)


def upgrade_ledger_schema() -> None:
    log.info("Upgrading ledger schema...")
    try:
        command.upgrade(Config(str(ALEMBIC_INI)), "head")
    except Exception as e:
        log.error("Ledger schema upgrade failed: %s", e, exc_info=True)
        raise
    log.info("Ledger schema at head")


def preload_source_export() -> None:
    """Warm the source store cache; routes answer 503 until the export exists."""
    try:
        store = _cached_store()
    except MigrationError as e:
        log.warning("Source export not loaded: %s", e)
        return
    log.info("Source export ready: %d products, %d customers, %d orders",
             len(store.products()), len(store.customers()), len(store.orders()))


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Starting migrator API (%s)...", settings.app_env)
    if not (settings.bc_store_hash and settings.bc_access_token):
        log.warning("Destination credentials are not configured; API calls will fail")
    wait_for_database()
    upgrade_ledger_schema()
    preload_source_export()
    log.info("Migrator API ready")
    yield
    log.info("Shutting down migrator API...")


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description="Batched, resumable WooCommerce to BigCommerce migration",
    lifespan=lifespan
)
app.include_router(api_router, prefix="/v1")
