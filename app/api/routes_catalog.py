"""One-shot catalog setup: categories, global options and B2B groups/price lists.

These run once before the product batches; products resolve categories,
brands and options through the maps they persist.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.deps import get_client, get_store
from app.core.bigcommerce import BigCommerceClient
from app.core.config import settings
from app.db.mappings import MappingRepository
from app.db.session import get_db
from app.preparers.attribute import AttributeMigrator
from app.preparers.b2b import B2BHandler
from app.preparers.category import CategoryMigrator
from app.source.store import SourceStore

router = APIRouter(prefix="/catalog")


@router.post("/categories")
def migrate_categories(
    db: Session = Depends(get_db),
    client: BigCommerceClient = Depends(get_client),
    store: SourceStore = Depends(get_store),
):
    return CategoryMigrator(client, MappingRepository(db), store).migrate_all()


@router.post("/attributes")
def migrate_attributes(
    db: Session = Depends(get_db),
    client: BigCommerceClient = Depends(get_client),
    store: SourceStore = Depends(get_store),
):
    migrator = AttributeMigrator(client, MappingRepository(db), store, excluded=settings.excluded_variant_attributes)
    return migrator.migrate_all()


@router.post("/b2b")
def setup_b2b(db: Session = Depends(get_db), client: BigCommerceClient = Depends(get_client)):
    return B2BHandler(client, MappingRepository(db)).setup_b2b_features()
