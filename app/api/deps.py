from __future__ import annotations
import logging
from functools import lru_cache
from typing import Iterator
from fastapi import HTTPException
from app.core.bigcommerce import BigCommerceClient
from app.source.store import InMemorySourceStore, MigrationError, load_source_store

log = logging.getLogger(__name__)


def get_client() -> Iterator[BigCommerceClient]:
    client = BigCommerceClient()
    try:
        yield client
    finally:
        client.close()


@lru_cache(maxsize=1)
def _cached_store() -> InMemorySourceStore:
    return load_source_store()


def get_store() -> InMemorySourceStore:
    try:
        return _cached_store()
    except MigrationError as e:
        log.error("Source store unavailable: %s", e)
        raise HTTPException(status_code=503, detail=str(e))
