from __future__ import annotations
from datetime import datetime
from typing import Dict, Mapping, Optional
from sqlalchemy import select, delete
from sqlalchemy.orm import Session
from app.core.workflow import MappingKind
from app.db.models import MigrationMapping


class MappingRepository:
    """Key -> destination id maps (categories, options, brands, groups, price lists).

    Injected into preparers. Reads are cached per kind for the lifetime of the
    repository; writes go straight to storage and refresh the cache.
    """

    def __init__(self, db: Session):
        self.db = db
        self._cache: Dict[MappingKind, Dict[str, int]] = {}

    def get_map(self, kind: MappingKind) -> Dict[str, int]:
        if kind not in self._cache:
            rows = self.db.scalars(select(MigrationMapping).where(MigrationMapping.kind == kind.value))
            self._cache[kind] = {row.source_key: row.dest_id for row in rows}
        return dict(self._cache[kind])

    def get(self, kind: MappingKind, key) -> Optional[int]:
        return self.get_map(kind).get(str(key))

    def replace(self, kind: MappingKind, mapping: Mapping) -> None:
        """Overwrite the whole map for one kind."""
        self.db.execute(delete(MigrationMapping).where(MigrationMapping.kind == kind.value))
        now = datetime.utcnow()
        for key, dest_id in mapping.items():
            self.db.add(MigrationMapping(kind=kind.value, source_key=str(key), dest_id=int(dest_id), updated_at=now))
        self.db.commit()
        self._cache[kind] = {str(k): int(v) for k, v in mapping.items()}

    def set(self, kind: MappingKind, key, dest_id: int) -> None:
        current = self.get_map(kind)
        current[str(key)] = int(dest_id)
        self.replace(kind, current)
