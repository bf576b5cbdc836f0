from __future__ import annotations
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple
from app.core.bigcommerce import BigCommerceClient
from app.core.workflow import MappingKind, is_api_error
from app.db.mappings import MappingRepository
from app.source.models import SourceCategory
from app.source.store import SourceStore

log = logging.getLogger(__name__)

PAGE_LIMIT = 250


def build_hierarchy(categories: List[SourceCategory]) -> Dict[int, List[SourceCategory]]:
    """Group categories by parent id; roots live under 0."""
    children: Dict[int, List[SourceCategory]] = defaultdict(list)
    for category in categories:
        children[category.parent_id or 0].append(category)
    for siblings in children.values():
        siblings.sort(key=lambda c: (c.sort_order, c.id))
    return children


def category_payload(category: SourceCategory, parent_dest_id: int) -> dict:
    data = {
        "name": category.name,
        "parent_id": parent_dest_id,
        "description": category.description,
        "is_visible": True,
        "sort_order": category.sort_order,
    }
    if category.seo_title or category.seo_description:
        data["page_title"] = category.seo_title
        data["meta_description"] = category.seo_description
    if category.slug:
        data["custom_url"] = {"url": f"/{category.slug}/", "is_customized": True}
    return data


class CategoryMigrator:
    """One-shot migration of the category tree; builds the category map."""

    def __init__(self, client: BigCommerceClient, mappings: MappingRepository, store: SourceStore):
        self.client = client
        self.mappings = mappings
        self.store = store
        self.category_map: Dict[str, int] = {}
        self._processed: Dict[int, int] = {}
        self._existing: Dict[Tuple[str, int], dict] = {}

    def pre_sync(self) -> int:
        """Index the destination's existing categories by (name, parent)."""
        page = 1
        total = 0
        while True:
            response = self.client.get_categories_paginated(page, PAGE_LIMIT)
            if is_api_error(response) or not isinstance(response.get("data"), list):
                break
            batch = response["data"]
            for category in batch:
                self._existing[(category.get("name"), int(category.get("parent_id") or 0))] = category
            total += len(batch)
            if len(batch) < PAGE_LIMIT:
                break
            page += 1
        log.info("Pre-synced %d destination categories", total)
        return total

    def migrate_all(self) -> dict:
        self.category_map = self.mappings.get_map(MappingKind.CATEGORY)
        self._processed = {}
        self.pre_sync()
        tree = build_hierarchy(self.store.categories())
        results = {"success": 0, "error": 0, "skipped": 0, "messages": []}
        self._migrate_level(tree, 0, 0, results)
        self.mappings.replace(MappingKind.CATEGORY, self.category_map)
        log.info(
            "Category migration finished: %d created, %d skipped, %d failed",
            results["success"], results["skipped"], results["error"],
        )
        return results

    def _migrate_level(self, tree: Dict[int, List[SourceCategory]], source_parent: int, dest_parent: int, results: dict) -> None:
        for category in tree.get(source_parent, []):
            if category.id in self._processed:
                continue
            dest_id = self._migrate_one(category, dest_parent, results)
            if dest_id is None:
                # subtree stays unmapped
                continue
            self._migrate_level(tree, category.id, dest_id, results)

    def _migrate_one(self, category: SourceCategory, dest_parent: int, results: dict) -> Optional[int]:
        key = str(category.id)
        if key in self.category_map:
            dest_id = self.category_map[key]
            self._processed[category.id] = dest_id
            results["skipped"] += 1
            results["messages"].append(f"Category already mapped: {category.name}")
            return dest_id

        existing = self._existing.get((category.name, dest_parent))
        if existing:
            dest_id = int(existing["id"])
            self.category_map[key] = dest_id
            self._processed[category.id] = dest_id
            results["skipped"] += 1
            results["messages"].append(f"Using existing category: {category.name}")
            return dest_id

        response = self.client.create_category(category_payload(category, dest_parent))
        if is_api_error(response) or not response.get("data", {}).get("id"):
            results["error"] += 1
            error = response.get("error", "Unknown error")
            results["messages"].append(f"Failed to create category {category.name}: {error}")
            log.error("Category %s failed: %s", category.id, error, extra={"entity": "category", "unit": category.id})
            return None

        dest_id = int(response["data"]["id"])
        self.category_map[key] = dest_id
        self._processed[category.id] = dest_id
        results["success"] += 1
        results["messages"].append(f"Created category: {category.name}")
        return dest_id
