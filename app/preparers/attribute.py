from __future__ import annotations
import logging
from typing import Dict, Iterable, Optional
from app.core.bigcommerce import BigCommerceClient
from app.core.workflow import MappingKind, is_api_error
from app.db.mappings import MappingRepository
from app.source.models import SourceAttribute, SourceAttributeTerm
from app.source.store import SourceStore

log = logging.getLogger(__name__)

PAGE_LIMIT = 250

COLOR_HEX = {
    "black": "#000000",
    "white": "#FFFFFF",
    "red": "#FF0000",
    "blue": "#0000FF",
    "green": "#008000",
    "yellow": "#FFFF00",
    "orange": "#FFA500",
    "purple": "#800080",
    "pink": "#FFC0CB",
    "gray": "#808080",
    "grey": "#808080",
    "brown": "#A52A2A",
    "gold": "#FFD700",
    "silver": "#C0C0C0",
    "rose-gold": "#B76E79",
    "copper": "#B87333",
    "brass": "#B5651D",
}


def is_color_attribute(name: str) -> bool:
    lowered = name.lower()
    return "color" in lowered or "colour" in lowered


def option_type(attribute_name: str) -> str:
    lowered = attribute_name.lower()
    if is_color_attribute(lowered):
        return "swatch"
    if "size" in lowered:
        return "rectangles"
    return "dropdown"


def color_hex(slug: str, explicit: Optional[str] = None) -> Optional[str]:
    """Term metadata wins; otherwise match the slug against known color names."""
    if explicit:
        return explicit
    slug = (slug or "").lower()
    if slug in COLOR_HEX:
        return COLOR_HEX[slug]
    for name, hex_value in COLOR_HEX.items():
        if name in slug:
            return hex_value
    return None


def option_value_key(attribute_name: str, term_id: int) -> str:
    return f"{attribute_name}_{term_id}"


class AttributeMigrator:
    """One-shot migration of global attribute taxonomies into destination options."""

    def __init__(
        self,
        client: BigCommerceClient,
        mappings: MappingRepository,
        store: SourceStore,
        excluded: Iterable[str] = (),
    ):
        self.client = client
        self.mappings = mappings
        self.store = store
        self.excluded = set(excluded)
        self.option_map: Dict[str, int] = {}
        self.option_value_map: Dict[str, int] = {}
        self._existing: Dict[str, dict] = {}

    def pre_sync(self) -> int:
        page = 1
        total = 0
        while True:
            response = self.client.get_options_paginated(page, PAGE_LIMIT)
            if is_api_error(response) or not isinstance(response.get("data"), list):
                break
            batch = response["data"]
            for option in batch:
                self._existing[option.get("display_name")] = option
            total += len(batch)
            if len(batch) < PAGE_LIMIT:
                break
            page += 1
        return total

    def migrate_all(self) -> dict:
        self.option_map = self.mappings.get_map(MappingKind.OPTION)
        self.option_value_map = self.mappings.get_map(MappingKind.OPTION_VALUE)
        self.pre_sync()

        results = {"options": {"success": 0, "error": 0, "skipped": 0}, "messages": []}
        for attribute in self.store.attributes():
            if attribute.name in self.excluded:
                results["options"]["skipped"] += 1
                results["messages"].append(f"Skipped non-variant attribute: {attribute.label}")
                continue

            existing = self._existing.get(attribute.label)
            if existing:
                self.option_map[attribute.name] = int(existing["id"])
                results["options"]["skipped"] += 1
                results["messages"].append(f"Using existing option: {attribute.label}")
                self._migrate_terms(attribute, int(existing["id"]), check_existing=True)
                continue

            if attribute.name in self.option_map:
                results["options"]["skipped"] += 1
                results["messages"].append(f"Option already mapped: {attribute.label}")
                continue

            response = self.client.create_option({
                "name": attribute.label,
                "display_name": attribute.label,
                "type": option_type(attribute.name),
                "sort_order": attribute.sort_order,
            })
            if is_api_error(response) or not response.get("data", {}).get("id"):
                results["options"]["error"] += 1
                error = response.get("error", "Unknown error")
                results["messages"].append(f"Failed to migrate attribute {attribute.label}: {error}")
                log.error("Option %s failed: %s", attribute.name, error, extra={"entity": "attribute", "unit": attribute.id})
                continue

            option_id = int(response["data"]["id"])
            self.option_map[attribute.name] = option_id
            created = self._migrate_terms(attribute, option_id)
            results["options"]["success"] += 1
            results["messages"].append(f"Migrated attribute: {attribute.label} with {created} values")

        self.mappings.replace(MappingKind.OPTION, self.option_map)
        self.mappings.replace(MappingKind.OPTION_VALUE, self.option_value_map)
        return results

    def _migrate_terms(self, attribute: SourceAttribute, option_id: int, check_existing: bool = False) -> int:
        existing: Dict[str, int] = {}
        if check_existing:
            response = self.client.get_option_values(option_id)
            if not is_api_error(response):
                existing = {v["label"]: int(v["id"]) for v in response.get("data") or []}

        created = 0
        for term in attribute.terms:
            key = option_value_key(attribute.name, term.id)
            if term.name in existing:
                self.option_value_map[key] = existing[term.name]
                continue
            response = self.client.create_option_value(option_id, self._term_payload(attribute, term))
            if is_api_error(response) or not response.get("data", {}).get("id"):
                log.warning("Option value %s/%s failed: %s", attribute.name, term.name, response.get("error"))
                continue
            self.option_value_map[key] = int(response["data"]["id"])
            created += 1
        return created

    def _term_payload(self, attribute: SourceAttribute, term: SourceAttributeTerm) -> dict:
        data = {"label": term.name, "sort_order": term.sort_order, "is_default": False}
        if is_color_attribute(attribute.name):
            hex_value = color_hex(term.slug, term.color)
            if hex_value:
                data["value_data"] = {"colors": [hex_value]}
        return data
