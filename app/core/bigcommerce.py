from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlencode
import httpx
from app.core.config import settings

log = logging.getLogger(__name__)

_METHODS = {"GET", "POST", "PUT", "DELETE"}


@dataclass
class BigCommerceClient:
    """Thin wrapper around the BigCommerce REST API.

    Every call returns either the parsed body verbatim (status < 400) or
    ``{"error": ..., "details": {...}}``. API and transport failures never
    raise; only malformed calls from our own code do.
    """
    store_hash: str = settings.bc_store_hash
    access_token: str = settings.bc_access_token
    api_base: str = settings.bc_api_base
    timeout: float = settings.bc_timeout
    transport: Optional[httpx.BaseTransport] = None
    _http: Optional[httpx.Client] = field(default=None, init=False, repr=False)

    def _headers(self) -> dict:
        return {
            "X-Auth-Token": self.access_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _base_url(self, api_version: str) -> str:
        if api_version not in ("v2", "v3"):
            raise ValueError(f"Unsupported api_version: {api_version}")
        return f"{self.api_base}/{self.store_hash}/{api_version}/"

    def _client(self) -> httpx.Client:
        if self._http is None:
            self._http = httpx.Client(timeout=self.timeout, transport=self.transport)
        return self._http

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None

    def request(self, endpoint: str, method: str = "GET", body: Any = None, api_version: str = "v3") -> Dict[str, Any]:
        method = method.upper()
        if method not in _METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")
        if body is not None and method not in ("POST", "PUT"):
            raise ValueError(f"A request body is not allowed for {method}")

        url = self._base_url(api_version) + endpoint.lstrip("/")
        try:
            r = self._client().request(method, url, headers=self._headers(), json=body)
        except httpx.HTTPError as e:
            log.warning("Transport error on %s %s: %s", method, endpoint, e)
            return {
                "error": str(e) or e.__class__.__name__,
                "details": {"status_code": None, "raw_body": None, "parsed_body": None},
            }

        raw = r.text
        parsed: Any = None
        parse_failed = False
        if raw.strip():
            try:
                parsed = json.loads(raw)
            except ValueError:
                parse_failed = True

        if r.status_code >= 400:
            message = _error_message(parsed)
            log.warning("BigCommerce %s %s failed with %s: %s", method, endpoint, r.status_code, message)
            return {
                "error": message,
                "details": {"status_code": r.status_code, "raw_body": raw, "parsed_body": parsed},
            }

        if parse_failed:
            log.warning("Non-JSON response from %s %s", method, endpoint)
            return {
                "error": "Invalid JSON in response body",
                "details": {"status_code": r.status_code, "raw_body": raw, "parsed_body": None},
            }

        return parsed if parsed is not None else {}

    # Catalog

    def create_product(self, data: dict) -> dict:
        return self.request("catalog/products", "POST", data)

    def get_product(self, product_id: int, include: str = "") -> dict:
        endpoint = f"catalog/products/{product_id}"
        if include:
            endpoint += "?" + urlencode({"include": include})
        return self.request(endpoint)

    def update_product(self, product_id: int, data: dict) -> dict:
        return self.request(f"catalog/products/{int(product_id)}", "PUT", data)

    def get_product_options(self, product_id: int) -> dict:
        return self.request(f"catalog/products/{product_id}/options")

    def create_product_option(self, product_id: int, data: dict) -> dict:
        return self.request(f"catalog/products/{product_id}/options", "POST", data)

    def create_product_option_value(self, product_id: int, option_id: int, data: dict) -> dict:
        return self.request(f"catalog/products/{product_id}/options/{option_id}/values", "POST", data)

    def create_product_variant(self, product_id: int, data: dict) -> dict:
        return self.request(f"catalog/products/{product_id}/variants", "POST", data)

    def get_product_variant(self, product_id: int, variant_id: int) -> dict:
        return self.request(f"catalog/products/{product_id}/variants/{variant_id}")

    def update_product_variant(self, product_id: int, variant_id: int, data: dict) -> dict:
        return self.request(f"catalog/products/{product_id}/variants/{variant_id}", "PUT", data)

    def create_category(self, data: dict) -> dict:
        return self.request("catalog/categories", "POST", data)

    def get_categories_paginated(self, page: int = 1, limit: int = 250) -> dict:
        return self.request("catalog/categories?" + urlencode({"page": page, "limit": limit}))

    def get_options_paginated(self, page: int = 1, limit: int = 250) -> dict:
        return self.request("catalog/products/options?" + urlencode({"page": page, "limit": limit}))

    def create_option(self, data: dict) -> dict:
        return self.request("catalog/products/options", "POST", data)

    def get_option_values(self, option_id: int) -> dict:
        return self.request(f"catalog/products/options/{option_id}/values")

    def create_option_value(self, option_id: int, data: dict) -> dict:
        return self.request(f"catalog/products/options/{option_id}/values", "POST", data)

    def create_brand(self, data: dict) -> dict:
        return self.request("catalog/brands", "POST", data)

    # Customers, B2B

    def create_customer(self, data: dict) -> dict:
        return self.request("customers", "POST", [data])

    def get_customer_groups(self) -> dict:
        return self.request("customer_groups", api_version="v2")

    def create_customer_group(self, data: dict) -> dict:
        return self.request("customer_groups", "POST", data, api_version="v2")

    def create_price_list(self, data: dict) -> dict:
        return self.request("pricelists", "POST", data)

    def add_price_list_record(self, price_list_id: int, data: dict) -> dict:
        return self.request(f"pricelists/{price_list_id}/records", "PUT", [data])

    # Orders (v2 is required for historical orders)

    def create_order(self, data: dict) -> dict:
        return self.request("orders", "POST", data, api_version="v2")

    def get_order(self, order_id: int) -> dict:
        return self.request(f"orders/{order_id}", api_version="v2")

    def test_connection(self) -> dict:
        response = self.request("store", api_version="v2")
        if "error" in response:
            return {"success": False, "error": response["error"]}
        return {"success": True, "store_name": response.get("name"), "store_domain": response.get("domain")}


def _error_message(parsed: Any) -> str:
    if isinstance(parsed, dict):
        for key in ("title", "message", "error"):
            if parsed.get(key):
                return str(parsed[key])
    if isinstance(parsed, list) and parsed and isinstance(parsed[0], dict) and parsed[0].get("message"):
        # v2 error format
        return str(parsed[0]["message"])
    return "API Error"
