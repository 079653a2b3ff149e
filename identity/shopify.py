"""Customer lookups against the Shopify Admin REST API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from errors import ServiceUnavailableError


@dataclass(frozen=True)
class CustomerProfile:
    customer_id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    avatar_url: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "CustomerProfile":
        return cls(
            customer_id=str(row["id"]),
            email=(row.get("email") or "").strip(),
            first_name=(row.get("first_name") or "").strip(),
            last_name=(row.get("last_name") or "").strip(),
            avatar_url=row.get("avatar_url") or None,
        )


class ShopifyIdentityProvider:
    """Resolves store customers by email or id."""

    def __init__(
        self,
        store_domain: str,
        access_token: str,
        api_version: str = "2023-10",
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.store_domain = store_domain
        self.api_version = api_version
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json",
            }
        )

    @property
    def base_url(self) -> str:
        return f"https://{self.store_domain}/admin/api/{self.api_version}"

    def find_customer_by_email(self, email: str) -> Optional[CustomerProfile]:
        data = self._get("/customers/search.json", params={"query": f"email:{email}"})
        customers = (data or {}).get("customers") or []
        return CustomerProfile.from_api(customers[0]) if customers else None

    def get_customer(self, customer_id: str) -> Optional[CustomerProfile]:
        data = self._get(f"/customers/{customer_id}.json")
        customer = (data or {}).get("customer")
        return CustomerProfile.from_api(customer) if customer else None

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        try:
            resp = self.session.get(self.base_url + path, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ServiceUnavailableError(
                "Failed to reach the customer directory",
                status_code=502,
                payload={"error": "identity_provider_unreachable"},
            ) from exc

        if resp.status_code == 404:
            return None
        if not resp.ok:
            raise ServiceUnavailableError(
                "Failed to authenticate with Shopify",
                status_code=502,
                payload={"error": "identity_provider_error", "upstream_status": resp.status_code},
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise ServiceUnavailableError(
                "Unexpected response from Shopify",
                status_code=502,
                payload={"error": "identity_provider_error"},
            ) from exc
