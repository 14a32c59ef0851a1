"""
Business probes: create and read back records through the CRUD services.

Marker records written before a fault and read after recovery are the
correctness oracle for the recovery scenarios.
"""

from dataclasses import dataclass
from typing import Any
from uuid import uuid4

import httpx

from resilience_engine.config import RecordLookup, Settings
from resilience_engine.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Resource:
    """A record collection exposed over HTTP."""

    name: str
    collection_url: str

    def item_url(self, record_id: Any) -> str:
        return f"{self.collection_url}/{record_id}"


def users_resource(settings: Settings) -> Resource:
    return Resource(name="users", collection_url=f"{settings.user_service_url}/users")


def gateway_orders_resource(settings: Settings) -> Resource:
    return Resource(name="orders", collection_url=f"{settings.gateway_url}/api/orders")


def order_service_orders_resource(settings: Settings) -> Resource:
    return Resource(name="orders", collection_url=f"{settings.order_service_url}/orders")


def unique_tag() -> str:
    return uuid4().hex[:12]


def user_payload(tag: str | None = None) -> dict[str, Any]:
    """Build a user creation payload with a unique email."""
    tag = tag or unique_tag()
    return {"name": f"Resilience User {tag}", "email": f"resilience-{tag}@example.com"}


def order_payload(user_id: Any, amount: float = 99.99) -> dict[str, Any]:
    """Build an order creation payload for an existing user."""
    return {
        "user_id": user_id,
        "items": [{"product": "Test Product", "quantity": 1, "price": amount}],
        "total_amount": amount,
    }


def extract_items(body: Any, resource_name: str) -> list[dict[str, Any]] | None:
    """
    Pull the record list out of a collection response.

    Accepts a bare JSON array or an object wrapping the array under the
    resource name, "items" or "data".
    """
    if isinstance(body, list):
        return [item for item in body if isinstance(item, dict)]
    if isinstance(body, dict):
        for key in (resource_name, "items", "data"):
            value = body.get(key)
            if isinstance(value, list):
                return [item for item in value if isinstance(item, dict)]
    return None


def matches_marker(record: dict[str, Any] | None, expected: dict[str, Any]) -> bool:
    """True if every expected field is present in the record with the same value."""
    if record is None:
        return False
    for key, value in expected.items():
        if key not in record:
            return False
        actual = record[key]
        if isinstance(value, float) and isinstance(actual, (int, float, str)):
            try:
                if abs(float(actual) - value) > 1e-6:
                    return False
            except ValueError:
                return False
        elif str(actual) != str(value):
            return False
    return True


class BusinessClient:
    """Create/list/fetch records against the services under test."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout_s: float = 10.0,
        lookup: RecordLookup = RecordLookup.LIST,
    ):
        self._client = client
        self.timeout_s = timeout_s
        self.lookup = lookup

    async def create(self, resource: Resource, payload: dict[str, Any]) -> dict[str, Any] | None:
        """
        POST a new record.

        Returns:
            The created record (must carry an id), or None on any failure.
        """
        try:
            response = await self._client.post(
                resource.collection_url, json=payload, timeout=self.timeout_s
            )
        except httpx.HTTPError as e:
            logger.warning("Create %s failed: %s: %s", resource.name, type(e).__name__, e)
            return None

        if response.status_code not in (200, 201):
            logger.warning("Create %s returned HTTP %d", resource.name, response.status_code)
            return None

        try:
            body = response.json()
        except ValueError:
            logger.warning("Create %s returned a non-JSON body", resource.name)
            return None

        if not isinstance(body, dict) or body.get("id") is None:
            logger.warning("Create %s response has no id", resource.name)
            return None

        logger.debug("Created %s %s", resource.name, body["id"])
        return body

    async def list(self, resource: Resource) -> list[dict[str, Any]] | None:
        """GET the collection; None when the request fails."""
        try:
            response = await self._client.get(resource.collection_url, timeout=self.timeout_s)
        except httpx.HTTPError as e:
            logger.warning("List %s failed: %s: %s", resource.name, type(e).__name__, e)
            return None

        if response.status_code != 200:
            logger.warning("List %s returned HTTP %d", resource.name, response.status_code)
            return None

        try:
            items = extract_items(response.json(), resource.name)
        except ValueError:
            items = None
        if items is None:
            logger.warning("List %s returned an unexpected body", resource.name)
        return items

    async def fetch(self, resource: Resource, record_id: Any) -> dict[str, Any] | None:
        """Read a single record back by id."""
        if self.lookup == RecordLookup.BY_ID:
            try:
                response = await self._client.get(
                    resource.item_url(record_id), timeout=self.timeout_s
                )
            except httpx.HTTPError as e:
                logger.warning("Fetch %s %s failed: %s", resource.name, record_id, e)
                return None
            if response.status_code != 200:
                return None
            try:
                body = response.json()
            except ValueError:
                return None
            return body if isinstance(body, dict) else None

        items = await self.list(resource)
        if items is None:
            return None
        for item in items:
            if str(item.get("id")) == str(record_id):
                return item
        return None

    async def verify(self, resource: Resource, record_id: Any, expected: dict[str, Any]) -> bool:
        """Fetch a record and compare it against the expected marker fields."""
        record = await self.fetch(resource, record_id)
        if record is None:
            logger.warning("%s %s not found", resource.name, record_id)
            return False
        if not matches_marker(record, expected):
            logger.warning("%s %s changed: expected %s, got %s", resource.name, record_id, expected, record)
            return False
        return True
