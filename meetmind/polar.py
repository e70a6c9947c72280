import hashlib
import hmac
import json
import os
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .helpers import now_ts

DEFAULT_API_URL = "https://sandbox-api.polar.sh"
DEFAULT_ORGANIZATION_ID = "0306569d-30de-43af-ab82-bf19c982fbb0"
PAGE_LIMIT = 100
SIGNATURE_HEADER = "x-polar-signature"


# ----------------------------
# Config (read per request so tokens can rotate)
# ----------------------------
def access_token() -> Optional[str]:
    return os.environ.get("POLAR_ACCESS_TOKEN") or None


def webhook_secret() -> Optional[str]:
    return os.environ.get("POLAR_WEBHOOK_SECRET") or None


def api_url() -> str:
    return os.environ.get("POLAR_API_URL", DEFAULT_API_URL).rstrip("/")


def organization_id() -> str:
    return os.environ.get("POLAR_ORGANIZATION_ID", DEFAULT_ORGANIZATION_ID)


class PolarAPIError(Exception):
    def __init__(self, status: int, body: str):
        super().__init__(f"Polar API returned {status}: {body}")
        self.status = status
        self.body = body


# ----------------------------
# Webhook signatures
# ----------------------------
def sign_payload(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_signature(
    payload: bytes, signature: Optional[str], secret: str
) -> bool:
    if not signature:
        return False
    provided = signature.strip()
    if provided.startswith("sha256="):
        provided = provided[len("sha256="):]
    expected = sign_payload(secret, payload)
    return hmac.compare_digest(provided.encode(), expected.encode())


def parse_event(payload: bytes) -> Dict[str, Any]:
    # ValueError on anything that is not a JSON object
    event = json.loads(payload.decode("utf-8"))
    if not isinstance(event, dict):
        raise ValueError("webhook payload must be a JSON object")
    return event


# ----------------------------
# Order -> payment mapping
# ----------------------------
_STATUS_MAP = {
    "pending": "pending",
    "processing": "processing",
    "succeeded": "succeeded",
    "paid": "succeeded",
    "completed": "succeeded",
    "failed": "failed",
    "canceled": "cancelled",
    "cancelled": "cancelled",
}


def map_order_status(status: Optional[str]) -> str:
    return _STATUS_MAP.get((status or "pending").lower(), "pending")


def _get(d: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(d, dict):
            return None
        d = d.get(key)
    return d


def order_to_payment_fields(order: Dict[str, Any]) -> Dict[str, Any]:
    """Column values for a ``payments`` row built from a Polar order."""
    customer_id = order.get("customer_id") or order.get("customerId")
    return {
        "polar_order_id": order["id"],
        "polar_customer_id": customer_id or None,
        "customer_name": (
            _get(order, "customer", "name")
            or _get(order, "user", "name")
            or _get(order, "user", "email")
            or "Unknown Customer"
        ),
        "customer_email": (
            _get(order, "customer", "email")
            or _get(order, "user", "email")
            or order.get("user_email")
            or "unknown@example.com"
        ),
        # Polar amounts are already in cents
        "amount": int(order.get("amount") or order.get("total") or 0),
        "currency": order.get("currency") or "USD",
        "status": map_order_status(order.get("status")),
        "product_name": _get(order, "product", "name") or "Unknown Product",
        "payment_method": "order",
        "metadata_json": json.dumps({
            "orderId": order["id"],
            "productId": order.get("product_id") or order.get("productId"),
            "customerId": customer_id,
            "status": order.get("status"),
            "type": "order",
        }),
        "polar_webhook_data": json.dumps(order),
        "synced_from_polar": True,
        "last_sync_at": now_ts(),
    }


# ----------------------------
# REST client
# ----------------------------
class PolarClient:
    def __init__(self, http: httpx.AsyncClient, token: str,
                 base_url: Optional[str] = None,
                 org_id: Optional[str] = None):
        self.http = http
        self.token = token
        self.base_url = (base_url or api_url()).rstrip("/")
        self.organization_id = org_id or organization_id()

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    async def list_orders_page(
        self, page: int = 1, limit: int = PAGE_LIMIT
    ) -> Tuple[List[Dict[str, Any]], int]:
        """One page of orders plus the last page number."""
        r = await self.http.get(
            f"{self.base_url}/v1/orders",
            params={
                "organization_id": self.organization_id,
                "limit": limit,
                "page": page,
            },
            headers=self.headers,
        )
        if r.status_code >= 400:
            raise PolarAPIError(r.status_code, r.text)
        data = r.json()
        items = data.get("items") or []
        max_page = int(_get(data, "pagination", "max_page") or page)
        return items, max_page

    async def list_orders(self) -> List[Dict[str, Any]]:
        items, max_page = await self.list_orders_page(1)
        page = 1
        while page < max_page:
            page += 1
            more, max_page = await self.list_orders_page(page)
            if not more:
                break
            items.extend(more)
        return items

    async def get_organizations(self) -> Tuple[int, Any]:
        r = await self.http.get(
            f"{self.base_url}/v1/organizations", headers=self.headers
        )
        try:
            data = r.json()
        except ValueError:
            data = {"raw": r.text}
        return r.status_code, data
