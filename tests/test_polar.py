import json

import httpx
import pytest

from meetmind.polar import (
    PolarClient, PolarAPIError, sign_payload, verify_signature, parse_event,
    map_order_status, order_to_payment_fields,
)

SECRET = "whsec_test"


def test_verify_signature_plain_and_prefixed():
    body = b'{"type":"order.paid"}'
    sig = sign_payload(SECRET, body)
    assert verify_signature(body, sig, SECRET)
    assert verify_signature(body, f"sha256={sig}", SECRET)


def test_verify_signature_rejects_bad_input():
    body = b'{"type":"order.paid"}'
    sig = sign_payload(SECRET, body)
    assert not verify_signature(body, None, SECRET)
    assert not verify_signature(body, "", SECRET)
    assert not verify_signature(body + b" ", sig, SECRET)
    assert not verify_signature(body, sig, "other-secret")


def test_parse_event():
    assert parse_event(b'{"type": "x"}') == {"type": "x"}
    with pytest.raises(ValueError):
        parse_event(b"not json")
    with pytest.raises(ValueError):
        parse_event(b"[1, 2]")


@pytest.mark.parametrize("raw,mapped", [
    ("paid", "succeeded"),
    ("COMPLETED", "succeeded"),
    ("succeeded", "succeeded"),
    ("canceled", "cancelled"),
    ("cancelled", "cancelled"),
    ("processing", "processing"),
    ("failed", "failed"),
    ("refunded", "pending"),
    (None, "pending"),
])
def test_map_order_status(raw, mapped):
    assert map_order_status(raw) == mapped


def test_order_mapping_full(make_order):
    fields = order_to_payment_fields(make_order("ord_1"))
    assert fields["polar_order_id"] == "ord_1"
    assert fields["polar_customer_id"] == "cus_ord_1"
    assert fields["customer_name"] == "Grace Hopper"
    assert fields["customer_email"] == "grace@example.com"
    assert fields["amount"] == 2500
    assert fields["status"] == "succeeded"
    assert fields["product_name"] == "Pro Plan"
    assert fields["payment_method"] == "order"
    assert fields["synced_from_polar"] is True
    meta = json.loads(fields["metadata_json"])
    assert meta == {
        "orderId": "ord_1",
        "productId": "prod_1",
        "customerId": "cus_ord_1",
        "status": "paid",
        "type": "order",
    }
    assert json.loads(fields["polar_webhook_data"])["id"] == "ord_1"


def test_order_mapping_fallbacks():
    fields = order_to_payment_fields({
        "id": "ord_2",
        "total": 700,
        "user": {"email": "u@example.com"},
    })
    assert fields["customer_name"] == "u@example.com"
    assert fields["customer_email"] == "u@example.com"
    assert fields["amount"] == 700
    assert fields["currency"] == "USD"
    assert fields["status"] == "pending"
    assert fields["product_name"] == "Unknown Product"

    bare = order_to_payment_fields({"id": "ord_3"})
    assert bare["customer_name"] == "Unknown Customer"
    assert bare["customer_email"] == "unknown@example.com"
    assert bare["amount"] == 0
    assert bare["polar_customer_id"] is None


async def test_client_walks_pages():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["authorization"] == "Bearer tok"
        assert request.url.params["organization_id"] == "org"
        page = int(request.url.params["page"])
        return httpx.Response(200, json={
            "items": [{"id": f"ord_{page}"}],
            "pagination": {"total_count": 2, "max_page": 2},
        })

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(handler)
    ) as http:
        client = PolarClient(http, "tok", base_url="https://p.test",
                             org_id="org")
        orders = await client.list_orders()
    assert [o["id"] for o in orders] == ["ord_1", "ord_2"]


async def test_client_raises_on_http_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="unauthorized")

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(handler)
    ) as http:
        client = PolarClient(http, "tok", base_url="https://p.test")
        with pytest.raises(PolarAPIError) as err:
            await client.list_orders()
    assert err.value.status == 401
    assert err.value.body == "unauthorized"
