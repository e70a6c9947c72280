import json

from meetmind.model.db import Payment


async def create(client, **overrides):
    body = {
        "customerName": "Alan Turing",
        "customerEmail": "alan@example.com",
        "amount": 12.5,
        "productName": "Starter Package",
    }
    body.update(overrides)
    r = await client.post("/api/payments", json=body)
    assert r.status_code == 200, r.text
    return r.json()


async def test_create_manual_payment(client, db):
    p = await create(client, metadata={"source": "phone"})
    assert p["amount"] == 1250
    assert p["currency"] == "USD"
    assert p["status"] == "pending"
    assert p["paymentMethod"] == "manual"
    assert p["syncedFromPolar"] is False
    assert json.loads(p["metadata"]) == {"source": "phone"}

    row = await db.get(Payment, p["id"])
    assert row.amount == 1250


async def test_get_and_404(client):
    p = await create(client)
    r = await client.get(f"/api/payments/{p['id']}")
    assert r.status_code == 200
    assert r.json()["customerEmail"] == "alan@example.com"

    r = await client.get("/api/payments/missing")
    assert r.status_code == 404
    assert r.json() == {"error": "Payment not found"}


async def test_search_and_status_combine(client):
    await create(client, customerName="Alice", customerEmail="alice@x.io",
                 status="succeeded")
    await create(client, customerName="Alice B", customerEmail="ab@x.io",
                 status="failed")
    await create(client, customerName="Bob", customerEmail="bob@x.io",
                 status="succeeded")

    r = await client.get("/api/payments", params={"search": "ALICE"})
    assert r.json()["total"] == 2

    r = await client.get(
        "/api/payments", params={"search": "alice", "status": "succeeded"}
    )
    body = r.json()
    assert body["total"] == 1
    assert body["payments"][0]["customerName"] == "Alice"

    r = await client.get("/api/payments", params={"status": "all"})
    assert r.json()["total"] == 3


async def test_pagination_reports_filtered_total(client):
    for i in range(5):
        await create(client, customerName=f"C{i}")
    r = await client.get("/api/payments", params={"limit": 2, "offset": 1})
    body = r.json()
    assert body["total"] == 5
    assert body["limit"] == 2
    assert body["offset"] == 1
    assert len(body["payments"]) == 2


async def test_bad_pagination_is_400(client):
    r = await client.get("/api/payments", params={"limit": "ten"})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid limit or offset"}


async def test_patch_and_delete(client):
    p = await create(client)
    r = await client.patch(
        f"/api/payments/{p['id']}",
        json={"status": "succeeded", "amount": 0, "productName": "Pro"},
    )
    body = r.json()
    assert body["success"] is True
    assert body["payment"]["status"] == "succeeded"
    assert body["payment"]["amount"] == 1250
    assert body["payment"]["productName"] == "Pro"

    r = await client.patch(f"/api/payments/{p['id']}", json={"amount": 3})
    assert r.json()["payment"]["amount"] == 300

    r = await client.delete(f"/api/payments/{p['id']}")
    assert r.json() == {"success": True}
    r = await client.delete(f"/api/payments/{p['id']}")
    assert r.status_code == 404
    r = await client.patch(f"/api/payments/{p['id']}", json={"status": "failed"})
    assert r.status_code == 404


async def test_patch_rejects_negative_amount_and_bad_email(client):
    p = await create(client)
    r = await client.patch(f"/api/payments/{p['id']}", json={"amount": -1})
    assert r.status_code == 400
    r = await client.patch(
        f"/api/payments/{p['id']}", json={"customerEmail": "nope"}
    )
    assert r.status_code == 400

    r = await client.get(f"/api/payments/{p['id']}")
    assert r.json()["amount"] == 1250
    assert r.json()["customerEmail"] == "alan@example.com"


async def test_search_treats_wildcards_literally(client):
    await create(client, customerName="100% Club", customerEmail="c@x.io")
    await create(client, customerName="Plain", customerEmail="p@x.io")

    r = await client.get("/api/payments", params={"search": "%"})
    body = r.json()
    assert body["total"] == 1
    assert body["payments"][0]["customerName"] == "100% Club"

    r = await client.get("/api/payments", params={"search": "_"})
    assert r.json()["total"] == 0
