from sqlalchemy import select

from meetmind.model.db import User


async def test_admin_pages_redirect_to_login(client):
    for path in ("/admin", "/admin/users", "/admin/reports", "/payments",
                 "/payments/reports", "/dashboard/reports"):
        r = await client.get(path)
        assert r.status_code == 307, path
        assert r.headers["location"] == f"/admin/login?next={path}"


async def test_login_rejects_bad_credentials(client):
    r = await client.post("/admin/login", data={
        "username": "admin", "password": "nope", "next": "/admin",
    })
    assert r.status_code == 401
    assert "Invalid credentials." in r.text


async def test_login_then_pages_render(admin_client):
    r = await admin_client.get("/admin")
    assert r.status_code == 200
    assert "Orders" in r.text
    for path in ("/admin/reports", "/payments", "/payments/reports",
                 "/dashboard/reports", "/admin/users"):
        r = await admin_client.get(path)
        assert r.status_code == 200, path

    r = await admin_client.get("/admin/logout")
    assert r.status_code == 303
    r = await admin_client.get("/admin")
    assert r.status_code == 307


async def test_public_pages(client):
    r = await client.get("/")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert "MeetMind AI" in r.text
    assert (await client.get("/sign-in")).status_code == 200
    assert (await client.get("/admin/login")).status_code == 200


async def test_user_crud_through_forms(admin_client, db):
    r = await admin_client.post("/admin/users/create", data={
        "name": "Grace Hopper", "email": "Grace@Example.com",
    })
    assert r.status_code == 303
    user = (await db.execute(select(User))).scalars().one()
    assert user.email == "grace@example.com"
    assert user.email_verified is False

    r = await admin_client.post("/admin/users/create", data={
        "name": "Imposter", "email": "grace@example.com",
    })
    assert r.status_code == 400
    assert "Email already exists" in r.text

    r = await admin_client.get(f"/admin/users/{user.id}/edit")
    assert r.status_code == 200
    assert "grace@example.com" in r.text

    r = await admin_client.post(f"/admin/users/{user.id}/edit", data={
        "name": "Rear Admiral Hopper", "email": "grace@example.com",
        "email_verified": "1", "image": "",
    })
    assert r.status_code == 303

    r = await admin_client.get("/api/admin/users", params={"search": "ADMIRAL"})
    body = r.json()
    assert [u["name"] for u in body["items"]] == ["Rear Admiral Hopper"]
    assert body["items"][0]["emailVerified"] is True
    assert body["stats"] == {"total": 1, "verified": 1, "unverified": 0}

    r = await admin_client.post(f"/admin/users/{user.id}/delete")
    assert r.status_code == 303
    r = await admin_client.get("/api/admin/users")
    assert r.json()["items"] == []


async def test_edit_missing_user(admin_client):
    r = await admin_client.get("/admin/users/ghost/edit")
    assert r.status_code == 404
    assert "User not found" in r.text
    r = await admin_client.post("/admin/users/ghost/edit", data={
        "name": "X", "email": "x@example.com",
    })
    assert r.status_code == 404


async def test_edit_to_taken_email(admin_client, db):
    for name, email in (("A", "a@example.com"), ("B", "b@example.com")):
        await admin_client.post("/admin/users/create",
                                data={"name": name, "email": email})
    b = (await db.execute(
        select(User).where(User.email == "b@example.com")
    )).scalars().one()
    r = await admin_client.post(f"/admin/users/{b.id}/edit", data={
        "name": "B", "email": "a@example.com",
    })
    assert r.status_code == 400
    assert "Email already exists" in r.text


async def test_user_search_treats_wildcards_literally(admin_client):
    for name, email in (("Ann_Lee", "ann@example.com"),
                        ("Annxlee", "annx@example.com")):
        r = await admin_client.post("/admin/users/create", data={
            "name": name, "email": email,
        })
        assert r.status_code == 303

    r = await admin_client.get("/api/admin/users", params={"search": "ann_"})
    assert [u["name"] for u in r.json()["items"]] == ["Ann_Lee"]
