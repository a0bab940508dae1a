import main


def _register(client, username):
    r = client.post("/users", json={"email": f"{username}@example.com", "username": username})
    assert r.status_code == 201
    return r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_register_and_me(client, auth_headers):
    user = _register(client, "alice")

    r = client.get("/users/me", headers=auth_headers(user["id"]))
    assert r.status_code == 200
    assert r.json()["username"] == "alice"

    r = client.patch("/users/me", json={"bio": "Hello"}, headers=auth_headers(user["id"]))
    assert r.status_code == 200
    assert r.json()["bio"] == "Hello"


def test_duplicate_registration(client):
    _register(client, "alice")
    r = client.post("/users", json={"email": "alice@example.com", "username": "alice2"})
    assert r.status_code == 409
    assert r.json()["kind"] == "AlreadyExists"


def test_links_require_token(client):
    assert client.get("/links").status_code == 401
    assert client.get("/links", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_link_lifecycle(client, auth_headers):
    user = _register(client, "alice")
    headers = auth_headers(user["id"])

    ids = []
    for title in ["A", "B", "C"]:
        r = client.post("/links", json={"title": title, "url": f"https://{title}.example.com"}, headers=headers)
        assert r.status_code == 201
        ids.append(r.json()["id"])

    r = client.delete(f"/links/{ids[1]}", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"success": True}

    r = client.get("/links", headers=headers)
    assert [(link["title"], link["order_index"]) for link in r.json()] == [("A", 0), ("C", 1)]

    r = client.post(
        "/links/reorder",
        json={"link_orders": [{"id": ids[0], "order_index": 1}, {"id": ids[2], "order_index": 0}]},
        headers=headers,
    )
    assert r.status_code == 200
    r = client.get("/links", headers=headers)
    assert [link["title"] for link in r.json()] == ["C", "A"]

    r = client.patch(f"/links/{ids[0]}", json={"is_active": False}, headers=headers)
    assert r.status_code == 200
    r = client.get("/u/alice/links")
    assert [link["title"] for link in r.json()] == ["C"]


def test_capacity_and_limits(client, auth_headers):
    user = _register(client, "alice")
    headers = auth_headers(user["id"])
    for i in range(5):
        client.post("/links", json={"title": f"L{i}", "url": "https://example.com"}, headers=headers)

    r = client.post("/links", json={"title": "L5", "url": "https://example.com"}, headers=headers)
    assert r.status_code == 403
    assert r.json()["kind"] == "CapacityExceeded"

    r = client.get("/links/limits", headers=headers)
    assert r.json() == {"canCreateLink": False, "linkCount": 5, "maxLinks": 5, "isPremium": False}


def test_premium_limits_use_minus_one(client, auth_headers, monkeypatch):
    monkeypatch.setattr(main, "BILLING_WEBHOOK_SECRET", "s3cret")
    user = _register(client, "alice")

    r = client.post(
        "/billing/subscriptions",
        json={"user_id": user["id"], "status": "active"},
        headers={"X-Billing-Secret": "s3cret"},
    )
    assert r.status_code == 201

    r = client.get("/links/limits", headers=auth_headers(user["id"]))
    assert r.json()["maxLinks"] == -1
    assert r.json()["isPremium"] is True


def test_billing_rejects_bad_secret(client, monkeypatch):
    monkeypatch.setattr(main, "BILLING_WEBHOOK_SECRET", "s3cret")
    user = _register(client, "alice")

    r = client.post(
        "/billing/subscriptions",
        json={"user_id": user["id"], "status": "active"},
        headers={"X-Billing-Secret": "wrong"},
    )
    assert r.status_code == 403


def test_billing_disabled_without_secret(client, monkeypatch):
    monkeypatch.setattr(main, "BILLING_WEBHOOK_SECRET", "")
    r = client.post("/billing/subscriptions/status", json={"user_id": "x", "status": "active"})
    assert r.status_code == 503


def test_foreign_link_looks_like_missing_link(client, auth_headers):
    alice = _register(client, "alice")
    bob = _register(client, "bob")
    r = client.post(
        "/links", json={"title": "A", "url": "https://a.example.com"}, headers=auth_headers(alice["id"])
    )
    link_id = r.json()["id"]

    foreign = client.delete(f"/links/{link_id}", headers=auth_headers(bob["id"]))
    missing = client.delete("/links/does-not-exist", headers=auth_headers(bob["id"]))

    assert foreign.status_code == missing.status_code == 404
    assert foreign.json() == missing.json() == {"kind": "NotFound", "detail": "Lien introuvable"}

    r = client.post(
        "/links/reorder",
        json={"link_orders": [{"id": link_id, "order_index": 0}]},
        headers=auth_headers(bob["id"]),
    )
    assert r.status_code == 404
    assert r.json()["kind"] == "NotFound"


def test_validation_error_envelope(client, auth_headers):
    user = _register(client, "alice")
    r = client.post("/links", json={"title": "A", "url": "nope"}, headers=auth_headers(user["id"]))
    assert r.status_code == 422
    assert r.json()["kind"] == "ValidationError"
    assert r.json()["errors"]


def test_click_and_redirect(client, auth_headers):
    user = _register(client, "alice")
    headers = auth_headers(user["id"])
    link_id = client.post(
        "/links", json={"title": "A", "url": "https://a.example.com"}, headers=headers
    ).json()["id"]

    r = client.post(f"/links/{link_id}/click", json={"referrer": "https://instagram.com"})
    assert r.status_code == 201
    assert r.json()["referrer"] == "https://instagram.com"
    assert r.json()["country"] is None

    r = client.get(f"/r/{link_id}", follow_redirects=False)
    assert r.status_code == 307
    assert r.headers["location"] == "https://a.example.com"

    r = client.get("/links", headers=headers)
    assert r.json()[0]["click_count"] == 2

    assert client.post("/links/missing/click").status_code == 404


def test_inactive_link_is_neither_clickable_nor_redirected(client, auth_headers):
    user = _register(client, "alice")
    headers = auth_headers(user["id"])
    link_id = client.post(
        "/links", json={"title": "A", "url": "https://a.example.com"}, headers=headers
    ).json()["id"]
    client.patch(f"/links/{link_id}", json={"is_active": False}, headers=headers)

    r = client.post(f"/links/{link_id}/click")
    assert r.status_code == 404
    assert r.json()["kind"] == "NotFound"
    assert client.get(f"/r/{link_id}", follow_redirects=False).status_code == 404

    r = client.get("/links", headers=headers)
    assert r.json()[0]["click_count"] == 0


def test_analytics_premium_gate(client, auth_headers):
    user = _register(client, "alice")
    r = client.get("/analytics/clicks", headers=auth_headers(user["id"]))
    assert r.status_code == 403
    assert r.json()["kind"] == "PremiumRequired"


def test_public_profile(client):
    _register(client, "alice")
    assert client.get("/users/alice").status_code == 200
    assert client.get("/users/nobody").status_code == 404
    assert client.get("/u/nobody/links").json() == []
