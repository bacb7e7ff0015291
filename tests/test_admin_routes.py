"""Tests for the operator endpoints (blocklist, violations, cache)."""

import json

CLIENT = "testclient"


def test_list_blocklist_sorted(client) -> None:
    gateway = client.app.state.gateway
    gateway.blocklist.add("10.0.0.2")
    gateway.blocklist.add("10.0.0.1")

    resp = client.get("/admin/blocklist")

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "count": 2, "addresses": ["10.0.0.1", "10.0.0.2"]}


def test_add_is_idempotent_and_persisted(client, blocklist_path) -> None:
    first = client.post("/admin/blocklist", json={"address": " 203.0.113.5 "})
    second = client.post("/admin/blocklist", json={"address": "203.0.113.5"})

    assert first.json() == {"success": True, "address": "203.0.113.5", "changed": True}
    assert second.json()["changed"] is False
    assert json.loads(blocklist_path.read_text()) == ["203.0.113.5"]


def test_add_rejects_blank_address(client) -> None:
    resp = client.post("/admin/blocklist", json={"address": "   "})

    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_remove_unknown_address_is_404(client) -> None:
    resp = client.delete("/admin/blocklist/10.9.9.9")

    assert resp.status_code == 404
    assert resp.json()["message"] == "Address 10.9.9.9 is not blocked"


def test_blocked_client_cannot_use_admin_routes(make_client) -> None:
    client = make_client(rate_limit={"auth_max_requests": 1}, blocklist={"threshold": 2})
    gateway = client.app.state.gateway

    client.post("/api/v1/auth/login", json={})
    client.post("/api/v1/auth/login", json={})
    assert gateway.blocklist.is_blocked(CLIENT)

    assert client.delete(f"/admin/blocklist/{CLIENT}").status_code == 403
    assert gateway.blocklist.is_blocked(CLIENT)


def test_unblock_resets_tracker_record(client) -> None:
    gateway = client.app.state.gateway
    gateway.tracker.register_violation("10.0.0.7")
    gateway.blocklist.add("10.0.0.7")

    assert client.delete("/admin/blocklist/10.0.0.7").status_code == 200
    assert gateway.tracker.get_record("10.0.0.7") is None


def test_violation_record_lookup(client) -> None:
    gateway = client.app.state.gateway
    gateway.tracker.register_violation("10.0.0.8")
    gateway.tracker.register_violation("10.0.0.8")

    resp = client.get("/admin/violations/10.0.0.8")

    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 2
    assert body["blocked"] is False
    assert body["expires_at"] > body["last_violation_at"]


def test_violation_record_missing_is_404(client) -> None:
    resp = client.get("/admin/violations/10.0.0.9")

    assert resp.status_code == 404


def test_cache_clear_by_path_and_stats(client, fake_upstream) -> None:
    client.get("/proxy/api/products")
    client.get("/proxy/api/products/1")
    client.get("/proxy/api/orders")

    cleared = client.post("/admin/cache/clear", json={"path": "products"})
    stats = client.get("/admin/cache/stats").json()

    assert cleared.json() == {"success": True, "cleared": 2}
    assert stats["entries"] == 1
    assert stats["misses"] == 3
    assert stats["enabled"] is True


def test_cache_clear_all_without_body(client) -> None:
    client.get("/proxy/api/products")

    resp = client.post("/admin/cache/clear")

    assert resp.json()["cleared"] == 1
