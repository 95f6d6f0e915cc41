import pytest
from fastapi.testclient import TestClient

from conftest import FakeConnector
from ratesync.cache import PRODUCTS_KEY, RATES_KEY, QueryCache, bind_products, bind_rates
from ratesync.client import ReconnectingSubscriber
from ratesync.schemas import Product, Rate

GOLD_9999 = "नंबर 99.99 Gold"

NEW_PRODUCT = {
    "name": "Kundan Necklace",
    "description": "Handcrafted kundan set",
    "price": 45000,
    "category": "necklace",
    "imageUrl": "https://example.com/kundan.jpg",
    "collectionId": 1,
}


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def test_seeded_rates(client):
    rates = client.get("/api/rates").json()
    assert [r["id"] for r in rates] == [1, 2, 3, 4]
    assert rates[0]["type"] == GOLD_9999
    assert rates[0]["current"] == 91700
    assert set(rates[0]) == {"id", "type", "current", "high", "low", "icon", "category", "updatedAt"}


def test_rate_update_widens_high_low(client):
    resp = client.post("/api/rates/update", json={"type": GOLD_9999, "current": 92500, "category": "gold"})
    assert resp.status_code == 200
    assert (resp.json()["high"], resp.json()["low"]) == (92500, 91650)

    resp = client.post("/api/rates/update", json={"type": GOLD_9999, "current": 91000, "category": "gold"})
    assert (resp.json()["high"], resp.json()["low"]) == (92500, 91000)


def test_rate_update_validation(client):
    resp = client.post("/api/rates/update", json={"type": GOLD_9999, "current": 1, "category": "platinum"})
    assert resp.status_code == 400


def test_unknown_rate_type_is_created_and_broadcast(client):
    with client.websocket_connect("/ws") as ws:
        resp = client.post("/api/rates/update", json={"type": "Silver 999", "current": 98000, "category": "silver"})
        frame = ws.receive_json()

    assert frame == {"event": "RATE_UPDATED", "data": resp.json()}
    assert resp.status_code == 201
    body = resp.json()
    assert (body["high"], body["low"], body["icon"]) == (98000, 98000, "coin")


def test_blank_rate_type_is_rejected(client):
    resp = client.post("/api/rates/update", json={"type": "   ", "current": 91000, "category": "gold"})
    assert resp.status_code == 400
    assert len(client.get("/api/rates").json()) == 4


def test_rate_type_is_trimmed(client):
    resp = client.post("/api/rates/update", json={"type": "  RTGS(9999) inc GST ", "current": 92300, "category": "gold"})
    assert resp.status_code == 200
    assert resp.json()["id"] == 4


def test_missing_rate_is_404(client):
    assert client.get("/api/rates/99").status_code == 404


def test_health_reports_live_sessions(client):
    assert client.get("/api/health").json() == {"ok": True, "sessions": 0}
    with client.websocket_connect("/ws"):
        assert client.get("/api/health").json()["sessions"] == 1


def test_client_frames_do_not_end_the_session(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"\x00ping")
        ws.send_text("ping")
        assert client.get("/api/health").json()["sessions"] == 1

        client.post("/api/rates/update", json={"type": GOLD_9999, "current": 91750, "category": "gold"})
        assert ws.receive_json()["data"]["current"] == 91750


def test_rate_update_is_broadcast(client):
    with client.websocket_connect("/ws") as ws:
        resp = client.post("/api/rates/update", json={"type": GOLD_9999, "current": 91800, "category": "gold"})
        frame = ws.receive_json()

    assert frame == {"event": "RATE_UPDATED", "data": resp.json()}


def test_product_lifecycle_is_broadcast(client):
    with client.websocket_connect("/ws") as ws:
        created = client.post("/api/products", json=NEW_PRODUCT)
        assert created.status_code == 201
        pid = created.json()["id"]
        assert ws.receive_json() == {"event": "PRODUCT_CREATED", "data": created.json()}

        updated = client.put(f"/api/products/{pid}", json={"price": 47000, "inStock": False})
        assert updated.status_code == 200
        assert updated.json()["price"] == 47000
        assert updated.json()["inStock"] is False
        assert updated.json()["name"] == NEW_PRODUCT["name"]
        assert ws.receive_json() == {"event": "PRODUCT_UPDATED", "data": updated.json()}

        assert client.delete(f"/api/products/{pid}").status_code == 204
        assert ws.receive_json() == {"event": "PRODUCT_DELETED", "data": {"id": pid}}

    assert client.get(f"/api/products/{pid}").status_code == 404


def test_product_errors(client):
    bad_collection = {**NEW_PRODUCT, "collectionId": 999}
    assert client.post("/api/products", json=bad_collection).status_code == 400
    assert client.put("/api/products/999", json={"price": 1}).status_code == 404
    assert client.delete("/api/products/999").status_code == 404
    assert client.get("/api/collections/999/products").status_code == 404


def test_collection_products(client):
    client.post("/api/products", json=NEW_PRODUCT)
    client.post("/api/products", json={**NEW_PRODUCT, "name": "Silver Anklet", "collectionId": 4})

    assert len(client.get("/api/collections").json()) == 6
    names = [p["name"] for p in client.get("/api/collections/1/products").json()]
    assert names == ["Kundan Necklace"]


@pytest.mark.asyncio
async def test_admin_rate_change_reaches_cached_rates(app):
    cache = QueryCache()
    subscriber = ReconnectingSubscriber(url="ws://test/ws", connector=FakeConnector())
    bind_rates(subscriber, cache)

    with TestClient(app) as client:
        before = [Rate.model_validate(r) for r in client.get("/api/rates").json()]
        cache.set_query_data(RATES_KEY, before)

        with client.websocket_connect("/ws") as ws:
            client.post("/api/rates/update", json={"type": GOLD_9999, "current": 91800, "category": "gold"})
            subscriber.dispatch(ws.receive_text())

    after = cache.get_query_data(RATES_KEY)
    assert [r.id for r in after] == [r.id for r in before]
    assert before[0].current == 91700
    assert after[0].current == 91800
    assert after[0].model_dump(exclude={"current", "updated_at"}) == before[0].model_dump(exclude={"current", "updated_at"})
    assert after[1:] == before[1:]
    await subscriber.close()


@pytest.mark.asyncio
async def test_product_envelopes_keep_cached_products_consistent(app):
    cache = QueryCache()
    subscriber = ReconnectingSubscriber(url="ws://test/ws", connector=FakeConnector())
    unbind = bind_products(subscriber, cache)

    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            pid = client.post("/api/products", json=NEW_PRODUCT).json()["id"]
            client.post("/api/products", json={**NEW_PRODUCT, "name": "Gold Bangle"})
            client.put(f"/api/products/{pid}", json={"price": 50000})
            for _ in range(3):
                subscriber.dispatch(ws.receive_text())

            assert cache.get_query_data(PRODUCTS_KEY) == [
                Product.model_validate(p) for p in client.get("/api/products").json()
            ]

            client.delete(f"/api/products/{pid}")
            subscriber.dispatch(ws.receive_text())
            assert [p.name for p in cache.get_query_data(PRODUCTS_KEY)] == ["Gold Bangle"]

            unbind()
            client.delete(f"/api/products/{pid + 1}")
            subscriber.dispatch(ws.receive_text())
            assert [p.name for p in cache.get_query_data(PRODUCTS_KEY)] == ["Gold Bangle"]

    await subscriber.close()
