"""HTTP API tests against a temporary datastore and a canned market snapshot."""

import pytest
from fastapi.testclient import TestClient

from factories import make_market
from polyindex.api.deps import get_app_settings, get_market_source
from polyindex.api.main import app
from polyindex.config import Settings
from polyindex.indexes.ids import curated_index_id
from polyindex.storage.db import get_connection
from polyindex.storage.users import create_session, create_user

SNAPSHOT = [
    make_market("a", category="Crypto", volume=1000, outcome_prices=[0.9, 0.1], end_date="2027-03-01T00:00:00Z"),
    make_market("b", category="Tech", volume=500, outcome_prices=[0.5, 0.5], end_date="2026-12-01T00:00:00Z"),
    make_market("c", category="Sports", volume=50, outcome_prices=[0.3, 0.7], question="Will the Lakers win?"),
]


class FakeMarketSource:
    def __init__(self, markets):
        self.markets = markets
        self.calls = []

    def fetch(self, offset=0, limit=20, end_date_before=None, end_date_after=None):
        self.calls.append((offset, limit, end_date_before, end_date_after))
        return self.markets[offset : offset + limit]

    def snapshot(self):
        return list(self.markets)


@pytest.fixture
def source():
    return FakeMarketSource(SNAPSHOT)


@pytest.fixture
def tokens(temp_db_path):
    conn = get_connection(temp_db_path)
    try:
        alice = create_user(conn, "alice@example.com", "alice")
        bob = create_user(conn, "bob@example.com", "bob")
        return {
            "alice": create_session(conn, alice.id),
            "bob": create_session(conn, bob.id),
        }
    finally:
        conn.close()


@pytest.fixture
def client(temp_db_path, source):
    settings = Settings.from_dict({"storage": {"db_path": str(temp_db_path)}})
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_market_source] = lambda: source
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def offline_client(source):
    """Datastore not provisioned."""
    settings = Settings.from_dict({"storage": {"db_path": ""}})
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_market_source] = lambda: source
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def create(client, token, **body):
    body.setdefault("name", "My index")
    if "filters" not in body:
        body.setdefault("markets", ["a", "b"])
    r = client.post("/indexes", json=body, headers=auth(token))
    assert r.status_code == 201, r.text
    return r.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_offline_reads_serve_curated_only_and_writes_503(offline_client):
    r = offline_client.get("/indexes")
    assert r.status_code == 200
    by_name = {i["name"]: i for i in r.json()}
    assert set(by_name) == {"High Conviction", "Coin Flip", "Crypto Watch", "Tech Futures"}
    assert by_name["High Conviction"]["markets"] == ["a"]
    assert by_name["High Conviction"]["marketCount"] == 1
    assert by_name["High Conviction"]["totalVolume"] == 1000
    assert by_name["Crypto Watch"]["createdByUsername"] == "system"

    r = offline_client.get(f"/indexes/{curated_index_id('curated-tech-futures')}")
    assert r.status_code == 200
    assert r.json()["markets"] == ["b"]

    r = offline_client.post("/indexes", json={"name": "x", "markets": ["a"]})
    assert r.status_code == 503
    assert "error" in r.json()
    assert offline_client.get("/indexes/user").json() == []


def test_list_upserts_curated_and_respects_visibility(client, tokens):
    private = create(client, tokens["alice"], name="Alice private")
    public = create(client, tokens["alice"], name="Alice public", isPublic=True)

    anonymous = {i["id"] for i in client.get("/indexes").json()}
    assert public["id"] in anonymous
    assert private["id"] not in anonymous
    assert curated_index_id("curated-high-conviction") in anonymous

    as_alice = {i["id"] for i in client.get("/indexes", headers=auth(tokens["alice"])).json()}
    assert private["id"] in as_alice
    as_bob = {i["id"] for i in client.get("/indexes", headers=auth(tokens["bob"])).json()}
    assert private["id"] not in as_bob

    # Listing twice does not duplicate curated rows.
    client.get("/indexes")
    names = [i["name"] for i in client.get("/indexes").json()]
    assert names.count("Crypto Watch") == 1


def test_create_requires_session(client, tokens):
    r = client.post("/indexes", json={"name": "x", "markets": ["a"]})
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized", "details": "No user session found"}
    r = client.post("/indexes", json={"name": "x", "markets": ["a"]}, headers=auth("nope"))
    assert r.status_code == 401


def test_session_cookie_is_accepted(client, tokens):
    cookie = {"Cookie": f"polyindex_session={tokens['alice']}"}
    r = client.post("/indexes", json={"name": "cookie", "markets": ["a"]}, headers=cookie)
    assert r.status_code == 201
    assert r.json()["createdByUsername"] == "alice"


def test_create_validation(client, tokens):
    r = client.post("/indexes", json={"markets": ["a"]}, headers=auth(tokens["alice"]))
    assert r.status_code == 400
    assert r.json()["error"] == "Name is required"
    r = client.post("/indexes", json={"name": "x", "markets": []}, headers=auth(tokens["alice"]))
    assert r.status_code == 400
    assert r.json()["error"] == "Either markets or filters are required"
    r = client.post(
        "/indexes",
        json={"name": "x", "filters": {"maxEndDate": "whenever"}},
        headers=auth(tokens["alice"]),
    )
    assert r.status_code == 400


def test_create_static_and_dynamic(client, tokens):
    static = create(client, tokens["alice"], name="Static", description="two markets", category="Crypto")
    assert static["markets"] == ["a", "b"]
    assert static["filters"] is None
    assert static["marketCount"] == 2
    assert static["createdBy"] is not None
    assert static["isPublic"] is False

    dynamic = create(client, tokens["alice"], name="Sports", filters={"categories": ["Sports"]}, isPublic=True)
    assert dynamic["markets"] == []
    assert dynamic["filters"]["categories"] == ["Sports"]
    assert dynamic["marketCount"] is None

    r = client.get(f"/indexes/{dynamic['id']}/markets")
    assert r.status_code == 200
    body = r.json()
    assert [m["id"] for m in body["markets"]] == ["c"]
    assert body["marketCount"] == 1
    assert body["totalVolume"] == 50
    assert body["markets"][0]["outcomePrices"] == [0.3, 0.7]


def test_private_index_detail_is_owner_only(client, tokens):
    private = create(client, tokens["alice"])
    assert client.get(f"/indexes/{private['id']}", headers=auth(tokens["alice"])).status_code == 200
    assert client.get(f"/indexes/{private['id']}", headers=auth(tokens["bob"])).status_code == 404
    assert client.get(f"/indexes/{private['id']}").status_code == 404
    r = client.get("/indexes/does-not-exist")
    assert r.status_code == 404
    assert r.json() == {"error": "Index not found"}


def test_non_owner_cannot_mutate(client, tokens):
    index = create(client, tokens["alice"], name="Original", isPublic=True)
    path = f"/indexes/{index['id']}"
    bob = auth(tokens["bob"])

    assert client.put(path, json={"name": "Hijacked", "markets": ["c"]}, headers=bob).status_code == 403
    assert client.patch(path, json={"isPublic": False}, headers=bob).status_code == 403
    assert client.delete(path, headers=bob).status_code == 403

    current = client.get(path).json()
    assert current["name"] == "Original"
    assert current["markets"] == ["a", "b"]
    assert current["isPublic"] is True


def test_system_index_cannot_be_edited(client, tokens):
    client.get("/indexes")
    path = f"/indexes/{curated_index_id('curated-crypto-watch')}"
    assert client.delete(path, headers=auth(tokens["alice"])).status_code == 403


def test_owner_update_visibility_and_delete(client, tokens):
    alice = auth(tokens["alice"])
    index = create(client, tokens["alice"], name="Before", isPublic=True)
    path = f"/indexes/{index['id']}"

    r = client.put(path, json={"name": "After", "filters": {"minVolume": 100}}, headers=alice)
    assert r.status_code == 200
    updated = r.json()
    assert updated["name"] == "After"
    assert updated["markets"] == []
    assert updated["filters"]["minVolume"] == 100
    assert updated["isPublic"] is True  # not supplied, left unchanged

    r = client.patch(path, json={"isPublic": False}, headers=alice)
    assert r.status_code == 200
    assert r.json()["isPublic"] is False
    assert client.patch(path, json={}, headers=alice).status_code == 400

    assert client.delete(path, headers=alice).json() == {"success": True}
    assert client.get(path, headers=alice).status_code == 404
    assert client.delete(path, headers=alice).status_code == 404


def test_star_is_idempotent(client, tokens):
    index = create(client, tokens["alice"], isPublic=True)
    path = f"/indexes/{index['id']}/star"
    bob = auth(tokens["bob"])

    first = client.post(path, headers=bob).json()
    assert first == {"starred": True, "starCount": 1, "alreadyStarred": False}
    second = client.post(path, headers=bob)
    assert second.status_code == 200
    assert second.json() == {"starred": True, "starCount": 1, "alreadyStarred": True}
    assert client.post(path, headers=auth(tokens["alice"])).json()["starCount"] == 2

    listed = {i["id"]: i for i in client.get("/indexes", headers=bob).json()}
    assert listed[index["id"]]["starCount"] == 2
    assert listed[index["id"]]["isStarred"] is True

    assert client.delete(path, headers=bob).json() == {"starred": False, "starCount": 1, "alreadyStarred": False}
    assert client.delete(path, headers=bob).json()["starCount"] == 1


def test_star_permissions(client, tokens):
    private = create(client, tokens["alice"])
    path = f"/indexes/{private['id']}/star"
    assert client.post(path).status_code == 401
    r = client.post(path, headers=auth(tokens["bob"]))
    assert r.status_code == 403
    assert r.json()["error"] == "Can only star public indexes or your own private indexes"
    assert client.post(path, headers=auth(tokens["alice"])).json()["starred"] is True
    assert client.post("/indexes/missing/star", headers=auth(tokens["bob"])).status_code == 404


def test_expired_dynamic_index_is_hidden_from_list(client, tokens):
    expired = create(client, tokens["alice"], name="Old", filters={"maxEndDate": "2020-01-01"}, isPublic=True)
    live = create(client, tokens["alice"], name="Live", filters={"maxEndDate": "2999-01-01"}, isPublic=True)
    listed = {i["id"] for i in client.get("/indexes").json()}
    assert expired["id"] not in listed
    assert live["id"] in listed


def test_user_index_listings(client, tokens):
    create(client, tokens["alice"], name="Mine private")
    create(client, tokens["alice"], name="Mine public", isPublic=True)
    create(client, tokens["bob"], name="Bob's", isPublic=True)

    mine = client.get("/indexes/user", headers=auth(tokens["alice"])).json()
    assert sorted(i["name"] for i in mine) == ["Mine private", "Mine public"]
    assert client.get("/indexes/user").status_code == 401

    public = client.get("/users/alice/indexes").json()
    assert [i["name"] for i in public] == ["Mine public"]
    assert client.get("/users/nobody/indexes").status_code == 404


def test_markets_proxy(client, source):
    r = client.get("/markets", params={"offset": 1, "limit": 1, "endDateBefore": "2027-01-01"})
    assert r.status_code == 200
    assert [m["id"] for m in r.json()] == ["b"]
    assert r.headers["cache-control"] == "public, max-age=300"
    assert source.calls == [(1, 1, "2027-01-01", None)]
    assert "endDate" in r.json()[0]


def test_markets_categories_and_preview(client):
    assert client.get("/markets/categories").json() == ["Crypto", "Sports", "Tech"]
    r = client.post("/markets/preview", json={"keywords": ["lakers"]})
    assert [m["id"] for m in r.json()] == ["c"]
    r = client.post("/markets/preview", json={})
    assert [m["id"] for m in r.json()] == ["a", "b", "c"]


def test_delete_account(client, tokens):
    alice = auth(tokens["alice"])
    index = create(client, tokens["alice"], isPublic=True)
    client.post(f"/indexes/{index['id']}/star", headers=auth(tokens["bob"]))

    assert client.delete("/account", headers=alice).json() == {"success": True}
    assert client.get(f"/indexes/{index['id']}").status_code == 404
    r = client.post("/indexes", json={"name": "x", "markets": ["a"]}, headers=alice)
    assert r.status_code == 401
    assert client.delete("/account").status_code == 401
