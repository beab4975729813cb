import pytest
from fastapi.testclient import TestClient

from app.db import GetDb
from app.main import app
from app.modules.shopping.deps import GetApiDb


@pytest.fixture()
def client(session_factory):
    def _OverrideDb():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[GetDb] = _OverrideDb
    app.dependency_overrides[GetApiDb] = _OverrideDb
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _Register(client, email: str) -> dict:
    response = client.post(
        "/api/auth/register",
        json={"Email": email, "Password": "correct horse battery", "DisplayName": email.split("@")[0]},
    )
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['AccessToken']}"}


def _IssueApiKey(client, session_headers: dict) -> dict:
    response = client.post("/api/user/apikey", headers=session_headers)
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['data']['apiKey']}"}


def _Setup(client, email: str = "owner@shopper.io") -> tuple[dict, dict]:
    session_headers = _Register(client, email)
    return session_headers, _IssueApiKey(client, session_headers)


def _CreateStore(client, api_headers: dict, name: str = "Costco") -> dict:
    response = client.post("/api/v1/stores", json={"name": name}, headers=api_headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]["store"]


def test_costco_walkthrough(client):
    _session, api = _Setup(client)
    store = _CreateStore(client, api)
    dairy = next(section for section in store["sections"] if section["name"] == "Dairy")

    response = client.post(
        f"/api/v1/stores/{store['id']}/items",
        json={"name": "Milk", "sectionId": dairy["id"]},
        headers=api,
    )
    assert response.status_code == 201
    milk = response.json()["data"]["added"][0]

    response = client.patch(f"/api/v1/stores/{store['id']}/items/{milk['id']}", json={"checked": True}, headers=api)
    assert response.json()["data"]["item"]["checked"] is True

    response = client.post(f"/api/v1/stores/{store['id']}/items/clear", json={"mode": "checked"}, headers=api)
    assert response.json() == {"success": True, "data": {"cleared": 1, "remaining": 0}}

    response = client.get(f"/api/v1/stores/{store['id']}/suggestions", params={"q": "mil"}, headers=api)
    data = response.json()["data"]
    assert [item["name"] for item in data["suggestions"]] == ["milk"]
    assert data["suggestions"][0]["sectionId"] == dairy["id"]
    assert data["exactMatchId"] is None

    response = client.get(f"/api/v1/stores/{store['id']}/suggestions", params={"q": "Milk"}, headers=api)
    data = response.json()["data"]
    assert data["exactMatchId"] == data["suggestions"][0]["id"]


def test_eggs_and_bread_checkout(client):
    _session, api = _Setup(client)
    store = _CreateStore(client, api)
    assert [section["order"] for section in store["sections"]] == list(range(8))
    sections = {section["name"]: section["id"] for section in store["sections"]}
    items_url = f"/api/v1/stores/{store['id']}/items"

    response = client.post(
        items_url,
        json={
            "items": [
                {"name": "eggs", "sectionId": sections["Dairy"]},
                {"name": "bread", "sectionId": sections["Bakery"]},
            ]
        },
        headers=api,
    )
    assert response.status_code == 201
    eggs = next(item for item in response.json()["data"]["added"] if item["name"] == "eggs")

    data = client.get(items_url, headers=api).json()["data"]
    assert (data["checkedCount"], data["totalCount"]) == (0, 2)

    client.patch(f"{items_url}/{eggs['id']}", json={"checked": True}, headers=api)
    data = client.get(items_url, headers=api).json()["data"]
    assert (data["checkedCount"], data["totalCount"]) == (1, 2)

    response = client.post(f"{items_url}/clear", json={"mode": "checked"}, headers=api)
    assert response.json()["data"] == {"cleared": 1, "remaining": 1}

    data = client.get(items_url, headers=api).json()["data"]
    assert [item["name"] for item in data["items"]] == ["bread"]
    assert data["checkedCount"] == 0


def test_batch_add_and_grouped_listing(client):
    _session, api = _Setup(client)
    store = _CreateStore(client, api)
    produce = store["sections"][0]

    response = client.post(
        f"/api/v1/stores/{store['id']}/items",
        json={"items": [{"name": "Apples", "sectionId": produce["id"]}, {"name": "Tape"}]},
        headers=api,
    )
    assert len(response.json()["data"]["added"]) == 2

    response = client.get(f"/api/v1/stores/{store['id']}/items", params={"grouped": "true"}, headers=api)
    data = response.json()["data"]
    assert data["totalCount"] == 2
    assert data["uncheckedCount"] == 2
    assert data["sections"][0]["items"][0]["name"] == "Apples"
    assert data["sections"][-1]["name"] == "Unsectioned"


def test_success_responses_carry_rate_limit_headers(client):
    _session, api = _Setup(client)

    response = client.get("/api/v1/stores", headers=api)

    assert response.status_code == 200
    assert response.json() == {"success": True, "data": {"stores": []}}
    assert response.headers["X-RateLimit-Limit"] == "100"
    assert response.headers["X-RateLimit-Remaining"] == "99"
    assert int(response.headers["X-RateLimit-Reset"]) > 0


def test_rate_limit_exhaustion_returns_429(client, monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", "2")
    _session, api = _Setup(client)

    statuses = [client.get("/api/v1/stores", headers=api).status_code for _ in range(3)]

    assert statuses == [200, 200, 429]
    response = client.get("/api/v1/stores", headers=api)
    assert response.json()["success"] is False
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert "Retry-After" in response.headers


def test_invalid_api_key_is_401_envelope(client):
    response = client.get("/api/v1/stores", headers={"Authorization": "Bearer sk_nope"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": {"message": "Invalid API key"}}


def test_store_of_another_user_is_404(client):
    _owner_session, owner_api = _Setup(client, "owner@shopper.io")
    _other_session, other_api = _Setup(client, "other@shopper.io")
    store = _CreateStore(client, owner_api)

    response = client.get(f"/api/v1/stores/{store['id']}/items", headers=other_api)
    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Store not found or access denied"

    response = client.get("/api/v1/stores/does-not-exist/items", headers=other_api)
    assert response.status_code == 404


def test_bad_item_requests_are_400(client):
    _session, api = _Setup(client)
    store = _CreateStore(client, api)
    url = f"/api/v1/stores/{store['id']}/items"

    response = client.post(url, json={}, headers=api)
    assert response.status_code == 400
    assert "Missing name or items in request body" in response.json()["error"]["message"]

    response = client.post(url, json={"items": [{"name": "milk"}, {"name": "a" * 600}]}, headers=api)
    assert response.status_code == 400
    assert client.get(url, headers=api).json()["data"]["items"] == []

    response = client.post(f"{url}/clear", json={"mode": "everything"}, headers=api)
    assert response.status_code == 400


def test_shared_user_sees_and_edits_store(client):
    owner_session, owner_api = _Setup(client, "owner@shopper.io")
    store = _CreateStore(client, owner_api)

    response = client.post(
        f"/api/stores/{store['id']}/shares",
        json={"email": "late@shopper.io"},
        headers=owner_session,
    )
    assert response.json()["data"]["status"] == "pending"

    _late_session, late_api = _Setup(client, "late@shopper.io")
    response = client.get("/api/v1/stores", headers=late_api)
    assert response.json()["data"]["stores"] == [
        {"id": store["id"], "name": "Costco", "isOwner": False, "sectionsCount": 8}
    ]

    response = client.post(f"/api/v1/stores/{store['id']}/items", json={"name": "Eggs"}, headers=late_api)
    assert response.status_code == 201


def test_owner_only_management(client):
    owner_session, owner_api = _Setup(client, "owner@shopper.io")
    friend_session = _Register(client, "friend@shopper.io")
    store = _CreateStore(client, owner_api)
    client.post(f"/api/stores/{store['id']}/shares", json={"email": "friend@shopper.io"}, headers=owner_session)

    response = client.patch(f"/api/stores/{store['id']}", json={"name": "Mine"}, headers=friend_session)
    assert response.status_code == 403

    response = client.delete(f"/api/stores/{store['id']}", headers=owner_session)
    assert response.json() == {"success": True, "data": {"deleted": True}}
    response = client.get(f"/api/v1/stores/{store['id']}", headers=owner_api)
    assert response.status_code == 404


def test_api_key_status_and_revoke(client):
    session = _Register(client, "owner@shopper.io")
    assert client.get("/api/user/apikey", headers=session).json()["data"] == {"hasKey": False}

    api = _IssueApiKey(client, session)
    assert client.get("/api/user/apikey", headers=session).json()["data"]["hasKey"] is True

    response = client.post("/api/user/apikey", headers=session)
    assert response.status_code == 429
    assert "Please wait 60 minutes" in response.json()["error"]["message"]

    assert client.delete("/api/user/apikey", headers=session).json()["data"] == {"revoked": True}
    assert client.get("/api/v1/stores", headers=api).status_code == 401


def test_session_token_is_not_an_api_key(client):
    session = _Register(client, "owner@shopper.io")
    assert client.get("/api/v1/stores", headers=session).status_code == 401


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}

