"""
Test the category HTTP API end to end against the in-memory database.
"""
import pytest
from fastapi.testclient import TestClient

from app.api.web_app import app
from app.core.dependencies import get_category_service

BASE = "/api/v1/categories"
AUTH = {"X-Authenticated-User": "alice"}


@pytest.fixture
def test_client(category_service):
    """Create FastAPI test client bound to the test category service."""
    app.dependency_overrides[get_category_service] = lambda: category_service

    with TestClient(app) as client:
        yield client

    # Clear the override after the test
    app.dependency_overrides.clear()


def _create(client, name, parent_id=None, **extra):
    response = client.post(BASE, json={"name": name, "parent_id": parent_id, **extra}, headers=AUTH)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(test_client):
    response = test_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_and_fetch(test_client):
    grains = _create(test_client, "Grains", description="Cereal grains")
    rice = _create(test_client, "Rice", parent_id=grains["id"])

    assert rice["path"] == "/grains/rice"
    assert rice["level"] == 1
    assert rice["created_by"] == "alice"

    response = test_client.get(f"{BASE}/{grains['id']}")
    assert response.status_code == 200
    body = response.json()
    assert body["description"] == "Cereal grains"
    assert body["children_count"] == 1

    assert test_client.get(f"{BASE}/slug/rice").json()["id"] == rice["id"]
    assert test_client.get(f"{BASE}/path", params={"path": "/grains/rice"}).json()["id"] == rice["id"]


def test_mutations_require_identity(test_client):
    response = test_client.post(BASE, json={"name": "Grains"})
    assert response.status_code == 401

    grains = _create(test_client, "Grains")
    assert test_client.delete(f"{BASE}/{grains['id']}").status_code == 401
    assert test_client.patch(f"{BASE}/{grains['id']}/status", json={"active": False}).status_code == 401


def test_domain_errors_map_to_status_codes(test_client):
    grains = _create(test_client, "Grains")
    _create(test_client, "Rice", parent_id=grains["id"])

    response = test_client.get(f"{BASE}/999")
    assert response.status_code == 404
    assert response.json()["error_code"] == "CATEGORY_NOT_FOUND"

    response = test_client.post(BASE, json={"name": "Grains"}, headers=AUTH)
    assert response.status_code == 409
    assert response.json()["error_code"] == "DUPLICATE_NAME"

    response = test_client.post(BASE, json={"name": "Bad/Name"}, headers=AUTH)
    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_FAILED"

    response = test_client.delete(f"{BASE}/{grains['id']}", headers=AUTH)
    assert response.status_code == 409
    assert response.json()["error_code"] == "HAS_CHILDREN"

    response = test_client.patch(
        f"{BASE}/{grains['id']}/move", json={"new_parent_id": grains["id"]}, headers=AUTH
    )
    assert response.status_code == 409
    assert response.json()["error_code"] == "INVALID_MOVE"


def test_request_validation_error(test_client):
    response = test_client.post(BASE, json={"description": "no name"}, headers=AUTH)
    assert response.status_code == 422
    assert response.json()["detail"] == "Validation error"


def test_update_move_status_delete_flow(test_client):
    grains = _create(test_client, "Grains")
    rice = _create(test_client, "Rice", parent_id=grains["id"])
    basmati = _create(test_client, "Basmati", parent_id=rice["id"])

    response = test_client.put(f"{BASE}/{rice['id']}", json={"name": "Paddy"}, headers=AUTH)
    assert response.status_code == 200
    assert response.json()["path"] == "/grains/paddy"

    response = test_client.patch(
        f"{BASE}/{basmati['id']}/move", json={"new_parent_id": grains["id"]}, headers=AUTH
    )
    assert response.status_code == 200
    assert response.json()["path"] == "/grains/basmati"

    response = test_client.patch(f"{BASE}/{basmati['id']}/status", json={"active": False}, headers=AUTH)
    assert response.status_code == 200
    assert response.json()["active"] is False

    response = test_client.delete(f"{BASE}/{basmati['id']}", headers=AUTH)
    assert response.status_code == 204
    assert test_client.get(f"{BASE}/{basmati['id']}").status_code == 404


def test_tree_reads(test_client):
    grains = _create(test_client, "Grains")
    rice = _create(test_client, "Rice", parent_id=grains["id"])
    _create(test_client, "Basmati", parent_id=rice["id"])

    roots = test_client.get(f"{BASE}/roots").json()
    assert [c["name"] for c in roots] == ["Grains"]

    children = test_client.get(f"{BASE}/{grains['id']}/children").json()
    assert [c["name"] for c in children] == ["Rice"]

    hierarchy = test_client.get(f"{BASE}/{grains['id']}/hierarchy").json()
    assert [c["name"] for c in hierarchy] == ["Grains", "Rice", "Basmati"]

    crumbs = test_client.get(f"{BASE}/{hierarchy[-1]['id']}/breadcrumbs").json()
    assert crumbs == ["Grains", "Rice", "Basmati"]

    level = test_client.get(f"{BASE}/level/1").json()
    assert [c["name"] for c in level] == ["Rice"]

    leaves = test_client.get(f"{BASE}/leaves").json()
    assert [c["name"] for c in leaves] == ["Basmati"]

    popular = test_client.get(f"{BASE}/popular", params={"limit": 2}).json()
    assert len(popular) == 2


def test_listing_search_and_stats(test_client, make_product):
    grains = _create(test_client, "Grains")
    _create(test_client, "Brown Rice", parent_id=grains["id"])
    make_product(grains["id"], price="4.50")

    page = test_client.get(BASE, params={"page": 0, "size": 1}).json()
    assert page["total"] == 2
    assert page["total_pages"] == 2
    assert [c["name"] for c in page["items"]] == ["Grains"]

    active = test_client.get(f"{BASE}/active").json()
    assert active["total"] == 2

    found = test_client.get(f"{BASE}/search", params={"q": "rice"}).json()
    assert [c["name"] for c in found["items"]] == ["Brown Rice"]

    stats = test_client.get(f"{BASE}/{grains['id']}/stats").json()
    assert stats["active_products"] == 1
    assert stats["avg_price"] == pytest.approx(4.5)


def test_admin_endpoints(test_client):
    _create(test_client, "Grains")

    response = test_client.post(f"{BASE}/rebuild-hierarchy", params={"full": True}, headers=AUTH)
    assert response.status_code == 200
    assert response.json() == {"full": True, "updated": 0}

    response = test_client.post(f"{BASE}/reconcile-counters", headers=AUTH)
    assert response.status_code == 200
    assert response.json() == {"corrected": 0}

    assert test_client.post(f"{BASE}/reconcile-counters").status_code == 401
