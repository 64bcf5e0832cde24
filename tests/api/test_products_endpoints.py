# Catalog endpoints: product lifecycle, search, stock and category rules.

import pytest
from fastapi.testclient import TestClient

from products_service.app.main import app
from tests.api.support import admin_headers, auth_headers


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def create_category(client, name="Gadgets"):
    response = client.post("/api/categories", json={"name": name}, headers=auth_headers())
    assert response.status_code == 201, response.text
    return response.json()


def create_product(client, category_id, **fields):
    payload = {"name": "Widget", "price": 9.99, "category_id": category_id, **fields}
    response = client.post("/api/products", json=payload, headers=auth_headers())
    assert response.status_code == 201, response.text
    return response.json()


def test_create_then_partial_update_keeps_other_fields(client) -> None:
    category = create_category(client)
    created = create_product(client, category["id"], stock=0)

    assert created["stock"] == 0
    assert created["is_active"] is True
    assert created["created_by"] == "alice"
    assert created["category_name"] == "Gadgets"

    response = client.patch(f"/api/products/{created['id']}", json={"stock": 5}, headers=auth_headers())

    assert response.status_code == 200
    updated = response.json()
    assert updated["stock"] == 5
    assert {k: v for k, v in updated.items() if k != "stock"} == {
        k: v for k, v in created.items() if k != "stock"
    }


def test_moving_product_refreshes_category_name(client) -> None:
    gadgets = create_category(client)
    tools = create_category(client, "Tools")
    product = create_product(client, gadgets["id"])

    response = client.put(f"/api/products/{product['id']}", json={"category_id": tools["id"]}, headers=auth_headers())

    assert response.status_code == 200
    assert response.json()["category_name"] == "Tools"


def test_product_with_unknown_category_is_rejected(client) -> None:
    response = client.post(
        "/api/products", json={"name": "Widget", "price": 1, "category_id": 404}, headers=auth_headers()
    )
    assert response.status_code == 400
    assert response.json()["details"] == {"field": "category_id"}


def test_invalid_price_is_rejected(client) -> None:
    category = create_category(client)
    response = client.post(
        "/api/products", json={"name": "Widget", "price": 0, "category_id": category["id"]}, headers=auth_headers()
    )
    assert response.status_code == 422


def test_duplicate_sku_conflicts(client) -> None:
    category = create_category(client)
    create_product(client, category["id"], sku="W-1")

    response = client.post(
        "/api/products",
        json={"name": "Other", "price": 2, "category_id": category["id"], "sku": "W-1"},
        headers=auth_headers(),
    )
    assert response.status_code == 409


def test_listing_is_public_and_search_filters(client) -> None:
    category = create_category(client)
    create_product(client, category["id"], name="Blue Widget", price=5, stock=3)
    create_product(client, category["id"], name="Red Widget", price=15, stock=0)
    create_product(client, category["id"], name="Gizmo", price=25, stock=1)

    assert [p["name"] for p in client.get("/api/products").json()] == ["Blue Widget", "Gizmo", "Red Widget"]

    search = client.get("/api/products/search", params={"search": "widget", "in_stock": "true"})
    assert [p["name"] for p in search.json()] == ["Blue Widget"]

    priced = client.get("/api/products/search", params={"min_price": 10, "max_price": 30})
    assert [p["name"] for p in priced.json()] == ["Gizmo", "Red Widget"]

    paged = client.get("/api/products/search", params={"page": 2, "page_size": 2})
    assert [p["name"] for p in paged.json()] == ["Red Widget"]

    assert client.get("/api/products/search", params={"page_size": 101}).status_code == 400
    assert client.get("/api/products/search", params={"page": 0}).status_code == 400


def test_reading_a_product_requires_a_token(client) -> None:
    category = create_category(client)
    product = create_product(client, category["id"])

    assert client.get(f"/api/products/{product['id']}").status_code == 401
    assert client.get(f"/api/products/{product['id']}", headers=auth_headers()).status_code == 200


def test_stock_update(client) -> None:
    category = create_category(client)
    product = create_product(client, category["id"])
    url = f"/api/products/{product['id']}/stock"

    assert client.patch(url, json={"quantity": 12}, headers=auth_headers()).json()["stock"] == 12
    assert client.patch(url, json={"quantity": -1}, headers=auth_headers()).status_code == 422


def test_delete_is_admin_only_and_soft(client) -> None:
    category = create_category(client)
    product = create_product(client, category["id"])
    url = f"/api/products/{product['id']}"

    assert client.delete(url, headers=auth_headers()).status_code == 403
    assert client.delete(url, headers=admin_headers()).status_code == 200
    assert client.get(url, headers=auth_headers()).status_code == 404
    assert client.get("/api/products").json() == []
    assert client.delete(url, headers=admin_headers()).status_code == 404


def test_category_delete_conflicts_while_products_are_active(client) -> None:
    category = create_category(client)
    product = create_product(client, category["id"])
    category_url = f"/api/categories/{category['id']}"

    assert client.get(category_url).json()["product_count"] == 1

    response = client.delete(category_url, headers=admin_headers())
    assert response.status_code == 409

    assert client.delete(f"/api/products/{product['id']}", headers=admin_headers()).status_code == 200
    assert client.delete(category_url, headers=admin_headers()).status_code == 200
    assert client.get(category_url).status_code == 404
    assert client.get("/api/categories").json() == []


def test_category_cannot_be_deactivated_through_update_while_in_use(client) -> None:
    category = create_category(client)
    create_product(client, category["id"])

    response = client.patch(f"/api/categories/{category['id']}", json={"is_active": False}, headers=auth_headers())
    assert response.status_code == 409


def test_category_names_are_unique(client) -> None:
    create_category(client)
    response = client.post("/api/categories", json={"name": "Gadgets"}, headers=auth_headers())
    assert response.status_code == 409


def test_products_in_deleted_category_cannot_be_created(client) -> None:
    category = create_category(client)
    assert client.delete(f"/api/categories/{category['id']}", headers=admin_headers()).status_code == 200

    response = client.post(
        "/api/products", json={"name": "Widget", "price": 1, "category_id": category["id"]}, headers=auth_headers()
    )
    assert response.status_code == 400


def test_empty_sku_is_rejected(client) -> None:
    category = create_category(client)
    payload = {"name": "Widget", "price": 1, "category_id": category["id"], "sku": ""}

    for _ in range(2):
        assert client.post("/api/products", json=payload, headers=auth_headers()).status_code == 422

    product = create_product(client, category["id"], sku="W-2")
    response = client.patch(f"/api/products/{product['id']}", json={"sku": ""}, headers=auth_headers())
    assert response.status_code == 422


@pytest.mark.parametrize("price", [0.001, 0.009])
def test_sub_cent_price_is_rejected(client, price) -> None:
    category = create_category(client)
    payload = {"name": "Widget", "price": price, "category_id": category["id"]}

    assert client.post("/api/products", json=payload, headers=auth_headers()).status_code == 422

    product = create_product(client, category["id"], price=0.01)
    assert product["price"] == 0.01
    response = client.patch(f"/api/products/{product['id']}", json={"price": price}, headers=auth_headers())
    assert response.status_code == 422
