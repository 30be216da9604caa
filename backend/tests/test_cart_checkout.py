"""Tests for cart, checkout and purchase history endpoints."""
import re

import pytest

from conftest import auth_headers


@pytest.mark.asyncio
async def test_cart_starts_empty(client, buyer):
    response = await client.get("/api/cart", headers=auth_headers(buyer))

    assert response.status_code == 200
    assert response.json() == {"items": [], "total": 0}


@pytest.mark.asyncio
async def test_add_and_remove_cart_items(client, buyer, dataset, second_dataset):
    headers = auth_headers(buyer)

    await client.post("/api/cart", json={"dataset_id": dataset.uuid}, headers=headers)
    response = await client.post("/api/cart", json={"dataset_id": second_dataset.uuid}, headers=headers)
    assert response.status_code == 201
    cart = response.json()
    assert len(cart["items"]) == 2
    assert cart["total"] == pytest.approx(299.99 + 699.99)

    # Re-adding is a no-op
    response = await client.post("/api/cart", json={"dataset_id": dataset.uuid}, headers=headers)
    assert len(response.json()["items"]) == 2

    response = await client.delete(f"/api/cart/{dataset.uuid}", headers=headers)
    assert response.status_code == 200
    assert [i["dataset_id"] for i in response.json()["items"]] == [second_dataset.uuid]


@pytest.mark.asyncio
async def test_add_unknown_dataset(client, buyer):
    response = await client.post("/api/cart", json={"dataset_id": "missing"}, headers=auth_headers(buyer))

    assert response.status_code == 404
    assert response.json()["kind"] == "dataset_not_found"


@pytest.mark.asyncio
async def test_cart_requires_auth(client):
    response = await client.get("/api/cart")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_checkout_empty_cart(client, buyer):
    response = await client.post("/api/purchase", headers=auth_headers(buyer))

    assert response.status_code == 400
    assert response.json()["kind"] == "empty_cart"


@pytest.mark.asyncio
async def test_checkout_returns_keys_and_clears_cart(client, buyer, dataset, second_dataset):
    headers = auth_headers(buyer)
    await client.post("/api/cart", json={"dataset_id": dataset.uuid}, headers=headers)
    await client.post("/api/cart", json={"dataset_id": second_dataset.uuid}, headers=headers)

    response = await client.post("/api/purchase", headers=headers)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert len(body["purchases"]) == 2
    keys = [p["encryption_key"] for p in body["purchases"]]
    assert all(re.match(r"^[0-9a-f]{64}$", k) for k in keys)
    assert keys[0] != keys[1]

    cart = await client.get("/api/cart", headers=headers)
    assert cart.json()["items"] == []


@pytest.mark.asyncio
async def test_owned_dataset_cannot_be_added_again(client, buyer, dataset):
    headers = auth_headers(buyer)
    await client.post("/api/cart", json={"dataset_id": dataset.uuid}, headers=headers)
    await client.post("/api/purchase", headers=headers)

    response = await client.post("/api/cart", json={"dataset_id": dataset.uuid}, headers=headers)

    assert response.status_code == 409
    assert response.json()["kind"] == "conflict"


@pytest.mark.asyncio
async def test_purchase_history_hides_keys(client, buyer, dataset):
    headers = auth_headers(buyer)
    await client.post("/api/cart", json={"dataset_id": dataset.uuid}, headers=headers)
    await client.post("/api/purchase", headers=headers)

    response = await client.get("/api/purchases", headers=headers)

    assert response.status_code == 200
    history = response.json()
    assert len(history) == 1
    assert history[0]["dataset_id"] == dataset.uuid
    assert history[0]["status"] == "completed"
    assert "encryption_key" not in history[0]


@pytest.mark.asyncio
async def test_purchase_detail_shows_key_to_owner_only(client, buyer, other_user, dataset):
    headers = auth_headers(buyer)
    await client.post("/api/cart", json={"dataset_id": dataset.uuid}, headers=headers)
    checkout = await client.post("/api/purchase", headers=headers)
    key = checkout.json()["purchases"][0]["encryption_key"]

    response = await client.get(f"/api/purchases/{dataset.uuid}", headers=headers)
    assert response.status_code == 200
    assert response.json()["purchase"]["encryption_key"] == key
    assert response.json()["dataset_slug"] == dataset.slug

    response = await client.get(f"/api/purchases/{dataset.uuid}", headers=auth_headers(other_user))
    assert response.status_code == 404
    assert key not in response.text
