"""Tests for creator price registration."""
from decimal import Decimal
from unittest.mock import patch, MagicMock

import pytest
import stripe

from dump_billing.models.creator import Creator
from conftest import auth_headers, make_creator, make_user, reload


@pytest.fixture
async def new_creator(test_db, creator_owner):
    return await make_creator(test_db, creator_owner, "newcomer", price_usd=0)


@pytest.mark.asyncio
async def test_first_price_creates_product_and_price(client, test_db, creator_owner, new_creator):
    creator_id = new_creator.uuid

    with patch("stripe.Product.create") as mock_product, \
         patch("stripe.Price.create") as mock_price:
        mock_product.return_value = MagicMock(id="prod_new")
        mock_price.return_value = MagicMock(id="price_new")

        response = await client.put(
            f"/api/creators/{creator_id}/price",
            json={"price_usd": 12.5},
            headers=auth_headers(creator_owner)
        )

    assert response.status_code == 200
    data = response.json()
    assert data["stripe_product_id"] == "prod_new"
    assert data["stripe_price_id"] == "price_new"
    assert data["price_usd"] == 12.5

    mock_product.assert_called_once()
    assert mock_product.call_args.kwargs["idempotency_key"] == f"creator-product-{creator_id}"
    price_kwargs = mock_price.call_args.kwargs
    assert price_kwargs["product"] == "prod_new"
    assert price_kwargs["unit_amount"] == 1250
    assert price_kwargs["currency"] == "usd"
    assert price_kwargs["recurring"] == {"interval": "month"}

    creator = (await reload(test_db, Creator, uuid=creator_id))[0]
    assert creator.stripe_product_id == "prod_new"
    assert creator.stripe_price_id == "price_new"
    assert creator.price_usd == Decimal("12.50")


@pytest.mark.asyncio
async def test_price_change_reuses_product_and_mints_new_price(client, test_db, creator_owner, paid_creator):
    creator_id = paid_creator.uuid

    with patch("stripe.Product.create") as mock_product, \
         patch("stripe.Price.create") as mock_price:
        mock_price.return_value = MagicMock(id="price_456")

        response = await client.put(
            f"/api/creators/{creator_id}/price",
            json={"price_usd": 15},
            headers=auth_headers(creator_owner)
        )

    assert response.status_code == 200
    mock_product.assert_not_called()
    assert mock_price.call_args.kwargs["product"] == "prod_123"

    creator = (await reload(test_db, Creator, uuid=creator_id))[0]
    assert creator.stripe_product_id == "prod_123"
    assert creator.stripe_price_id == "price_456"
    assert creator.price_usd == Decimal("15.00")


@pytest.mark.asyncio
async def test_price_below_minimum_rejected(client, test_db, creator_owner, paid_creator):
    with patch("stripe.Price.create") as mock_price:
        response = await client.put(
            f"/api/creators/{paid_creator.uuid}/price",
            json={"price_usd": 0.5},
            headers=auth_headers(creator_owner)
        )

    assert response.status_code == 400
    assert "at least $1" in response.json()["detail"]
    mock_price.assert_not_called()


@pytest.mark.asyncio
async def test_zero_price_switches_to_free_without_stripe(client, test_db, creator_owner, paid_creator):
    creator_id = paid_creator.uuid

    with patch("stripe.Product.create") as mock_product, \
         patch("stripe.Price.create") as mock_price:
        response = await client.put(
            f"/api/creators/{creator_id}/price",
            json={"price_usd": 0},
            headers=auth_headers(creator_owner)
        )

    assert response.status_code == 200
    assert response.json()["stripe_price_id"] is None
    mock_product.assert_not_called()
    mock_price.assert_not_called()

    creator = (await reload(test_db, Creator, uuid=creator_id))[0]
    assert creator.stripe_price_id is None
    assert creator.price_usd == Decimal("0")
    assert creator.stripe_product_id == "prod_123"
    assert creator.is_free


@pytest.mark.asyncio
async def test_price_update_requires_owner(client, test_db, paid_creator):
    stranger = await make_user(test_db, "stranger@example.com")

    with patch("stripe.Price.create") as mock_price:
        response = await client.put(
            f"/api/creators/{paid_creator.uuid}/price",
            json={"price_usd": 20},
            headers=auth_headers(stranger)
        )

    assert response.status_code == 404
    mock_price.assert_not_called()


@pytest.mark.asyncio
async def test_price_failure_keeps_created_product(client, test_db, creator_owner, new_creator):
    """A retry after a failed price call reuses the product instead of creating another."""
    creator_id = new_creator.uuid

    with patch("stripe.Product.create") as mock_product, \
         patch("stripe.Price.create") as mock_price:
        mock_product.return_value = MagicMock(id="prod_new")
        mock_price.side_effect = stripe.APIConnectionError("timeout")

        response = await client.put(
            f"/api/creators/{creator_id}/price",
            json={"price_usd": 10},
            headers=auth_headers(creator_owner)
        )

    assert response.status_code == 502

    creator = (await reload(test_db, Creator, uuid=creator_id))[0]
    assert creator.stripe_product_id == "prod_new"
    assert creator.stripe_price_id is None


@pytest.mark.asyncio
async def test_price_update_requires_authentication(client, paid_creator):
    response = await client.put(f"/api/creators/{paid_creator.uuid}/price", json={"price_usd": 10})

    assert response.status_code == 401
