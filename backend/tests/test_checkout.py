"""Tests for starting a paid subscription checkout."""
from datetime import datetime
from unittest.mock import patch, MagicMock

import pytest
import stripe

from dump_billing.models.subscription import Subscription
from dump_billing.models.user import User
from conftest import auth_headers, reload


def mock_session():
    return MagicMock(id="cs_test_123", url="https://checkout.stripe.com/c/pay/cs_test_123")


@pytest.mark.asyncio
async def test_checkout_creates_session_with_metadata(client, test_db, subscriber, paid_creator):
    subscriber_id, creator_id = subscriber.uuid, paid_creator.uuid

    with patch("stripe.Customer.list") as mock_customers, \
         patch("stripe.checkout.Session.create") as mock_create:
        mock_customers.return_value = MagicMock(data=[])
        mock_create.return_value = mock_session()

        response = await client.post(
            f"/api/creators/{creator_id}/checkout",
            headers=auth_headers(subscriber)
        )

    assert response.status_code == 200
    assert response.json() == {
        "url": "https://checkout.stripe.com/c/pay/cs_test_123",
        "session_id": "cs_test_123",
    }

    kwargs = mock_create.call_args.kwargs
    expected_metadata = {"subscriber_id": subscriber_id, "creator_id": creator_id}
    assert kwargs["mode"] == "subscription"
    assert kwargs["line_items"] == [{"price": "price_123", "quantity": 1}]
    assert kwargs["metadata"] == expected_metadata
    assert kwargs["subscription_data"] == {"metadata": expected_metadata}
    assert kwargs["customer_email"] == "fan@example.com"
    assert "customer" not in kwargs
    assert kwargs["success_url"].endswith("/subscriptions?success=1&creator=beatsmith")
    assert kwargs["cancel_url"].endswith("/creator/beatsmith")

    # The row is written by the webhook, not here
    assert await reload(test_db, Subscription) == []


@pytest.mark.asyncio
async def test_checkout_reuses_existing_customer(client, subscriber, paid_creator):
    with patch("stripe.Customer.list") as mock_customers, \
         patch("stripe.checkout.Session.create") as mock_create:
        mock_customers.return_value = MagicMock(data=[MagicMock(id="cus_existing")])
        mock_create.return_value = mock_session()

        response = await client.post(
            f"/api/creators/{paid_creator.uuid}/checkout",
            headers=auth_headers(subscriber)
        )

    assert response.status_code == 200
    mock_customers.assert_called_once_with(email="fan@example.com", limit=1)
    kwargs = mock_create.call_args.kwargs
    assert kwargs["customer"] == "cus_existing"
    assert "customer_email" not in kwargs


@pytest.mark.asyncio
async def test_checkout_self_subscription_rejected(client, creator_owner, paid_creator):
    with patch("stripe.checkout.Session.create") as mock_create:
        response = await client.post(
            f"/api/creators/{paid_creator.uuid}/checkout",
            headers=auth_headers(creator_owner)
        )

    assert response.status_code == 409
    assert response.json()["detail"] == "You cannot subscribe to yourself"
    mock_create.assert_not_called()


@pytest.mark.asyncio
async def test_checkout_self_subscription_rejected_for_free_creator(client, test_db, free_creator):
    """Self-subscription is a conflict whatever the creator charges."""
    owner = (await reload(test_db, User, uuid=free_creator.user_id))[0]
    with patch("stripe.checkout.Session.create") as mock_create:
        response = await client.post(
            f"/api/creators/{free_creator.uuid}/checkout",
            headers=auth_headers(owner)
        )

    assert response.status_code == 409
    mock_create.assert_not_called()


@pytest.mark.asyncio
async def test_checkout_free_creator_rejected(client, subscriber, free_creator):
    with patch("stripe.checkout.Session.create") as mock_create:
        response = await client.post(
            f"/api/creators/{free_creator.uuid}/checkout",
            headers=auth_headers(subscriber)
        )

    assert response.status_code == 400
    mock_create.assert_not_called()


@pytest.mark.asyncio
async def test_checkout_already_subscribed_rejected(client, test_db, subscriber, paid_creator):
    test_db.add(Subscription(
        subscriber_id=subscriber.uuid,
        creator_id=paid_creator.uuid,
        status="active",
        stripe_subscription_id="sub_123",
        current_period_end=datetime(2026, 2, 1),
    ))
    await test_db.commit()

    with patch("stripe.checkout.Session.create") as mock_create:
        response = await client.post(
            f"/api/creators/{paid_creator.uuid}/checkout",
            headers=auth_headers(subscriber)
        )

    assert response.status_code == 409
    assert "already have an active subscription" in response.json()["detail"]
    mock_create.assert_not_called()


@pytest.mark.asyncio
async def test_checkout_allowed_after_cancellation(client, test_db, subscriber, paid_creator):
    test_db.add(Subscription(
        subscriber_id=subscriber.uuid,
        creator_id=paid_creator.uuid,
        status="canceled",
        stripe_subscription_id="sub_old",
    ))
    await test_db.commit()

    with patch("stripe.Customer.list") as mock_customers, \
         patch("stripe.checkout.Session.create") as mock_create:
        mock_customers.return_value = MagicMock(data=[])
        mock_create.return_value = mock_session()

        response = await client.post(
            f"/api/creators/{paid_creator.uuid}/checkout",
            headers=auth_headers(subscriber)
        )

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_checkout_unknown_creator(client, subscriber):
    response = await client.post(
        "/api/creators/does-not-exist/checkout",
        headers=auth_headers(subscriber)
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_checkout_stripe_failure_surfaces_upstream_error(client, subscriber, paid_creator):
    with patch("stripe.Customer.list") as mock_customers, \
         patch("stripe.checkout.Session.create") as mock_create:
        mock_customers.return_value = MagicMock(data=[])
        mock_create.side_effect = stripe.InvalidRequestError("No such price: 'price_123'", "line_items")

        response = await client.post(
            f"/api/creators/{paid_creator.uuid}/checkout",
            headers=auth_headers(subscriber)
        )

    assert response.status_code == 502
    assert "No such price" in response.json()["detail"]
