"""Tests for the revenue split and the creator earnings dashboard."""
from decimal import Decimal

import pytest

from dump_billing.models.payout import Payout
from dump_billing.models.subscription import Subscription
from dump_billing.services.earnings import split_invoice_amount
from conftest import auth_headers, post_event, stripe_event


@pytest.mark.parametrize("amount_cents,fee,net", [
    (1000, "2.50", "7.50"),
    (999, "2.50", "7.49"),
    (2, "0.01", "0.01"),
    (1, "0.00", "0.01"),
    (123457, "308.64", "925.93"),
])
def test_split_rounds_fee_and_derives_net(amount_cents, fee, net):
    split = split_invoice_amount(amount_cents)

    assert split.platform_fee == Decimal(fee)
    assert split.net == Decimal(net)
    assert split.gross == split.platform_fee + split.net
    assert split.gross == Decimal(amount_cents) / 100


def test_split_with_custom_rate():
    split = split_invoice_amount(2000, fee_rate=0.1)

    assert split == (Decimal("20.00"), Decimal("2.00"), Decimal("18.00"))


@pytest.fixture
async def earning_creator(test_db, client, subscriber, paid_creator):
    test_db.add(Subscription(
        subscriber_id=subscriber.uuid,
        creator_id=paid_creator.uuid,
        status="active",
        stripe_subscription_id="sub_dash",
    ))
    await test_db.commit()

    for i in range(3):
        response = await post_event(client, stripe_event(
            "invoice.payment_succeeded",
            {"id": f"in_dash_{i}", "subscription": "sub_dash", "amount_paid": 1000},
            event_id=f"evt_dash_{i}",
        ))
        assert response.json()["status"] == "processed"
    return paid_creator


@pytest.mark.asyncio
async def test_earnings_summary(client, test_db, creator_owner, earning_creator):
    for amount, status in (("5.00", "completed"), ("2.50", "pending"), ("10.00", "failed")):
        test_db.add(Payout(
            creator_id=earning_creator.uuid,
            amount=Decimal(amount),
            payout_method="paypal",
            status=status,
        ))
    await test_db.commit()

    response = await client.get("/api/creators/me/earnings", headers=auth_headers(creator_owner))

    assert response.status_code == 200
    data = response.json()
    assert data["creator_id"] == earning_creator.uuid
    assert data["total_gross"] == 30.0
    assert data["total_fees"] == 7.5
    assert data["total_net"] == 22.5
    assert data["available_balance"] == 15.0
    assert data["pending_payouts"] == 2.5
    assert data["paid_out"] == 5.0
    assert data["payment_count"] == 3
    assert data["minimum_payout"] == 50.0
    assert data["last_payment_at"] is not None


@pytest.mark.asyncio
async def test_earnings_summary_empty(client, creator_owner, paid_creator):
    response = await client.get("/api/creators/me/earnings", headers=auth_headers(creator_owner))

    assert response.status_code == 200
    data = response.json()
    assert data["total_net"] == 0.0
    assert data["available_balance"] == 0.0
    assert data["payment_count"] == 0
    assert data["last_payment_at"] is None


@pytest.mark.asyncio
async def test_earnings_history(client, creator_owner, earning_creator, subscriber):
    response = await client.get(
        "/api/creators/me/earnings/history?limit=2",
        headers=auth_headers(creator_owner)
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert len(data["items"]) == 2
    item = data["items"][0]
    assert item["subscriber_id"] == subscriber.uuid
    assert item["gross_amount"] == 10.0
    assert item["net_amount"] == 7.5
    assert item["stripe_invoice_id"].startswith("in_dash_")


@pytest.mark.asyncio
async def test_earnings_require_creator_profile(client, subscriber):
    response = await client.get("/api/creators/me/earnings", headers=auth_headers(subscriber))

    assert response.status_code == 404
    assert response.json()["detail"] == "Creator profile not found"
