"""Tests for payout outcome emails."""
from decimal import Decimal
from unittest.mock import patch

import pytest

from dump_billing.config import settings
from dump_billing.models.payout import Payout
from dump_billing.services.email_service import render_payout_email
from conftest import auth_headers, make_creator, make_user, reload


async def add_payout(db, creator, status="completed", amount="60.00", details=None):
    payout = Payout(
        creator_id=creator.uuid,
        amount=Decimal(amount),
        payout_method="paypal",
        payout_details=details or {"email": "paypal@beatsmith.example"},
        status=status,
    )
    db.add(payout)
    await db.commit()
    await db.refresh(payout)
    return payout


@pytest.mark.asyncio
async def test_notify_completed_payout(client, test_db, admin_user, paid_creator):
    payout = await add_payout(test_db, paid_creator)

    with patch("resend.Emails.send") as mock_send:
        mock_send.return_value = {"id": "email_123"}
        response = await client.post(
            f"/api/admin/payouts/{payout.uuid}/notify",
            json={"status": "completed", "notes": "Batch 42"},
            headers=auth_headers(admin_user)
        )

    assert response.status_code == 200
    assert response.json() == {"success": True, "email_id": "email_123"}

    params = mock_send.call_args.args[0]
    assert params["to"] == ["payouts@beatsmith.example"]
    assert params["from"] == settings.EMAIL_FROM
    assert params["subject"] == "Your payout of $60.00 has been processed!"
    assert "paypal@beatsmith.example" in params["html"]
    assert "Batch 42" in params["html"]


@pytest.mark.asyncio
async def test_notify_falls_back_to_account_email(client, test_db, admin_user):
    owner = await make_user(test_db, "account@example.com", "Account Holder")
    creator = await make_creator(test_db, owner, "noemail", price_usd=5, price_id="price_x")
    payout = await add_payout(test_db, creator, status="failed")

    with patch("resend.Emails.send") as mock_send:
        mock_send.return_value = {"id": "email_456"}
        response = await client.post(
            f"/api/admin/payouts/{payout.uuid}/notify",
            json={"status": "failed", "notes": "Account closed"},
            headers=auth_headers(admin_user)
        )

    assert response.status_code == 200
    params = mock_send.call_args.args[0]
    assert params["to"] == ["account@example.com"]
    assert params["subject"] == "Payout request update - Action may be required"
    assert "Hi Account Holder" in params["html"]
    assert "Account closed" in params["html"]


@pytest.mark.asyncio
async def test_notify_unknown_payout(client, admin_user):
    with patch("resend.Emails.send") as mock_send:
        response = await client.post(
            "/api/admin/payouts/missing/notify",
            json={"status": "completed"},
            headers=auth_headers(admin_user)
        )

    assert response.status_code == 404
    mock_send.assert_not_called()


@pytest.mark.asyncio
async def test_notify_creator_without_email(client, test_db, admin_user):
    owner = await make_user(test_db, "", "Nameless")
    creator = await make_creator(test_db, owner, "nomail", price_usd=5, price_id="price_y")
    payout = await add_payout(test_db, creator)

    with patch("resend.Emails.send") as mock_send:
        response = await client.post(
            f"/api/admin/payouts/{payout.uuid}/notify",
            json={"status": "completed"},
            headers=auth_headers(admin_user)
        )

    assert response.status_code == 404
    assert response.json()["detail"] == "Creator email not found"
    mock_send.assert_not_called()


@pytest.mark.asyncio
async def test_delivery_failure_does_not_touch_payout(client, test_db, admin_user, paid_creator):
    payout = await add_payout(test_db, paid_creator, status="completed")
    payout_id = payout.uuid

    with patch("resend.Emails.send", side_effect=Exception("resend is down")):
        response = await client.post(
            f"/api/admin/payouts/{payout_id}/notify",
            json={"status": "completed"},
            headers=auth_headers(admin_user)
        )

    assert response.status_code == 502
    assert "resend is down" in response.json()["detail"]
    assert (await reload(test_db, Payout, uuid=payout_id))[0].status == "completed"


@pytest.mark.asyncio
async def test_delivery_not_configured(client, test_db, admin_user, paid_creator):
    payout = await add_payout(test_db, paid_creator)

    with patch.object(settings, "RESEND_API_KEY", ""), \
         patch("resend.Emails.send") as mock_send:
        response = await client.post(
            f"/api/admin/payouts/{payout.uuid}/notify",
            json={"status": "completed"},
            headers=auth_headers(admin_user)
        )

    assert response.status_code == 502
    mock_send.assert_not_called()


@pytest.mark.asyncio
async def test_notify_requires_admin(client, test_db, creator_owner, paid_creator):
    payout = await add_payout(test_db, paid_creator)

    response = await client.post(
        f"/api/admin/payouts/{payout.uuid}/notify",
        json={"status": "completed"},
        headers=auth_headers(creator_owner)
    )

    assert response.status_code == 403


def test_render_completed_without_destination():
    subject, html = render_payout_email("completed", "Beatsmith", 75, "bank_transfer", None)

    assert subject == "Your payout of $75.00 has been processed!"
    assert "Bank Transfer" in html
    assert "Your registered account" in html


def test_render_failed_omits_reason_without_notes():
    subject, html = render_payout_email("failed", "Beatsmith", 50, "paypal", "x@example.com")

    assert "Reason" not in html
    assert "Your balance remains unchanged" in html
