"""Email notification service using Resend API."""
import logging
from typing import Optional

import resend
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dump_billing.config import settings
from dump_billing.exceptions import DeliveryError, NotFoundError
from dump_billing.models.creator import Creator
from dump_billing.models.payout import Payout

logger = logging.getLogger(__name__)

# Configure Resend API
resend.api_key = settings.RESEND_API_KEY

# Dump brand colors
DUMP_PRIMARY = "#8b5cf6"  # Violet
DUMP_SUCCESS = "#22c55e"  # Green
DUMP_DANGER = "#ef4444"   # Red
DUMP_DARK = "#18181b"     # Zinc 900
DUMP_MUTED = "#71717a"    # Zinc 500
DUMP_LIGHT = "#f4f4f5"    # Zinc 100


def get_email_template(title: str, content: str, accent: str = DUMP_PRIMARY) -> str:
    """
    Generate a branded email template.

    Args:
        title: Email heading
        content: HTML content for the email body
        accent: Heading color

    Returns:
        Complete HTML email
    """
    return f"""
    <!DOCTYPE html>
    <html>
        <head>
            <meta charset="utf-8">
            <meta name="viewport" content="width=device-width, initial-scale=1.0">
        </head>
        <body style="margin: 0; padding: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background-color: #ffffff;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <h1 style="color: {accent}; margin-bottom: 20px;">{title}</h1>
                {content}
                <hr style="border: none; border-top: 1px solid #e4e4e7; margin: 30px 0;">
                <p style="font-size: 12px; color: #a1a1aa;">This is an automated message from Dump. Do not reply to this email.</p>
            </div>
        </body>
    </html>
    """


def _detail_row(label: str, value: str, color: str = DUMP_DARK, emphasis: bool = False) -> str:
    weight = "font-weight: bold; font-size: 20px;" if emphasis else ""
    return f"""
                <tr>
                    <td style="color: {DUMP_MUTED}; padding: 8px 0;">{label}:</td>
                    <td style="text-align: right; color: {color}; {weight}">{value}</td>
                </tr>"""


def render_payout_email(
    status: str,
    creator_name: str,
    amount: float,
    payout_method: str,
    destination: Optional[str],
    notes: Optional[str] = None,
) -> tuple[str, str]:
    """Return (subject, html) for a completed or failed payout."""
    amount_label = f"${amount:.2f}"
    method_label = payout_method.replace("_", " ").title()

    if status == "completed":
        rows = _detail_row("Amount", amount_label, DUMP_SUCCESS, emphasis=True)
        rows += _detail_row("Method", method_label)
        rows += _detail_row("Sent to", destination or "Your registered account")
        if notes:
            rows += _detail_row("Notes", notes)

        content = f"""
            <p style="font-size: 16px; color: {DUMP_DARK};">Hi {creator_name},</p>
            <p style="font-size: 16px; color: {DUMP_DARK};">Great news! Your payout request has been successfully processed.</p>
            <div style="background: {DUMP_LIGHT}; border-radius: 12px; padding: 20px; margin: 20px 0;">
                <table style="width: 100%;">{rows}
                </table>
            </div>
            <p style="font-size: 14px; color: {DUMP_MUTED};">Please allow 1-3 business days for the funds to appear in your account.</p>
            <p style="font-size: 16px; color: {DUMP_DARK}; margin-top: 20px;">Thank you for being a creator on Dump!</p>
        """
        subject = f"Your payout of {amount_label} has been processed!"
        return subject, get_email_template("Payout Completed!", content, DUMP_SUCCESS)

    rows = _detail_row("Amount", amount_label, emphasis=True)
    rows += _detail_row("Method", method_label)
    if notes:
        rows += _detail_row("Reason", notes, DUMP_DANGER)

    content = f"""
            <p style="font-size: 16px; color: {DUMP_DARK};">Hi {creator_name},</p>
            <p style="font-size: 16px; color: {DUMP_DARK};">Unfortunately, we were unable to process your payout request.</p>
            <div style="background: #fef2f2; border-radius: 12px; padding: 20px; margin: 20px 0; border: 1px solid #fecaca;">
                <table style="width: 100%;">{rows}
                </table>
            </div>
            <p style="font-size: 16px; color: {DUMP_DARK};">Your balance remains unchanged. Please verify your payout details in your settings and try again, or contact support if you need assistance.</p>
        """
    subject = "Payout request update - Action may be required"
    return subject, get_email_template("Payout Could Not Be Processed", content, DUMP_DANGER)


def send_email(to: str, subject: str, html: str) -> Optional[str]:
    """
    Send one email through Resend.

    Returns:
        The Resend email id

    Raises:
        DeliveryError: Resend is not configured or rejected the message
    """
    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not configured, cannot send email")
        raise DeliveryError("Email delivery is not configured")

    try:
        response = resend.Emails.send({
            "from": settings.EMAIL_FROM,
            "to": [to],
            "subject": subject,
            "html": html
        })
    except Exception as e:
        logger.error(f"Failed to send email to {to}: {e}")
        raise DeliveryError(f"Failed to send email: {str(e)}")

    email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
    logger.info(f"Email sent to {to} ({email_id}): {subject}")
    return email_id


async def notify_payout_outcome(
    db: AsyncSession,
    payout_id: str,
    status: str,
    notes: Optional[str] = None,
) -> Optional[str]:
    """
    Email the creator that their payout completed or failed.

    Recipient is the creator's payout email, falling back to their account
    email. Sending never changes payout state.

    Raises:
        NotFoundError: payout missing or creator has no email
        DeliveryError: the email provider failed
    """
    result = await db.execute(
        select(Payout)
        .where(Payout.uuid == payout_id)
        .options(selectinload(Payout.creator).selectinload(Creator.user))
    )
    payout = result.scalar_one_or_none()
    if payout is None:
        raise NotFoundError("Payout not found")

    creator = payout.creator
    recipient = creator.payout_email or (creator.user.email if creator.user else None)
    if not recipient:
        logger.error(f"No email found for creator {creator.uuid}")
        raise NotFoundError("Creator email not found")

    creator_name = (creator.user.name if creator.user else None) or creator.handle or "Creator"
    destination = (payout.payout_details or {}).get("email")

    subject, html = render_payout_email(
        status,
        creator_name,
        float(payout.amount),
        payout.payout_method,
        destination,
        notes,
    )

    logger.info(f"Sending payout {status} notification for {payout.uuid} to {recipient}")
    return send_email(recipient, subject, html)
