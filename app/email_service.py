"""
Email Service using Resend
Workflow emails are written in MJML (see email_templates) and compiled to HTML here
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import BUSINESS_EMAIL, BUSINESS_NAME, EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import (
    all_contractors_confirmed_template,
    balance_invoice_template,
    balance_paid_business_template,
    balance_paid_client_template,
    bank_transfer_instructions_template,
    client_approved_template,
    client_balances_due_template,
    contractor_booked_template,
    contractor_declined_template,
    contractor_payment_confirmed_template,
    contractor_payments_due_template,
    contractor_reminder_template,
    form_submission_template,
    inquiry_notification_template,
    job_assigned_business_template,
    job_assigned_contractor_template,
    job_available_template,
    job_filled_template,
    job_offer_template,
    manual_quote_needed_template,
    quote_to_client_template,
    recurrence_reminder_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def tagged_business_email(tag: str) -> str:
    """hello@x.co.nz -> hello+dryhire@x.co.nz so inbox rules can sort inquiries"""
    local, _, domain = BUSINESS_EMAIL.partition("@")
    return f"{local}+{tag}@{domain}"


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # Result exposes .html and .errors (dict-style access also works)
        errors = getattr(result, "errors", None)
        if errors:
            logger.warning(f"MJML compilation warnings: {errors}")
        html = getattr(result, "html", None)
        if html is None and isinstance(result, dict):
            html = result.get("html", "")
        return html or ""
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise RuntimeError(f"Failed to compile MJML template: {str(e)}") from e


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    reply_to: Optional[str] = None,
    attachments: Optional[list[dict]] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        reply_to: Optional Reply-To address (client inquiries reply to the client)
        attachments: Optional list of {"filename", "content"} dicts

    Returns:
        Send response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise RuntimeError("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    email_data = {
        "from": EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": html_content,
    }
    if reply_to:
        email_data["reply_to"] = reply_to
    if attachments:
        email_data["attachments"] = [
            {"filename": attachment["filename"], "content": attachment["content"]}
            for attachment in attachments
        ]

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise RuntimeError(f"Failed to send email: {str(e)}") from e


# ============================================
# Inquiry emails
# ============================================


async def send_inquiry_notification(to: str, inquiry_label: str, reply_to: Optional[str] = None, **template_kwargs) -> dict:
    quote_number = template_kwargs.get("quote_number")
    subject = f"{inquiry_label} Inquiry from {template_kwargs['contact_name']}"
    if quote_number:
        subject += f" - Quote {quote_number}"
    return await send_email(
        to=to,
        subject=subject,
        mjml_content=inquiry_notification_template(inquiry_label=inquiry_label, **template_kwargs),
        reply_to=reply_to,
    )


async def send_manual_quote_needed(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=f"Sound System Inquiry from {template_kwargs['contact_name']}",
        mjml_content=manual_quote_needed_template(**template_kwargs),
        reply_to=template_kwargs.get("contact_email"),
    )


async def send_form_submission(to: str, subject: str, title: str, rows, message=None, reply_to=None) -> dict:
    return await send_email(
        to=to,
        subject=subject,
        mjml_content=form_submission_template(title=title, rows=rows, message=message),
        reply_to=reply_to,
    )


# ============================================
# Client approval emails
# ============================================


async def send_quote_to_client(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=f"Your Quote from {BUSINESS_NAME} - #{template_kwargs['quote_number']}",
        mjml_content=quote_to_client_template(**template_kwargs),
        reply_to=BUSINESS_EMAIL,
    )


async def send_client_approved_notification(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=(
            f"Client Approved: {template_kwargs.get('event_name') or 'Event'}"
            f" - Quote #{template_kwargs['quote_number']}"
        ),
        mjml_content=client_approved_template(**template_kwargs),
    )


async def send_bank_transfer_instructions(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=f"Deposit details for {template_kwargs.get('event_name') or 'your event'}",
        mjml_content=bank_transfer_instructions_template(**template_kwargs),
        reply_to=BUSINESS_EMAIL,
    )


# ============================================
# Contractor emails
# ============================================


async def send_job_available(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=f"New Job Available: {template_kwargs.get('event_name') or 'Event'}",
        mjml_content=job_available_template(**template_kwargs),
    )


async def send_job_filled(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=f"Job Filled: {template_kwargs.get('event_name') or 'Event'}",
        mjml_content=job_filled_template(**template_kwargs),
    )


async def send_job_assigned_business(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=(
            f"Job Assigned: {template_kwargs.get('event_name') or 'Event'}"
            f" - {template_kwargs['contractor_name']}"
        ),
        mjml_content=job_assigned_business_template(**template_kwargs),
    )


async def send_job_assigned_contractor(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=f"Job Confirmed: {template_kwargs.get('event_name') or 'Event'}",
        mjml_content=job_assigned_contractor_template(**template_kwargs),
        reply_to=BUSINESS_EMAIL,
    )


async def send_job_offer(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=f"Job Offer: {template_kwargs.get('event_name') or 'Event'}",
        mjml_content=job_offer_template(**template_kwargs),
        reply_to=BUSINESS_EMAIL,
    )


async def send_contractor_booked(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=f"You're Booked: {template_kwargs.get('event_name') or 'Event'}",
        mjml_content=contractor_booked_template(**template_kwargs),
        reply_to=BUSINESS_EMAIL,
    )


async def send_all_contractors_confirmed(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=f"All Contractors Confirmed: {template_kwargs.get('event_name') or 'Event'}",
        mjml_content=all_contractors_confirmed_template(**template_kwargs),
    )


async def send_contractor_declined(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=(
            f"Contractor Declined: {template_kwargs['contractor_name']}"
            f" - {template_kwargs.get('event_name') or 'Event'}"
        ),
        mjml_content=contractor_declined_template(**template_kwargs),
    )


async def send_contractor_reminder(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=f"Reminder: {template_kwargs.get('event_name') or 'Event'} in {template_kwargs['days_until']} days",
        mjml_content=contractor_reminder_template(**template_kwargs),
        reply_to=BUSINESS_EMAIL,
    )


async def send_recurrence_reminder(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=f"Recurring Event Coming Up: {template_kwargs.get('event_name') or 'Event'}",
        mjml_content=recurrence_reminder_template(**template_kwargs),
    )


# ============================================
# Payment emails
# ============================================


async def send_contractor_payments_due(to: str, groups: list[dict], total: float) -> dict:
    count = sum(len(group["items"]) for group in groups)
    return await send_email(
        to=to,
        subject=f"Contractor Payments Due: {count} payment{'s' if count != 1 else ''}",
        mjml_content=contractor_payments_due_template(groups=groups, total=total),
    )


async def send_client_balances_due(to: str, balances: list[dict]) -> dict:
    count = len(balances)
    return await send_email(
        to=to,
        subject=f"Client Balances Due: {count} event{'s' if count != 1 else ''}",
        mjml_content=client_balances_due_template(balances=balances),
    )


async def send_contractor_payment_confirmed(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=f"Payment Sent: {template_kwargs.get('event_name') or 'Event'}",
        mjml_content=contractor_payment_confirmed_template(**template_kwargs),
        reply_to=BUSINESS_EMAIL,
    )


async def send_balance_invoice(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=f"Balance Invoice: {template_kwargs.get('event_name') or 'Your Event'}",
        mjml_content=balance_invoice_template(**template_kwargs),
        reply_to=BUSINESS_EMAIL,
    )


async def send_balance_paid_client(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject="Payment Received - Thank You",
        mjml_content=balance_paid_client_template(**template_kwargs),
        reply_to=BUSINESS_EMAIL,
    )


async def send_balance_paid_business(to: str, **template_kwargs) -> dict:
    return await send_email(
        to=to,
        subject=f"Balance Paid: {template_kwargs['client_name']} - #{template_kwargs['quote_number']}",
        mjml_content=balance_paid_business_template(**template_kwargs),
    )
