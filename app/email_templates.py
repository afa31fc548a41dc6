"""
MJML Email Templates
Every workflow email is built on get_base_template for consistent, responsive layout
"""

from typing import Optional

from .config import BUSINESS_NAME, SITE_URL
from .utils.formatting import format_currency, format_date, format_time
from .utils.sanitization import nl2br

# Brand colours - charcoal with amber accent
THEME = {
    "primary": "#111827",
    "primary_dark": "#000000",
    "accent": "#f59e0b",
    "accent_light": "#fef3c7",
    "background": "#f3f4f6",
    "card_bg": "#ffffff",
    "text_primary": "#111827",
    "text_secondary": "#374151",
    "text_muted": "#6b7280",
    "border": "#e5e7eb",
    "success": "#16a34a",
    "success_light": "#dcfce7",
    "warning": "#f59e0b",
    "danger": "#dc2626",
    "danger_light": "#fee2e2",
}

LOGO_URL = f"{SITE_URL}/images/logo-email.png"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
    is_internal: bool = False,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="6px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    footer_notice = ""
    if is_internal:
        footer_notice = f"""
        <mj-text align="center" font-size="12px" color="#9ca3af" padding="12px 0 0 0">
          Internal notification from the {BUSINESS_NAME} booking system.
        </mj-text>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <!-- Header with Logo -->
        <mj-section background-color="#ffffff" padding="32px 20px">
          <mj-column>
            <mj-image
              src="{LOGO_URL}"
              alt="{BUSINESS_NAME}"
              width="160px"
              href="{SITE_URL}"
              padding="0" />
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="#ffffff" padding="0 40px 40px 40px">
          <mj-column>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="0 0 32px 0" />
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#9ca3af" padding="0">
              {BUSINESS_NAME} &middot; Sound, backline and crew for events
            </mj-text>
            <mj-text align="center" font-size="13px" color="#9ca3af" padding="8px 0 0 0">
              <a href="{SITE_URL}" style="color: #6b7280; text-decoration: none;">{SITE_URL.replace('https://', '')}</a>
            </mj-text>
            {footer_notice}
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def detail_box(rows: list[tuple[str, Optional[str]]], heading: Optional[str] = None, tone: str = "neutral") -> str:
    """Highlighted block of "Label: value" lines; empty values are skipped"""
    background = {
        "neutral": THEME["background"],
        "success": THEME["success_light"],
        "warning": THEME["accent_light"],
        "danger": THEME["danger_light"],
    }[tone]
    lines = "<br/>".join(f"<strong>{label}:</strong> {value}" for label, value in rows if value)
    heading_html = (
        f'<span style="font-size: 18px; font-weight: 600; color: {THEME["text_primary"]};">{heading}</span><br/>'
        if heading
        else ""
    )
    return f"""
    <mj-text container-background-color="{background}" padding="16px 20px" border-radius="6px">
      {heading_html}{lines}
    </mj-text>
    """


def paragraph(text: str, muted: bool = False) -> str:
    color = THEME["text_muted"] if muted else THEME["text_secondary"]
    return f'<mj-text color="{color}">{text}</mj-text>'


def link_line(url: Optional[str], label: str) -> str:
    if not url:
        return ""
    return f'<mj-text><a href="{url}" style="color: {THEME["primary"]}; font-weight: 600;">{label}</a></mj-text>'


# ============================================
# Inquiries
# ============================================


def inquiry_notification_template(
    inquiry_label: str,
    contact_name: str,
    contact_email: str,
    contact_phone: Optional[str],
    quote_number: Optional[str],
    quote_total: Optional[float],
    detail_rows: list[tuple[str, Optional[str]]],
    review_url: Optional[str],
) -> str:
    """New inquiry for the business, with the quote review link"""
    content = f"""
    {paragraph(f"A new {inquiry_label.lower()} inquiry has come in from the website.", muted=True)}
    {detail_box([
        ("Quote", f"#{quote_number}" if quote_number else None),
        ("Total", f"{format_currency(quote_total)} (incl. GST)" if quote_total else None),
        ("Name", contact_name),
        ("Email", contact_email),
        ("Phone", contact_phone),
    ], heading="Contact")}
    {detail_box(detail_rows, heading="Details")}
    """
    return get_base_template(
        title=f"New {inquiry_label} Inquiry",
        preview_text=f"{contact_name} has sent a {inquiry_label.lower()} inquiry",
        content_sections=content,
        cta_url=review_url,
        cta_label="Review Quote" if review_url else None,
        is_internal=True,
    )


def manual_quote_needed_template(
    package: Optional[str],
    event_name: Optional[str],
    contact_name: str,
    contact_email: str,
) -> str:
    content = f"""
    {detail_box([
        ("Package", package or "Not selected"),
        ("Event", event_name or "N/A"),
        ("Contact", f"{contact_name} ({contact_email})"),
    ])}
    {paragraph("This inquiry requires manual quote generation.")}
    """
    return get_base_template(
        title="New Sound System Inquiry",
        preview_text=f"Manual quote needed for {contact_name}",
        content_sections=content,
        is_internal=True,
    )


def form_submission_template(
    title: str,
    rows: list[tuple[str, Optional[str]]],
    message: Optional[str] = None,
) -> str:
    """Contact form and contractor hire inquiries (email only, not stored)"""
    content = detail_box(rows)
    if message:
        content += paragraph(nl2br(message))
    return get_base_template(
        title=title,
        preview_text=title,
        content_sections=content,
        is_internal=True,
    )


# ============================================
# Quotes and client approval
# ============================================


def quote_to_client_template(
    client_name: str,
    event_name: Optional[str],
    event_date,
    location: Optional[str],
    quote_number: str,
    quote_total: float,
    deposit_amount: Optional[float],
    notes: Optional[str],
    approve_url: str,
) -> str:
    """Quote summary sent to the client with the approval link"""
    rows = [
        ("Quote", f"#{quote_number}"),
        ("Date", format_date(event_date)),
        ("Location", location),
        ("Total", f"{format_currency(quote_total)} (incl. GST)"),
        ("Deposit to confirm", format_currency(deposit_amount) if deposit_amount else None),
    ]
    content = f"""
    {paragraph(f"Hi {client_name},")}
    {paragraph(f"Thanks for getting in touch. Here's your quote for <strong>{event_name or 'your event'}</strong>.")}
    {detail_box(rows, heading=event_name or "Your Event")}
    """
    if notes:
        content += paragraph(f"<strong>Notes:</strong><br/>{nl2br(notes)}")
    content += paragraph(
        "Review the quote and approve it online to lock in your date.", muted=True
    )
    return get_base_template(
        title="Your Quote is Ready",
        preview_text=f"Quote #{quote_number} for {event_name or 'your event'}",
        content_sections=content,
        cta_url=approve_url,
        cta_label="Review & Approve Quote",
    )


def client_approved_template(
    event_name: Optional[str],
    quote_number: str,
    event_date,
    client_name: str,
    amount: Optional[float],
    payment_method: Optional[str],
    select_url: str,
) -> str:
    """Tells the business a client approved; links to contractor selection"""
    method_label = {"poli": "POLi (paid)", "bank_transfer": "Bank transfer (awaiting payment)"}
    content = f"""
    {paragraph("Great news! The client has approved the quote.")}
    {detail_box([
        ("Quote", f"#{quote_number}"),
        ("Date", format_date(event_date)),
        ("Client", client_name),
        ("Amount", format_currency(amount) if amount else None),
        ("Deposit", method_label.get(payment_method or "")),
    ], heading=event_name or "Event", tone="success")}
    {paragraph("Next step: select which contractors to assign to this job and set their pay rates.")}
    {paragraph("A calendar event has been created and is awaiting contractor assignment.", muted=True)}
    """
    return get_base_template(
        title="Client Approved!",
        preview_text=f"{event_name or 'Event'} has been approved",
        content_sections=content,
        cta_url=select_url,
        cta_label="Select Contractors",
        is_internal=True,
    )


def bank_transfer_instructions_template(
    client_name: str,
    event_name: Optional[str],
    amount: float,
    reference: str,
    account_name: str,
    account_number: str,
) -> str:
    content = f"""
    {paragraph(f"Hi {client_name},")}
    {paragraph(f"Thanks for approving the quote for <strong>{event_name or 'your event'}</strong>. To confirm your booking please pay the deposit by bank transfer:")}
    {detail_box([
        ("Amount", format_currency(amount)),
        ("Account name", account_name),
        ("Account number", account_number or "Provided on your invoice"),
        ("Reference", reference),
    ], tone="warning")}
    {paragraph("We'll send a confirmation as soon as the payment arrives.", muted=True)}
    """
    return get_base_template(
        title="Deposit Payment Details",
        preview_text=f"Deposit of {format_currency(amount)} for {event_name or 'your event'}",
        content_sections=content,
    )


# ============================================
# Broadcast job offers (first to accept wins)
# ============================================


def job_available_template(
    contractor_name: str,
    event_name: Optional[str],
    event_date,
    event_time: Optional[str],
    location: Optional[str],
    job_description: Optional[str],
    accept_url: str,
) -> str:
    content = f"""
    {paragraph(f"Hi {contractor_name},")}
    {paragraph("A new job is available. First to accept gets it!")}
    {detail_box([
        ("Date", format_date(event_date)),
        ("Time", format_time(event_time) if event_time else None),
        ("Location", location),
        ("Details", nl2br(job_description) if job_description else None),
    ], heading=event_name or "Event", tone="warning")}
    """
    return get_base_template(
        title="New Job Available",
        preview_text=f"{event_name or 'Event'} on {format_date(event_date, 'short')}",
        content_sections=content,
        cta_url=accept_url,
        cta_label="Accept This Job",
    )


def job_filled_template(contractor_name: str, event_name: Optional[str], event_date) -> str:
    content = f"""
    {paragraph(f"Hi {contractor_name},")}
    {paragraph(f"The job <strong>{event_name or 'Event'}</strong> on {format_date(event_date)} has been filled by another contractor.")}
    {paragraph("Thanks for your interest. We'll let you know about future opportunities.", muted=True)}
    """
    return get_base_template(
        title="Job Filled",
        preview_text=f"{event_name or 'Event'} has been filled",
        content_sections=content,
    )


def job_assigned_business_template(
    contractor_name: str,
    contractor_email: str,
    event_name: Optional[str],
    event_date,
    quote_number: str,
    calendar_url: Optional[str],
) -> str:
    content = f"""
    {detail_box([
        ("Contractor", f"{contractor_name} ({contractor_email})"),
        ("Event", event_name or "Event"),
        ("Date", format_date(event_date)),
        ("Quote", f"#{quote_number}"),
    ], tone="success")}
    {link_line(calendar_url, "View in Google Calendar")}
    """
    return get_base_template(
        title="Job Assigned",
        preview_text=f"{contractor_name} accepted {event_name or 'the job'}",
        content_sections=content,
        is_internal=True,
    )


def job_assigned_contractor_template(
    contractor_name: str,
    event_name: Optional[str],
    event_date,
    event_time: Optional[str],
    location: Optional[str],
    client_name: str,
    client_phone: Optional[str],
    job_description: Optional[str],
    ics_url: Optional[str],
) -> str:
    content = f"""
    {paragraph(f"Hi {contractor_name},")}
    {paragraph("You've got the job! Here are the details:")}
    {detail_box([
        ("Date", format_date(event_date)),
        ("Time", format_time(event_time) if event_time else None),
        ("Location", location),
        ("Client", client_name),
        ("Client phone", client_phone),
        ("Details", nl2br(job_description) if job_description else None),
    ], heading=event_name or "Event", tone="success")}
    """
    return get_base_template(
        title="Job Confirmed",
        preview_text=f"You're booked for {event_name or 'the event'}",
        content_sections=content,
        cta_url=ics_url,
        cta_label="Add to Calendar" if ics_url else None,
    )


# ============================================
# Selected contractors (offer / response)
# ============================================


def pay_breakdown(hourly_rate: Optional[float], estimated_hours: Optional[float], pay_amount: float) -> str:
    """Pay line such as `$45/hr × 6 hrs = $270.00` when rate and hours are known"""
    if hourly_rate and estimated_hours:
        return f"${hourly_rate:g}/hr × {estimated_hours:g} hrs = {format_currency(pay_amount)}"
    return format_currency(pay_amount)


def job_offer_template(
    contractor_name: str,
    event_name: Optional[str],
    event_date,
    call_time: Optional[str],
    location: Optional[str],
    pay: str,
    tasks_description: Optional[str],
    equipment: Optional[list],
    accept_url: str,
    decline_url: str,
    ics_url: Optional[str],
) -> str:
    equipment_text = ", ".join(str(e) for e in equipment) if equipment else None
    content = f"""
    {paragraph(f"Hi {contractor_name},")}
    {paragraph("You've been selected for an upcoming job. Please confirm whether you can do it.")}
    {detail_box([
        ("Date", format_date(event_date)),
        ("Call time", format_time(call_time) if call_time else None),
        ("Location", location),
        ("Pay", pay),
        ("Tasks", nl2br(tasks_description) if tasks_description else None),
        ("Equipment", equipment_text),
    ], heading=event_name or "Event", tone="warning")}
    {link_line(decline_url, "I can't make it")}
    {link_line(ics_url, "Download calendar file")}
    """
    return get_base_template(
        title="Job Offer",
        preview_text=f"{event_name or 'Event'} on {format_date(event_date, 'short')}",
        content_sections=content,
        cta_url=accept_url,
        cta_label="Accept Job",
    )


def contractor_booked_template(
    contractor_name: str,
    event_name: Optional[str],
    event_date,
    call_time: Optional[str],
    location: Optional[str],
    pay: str,
    ics_url: str,
    jobsheet_url: Optional[str],
    quote_url: Optional[str],
) -> str:
    content = f"""
    {paragraph(f"Hi {contractor_name},")}
    {paragraph("Thanks for accepting. You're booked!")}
    {detail_box([
        ("Date", format_date(event_date)),
        ("Call time", format_time(call_time) if call_time else None),
        ("Location", location),
        ("Pay", pay),
    ], heading=event_name or "Event", tone="success")}
    {link_line(jobsheet_url, "View Job Sheet")}
    {link_line(quote_url, "View Quote / Gear List")}
    """
    return get_base_template(
        title="You're Booked!",
        preview_text=f"Confirmed: {event_name or 'Event'}",
        content_sections=content,
        cta_url=ics_url,
        cta_label="Add to Calendar",
    )


def all_contractors_confirmed_template(
    event_name: Optional[str],
    event_date,
    quote_number: str,
    contractor_names: list[str],
    admin_url: str,
) -> str:
    names = "<br/>".join(f"• {name}" for name in contractor_names)
    content = f"""
    {paragraph(f"All contractors have accepted <strong>{event_name or 'Event'}</strong> ({format_date(event_date)}, quote #{quote_number}).")}
    <mj-text container-background-color="{THEME['success_light']}" padding="16px 20px">{names}</mj-text>
    {paragraph("The calendar event has been updated with the crew.", muted=True)}
    """
    return get_base_template(
        title="All Contractors Confirmed",
        preview_text=f"{event_name or 'Event'} is fully crewed",
        content_sections=content,
        cta_url=admin_url,
        cta_label="View Event",
        is_internal=True,
    )


def contractor_declined_template(
    contractor_name: str,
    event_name: Optional[str],
    event_date,
    quote_number: str,
    reselect_url: str,
) -> str:
    content = f"""
    {detail_box([
        ("Contractor", contractor_name),
        ("Event", event_name or "Event"),
        ("Date", format_date(event_date)),
        ("Quote", f"#{quote_number}"),
    ], tone="danger")}
    {paragraph("Select a replacement contractor for this job.")}
    """
    return get_base_template(
        title="Contractor Declined",
        preview_text=f"{contractor_name} declined {event_name or 'the job'}",
        content_sections=content,
        cta_url=reselect_url,
        cta_label="Select New Contractor",
        is_internal=True,
    )


# ============================================
# Reminders
# ============================================


def contractor_reminder_template(
    contractor_name: str,
    event_name: Optional[str],
    event_date,
    call_time: Optional[str],
    location: Optional[str],
    days_until: int,
    ics_url: str,
) -> str:
    content = f"""
    {paragraph(f"Hi {contractor_name},")}
    {paragraph(f"Just a reminder that you're booked for <strong>{event_name or 'an event'}</strong> in {days_until} day{'s' if days_until != 1 else ''}.")}
    {detail_box([
        ("Date", format_date(event_date)),
        ("Call time", format_time(call_time) if call_time else None),
        ("Location", location),
    ], heading=event_name or "Event")}
    """
    return get_base_template(
        title="Upcoming Job Reminder",
        preview_text=f"{event_name or 'Event'} on {format_date(event_date, 'short')}",
        content_sections=content,
        cta_url=ics_url,
        cta_label="Add to Calendar",
    )


def recurrence_reminder_template(
    event_name: Optional[str],
    client_name: str,
    client_email: str,
    next_occurrence_date,
    days_until: int,
    admin_url: str,
) -> str:
    content = f"""
    {paragraph(f"<strong>{event_name or 'An event'}</strong> for {client_name} is due to come around again in {days_until} days.")}
    {detail_box([
        ("Next occurrence", format_date(next_occurrence_date)),
        ("Client", f"{client_name} ({client_email})"),
    ], tone="warning")}
    {paragraph("Get in touch with the client and duplicate last year's booking to send a fresh quote.")}
    """
    return get_base_template(
        title="Recurring Event Coming Up",
        preview_text=f"{event_name or 'Event'} is coming up again",
        content_sections=content,
        cta_url=admin_url,
        cta_label="Open Event",
        is_internal=True,
    )


# ============================================
# Payments
# ============================================


def contractor_payments_due_template(groups: list[dict], total: float) -> str:
    """
    Grouped list of contractor payouts for past events.
    groups: [{"event_name", "event_date", "quote_number", "items": [{"contractor_name", "amount", "confirm_url"}]}]
    """
    sections = []
    for group in groups:
        items = "<br/>".join(
            f'{item["contractor_name"]}: {format_currency(item["amount"])} '
            f'(<a href="{item["confirm_url"]}">mark paid</a>)'
            for item in group["items"]
        )
        sections.append(
            f"""
            <mj-text container-background-color="{THEME['background']}" padding="16px 20px">
              <strong>{group['event_name'] or 'Event'}</strong> &middot; {format_date(group['event_date'], 'short')} &middot; #{group['quote_number']}<br/>
              {items}
            </mj-text>
            """
        )
    content = f"""
    {paragraph(f"These contractors are waiting to be paid. Total outstanding: <strong>{format_currency(total)}</strong>.")}
    {''.join(sections)}
    """
    return get_base_template(
        title="Contractor Payments Due",
        preview_text=f"{format_currency(total)} owed to contractors",
        content_sections=content,
        is_internal=True,
    )


def client_balances_due_template(balances: list[dict]) -> str:
    """balances: [{"client_name", "event_name", "event_date", "quote_number", "amount", "collect_url"}]"""
    lines = "<br/>".join(
        f'<strong>{b["client_name"]}</strong> &middot; {b["event_name"] or "Event"} '
        f'({format_date(b["event_date"], "short")}, #{b["quote_number"]}): {format_currency(b["amount"])} '
        f'(<a href="{b["collect_url"]}">send invoice</a>)'
        for b in balances
    )
    content = f"""
    {paragraph("These events are over and the client balance has not been invoiced yet.")}
    <mj-text container-background-color="{THEME['background']}" padding="16px 20px">{lines}</mj-text>
    """
    return get_base_template(
        title="Client Balances Due",
        preview_text=f"{len(balances)} balance(s) to collect",
        content_sections=content,
        is_internal=True,
    )


def contractor_payment_confirmed_template(
    contractor_name: str,
    event_name: Optional[str],
    event_date,
    amount: float,
    reference: Optional[str],
) -> str:
    content = f"""
    {paragraph(f"Hi {contractor_name},")}
    {paragraph(f"Your payment for <strong>{event_name or 'the event'}</strong> has been sent.")}
    {detail_box([
        ("Event date", format_date(event_date)),
        ("Amount", format_currency(amount)),
        ("Reference", reference),
    ], tone="success")}
    """
    return get_base_template(
        title="Payment Sent",
        preview_text=f"{format_currency(amount)} for {event_name or 'your job'}",
        content_sections=content,
    )


def balance_invoice_template(
    client_name: str,
    event_name: Optional[str],
    event_date,
    invoice_reference: str,
    total: float,
    deposit: float,
    balance: float,
    due_date,
    pay_url: str,
) -> str:
    content = f"""
    {paragraph(f"Hi {client_name},")}
    {paragraph(f"Thanks for having us at <strong>{event_name or 'your event'}</strong>. Here's the remaining balance.")}
    {detail_box([
        ("Reference", invoice_reference),
        ("Event date", format_date(event_date)),
        ("Quote total", format_currency(total)),
        ("Deposit paid", format_currency(deposit)),
        ("Balance due", f"<strong>{format_currency(balance)}</strong>"),
        ("Due by", format_date(due_date)),
    ])}
    """
    return get_base_template(
        title="Balance Invoice",
        preview_text=f"Balance of {format_currency(balance)} due",
        content_sections=content,
        cta_url=pay_url,
        cta_label="Pay Balance",
    )


def balance_paid_client_template(
    client_name: str, event_name: Optional[str], amount: float, reference: Optional[str]
) -> str:
    content = f"""
    {paragraph(f"Hi {client_name},")}
    {paragraph(f"We've received your balance payment for <strong>{event_name or 'your event'}</strong>. You're all paid up. Thank you!")}
    {detail_box([("Amount", format_currency(amount)), ("Reference", reference)], tone="success")}
    """
    return get_base_template(
        title="Payment Received",
        preview_text=f"Thanks for your payment of {format_currency(amount)}",
        content_sections=content,
    )


def balance_paid_business_template(
    client_name: str,
    event_name: Optional[str],
    quote_number: str,
    amount: float,
    reference: Optional[str],
) -> str:
    content = detail_box(
        [
            ("Client", client_name),
            ("Event", event_name or "Event"),
            ("Quote", f"#{quote_number}"),
            ("Amount", format_currency(amount)),
            ("Reference", reference),
        ],
        tone="success",
    )
    return get_base_template(
        title="Balance Paid",
        preview_text=f"{client_name} paid {format_currency(amount)}",
        content_sections=content,
        is_internal=True,
    )
