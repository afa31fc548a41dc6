"""
Public links and redirects

Every link handed to a client, contractor or the owner points at SITE_URL.
Browser-facing token endpoints answer with a redirect to a result page
instead of a JSON error.
"""

from typing import Optional
from urllib.parse import urlencode

from fastapi.responses import RedirectResponse

from ..config import SITE_URL


def site_link(path: str, **params) -> str:
    """SITE_URL + path + query string (None values are dropped)"""
    url = f"{SITE_URL}/{path.lstrip('/')}"
    query = {key: value for key, value in params.items() if value is not None}
    if query:
        url += "?" + urlencode(query)
    return url


def redirect_to(path: str, **params) -> RedirectResponse:
    # 307 keeps GET semantics for the browser
    return RedirectResponse(url=site_link(path, **params), status_code=307)


def result_redirect(result_type: str, **params) -> RedirectResponse:
    return redirect_to("/result", type=result_type, **params)


def review_quote_url(approval_token: str) -> str:
    return site_link("/review-quote", token=approval_token)


def client_approve_page_url(client_approval_token: str) -> str:
    return site_link("/approve", token=client_approval_token)


def select_contractors_url(token: Optional[str]) -> str:
    return site_link("/select-contractors", token=token)


def accept_job_url(contractor_token: str, contractor_id: str) -> str:
    return site_link("/api/accept-job", token=contractor_token, contractor=contractor_id)


def contractor_respond_url(assignment_token: str, action: str) -> str:
    return site_link("/api/contractor-respond", token=assignment_token, action=action)


def ics_url(booking_id: str) -> str:
    return site_link("/api/generate-ics", booking_id=booking_id)


def contractor_payment_url(payment_token: str) -> str:
    return site_link("/pay-contractor", token=payment_token)


def collect_balance_url(balance_token: str) -> str:
    return site_link("/collect-balance", token=balance_token)


def pay_balance_url(balance_token: str) -> str:
    return site_link("/pay-balance", token=balance_token)


def admin_events_url(booking_id: Optional[str] = None) -> str:
    if booking_id:
        return site_link(f"/admin/events/{booking_id}")
    return site_link("/admin/events")
