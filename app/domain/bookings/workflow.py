"""
Booking status workflow

Every booking status change goes through `transition`, which checks the move
against ALLOWED_TRANSITIONS and writes it with a compare-and-set UPDATE so two
requests racing on the same booking cannot both win.

    pending ──► sent_to_client ──► client_approved ──► contractor_selection
       │                                                     │
       ├──► approved ──► sent_to_contractors ──► assigned     ▼
       │                                            │   contractors_notified
       └──► contractor_selection                    │        │
                                                    ▼        ▼
                                               completed ◄─ confirmed

Any non-terminal status can also move to cancelled.
"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models import Booking, ClientApproval

logger = logging.getLogger(__name__)

PENDING = "pending"
SENT_TO_CLIENT = "sent_to_client"
CLIENT_APPROVED = "client_approved"
APPROVED = "approved"
CONTRACTOR_SELECTION = "contractor_selection"
CONTRACTORS_NOTIFIED = "contractors_notified"
SENT_TO_CONTRACTORS = "sent_to_contractors"
ASSIGNED = "assigned"
CONFIRMED = "confirmed"
COMPLETED = "completed"
CANCELLED = "cancelled"

ALLOWED_TRANSITIONS: dict[str, tuple[str, ...]] = {
    PENDING: (SENT_TO_CLIENT, APPROVED, CONTRACTOR_SELECTION, CANCELLED),
    SENT_TO_CLIENT: (SENT_TO_CLIENT, CLIENT_APPROVED, CANCELLED),
    CLIENT_APPROVED: (CONTRACTOR_SELECTION, CANCELLED),
    APPROVED: (SENT_TO_CONTRACTORS, CONTRACTOR_SELECTION, CANCELLED),
    CONTRACTOR_SELECTION: (CONTRACTOR_SELECTION, CONTRACTORS_NOTIFIED, CANCELLED),
    CONTRACTORS_NOTIFIED: (CONTRACTOR_SELECTION, CONFIRMED, CANCELLED),
    SENT_TO_CONTRACTORS: (ASSIGNED, CANCELLED),
    ASSIGNED: (COMPLETED, CANCELLED),
    CONFIRMED: (COMPLETED, CANCELLED),
    COMPLETED: (),
    CANCELLED: (),
}

BOOKING_STATUSES = tuple(ALLOWED_TRANSITIONS)
TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)

# Statuses that mean the client (or the owner on their behalf) has signed off
POST_APPROVAL_STATUSES = frozenset(
    {
        CLIENT_APPROVED,
        APPROVED,
        CONTRACTOR_SELECTION,
        CONTRACTORS_NOTIFIED,
        SENT_TO_CONTRACTORS,
        ASSIGNED,
        CONFIRMED,
        COMPLETED,
    }
)

# Lifecycle timestamp stamped when a booking enters a status
STATUS_TIMESTAMPS = {
    APPROVED: "approved_at",
    CLIENT_APPROVED: "client_approved_at",
    CONTRACTOR_SELECTION: "contractors_selected_at",
    CONTRACTORS_NOTIFIED: "contractors_notified_at",
    SENT_TO_CONTRACTORS: "contractors_notified_at",
    ASSIGNED: "assigned_at",
    CONFIRMED: "confirmed_at",
    COMPLETED: "completed_at",
    CANCELLED: "cancelled_at",
}

STATUS_LABELS = {
    PENDING: "Pending",
    SENT_TO_CLIENT: "Quote Sent",
    CLIENT_APPROVED: "Approved",
    APPROVED: "Approved (Owner)",
    CONTRACTOR_SELECTION: "Selecting Contractors",
    CONTRACTORS_NOTIFIED: "Notified",
    SENT_TO_CONTRACTORS: "Offered to Contractors",
    ASSIGNED: "Assigned",
    CONFIRMED: "Confirmed",
    COMPLETED: "Completed",
    CANCELLED: "Cancelled",
}


class InvalidTransition(Exception):
    """The requested status change is not allowed from the current status"""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move booking from '{current}' to '{target}'")


class TransitionConflict(Exception):
    """Another request changed the booking status first"""

    def __init__(self, booking_id: str, expected: str, target: str):
        self.booking_id = booking_id
        self.expected = expected
        self.target = target
        super().__init__(
            f"Booking {booking_id} is no longer '{expected}'; could not move to '{target}'"
        )


def can_transition(current: Optional[str], target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current or "", ())


def ensure_transition(current: Optional[str], target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(current or "unknown", target)


def transition(db: Session, booking: Booking, target: str, **fields) -> Booking:
    """
    Move a booking to `target` inside the caller's transaction.

    The write only succeeds if the row still carries the status this request
    read; otherwise TransitionConflict is raised and nothing is written.
    Extra column values can be passed as keyword arguments and are written in
    the same UPDATE. The caller commits.
    """
    current = booking.status
    ensure_transition(current, target)

    values = {"status": target, **fields}
    stamp = STATUS_TIMESTAMPS.get(target)
    if stamp and stamp not in values:
        values[stamp] = datetime.utcnow()

    # Push pending attribute changes before the conditional update
    db.flush()
    result = db.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(f"⚠️ Booking {booking.id} status race: expected '{current}', wanted '{target}'")
        raise TransitionConflict(booking.id, current, target)

    db.refresh(booking)
    logger.info(f"✅ Booking {booking.id} transitioned: {current} → {target}")
    return booking


def transition_or_409(db: Session, booking: Booking, target: str, **fields) -> Booking:
    """`transition` for JSON endpoints: workflow errors become HTTP 409"""
    try:
        return transition(db, booking, target, **fields)
    except (InvalidTransition, TransitionConflict) as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e)) from e


def has_client_approved(booking: Booking, approval: Optional[ClientApproval] = None) -> bool:
    if approval is not None and approval.client_approved_at is not None:
        return True
    return booking.status in POST_APPROVAL_STATUSES


def next_action(booking: Booking) -> str:
    """Short description of what the owner needs to do next"""
    status = booking.status
    if status == PENDING:
        return "Review the quote and send it to the client"
    if status == SENT_TO_CLIENT:
        return "Waiting for the client to approve the quote"
    if status in (CLIENT_APPROVED, APPROVED):
        return "Select contractors for this event"
    if status == CONTRACTOR_SELECTION:
        return "Notify the selected contractors"
    if status == CONTRACTORS_NOTIFIED:
        pending = [a for a in booking.assignments if a.status != "accepted"]
        if any(a.status == "declined" for a in pending):
            return "A contractor declined: select a replacement"
        return f"Waiting on {len(pending)} contractor response(s)"
    if status == SENT_TO_CONTRACTORS:
        return "Waiting for a contractor to accept the job"
    if status in (ASSIGNED, CONFIRMED):
        return "Event is crewed and ready"
    if status == COMPLETED:
        return "Check contractor payments and the client balance"
    return "No action needed"


def advance_completed(db: Session, today: Optional[date] = None) -> dict:
    """
    Mark crewed bookings whose event date has passed as completed.
    Runs daily from the worker and the status automation cron endpoint.
    """
    today = today or date.today()
    summary = {"completed": 0, "conflicts": 0}

    bookings = (
        db.query(Booking)
        .filter(
            Booking.status.in_([ASSIGNED, CONFIRMED]),
            Booking.event_date.isnot(None),
            Booking.event_date < today,
        )
        .all()
    )

    for booking in bookings:
        try:
            transition(db, booking, COMPLETED)
            summary["completed"] += 1
        except TransitionConflict:
            summary["conflicts"] += 1

    db.commit()
    if summary["completed"]:
        logger.info(f"📊 Status automation summary: {summary}")
    else:
        logger.debug("ℹ️ No booking status updates needed")
    return summary
