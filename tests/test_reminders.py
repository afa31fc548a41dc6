import asyncio
from datetime import date, datetime, timedelta

from conftest import make_approval, make_assignment, make_booking, make_contractor

from app import auth, email_service
from app.domain.reminders.service import (
    ReminderService,
    reminder_date_for,
    run_contractor_payment_check,
    run_contractor_reminders,
    run_recurrence_reminders,
)

TODAY = date(2026, 6, 1)


def accepted(db, event_date, name="Sam Lee", **overrides):
    booking = make_booking(db, status="confirmed", event_date=event_date)
    return make_assignment(db, booking, make_contractor(db, name), status="accepted", **overrides)


# ----------------------------------------------------------------------
# Contractor reminders
# ----------------------------------------------------------------------


def test_reminder_date_defaults_to_two_weeks_before(db):
    assignment = accepted(db, TODAY + timedelta(days=20))
    assert reminder_date_for(assignment) == TODAY + timedelta(days=6)

    assignment.reminder_date = TODAY + timedelta(days=18)
    assert reminder_date_for(assignment) == TODAY + timedelta(days=18)


def test_contractor_reminders_fire_on_the_reminder_date(db, outbox):
    due = accepted(db, TODAY + timedelta(days=14))
    accepted(db, TODAY + timedelta(days=15), name="Kiri Ngata")
    explicit = accepted(db, TODAY + timedelta(days=40), name="Ana Tui", reminder_date=TODAY)

    summary = asyncio.run(run_contractor_reminders(db, TODAY))

    assert summary == {"success": True, "reminders": 2, "due": 2}
    assert sorted(m["to"] for m in outbox.messages) == ["ana@crew.co.nz", "sam@crew.co.nz"]
    [email] = outbox.to("sam@crew.co.nz")
    assert email["subject"] == "Reminder: Summer Social in 14 days"
    assert f"generate-ics?booking_id={due.booking_id}" in email["body"]

    db.expire_all()
    assert due.last_reminder_sent_at is not None
    assert explicit.last_reminder_sent_at is not None


def test_contractor_reminder_is_sent_once(db, outbox):
    accepted(db, TODAY + timedelta(days=14))

    asyncio.run(run_contractor_reminders(db, TODAY))
    summary = asyncio.run(run_contractor_reminders(db, TODAY))

    assert summary == {"success": True, "reminders": 0}
    assert len(outbox.messages) == 1


def test_failed_reminder_is_not_stamped(db, monkeypatch):
    assignment = accepted(db, TODAY + timedelta(days=14))

    async def broken(**kwargs):
        raise RuntimeError("Resend down")

    monkeypatch.setattr(email_service, "send_email", broken)
    summary = asyncio.run(run_contractor_reminders(db, TODAY))

    assert summary["reminders"] == 0
    db.expire_all()
    assert assignment.last_reminder_sent_at is None


def test_pending_assignments_get_no_reminder(db, outbox):
    booking = make_booking(db, status="contractors_notified", event_date=TODAY + timedelta(days=14))
    make_assignment(db, booking, make_contractor(db, "Sam Lee"), status="notified")

    asyncio.run(run_contractor_reminders(db, TODAY))

    assert outbox.messages == []


# ----------------------------------------------------------------------
# Recurring events
# ----------------------------------------------------------------------


def test_recurrence_reminder_inside_the_window(db, outbox):
    due = make_booking(db, status="completed", next_occurrence_date=TODAY + timedelta(days=30))
    make_booking(db, status="completed", next_occurrence_date=TODAY + timedelta(days=31))
    short_notice = make_booking(
        db, status="completed", next_occurrence_date=TODAY + timedelta(days=5), recurrence_reminder_days=7
    )

    summary = asyncio.run(run_recurrence_reminders(db, TODAY))

    assert summary == {"success": True, "reminders": 2, "checked": 3}
    assert outbox.subjects() == ["Recurring Event Coming Up: Summer Social"] * 2
    assert all(m["to"] == "owner@accent.test" for m in outbox.messages)

    db.expire_all()
    assert due.recurrence_reminder_sent_at is not None
    assert short_notice.recurrence_reminder_sent_at is not None

    again = asyncio.run(run_recurrence_reminders(db, TODAY))
    assert again["reminders"] == 0


def test_past_occurrences_are_ignored(db, outbox):
    make_booking(db, status="completed", next_occurrence_date=TODAY)

    summary = asyncio.run(run_recurrence_reminders(db, TODAY))

    assert summary["checked"] == 0
    assert outbox.messages == []


# ----------------------------------------------------------------------
# Payment check
# ----------------------------------------------------------------------


def test_payment_check_emails_one_summary(db, outbox):
    past = make_booking(db, status="completed", event_date=TODAY - timedelta(days=2))
    sam = make_assignment(db, past, make_contractor(db, "Sam Lee"), status="accepted")
    kiri = make_assignment(db, past, make_contractor(db, "Kiri Ngata"), status="accepted", pay_amount=250.0)
    make_approval(db, past, payment_status="deposit_paid", balance_status="pending")
    upcoming = make_booking(db, status="confirmed", event_date=TODAY + timedelta(days=2))
    make_assignment(db, upcoming, make_contractor(db, "Ana Tui"), status="accepted")

    summary = asyncio.run(run_contractor_payment_check(db, TODAY))

    assert summary == {"success": True, "pending": 2, "balances": 1}
    assert outbox.subjects() == ["Contractor Payments Due: 2 payments", "Client Balances Due: 1 event"]

    db.expire_all()
    assert sam.payment_token and kiri.payment_token
    body = outbox.messages[0]["body"]
    assert f"pay-contractor?token={sam.payment_token}" in body
    assert "$550.00" in body


def test_payment_check_with_nothing_owed(db, outbox):
    summary = asyncio.run(run_contractor_payment_check(db, TODAY))

    assert summary == {"success": True, "pending": 0, "balances": 0}
    assert outbox.messages == []


def test_payment_tokens_are_stable(db):
    past = make_booking(db, status="completed", event_date=TODAY - timedelta(days=2))
    assignment = make_assignment(db, past, make_contractor(db, "Sam Lee"), status="accepted")

    asyncio.run(run_contractor_payment_check(db, TODAY))
    db.expire_all()
    first = assignment.payment_token
    asyncio.run(run_contractor_payment_check(db, TODAY))
    db.expire_all()

    assert assignment.payment_token == first


# ----------------------------------------------------------------------
# Admin reminders
# ----------------------------------------------------------------------


def test_upcoming_reminders(db):
    soon = accepted(db, TODAY + timedelta(days=10))
    later = accepted(db, TODAY + timedelta(days=25), name="Kiri Ngata")
    accepted(db, TODAY + timedelta(days=45), name="Ana Tui")

    result = ReminderService(db).upcoming(TODAY)

    assert result["total"] == 2
    first, second = result["reminders"]
    assert first["id"] == soon.id
    assert first["reminderDue"] is True
    assert first["booking"]["daysUntil"] == 10
    assert second["id"] == later.id
    assert second["reminderDue"] is False
    assert second["daysUntilReminder"] == 11


def test_send_reminder_now(client, db, outbox):
    assignment = accepted(db, date.today() + timedelta(days=40))

    response = client.post("/admin/reminders/send", json={"assignmentId": assignment.id})

    assert response.status_code == 200
    assert response.json()["lastReminderSentAt"]
    assert outbox.subjects() == ["Reminder: Summer Social in 40 days"]


def test_send_reminder_refusals(client, db):
    booking = make_booking(db)
    notified = make_assignment(db, booking, make_contractor(db, "Sam Lee"), status="notified")

    assert client.post("/admin/reminders/send", json={"assignmentId": notified.id}).status_code == 400
    assert client.post("/admin/reminders/send", json={"assignmentId": "missing"}).status_code == 404


# ----------------------------------------------------------------------
# Cron endpoints
# ----------------------------------------------------------------------


def test_status_automation_endpoint(client, db):
    booking = make_booking(db, status="assigned", event_date=date.today() - timedelta(days=1))

    response = client.get("/cron/status-automation")

    assert response.json() == {"success": True, "completed": 1, "conflicts": 0}
    db.refresh(booking)
    assert booking.status == "completed"


def test_cron_endpoints_respond(client):
    for path in ("/cron/contractor-reminders", "/cron/recurrence-reminders", "/cron/check-contractor-payments"):
        response = client.get(path)
        assert response.status_code == 200, path
        assert response.json()["success"] is True


def test_cron_secret_required_outside_development(anonymous_client, monkeypatch):
    monkeypatch.setattr(auth, "ENVIRONMENT", "production")
    monkeypatch.setattr(auth, "CRON_SECRET", "s3cret")

    assert anonymous_client.get("/cron/status-automation").status_code == 401
    assert (
        anonymous_client.get("/cron/status-automation", headers={"Authorization": "Bearer wrong"}).status_code
        == 401
    )
    response = anonymous_client.get("/cron/status-automation", headers={"Authorization": "Bearer s3cret"})
    assert response.status_code == 200


def test_last_reminder_timestamp_is_recent(db):
    assignment = accepted(db, TODAY + timedelta(days=14))

    asyncio.run(run_contractor_reminders(db, TODAY))

    db.expire_all()
    assert datetime.utcnow() - assignment.last_reminder_sent_at < timedelta(minutes=1)
