import asyncio

from conftest import make_assignment, make_booking, make_contractor, redirect_params

from app.database import SessionLocal
from app.domain.contractors.service import ContractorService
from app.models import Booking, ContractorAssignment


def selection_booking(db, **overrides):
    data = {
        "status": "client_approved",
        "contractor_selection_token": "sel-token",
        "calendar_event_id": "evt-1",
    }
    data.update(overrides)
    return make_booking(db, **data)


def select(client, booking, contractors, token="sel-token"):
    return client.post(
        "/select-contractors",
        json={
            "token": token,
            "bookingId": booking.id,
            "assignments": [
                {"contractor_id": c.id, "hourly_rate": 50, "estimated_hours": 6, "tasks_description": "FOH"}
                for c in contractors
            ],
        },
    )


def respond(client, assignment, action):
    response = client.get(
        "/contractor-respond",
        params={"token": assignment.assignment_token, "action": action},
        follow_redirects=False,
    )
    return redirect_params(response)


# ----------------------------------------------------------------------
# Selection
# ----------------------------------------------------------------------


def test_get_selection_lists_active_contractors(client, db):
    booking = selection_booking(db)
    make_contractor(db, "Sam Lee")
    make_contractor(db, "Old Hand", active=False)

    response = client.get("/select-contractors", params={"token": "sel-token"})

    body = response.json()
    assert body["booking"]["id"] == booking.id
    assert [c["name"] for c in body["contractors"]] == ["Sam Lee"]
    assert body["existingAssignments"] == []


def test_get_selection_accepts_approval_token(client, db):
    booking = make_booking(db)
    response = client.get("/select-contractors", params={"token": booking.approval_token})
    assert response.status_code == 200


def test_get_selection_unknown_token(client):
    assert client.get("/select-contractors", params={"token": "nope"}).status_code == 404
    assert client.get("/select-contractors").status_code == 400


def test_save_selection_creates_pending_assignments(client, db):
    booking = selection_booking(db)
    sam = make_contractor(db, "Sam Lee")
    kiri = make_contractor(db, "Kiri Ngata")

    response = select(client, booking, [sam, kiri])

    assert response.json() == {"success": True, "assignmentCount": 2, "status": "contractor_selection"}
    db.refresh(booking)
    assert booking.status == "contractor_selection"
    assert {a.status for a in booking.assignments} == {"pending"}
    assert {a.pay_amount for a in booking.assignments} == {300.0}


def test_save_selection_with_wrong_token(client, db):
    booking = selection_booking(db)
    sam = make_contractor(db, "Sam Lee")
    assert select(client, booking, [sam], token="other").status_code == 403


def test_save_selection_rejects_inactive_contractor(client, db):
    booking = selection_booking(db)
    retired = make_contractor(db, "Old Hand", active=False)
    assert select(client, booking, [retired]).status_code == 400


def test_save_selection_rejects_duplicates(client, db):
    booking = selection_booking(db)
    sam = make_contractor(db, "Sam Lee")
    assert select(client, booking, [sam, sam]).status_code == 422


def test_reselection_keeps_accepted_contractors(client, db):
    booking = selection_booking(db, status="contractors_notified")
    sam = make_contractor(db, "Sam Lee")
    kiri = make_contractor(db, "Kiri Ngata")
    ana = make_contractor(db, "Ana Tui")
    accepted = make_assignment(db, booking, sam, status="accepted", assignment_token="tok-sam")
    make_assignment(db, booking, kiri, status="declined", assignment_token="tok-kiri")

    response = select(client, booking, [sam, ana])

    assert response.json()["assignmentCount"] == 2
    db.expire_all()
    by_contractor = {a.contractor_id: a for a in booking.assignments}
    assert set(by_contractor) == {sam.id, ana.id}
    assert by_contractor[sam.id].id == accepted.id
    assert by_contractor[sam.id].status == "accepted"
    assert by_contractor[ana.id].status == "pending"
    assert booking.status == "contractor_selection"


# ----------------------------------------------------------------------
# Job offers and responses
# ----------------------------------------------------------------------


def notified_booking(client, db, names=("Sam Lee", "Kiri Ngata")):
    booking = selection_booking(db)
    contractors = [make_contractor(db, name) for name in names]
    select(client, booking, contractors)
    client.post("/notify-contractors", json={"token": "sel-token", "bookingId": booking.id})
    db.expire_all()
    return booking, contractors


def test_notify_sends_job_offers(client, db, outbox):
    booking = selection_booking(db)
    sam = make_contractor(db, "Sam Lee")
    select(client, booking, [sam])

    response = client.post("/notify-contractors", json={"token": "sel-token", "bookingId": booking.id})

    assert response.json() == {"success": True, "notified": 1, "emailsSent": 1}
    db.expire_all()
    [assignment] = booking.assignments
    assert assignment.status == "notified"
    assert assignment.assignment_token
    assert booking.status == "contractors_notified"

    [offer] = outbox.to(sam.email)
    assert offer["subject"] == "Job Offer: Summer Social"
    assert f"contractor-respond?token={assignment.assignment_token}" in offer["body"]
    assert "$50/hr × 6 hrs = $300.00" in offer["body"]


def test_notify_without_pending_assignments(client, db):
    booking = selection_booking(db, status="contractor_selection")
    response = client.post("/notify-contractors", json={"token": "sel-token", "bookingId": booking.id})
    assert response.status_code == 400


def test_all_accepted_confirms_booking(client, db, outbox, google):
    booking, (sam, kiri) = notified_booking(client, db)
    sam_assignment, kiri_assignment = sorted(booking.assignments, key=lambda a: a.contractor.name != "Sam Lee")

    path, params = respond(client, sam_assignment, "accept")
    assert path == "/result"
    assert params == {"type": "contractor_booked", "event": "Summer Social", "amount": "300"}
    db.expire_all()
    assert booking.status == "contractors_notified"

    respond(client, kiri_assignment, "accept")
    db.expire_all()
    assert booking.status == "confirmed"
    assert booking.confirmed_at is not None

    [update] = google.updated
    assert update["event_id"] == "evt-1"
    assert "Sam Lee" in update["summary"] and "Kiri Ngata" in update["summary"]
    assert "All Contractors Confirmed: Summer Social" in [m["subject"] for m in outbox.to("owner@accent.test")]
    assert "You're Booked: Summer Social" in [m["subject"] for m in outbox.to(sam.email)]


def test_second_response_is_already_done(client, db):
    booking, _ = notified_booking(client, db, names=("Sam Lee",))
    [assignment] = booking.assignments

    respond(client, assignment, "decline")
    path, params = respond(client, assignment, "accept")

    assert params["type"] == "already_done"
    db.expire_all()
    assert assignment.status == "declined"


def test_decline_notifies_owner_with_reselect_link(client, db, outbox):
    booking, (sam,) = notified_booking(client, db, names=("Sam Lee",))
    [assignment] = booking.assignments

    path, params = respond(client, assignment, "decline")

    assert params == {"type": "contractor_declined"}
    db.expire_all()
    assert booking.status == "contractors_notified"
    declined = [m for m in outbox.to("owner@accent.test") if "Declined" in m["subject"]]
    assert len(declined) == 1
    assert "select-contractors?token=sel-token" in declined[0]["body"]


def test_responses_to_a_cancelled_booking_are_refused(client, db, outbox):
    booking = selection_booking(db, status="cancelled")
    assignment = make_assignment(
        db, booking, make_contractor(db, "Sam Lee"), status="notified", assignment_token="asg-1"
    )

    assert respond(client, assignment, "accept") == ("/result", {"type": "error", "error": "booking_cancelled"})
    db.expire_all()
    assert assignment.status == "notified"
    assert assignment.responded_at is None
    assert outbox.messages == []


def test_responses_after_the_crew_is_settled_are_closed(client, db, outbox):
    booking = selection_booking(db, status="completed")
    assignment = make_assignment(
        db, booking, make_contractor(db, "Sam Lee"), status="notified", assignment_token="asg-1"
    )

    assert respond(client, assignment, "decline")[1] == {"type": "error", "error": "booking_closed"}
    assert outbox.messages == []


def test_reselecting_only_accepted_crew_confirms_booking(client, db, outbox, google):
    booking = selection_booking(db, status="contractors_notified")
    sam = make_contractor(db, "Sam Lee")
    kiri = make_contractor(db, "Kiri Ngata")
    make_assignment(db, booking, sam, status="accepted", assignment_token="tok-sam")
    make_assignment(db, booking, kiri, status="declined", assignment_token="tok-kiri")

    response = select(client, booking, [sam])

    assert response.json() == {"success": True, "assignmentCount": 1, "status": "confirmed"}
    db.expire_all()
    assert booking.status == "confirmed"
    assert [a.contractor_id for a in booking.assignments] == [sam.id]
    assert google.updated[0]["summary"] == "Summer Social - Sam Lee"
    assert "All Contractors Confirmed: Summer Social" in outbox.subjects()


def test_respond_bad_links(client):
    response = client.get("/contractor-respond", params={"token": "x"}, follow_redirects=False)
    assert redirect_params(response)[1] == {"type": "error", "error": "invalid_params"}

    response = client.get("/contractor-respond", params={"token": "x", "action": "accept"}, follow_redirects=False)
    assert redirect_params(response)[1] == {"type": "error", "error": "invalid_token"}


def test_accept_shares_documents(client, db, google):
    booking, _ = notified_booking(client, db, names=("Sam Lee",))
    booking.quote_drive_file_id = "quote-pdf"
    [assignment] = booking.assignments
    assignment.jobsheet_drive_file_id = "jobsheet-1"
    db.commit()

    respond(client, assignment, "accept")

    assert google.shared == ["quote-pdf", "jobsheet-1"]


# ----------------------------------------------------------------------
# First to accept
# ----------------------------------------------------------------------


def broadcast_booking(db, **overrides):
    data = {"status": "sent_to_contractors", "contractor_token": "job-token", "calendar_event_id": "evt-1"}
    data.update(overrides)
    return make_booking(db, **data)


def accept(client, contractor, token="job-token"):
    response = client.get(
        "/accept-job", params={"token": token, "contractor": contractor.id}, follow_redirects=False
    )
    return redirect_params(response)


def test_first_contractor_gets_the_job(client, db, outbox, google):
    booking = broadcast_booking(db)
    sam = make_contractor(db, "Sam Lee")
    kiri = make_contractor(db, "Kiri Ngata")

    path, params = accept(client, sam)

    assert path == "/accept-job"
    assert params == {"success": "true", "event": "Summer Social"}
    db.refresh(booking)
    assert booking.status == "assigned"
    assert booking.assigned_contractor_id == sam.id
    assert google.updated[0]["summary"] == "Summer Social - Sam Lee"
    assert [m["subject"] for m in outbox.to(kiri.email)] == ["Job Filled: Summer Social"]
    assert [m["subject"] for m in outbox.to(sam.email)] == ["Job Confirmed: Summer Social"]


def test_later_clicks(client, db):
    broadcast_booking(db)
    sam = make_contractor(db, "Sam Lee")
    kiri = make_contractor(db, "Kiri Ngata")
    accept(client, sam)

    assert accept(client, kiri)[1] == {"error": "already_taken"}
    assert accept(client, sam)[1] == {"status": "already_yours"}


def test_accept_job_bad_links(client, db):
    broadcast_booking(db)
    retired = make_contractor(db, "Old Hand", active=False)

    response = client.get("/accept-job", params={"token": "job-token"}, follow_redirects=False)
    assert redirect_params(response)[1] == {"error": "missing_params"}
    assert accept(client, retired, token="nope")[1] == {"error": "invalid_token"}
    assert accept(client, retired)[1] == {"error": "invalid_contractor"}


def test_accept_job_on_cancelled_booking(client, db, outbox):
    booking = broadcast_booking(db, status="cancelled")
    sam = make_contractor(db, "Sam Lee")

    assert accept(client, sam)[1] == {"error": "booking_cancelled"}
    db.refresh(booking)
    assert booking.assigned_contractor_id is None
    assert outbox.messages == []


def test_simultaneous_accepts_only_one_wins(db):
    booking = broadcast_booking(db)
    sam = make_contractor(db, "Sam Lee")
    kiri = make_contractor(db, "Kiri Ngata")

    late_session = SessionLocal()
    try:
        # Kiri's request read the booking before Sam's update landed
        late_session.query(Booking).filter(Booking.id == booking.id).one()

        first = asyncio.run(ContractorService(db).accept_job("job-token", sam.id))
        second = asyncio.run(ContractorService(late_session).accept_job("job-token", kiri.id))
    finally:
        late_session.close()

    assert first == {"success": "true", "event": "Summer Social"}
    assert second == {"error": "already_taken"}
    db.refresh(booking)
    assert booking.assigned_contractor_id == sam.id


# ----------------------------------------------------------------------
# Directory
# ----------------------------------------------------------------------


def test_contractor_directory(client):
    response = client.post(
        "/admin/contractors", json={"name": "Sam Lee", "email": "Sam@Crew.co.nz", "default_hourly_rate": 45}
    )
    assert response.status_code == 201
    contractor = response.json()
    assert contractor["email"] == "sam@crew.co.nz"

    duplicate = client.post("/admin/contractors", json={"name": "Sam Two", "email": "sam@crew.co.nz"})
    assert duplicate.status_code == 409

    response = client.patch(f"/admin/contractors/{contractor['id']}", json={"active": False})
    assert response.json()["active"] is False

    assert client.get("/admin/contractors", params={"active_only": True}).json() == []
    assert len(client.get("/admin/contractors").json()) == 1

    assert client.patch(f"/admin/contractors/{contractor['id']}", json={}).status_code == 400
    for field in ("name", "email", "active"):
        assert client.patch(f"/admin/contractors/{contractor['id']}", json={field: None}).status_code == 422
    assert client.patch(f"/admin/contractors/{contractor['id']}", json={"phone": None}).json()["phone"] is None
    assert client.patch("/admin/contractors/missing", json={"name": "X"}).status_code == 404


def test_update_assignment_reminder_date(client, db):
    booking = make_booking(db)
    assignment = make_assignment(db, booking, make_contractor(db, "Sam Lee"), status="accepted")

    response = client.patch(f"/admin/assignments/{assignment.id}", json={"reminder_date": "2026-12-01"})

    assert response.json()["assignment"]["reminder_date"] == "2026-12-01"
    db.expire_all()
    assert db.query(ContractorAssignment).one().reminder_date.isoformat() == "2026-12-01"
