from conftest import make_approval, make_booking, make_contractor, redirect_params

from app.models import ClientApproval


def send_quote(client, booking, **extra):
    payload = {"bookingId": booking.id, "depositAmount": 500.0, **extra}
    return client.post("/send-to-client", json=payload)


def test_send_to_client_emails_approval_link(client, db, outbox):
    booking = make_booking(db)

    response = send_quote(client, booking, invoiceNumber="INV-0042", notes="Includes lighting")

    assert response.status_code == 200
    approval = db.query(ClientApproval).filter(ClientApproval.booking_id == booking.id).one()
    assert response.json()["clientApprovalId"] == approval.id

    db.refresh(booking)
    assert booking.status == "sent_to_client"
    assert booking.invoice_number == "INV-0042"

    [email] = outbox.to("aroha@example.co.nz")
    assert email["subject"] == f"Your Quote from Accent Productions - #{booking.quote_number}"
    assert f"https://accent.test/approve?token={approval.client_approval_token}" in email["body"]


def test_resending_quote_reuses_approval_with_new_token(client, db):
    booking = make_booking(db)
    send_quote(client, booking)
    first_token = db.query(ClientApproval).one().client_approval_token

    response = send_quote(client, booking, adjustedAmount=2000.0, depositAmount=400.0)

    assert response.status_code == 200
    db.expire_all()
    approval = db.query(ClientApproval).one()
    assert approval.client_approval_token != first_token
    assert approval.adjusted_quote_total == 2000.0


def test_send_to_client_needs_a_total(client, db):
    booking = make_booking(db, quote_total=None)
    assert send_quote(client, booking).status_code == 400


def test_send_to_client_unknown_booking(client):
    assert client.post("/send-to-client", json={"bookingId": "missing"}).status_code == 404


def test_deposit_larger_than_total_rejected(client, db):
    booking = make_booking(db)
    response = send_quote(client, booking, adjustedAmount=100.0, depositAmount=500.0)
    assert response.status_code == 422


def test_send_to_client_requires_admin(anonymous_client, db):
    booking = make_booking(db)
    response = anonymous_client.post("/send-to-client", json={"bookingId": booking.id})
    assert response.status_code in (401, 403)


def test_get_approval_details(client, db):
    booking = make_booking(db, status="sent_to_client")
    approval = make_approval(db, booking)

    response = client.get("/get-approval", params={"token": approval.client_approval_token})

    body = response.json()
    assert body["quoteTotal"] == 2300.0
    assert body["depositAmount"] == 500.0
    assert body["depositPercent"] == 22
    assert body["alreadyApproved"] is False
    assert body["readyForApproval"] is True


def test_get_approval_bad_tokens(client):
    assert client.get("/get-approval").status_code == 400
    assert client.get("/get-approval", params={"token": "nope"}).status_code == 404


def test_client_approve_link(client, db, outbox, google):
    booking = make_booking(db, status="sent_to_client")
    approval = make_approval(db, booking)

    response = client.get(
        "/client-approve", params={"token": approval.client_approval_token}, follow_redirects=False
    )

    path, params = redirect_params(response)
    assert response.status_code == 307
    assert path == "/client-approval"
    assert params == {"success": "true", "event": "Summer Social"}

    db.refresh(booking)
    assert booking.status == "client_approved"
    assert booking.contractor_selection_token
    assert booking.calendar_event_id == "evt-1"
    assert google.created[0]["summary"] == "Summer Social - AWAITING CONTRACTORS"

    [email] = outbox.to("owner@accent.test")
    assert f"select-contractors?token={booking.contractor_selection_token}" in email["body"]


def test_client_approve_link_twice(client, db):
    booking = make_booking(db, status="sent_to_client")
    approval = make_approval(db, booking)
    token = approval.client_approval_token

    client.get("/client-approve", params={"token": token}, follow_redirects=False)
    response = client.get("/client-approve", params={"token": token}, follow_redirects=False)

    assert redirect_params(response)[1] == {"error": "already_approved"}


def test_client_approve_link_errors(client):
    response = client.get("/client-approve", follow_redirects=False)
    assert redirect_params(response)[1] == {"error": "missing_token"}

    response = client.get("/client-approve", params={"token": "nope"}, follow_redirects=False)
    assert redirect_params(response)[1] == {"error": "invalid_token"}


def test_client_approve_bank_transfer(client, db, outbox):
    booking = make_booking(db, status="sent_to_client", invoice_number="INV-7")
    approval = make_approval(db, booking)

    response = client.post(
        "/client-approve", json={"token": approval.client_approval_token, "paymentMethod": "bank_transfer"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["paymentMethod"] == "bank_transfer"
    assert body["paymentStatus"] == "pending"

    [instructions] = outbox.to("aroha@example.co.nz")
    assert instructions["subject"] == "Deposit details for Summer Social"
    assert "INV-7" in instructions["body"]


def test_client_approve_poli_requires_completed_payment(client, db, poli):
    booking = make_booking(db, status="sent_to_client")
    approval = make_approval(db, booking)
    payload = {"token": approval.client_approval_token, "paymentMethod": "poli"}

    assert client.post("/client-approve", json=payload).status_code == 400

    approval.poli_transaction_id = "poli-tx-9"
    db.commit()
    poli.status = "Cancelled"
    assert client.post("/client-approve", json=payload).status_code == 400

    poli.status = "Completed"
    response = client.post("/client-approve", json=payload)
    assert response.status_code == 200
    assert response.json()["paymentStatus"] == "deposit_paid"

    db.expire_all()
    assert approval.payment_reference == "REF-poli-tx-9"
    assert approval.balance_status == "pending"
    assert approval.balance_payment_token


def test_client_approve_on_cancelled_booking_conflicts(client, db):
    booking = make_booking(db, status="cancelled")
    approval = make_approval(db, booking)

    response = client.post(
        "/client-approve", json={"token": approval.client_approval_token, "paymentMethod": "bank_transfer"}
    )

    assert response.status_code == 409


def test_owner_approval_broadcasts_to_active_contractors(client, db, outbox, google):
    booking = make_booking(db)
    first = make_contractor(db, "Sam Lee")
    second = make_contractor(db, "Kiri Ngata")
    make_contractor(db, "Old Hand", active=False)

    response = client.get("/approve-quote", params={"token": booking.approval_token}, follow_redirects=False)

    path, params = redirect_params(response)
    assert path == "/approve-quote"
    assert params == {
        "success": "true",
        "quote": booking.quote_number,
        "contractors": "2",
        "calendar": "created",
    }

    db.refresh(booking)
    assert booking.status == "sent_to_contractors"
    assert booking.contractor_token
    assert booking.approved_at is not None
    assert google.created[0]["summary"] == "Summer Social - AWAITING CONTRACTOR"

    for contractor in (first, second):
        [offer] = outbox.to(contractor.email)
        assert offer["subject"] == "New Job Available: Summer Social"
        assert f"contractor={contractor.id}" in offer["body"]
    assert outbox.to("old@crew.co.nz") == []


def test_owner_approval_only_once(client, db):
    booking = make_booking(db, status="sent_to_contractors")

    response = client.get("/approve-quote", params={"token": booking.approval_token}, follow_redirects=False)

    assert redirect_params(response)[1] == {"error": "already_processed", "status": "sent_to_contractors"}


def test_owner_approval_bad_tokens(client):
    response = client.get("/approve-quote", follow_redirects=False)
    assert redirect_params(response)[1] == {"error": "missing_token"}

    response = client.get("/approve-quote", params={"token": "nope"}, follow_redirects=False)
    assert redirect_params(response)[1] == {"error": "invalid_token"}


def test_owner_approval_without_contractors_stays_approved(client, db):
    booking = make_booking(db)

    response = client.get("/approve-quote", params={"token": booking.approval_token}, follow_redirects=False)

    assert redirect_params(response)[1]["contractors"] == "0"
    db.refresh(booking)
    assert booking.status == "approved"
