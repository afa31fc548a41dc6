import json
from datetime import date, datetime, timedelta

from conftest import make_approval, make_assignment, make_booking, make_contractor, redirect_params

from app.services import poli_service


def approved_with_deposit(db, **approval_overrides):
    booking = make_booking(db, status="client_approved", event_date=date.today() - timedelta(days=2))
    data = {
        "client_approved_at": datetime.utcnow(),
        "payment_status": "deposit_paid",
        "balance_status": "pending",
        "balance_payment_token": "bal-token",
    }
    data.update(approval_overrides)
    return booking, make_approval(db, booking, **data)


# ----------------------------------------------------------------------
# POLi deposits
# ----------------------------------------------------------------------


def test_initiate_poli(client, db, poli):
    booking = make_booking(db, status="sent_to_client")
    approval = make_approval(db, booking)

    response = client.post("/initiate-poli", json={"token": approval.client_approval_token})

    assert response.json() == {
        "success": True,
        "navigateUrl": "https://poli.test/pay/abc",
        "transactionToken": "poli-tx-1",
    }
    [payload] = poli.initiated
    assert payload["Amount"] == "500.00"
    assert payload["MerchantReference"] == f"QUOTE-{booking.quote_number}"
    assert payload["SuccessURL"].endswith(f"status=success&token={approval.client_approval_token}")

    db.expire_all()
    assert approval.payment_status == "processing"
    assert approval.payment_method == "poli"
    assert approval.poli_transaction_id == "poli-tx-1"


def test_initiate_poli_refusals(client, db, monkeypatch):
    booking = make_booking(db, status="sent_to_client")
    no_deposit = make_approval(db, booking, deposit_amount=0)
    assert client.post("/initiate-poli", json={"token": no_deposit.client_approval_token}).status_code == 400

    no_deposit.deposit_amount = 500
    no_deposit.client_approved_at = datetime.utcnow()
    db.commit()
    assert client.post("/initiate-poli", json={"token": no_deposit.client_approval_token}).status_code == 400

    no_deposit.client_approved_at = None
    db.commit()
    monkeypatch.setattr(poli_service, "is_poli_configured", lambda: False)
    assert client.post("/initiate-poli", json={"token": no_deposit.client_approval_token}).status_code == 500

    assert client.post("/initiate-poli", json={"token": "nope"}).status_code == 404


def test_poli_callback_completes_approval(client, db, outbox):
    booking = make_booking(db, status="sent_to_client")
    approval = make_approval(db, booking, poli_transaction_id="poli-tx-1", payment_status="processing")

    response = client.get(
        "/poli-callback",
        params={"status": "success", "token": approval.client_approval_token, "Token": "poli-tx-1"},
        follow_redirects=False,
    )

    assert redirect_params(response) == ("/approve/success", {"method": "poli"})
    db.expire_all()
    assert booking.status == "client_approved"
    assert approval.payment_status == "deposit_paid"
    assert approval.payment_reference == "REF-poli-tx-1"
    assert approval.balance_payment_token
    assert any(m["subject"].startswith("Client Approved") for m in outbox.to("owner@accent.test"))


def test_poli_callback_outcomes(client, db, poli):
    booking = make_booking(db, status="sent_to_client")
    approval = make_approval(db, booking)
    token = approval.client_approval_token

    def callback(**params):
        return redirect_params(client.get("/poli-callback", params=params, follow_redirects=False))

    assert callback() == ("/approve/success", {"method": "error"})
    assert callback(status="cancelled", token=token) == ("/approve", {"token": token, "error": "payment_cancelled"})
    assert callback(status="success", token="nope") == ("/approve", {"token": "nope", "error": "invalid"})
    assert callback(status="success", token=token) == ("/approve", {"token": token, "error": "no_transaction"})

    approval.poli_transaction_id = "poli-tx-1"
    db.commit()

    poli.status = "Failed"
    assert callback(status="success", token=token, Token="poli-tx-1") == (
        "/approve",
        {"token": token, "error": "payment_incomplete"},
    )
    db.expire_all()
    assert booking.status == "sent_to_client"


def test_poli_callback_rejects_another_quotes_transaction(client, db, outbox):
    paid = make_approval(
        db, make_booking(db, status="client_approved"), poli_transaction_id="poli-tx-A", payment_status="deposit_paid"
    )
    booking = make_booking(db, status="sent_to_client")
    unpaid = make_approval(db, booking)

    response = client.get(
        "/poli-callback",
        params={"status": "success", "token": unpaid.client_approval_token, "Token": paid.poli_transaction_id},
        follow_redirects=False,
    )

    assert redirect_params(response) == ("/approve", {"token": unpaid.client_approval_token, "error": "invalid"})
    db.expire_all()
    assert booking.status == "sent_to_client"
    assert unpaid.payment_status == "pending"
    assert unpaid.poli_transaction_id is None
    assert unpaid.client_approved_at is None
    assert outbox.messages == []


def test_poli_transaction_must_match_approval_and_deposit(client, db, poli):
    booking = make_booking(db, status="sent_to_client")
    approval = make_approval(db, booking, poli_transaction_id="poli-tx-1", payment_status="processing")
    params = {"status": "success", "token": approval.client_approval_token, "Token": "poli-tx-1"}

    poli.extra = {"MerchantData": json.dumps({"approvalId": "someone-else"})}
    assert redirect_params(client.get("/poli-callback", params=params, follow_redirects=False)) == (
        "/approve",
        {"token": approval.client_approval_token, "error": "payment_incomplete"},
    )

    poli.extra = {"MerchantData": json.dumps({"approvalId": approval.id}), "AmountPaid": 50.0}
    assert redirect_params(client.get("/poli-callback", params=params, follow_redirects=False))[1]["error"] == (
        "payment_incomplete"
    )
    db.expire_all()
    assert booking.status == "sent_to_client"

    poli.extra = {"MerchantData": json.dumps({"approvalId": approval.id}), "AmountPaid": 500.0}
    assert redirect_params(client.get("/poli-callback", params=params, follow_redirects=False)) == (
        "/approve/success",
        {"method": "poli"},
    )


def test_poli_webhook_records_deposit(client, db):
    booking = make_booking(db, status="sent_to_client")
    approval = make_approval(db, booking, poli_transaction_id="poli-tx-1", payment_status="processing")

    assert client.post("/poli-webhook", json={"Token": "poli-tx-1"}).json() == {"received": True}

    db.expire_all()
    assert booking.status == "client_approved"
    assert approval.payment_status == "deposit_paid"


def test_poli_webhook_keeps_payment_when_booking_moved_on(client, db):
    booking = make_booking(db, status="cancelled")
    approval = make_approval(db, booking, poli_transaction_id="poli-tx-1", payment_status="processing")

    client.post("/poli-webhook", json={"Token": "poli-tx-1"})

    db.expire_all()
    assert booking.status == "cancelled"
    assert approval.payment_status == "deposit_paid"
    assert approval.payment_reference == "REF-poli-tx-1"


def test_poli_webhook_ignores_unknown_transactions(client):
    assert client.post("/poli-webhook", json={"Token": "unknown"}).json() == {"received": True}
    assert client.post("/poli-webhook", json={}).json() == {"received": True}


# ----------------------------------------------------------------------
# Bank transfer deposits
# ----------------------------------------------------------------------


def test_confirm_bank_transfer_deposit(client, db):
    booking = make_booking(db, status="client_approved")
    approval = make_approval(db, booking, payment_method="bank_transfer", client_approved_at=datetime.utcnow())

    response = client.post(f"/admin/approvals/{approval.id}/confirm-deposit", json={"reference": "BT-991"})

    body = response.json()["approval"]
    assert body["payment_status"] == "deposit_paid"
    assert body["payment_reference"] == "BT-991"
    assert body["balance_status"] == "pending"

    again = client.post(f"/admin/approvals/{approval.id}/confirm-deposit")
    assert again.status_code == 400


def test_deposit_covering_the_total_is_paid_in_full(client, db):
    booking = make_booking(db, status="client_approved", quote_total=500.0)
    approval = make_approval(db, booking, deposit_amount=500.0)

    response = client.post(f"/admin/approvals/{approval.id}/confirm-deposit")

    body = response.json()["approval"]
    assert body["payment_status"] == "paid"
    assert body["balance_status"] == "paid"


def test_confirm_deposit_unknown_approval(client):
    assert client.post("/admin/approvals/missing/confirm-deposit").status_code == 404


# ----------------------------------------------------------------------
# Client balance
# ----------------------------------------------------------------------


def test_balance_details(client, db):
    booking, approval = approved_with_deposit(db)

    body = client.get("/get-balance-details", params={"token": "bal-token"}).json()

    assert body["total"] == 2300.0
    assert body["deposit"] == 500.0
    assert body["balance"] == 1800.0
    assert body["client"]["name"] == "Aroha Smith"
    assert body["event"]["quoteNumber"] == booking.quote_number


def test_balance_details_bad_tokens(client):
    assert client.get("/get-balance-details").status_code == 400
    assert client.get("/get-balance-details", params={"token": "nope"}).status_code == 404


def test_send_balance_invoice(client, db, outbox):
    booking, approval = approved_with_deposit(db)

    response = client.post("/send-balance-invoice", json={"token": "bal-token"})

    assert response.json() == {"success": True, "emailSent": True}
    db.expire_all()
    assert approval.balance_status == "invoiced"
    assert approval.balance_invoiced_at is not None

    [invoice] = outbox.to("aroha@example.co.nz")
    assert invoice["subject"] == "Balance Invoice: Summer Social"
    assert "pay-balance?token=bal-token" in invoice["body"]


def test_confirm_balance_payment(client, db, outbox):
    booking, approval = approved_with_deposit(db)

    response = client.get(
        "/confirm-balance-payment", params={"token": "bal-token", "reference": "BT-2"}, follow_redirects=False
    )

    assert redirect_params(response) == ("/result", {"type": "balance_paid", "amount": "1800"})
    db.expire_all()
    assert approval.balance_status == "paid"
    assert approval.payment_status == "paid"
    assert approval.balance_reference == "BT-2"
    assert outbox.subjects() == [
        "Payment Received - Thank You",
        f"Balance Paid: Aroha Smith - #{booking.quote_number}",
    ]

    again = client.get("/confirm-balance-payment", params={"token": "bal-token"}, follow_redirects=False)
    assert redirect_params(again)[1]["type"] == "already_done"


def test_confirm_balance_payment_bad_token(client):
    response = client.get("/confirm-balance-payment", params={"token": "nope"}, follow_redirects=False)
    assert redirect_params(response) == ("/result", {"type": "error", "error": "invalid_token"})


# ----------------------------------------------------------------------
# Contractor payouts
# ----------------------------------------------------------------------


def test_contractor_payout(client, db, outbox):
    booking = make_booking(db, status="completed", event_date=date.today() - timedelta(days=3))
    sam = make_contractor(db, "Sam Lee")
    assignment = make_assignment(db, booking, sam, status="accepted", payment_token="pay-token")

    details = client.get("/get-payment-details", params={"token": "pay-token"}).json()
    assert details["amount"] == 300.0
    assert details["paymentStatus"] == "pending"
    assert details["contractor"]["name"] == "Sam Lee"

    response = client.get(
        "/confirm-contractor-payment", params={"token": "pay-token", "reference": "DC-1"}, follow_redirects=False
    )

    assert redirect_params(response) == (
        "/result",
        {"type": "payment_confirmed", "name": "Sam Lee", "amount": "300"},
    )
    db.expire_all()
    assert assignment.payment_status == "paid"
    assert assignment.payment_reference == "DC-1"
    assert outbox.to(sam.email)[0]["subject"] == "Payment Sent: Summer Social"

    again = client.get("/confirm-contractor-payment", params={"token": "pay-token"}, follow_redirects=False)
    assert redirect_params(again)[1] == {
        "type": "already_done",
        "message": "Payment to Sam Lee was already confirmed.",
    }


def test_payment_details_unknown_token(client):
    assert client.get("/get-payment-details", params={"token": "nope"}).status_code == 404


def test_pending_payments_issue_tokens(client, db):
    past = make_booking(db, status="completed", event_date=date.today() - timedelta(days=5))
    future = make_booking(db, status="confirmed", event_date=date.today() + timedelta(days=5))
    sam = make_contractor(db, "Sam Lee")
    kiri = make_contractor(db, "Kiri Ngata")
    owed = make_assignment(db, past, sam, status="accepted")
    make_assignment(db, past, kiri, status="accepted", payment_status="paid")
    make_assignment(db, future, sam, status="accepted")
    make_approval(db, past, payment_status="deposit_paid", balance_status="pending")

    body = client.get("/admin/payments/pending").json()

    assert body["contractorCount"] == 1
    assert body["balanceCount"] == 1
    assert body["total"] == 2
    contractor_row = next(p for p in body["payments"] if p["type"] == "contractor")
    balance_row = next(p for p in body["payments"] if p["type"] == "balance")

    db.expire_all()
    assert owed.payment_token
    assert contractor_row["payUrl"] == f"https://accent.test/pay-contractor?token={owed.payment_token}"
    assert balance_row["amount"] == 1800.0
    assert balance_row["collectUrl"].startswith("https://accent.test/collect-balance?token=")
