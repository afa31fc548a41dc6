import os

# Settings are read at import time, so they must be in place before the app loads
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RESEND_API_KEY"] = "re_test_key"
os.environ["SITE_URL"] = "https://accent.test"
os.environ["BUSINESS_EMAIL"] = "hello@accent.test"
os.environ["ADMIN_EMAIL"] = "owner@accent.test"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from datetime import date, timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from app import email_service
from app.auth import AdminUser, get_current_admin
from app.database import Base, SessionLocal, engine
from app.main import app
from app.models import Booking, ClientApproval, Contractor, ContractorAssignment, generate_uuid
from app.services import google_calendar_service, google_drive_service, poli_service


class Outbox:
    """Emails captured instead of going to Resend"""

    def __init__(self):
        self.messages = []

    async def send(self, to, subject, mjml_content, reply_to=None, attachments=None):
        self.messages.append(
            {"to": to, "subject": subject, "body": mjml_content, "reply_to": reply_to}
        )
        return {"id": f"email-{len(self.messages)}"}

    def to(self, address):
        return [m for m in self.messages if m["to"] == address]

    def subjects(self):
        return [m["subject"] for m in self.messages]


class FakeGoogle:
    """Records calendar and drive calls"""

    def __init__(self):
        self.created = []
        self.updated = []
        self.deleted_events = []
        self.deleted_files = []
        self.shared = []
        self.next_event_id = "evt-1"

    async def create_calendar_event(self, summary, description, start_date, location=None, start_time=None, end_time=None):
        self.created.append({"summary": summary, "start_date": start_date, "location": location})
        return self.next_event_id

    async def update_calendar_event(self, event_id, summary=None, description=None, **kwargs):
        self.updated.append({"event_id": event_id, "summary": summary})
        return True

    async def delete_calendar_event(self, event_id):
        self.deleted_events.append(event_id)
        return True

    async def share_file_with_link(self, file_id):
        if not file_id:
            return None
        self.shared.append(file_id)
        return f"https://drive.google.com/file/d/{file_id}/view"

    async def copy_file(self, file_id, new_name):
        return f"{file_id}-copy"

    async def delete_file(self, file_id):
        self.deleted_files.append(file_id)
        return True


class FakePoli:
    def __init__(self):
        self.status = poli_service.POLI_COMPLETED
        self.initiated = []
        self.extra = {}

    async def initiate_transaction(self, payload):
        self.initiated.append(payload)
        return {"navigate_url": "https://poli.test/pay/abc", "transaction_token": "poli-tx-1"}

    async def get_transaction(self, transaction_token):
        return {
            "TransactionStatusCode": self.status,
            "TransactionRefNo": f"REF-{transaction_token}",
            **self.extra,
        }


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    box = Outbox()
    monkeypatch.setattr(email_service, "send_email", box.send)
    return box


@pytest.fixture(autouse=True)
def google(monkeypatch):
    fake = FakeGoogle()
    for name in ("create_calendar_event", "update_calendar_event", "delete_calendar_event"):
        monkeypatch.setattr(google_calendar_service, name, getattr(fake, name))
    for name in ("share_file_with_link", "copy_file", "delete_file"):
        monkeypatch.setattr(google_drive_service, name, getattr(fake, name))
    return fake


@pytest.fixture(autouse=True)
def poli(monkeypatch):
    fake = FakePoli()
    monkeypatch.setattr(poli_service, "initiate_transaction", fake.initiate_transaction)
    monkeypatch.setattr(poli_service, "get_transaction", fake.get_transaction)
    monkeypatch.setattr(poli_service, "is_poli_configured", lambda: True)
    return fake


@pytest.fixture
def client():
    app.dependency_overrides[get_current_admin] = lambda: AdminUser(id="admin-1", email="owner@accent.test")
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client():
    return TestClient(app)


# ----------------------------------------------------------------------
# Factories
# ----------------------------------------------------------------------


def make_booking(db, **overrides) -> Booking:
    data = {
        "quote_number": f"2026-{len(db.query(Booking).all()) + 1000}",
        "booking_type": "fullsystem",
        "status": "pending",
        "client_name": "Aroha Smith",
        "client_email": "aroha@example.co.nz",
        "client_phone": "021 555 0101",
        "event_name": "Summer Social",
        "event_date": date.today() + timedelta(days=30),
        "event_time": "6pm - 11pm",
        "location": "Wellington Town Hall",
        "quote_total": 2300.0,
        "approval_token": generate_uuid(),
        "details_json": {"type": "fullsystem", "package": "medium", "attendance": "120"},
    }
    data.update(overrides)
    booking = Booking(**data)
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def make_contractor(db, name="Tama Wiremu", email=None, active=True) -> Contractor:
    contractor = Contractor(
        name=name,
        email=email or f"{name.split()[0].lower()}@crew.co.nz",
        phone="027 123 4567",
        active=active,
        default_hourly_rate=45.0,
    )
    db.add(contractor)
    db.commit()
    db.refresh(contractor)
    return contractor


def make_approval(db, booking, **overrides) -> ClientApproval:
    data = {
        "booking_id": booking.id,
        "client_email": booking.client_email,
        "deposit_amount": 500.0,
    }
    data.update(overrides)
    approval = ClientApproval(**data)
    db.add(approval)
    db.commit()
    db.refresh(approval)
    return approval


def make_assignment(db, booking, contractor, **overrides) -> ContractorAssignment:
    data = {
        "booking_id": booking.id,
        "contractor_id": contractor.id,
        "hourly_rate": 50.0,
        "estimated_hours": 6.0,
        "pay_amount": 300.0,
        "status": "pending",
    }
    data.update(overrides)
    assignment = ContractorAssignment(**data)
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment


def redirect_params(response) -> tuple[str, dict]:
    """(path, flat query params) of a redirect response"""
    location = urlparse(response.headers["location"])
    return location.path, {key: values[0] for key, values in parse_qs(location.query).items()}
