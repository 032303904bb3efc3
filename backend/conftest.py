"""
Pytest fixtures for the vendor compliance backend.

Provides:
- An in-memory SQLite database, recreated for every test
- A FastAPI TestClient bound to the same database
- A fake mailer that records sends and can fail or stall on demand
- Factories for vendors, certificates and certificate requests
"""

import os
import time
import uuid
from datetime import date, datetime, timedelta

import pytest

# Configure the app before any project module reads the environment
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MOCK_MODE"] = "true"
os.environ["EMAIL_SERVICE_ENABLED"] = "false"
os.environ["NOTIFICATION_API_KEY"] = "test-notification-key"
os.environ["BROKERMATIC_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["NOTIFICATION_RECIPIENTS"] = "risk@example.edu"

import database  # noqa: E402
from services.mailer import EmailResult  # noqa: E402

# Monday morning, mid-term
NOW = datetime(2026, 3, 2, 9, 0, 0)
TODAY = NOW.date()


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail = False
        self.error = None
        self.delay = 0.0

    def __call__(self, recipients, subject, html_body):
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.fail:
            return EmailResult(success=False, error="SMTP unavailable")
        self.sent.append({"recipients": recipients, "subject": subject, "html": html_body})
        return EmailResult(success=True, message_id=f"fake-{uuid.uuid4().hex[:8]}")

    @property
    def subjects(self) -> list[str]:
        return [m["subject"] for m in self.sent]


@pytest.fixture(scope="session", autouse=True)
def _engine():
    database.init_db("sqlite://")
    yield database.db_engine


@pytest.fixture
def db(_engine):
    database.Base.metadata.drop_all(bind=_engine)
    database.Base.metadata.create_all(bind=_engine)
    session = database.get_db()
    yield session
    session.close()


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture(autouse=True)
def _reset_mock_brokermatic():
    from services.mock.brokermatic import mock_brokermatic_client

    mock_brokermatic_client.certificates.clear()
    mock_brokermatic_client.requirement_requests.clear()


@pytest.fixture
def make_vendor(db):
    from models import Vendor

    def _make(name="Morningside Mechanical", **fields):
        fields.setdefault("insurance_status", "pending")
        fields.setdefault("insurance_status_updated_at", NOW - timedelta(days=30))
        vendor = Vendor(name=name, **fields)
        db.add(vendor)
        db.commit()
        db.refresh(vendor)
        return vendor

    return _make


@pytest.fixture
def make_requirement(db):
    from models import InsuranceRequirement

    def _make(vendor, **fields):
        requirement = InsuranceRequirement(vendor_id=vendor.id, **fields)
        db.add(requirement)
        db.commit()
        db.refresh(requirement)
        return requirement

    return _make


@pytest.fixture
def make_certificate(db):
    from models import Certificate

    def _make(vendor, coverage_type="general_liability", expires_in=200, **fields):
        fields.setdefault("policy_number", f"GL-{uuid.uuid4().hex[:6].upper()}")
        fields.setdefault("carrier_name", "Hartford Fire Insurance")
        fields.setdefault("compliance_status", "compliant")
        if "expiration_date" not in fields:
            fields["expiration_date"] = TODAY + timedelta(days=expires_in) if expires_in is not None else None
        certificate = Certificate(vendor_id=vendor.id, coverage_type=coverage_type, **fields)
        db.add(certificate)
        db.commit()
        db.refresh(certificate)
        return certificate

    return _make


@pytest.fixture
def make_request(db):
    from models import CertificateRequest

    def _make(vendor, age_days=0, status="pending", **fields):
        request = CertificateRequest(
            vendor_id=vendor.id,
            status=status,
            created_at=NOW - timedelta(days=age_days, hours=1),
            broker_request_id=fields.pop("broker_request_id", f"REQ-{uuid.uuid4().hex[:6].upper()}"),
            **fields,
        )
        db.add(request)
        db.commit()
        db.refresh(request)
        return request

    return _make


def compliant_gl_fields(**overrides) -> dict:
    fields = {
        "each_occurrence_amount": 2000000,
        "aggregate_amount": 4000000,
        "additional_insured": True,
        "waiver_of_subrogation": True,
    }
    fields.update(overrides)
    return fields
