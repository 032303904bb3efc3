"""Brokermatic webhook tests: signature checks and event handling."""

import json

import pytest

from conftest import NOW
from models import CertificateRequest, Vendor
from schemas.brokermatic import WebhookPayload
from services import webhooks
from services.webhooks import dispatch_webhook, sign_payload, verify_signature

SECRET = "test-webhook-secret"
URL = "/api/webhooks/brokermatic"


def post_event(client, payload, secret=SECRET, signature=None):
    body = json.dumps(payload).encode()
    headers = {"content-type": "application/json"}
    if signature is None and secret is not None:
        signature = sign_payload(body, secret)
    if signature is not None:
        headers["x-brokermatic-signature"] = signature
    return client.post(URL, content=body, headers=headers)


def event(name, **data):
    return {"id": "evt_1a2b3c", "event": name, "timestamp": "2026-03-02T09:00:00Z", "data": data}


class TestSignature:
    def test_valid_signature(self):
        body = b'{"event": "certificate.issued"}'
        assert verify_signature(body, sign_payload(body, SECRET), SECRET)

    def test_tampered_body(self):
        signature = sign_payload(b'{"a": 1}', SECRET)
        assert not verify_signature(b'{"a": 2}', signature, SECRET)

    def test_missing_signature(self):
        assert not verify_signature(b"{}", None, SECRET)
        assert not verify_signature(b"{}", "", SECRET)

    def test_endpoint_rejects_bad_signature(self, client):
        response = post_event(client, event("certificate.issued", certificate={}), signature="sha256=deadbeef")
        assert response.status_code == 401

    def test_endpoint_rejects_unsigned_requests(self, client):
        response = post_event(client, event("certificate.issued", certificate={}), secret=None)
        assert response.status_code == 401


class TestEvents:
    def test_certificate_issued_updates_request_and_vendor(self, client, db, make_vendor, make_request):
        vendor = make_vendor()
        request = make_request(vendor, broker_request_id="REQ-20260302-0001")

        response = post_event(client, event(
            "certificate.issued",
            requestId="REQ-20260302-0001",
            certificate={"id": "cert_abc123", "complianceStatus": "compliant"},
        ))

        assert response.status_code == 200
        assert response.json() == {"received": True}
        db.expire_all()
        request = db.get(CertificateRequest, request.id)
        vendor = db.get(Vendor, vendor.id)
        assert request.status == "compliant"
        assert request.compliance_result["certificate"]["id"] == "cert_abc123"
        assert vendor.insurance_status == "compliant"
        assert vendor.insurance_compliance_at is not None

    def test_compliance_gap_marks_vendor_non_compliant(self, client, db, make_vendor, make_request):
        vendor = make_vendor(insurance_status="compliant")
        request = make_request(
            vendor,
            status="compliant",
            compliance_result={"overall_status": "compliant", "certificate": {"id": "cert_gap01"}},
        )

        response = post_event(client, event(
            "compliance.gap",
            certificate={"id": "cert_gap01"},
            gaps=[{"type": "limit", "message": "General aggregate below $4,000,000", "severity": "critical"}],
        ))

        assert response.status_code == 200
        db.expire_all()
        request = db.get(CertificateRequest, request.id)
        assert request.status == "non_compliant"
        assert request.compliance_result["gaps"][0]["message"] == "General aggregate below $4,000,000"
        assert db.get(Vendor, vendor.id).insurance_status == "non_compliant"

    def test_certificate_updated_maps_broker_status(self, db, make_vendor, make_request):
        vendor = make_vendor(insurance_status="compliant")
        make_request(vendor, status="compliant", compliance_result={"certificate": {"id": "cert_upd01"}})
        payload = WebhookPayload.from_wire(event(
            "certificate.updated",
            certificate={"id": "cert_upd01", "complianceStatus": "action_needed"},
            changes=[{"field": "complianceStatus", "oldValue": "compliant", "newValue": "action_needed"}],
        ))

        assert dispatch_webhook(db, payload, NOW)

        db.expire_all()
        vendor = db.get(Vendor, vendor.id)
        assert vendor.insurance_status == "non_compliant"
        assert vendor.insurance_status_updated_at == NOW

    def test_certificate_expired(self, db, make_vendor, make_request):
        vendor = make_vendor(insurance_status="compliant")
        make_request(vendor, status="compliant", compliance_result={"certificate": {"id": "cert_exp01"}})

        dispatch_webhook(db, WebhookPayload.from_wire(event("certificate.expired", certificate={"id": "cert_exp01"})), NOW)

        db.expire_all()
        assert db.get(Vendor, vendor.id).insurance_status == "expired"

    def test_unknown_event_is_acknowledged(self, client, db):
        assert not dispatch_webhook(db, WebhookPayload.from_wire(event("certificate.archived", certificate={})), NOW)

        response = post_event(client, event("certificate.archived", certificate={}))

        assert response.status_code == 200
        assert response.json() == {"received": True}

    def test_processing_error_is_acknowledged(self, client, monkeypatch):
        def explode(db, payload, now):
            raise RuntimeError("database unavailable")

        monkeypatch.setitem(webhooks.HANDLERS, webhooks.WebhookEvent.CERTIFICATE_EXPIRED, explode)

        response = post_event(client, event("certificate.expired", certificate={"id": "cert_x"}))

        assert response.status_code == 200
        assert response.json() == {"received": True, "error": "Processing error logged"}

    @pytest.mark.parametrize("body", [b"[1, 2, 3]", b"not json"])
    def test_malformed_body_is_acknowledged(self, client, body):
        response = client.post(URL, content=body, headers={"x-brokermatic-signature": sign_payload(body, SECRET)})

        assert response.status_code == 200
        assert response.json()["received"] is True


def test_event_listing(client):
    response = client.get(URL)
    assert response.status_code == 200
    assert "compliance.gap" in response.json()["events"]
