"""Brokermatic client, mock and certificate request workflow tests."""

from datetime import timedelta

import pytest
import requests

from conftest import NOW, TODAY, compliant_gl_fields
from models import CertificateRequest, Vendor
from services.brokermatic import BrokermaticClient, get_brokermatic_client
from services.exceptions import (
    BrokermaticError,
    CertificateNotFoundError,
    DuplicateRequestError,
    VendorNotFoundError,
)
from services.mock.brokermatic import MockBrokermaticClient, mock_brokermatic_client
from services.requirements import standard_requirement_spec, to_brokermatic_requirements
from services.vendor_compliance import (
    check_certificate_with_brokermatic,
    open_certificate_request,
    submit_certificate,
)


class FakeResponse:
    def __init__(self, status_code=200, body=None, invalid_json=False):
        self.status_code = status_code
        self.ok = status_code < 400
        self._body = body
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("Expecting value")
        return self._body


class FailingClient(MockBrokermaticClient):
    def create_certificate(self, data):
        raise BrokermaticError("Brokermatic API error: 503")


@pytest.fixture
def real_client(monkeypatch):
    client = BrokermaticClient("bm_test_key", base_url="https://api.example.test/v1/")
    calls = []

    def respond_with(response):
        def fake_request(method, url, json=None, timeout=None):
            calls.append({"method": method, "url": url, "json": json, "timeout": timeout})
            if isinstance(response, Exception):
                raise response
            return response
        monkeypatch.setattr(client.session, "request", fake_request)

    client.respond_with = respond_with
    client.calls = calls
    return client


class TestBrokermaticClient:
    def test_posts_to_endpoint(self, real_client):
        real_client.respond_with(FakeResponse(body={"requestId": "REQ-1", "status": "pending"}))

        result = real_client.submit_requirements({"holderId": "ch_test"})

        assert result["requestId"] == "REQ-1"
        call = real_client.calls[0]
        assert call["method"] == "POST"
        assert call["url"] == "https://api.example.test/v1/compliance/requirements"
        assert call["json"] == {"holderId": "ch_test"}
        assert real_client.session.headers["X-API-Key"] == "bm_test_key"

    def test_api_error_message(self, real_client):
        real_client.respond_with(FakeResponse(status_code=422, body={"message": "holderId is required"}))

        with pytest.raises(BrokermaticError, match="holderId is required"):
            real_client.submit_requirements({})

    def test_api_error_without_body(self, real_client):
        real_client.respond_with(FakeResponse(status_code=500, invalid_json=True))

        with pytest.raises(BrokermaticError, match="500"):
            real_client.parse_certificate("uploads/x.pdf", NOW)

    def test_connection_error(self, real_client):
        real_client.respond_with(requests.ConnectionError("connection refused"))

        with pytest.raises(BrokermaticError, match="connection refused"):
            real_client.get_upload_url("coi.pdf")

    def test_invalid_json(self, real_client):
        real_client.respond_with(FakeResponse(invalid_json=True))

        with pytest.raises(BrokermaticError, match="invalid JSON"):
            real_client.create_certificate({})

    def test_mock_mode_uses_mock(self):
        assert get_brokermatic_client() is mock_brokermatic_client


class TestMockCompliance:
    def requirements(self):
        return to_brokermatic_requirements(standard_requirement_spec(), "Roof repair", "Acme Roofing")["requirements"]

    def coverage(self, coverage_type, expires, limits=None, flags=None):
        return {
            "type": coverage_type,
            "expirationDate": expires.isoformat(),
            "limits": limits or {},
            "flags": flags or {},
        }

    def test_compliant_certificate(self):
        client = MockBrokermaticClient()
        expires = TODAY + timedelta(days=200)
        cert = client.create_certificate({"coverages": [
            self.coverage(
                "general_liability", expires,
                {"eachOccurrence": 2000000, "aggregate": 4000000},
                {"additionalInsured": True, "waiverOfSubrogation": True},
            ),
            self.coverage("workers_compensation", expires, flags={"waiverOfSubrogation": True}),
        ]})

        result = client.check_compliance(cert["id"], self.requirements(), NOW)

        assert result["overallResult"] == "compliant"
        assert result["results"]["generalLiability"]["status"] == "pass"
        assert result["results"]["generalLiability"]["gaps"] == []

    def test_partial_certificate(self):
        client = MockBrokermaticClient()
        cert = client.create_certificate({"coverages": [
            self.coverage(
                "general_liability", TODAY + timedelta(days=200),
                {"eachOccurrence": 1000000, "aggregate": 4000000},
                {"additionalInsured": True, "waiverOfSubrogation": True},
            ),
            self.coverage("workers_compensation", TODAY + timedelta(days=200), flags={"waiverOfSubrogation": True}),
        ]})

        result = client.check_compliance(cert["id"], self.requirements(), NOW)

        assert result["overallResult"] == "partial"
        assert result["results"]["workersCompensation"]["status"] == "pass"
        assert result["results"]["generalLiability"]["gaps"] == [
            "general liability: eachOccurrence is insufficient (required: $2,000,000, actual: $1,000,000)"
        ]

    def test_unknown_certificate_is_non_compliant(self):
        result = MockBrokermaticClient().check_compliance("cert_missing", self.requirements(), NOW)
        assert result["overallResult"] == "non_compliant"


class TestOpenCertificateRequest:
    def test_records_request_and_marks_vendor(self, db, make_vendor, make_requirement):
        vendor = make_vendor("Morningside Mechanical")
        make_requirement(vendor, gl_each_occurrence=1000000, gl_aggregate=2000000, workers_comp_required=True)

        request = open_certificate_request(db, vendor.id, " agent@broker.com ", NOW, broker_name="Pat Agent")

        assert request.status == "pending"
        assert request.created_at == NOW
        assert request.coverage_types == ["general_liability", "workers_compensation"]
        assert request.minimum_limits["generalLiability"]["minLimits"] == {
            "eachOccurrence": 1000000,
            "generalAggregate": 2000000,
        }
        assert request.minimum_limits["autoLiability"]["required"] is False
        submitted = mock_brokermatic_client.requirement_requests[request.broker_request_id]
        assert submitted["insuredName"] == "Morningside Mechanical"

        db.expire_all()
        vendor = db.get(Vendor, vendor.id)
        assert vendor.insurance_status == "requested"
        assert vendor.insurance_status_updated_at == NOW
        assert vendor.broker_email == "agent@broker.com"

    def test_second_open_request_is_rejected(self, db, make_vendor, make_request):
        vendor = make_vendor()
        existing = make_request(vendor, status="fulfilled")

        with pytest.raises(DuplicateRequestError) as exc_info:
            open_certificate_request(db, vendor.id, "agent@broker.com", NOW)

        assert exc_info.value.request_id == existing.id
        assert db.query(CertificateRequest).count() == 1

    def test_closed_request_does_not_block(self, db, make_vendor, make_request):
        vendor = make_vendor()
        make_request(vendor, status="compliant", age_days=400)

        open_certificate_request(db, vendor.id, "agent@broker.com", NOW)

        assert db.query(CertificateRequest).count() == 2

    def test_broker_email_required(self, db, make_vendor):
        with pytest.raises(ValueError):
            open_certificate_request(db, make_vendor().id, "  ", NOW)

    def test_unknown_vendor(self, db):
        with pytest.raises(VendorNotFoundError):
            open_certificate_request(db, 404, "agent@broker.com", NOW)


class TestSubmitCertificate:
    def test_sync_failure_keeps_certificate(self, db, make_vendor):
        vendor = make_vendor()

        certificate = submit_certificate(
            db,
            vendor.id,
            {"coverage_type": "general_liability", "expiration_date": TODAY + timedelta(days=120), **compliant_gl_fields()},
            NOW,
            client=FailingClient(),
        )

        assert certificate.id is not None
        assert certificate.brokermatic_cert_id is None
        assert certificate.compliance_status == "compliant"
        assert certificate.last_checked_at == NOW

    def test_completes_open_request(self, db, make_vendor, make_requirement, make_request):
        vendor = make_vendor()
        make_requirement(vendor, gl_each_occurrence=2000000, gl_aggregate=4000000)
        request = make_request(vendor)

        submit_certificate(
            db, vendor.id,
            {"coverage_type": "general_liability", "expiration_date": TODAY + timedelta(days=120), **compliant_gl_fields()},
            NOW,
        )

        db.expire_all()
        request = db.get(CertificateRequest, request.id)
        assert request.status == "compliant"
        assert request.uploaded_at == NOW
        assert request.validated_at == NOW
        assert request.compliance_result["status"] == "compliant"
        vendor = db.get(Vendor, vendor.id)
        assert vendor.insurance_status == "compliant"
        assert vendor.insurance_compliance_at == NOW


class TestBrokermaticCheck:
    def test_checks_synced_certificate(self, db, make_vendor, make_requirement):
        vendor = make_vendor()
        make_requirement(vendor, gl_each_occurrence=2000000, gl_aggregate=4000000)
        certificate = submit_certificate(
            db, vendor.id,
            {"coverage_type": "general_liability", "expiration_date": TODAY + timedelta(days=120), **compliant_gl_fields()},
            NOW,
        )

        result = check_certificate_with_brokermatic(db, certificate.id, NOW)

        assert result["certificateId"] == certificate.brokermatic_cert_id
        assert result["overallResult"] == "compliant"
        assert result["checkedAt"] == NOW.isoformat() + "Z"
        assert result["results"]["generalLiability"]["status"] == "pass"

    def test_checked_as_of_given_time(self, db, make_vendor, make_requirement):
        vendor = make_vendor()
        make_requirement(vendor, gl_each_occurrence=2000000, gl_aggregate=4000000)
        certificate = submit_certificate(
            db, vendor.id,
            {"coverage_type": "general_liability", "expiration_date": TODAY + timedelta(days=120), **compliant_gl_fields()},
            NOW,
        )

        result = check_certificate_with_brokermatic(db, certificate.id, NOW + timedelta(days=121))

        assert result["overallResult"] == "non_compliant"
        assert result["results"]["generalLiability"]["status"] == "fail"

    def test_unsynced_certificate(self, db, make_vendor, make_certificate):
        certificate = make_certificate(make_vendor())

        with pytest.raises(ValueError, match="not been synced"):
            check_certificate_with_brokermatic(db, certificate.id, NOW)

    def test_unknown_certificate(self, db):
        with pytest.raises(CertificateNotFoundError):
            check_certificate_with_brokermatic(db, 404, NOW)
