import logging
import uuid
from datetime import date, datetime, timedelta

from schemas.compliance import CertificateCoverage
from services.compliance import display_label, evaluate_compliance
from services.requirements import requirement_spec_from_brokermatic
from data.requirements import BROKERMATIC_COVERAGE_KEYS

logger = logging.getLogger(__name__)


def _short_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def mock_parsed_certificate(today: date) -> dict:
    """Sample ACORD 25 extraction: GL, auto and workers' comp written by one carrier"""
    effective = today - timedelta(days=90)
    expires = effective + timedelta(days=365)

    def coverage(coverage_type, policy_number, limits, flags):
        return {
            "type": coverage_type,
            "policyNumber": policy_number,
            "carrierName": "Hartford Fire Insurance",
            "effectiveDate": effective.isoformat(),
            "expirationDate": expires.isoformat(),
            "limits": limits,
            "flags": flags,
        }

    return {
        "extractedData": {
            "certificateNumber": f"CERT-{uuid.uuid4().hex[:10].upper()}",
            "issueDate": today.isoformat(),
            "producer": {
                "name": "Premier Insurance Agency",
                "contact": {"name": "Jane Doe", "phone": "212-555-0200", "email": "jane@premierins.com"},
            },
            "namedInsured": {"name": "Sample Vendor Corp", "dba": None},
            "certificateHolder": {"name": "Columbia University"},
            "coverages": [
                coverage(
                    "general_liability", f"GL-{effective.year}-001",
                    {"eachOccurrence": 2000000, "aggregate": 4000000},
                    {"additionalInsured": True, "waiverOfSubrogation": True},
                ),
                coverage("auto_liability", f"AU-{effective.year}-001", {"combinedSingleLimit": 1000000}, {}),
                coverage(
                    "workers_compensation", f"WC-{effective.year}-001",
                    {"eachAccident": 1000000, "diseaseEachEmployee": 1000000},
                    {"waiverOfSubrogation": True},
                ),
            ],
            "descriptionOfOperations": "General construction operations for university facilities.",
            "cancellationNotice": {"daysNotice": 30},
        },
        "confidence": 0.94,
        "warnings": [],
    }


class MockBrokermaticClient:
    """In-memory stand-in for the Brokermatic API.

    Certificates created through the mock are kept so that check_compliance
    can run the local evaluator against them.
    """

    def __init__(self):
        self.certificates: dict[str, dict] = {}
        self.requirement_requests: dict[str, dict] = {}

    def get_upload_url(self, file_name: str) -> dict:
        stamp = datetime.utcnow().strftime("%Y%m%d%H%M%S")
        return {
            "uploadUrl": f"https://mock-s3.example.com/upload/{uuid.uuid4()}",
            "storageKey": f"uploads/mock/{stamp}-{file_name}",
            "expiresIn": 900,
        }

    def parse_certificate(self, storage_key: str, now: datetime) -> dict:
        logger.info("Mock parse of %s", storage_key)
        return mock_parsed_certificate(now.date())

    def submit_requirements(self, requirements: dict) -> dict:
        created = datetime.utcnow()
        request_id = f"REQ-{created.strftime('%Y%m%d')}-{uuid.uuid4().hex[:4].upper()}"
        self.requirement_requests[request_id] = requirements
        return {
            "id": _short_id("req"),
            "requestId": request_id,
            "status": "pending",
            "createdAt": created.isoformat() + "Z",
        }

    def create_certificate(self, data: dict) -> dict:
        now = datetime.utcnow().isoformat() + "Z"
        certificate = {
            "id": _short_id("cert"),
            "insuredId": data.get("insuredId"),
            "certificateNumber": data.get("certificateNumber"),
            "source": data.get("source", "manual_entry"),
            "status": "active",
            "complianceStatus": "pending",
            "coverages": [dict(c, id=_short_id("cov")) for c in data.get("coverages", [])],
            "hasDocument": bool(data.get("storageKey")),
            "createdAt": now,
            "updatedAt": now,
        }
        self.certificates[certificate["id"]] = certificate
        return certificate

    def check_compliance(self, certificate_id: str, requirements: dict, now: datetime) -> dict:
        """Check a stored mock certificate with the local evaluator"""
        evaluation_date = now.date()
        stored = self.certificates.get(certificate_id, {"coverages": []})
        coverages = []
        for c in stored["coverages"]:
            expiration = c.get("expirationDate")
            coverages.append(CertificateCoverage(
                coverage_type=c["type"],
                limits=c.get("limits") or {},
                flags=c.get("flags") or {},
                expiration_date=date.fromisoformat(expiration[:10]) if expiration else None,
                policy_number=c.get("policyNumber"),
            ))

        spec = requirement_spec_from_brokermatic(requirements)
        result = evaluate_compliance(spec, coverages, evaluation_date)

        results = {}
        for coverage in result.coverages:
            key = BROKERMATIC_COVERAGE_KEYS[coverage.coverage_type.value]
            results[key] = {
                "status": coverage.status.value,
                "expirationDate": coverage.expiration_date.isoformat() if coverage.expiration_date else None,
                "gaps": [g.message for g in result.gaps if g.coverage_type == coverage.coverage_type],
            }

        return {
            "certificateId": certificate_id,
            "overallResult": display_label(result),
            "checkedAt": now.isoformat() + "Z",
            "results": results,
        }


mock_brokermatic_client = MockBrokermaticClient()
