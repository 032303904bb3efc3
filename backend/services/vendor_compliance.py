"""
Vendor compliance workflow: evaluating stored certificates, opening
certificate requests and accepting submitted certificates.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from config import HOLDER_NAME
from models import Certificate, CertificateRequest, Vendor
from schemas.compliance import (
    CertificateStatus,
    ComplianceOutcome,
    ComplianceResult,
    CoverageStatus,
    GapKind,
    InsuranceStatus,
    RequestStatus,
)
from services import db_ops
from services.brokermatic import get_brokermatic_client
from services.compliance import evaluate_compliance
from services.exceptions import BrokermaticError, DuplicateRequestError
from services.requirements import (
    coverage_from_certificate,
    coverages_from_certificates,
    requirement_spec_from_record,
    to_brokermatic_requirements,
)

logger = logging.getLogger(__name__)

EXTERNAL_ID_PREFIX = "COLUMBIA-VENDOR"


def evaluate_vendor(vendor: Vendor, now: datetime) -> ComplianceResult:
    spec = requirement_spec_from_record(vendor.insurance_requirement)
    coverages = coverages_from_certificates(vendor.certificates)
    return evaluate_compliance(spec, coverages, now.date())


def vendor_status_for(result: ComplianceResult) -> InsuranceStatus:
    if result.status == ComplianceOutcome.COMPLIANT:
        if any(c.status == CoverageStatus.WARNING for c in result.coverages):
            return InsuranceStatus.EXPIRING_SOON
        return InsuranceStatus.COMPLIANT
    critical = result.critical_gaps
    if critical and all(g.kind == GapKind.EXPIRED for g in critical):
        return InsuranceStatus.EXPIRED
    return InsuranceStatus.NON_COMPLIANT


def certificate_status_for(status: CoverageStatus) -> CertificateStatus:
    # 'expired' is set by the one-time expired alert, never here
    if status == CoverageStatus.PASS:
        return CertificateStatus.COMPLIANT
    if status == CoverageStatus.WARNING:
        return CertificateStatus.EXPIRING
    return CertificateStatus.NON_COMPLIANT


def refresh_vendor_compliance(db: Session, vendor_id: int, now: datetime) -> Optional[ComplianceResult]:
    """Re-evaluate a vendor and write the verdict back to its records.

    Returns None for vendors exempt from insurance.
    """
    vendor = db_ops.get_vendor(db, vendor_id)
    if vendor.exempt_from_insurance:
        logger.info("Vendor %s is exempt from insurance, skipping compliance refresh", vendor_id)
        return None

    result = evaluate_vendor(vendor, now)

    for coverage in result.coverages:
        if coverage.certificate_id is None:
            continue
        certificate = db.get(Certificate, coverage.certificate_id)
        patch = {"last_checked_at": now}
        if certificate.compliance_status != CertificateStatus.EXPIRED.value:
            patch["compliance_status"] = certificate_status_for(coverage.status)
        db_ops.update_certificate(db, certificate.id, patch)

    status = vendor_status_for(result)
    vendor_patch = {"insurance_status": status}
    if status in (InsuranceStatus.COMPLIANT, InsuranceStatus.EXPIRING_SOON):
        if vendor.insurance_compliance_at is None:
            vendor_patch["insurance_compliance_at"] = now
    else:
        vendor_patch["insurance_compliance_at"] = None
    db_ops.update_vendor(db, vendor_id, vendor_patch, now=now)

    open_request = db_ops.find_open_request(db, vendor_id)
    if open_request is not None and vendor.certificates:
        request_status = (
            RequestStatus.COMPLIANT if result.status == ComplianceOutcome.COMPLIANT else RequestStatus.NON_COMPLIANT
        )
        db_ops.mark_request_status(
            db,
            open_request,
            request_status,
            validated_at=now,
            compliance_result=result.model_dump(mode="json"),
        )

    logger.info(
        "Vendor %s evaluated %s (%d critical gaps)", vendor_id, status.value, len(result.critical_gaps)
    )
    return result


def default_project_description(vendor: Vendor) -> str:
    return f"General work for {HOLDER_NAME} by {vendor.name}"


def open_certificate_request(
    db: Session,
    vendor_id: int,
    broker_email: str,
    now: datetime,
    broker_name: str = None,
    project_description: str = None,
    client=None,
) -> CertificateRequest:
    """Submit the vendor's requirements to Brokermatic and record the open request.

    Raises DuplicateRequestError when a pending or fulfilled request already exists.
    """
    if not broker_email or not broker_email.strip():
        raise ValueError("Broker email is required")

    vendor = db_ops.get_vendor(db, vendor_id)
    existing = db_ops.find_open_request(db, vendor_id)
    if existing is not None:
        raise DuplicateRequestError(vendor_id, existing.id, existing.broker_request_id)

    client = client or get_brokermatic_client()
    spec = requirement_spec_from_record(vendor.insurance_requirement)
    description = project_description or default_project_description(vendor)
    payload = to_brokermatic_requirements(spec, description, vendor.name)

    response = client.submit_requirements(payload)
    logger.info(
        "Brokermatic accepted requirements for vendor %s: request %s (%s)",
        vendor_id, response.get("requestId"), response.get("status"),
    )

    try:
        status = RequestStatus(response.get("status", RequestStatus.PENDING.value))
    except ValueError as e:
        raise BrokermaticError(f"Unexpected request status from Brokermatic: {response.get('status')!r}") from e

    request = db_ops.create_certificate_request(
        db,
        vendor_id,
        created_at=now,
        status=status,
        broker_request_id=response.get("requestId"),
        external_id=f"{EXTERNAL_ID_PREFIX}-{vendor_id}",
        project_description=description,
        coverage_types=[c.value for c in spec.coverages],
        minimum_limits=payload["requirements"],
    )

    db_ops.update_vendor(
        db,
        vendor_id,
        {
            "broker_email": broker_email.strip(),
            "broker_name": broker_name or None,
            "insurance_status": InsuranceStatus.REQUESTED,
            "insurance_requested_at": now,
        },
        now=now,
    )
    return request


def submit_certificate(db: Session, vendor_id: int, data: dict, now: datetime, client=None) -> Certificate:
    """Store a certificate, sync it to Brokermatic and refresh the vendor's verdict.

    The Brokermatic sync is best-effort: the certificate is kept locally when it fails.
    """
    vendor = db_ops.get_vendor(db, vendor_id)
    certificate = db_ops.create_certificate(db, vendor_id, **data)

    client = client or get_brokermatic_client()
    coverage = coverage_from_certificate(certificate)
    try:
        synced = client.create_certificate({
            "insuredId": vendor.brokermatic_insured_id or "mock",
            "source": "manual_entry",
            "coverages": [{
                "type": certificate.coverage_type,
                "policyNumber": certificate.policy_number,
                "carrierName": certificate.carrier_name,
                "effectiveDate": certificate.effective_date.isoformat() if certificate.effective_date else None,
                "expirationDate": certificate.expiration_date.isoformat() if certificate.expiration_date else None,
                "limits": coverage.limits,
                "flags": coverage.flags,
            }],
        })
        certificate = db_ops.update_certificate(db, certificate.id, {"brokermatic_cert_id": synced["id"]})
    except (BrokermaticError, KeyError) as e:
        logger.warning("Brokermatic sync failed for certificate %s, kept locally: %s", certificate.id, e)

    open_request = db_ops.find_open_request(db, vendor_id)
    if open_request is not None and open_request.status == RequestStatus.PENDING.value:
        db_ops.mark_request_status(db, open_request, RequestStatus.FULFILLED, uploaded_at=now)

    refresh_vendor_compliance(db, vendor_id, now)
    db.refresh(certificate)
    return certificate


def check_certificate_with_brokermatic(db: Session, certificate_id: int, now: datetime, client=None) -> dict:
    """Ask Brokermatic to check a synced certificate against the vendor's requirements.

    Raises ValueError when the certificate was never synced to Brokermatic.
    """
    certificate = db_ops.get_certificate(db, certificate_id)
    if not certificate.brokermatic_cert_id:
        raise ValueError(f"Certificate {certificate_id} has not been synced to Brokermatic")

    vendor = certificate.vendor
    spec = requirement_spec_from_record(vendor.insurance_requirement)
    payload = to_brokermatic_requirements(spec, default_project_description(vendor), vendor.name)

    client = client or get_brokermatic_client()
    result = client.check_compliance(certificate.brokermatic_cert_id, payload["requirements"], now)
    logger.info(
        "Brokermatic checked certificate %s (%s): %s",
        certificate_id, certificate.brokermatic_cert_id, result.get("overallResult"),
    )
    return result
