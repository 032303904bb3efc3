import logging
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from models import Certificate, CertificateRequest, InsuranceRequirement, Vendor
from schemas.compliance import CertificateStatus, OPEN_REQUEST_STATUSES, RequestStatus
from services.exceptions import CertificateNotFoundError, VendorNotFoundError

logger = logging.getLogger(__name__)


def _plain(value):
    return value.value if isinstance(value, Enum) else value


def _apply_patch(db: Session, record, patch: dict):
    try:
        for field, value in patch.items():
            if not hasattr(record, field):
                raise AttributeError(f"{type(record).__name__} has no field {field}")
            setattr(record, field, _plain(value))
        db.commit()
        db.refresh(record)
        return record
    except Exception:
        db.rollback()
        raise


def get_vendor(db: Session, vendor_id: int) -> Vendor:
    vendor = db.get(Vendor, vendor_id)
    if vendor is None:
        raise VendorNotFoundError(vendor_id)
    return vendor


def get_certificate(db: Session, certificate_id: int) -> Certificate:
    certificate = db.get(Certificate, certificate_id)
    if certificate is None:
        raise CertificateNotFoundError(certificate_id)
    return certificate


def create_vendor(db: Session, name: str, **fields) -> Vendor:
    vendor = Vendor(name=name, **{k: _plain(v) for k, v in fields.items()})
    try:
        db.add(vendor)
        db.commit()
        db.refresh(vendor)
        return vendor
    except Exception:
        db.rollback()
        raise


def save_insurance_requirement(db: Session, vendor_id: int, **limits) -> InsuranceRequirement:
    """Create or replace a vendor's insurance requirement"""
    vendor = get_vendor(db, vendor_id)
    try:
        if vendor.insurance_requirement is not None:
            db.delete(vendor.insurance_requirement)
            db.flush()
        requirement = InsuranceRequirement(vendor_id=vendor_id, **limits)
        db.add(requirement)
        db.commit()
        db.refresh(requirement)
        return requirement
    except Exception:
        db.rollback()
        raise


def create_certificate(db: Session, vendor_id: int, **fields) -> Certificate:
    get_vendor(db, vendor_id)
    fields.setdefault("compliance_status", CertificateStatus.PENDING)
    certificate = Certificate(vendor_id=vendor_id, **{k: _plain(v) for k, v in fields.items()})
    try:
        db.add(certificate)
        db.commit()
        db.refresh(certificate)
        return certificate
    except Exception:
        db.rollback()
        raise


def create_certificate_request(db: Session, vendor_id: int, **fields) -> CertificateRequest:
    request = CertificateRequest(vendor_id=vendor_id, **{k: _plain(v) for k, v in fields.items()})
    try:
        db.add(request)
        db.commit()
        db.refresh(request)
        return request
    except Exception:
        db.rollback()
        raise


# ============== QUERIES ==============

def find_certificates_expiring_between(db: Session, start: date, end: date) -> list[Certificate]:
    """Certificates of non-exempt vendors expiring in [start, end]"""
    return (
        db.query(Certificate)
        .join(Vendor)
        .filter(
            Certificate.expiration_date >= start,
            Certificate.expiration_date <= end,
            Vendor.exempt_from_insurance.is_(False),
        )
        .order_by(Certificate.expiration_date, Certificate.id)
        .all()
    )


def find_certificates_expired_since(db: Session, since: date, before: Optional[date] = None) -> list[Certificate]:
    """Certificates that expired in [since, before) and are not yet marked expired"""
    query = (
        db.query(Certificate)
        .join(Vendor)
        .filter(
            Certificate.expiration_date >= since,
            Certificate.compliance_status != CertificateStatus.EXPIRED.value,
            Vendor.exempt_from_insurance.is_(False),
        )
    )
    if before is not None:
        query = query.filter(Certificate.expiration_date < before)
    return query.order_by(Certificate.expiration_date, Certificate.id).all()


def find_vendors_with_status(db: Session, status, updated_since: datetime) -> list[Vendor]:
    return (
        db.query(Vendor)
        .filter(
            Vendor.insurance_status == _plain(status),
            Vendor.insurance_status_updated_at >= updated_since,
            Vendor.exempt_from_insurance.is_(False),
        )
        .order_by(Vendor.id)
        .all()
    )


def find_stale_pending_requests(db: Session, min_age_days: int, now: datetime) -> list[CertificateRequest]:
    """Open requests created at least min_age_days whole days before now"""
    cutoff = datetime.combine(now.date() - timedelta(days=min_age_days), datetime.max.time())
    return (
        db.query(CertificateRequest)
        .filter(
            CertificateRequest.status.in_([s.value for s in OPEN_REQUEST_STATUSES]),
            CertificateRequest.created_at <= cutoff,
        )
        .order_by(CertificateRequest.created_at, CertificateRequest.id)
        .all()
    )


def find_open_request(db: Session, vendor_id: int) -> Optional[CertificateRequest]:
    return (
        db.query(CertificateRequest)
        .filter(
            CertificateRequest.vendor_id == vendor_id,
            CertificateRequest.status.in_([s.value for s in OPEN_REQUEST_STATUSES]),
        )
        .order_by(CertificateRequest.created_at.desc(), CertificateRequest.id.desc())
        .first()
    )


def find_latest_request(db: Session, vendor_id: int, status=None) -> Optional[CertificateRequest]:
    query = db.query(CertificateRequest).filter(CertificateRequest.vendor_id == vendor_id)
    if status is not None:
        query = query.filter(CertificateRequest.status == _plain(status))
    return query.order_by(CertificateRequest.created_at.desc(), CertificateRequest.id.desc()).first()


def find_request_by_broker_id(db: Session, broker_request_id: str) -> Optional[CertificateRequest]:
    return (
        db.query(CertificateRequest)
        .filter(CertificateRequest.broker_request_id == broker_request_id)
        .first()
    )


def find_requests_for_broker_certificate(db: Session, broker_cert_id: str) -> list[CertificateRequest]:
    """Requests whose stored compliance result references the given Brokermatic certificate"""
    requests = (
        db.query(CertificateRequest)
        .filter(CertificateRequest.compliance_result.isnot(None))
        .order_by(CertificateRequest.id)
        .all()
    )
    matches = []
    for r in requests:
        certificate = (r.compliance_result or {}).get("certificate") or {}
        if certificate.get("id") == broker_cert_id:
            matches.append(r)
    return matches


# ============== UPDATES ==============

def update_certificate(db: Session, certificate_id: int, patch: dict) -> Certificate:
    certificate = db.get(Certificate, certificate_id)
    if certificate is None:
        raise LookupError(f"Certificate {certificate_id} not found")
    return _apply_patch(db, certificate, patch)


def update_vendor(db: Session, vendor_id: int, patch: dict, now: datetime = None) -> Vendor:
    """Patch a vendor. A change of insurance_status restamps its freshness timestamp."""
    vendor = get_vendor(db, vendor_id)
    patch = dict(patch)
    new_status = _plain(patch.get("insurance_status"))
    if new_status is not None and new_status != vendor.insurance_status:
        patch.setdefault("insurance_status_updated_at", now or datetime.utcnow())
    return _apply_patch(db, vendor, patch)


def update_certificate_request(db: Session, request_id: int, patch: dict) -> CertificateRequest:
    request = db.get(CertificateRequest, request_id)
    if request is None:
        raise LookupError(f"Certificate request {request_id} not found")
    return _apply_patch(db, request, patch)


def mark_request_status(db: Session, request: CertificateRequest, status: RequestStatus, **fields) -> CertificateRequest:
    return update_certificate_request(db, request.id, {"status": status, **fields})
