"""Brokermatic webhook verification and event handlers."""

import hashlib
import hmac
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from schemas.brokermatic import WebhookEvent, WebhookPayload
from schemas.compliance import InsuranceStatus, RequestStatus
from services import db_ops

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="

# Brokermatic certificate complianceStatus -> vendor insurance status
BROKER_STATUS_MAP = {
    "compliant": InsuranceStatus.COMPLIANT,
    "non_compliant": InsuranceStatus.NON_COMPLIANT,
    "action_needed": InsuranceStatus.NON_COMPLIANT,
    "partial": InsuranceStatus.NON_COMPLIANT,
}


def sign_payload(body: bytes, secret: str) -> str:
    return SIGNATURE_PREFIX + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(signature.encode(), sign_payload(body, secret).encode())


def vendor_status_from_broker(value: Optional[str]) -> Optional[InsuranceStatus]:
    if not value:
        return None
    return BROKER_STATUS_MAP.get(value)


def _certificate_id(payload: WebhookPayload) -> Optional[str]:
    return payload.data.certificate.get("id")


def handle_certificate_issued(db: Session, payload: WebhookPayload, now: datetime):
    certificate = payload.data.certificate
    broker_status = certificate.get("complianceStatus")
    logger.info(
        "Certificate %s issued for request %s (%s)", certificate.get("id"), payload.data.request_id, broker_status
    )
    if not payload.data.request_id:
        return

    request = db_ops.find_request_by_broker_id(db, payload.data.request_id)
    if request is None:
        logger.warning("No certificate request matches Brokermatic request %s", payload.data.request_id)
        return

    compliant = broker_status == "compliant"
    db_ops.mark_request_status(
        db,
        request,
        RequestStatus.COMPLIANT if compliant else RequestStatus.NON_COMPLIANT,
        uploaded_at=now,
        validated_at=now,
        compliance_result={"overall_status": broker_status, "certificate": certificate},
    )
    db_ops.update_vendor(
        db,
        request.vendor_id,
        {
            "insurance_status": InsuranceStatus.COMPLIANT if compliant else InsuranceStatus.NON_COMPLIANT,
            "insurance_compliance_at": now if compliant else None,
        },
        now=now,
    )


def handle_certificate_updated(db: Session, payload: WebhookPayload, now: datetime):
    cert_id = _certificate_id(payload)
    changed_fields = [c.field for c in payload.data.changes]
    logger.info("Certificate %s updated: %s", cert_id, changed_fields)

    status = vendor_status_from_broker(payload.data.certificate.get("complianceStatus"))
    for request in db_ops.find_requests_for_broker_certificate(db, cert_id):
        result = dict(request.compliance_result or {})
        result.update({"certificate": payload.data.certificate, "last_updated": now.isoformat()})
        db_ops.update_certificate_request(db, request.id, {"compliance_result": result})
        if "complianceStatus" in changed_fields and status is not None:
            db_ops.update_vendor(db, request.vendor_id, {"insurance_status": status}, now=now)


def handle_certificate_expiring(db: Session, payload: WebhookPayload, now: datetime):
    cert_id = _certificate_id(payload)
    logger.info("Certificate %s expiring in %s days", cert_id, payload.data.days_remaining)
    for request in db_ops.find_requests_for_broker_certificate(db, cert_id):
        db_ops.update_vendor(db, request.vendor_id, {"insurance_status": InsuranceStatus.EXPIRING_SOON}, now=now)


def handle_certificate_expired(db: Session, payload: WebhookPayload, now: datetime):
    cert_id = _certificate_id(payload)
    logger.info("Certificate %s expired", cert_id)
    for request in db_ops.find_requests_for_broker_certificate(db, cert_id):
        db_ops.update_vendor(
            db,
            request.vendor_id,
            {"insurance_status": InsuranceStatus.EXPIRED, "insurance_compliance_at": None},
            now=now,
        )


def handle_compliance_gap(db: Session, payload: WebhookPayload, now: datetime):
    cert_id = _certificate_id(payload)
    gaps = [g.model_dump() for g in payload.data.gaps]
    logger.info("Compliance gaps on certificate %s: %s", cert_id, [g["message"] for g in gaps])
    for request in db_ops.find_requests_for_broker_certificate(db, cert_id):
        result = dict(request.compliance_result or {})
        result.update({"gaps": gaps, "last_checked": now.isoformat()})
        db_ops.mark_request_status(db, request, RequestStatus.NON_COMPLIANT, compliance_result=result)
        db_ops.update_vendor(
            db,
            request.vendor_id,
            {"insurance_status": InsuranceStatus.NON_COMPLIANT, "insurance_compliance_at": None},
            now=now,
        )


HANDLERS = {
    WebhookEvent.CERTIFICATE_ISSUED: handle_certificate_issued,
    WebhookEvent.CERTIFICATE_UPDATED: handle_certificate_updated,
    WebhookEvent.CERTIFICATE_EXPIRING: handle_certificate_expiring,
    WebhookEvent.CERTIFICATE_EXPIRED: handle_certificate_expired,
    WebhookEvent.POLICY_CANCELLED: handle_certificate_updated,
    WebhookEvent.POLICY_RENEWED: handle_certificate_updated,
    WebhookEvent.COMPLIANCE_GAP: handle_compliance_gap,
}


def dispatch_webhook(db: Session, payload: WebhookPayload, now: datetime) -> bool:
    """Route an event to its handler. Returns False for unknown events."""
    try:
        event = WebhookEvent(payload.event)
    except ValueError:
        logger.warning("Unknown Brokermatic webhook event: %s", payload.event)
        return False
    HANDLERS[event](db, payload, now)
    return True
