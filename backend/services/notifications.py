"""
Compliance notification checks.

Each check loads its candidate records, applies the cadence rules in
services.cadence and hands due alerts to the mailer. State is only written
after a successful send, and one record failing never stops the rest of the
run. Runs are expected to be triggered by a single scheduler; there is no
locking between overlapping runs.
"""

import logging
import threading
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

import config
from models import CertificateRequest, Vendor
from schemas.compliance import CertificateStatus, CoverageType, InsuranceStatus, RequestStatus
from schemas.notification import NotificationRunResult
from services import db_ops
from services import email_templates
from services.cadence import (
    EXPIRING_LOOKAHEAD_DAYS,
    NON_COMPLIANCE_WINDOW,
    REMINDER_INTERVAL_DAYS,
    NotificationKind,
    days_between,
    should_notify,
)
from services.mailer import EmailResult, send_email

logger = logging.getLogger(__name__)

Mailer = Callable[[list[str], str, str], EmailResult]


def deliver(send: Mailer, recipients: list[str], subject: str, html_body: str, timeout: float = None) -> EmailResult:
    """Run one send on a daemon thread, giving up after `timeout` seconds.

    A send that is still stuck when the run ends does not keep the process alive.
    """
    timeout = config.EMAIL_SEND_TIMEOUT_SECONDS if timeout is None else timeout
    outcome = {}

    def _send():
        try:
            outcome["result"] = send(recipients, subject, html_body)
        except Exception as e:
            outcome["error"] = e

    worker = threading.Thread(target=_send, name="notification-send", daemon=True)
    worker.start()
    worker.join(timeout)

    if worker.is_alive():
        logger.error("Email send timed out after %ss: %s", timeout, subject)
        return EmailResult(success=False, error=f"Timed out after {timeout}s")
    if "error" in outcome:
        logger.error("Email send failed for %r: %s", subject, outcome["error"])
        return EmailResult(success=False, error=str(outcome["error"]))
    return outcome["result"]


def coverage_label(coverage_type: str) -> str:
    try:
        return CoverageType.parse(coverage_type).label
    except ValueError:
        return coverage_type


def format_long_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def vendor_insurance_url(vendor_id: int) -> str:
    return f"{config.APP_BASE_URL}/vendors/{vendor_id}/insurance"


class _Check:
    """Shared plumbing for one notification category."""

    def __init__(self, db: Session, now: datetime, send: Optional[Mailer], recipients: Optional[list[str]]):
        self.db = db
        self.now = now
        self.today = now.date()
        self.send = send or send_email
        self.recipients = recipients or config.get_notification_recipients()
        self.sent: list[str] = []
        self.failures = 0

    def deliver(self, subject: str, html_body: str) -> bool:
        result = deliver(self.send, self.recipients, subject, html_body)
        if not result.success:
            logger.warning("Notification not sent (%s): %s", result.error, subject)
        return result.success

    def record_failure(self, kind: str, record_id: int):
        self.failures += 1
        logger.exception("Failed to process %s notification for record %s", kind, record_id)
        self.db.rollback()


def _check_expiring(check: _Check):
    certificates = db_ops.find_certificates_expiring_between(
        check.db, check.today, check.today + timedelta(days=EXPIRING_LOOKAHEAD_DAYS)
    )
    logger.info("Found %d certificates expiring within %d days", len(certificates), EXPIRING_LOOKAHEAD_DAYS)

    for cert in certificates:
        try:
            if not should_notify(NotificationKind.EXPIRING, cert.notified_date, check.now, cert.expiration_date):
                continue
            vendor: Vendor = cert.vendor
            days_left = days_between(check.today, cert.expiration_date)
            subject = f"Certificate Expiring Soon: {vendor.name} - {coverage_label(cert.coverage_type)}"
            html_body = email_templates.certificate_expiring_template(
                vendor_name=vendor.name,
                coverage_type=coverage_label(cert.coverage_type),
                policy_number=cert.policy_number or "N/A",
                expiration_date=format_long_date(cert.expiration_date),
                days_until_expiration=days_left,
                certificate_url=f"{config.APP_BASE_URL}/certificates/{cert.id}",
            )
            if not check.deliver(subject, html_body):
                continue
            db_ops.update_certificate(check.db, cert.id, {"notified_date": check.today})
            check.sent.append(f"Sent expiration notice for {vendor.name} - {cert.coverage_type} ({days_left} days)")
        except Exception:
            check.record_failure("expiring", cert.id)


def _check_expired(check: _Check):
    yesterday = check.today - timedelta(days=1)
    certificates = db_ops.find_certificates_expired_since(check.db, yesterday, check.today)
    logger.info("Found %d newly expired certificates", len(certificates))

    for cert in certificates:
        try:
            last_alert = cert.notified_date if cert.compliance_status == CertificateStatus.EXPIRED.value else None
            if not should_notify(NotificationKind.EXPIRED, last_alert, check.now, cert.expiration_date):
                continue
            vendor: Vendor = cert.vendor
            subject = f"URGENT: Certificate Expired - {vendor.name}"
            html_body = email_templates.certificate_expired_template(
                vendor_name=vendor.name,
                coverage_type=coverage_label(cert.coverage_type),
                policy_number=cert.policy_number or "N/A",
                expiration_date=format_long_date(cert.expiration_date),
                days_overdue=days_between(cert.expiration_date, check.today),
                vendor_url=vendor_insurance_url(vendor.id),
            )
            if not check.deliver(subject, html_body):
                continue
            db_ops.update_certificate(
                check.db, cert.id,
                {"compliance_status": CertificateStatus.EXPIRED, "notified_date": check.today},
            )
            db_ops.update_vendor(
                check.db, vendor.id,
                {"insurance_status": InsuranceStatus.EXPIRED, "insurance_compliance_at": None},
                now=check.now,
            )
            check.sent.append(f"Sent expiration alert for {vendor.name} - {cert.coverage_type}")
        except Exception:
            check.record_failure("expired", cert.id)


def stored_gap_messages(request: Optional[CertificateRequest]) -> list[str]:
    """Blocking gap messages from a request's stored compliance result"""
    if request is None or not request.compliance_result:
        return []
    messages = []
    for gap in request.compliance_result.get("gaps") or []:
        if isinstance(gap, str):
            messages.append(gap)
        elif isinstance(gap, dict) and gap.get("message") and gap.get("severity") != "info":
            messages.append(gap["message"])
    return messages


def _check_non_compliant(check: _Check):
    vendors = db_ops.find_vendors_with_status(
        check.db, InsuranceStatus.NON_COMPLIANT, check.now - NON_COMPLIANCE_WINDOW
    )
    logger.info("Found %d newly non-compliant vendors", len(vendors))

    for vendor in vendors:
        try:
            if not should_notify(
                NotificationKind.NON_COMPLIANT,
                vendor.non_compliance_notified_at,
                check.now,
                vendor.insurance_status_updated_at,
            ):
                continue
            latest = db_ops.find_latest_request(check.db, vendor.id, RequestStatus.NON_COMPLIANT)
            gaps = stored_gap_messages(latest) or [
                f"Certificate does not meet {config.HOLDER_NAME} requirements"
            ]
            subject = f"Non-Compliant Certificate: {vendor.name}"
            html_body = email_templates.non_compliant_template(
                vendor_name=vendor.name,
                vendor_id=vendor.id,
                compliance_gaps=gaps,
                vendor_url=vendor_insurance_url(vendor.id),
            )
            if not check.deliver(subject, html_body):
                continue
            db_ops.update_vendor(check.db, vendor.id, {"non_compliance_notified_at": check.now})
            check.sent.append(f"Sent non-compliance notice for {vendor.name}")
        except Exception:
            check.record_failure("non-compliance", vendor.id)


def _check_pending(check: _Check):
    requests = db_ops.find_stale_pending_requests(check.db, REMINDER_INTERVAL_DAYS, check.now)
    logger.info("Found %d pending certificate requests", len(requests))

    for request in requests:
        try:
            vendor: Vendor = request.vendor
            if vendor.exempt_from_insurance:
                continue
            if not should_notify(NotificationKind.PENDING_REQUEST, request.reminder_sent_at, check.now, request.created_at):
                continue
            days_pending = days_between(request.created_at, check.today)
            subject = f"Pending Certificate Request: {vendor.name} ({days_pending} days)"
            html_body = email_templates.pending_request_reminder_template(
                vendor_name=vendor.name,
                broker_email=vendor.broker_email or "Not provided",
                broker_name=vendor.broker_name or "",
                requested_date=format_long_date(request.created_at.date()),
                days_pending=days_pending,
                vendor_url=vendor_insurance_url(vendor.id),
            )
            if not check.deliver(subject, html_body):
                continue
            db_ops.update_certificate_request(check.db, request.id, {"reminder_sent_at": check.today})
            check.sent.append(f"Sent pending request reminder for {vendor.name} ({days_pending} days)")
        except Exception:
            check.record_failure("pending request", request.id)


def _run(check_fn, db: Session, now: datetime, send: Optional[Mailer], recipients: Optional[list[str]]) -> _Check:
    check = _Check(db, now, send, recipients)
    check_fn(check)
    return check


def check_expiring_certificates(db: Session, now: datetime, send: Mailer = None, recipients: list[str] = None) -> list[str]:
    return _run(_check_expiring, db, now, send, recipients).sent


def check_expired_certificates(db: Session, now: datetime, send: Mailer = None, recipients: list[str] = None) -> list[str]:
    return _run(_check_expired, db, now, send, recipients).sent


def check_non_compliant_vendors(db: Session, now: datetime, send: Mailer = None, recipients: list[str] = None) -> list[str]:
    return _run(_check_non_compliant, db, now, send, recipients).sent


def check_pending_requests(db: Session, now: datetime, send: Mailer = None, recipients: list[str] = None) -> list[str]:
    return _run(_check_pending, db, now, send, recipients).sent


def run_notification_checks(db: Session, now: datetime, send: Mailer = None) -> NotificationRunResult:
    """Run every notification check once for `now`."""
    logger.info("Running notification checks for %s", now.isoformat())
    recipients = config.get_notification_recipients()

    checks = {
        "expiring": _run(_check_expiring, db, now, send, recipients),
        "expired": _run(_check_expired, db, now, send, recipients),
        "non_compliant": _run(_check_non_compliant, db, now, send, recipients),
        "pending": _run(_check_pending, db, now, send, recipients),
    }
    result = NotificationRunResult(
        run_at=now,
        failures=sum(c.failures for c in checks.values()),
        **{name: c.sent for name, c in checks.items()},
    )

    logger.info(
        "Sent %d notifications (expiring=%d, expired=%d, non_compliant=%d, pending=%d, failures=%d)",
        result.total, len(result.expiring), len(result.expired),
        len(result.non_compliant), len(result.pending), result.failures,
    )
    return result
