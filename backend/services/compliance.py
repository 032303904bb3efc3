"""
Certificate compliance evaluation.

evaluate_compliance() compares a vendor's certificate coverages with a
RequirementSpec on an explicit evaluation date. It has no side effects, so
running it twice on the same inputs yields identical results.
"""

from datetime import date
from typing import Iterable, Optional

from schemas.compliance import (
    GAP_SEVERITY,
    CertificateCoverage,
    ComplianceGap,
    ComplianceOutcome,
    ComplianceResult,
    CoverageRequirement,
    CoverageResult,
    CoverageStatus,
    CoverageType,
    GapKind,
    RequirementSpec,
)
from services.exceptions import RequirementConfigError

EXPIRING_SOON_DAYS = 30

# Coverage types are always evaluated in this order
COVERAGE_ORDER = list(CoverageType)


def format_amount(amount: int) -> str:
    return f"${amount:,}"


def _gap(coverage: CoverageType, kind: GapKind, message: str, **details) -> ComplianceGap:
    return ComplianceGap(
        coverage_type=coverage,
        kind=kind,
        severity=GAP_SEVERITY[kind],
        message=message,
        **details,
    )


def validate_requirement_spec(spec: RequirementSpec):
    """Raise RequirementConfigError for limits that can never be meaningfully checked."""
    for coverage, requirement in spec.coverages.items():
        for name, amount in requirement.min_limits.items():
            if amount is None or amount < 0:
                raise RequirementConfigError(
                    f"{coverage.label}: minimum limit {name} must be a non-negative amount (got {amount!r})"
                )


def select_certificate(candidates: list[CertificateCoverage]) -> Optional[CertificateCoverage]:
    """Rank certificates of one coverage type.

    The latest expiration wins (no expiration ranks latest), ties go to the
    lowest certificate id.
    """
    if not candidates:
        return None

    def rank(cert: CertificateCoverage):
        expires = cert.expiration_date or date.max
        cert_id = cert.certificate_id if cert.certificate_id is not None else -1
        return (expires, -cert_id)

    return max(candidates, key=rank)


def _check_coverage(
    coverage: CoverageType,
    requirement: CoverageRequirement,
    cert: Optional[CertificateCoverage],
    evaluation_date: date,
) -> tuple[CoverageResult, list[ComplianceGap]]:
    if cert is None:
        gap = _gap(
            coverage,
            GapKind.MISSING_COVERAGE,
            f"Missing required coverage: {coverage.label}",
        )
        return CoverageResult(coverage_type=coverage, status=CoverageStatus.FAIL), [gap]

    gaps = []
    for limit_name, required in requirement.min_limits.items():
        actual = cert.limits.get(limit_name) or 0
        if actual < required:
            gaps.append(_gap(
                coverage,
                GapKind.INSUFFICIENT_LIMITS,
                f"{coverage.label}: {limit_name} is insufficient "
                f"(required: {format_amount(required)}, actual: {format_amount(actual)})",
                limit_name=limit_name,
                required=required,
                actual=actual,
                certificate_id=cert.certificate_id,
            ))

    for flag in sorted(requirement.required_flags):
        if not cert.flags.get(flag, False):
            gaps.append(_gap(
                coverage,
                GapKind.MISSING_FLAG,
                f"{coverage.label}: {flag} is required but not shown on the certificate",
                flag=flag,
                certificate_id=cert.certificate_id,
            ))

    days_left = None
    if cert.expiration_date is not None:
        days_left = (cert.expiration_date - evaluation_date).days
        if cert.expiration_date < evaluation_date:
            gaps.append(_gap(
                coverage,
                GapKind.EXPIRED,
                f"{coverage.label}: policy expired on {cert.expiration_date.isoformat()}",
                certificate_id=cert.certificate_id,
            ))

    if gaps:
        status = CoverageStatus.FAIL
    elif days_left is not None and days_left <= EXPIRING_SOON_DAYS:
        status = CoverageStatus.WARNING
        gaps.append(_gap(
            coverage,
            GapKind.EXPIRING_SOON,
            f"{coverage.label}: policy expires in {days_left} days",
            certificate_id=cert.certificate_id,
        ))
    else:
        status = CoverageStatus.PASS

    result = CoverageResult(
        coverage_type=coverage,
        status=status,
        certificate_id=cert.certificate_id,
        expiration_date=cert.expiration_date,
        days_until_expiration=days_left,
    )
    return result, gaps


def _check_candidates(
    coverage: CoverageType,
    requirement: CoverageRequirement,
    candidates: list[CertificateCoverage],
    evaluation_date: date,
) -> tuple[CoverageResult, list[ComplianceGap]]:
    """Check every certificate of a coverage type and report the best one.

    Certificates that satisfy the requirement are preferred over failing ones;
    within either group select_certificate decides.
    """
    if not candidates:
        return _check_coverage(coverage, requirement, None, evaluation_date)

    checked = [(cert, *_check_coverage(coverage, requirement, cert, evaluation_date)) for cert in candidates]
    satisfying = [c for c in checked if c[1].status != CoverageStatus.FAIL]
    pool = satisfying or checked
    chosen = select_certificate([cert for cert, _, _ in pool])
    for cert, result, gaps in pool:
        if cert is chosen:
            return result, gaps


def evaluate_compliance(
    spec: RequirementSpec,
    certificates: Iterable[CertificateCoverage],
    evaluation_date: date,
) -> ComplianceResult:
    """Evaluate certificates against every required coverage."""
    validate_requirement_spec(spec)

    by_type: dict[CoverageType, list[CertificateCoverage]] = {}
    for cert in certificates:
        by_type.setdefault(cert.coverage_type, []).append(cert)

    coverage_results = []
    gaps = []
    for coverage in COVERAGE_ORDER:
        requirement = spec.coverages.get(coverage)
        if requirement is None:
            continue
        result, coverage_gaps = _check_candidates(
            coverage, requirement, by_type.get(coverage, []), evaluation_date
        )
        coverage_results.append(result)
        gaps.extend(coverage_gaps)

    if any(r.status == CoverageStatus.FAIL for r in coverage_results):
        outcome = ComplianceOutcome.NON_COMPLIANT
    else:
        outcome = ComplianceOutcome.COMPLIANT

    return ComplianceResult(
        status=outcome,
        evaluated_on=evaluation_date,
        coverages=coverage_results,
        gaps=gaps,
    )


def display_label(result: ComplianceResult) -> str:
    """Dashboard label. 'partial' is only a presentation of non_compliant."""
    if result.status == ComplianceOutcome.COMPLIANT:
        return "compliant"
    if any(r.status != CoverageStatus.FAIL for r in result.coverages):
        return "partial"
    return "non_compliant"
