from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator


class CoverageType(str, Enum):
    GENERAL_LIABILITY = "general_liability"
    WORKERS_COMPENSATION = "workers_compensation"
    AUTO_LIABILITY = "auto_liability"
    UMBRELLA_LIABILITY = "umbrella_liability"
    ENVIRONMENTAL = "environmental"
    PROFESSIONAL_LIABILITY = "professional_liability"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")

    @classmethod
    def parse(cls, value) -> "CoverageType":
        """Resolve the spellings used by certificates, seed data and Brokermatic."""
        if isinstance(value, cls):
            return value
        key = str(value).strip()
        resolved = COVERAGE_ALIASES.get(key) or COVERAGE_ALIASES.get(key.lower())
        if resolved is None:
            raise ValueError(f"Unknown coverage type: {value!r}")
        return resolved


COVERAGE_ALIASES = {
    "general_liability": CoverageType.GENERAL_LIABILITY,
    "generalLiability": CoverageType.GENERAL_LIABILITY,
    "gl": CoverageType.GENERAL_LIABILITY,
    "workers_compensation": CoverageType.WORKERS_COMPENSATION,
    "workersCompensation": CoverageType.WORKERS_COMPENSATION,
    "workers_comp": CoverageType.WORKERS_COMPENSATION,
    "wc": CoverageType.WORKERS_COMPENSATION,
    "auto_liability": CoverageType.AUTO_LIABILITY,
    "autoLiability": CoverageType.AUTO_LIABILITY,
    "commercial_auto": CoverageType.AUTO_LIABILITY,
    "auto": CoverageType.AUTO_LIABILITY,
    "umbrella_liability": CoverageType.UMBRELLA_LIABILITY,
    "umbrellaLiability": CoverageType.UMBRELLA_LIABILITY,
    "umbrella": CoverageType.UMBRELLA_LIABILITY,
    "excess": CoverageType.UMBRELLA_LIABILITY,
    "environmental": CoverageType.ENVIRONMENTAL,
    "environmentalLiability": CoverageType.ENVIRONMENTAL,
    "environmental_liability": CoverageType.ENVIRONMENTAL,
    "env": CoverageType.ENVIRONMENTAL,
    "professional_liability": CoverageType.PROFESSIONAL_LIABILITY,
    "professionalLiability": CoverageType.PROFESSIONAL_LIABILITY,
    "professional": CoverageType.PROFESSIONAL_LIABILITY,
}


class GapKind(str, Enum):
    MISSING_COVERAGE = "missing_coverage"
    INSUFFICIENT_LIMITS = "insufficient_limits"
    MISSING_FLAG = "missing_flag"
    EXPIRED = "expired"
    EXPIRING_SOON = "expiring_soon"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


GAP_SEVERITY = {
    GapKind.MISSING_COVERAGE: Severity.CRITICAL,
    GapKind.INSUFFICIENT_LIMITS: Severity.CRITICAL,
    GapKind.MISSING_FLAG: Severity.CRITICAL,
    GapKind.EXPIRED: Severity.CRITICAL,
    GapKind.EXPIRING_SOON: Severity.INFO,
}


class CoverageStatus(str, Enum):
    PASS = "pass"
    WARNING = "warning"
    FAIL = "fail"


class ComplianceOutcome(str, Enum):
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"


class InsuranceStatus(str, Enum):
    PENDING = "pending"
    REQUESTED = "requested"
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


class CertificateStatus(str, Enum):
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    PENDING = "pending"
    EXPIRED = "expired"
    EXPIRING = "expiring"


class RequestStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"


OPEN_REQUEST_STATUSES = (RequestStatus.PENDING, RequestStatus.FULFILLED)


class CoverageRequirement(BaseModel):
    min_limits: dict[str, int] = {}
    required_flags: set[str] = set()

    @field_validator("min_limits")
    @classmethod
    def reject_negative_limits(cls, v: dict[str, int]) -> dict[str, int]:
        for name, amount in v.items():
            if amount < 0:
                raise ValueError(f"Minimum limit {name} cannot be negative (got {amount})")
        return v


class RequirementSpec(BaseModel):
    """Required coverages for one vendor. Coverage types absent from the map are not required."""
    coverages: dict[CoverageType, CoverageRequirement] = {}

    @field_validator("coverages", mode="before")
    @classmethod
    def normalize_coverage_keys(cls, v):
        if isinstance(v, dict):
            return {CoverageType.parse(key): value for key, value in v.items()}
        return v


class CertificateCoverage(BaseModel):
    coverage_type: CoverageType
    limits: dict[str, int] = {}
    flags: dict[str, bool] = {}
    # None means the policy never expires
    expiration_date: Optional[date] = None
    certificate_id: Optional[int] = None
    policy_number: Optional[str] = None

    @field_validator("coverage_type", mode="before")
    @classmethod
    def parse_coverage_type(cls, v):
        return CoverageType.parse(v)


class ComplianceGap(BaseModel):
    coverage_type: CoverageType
    kind: GapKind
    severity: Severity
    message: str
    limit_name: Optional[str] = None
    required: Optional[int] = None
    actual: Optional[int] = None
    flag: Optional[str] = None
    certificate_id: Optional[int] = None


class CoverageResult(BaseModel):
    coverage_type: CoverageType
    status: CoverageStatus
    certificate_id: Optional[int] = None
    expiration_date: Optional[date] = None
    days_until_expiration: Optional[int] = None


class ComplianceResult(BaseModel):
    status: ComplianceOutcome
    evaluated_on: date
    coverages: list[CoverageResult] = []
    gaps: list[ComplianceGap] = []

    @property
    def critical_gaps(self) -> list[ComplianceGap]:
        return [gap for gap in self.gaps if gap.severity == Severity.CRITICAL]
