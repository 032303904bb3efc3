from schemas.compliance import (
    CoverageType, GapKind, Severity, CoverageStatus, ComplianceOutcome,
    InsuranceStatus, CertificateStatus, RequestStatus,
    CoverageRequirement, RequirementSpec, CertificateCoverage,
    ComplianceGap, CoverageResult, ComplianceResult,
)
from schemas.vendor import (
    RequestInsuranceInput, RequestInsuranceResponse, CertificateInput, CertificateOut,
    VendorComplianceResponse, ParseCertificateResponse, BrokermaticCheckResponse,
)
from schemas.notification import NotificationRunResult, NotificationCheckResponse
from schemas.brokermatic import WebhookEvent, WebhookPayload
