from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from schemas.compliance import ComplianceResult, CoverageType


class RequestInsuranceInput(BaseModel):
    broker_email: str
    broker_name: Optional[str] = None
    project_description: Optional[str] = None


class RequestInsuranceResponse(BaseModel):
    success: bool = True
    request_id: Optional[str] = None
    certificate_request_id: int
    external_id: Optional[str] = None
    status: str
    message: str = "Insurance certificate request submitted successfully"


class CertificateInput(BaseModel):
    vendor_id: int
    coverage_type: str
    policy_number: Optional[str] = None
    carrier_name: Optional[str] = None
    required_amount: Optional[int] = None
    aggregate_amount: Optional[int] = None
    each_occurrence_amount: Optional[int] = None
    additional_insured: Optional[bool] = None
    waiver_of_subrogation: Optional[bool] = None
    primary_non_contributory: Optional[bool] = None
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None

    @field_validator("coverage_type")
    @classmethod
    def normalize_coverage_type(cls, v: str) -> str:
        return CoverageType.parse(v).value

    @field_validator("required_amount", "aggregate_amount", "each_occurrence_amount")
    @classmethod
    def reject_negative_amounts(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("Coverage amounts cannot be negative")
        return v


class CertificateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    vendor_id: int
    coverage_type: str
    policy_number: Optional[str] = None
    carrier_name: Optional[str] = None
    required_amount: Optional[int] = None
    aggregate_amount: Optional[int] = None
    each_occurrence_amount: Optional[int] = None
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    compliance_status: str
    brokermatic_cert_id: Optional[str] = None


class VendorComplianceResponse(BaseModel):
    vendor_id: int
    insurance_status: str
    display_status: Optional[str] = None
    checked_at: datetime
    result: Optional[ComplianceResult] = None


class ParseCertificateResponse(BaseModel):
    storage_key: str
    extracted_data: dict
    confidence: Optional[float] = None
    warnings: list = []


class BrokermaticCheckResponse(BaseModel):
    certificate_id: int
    brokermatic_cert_id: str
    overall_result: str
    checked_at: Optional[str] = None
    results: dict = {}
