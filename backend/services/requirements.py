"""
Conversions between stored records, RequirementSpec and the Brokermatic
requirement payload.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from config import BROKERMATIC_HOLDER_ID
from data.requirements import (
    BROKERMATIC_COVERAGE_KEYS,
    BROKERMATIC_FLAG_KEYS,
    BROKERMATIC_LIMIT_KEYS,
    OPTIONAL_REQUIREMENTS,
    STANDARD_REQUIREMENTS,
)
from models import Certificate, InsuranceRequirement
from schemas.compliance import CertificateCoverage, CoverageType, RequirementSpec
from services.exceptions import RequirementConfigError

logger = logging.getLogger(__name__)

# InsuranceRequirement column prefix per coverage type
REQUIREMENT_PREFIXES = {
    CoverageType.GENERAL_LIABILITY: "gl",
    CoverageType.UMBRELLA_LIABILITY: "excess",
    CoverageType.AUTO_LIABILITY: "auto",
    CoverageType.ENVIRONMENTAL: "env",
    CoverageType.PROFESSIONAL_LIABILITY: "prof",
}

# Limit name -> column suffix (requirement) / column (certificate)
REQUIREMENT_LIMIT_SUFFIXES = {
    "required": "required",
    "aggregate": "aggregate",
    "eachOccurrence": "each_occurrence",
}

CERTIFICATE_LIMIT_COLUMNS = {
    "required": "required_amount",
    "aggregate": "aggregate_amount",
    "eachOccurrence": "each_occurrence_amount",
}

CERTIFICATE_FLAG_COLUMNS = {
    "additionalInsured": "additional_insured",
    "waiverOfSubrogation": "waiver_of_subrogation",
    "primaryNonContributory": "primary_non_contributory",
}

BROKERMATIC_LIMIT_NAMES = {v: k for k, v in BROKERMATIC_LIMIT_KEYS.items()}
BROKERMATIC_FLAG_NAMES = {v: k for k, v in BROKERMATIC_FLAG_KEYS.items()}


def build_spec(coverages: dict) -> RequirementSpec:
    """Validate a raw coverage map, turning validation failures into RequirementConfigError."""
    try:
        return RequirementSpec(coverages=coverages)
    except ValidationError as e:
        raise RequirementConfigError(f"Invalid insurance requirement: {e}") from e
    except ValueError as e:
        raise RequirementConfigError(str(e)) from e


def standard_requirement_spec() -> RequirementSpec:
    return build_spec(STANDARD_REQUIREMENTS)


def requirement_spec_from_record(requirement: Optional[InsuranceRequirement]) -> RequirementSpec:
    """Build a RequirementSpec from a vendor's InsuranceRequirement row.

    Vendors without a row are held to the standard holder requirements. A
    coverage is required when any of its amounts is set; the additional
    insured and waiver flags apply to general liability.
    """
    if requirement is None:
        return standard_requirement_spec()

    coverages = {}
    for coverage, prefix in REQUIREMENT_PREFIXES.items():
        limits = {}
        for limit_name, suffix in REQUIREMENT_LIMIT_SUFFIXES.items():
            amount = getattr(requirement, f"{prefix}_{suffix}")
            if amount is not None:
                limits[limit_name] = amount
        if limits:
            coverages[coverage] = {"min_limits": limits, "required_flags": []}

    gl_flags = []
    if requirement.additional_insured_required:
        gl_flags.append("additionalInsured")
    if requirement.waiver_of_subrogation_required:
        gl_flags.append("waiverOfSubrogation")
    if gl_flags:
        gl = coverages.setdefault(CoverageType.GENERAL_LIABILITY, {"min_limits": {}, "required_flags": []})
        gl["required_flags"] = gl_flags

    if requirement.workers_comp_required:
        coverages[CoverageType.WORKERS_COMPENSATION] = {"min_limits": {}, "required_flags": []}

    return build_spec(coverages)


def coverage_from_certificate(certificate: Certificate) -> CertificateCoverage:
    limits = {}
    for limit_name, column in CERTIFICATE_LIMIT_COLUMNS.items():
        amount = getattr(certificate, column)
        if amount is not None:
            limits[limit_name] = amount

    flags = {}
    for flag, column in CERTIFICATE_FLAG_COLUMNS.items():
        value = getattr(certificate, column)
        if value is not None:
            flags[flag] = bool(value)

    return CertificateCoverage(
        coverage_type=certificate.coverage_type,
        limits=limits,
        flags=flags,
        expiration_date=certificate.expiration_date,
        certificate_id=certificate.id,
        policy_number=certificate.policy_number,
    )


def coverages_from_certificates(certificates: list[Certificate]) -> list[CertificateCoverage]:
    """Convert stored certificates, skipping rows whose coverage type is unknown."""
    coverages = []
    for certificate in certificates:
        try:
            coverages.append(coverage_from_certificate(certificate))
        except (ValidationError, ValueError) as e:
            logger.warning("Skipping certificate %s: %s", certificate.id, e)
    return coverages


# ============== BROKERMATIC FORMAT ==============

def to_brokermatic_requirements(spec: RequirementSpec, project_description: str, insured_name: str) -> dict:
    """Render a RequirementSpec as a Brokermatic compliance requirement payload.

    Optional holder coverages that are not required are listed with
    required=False so the broker sees them.
    """
    requirements = {}
    for coverage in CoverageType:
        key = BROKERMATIC_COVERAGE_KEYS[coverage.value]
        requirement = spec.coverages.get(coverage)
        if requirement is None:
            optional = OPTIONAL_REQUIREMENTS.get(coverage.value)
            if optional:
                requirements[key] = {"required": False, "minLimits": dict(optional["min_limits"])}
            continue

        entry = {"required": True}
        if requirement.min_limits:
            entry["minLimits"] = {
                BROKERMATIC_LIMIT_KEYS.get(name, name): amount
                for name, amount in requirement.min_limits.items()
            }
        for flag in sorted(requirement.required_flags):
            entry[BROKERMATIC_FLAG_KEYS.get(flag, "require" + flag[0].upper() + flag[1:])] = True
        if coverage == CoverageType.WORKERS_COMPENSATION:
            entry["requireStatutoryLimits"] = True
        requirements[key] = entry

    return {
        "holderId": BROKERMATIC_HOLDER_ID,
        "insuredName": insured_name,
        "projectDescription": project_description,
        "requirements": requirements,
    }


def requirement_spec_from_brokermatic(requirements: dict) -> RequirementSpec:
    """Inverse of to_brokermatic_requirements for the 'requirements' block."""
    coverages = {}
    for key, entry in (requirements or {}).items():
        if not entry or not entry.get("required"):
            continue
        limits = {
            BROKERMATIC_LIMIT_NAMES.get(name, name): amount
            for name, amount in (entry.get("minLimits") or {}).items()
        }
        flags = [BROKERMATIC_FLAG_NAMES[k] for k, v in entry.items() if k in BROKERMATIC_FLAG_NAMES and v]
        coverages[key] = {"min_limits": limits, "required_flags": flags}
    return build_spec(coverages)
