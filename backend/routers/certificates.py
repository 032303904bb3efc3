import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException

from routers.common import request_time, require_db
from schemas.vendor import BrokermaticCheckResponse, CertificateInput, CertificateOut, ParseCertificateResponse
from services.brokermatic import get_brokermatic_client
from services.exceptions import (
    BrokermaticError,
    CertificateNotFoundError,
    RequirementConfigError,
    VendorNotFoundError,
)
from services.vendor_compliance import check_certificate_with_brokermatic, submit_certificate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["certificates"])


@router.post("/certificates", response_model=CertificateOut, status_code=201)
def create_certificate(input: CertificateInput):
    """Store a certificate and re-evaluate the vendor"""
    db = require_db()
    try:
        data = input.model_dump(exclude={"vendor_id"}, exclude_none=True)
        certificate = submit_certificate(db, input.vendor_id, data, now=request_time())
        return CertificateOut.model_validate(certificate)
    except VendorNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RequirementConfigError as e:
        logger.error("Invalid insurance requirement for vendor %s: %s", input.vendor_id, e)
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        db.close()


@router.post("/certificates/parse", response_model=ParseCertificateResponse)
def parse_certificate(file_name: str = "certificate.pdf"):
    """Run Brokermatic extraction on an uploaded certificate"""
    client = get_brokermatic_client()
    try:
        upload = client.get_upload_url(file_name)
        parsed = client.parse_certificate(upload["storageKey"], request_time())
    except BrokermaticError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return ParseCertificateResponse(
        storage_key=upload["storageKey"],
        extracted_data=parsed.get("extractedData", {}),
        confidence=parsed.get("confidence"),
        warnings=parsed.get("warnings", []),
    )


@router.post("/certificates/{certificate_id}/brokermatic-check", response_model=BrokermaticCheckResponse)
def brokermatic_check(certificate_id: int, as_of: Optional[datetime] = None):
    """Have Brokermatic check a synced certificate against the vendor's requirements"""
    db = require_db()
    try:
        result = check_certificate_with_brokermatic(db, certificate_id, request_time(as_of))
        return BrokermaticCheckResponse(
            certificate_id=certificate_id,
            brokermatic_cert_id=result["certificateId"],
            overall_result=result["overallResult"],
            checked_at=result.get("checkedAt"),
            results=result.get("results") or {},
        )
    except CertificateNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RequirementConfigError as e:
        logger.error("Invalid insurance requirement for certificate %s: %s", certificate_id, e)
        raise HTTPException(status_code=500, detail=str(e))
    except (BrokermaticError, KeyError) as e:
        logger.error("Brokermatic check failed for certificate %s: %s", certificate_id, e)
        raise HTTPException(status_code=502, detail=f"Brokermatic check failed: {e}")
    finally:
        db.close()
