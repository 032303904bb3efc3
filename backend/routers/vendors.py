import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from routers.common import request_time, require_db
from schemas.vendor import RequestInsuranceInput, RequestInsuranceResponse, VendorComplianceResponse
from services.compliance import display_label
from services.db_ops import get_vendor
from services.exceptions import BrokermaticError, DuplicateRequestError, RequirementConfigError, VendorNotFoundError
from services.vendor_compliance import open_certificate_request, refresh_vendor_compliance

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["vendors"])


@router.post("/vendors/{vendor_id}/request-insurance", response_model=RequestInsuranceResponse)
def request_insurance(vendor_id: int, input: RequestInsuranceInput):
    """Submit a certificate request to Brokermatic for a vendor"""
    if not input.broker_email or "@" not in input.broker_email:
        raise HTTPException(status_code=400, detail="Broker email is required")

    db = require_db()
    try:
        request = open_certificate_request(
            db,
            vendor_id,
            broker_email=input.broker_email,
            broker_name=input.broker_name,
            project_description=input.project_description,
            now=request_time(),
        )
        return RequestInsuranceResponse(
            request_id=request.broker_request_id,
            certificate_request_id=request.id,
            external_id=request.external_id,
            status=request.status,
        )
    except VendorNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DuplicateRequestError as e:
        return JSONResponse(
            status_code=409,
            content={
                "detail": str(e),
                "certificate_request_id": e.request_id,
                "request_id": e.broker_request_id,
            },
        )
    except RequirementConfigError as e:
        logger.error("Invalid insurance requirement for vendor %s: %s", vendor_id, e)
        raise HTTPException(status_code=500, detail=str(e))
    except BrokermaticError as e:
        logger.error("Brokermatic rejected request for vendor %s: %s", vendor_id, e)
        raise HTTPException(status_code=502, detail=str(e))
    finally:
        db.close()


@router.post("/vendors/{vendor_id}/compliance-check", response_model=VendorComplianceResponse)
def check_vendor_compliance(vendor_id: int, as_of: Optional[datetime] = None):
    """Re-evaluate a vendor's certificates and store the verdict"""
    now = request_time(as_of)
    db = require_db()
    try:
        result = refresh_vendor_compliance(db, vendor_id, now)
        vendor = get_vendor(db, vendor_id)
        return VendorComplianceResponse(
            vendor_id=vendor_id,
            insurance_status=vendor.insurance_status,
            display_status=display_label(result) if result else None,
            checked_at=now,
            result=result,
        )
    except VendorNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RequirementConfigError as e:
        logger.error("Invalid insurance requirement for vendor %s: %s", vendor_id, e)
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        db.close()
