import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Header, HTTPException

import config
from routers.common import request_time, require_db
from schemas.notification import NotificationCheckResponse
from services.notifications import run_notification_checks

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["notifications"])


@router.post("/notifications/check", response_model=NotificationCheckResponse)
def trigger_notification_checks(
    x_api_key: Optional[str] = Header(default=None),
    as_of: Optional[datetime] = None,
):
    """Run all notification checks. Called daily by the scheduler."""
    if x_api_key != config.NOTIFICATION_API_KEY:
        raise HTTPException(status_code=401, detail="Unauthorized")

    now = request_time(as_of)
    db = require_db()
    try:
        results = run_notification_checks(db, now)
    except Exception as e:
        logger.exception("Notification checks failed")
        raise HTTPException(status_code=500, detail=f"Failed to run notification checks: {e}")
    finally:
        db.close()

    return NotificationCheckResponse(
        success=True,
        timestamp=now,
        summary={
            "expiring": len(results.expiring),
            "expired": len(results.expired),
            "non_compliant": len(results.non_compliant),
            "pending": len(results.pending),
            "total_sent": results.total,
        },
        results=results,
    )


@router.get("/notifications/check")
def notification_service_status():
    return {
        "status": "ok",
        "message": "Notification service is running",
        "timestamp": datetime.utcnow().isoformat(),
    }
