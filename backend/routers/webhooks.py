import json
import logging

from fastapi import APIRouter, HTTPException, Request

import config
from routers.common import request_time, require_db
from schemas.brokermatic import WebhookEvent, WebhookPayload
from services.webhooks import dispatch_webhook, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["webhooks"])


@router.post("/webhooks/brokermatic")
async def receive_brokermatic_webhook(request: Request):
    """Receive Brokermatic events. Processing errors are logged and acknowledged."""
    body = await request.body()
    signature = request.headers.get("x-brokermatic-signature")
    if not verify_signature(body, signature, config.BROKERMATIC_WEBHOOK_SECRET):
        logger.error("Rejected Brokermatic webhook with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = WebhookPayload.from_wire(json.loads(body))
    except (ValueError, AttributeError) as e:
        logger.error("Malformed Brokermatic webhook body: %s", e)
        return {"received": True, "error": "Processing error logged"}

    logger.info("Received Brokermatic event %s (%s)", payload.event, payload.id)
    db = require_db()
    try:
        dispatch_webhook(db, payload, request_time())
    except Exception:
        # Processing errors are still acknowledged with 200
        logger.exception("Error processing Brokermatic webhook %s", payload.id)
        db.rollback()
        return {"received": True, "error": "Processing error logged"}
    finally:
        db.close()

    return {"received": True}


@router.get("/webhooks/brokermatic")
async def brokermatic_webhook_status():
    return {
        "status": "active",
        "endpoint": "/api/webhooks/brokermatic",
        "events": [e.value for e in WebhookEvent],
    }
