from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class WebhookEvent(str, Enum):
    CERTIFICATE_ISSUED = "certificate.issued"
    CERTIFICATE_UPDATED = "certificate.updated"
    CERTIFICATE_EXPIRING = "certificate.expiring"
    CERTIFICATE_EXPIRED = "certificate.expired"
    POLICY_CANCELLED = "policy.cancelled"
    POLICY_RENEWED = "policy.renewed"
    COMPLIANCE_GAP = "compliance.gap"


class WebhookChange(BaseModel):
    field: str
    old_value: Any = None
    new_value: Any = None


class WebhookGap(BaseModel):
    type: Optional[str] = None
    message: str
    severity: Optional[str] = None


class WebhookData(BaseModel):
    certificate: dict
    request_id: Optional[str] = None
    changes: list[WebhookChange] = []
    days_remaining: Optional[int] = None
    gaps: list[WebhookGap] = []


class WebhookPayload(BaseModel):
    id: str
    # Kept as a string so unknown events can be logged and acknowledged
    event: str
    timestamp: Optional[str] = None
    data: WebhookData

    @classmethod
    def from_wire(cls, raw: dict) -> "WebhookPayload":
        """Map Brokermatic's camelCase payload onto the model"""
        data = dict(raw.get("data") or {})
        changes = [
            {"field": c.get("field"), "old_value": c.get("oldValue"), "new_value": c.get("newValue")}
            for c in data.get("changes") or []
        ]
        return cls(
            id=raw.get("id", ""),
            event=raw.get("event", ""),
            timestamp=raw.get("timestamp"),
            data=WebhookData(
                certificate=data.get("certificate") or {},
                request_id=data.get("requestId"),
                changes=changes,
                days_remaining=data.get("daysRemaining"),
                gaps=data.get("gaps") or [],
            ),
        )
