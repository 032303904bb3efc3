from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class NotificationRunResult(BaseModel):
    """Descriptions of the messages actually sent, per category"""
    run_at: datetime
    expiring: list[str] = []
    expired: list[str] = []
    non_compliant: list[str] = []
    pending: list[str] = []
    failures: int = 0

    @property
    def total(self) -> int:
        return len(self.expiring) + len(self.expired) + len(self.non_compliant) + len(self.pending)


class NotificationCheckResponse(BaseModel):
    success: bool
    timestamp: datetime
    summary: dict[str, int]
    results: Optional[NotificationRunResult] = None
