from datetime import datetime

from fastapi import HTTPException

from database import get_db
from services.cadence import as_naive_utc


def require_db():
    """Open a session, or 503 when no database is configured"""
    db = get_db()
    if db is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    return db


def request_time(as_of: datetime = None) -> datetime:
    if as_of is None:
        return datetime.utcnow()
    return as_naive_utc(as_of)
