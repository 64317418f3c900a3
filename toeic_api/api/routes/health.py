"""
Health check endpoints for deployment monitoring.
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from toeic_api.core import config
from toeic_api.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


def _database_status(db: Session) -> str:
    try:
        db.execute(text("SELECT 1"))
        return "connected"
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        return "error"


@router.get("")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint for deployment monitoring.

    Returns 200 with status "degraded" when the database is unreachable.
    """
    db_status = _database_status(db)
    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "database": db_status,
        "version": config.APP_VERSION,
    }


@router.get("/live")
def liveness():
    return {"status": "alive"}


@router.get("/ready")
def readiness(db: Session = Depends(get_db)):
    """503 until the database answers."""
    if _database_status(db) != "connected":
        return JSONResponse(status_code=503, content={"status": "not_ready", "database": "error"})
    return {"status": "ready", "database": "connected"}
