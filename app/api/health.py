"""
Health check and status endpoints
"""
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import __version__
from app.config import get_settings
from app.models.base import get_db
from app.utils.logger import log

router = APIRouter()


@router.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Liveness plus a one-query database check"""
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        log.error(f"Health check database query failed: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__,
    }


@router.get("/status")
async def get_status():
    settings = get_settings()
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "default_currency": settings.default_currency,
        "limits": {
            "free_tier_products": settings.free_tier_product_limit,
            "subscription_alert_threshold": settings.subscription_alert_threshold,
        },
        "timestamp": datetime.utcnow().isoformat(),
    }
