from fastapi import APIRouter, Depends, HTTPException, status
from app.core.dependencies import get_hub
from app.db.core import get_session
from app.realtime.hub import Hub
from sqlmodel import Session, text
from loguru import logger

router = APIRouter()


@router.get("/", status_code=status.HTTP_200_OK)
def index():
    return {"status": "API is running"}


@router.get("/readiness", status_code=status.HTTP_200_OK)
def readiness_check(
    session: Session = Depends(get_session),
    hub: Hub = Depends(get_hub)
):
    try:
        session.exec(text("SELECT 1"))
    except Exception:
        logger.exception("Database readiness check failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not ready"
        )

    return {
        "status": "ready",
        "database": "online",
        "realtime": "running" if hub.is_running else "stopped",
        "connections": hub.connection_count
    }
