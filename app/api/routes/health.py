from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from datetime import datetime
from sqlalchemy import text
from sqlalchemy.orm import Session
import structlog
from app.config.settings import settings
from app.core.database import get_database
from app.core.dependencies import get_credential_store
from app.repositories.interfaces.credential_store import ICredentialStore

logger = structlog.get_logger()

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str


@router.get("/", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check():
    """Health check endpoint"""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow(),
        version="1.0.0",
        environment=settings.environment
    )


@router.get("/readiness")
async def readiness_check(
    db: Session = Depends(get_database),
    credential_store: ICredentialStore = Depends(get_credential_store),
):
    """Readiness check endpoint"""
    checks = {}
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        logger.error("Database readiness check failed", error=str(e))
        checks["database"] = "error"

    checks["openai"] = "ok" if credential_store.is_configured() else "not_configured"

    all_ok = all(status == "ok" for status in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
        "timestamp": datetime.utcnow()
    }
