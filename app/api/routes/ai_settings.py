from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, status
import structlog

from app.core.dependencies import get_credential_store, get_provider_factory
from app.models.schemas import SaveApiKeyRequest
from app.repositories.interfaces.credential_store import ICredentialStore
from app.services.provider_access import ProviderFactory

logger = structlog.get_logger()

router = APIRouter(prefix="/ai", tags=["ai-settings"])


def _mask(api_key: str) -> str:
    if len(api_key) <= 8:
        return "***"
    return api_key[:4] + "..." + api_key[-4:]


@router.post("/save-api-key")
async def save_api_key(
    body: SaveApiKeyRequest,
    credential_store: ICredentialStore = Depends(get_credential_store)
):
    api_key = body.api_key.strip()
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="API key is required"
        )

    try:
        credential_store.set(api_key)
    except Exception as e:
        logger.error("Failed to save OpenAI API key", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error saving API key"
        )

    logger.info("OpenAI API key saved", api_key_masked=_mask(api_key))
    return {
        "success": True,
        "message": "API key saved successfully",
        "timestamp": datetime.utcnow()
    }


@router.get("/check-status")
async def check_status(
    credential_store: ICredentialStore = Depends(get_credential_store),
    provider_factory: ProviderFactory = Depends(get_provider_factory)
):
    api_key = credential_store.get()
    if not api_key:
        return {
            "success": False,
            "configured": False,
            "connected": False,
            "message": "OpenAI API key not configured",
            "timestamp": datetime.utcnow()
        }

    try:
        models = await provider_factory(api_key).list_models()
    except Exception as e:
        logger.error("Error checking OpenAI status", error=str(e), api_key_masked=_mask(api_key))
        return {
            "success": False,
            "configured": True,
            "connected": False,
            "message": f"API key configured but connection error: {e}",
            "timestamp": datetime.utcnow()
        }

    return {
        "success": True,
        "configured": True,
        "connected": True,
        "message": "OpenAI API key configured and working correctly",
        "models": len(models),
        "timestamp": datetime.utcnow()
    }


@router.post("/test-connection")
async def test_connection(
    credential_store: ICredentialStore = Depends(get_credential_store),
    provider_factory: ProviderFactory = Depends(get_provider_factory)
):
    api_key = credential_store.get()
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="OpenAI API key not configured"
        )

    try:
        models = await provider_factory(api_key).list_models()
    except Exception as e:
        logger.error("Error testing OpenAI connection", error=str(e), api_key_masked=_mask(api_key))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error connecting to OpenAI: {e}"
        )

    return {
        "success": True,
        "message": "Successful connection with OpenAI",
        "models": len(models),
        "timestamp": datetime.utcnow()
    }
