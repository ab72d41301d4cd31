"""
Health check endpoint.
"""
from datetime import datetime, timezone
import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from config import settings
from evm_client import evm_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Health check — verifies chain RPC connectivity."""
    try:
        status_info = await evm_client.get_status()
        return {
            "status": "healthy",
            "chain_connected": True,
            "chain_id": status_info.get("chainId"),
            "block_number": status_info.get("blockNumber"),
            "yield_backend": settings.yield_backend,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "chain_connected": False,
                "error": str(e),
            },
        )
