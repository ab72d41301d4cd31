"""
Payment endpoints — start a pipeline run and poll its progress.

POST /payment returns immediately (202); the run continues in the
background and GET /payment/status shows the step log.
"""
import logging

from fastapi import APIRouter, Depends, status

from deps import get_session_manager
from models import PaymentStatusResponse, StartPaymentRequest
from services.session_service import PaymentSessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment", tags=["payment"])


@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=PaymentStatusResponse)
async def start_payment(
    request: StartPaymentRequest,
    sessions: PaymentSessionManager = Depends(get_session_manager),
):
    """
    Pay a known counterparty address.

    400 on an invalid address or unbound main wallet, 409 while a run is active.
    """
    await sessions.start_payment(request.target_address)
    return sessions.get_payment_status()


@router.get("/status", response_model=PaymentStatusResponse)
async def get_payment_status(sessions: PaymentSessionManager = Depends(get_session_manager)):
    return sessions.get_payment_status()
