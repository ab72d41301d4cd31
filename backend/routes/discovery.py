"""
Counterparty discovery endpoints.

The device app reads NFC tags and camera frames itself and forwards what it
sees; the session on the server races both feeds and starts the payment once
a valid address wins.
"""
import logging

from fastapi import APIRouter, Depends, Query

from deps import get_custodian, get_session_manager
from domain.errors import NotFoundError
from models import (
    DiscoveryStatusResponse,
    OpticalFrameRequest,
    ProximityRecordRequest,
    ReceivePayloadResponse,
)
from services.discovery_service import build_receive_payloads
from services.session_service import PaymentSessionManager
from services.wallet_service import KeyCustodian

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/discovery", tags=["discovery"])
receive_router = APIRouter(prefix="/receive", tags=["discovery"])


@router.post("/start", response_model=DiscoveryStatusResponse)
async def start_discovery(
    auto_pay: bool = Query(True, alias="autoPay"),
    sessions: PaymentSessionManager = Depends(get_session_manager),
):
    """Listen on both channels; with autoPay the pipeline starts on resolution."""
    await sessions.start_discovery(auto_pay=auto_pay)
    return sessions.get_discovery_status()


@router.post("/proximity", status_code=202)
async def push_proximity_record(
    request: ProximityRecordRequest,
    sessions: PaymentSessionManager = Depends(get_session_manager),
):
    sessions.push_proximity_record(request.ndef_hex)
    return {"accepted": True}


@router.post("/frame", status_code=202)
async def push_optical_frame(
    request: OpticalFrameRequest,
    sessions: PaymentSessionManager = Depends(get_session_manager),
):
    sessions.push_optical_frame(request.payload)
    return {"accepted": True}


@router.get("", response_model=DiscoveryStatusResponse)
async def get_discovery_status(sessions: PaymentSessionManager = Depends(get_session_manager)):
    return sessions.get_discovery_status()


@router.delete("")
async def cancel_discovery(sessions: PaymentSessionManager = Depends(get_session_manager)):
    return {"cancelled": await sessions.cancel_discovery()}


# ── GET /receive ───────────────────────────────────────────────────

@receive_router.get("", response_model=ReceivePayloadResponse)
async def get_receive_payloads(custodian: KeyCustodian = Depends(get_custodian)):
    """
    What this device shows (QR) or emits (NFC) so a payer can find it.

    Receiving goes to the main wallet, never to the disposable burner.
    """
    address = await custodian.get_main_wallet()
    if address is None:
        raise NotFoundError("Main wallet", "not bound")
    payloads = build_receive_payloads(address)
    return ReceivePayloadResponse(
        address=address,
        optical_payload=payloads["optical_payload"],
        ndef_hex=payloads["ndef"].hex(),
    )
