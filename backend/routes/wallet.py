"""
Wallet endpoints — the burner wallet and the bound main wallet.

The signing key never leaves the custodian; only the address is returned.
"""
import logging

from fastapi import APIRouter, Depends

from deps import get_custodian, get_ledger
from models import BindMainWalletRequest, WalletResponse
from services.ledger_service import BalanceLedger
from services.wallet_service import KeyCustodian

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wallet", tags=["wallet"])


# ── GET /wallet ─────────────────────────────────────────────────────

@router.get("", response_model=WalletResponse)
async def get_wallet(
    custodian: KeyCustodian = Depends(get_custodian),
    ledger: BalanceLedger = Depends(get_ledger),
):
    """
    Current burner wallet with balances. Creates the wallet on first call.
    """
    wallet = await custodian.get_or_create_wallet()
    return WalletResponse(
        address=wallet.address,
        native_balance=await ledger.get_native_balance(wallet.address),
        yield_balance=await ledger.get_yield_balance(wallet.address),
        main_wallet=await custodian.get_main_wallet(),
    )


# ── /wallet/main ────────────────────────────────────────────────────

@router.get("/main")
async def get_main_wallet(custodian: KeyCustodian = Depends(get_custodian)):
    return {"mainWallet": await custodian.get_main_wallet()}


@router.put("/main")
async def bind_main_wallet(
    request: BindMainWalletRequest,
    custodian: KeyCustodian = Depends(get_custodian),
):
    """Bind the sweep destination. Address format is validated first (400)."""
    address = await custodian.bind_main_wallet(request.address)
    return {"mainWallet": address}


@router.delete("/main")
async def unbind_main_wallet(custodian: KeyCustodian = Depends(get_custodian)):
    removed = await custodian.unbind_main_wallet()
    return {"removed": removed}
