"""
Yield pool endpoints — the burner's yield-bearing position.

GET    /yield            position (principal incl. accrued yield)
POST   /yield/deposit    move native balance into the position
POST   /yield/withdraw   take part of the position back to the burner
POST   /yield/pay        pay a counterparty directly out of the position
"""
import logging

from fastapi import APIRouter, Depends

from config import settings
from deps import get_custodian, get_ledger
from domain.errors import BlockchainError
from models import PayFromYieldRequest, YieldAmountRequest, YieldResult
from services.ledger_service import BalanceLedger
from services.wallet_service import KeyCustodian
from utils.validators import validate_evm_address

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/yield", tags=["yield"])


@router.get("")
async def get_yield_position(
    custodian: KeyCustodian = Depends(get_custodian),
    ledger: BalanceLedger = Depends(get_ledger),
):
    wallet = await custodian.get_or_create_wallet()
    position = await ledger.get_yield_position(wallet.address)
    return {
        "owner": position.owner,
        "balance": position.principal,
        "backend": settings.yield_backend,
    }


@router.post("/deposit", response_model=YieldResult)
async def deposit(
    request: YieldAmountRequest,
    custodian: KeyCustodian = Depends(get_custodian),
    ledger: BalanceLedger = Depends(get_ledger),
):
    wallet = await custodian.get_or_create_wallet()
    result = await ledger.deposit_to_yield(wallet, request.amount)
    if not result.success:
        raise BlockchainError("Yield deposit failed", details={"amount": request.amount})
    return result


@router.post("/withdraw", response_model=YieldResult)
async def withdraw(
    request: YieldAmountRequest,
    custodian: KeyCustodian = Depends(get_custodian),
    ledger: BalanceLedger = Depends(get_ledger),
):
    wallet = await custodian.get_or_create_wallet()
    result = await ledger.withdraw_from_yield(wallet, request.amount)
    if not result.success:
        raise BlockchainError("Yield withdrawal failed", details={"amount": request.amount})
    return result


@router.post("/pay", response_model=YieldResult)
async def pay(
    request: PayFromYieldRequest,
    custodian: KeyCustodian = Depends(get_custodian),
    ledger: BalanceLedger = Depends(get_ledger),
):
    target = validate_evm_address(request.target_address, field="targetAddress")
    wallet = await custodian.get_or_create_wallet()
    result = await ledger.pay_from_yield(wallet, target, request.amount)
    if not result.success:
        raise BlockchainError("Yield payment failed", details={"amount": request.amount})
    logger.info(f"💳 [Yield] Paid {request.amount} {settings.native_symbol} from position")
    return result
