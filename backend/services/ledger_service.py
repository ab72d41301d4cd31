"""
Ledger service — burner wallet balances, yield position access and the
residual sweep.

sweep_residual() never tries to spend more than the wallet can pay for:
    residual = balance - gas_price * SWEEP_GAS_LIMIT
A non-positive residual is a no-op (returns None), not an error.
"""
import logging
from typing import Optional

from config import settings
from models import BurnerWallet, YieldPosition, YieldResult
from services.transfer_service import TransferEngine
from services.yield_service import YieldLedger
from utils.units import from_wei
from utils.validators import shorten_address

logger = logging.getLogger(__name__)


class BalanceLedger:
    """Native balance reads plus the yield position behind one facade."""

    def __init__(self, chain, transfers: TransferEngine, yield_ledger: YieldLedger):
        self._chain = chain
        self._transfers = transfers
        self._yield = yield_ledger

    async def get_native_balance_wei(self, address: str) -> int:
        return await self._chain.get_balance(address)

    async def get_native_balance(self, address: str) -> float:
        return from_wei(await self.get_native_balance_wei(address))

    async def get_yield_balance(self, address: str) -> float:
        return await self._yield.get_yield_balance(address)

    async def get_yield_position(self, address: str) -> YieldPosition:
        return await self._yield.get_position(address)

    async def deposit_to_yield(self, wallet: BurnerWallet, amount: float) -> YieldResult:
        return await self._yield.deposit(wallet, amount)

    async def withdraw_from_yield(
        self, wallet: BurnerWallet, amount: float, sweep_to: Optional[str] = None
    ) -> YieldResult:
        return await self._yield.withdraw(wallet, amount, sweep_to=sweep_to)

    async def pay_from_yield(self, wallet: BurnerWallet, target: str, amount: float) -> YieldResult:
        return await self._yield.pay(wallet, target, amount)

    async def sweep_residual(self, wallet: BurnerWallet, to_address: str) -> Optional[str]:
        """
        Send everything above the fee reserve to `to_address`.

        Returns:
            Confirmed sweep tx id, or None when the balance does not cover gas
        """
        balance = await self._chain.get_balance(wallet.address)
        gas_price = await self._chain.get_gas_price()
        gas_cost = gas_price * settings.sweep_gas_limit
        residual = balance - gas_cost

        if residual <= 0:
            logger.info(
                f"⚠️ [Sweep] Balance {from_wei(balance)} below gas cost {from_wei(gas_cost)}, skipping"
            )
            return None

        logger.info(
            f"🧹 [Sweep] {from_wei(residual)} {settings.native_symbol} → {shorten_address(to_address)}"
        )
        return await self._transfers.send(
            wallet,
            to_address,
            residual,
            gas_price=gas_price,
            gas_limit=settings.sweep_gas_limit,
            label="Sweep",
        )
