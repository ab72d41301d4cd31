"""
Yield service — the secondary, yield-bearing balance behind the burner wallet.

Two interchangeable backends share one interface:
    MockYieldLedger      in-memory positions (development / demo)
    ContractYieldLedger  MonadYieldVault contract calls signed by the burner key

The backend is chosen once by build_yield_ledger(); callers never branch on it.

Contract functions used:
    deposit()                     payable, credits msg.sender
    getBalanceWithYield(address)  view, principal + accrued yield
    executePayment(target, amt)   pays target out of msg.sender's position
    sweep(mainWallet)             sends msg.sender's whole position to mainWallet
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from web3 import Web3

from config import settings
from domain.enums import YieldBackend
from models import BurnerWallet, YieldPosition, YieldResult
from utils.units import from_wei, to_wei
from utils.validators import shorten_address

logger = logging.getLogger(__name__)

_SECONDS_PER_YEAR = 365 * 24 * 3600


class YieldLedger(ABC):
    """Common interface of the yield backends."""

    @abstractmethod
    async def get_yield_balance(self, owner: str) -> float:
        """Principal plus accrued yield, in native units."""

    @abstractmethod
    async def deposit(self, wallet: BurnerWallet, amount: float) -> YieldResult:
        """Move `amount` from the burner wallet into its position."""

    @abstractmethod
    async def withdraw(
        self, wallet: BurnerWallet, amount: float, sweep_to: Optional[str] = None
    ) -> YieldResult:
        """
        Take `amount` back to the burner wallet, or, when `sweep_to` is given,
        send the entire position to that address in one operation.
        """

    @abstractmethod
    async def pay(self, wallet: BurnerWallet, target: str, amount: float) -> YieldResult:
        """Pay `target` directly out of the position."""

    async def get_position(self, owner: str) -> YieldPosition:
        return YieldPosition(principal=await self.get_yield_balance(owner), owner=owner)


# ════════════════════════════════════════════════════════════════════
# In-memory backend
# ════════════════════════════════════════════════════════════════════


class MockYieldLedger(YieldLedger):
    """
    In-memory positions with optional simple-interest accrual.

    Bookkeeping only: no chain funds move. Each mutation either fully applies
    or leaves the position untouched.
    """

    def __init__(self, apr: float = 0.0, clock: Callable[[], float] = time.time):
        self._apr = apr
        self._clock = clock
        # owner -> (principal, last_update_ts)
        self._positions: dict[str, tuple[float, float]] = {}

    def _key(self, owner: str) -> str:
        return owner.lower()

    def _accrued(self, owner: str) -> float:
        principal, since = self._positions.get(self._key(owner), (0.0, self._clock()))
        if principal <= 0 or self._apr <= 0:
            return principal
        elapsed = max(self._clock() - since, 0.0)
        return principal * (1 + self._apr * elapsed / _SECONDS_PER_YEAR)

    def _store(self, owner: str, principal: float) -> None:
        if principal <= 0:
            self._positions.pop(self._key(owner), None)
        else:
            self._positions[self._key(owner)] = (principal, self._clock())

    async def get_yield_balance(self, owner: str) -> float:
        return self._accrued(owner)

    async def deposit(self, wallet: BurnerWallet, amount: float) -> YieldResult:
        if amount <= 0:
            logger.warning(f"⚠️ [Yield] Refusing deposit of {amount}")
            return YieldResult(success=False, amount=amount)
        self._store(wallet.address, self._accrued(wallet.address) + amount)
        logger.info(f"📥 [Yield] {amount:.4f} {settings.native_symbol} recorded (mock)")
        return YieldResult(success=True, amount=amount)

    async def withdraw(
        self, wallet: BurnerWallet, amount: float, sweep_to: Optional[str] = None
    ) -> YieldResult:
        balance = self._accrued(wallet.address)
        if sweep_to is not None:
            self._store(wallet.address, 0.0)
            logger.info(
                f"🧹 [Yield] {balance:.4f} {settings.native_symbol} swept → "
                f"{shorten_address(sweep_to)} (mock)"
            )
            return YieldResult(success=True, amount=balance)

        if amount <= 0 or amount > balance:
            logger.warning(f"⚠️ [Yield] Cannot withdraw {amount} (position {balance:.4f})")
            return YieldResult(success=False, amount=amount)
        self._store(wallet.address, balance - amount)
        logger.info(f"📤 [Yield] {amount:.4f} {settings.native_symbol} withdrawn (mock)")
        return YieldResult(success=True, amount=amount)

    async def pay(self, wallet: BurnerWallet, target: str, amount: float) -> YieldResult:
        balance = self._accrued(wallet.address)
        if amount <= 0 or amount > balance:
            return YieldResult(success=False, amount=amount)
        self._store(wallet.address, balance - amount)
        logger.info(f"💳 [Yield] {amount:.4f} {settings.native_symbol} → {shorten_address(target)} (mock)")
        return YieldResult(success=True, amount=amount)


# ════════════════════════════════════════════════════════════════════
# Vault contract backend
# ════════════════════════════════════════════════════════════════════


class ContractYieldLedger(YieldLedger):
    """MonadYieldVault-backed positions, keyed by the burner address."""

    def __init__(self, chain, transfers, contract=None):
        self._chain = chain
        self._transfers = transfers
        self._contract = contract

    @property
    def contract(self):
        if self._contract is None:
            self._contract = self._chain.vault
        return self._contract

    async def _tx_fields(self, wallet: BurnerWallet, value_wei: int = 0) -> dict:
        return {
            "from": wallet.address,
            "value": value_wei,
            "gas": settings.yield_contract_gas_limit,
            "gasPrice": await self._chain.get_gas_price(),
            "chainId": self._chain.chain_id,
        }

    async def get_yield_balance(self, owner: str) -> float:
        try:
            balance_wei = await self.contract.functions.getBalanceWithYield(
                Web3.to_checksum_address(owner)
            ).call()
        except Exception as e:
            logger.error(f"❌ [Yield] Balance query failed for {shorten_address(owner)}: {e}")
            return 0.0
        return from_wei(balance_wei)

    async def deposit(self, wallet: BurnerWallet, amount: float) -> YieldResult:
        logger.info(f"📥 [Yield] Depositing {amount:.4f} {settings.native_symbol} into vault...")
        try:
            if amount <= 0:
                raise ValueError(f"deposit amount must be positive, got {amount}")
            txn = await self.contract.functions.deposit().build_transaction(
                await self._tx_fields(wallet, to_wei(amount))
            )
            tx_id = await self._transfers.submit(wallet, txn, label="Yield")
        except Exception as e:
            logger.error(f"❌ [Yield] Deposit failed: {e}")
            return YieldResult(success=False, amount=amount)
        return YieldResult(success=True, amount=amount, tx_id=tx_id)

    async def withdraw(
        self, wallet: BurnerWallet, amount: float, sweep_to: Optional[str] = None
    ) -> YieldResult:
        if sweep_to is not None:
            return await self._sweep(wallet, sweep_to)
        return await self.pay(wallet, wallet.address, amount)

    async def pay(self, wallet: BurnerWallet, target: str, amount: float) -> YieldResult:
        logger.info(f"💳 [Vault] {amount:.4f} {settings.native_symbol} → {shorten_address(target)}...")
        try:
            txn = await self.contract.functions.executePayment(
                Web3.to_checksum_address(target), to_wei(amount)
            ).build_transaction(await self._tx_fields(wallet))
            tx_id = await self._transfers.submit(wallet, txn, label="Vault")
        except Exception as e:
            logger.error(f"❌ [Vault] Payment failed: {e}")
            return YieldResult(success=False, amount=amount)
        return YieldResult(success=True, amount=amount, tx_id=tx_id)

    async def _sweep(self, wallet: BurnerWallet, main_wallet: str) -> YieldResult:
        logger.info(f"🧹 [Vault] Sweeping position → {shorten_address(main_wallet)}...")
        try:
            balance_wei = await self.contract.functions.getBalanceWithYield(
                Web3.to_checksum_address(wallet.address)
            ).call()
            if balance_wei <= 0:
                logger.info("⚠️ [Vault] Empty position, sweep skipped")
                return YieldResult(success=True, amount=0.0)

            txn = await self.contract.functions.sweep(
                Web3.to_checksum_address(main_wallet)
            ).build_transaction(await self._tx_fields(wallet))
            tx_id = await self._transfers.submit(wallet, txn, label="Vault")
        except Exception as e:
            logger.error(f"❌ [Vault] Sweep failed: {e}")
            return YieldResult(success=False, amount=0.0)
        return YieldResult(success=True, amount=from_wei(balance_wei), tx_id=tx_id)


def build_yield_ledger(backend: str, chain=None, transfers=None) -> YieldLedger:
    """Pick the yield backend once, at construction time."""
    kind = YieldBackend(backend)
    if kind is YieldBackend.CONTRACT:
        if chain is None or transfers is None:
            raise ValueError("Contract yield backend needs a chain client and a transfer engine")
        logger.info(f"Yield backend: vault contract {settings.yield_vault_address}")
        return ContractYieldLedger(chain, transfers)
    logger.info("Yield backend: in-memory mock")
    return MockYieldLedger(apr=settings.mock_yield_apr)
