"""
Wallet service — burner key custody and main wallet binding.

The KeyCustodian is the only component that creates, loads or erases the
burner signing key. It caches the wallet for the process lifetime so
repeated calls return the same key pair until destroy_wallet() runs.
"""
import asyncio
import logging
from typing import Optional

from eth_account import Account
from pydantic import SecretStr
from web3 import Web3

from domain.constants import BURNER_KEY_SECRET, MAIN_WALLET_SECRET
from domain.errors import BurnFailure, StorageError
from models import BurnerWallet
from services.secret_store import SecretStore
from utils.validators import shorten_address, validate_evm_address

logger = logging.getLogger(__name__)


class KeyCustodian:
    """Owner of the burner wallet key and the main wallet address secret."""

    def __init__(self, store: SecretStore):
        self._store = store
        self._wallet: Optional[BurnerWallet] = None
        self._lock = asyncio.Lock()

    async def has_wallet(self) -> bool:
        if self._wallet is not None:
            return True
        return await self._store.get(BURNER_KEY_SECRET) is not None

    async def get_or_create_wallet(self) -> BurnerWallet:
        """
        Load the persisted burner wallet, or generate and persist a new one.

        Raises:
            StorageError: the secret store is unavailable
        """
        async with self._lock:
            if self._wallet is not None:
                return self._wallet

            private_key = await self._store.get(BURNER_KEY_SECRET)
            if private_key:
                logger.info("♻️  [Wallet] Existing burner wallet loaded from secret store")
            else:
                private_key = Web3.to_hex(Account.create().key)
                await self._store.set(BURNER_KEY_SECRET, private_key)
                logger.info("🆕 [Wallet] New burner wallet created and persisted")

            account = Account.from_key(private_key)
            self._wallet = BurnerWallet(
                address=account.address,
                signing_key=SecretStr(private_key),
            )
            logger.info(f"📍 [Wallet] Address: {account.address}")
            return self._wallet

    async def destroy_wallet(self) -> None:
        """
        Irreversibly erase the burner key from storage and memory.

        Raises:
            BurnFailure: the key could not be erased and is still live
        """
        async with self._lock:
            address = self._wallet.address if self._wallet else None
            try:
                existed = await self._store.delete(BURNER_KEY_SECRET)
            except StorageError as e:
                logger.error(f"🔥 [Wallet] Burn failed, key still live: {e}")
                raise BurnFailure(details={"address": address}) from e

            self._wallet = None
            if not existed:
                logger.warning("🔥 [Wallet] Burn requested but no persisted key was found")
            else:
                logger.info(f"🔥 [Wallet] Burner wallet {shorten_address(address or '')} destroyed")

    # ── Main wallet binding ─────────────────────────────────────────

    async def get_main_wallet(self) -> Optional[str]:
        return await self._store.get(MAIN_WALLET_SECRET)

    async def bind_main_wallet(self, address: str) -> str:
        validate_evm_address(address)
        await self._store.set(MAIN_WALLET_SECRET, address)
        logger.info(f"✅ [MainWallet] Bound {address}")
        return address

    async def unbind_main_wallet(self) -> bool:
        removed = await self._store.delete(MAIN_WALLET_SECRET)
        if removed:
            logger.info("❌ [MainWallet] Unbound")
        return removed
