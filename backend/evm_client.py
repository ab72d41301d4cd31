"""
EVM chain client singleton for Monad Testnet interaction.

Wraps web3.py's AsyncWeb3 and exposes only the JSON-RPC calls the payment
pipeline needs: balances, gas price, nonces, raw submission, receipts and
the yield vault contract handle.
"""
import json
import logging
import os

from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted

from config import settings

logger = logging.getLogger(__name__)

VAULT_ABI_PATH = os.path.join(os.path.dirname(__file__), "contracts", "yield_vault", "abi.json")


def load_vault_abi() -> list:
    """Load the MonadYieldVault ABI shipped with the service."""
    with open(VAULT_ABI_PATH) as f:
        return json.load(f)


class ConfirmationTimeout(Exception):
    """Raised when a transaction is not mined within the timeout."""

    def __init__(self, tx_id: str, timeout: float):
        super().__init__(f"Transaction {tx_id} not confirmed within {timeout:g}s")
        self.tx_id = tx_id
        self.timeout = timeout


class EvmClient:
    """Singleton async EVM client for Monad Testnet operations."""

    _instance = None
    _w3 = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(EvmClient, cls).__new__(cls)
            cls._instance._vault = None
            cls._instance._initialize_client()
        return cls._instance

    def _initialize_client(self):
        """Create the AsyncWeb3 provider (no network call happens here)."""
        self._w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(settings.chain_rpc_url))
        logger.info(f"EVM client configured for {settings.chain_rpc_url} (chain {settings.chain_id})")

    @property
    def w3(self) -> AsyncWeb3:
        """Get the AsyncWeb3 instance."""
        if self._w3 is None:
            self._initialize_client()
        return self._w3

    @property
    def chain_id(self) -> int:
        return settings.chain_id

    @property
    def vault(self):
        """Yield vault contract handle (built once)."""
        if self._vault is None:
            self._vault = self.w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(settings.yield_vault_address),
                abi=load_vault_abi(),
            )
        return self._vault

    async def get_status(self) -> dict:
        """Connectivity probe used by the health endpoint."""
        block = await self.w3.eth.block_number
        return {"chainId": settings.chain_id, "blockNumber": block}

    async def get_balance(self, address: str) -> int:
        """Native balance in wei."""
        return await self.w3.eth.get_balance(AsyncWeb3.to_checksum_address(address))

    async def get_gas_price(self) -> int:
        return await self.w3.eth.gas_price

    async def get_nonce(self, address: str) -> int:
        return await self.w3.eth.get_transaction_count(
            AsyncWeb3.to_checksum_address(address), "pending"
        )

    async def send_raw_transaction(self, raw_txn: bytes) -> str:
        """
        Submit a signed transaction.

        Returns:
            0x-prefixed transaction hash
        """
        try:
            tx_hash = await self.w3.eth.send_raw_transaction(raw_txn)
            tx_id = AsyncWeb3.to_hex(tx_hash)
            logger.info(f"Transaction submitted successfully: {tx_id}")
            return tx_id
        except Exception as e:
            logger.error(f"Error submitting transaction: {e}")
            raise

    async def wait_for_confirmation(self, tx_id: str, timeout: float | None = None) -> dict:
        """
        Wait until the transaction has one confirmation.

        Returns:
            Receipt dict (``status`` 1 = success, 0 = reverted)
        """
        timeout = timeout if timeout is not None else settings.confirmation_timeout_seconds
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_id,
                timeout=timeout,
                poll_latency=settings.confirmation_poll_seconds,
            )
        except TimeExhausted as e:
            raise ConfirmationTimeout(tx_id, timeout) from e
        return dict(receipt)


# Global client instance
evm_client = EvmClient()
