"""
Transfer service — signs, submits and confirms native transfers.

Keeps low-level eth_account/web3 usage out of the pipeline. Every failure
(submission, confirmation timeout, on-chain revert) surfaces immediately as
TransferFailure; nothing is retried here.
"""
from __future__ import annotations

import asyncio
import logging

from eth_account import Account
from web3 import Web3

from config import settings
from domain.errors import TransferFailure
from evm_client import ConfirmationTimeout
from models import BurnerWallet
from utils.units import from_wei
from utils.validators import shorten_address

logger = logging.getLogger(__name__)


class TransferEngine:
    """Native-currency transfers from the burner wallet."""

    def __init__(self, chain):
        self._chain = chain
        # one signing + submission at a time (nonce ordering)
        self._signing_lock = asyncio.Lock()

    async def submit(self, wallet: BurnerWallet, txn: dict, *, label: str = "Transfer") -> str:
        """
        Sign a prepared transaction with the burner key, submit it and wait
        for one confirmation.

        Args:
            wallet: burner wallet whose key signs the transaction
            txn: transaction fields without nonce/chainId
            label: prefix for log lines and error messages

        Returns:
            Confirmed transaction id (0x hash)
        """
        async with self._signing_lock:
            try:
                fields = {
                    **{k: v for k, v in txn.items() if k != "from"},
                    "nonce": await self._chain.get_nonce(wallet.address),
                    "chainId": self._chain.chain_id,
                }
                signed = Account.sign_transaction(fields, wallet.signing_key.get_secret_value())
                tx_id = await self._chain.send_raw_transaction(signed.raw_transaction)
            except Exception as e:
                logger.error(f"❌ [{label}] Submission failed: {e}")
                raise TransferFailure(f"{label} submission failed: {e}") from e

        logger.info(f"📨 [{label}] TX submitted: {tx_id}")

        try:
            receipt = await self._chain.wait_for_confirmation(tx_id)
        except ConfirmationTimeout as e:
            logger.error(f"⏱️ [{label}] {e}")
            raise TransferFailure(str(e), tx_id=tx_id) from e
        except Exception as e:
            logger.error(f"❌ [{label}] Confirmation failed for {tx_id}: {e}")
            raise TransferFailure(f"{label} confirmation failed: {e}", tx_id=tx_id) from e

        if receipt.get("status") != 1:
            logger.error(f"❌ [{label}] TX reverted: {tx_id}")
            raise TransferFailure(f"{label} reverted on-chain", tx_id=tx_id)

        logger.info(f"✅ [{label}] TX confirmed in block {receipt.get('blockNumber')}")
        return tx_id

    async def send(
        self,
        wallet: BurnerWallet,
        to: str,
        amount_wei: int,
        *,
        gas_price: int | None = None,
        gas_limit: int | None = None,
        label: str = "Transfer",
    ) -> str:
        """
        Send native currency from the burner wallet and wait for confirmation.

        Raises:
            TransferFailure: submission error, timeout or revert
        """
        try:
            receiver = Web3.to_checksum_address(to)
            if gas_price is None:
                gas_price = await self._chain.get_gas_price()
        except Exception as e:
            raise TransferFailure(f"{label} could not be prepared: {e}") from e

        logger.info(
            f"💸 [{label}] {from_wei(amount_wei)} {settings.native_symbol} → {shorten_address(to)}"
        )
        txn = {
            "to": receiver,
            "value": amount_wei,
            "gas": gas_limit or settings.transfer_gas_limit,
            "gasPrice": gas_price,
        }
        return await self.submit(wallet, txn, label=label)
