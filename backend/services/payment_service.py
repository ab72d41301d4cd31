"""
Payment service — the burner payment pipeline.

    oracle → (withdraw) → transfer → sweep → burn → done
                         any fault → error

Steps run strictly one after another. Each step reports a PaymentStep to a
single progress sink on entry and, optionally, again on completion. Any
exception is caught at the pipeline boundary and reported as one `error`
step plus a failed PaymentResult. Nothing is rolled back: a confirmed
transfer stays confirmed even if sweep or burn fail afterwards.
"""
import asyncio
import logging
from typing import Callable, List, Optional

from config import settings
from domain.constants import STEP_DONE_MESSAGE, STEP_ERROR_MESSAGE
from domain.enums import PaymentPhase
from domain.errors import PaymentInProgress
from models import PaymentResult, PaymentStep
from services.ledger_service import BalanceLedger
from services.price_service import PriceOracle
from services.transfer_service import TransferEngine
from services.wallet_service import KeyCustodian
from utils.units import to_wei
from utils.validators import shorten_address, validate_evm_address

logger = logging.getLogger(__name__)

ProgressSink = Callable[[PaymentStep], None]


class PaymentStepLog:
    """
    Ordered step log with replace-by-phase semantics.

    A new event for a phase already in the log replaces the most recent
    event of that phase. `done` and `error` are terminal: the first one is
    appended and everything after it is ignored.
    """

    def __init__(self):
        self._steps: List[PaymentStep] = []

    def record(self, step: PaymentStep) -> None:
        if self.is_terminal:
            logger.warning(f"Ignoring {step.phase.value} step after terminal step")
            return
        if not step.phase.is_terminal:
            for i in range(len(self._steps) - 1, -1, -1):
                if self._steps[i].phase == step.phase:
                    self._steps[i] = step
                    return
        self._steps.append(step)

    __call__ = record

    @property
    def steps(self) -> List[PaymentStep]:
        return list(self._steps)

    @property
    def phases(self) -> List[PaymentPhase]:
        return [s.phase for s in self._steps]

    @property
    def is_terminal(self) -> bool:
        return bool(self._steps) and self._steps[-1].phase.is_terminal


class PaymentOrchestrator:
    """Runs one payment at a time from the burner wallet."""

    def __init__(
        self,
        custodian: KeyCustodian,
        oracle: PriceOracle,
        ledger: BalanceLedger,
        transfers: TransferEngine,
    ):
        self._custodian = custodian
        self._oracle = oracle
        self._ledger = ledger
        self._transfers = transfers
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def run(
        self,
        target_address: str,
        main_wallet: str,
        on_progress: Optional[ProgressSink] = None,
        fiat_amount: Optional[float] = None,
    ) -> PaymentResult:
        """
        Execute the full pipeline.

        Args:
            target_address: counterparty address (payment receiver)
            main_wallet: the payer's durable wallet (sweep destination)
            on_progress: sink receiving every PaymentStep
            fiat_amount: amount in settings.fiat_currency (default: payment_fiat_amount)

        Returns:
            PaymentResult, successful only if the burner key was destroyed

        Raises:
            ValidationError: invalid target or main wallet address (nothing ran)
            PaymentInProgress: another run is active (nothing ran)
        """
        validate_evm_address(target_address, field="targetAddress")
        validate_evm_address(main_wallet, field="mainWallet")
        if self._lock.locked():
            raise PaymentInProgress()

        async with self._lock:
            return await self._execute(
                target_address,
                main_wallet,
                on_progress,
                settings.payment_fiat_amount if fiat_amount is None else fiat_amount,
            )

    async def _execute(
        self,
        target: str,
        main_wallet: str,
        on_progress: Optional[ProgressSink],
        fiat_amount: float,
    ) -> PaymentResult:
        symbol = settings.native_symbol
        fiat = settings.fiat_currency.upper()

        def emit(phase: PaymentPhase, message: str, detail: Optional[str] = None) -> None:
            step = PaymentStep(phase=phase, message=message, detail=detail)
            if on_progress is None:
                return
            try:
                on_progress(step)
            except Exception as e:
                logger.warning(f"Progress sink failed on {phase.value}: {e}")

        transfer_tx_id: Optional[str] = None
        sweep_tx_id: Optional[str] = None
        native_amount: Optional[float] = None

        try:
            wallet = await self._custodian.get_or_create_wallet()

            # ─── Step 1: Price oracle ───
            emit(PaymentPhase.ORACLE, "Calculating price...", f"{fiat_amount:g} {fiat} → {symbol}")
            quote = await self._oracle.quote(fiat_amount)
            native_amount = quote.native_amount
            rate = f"1 {symbol} = {quote.price.native_per_fiat:.2f} {fiat}"
            if quote.price.is_fallback:
                rate += " (estimated)"
            emit(PaymentPhase.ORACLE, f"{native_amount:.4f} {symbol} calculated", rate)
            logger.info(
                f"🧮 [Payment] {fiat_amount:g} {fiat} = {native_amount:.6f} {symbol} "
                f"(source: {'fallback' if quote.price.is_fallback else 'live'})"
            )

            # ─── Step 2: Flash-withdraw (only if short) ───
            balance = await self._ledger.get_native_balance(wallet.address)
            if balance < native_amount:
                position = await self._ledger.get_yield_balance(wallet.address)
                if position > 0:
                    emit(
                        PaymentPhase.WITHDRAW,
                        "Withdrawing from yield pool...",
                        f"{position:.4f} {symbol}",
                    )
                    withdrawn = await self._ledger.withdraw_from_yield(
                        wallet, position, sweep_to=main_wallet
                    )
                    if withdrawn.success:
                        emit(
                            PaymentPhase.WITHDRAW,
                            "Yield position withdrawn",
                            f"{withdrawn.amount:.4f} {symbol} → {shorten_address(main_wallet)}",
                        )
                        logger.info(f"📤 [Payment] Flash-withdraw: {withdrawn.amount:.4f} {symbol}")
                    else:
                        emit(
                            PaymentPhase.WITHDRAW,
                            "Yield withdrawal failed",
                            "Attempting transfer with the current balance",
                        )
                        logger.warning("⚠️ [Payment] Flash-withdraw failed, continuing")
                else:
                    logger.warning(
                        f"⚠️ [Payment] Balance {balance:.4f} < {native_amount:.4f} {symbol} "
                        f"and no yield position, attempting anyway"
                    )

            # ─── Step 3: Transfer ───
            emit(
                PaymentPhase.TRANSFER,
                f"Sending {symbol}...",
                f"{native_amount:.4f} {symbol} → {shorten_address(target)}",
            )
            transfer_tx_id = await self._transfers.send(wallet, target, to_wei(native_amount))
            emit(PaymentPhase.TRANSFER, "Transfer complete", f"TX: {transfer_tx_id[:10]}...")

            # ─── Step 4: Sweep residual to main wallet ───
            emit(PaymentPhase.SWEEP, "Sweeping remaining balance...", f"→ {shorten_address(main_wallet)}")
            sweep_tx_id = await self._ledger.sweep_residual(wallet, main_wallet)
            if sweep_tx_id:
                emit(PaymentPhase.SWEEP, "Remaining balance swept", f"TX: {sweep_tx_id[:10]}...")
            else:
                emit(PaymentPhase.SWEEP, "Nothing to sweep", "Balance below gas cost, skipped")

            # ─── Step 5: Burn ───
            emit(PaymentPhase.BURN, "Destroying burner wallet...")
            await self._custodian.destroy_wallet()

            emit(PaymentPhase.DONE, STEP_DONE_MESSAGE, f"TX: {transfer_tx_id}")
            logger.info(f"✅ [Payment] Done: {settings.chain_explorer_url}/tx/{transfer_tx_id}")
            return PaymentResult(
                success=True,
                transfer_tx_id=transfer_tx_id,
                sweep_tx_id=sweep_tx_id,
                native_amount=native_amount,
            )

        except Exception as e:
            error_msg = str(e) or type(e).__name__
            logger.error(f"❌ [Payment] Failed: {error_msg}")
            emit(PaymentPhase.ERROR, STEP_ERROR_MESSAGE, error_msg)
            return PaymentResult(
                success=False,
                transfer_tx_id=transfer_tx_id,
                sweep_tx_id=sweep_tx_id,
                native_amount=native_amount,
                error=error_msg,
            )
