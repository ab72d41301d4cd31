"""
Payment session — connects one discovery session to one pipeline run and
keeps the latest step log and result around for polling.

The device app drives it over HTTP:
    POST /discovery/start       start listening (auto-pays on resolution)
    POST /discovery/proximity   feed an NDEF record
    POST /discovery/frame       feed a decoded camera payload
    GET  /payment/status        poll the step log

Runs as background asyncio tasks inside the FastAPI lifespan; stop() is
called on shutdown.
"""
import asyncio
import logging
from typing import Optional

from config import settings
from domain.errors import ConflictError, DomainError, PaymentInProgress, ValidationError
from models import DiscoveryResult, DiscoveryStatusResponse, PaymentResult, PaymentStatusResponse
from services.discovery_service import DiscoverySession, QueueOpticalChannel, QueueProximityChannel
from services.payment_service import PaymentOrchestrator, PaymentStepLog
from services.wallet_service import KeyCustodian
from utils.ndef_codec import parse_hex_message
from utils.validators import validate_evm_address

logger = logging.getLogger(__name__)


class PaymentSessionManager:
    def __init__(
        self,
        custodian: KeyCustodian,
        orchestrator: PaymentOrchestrator,
        *,
        discovery_timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ):
        self._custodian = custodian
        self._orchestrator = orchestrator
        self._discovery_timeout = (
            discovery_timeout if discovery_timeout is not None else settings.discovery_timeout_seconds
        )
        self._poll_interval = poll_interval

        self._session: Optional[DiscoverySession] = None
        self._proximity: Optional[QueueProximityChannel] = None
        self._optical: Optional[QueueOpticalChannel] = None
        self._discovery_task: Optional[asyncio.Task] = None
        self._discovery_result: Optional[DiscoveryResult] = None
        self._discovery_error: Optional[str] = None

        self._payment_task: Optional[asyncio.Task] = None
        self._steps = PaymentStepLog()
        self._result: Optional[PaymentResult] = None

    # ════════════════════════════════════════════════════════════════
    # Discovery
    # ════════════════════════════════════════════════════════════════

    @property
    def discovery_active(self) -> bool:
        return self._discovery_task is not None and not self._discovery_task.done()

    @property
    def payment_running(self) -> bool:
        return self._payment_task is not None and not self._payment_task.done()

    async def start_discovery(self, auto_pay: bool = True) -> None:
        """
        Start listening on both channels.

        Raises:
            ConflictError: a discovery session is already active
            PaymentInProgress: a pipeline run is active
            ValidationError: auto_pay requested but no main wallet is bound
        """
        if self.discovery_active:
            raise ConflictError("Discovery already active")
        if self.payment_running:
            raise PaymentInProgress()
        if auto_pay and await self._custodian.get_main_wallet() is None:
            raise ValidationError("Bind a main wallet before paying", field="mainWallet")

        self._proximity = QueueProximityChannel(read_timeout=self._poll_interval)
        self._optical = QueueOpticalChannel()
        self._session = DiscoverySession(
            self._proximity, self._optical, poll_interval=self._poll_interval
        )
        self._discovery_result = None
        self._discovery_error = None
        self._discovery_task = asyncio.create_task(self._discover(self._session, auto_pay))
        logger.info("🔍 [Session] Discovery started")

    async def _discover(self, session: DiscoverySession, auto_pay: bool) -> None:
        try:
            result = await session.resolve(timeout=self._discovery_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._discovery_error = str(e) or type(e).__name__
            logger.info(f"[Session] Discovery ended without a counterparty: {self._discovery_error}")
            return

        self._discovery_result = result
        if auto_pay:
            try:
                await self.start_payment(result.address)
            except Exception as e:
                self._discovery_error = str(e)
                logger.error(f"❌ [Session] Could not start payment: {e}")

    def push_proximity_record(self, ndef_hex: str) -> None:
        if not self.discovery_active or self._proximity is None:
            raise ConflictError("No active discovery session")
        try:
            octets = parse_hex_message(ndef_hex)
        except ValueError:
            raise ValidationError("ndefHex must be hex-encoded bytes", field="ndefHex")
        self._proximity.push_record(octets)

    def push_optical_frame(self, payload: str) -> None:
        if not self.discovery_active or self._optical is None:
            raise ConflictError("No active discovery session")
        self._optical.push_frame(payload)

    async def cancel_discovery(self) -> bool:
        """Abort the active search. Returns False if there was nothing to cancel."""
        if not self.discovery_active or self._session is None:
            return False
        cancelled = self._session.cancel()
        await self._discovery_task
        return cancelled

    def get_discovery_status(self) -> DiscoveryStatusResponse:
        return DiscoveryStatusResponse(
            active=self.discovery_active,
            result=self._discovery_result,
            error=self._discovery_error,
        )

    # ════════════════════════════════════════════════════════════════
    # Payment
    # ════════════════════════════════════════════════════════════════

    async def start_payment(self, target_address: str) -> None:
        """
        Spawn one pipeline run against `target_address`.

        Raises:
            ValidationError: invalid target or no main wallet bound
            PaymentInProgress: a run is already active
        """
        validate_evm_address(target_address, field="targetAddress")
        main_wallet = await self._custodian.get_main_wallet()
        if main_wallet is None:
            raise ValidationError("Bind a main wallet before paying", field="mainWallet")

        # no await between the check and create_task
        if self.payment_running or self._orchestrator.running:
            raise PaymentInProgress()
        self._steps = PaymentStepLog()
        self._result = None
        self._payment_task = asyncio.create_task(
            self._pay(target_address, main_wallet, self._steps)
        )

    async def _pay(self, target: str, main_wallet: str, steps: PaymentStepLog) -> None:
        try:
            self._result = await self._orchestrator.run(target, main_wallet, on_progress=steps)
        except DomainError as e:
            # refused before the first step ran
            logger.error(f"❌ [Session] Payment refused: {e}")
            self._result = PaymentResult(success=False, error=str(e))

    def get_payment_status(self) -> PaymentStatusResponse:
        return PaymentStatusResponse(
            running=self.payment_running,
            steps=self._steps.steps,
            result=self._result,
        )

    async def wait_for_payment(self) -> Optional[PaymentResult]:
        if self._payment_task is not None:
            await self._payment_task
        return self._result

    async def stop(self) -> None:
        """Stop discovery and wait out an in-flight payment (no user-facing cancel)."""
        if self.discovery_active and self._session is not None:
            self._session.cancel()
        if self._discovery_task and not self._discovery_task.done():
            self._discovery_task.cancel()
            try:
                await self._discovery_task
            except asyncio.CancelledError:
                pass
        if self.payment_running:
            await self.wait_for_payment()
        self._discovery_task = None
        logger.info("[Session] Stopped")
