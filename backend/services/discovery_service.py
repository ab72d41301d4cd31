"""
Discovery service — resolves the counterparty address by racing two channels.

    proximity  NDEF text record read from a nearby device (polled)
    optical    decoded code payloads from the camera, one per frame

Both channels run as asyncio tasks feeding one future. The first valid
address settles the session; the other task is cancelled at once and both
channels are stopped, so a late result can never reach a torn-down session.

The device app feeds the queue-backed channels over HTTP (routes/discovery.py).
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable, Optional

from config import settings
from domain.enums import DiscoveryChannel
from domain.errors import DiscoveryCancelled, DiscoveryTimeout, NoValidAddress
from models import DiscoveryResult
from utils.ndef_codec import decode_address_record, encode_address_record
from utils.validators import extract_address, is_valid_address, shorten_address

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
# Channels
# ════════════════════════════════════════════════════════════════════


class ProximityChannel(ABC):
    # True when read() itself waits for a record; the session then skips its pause
    blocking_read = False

    @abstractmethod
    async def read(self) -> Optional[str]:
        """One read attempt: the record text, or None if nothing was read."""

    async def stop(self) -> None:
        """Release the reader (called once the session is over)."""


class OpticalChannel(ABC):
    @abstractmethod
    def frames(self) -> AsyncIterator[str]:
        """Decoded code payloads, in arrival order."""

    async def stop(self) -> None:
        """Release the camera (called once the session is over)."""


class QueueProximityChannel(ProximityChannel):
    """Proximity reader fed with raw NDEF messages pushed by the device."""

    blocking_read = True

    def __init__(self, read_timeout: Optional[float] = None):
        self._queue: asyncio.Queue[bytes] = asyncio.Queue()
        self._read_timeout = read_timeout if read_timeout is not None else settings.proximity_poll_seconds
        self.stopped = False

    def push_record(self, octets: bytes) -> None:
        if not self.stopped:
            self._queue.put_nowait(octets)

    async def read(self) -> Optional[str]:
        try:
            octets = await asyncio.wait_for(self._queue.get(), timeout=self._read_timeout)
        except asyncio.TimeoutError:
            return None
        text = decode_address_record(octets)
        if text:
            logger.info(f"📖 [NFC] Record read: {text}")
        return text

    async def stop(self) -> None:
        self.stopped = True
        logger.info("🛑 [NFC] Reader stopped")


class QueueOpticalChannel(OpticalChannel):
    """Optical scanner fed with decoded payloads pushed by the device."""

    def __init__(self):
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self.stopped = False

    def push_frame(self, payload: str) -> None:
        if not self.stopped:
            self._queue.put_nowait(payload)

    async def frames(self) -> AsyncIterator[str]:
        while not self.stopped:
            yield await self._queue.get()

    async def stop(self) -> None:
        self.stopped = True
        logger.info("🛑 [QR] Scanner stopped")


# ════════════════════════════════════════════════════════════════════
# Session
# ════════════════════════════════════════════════════════════════════


class DiscoverySession:
    """
    One counterparty search. Settles at most once.

    Args:
        proximity: proximity channel
        optical: optical channel
        on_resolved: called exactly once with the winning result
        poll_interval: pause between proximity read attempts
    """

    def __init__(
        self,
        proximity: ProximityChannel,
        optical: OpticalChannel,
        *,
        on_resolved: Optional[Callable[[DiscoveryResult], None]] = None,
        poll_interval: Optional[float] = None,
    ):
        self._proximity = proximity
        self._optical = optical
        self._on_resolved = on_resolved
        self._poll_interval = poll_interval if poll_interval is not None else settings.proximity_poll_seconds
        self._future: Optional[asyncio.Future] = None
        self._tasks: dict[DiscoveryChannel, asyncio.Task] = {}
        self._resolved = False
        self._cancelled = False

    @property
    def resolved(self) -> bool:
        return self._resolved

    @property
    def result(self) -> Optional[DiscoveryResult]:
        if self._future is None or not self._future.done() or self._future.cancelled():
            return None
        if self._future.exception() is not None:
            return None
        return self._future.result()

    def _settle(self, address: str, channel: DiscoveryChannel) -> bool:
        """First-write-wins. Returns False if the session was already settled."""
        if self._resolved or self._future is None or self._future.done():
            return False
        self._resolved = True

        current = asyncio.current_task()
        for other, task in self._tasks.items():
            if task is not current and not task.done():
                logger.info(f"[Discovery] Cancelling {other.value} channel")
                task.cancel()

        result = DiscoveryResult(address=address, channel=channel)
        self._future.set_result(result)
        logger.info(f"🎯 [Discovery] {shorten_address(address)} via {channel.value}")
        if self._on_resolved is not None:
            self._on_resolved(result)
        return True

    def _fail(self, error: Exception) -> None:
        if self._future is None or self._future.done():
            return
        self._resolved = True
        for task in self._tasks.values():
            if task is not asyncio.current_task() and not task.done():
                task.cancel()
        self._future.set_exception(error)

    async def _run_proximity(self) -> None:
        while True:
            candidate = await self._proximity.read()
            if candidate is not None:
                candidate = candidate.strip()
                if is_valid_address(candidate):
                    self._settle(candidate, DiscoveryChannel.PROXIMITY)
                    return
                logger.warning(f"⚠️ [NFC] Ignoring invalid address record: {candidate[:16]!r}")
            if not self._proximity.blocking_read:
                await asyncio.sleep(self._poll_interval)

    async def _run_optical(self) -> None:
        async for payload in self._optical.frames():
            address = extract_address(payload)
            if address:
                self._settle(address, DiscoveryChannel.OPTICAL)
                return

    async def _guard(self, channel: DiscoveryChannel, runner) -> None:
        try:
            await runner()
        except asyncio.CancelledError:
            logger.debug(f"[Discovery] {channel.value} channel cancelled")
            raise
        except Exception as e:
            logger.warning(f"⚠️ [Discovery] {channel.value} channel failed: {e}")

    def _on_channel_done(self, _task: asyncio.Task) -> None:
        if self._future is None or self._future.done():
            return
        if all(t.done() for t in self._tasks.values()):
            self._fail(NoValidAddress())

    async def resolve(self, timeout: Optional[float] = None) -> DiscoveryResult:
        """
        Run both channels until one yields a valid address.

        Raises:
            DiscoveryTimeout: nothing valid within `timeout` seconds
            NoValidAddress: both channels ended without a valid address
            DiscoveryCancelled: cancel() was called
        """
        if self._future is not None:
            raise RuntimeError("Discovery session already started")
        if self._cancelled:
            raise DiscoveryCancelled()

        self._future = asyncio.get_running_loop().create_future()
        self._tasks = {
            DiscoveryChannel.PROXIMITY: asyncio.create_task(
                self._guard(DiscoveryChannel.PROXIMITY, self._run_proximity)
            ),
            DiscoveryChannel.OPTICAL: asyncio.create_task(
                self._guard(DiscoveryChannel.OPTICAL, self._run_optical)
            ),
        }
        for task in self._tasks.values():
            task.add_done_callback(self._on_channel_done)

        logger.info("🔍 [Discovery] Listening on proximity + optical channels")
        try:
            return await asyncio.wait_for(asyncio.shield(self._future), timeout=timeout)
        except asyncio.TimeoutError:
            self._resolved = True
            self._future.cancel()
            logger.info(f"⏱️ [Discovery] Timed out after {timeout:g}s")
            raise DiscoveryTimeout(timeout)
        finally:
            await self._shutdown()

    def cancel(self) -> bool:
        """External abort: stop looking. Returns False if already settled."""
        if self._future is None:
            self._cancelled = True
            return True
        if self._future.done():
            return False
        logger.info("🛑 [Discovery] Cancelled by user")
        self._fail(DiscoveryCancelled())
        return True

    async def _shutdown(self) -> None:
        pending = [t for t in self._tasks.values() if not t.done()]
        for task in pending:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        await self._proximity.stop()
        await self._optical.stop()


def build_receive_payloads(address: str, scheme: Optional[str] = None) -> dict:
    """
    What a receiving device broadcasts so a payer can discover it.

    Returns:
        dict: {optical_payload, ndef}: code text and NDEF message bytes
    """
    scheme = scheme or settings.optical_scheme
    return {
        "optical_payload": f"{scheme}:{address}",
        "ndef": encode_address_record(address),
    }
