"""
Price service — CoinGecko simple/price + fixed fallback.

Fetches the native asset and a stable reference asset (tether) in the
configured fiat currency and USD. Any failure, non-success response or
missing native rate falls back to fixed constants (1 MON = 5 USD,
1 USD = 35 TRY) and marks the quote as estimated. quote() never raises.
"""
import logging
from typing import Optional

import httpx

from config import settings
from models import PriceQuote, Quote

logger = logging.getLogger(__name__)


class PriceOracle:
    """Fiat → native converter with a guaranteed fallback branch."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        # transport is injectable so tests can use httpx.MockTransport
        self._transport = transport

    def _build_fallback(self, usd_per_fiat: float) -> PriceQuote:
        native_per_usd = settings.fallback_native_usd
        native_per_fiat = native_per_usd * usd_per_fiat
        logger.info(
            f"🔄 [Price] Fallback: 1 {settings.native_symbol} = ${native_per_usd} / "
            f"{native_per_fiat} {settings.fiat_currency.upper()}"
        )
        return PriceQuote(
            native_per_fiat=native_per_fiat,
            native_per_usd=native_per_usd,
            usd_per_fiat=usd_per_fiat,
            is_fallback=True,
        )

    async def _get_rates(self) -> dict:
        params = {
            "ids": f"{settings.price_native_id},{settings.price_reference_id}",
            "vs_currencies": f"{settings.fiat_currency},usd",
        }
        async with httpx.AsyncClient(
            timeout=settings.price_timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await client.get(
                settings.price_api_url,
                params=params,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected price payload: {type(data).__name__}")
        return data

    async def fetch_prices(self) -> PriceQuote:
        """Current rates, or the fallback rates flagged with is_fallback."""
        fiat = settings.fiat_currency
        try:
            data = await self._get_rates()
        except Exception as e:
            logger.warning(f"⚠️ [Price] Price source error: {e}, using fallback")
            return self._build_fallback(settings.fallback_usd_fiat)

        try:
            reference = data.get(settings.price_reference_id) or {}
            usd_per_fiat = float(reference.get(fiat) or settings.fallback_usd_fiat)

            native = data.get(settings.price_native_id) or {}
            native_usd = native.get("usd")
            native_fiat = native.get(fiat)
            if native_usd and native_fiat:
                logger.info(
                    f"✅ [Price] {settings.native_symbol} = ${native_usd} / "
                    f"{native_fiat} {fiat.upper()} (USD/{fiat.upper()} = {usd_per_fiat})"
                )
                return PriceQuote(
                    native_per_fiat=float(native_fiat),
                    native_per_usd=float(native_usd),
                    usd_per_fiat=usd_per_fiat,
                    is_fallback=False,
                )
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning(f"⚠️ [Price] Malformed price payload: {e}, using fallback")
            return self._build_fallback(settings.fallback_usd_fiat)

        logger.warning(f"⚠️ [Price] No rate for '{settings.price_native_id}', using fallback")
        return self._build_fallback(usd_per_fiat)

    async def quote(self, fiat_amount: float) -> Quote:
        """Convert a fiat amount to native units using fresh rates."""
        price = await self.fetch_prices()
        native_amount = fiat_amount / price.native_per_fiat
        logger.info(
            f"🧮 [Price] {fiat_amount} {settings.fiat_currency.upper()} = "
            f"{native_amount:.4f} {settings.native_symbol}"
        )
        return Quote(native_amount=native_amount, price=price)
