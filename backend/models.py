"""
Pydantic models for domain values and request/response validation.

Domain values (quotes, steps, results) are frozen: once produced by a
service they are passed around and never mutated.
"""
from pydantic import BaseModel, ConfigDict, Field, SecretStr
from typing import List, Optional

from domain.enums import DiscoveryChannel, PaymentPhase


class FrozenModel(BaseModel):
    """Immutable base; construction by Python name or camelCase alias."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# ── Key Custody ─────────────────────────────────────────────────────

class BurnerWallet(FrozenModel):
    """Disposable key pair for a single payment session."""
    address: str
    signing_key: SecretStr = Field(..., exclude=True)


# ── Price Oracle ────────────────────────────────────────────────────

class PriceQuote(FrozenModel):
    """Exchange rates used for one pipeline run."""
    native_per_fiat: float = Field(..., alias="nativePerFiat", description="Fiat price of one native unit")
    native_per_usd: float = Field(..., alias="nativePerUSD", description="USD price of one native unit")
    usd_per_fiat: float = Field(..., alias="usdPerFiat", description="Fiat price of one USD")
    is_fallback: bool = Field(..., alias="isFallback")


class Quote(FrozenModel):
    """Result of converting a fiat amount to native units."""
    native_amount: float = Field(..., alias="nativeAmount")
    price: PriceQuote


# ── Yield Ledger ────────────────────────────────────────────────────

class YieldPosition(FrozenModel):
    principal: float
    owner: str


class YieldResult(FrozenModel):
    success: bool
    amount: float
    tx_id: Optional[str] = Field(default=None, alias="txId")


# ── Discovery ───────────────────────────────────────────────────────

class DiscoveryResult(FrozenModel):
    address: str
    channel: DiscoveryChannel


# ── Payment Pipeline ────────────────────────────────────────────────

class PaymentStep(FrozenModel):
    phase: PaymentPhase
    message: str
    detail: Optional[str] = None


class PaymentResult(FrozenModel):
    success: bool
    transfer_tx_id: Optional[str] = Field(default=None, alias="transferTxId")
    sweep_tx_id: Optional[str] = Field(default=None, alias="sweepTxId")
    native_amount: Optional[float] = Field(default=None, alias="nativeAmount")
    error: Optional[str] = None


# ── API Requests ────────────────────────────────────────────────────

class BindMainWalletRequest(BaseModel):
    """Bind the user's main wallet (sweep destination)."""
    address: str = Field(..., description="0x-prefixed EVM address", min_length=1)


class YieldAmountRequest(BaseModel):
    amount: float = Field(..., gt=0, description="Amount in native units")


class PayFromYieldRequest(BaseModel):
    """Pay a counterparty straight out of the yield position."""
    model_config = ConfigDict(populate_by_name=True)

    target_address: str = Field(..., alias="targetAddress", min_length=1)
    amount: float = Field(..., gt=0, description="Amount in native units")


class StartPaymentRequest(BaseModel):
    """Start the pipeline against an address the app already knows."""
    model_config = ConfigDict(populate_by_name=True)

    target_address: str = Field(..., alias="targetAddress", min_length=1)


class ProximityRecordRequest(BaseModel):
    """NDEF message read by the device, hex-encoded."""
    ndef_hex: str = Field(..., alias="ndefHex", min_length=2)

    model_config = ConfigDict(populate_by_name=True)


class OpticalFrameRequest(BaseModel):
    """Decoded code payload from one camera frame."""
    payload: str = Field(..., min_length=1)


# ── API Responses ───────────────────────────────────────────────────

class WalletResponse(FrozenModel):
    address: str
    native_balance: float = Field(..., alias="nativeBalance")
    yield_balance: float = Field(..., alias="yieldBalance")
    main_wallet: Optional[str] = Field(default=None, alias="mainWallet")


class ReceivePayloadResponse(FrozenModel):
    address: str
    optical_payload: str = Field(..., alias="opticalPayload")
    ndef_hex: str = Field(..., alias="ndefHex")


class DiscoveryStatusResponse(FrozenModel):
    active: bool
    result: Optional[DiscoveryResult] = None
    error: Optional[str] = None


class PaymentStatusResponse(FrozenModel):
    running: bool
    steps: List[PaymentStep] = Field(default_factory=list)
    result: Optional[PaymentResult] = None
