"""
Shared FastAPI dependencies.

Every service is a process-wide singleton built lazily on first use, so
routers import from a single place and tests can swap any of them through
app.dependency_overrides.
"""
from __future__ import annotations

from functools import lru_cache

from config import settings
from database import async_session
from evm_client import evm_client
from services.ledger_service import BalanceLedger
from services.payment_service import PaymentOrchestrator
from services.price_service import PriceOracle
from services.secret_store import SecretStore
from services.session_service import PaymentSessionManager
from services.transfer_service import TransferEngine
from services.wallet_service import KeyCustodian
from services.yield_service import YieldLedger, build_yield_ledger


@lru_cache
def get_secret_store() -> SecretStore:
    return SecretStore(async_session, encryption_key=settings.secret_store_key)


@lru_cache
def get_custodian() -> KeyCustodian:
    return KeyCustodian(get_secret_store())


@lru_cache
def get_oracle() -> PriceOracle:
    return PriceOracle()


@lru_cache
def get_transfer_engine() -> TransferEngine:
    return TransferEngine(evm_client)


@lru_cache
def get_yield_ledger() -> YieldLedger:
    return build_yield_ledger(settings.yield_backend, chain=evm_client, transfers=get_transfer_engine())


@lru_cache
def get_ledger() -> BalanceLedger:
    return BalanceLedger(evm_client, get_transfer_engine(), get_yield_ledger())


@lru_cache
def get_orchestrator() -> PaymentOrchestrator:
    return PaymentOrchestrator(get_custodian(), get_oracle(), get_ledger(), get_transfer_engine())


@lru_cache
def get_session_manager() -> PaymentSessionManager:
    return PaymentSessionManager(get_custodian(), get_orchestrator())
