"""
Pytest configuration and shared fixtures for BurnerPay tests.

Provides an in-memory SQLite secret store, a fake chain, a price oracle
pinned to the fallback rates and a fully wired payment orchestrator.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest
from typing import AsyncGenerator

import httpx
from eth_account import Account
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from web3 import Web3

from database import Base
from models import BurnerWallet
from services.ledger_service import BalanceLedger
from services.payment_service import PaymentOrchestrator
from services.price_service import PriceOracle
from services.secret_store import SecretStore
from services.transfer_service import TransferEngine
from services.wallet_service import KeyCustodian
from services.yield_service import MockYieldLedger
from tests.fakes import FakeChain


# ── Database Fixtures ────────────────────────────────────────────────


@pytest.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """
    In-memory SQLite session factory, fresh for each test.

    Uses StaticPool so every session sees the same in-memory database.
    """
    import db_models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def secret_store(session_factory) -> SecretStore:
    return SecretStore(session_factory)


@pytest.fixture
def custodian(secret_store) -> KeyCustodian:
    return KeyCustodian(secret_store)


# ── Chain / Service Fixtures ─────────────────────────────────────────


@pytest.fixture
def fake_chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def transfer_engine(fake_chain) -> TransferEngine:
    return TransferEngine(fake_chain)


@pytest.fixture
def mock_yield() -> MockYieldLedger:
    return MockYieldLedger()


@pytest.fixture
def ledger(fake_chain, transfer_engine, mock_yield) -> BalanceLedger:
    return BalanceLedger(fake_chain, transfer_engine, mock_yield)


@pytest.fixture
def fallback_oracle() -> PriceOracle:
    """Price oracle whose source always answers 503 (fallback rates)."""
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    return PriceOracle(transport=transport)


@pytest.fixture
def orchestrator(custodian, fallback_oracle, ledger, transfer_engine) -> PaymentOrchestrator:
    return PaymentOrchestrator(custodian, fallback_oracle, ledger, transfer_engine)


# ── Test Data Fixtures ────────────────────────────────────────────────


@pytest.fixture
def burner() -> BurnerWallet:
    """A throwaway key pair not tied to any store."""
    account = Account.create()
    return BurnerWallet(
        address=account.address,
        signing_key=SecretStr(Web3.to_hex(account.key)),
    )
