"""
Tests for the yield ledger backends.

Tests: mock backend atomicity, accrual and sweep; contract backend call
wiring against a mocked vault contract; backend factory.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest
from unittest.mock import AsyncMock, MagicMock

from domain.errors import TransferFailure
from services.yield_service import ContractYieldLedger, MockYieldLedger, build_yield_ledger
from tests.fakes import ETHER, GWEI, MAIN_WALLET, TARGET_ADDRESS


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestMockYieldLedger:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_positive_deposit_fails_without_mutation(self, burner):
        ledger = MockYieldLedger()
        await ledger.deposit(burner, 1.0)
        for amount in (0, -1.0):
            result = await ledger.deposit(burner, amount)
            assert result.success is False
        assert await ledger.get_yield_balance(burner.address) == pytest.approx(1.0)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_withdraw_more_than_position_fails(self, burner):
        ledger = MockYieldLedger()
        await ledger.deposit(burner, 1.0)
        result = await ledger.withdraw(burner, 2.0)
        assert result.success is False
        assert await ledger.get_yield_balance(burner.address) == pytest.approx(1.0)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_partial_withdraw(self, burner):
        ledger = MockYieldLedger()
        await ledger.deposit(burner, 1.0)
        result = await ledger.withdraw(burner, 0.4)
        assert result.success is True
        assert await ledger.get_yield_balance(burner.address) == pytest.approx(0.6)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sweep_takes_whole_position(self, burner):
        ledger = MockYieldLedger()
        await ledger.deposit(burner, 3.0)
        result = await ledger.withdraw(burner, 0.0, sweep_to=MAIN_WALLET)
        assert result.success is True
        assert result.amount == pytest.approx(3.0)
        assert await ledger.get_yield_balance(burner.address) == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sweep_empty_position(self, burner):
        result = await MockYieldLedger().withdraw(burner, 0.0, sweep_to=MAIN_WALLET)
        assert result.success is True
        assert result.amount == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_positions_keyed_case_insensitively(self, burner):
        ledger = MockYieldLedger()
        await ledger.deposit(burner, 1.0)
        assert await ledger.get_yield_balance(burner.address.lower()) == pytest.approx(1.0)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_simple_interest_accrual(self, burner):
        clock = FakeClock()
        ledger = MockYieldLedger(apr=0.10, clock=clock)
        await ledger.deposit(burner, 1.0)
        clock.now = 365 * 24 * 3600
        assert await ledger.get_yield_balance(burner.address) == pytest.approx(1.1)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_pay(self, burner):
        ledger = MockYieldLedger()
        await ledger.deposit(burner, 1.0)
        assert (await ledger.pay(burner, TARGET_ADDRESS, 0.25)).success is True
        assert (await ledger.pay(burner, TARGET_ADDRESS, 5.0)).success is False
        assert await ledger.get_yield_balance(burner.address) == pytest.approx(0.75)


def _contract(balance_wei: int = 0) -> MagicMock:
    contract = MagicMock()
    fns = contract.functions
    fns.getBalanceWithYield.return_value.call = AsyncMock(return_value=balance_wei)
    for name in ("deposit", "executePayment", "sweep"):
        getattr(fns, name).return_value.build_transaction = AsyncMock(
            return_value={"to": "0xvault", "data": "0x", "value": 0}
        )
    return contract


def _chain() -> MagicMock:
    chain = MagicMock()
    chain.chain_id = 10143
    chain.get_gas_price = AsyncMock(return_value=GWEI)
    return chain


def _transfers(tx_id: str = "0xabc") -> MagicMock:
    transfers = MagicMock()
    transfers.submit = AsyncMock(return_value=tx_id)
    return transfers


class TestContractYieldLedger:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_balance_query(self, burner):
        ledger = ContractYieldLedger(_chain(), _transfers(), contract=_contract(2 * ETHER))
        assert await ledger.get_yield_balance(burner.address) == pytest.approx(2.0)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_balance_query_error_reads_zero(self, burner):
        contract = _contract()
        contract.functions.getBalanceWithYield.return_value.call = AsyncMock(side_effect=ConnectionError("rpc down"))
        ledger = ContractYieldLedger(_chain(), _transfers(), contract=contract)
        assert await ledger.get_yield_balance(burner.address) == 0.0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_deposit_sends_value(self, burner):
        contract, transfers = _contract(), _transfers()
        ledger = ContractYieldLedger(_chain(), transfers, contract=contract)

        result = await ledger.deposit(burner, 0.5)

        assert result.success is True
        assert result.tx_id == "0xabc"
        fields = contract.functions.deposit.return_value.build_transaction.await_args.args[0]
        assert fields["value"] == ETHER // 2
        assert fields["from"] == burner.address
        transfers.submit.assert_awaited_once()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_deposit_failure(self, burner):
        transfers = _transfers()
        transfers.submit = AsyncMock(side_effect=TransferFailure("Yield reverted on-chain"))
        ledger = ContractYieldLedger(_chain(), transfers, contract=_contract())
        result = await ledger.deposit(burner, 0.5)
        assert result.success is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_positive_deposit_never_submits(self, burner):
        transfers = _transfers()
        ledger = ContractYieldLedger(_chain(), transfers, contract=_contract())
        assert (await ledger.deposit(burner, 0)).success is False
        transfers.submit.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_withdraw_pays_burner(self, burner):
        contract = _contract(ETHER)
        ledger = ContractYieldLedger(_chain(), _transfers(), contract=contract)
        result = await ledger.withdraw(burner, 0.25)
        assert result.success is True
        target, amount = contract.functions.executePayment.call_args.args
        assert target == burner.address
        assert amount == ETHER // 4

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sweep_empty_position_skips_transaction(self, burner):
        transfers = _transfers()
        ledger = ContractYieldLedger(_chain(), transfers, contract=_contract(0))
        result = await ledger.withdraw(burner, 0.0, sweep_to=MAIN_WALLET)
        assert result.success is True
        assert result.amount == 0
        transfers.submit.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sweep_to_main_wallet(self, burner):
        contract, transfers = _contract(3 * ETHER), _transfers("0xsweep")
        ledger = ContractYieldLedger(_chain(), transfers, contract=contract)

        result = await ledger.withdraw(burner, 0.0, sweep_to=MAIN_WALLET)

        assert result.success is True
        assert result.amount == pytest.approx(3.0)
        assert result.tx_id == "0xsweep"
        assert contract.functions.sweep.call_args.args == (MAIN_WALLET,)
        assert transfers.submit.await_args.kwargs["label"] == "Vault"


class TestFactory:

    @pytest.mark.unit
    def test_mock_backend(self):
        assert isinstance(build_yield_ledger("mock"), MockYieldLedger)

    @pytest.mark.unit
    def test_contract_backend_needs_chain(self):
        with pytest.raises(ValueError):
            build_yield_ledger("contract")

    @pytest.mark.unit
    def test_contract_backend(self):
        ledger = build_yield_ledger("contract", chain=_chain(), transfers=_transfers())
        assert isinstance(ledger, ContractYieldLedger)

    @pytest.mark.unit
    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            build_yield_ledger("savings-account")
