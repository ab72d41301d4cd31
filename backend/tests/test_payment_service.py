"""
Tests for the payment pipeline.

Tests: happy path step sequence and balances, yield-funded path, transfer
failure, burn failure, single-run lock, progress sink isolation, step log
replace-by-phase rules.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import asyncio
import pytest
from unittest.mock import AsyncMock, patch

from domain.enums import PaymentPhase
from domain.errors import BurnFailure, PaymentInProgress, ValidationError
from models import PaymentStep
from services.payment_service import PaymentStepLog
from utils.units import to_wei
from tests.fakes import ETHER, GWEI, MAIN_WALLET, TARGET_ADDRESS

P = PaymentPhase
FALLBACK_AMOUNT = 50 / (5 * 35)


async def _funded_wallet(custodian, fake_chain, amount_wei: int = ETHER):
    wallet = await custodian.get_or_create_wallet()
    fake_chain.fund(wallet.address, amount_wei)
    return wallet


class TestHappyPath:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_step_sequence(self, orchestrator, custodian, fake_chain):
        await _funded_wallet(custodian, fake_chain)
        steps = PaymentStepLog()

        result = await orchestrator.run(TARGET_ADDRESS, MAIN_WALLET, on_progress=steps)

        assert result.success is True
        assert steps.phases == [P.ORACLE, P.TRANSFER, P.SWEEP, P.BURN, P.DONE]
        assert result.transfer_tx_id is not None
        assert result.sweep_tx_id is not None
        assert result.native_amount == pytest.approx(FALLBACK_AMOUNT)
        assert result.error is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_balances_after_run(self, orchestrator, custodian, fake_chain):
        wallet = await _funded_wallet(custodian, fake_chain)

        await orchestrator.run(TARGET_ADDRESS, MAIN_WALLET)

        amount_wei = to_wei(FALLBACK_AMOUNT)
        gas_cost = 21_000 * GWEI
        assert fake_chain.balance_of(TARGET_ADDRESS) == amount_wei
        assert fake_chain.balance_of(MAIN_WALLET) == ETHER - amount_wei - 2 * gas_cost
        assert fake_chain.balance_of(wallet.address) == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_key_destroyed(self, orchestrator, custodian, fake_chain):
        await _funded_wallet(custodian, fake_chain)
        await orchestrator.run(TARGET_ADDRESS, MAIN_WALLET)
        assert await custodian.has_wallet() is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_nothing_to_sweep_still_succeeds(self, orchestrator, custodian, fake_chain):
        """Exactly enough for the transfer plus one fee: the sweep is a no-op."""
        await _funded_wallet(custodian, fake_chain, to_wei(FALLBACK_AMOUNT) + 21_000 * GWEI)
        steps = PaymentStepLog()

        result = await orchestrator.run(TARGET_ADDRESS, MAIN_WALLET, on_progress=steps)

        assert result.success is True
        assert result.sweep_tx_id is None
        sweep = [s for s in steps.steps if s.phase == P.SWEEP][0]
        assert sweep.message == "Nothing to sweep"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_custom_fiat_amount(self, orchestrator, custodian, fake_chain):
        await _funded_wallet(custodian, fake_chain)
        result = await orchestrator.run(TARGET_ADDRESS, MAIN_WALLET, fiat_amount=100)
        assert result.native_amount == pytest.approx(100 / 175)


class TestYieldFundedPath:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_withdraw_before_transfer(self, orchestrator, custodian, fake_chain, mock_yield):
        """Short on balance with a yield position: withdraw runs, transfer is still attempted."""
        wallet = await custodian.get_or_create_wallet()
        await mock_yield.deposit(wallet, 1.0)
        steps = PaymentStepLog()

        result = await orchestrator.run(TARGET_ADDRESS, MAIN_WALLET, on_progress=steps)

        assert steps.phases[:3] == [P.ORACLE, P.WITHDRAW, P.TRANSFER]
        assert await mock_yield.get_yield_balance(wallet.address) == 0
        assert len(fake_chain.attempts) == 1
        # the position went to the main wallet, the burner stays empty
        assert result.success is False
        assert steps.phases[-1] == P.ERROR

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_withdraw_recorded_and_pipeline_continues(
        self, orchestrator, custodian, fake_chain, mock_yield
    ):
        wallet = await custodian.get_or_create_wallet()
        await mock_yield.deposit(wallet, 1.0)
        steps = PaymentStepLog()

        with patch.object(mock_yield, "withdraw", AsyncMock(return_value=_failed_yield())):
            await orchestrator.run(TARGET_ADDRESS, MAIN_WALLET, on_progress=steps)

        withdraw = [s for s in steps.steps if s.phase == P.WITHDRAW][0]
        assert withdraw.message == "Yield withdrawal failed"
        assert P.TRANSFER in steps.phases

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_position_skips_withdraw(self, orchestrator, custodian, fake_chain):
        steps = PaymentStepLog()
        await orchestrator.run(TARGET_ADDRESS, MAIN_WALLET, on_progress=steps)
        assert P.WITHDRAW not in steps.phases
        assert steps.phases == [P.ORACLE, P.TRANSFER, P.ERROR]


def _failed_yield():
    from models import YieldResult
    return YieldResult(success=False, amount=1.0)


class TestFailures:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_transfer_failure(self, orchestrator, custodian, fake_chain):
        await _funded_wallet(custodian, fake_chain)
        fake_chain.fail_submit = True
        steps = PaymentStepLog()

        with patch.object(custodian, "destroy_wallet", AsyncMock()) as destroy:
            result = await orchestrator.run(TARGET_ADDRESS, MAIN_WALLET, on_progress=steps)

        assert result.success is False
        assert steps.phases == [P.ORACLE, P.TRANSFER, P.ERROR]
        assert [s.phase for s in steps.steps].count(P.ERROR) == 1
        destroy.assert_not_awaited()
        assert await custodian.has_wallet() is True
        assert "submission failed" in result.error

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_revert_keeps_wallet(self, orchestrator, custodian, fake_chain):
        await _funded_wallet(custodian, fake_chain)
        fake_chain.revert = True

        result = await orchestrator.run(TARGET_ADDRESS, MAIN_WALLET)

        assert result.success is False
        assert result.transfer_tx_id is None
        assert "reverted" in result.error
        assert await custodian.has_wallet() is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_burn_failure(self, orchestrator, custodian, fake_chain):
        """Transfer and sweep confirmed, key erase fails: run fails, both tx ids are kept."""
        await _funded_wallet(custodian, fake_chain)
        steps = PaymentStepLog()

        with patch.object(custodian, "destroy_wallet", AsyncMock(side_effect=BurnFailure())):
            result = await orchestrator.run(TARGET_ADDRESS, MAIN_WALLET, on_progress=steps)

        assert result.success is False
        assert result.transfer_tx_id is not None
        assert result.sweep_tx_id is not None
        assert steps.phases == [P.ORACLE, P.TRANSFER, P.SWEEP, P.BURN, P.ERROR]
        assert fake_chain.balance_of(TARGET_ADDRESS) > 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_error_step_detail(self, orchestrator, custodian, fake_chain):
        fake_chain.fail_submit = True
        steps = PaymentStepLog()
        await orchestrator.run(TARGET_ADDRESS, MAIN_WALLET, on_progress=steps)
        error = steps.steps[-1]
        assert error.message == "Payment failed"
        assert "node rejected transaction" in error.detail

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failing_sink_does_not_break_run(self, orchestrator, custodian, fake_chain):
        await _funded_wallet(custodian, fake_chain)

        def sink(step):
            raise RuntimeError("display gone")

        result = await orchestrator.run(TARGET_ADDRESS, MAIN_WALLET, on_progress=sink)
        assert result.success is True


class TestPreconditions:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_target(self, orchestrator, fake_chain):
        with pytest.raises(ValidationError):
            await orchestrator.run("ethereum:nope", MAIN_WALLET)
        assert fake_chain.attempts == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_main_wallet(self, orchestrator):
        with pytest.raises(ValidationError):
            await orchestrator.run(TARGET_ADDRESS, "")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_one_run_at_a_time(self, orchestrator, custodian, fake_chain):
        await _funded_wallet(custodian, fake_chain)
        gate = asyncio.Event()
        original = fake_chain.get_gas_price

        async def slow_gas_price():
            await gate.wait()
            return await original()

        fake_chain.get_gas_price = slow_gas_price
        first = asyncio.create_task(orchestrator.run(TARGET_ADDRESS, MAIN_WALLET))
        await asyncio.sleep(0.01)

        assert orchestrator.running is True
        with pytest.raises(PaymentInProgress):
            await orchestrator.run(TARGET_ADDRESS, MAIN_WALLET)

        gate.set()
        assert (await first).success is True
        assert orchestrator.running is False


class TestPaymentStepLog:

    @pytest.mark.unit
    def test_same_phase_replaces(self):
        log = PaymentStepLog()
        log.record(PaymentStep(phase=P.ORACLE, message="Calculating price..."))
        log.record(PaymentStep(phase=P.ORACLE, message="0.2857 MON calculated"))
        assert len(log.steps) == 1
        assert log.steps[0].message == "0.2857 MON calculated"

    @pytest.mark.unit
    def test_replacement_keeps_position(self):
        log = PaymentStepLog()
        log.record(PaymentStep(phase=P.ORACLE, message="a"))
        log.record(PaymentStep(phase=P.TRANSFER, message="b"))
        log.record(PaymentStep(phase=P.ORACLE, message="c"))
        assert log.phases == [P.ORACLE, P.TRANSFER]
        assert log.steps[0].message == "c"

    @pytest.mark.unit
    def test_terminal_steps_are_final(self):
        log = PaymentStepLog()
        log.record(PaymentStep(phase=P.TRANSFER, message="Sending..."))
        log.record(PaymentStep(phase=P.ERROR, message="Payment failed"))
        log.record(PaymentStep(phase=P.ERROR, message="again"))
        log.record(PaymentStep(phase=P.DONE, message="late"))
        assert log.phases == [P.TRANSFER, P.ERROR]
        assert log.is_terminal is True

    @pytest.mark.unit
    def test_log_is_a_sink(self):
        log = PaymentStepLog()
        log(PaymentStep(phase=P.BURN, message="Destroying burner wallet..."))
        assert log.phases == [P.BURN]
