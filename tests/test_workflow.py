"""
Tests for the activate / deactivate / withdraw workflow
"""

import json
from unittest.mock import MagicMock

import pytest

from contract_console.actions import ActionKind
from contract_console.chain import ChainClient, ConfirmationResult, FeeParameters, SubmissionStatus
from contract_console.errors import RemoteRejection, TransportError
from contract_console.fees import format_eth
from contract_console.strategy import Strategy
from contract_console.workflow import FailureReason, WorkflowState

from conftest import CONTRACT, GWEI, TX_HASH, console_text


# ========== Confirmation gate ==========

class TestGateRejection:
    @pytest.mark.parametrize("action", list(ActionKind))
    @pytest.mark.parametrize("answer", ["n", "", "yes", " no "])
    def test_rejection_never_submits(self, make_workflow, context, chain, action, answer):
        context.selector.select(Strategy.LIGHT)
        workflow = make_workflow(answer)
        outcome = workflow.run(action)
        assert outcome.state is WorkflowState.FAILED
        assert outcome.reason is FailureReason.CANCELLED_BY_OPERATOR
        assert not outcome.submitted
        chain.submit.assert_not_called()

    def test_upper_case_y_approves(self, make_workflow, chain):
        outcome = make_workflow("Y").run(ActionKind.DEACTIVATE)
        assert outcome.succeeded
        chain.submit.assert_called_once()

    def test_gate_is_asked_the_action_question(self, make_workflow, context):
        context.selector.select(Strategy.MEDIUM)
        workflow = make_workflow("n")
        workflow.run(ActionKind.WITHDRAW)
        assert ActionKind.WITHDRAW.question in workflow.ask.questions[0]


# ========== Guards ==========

class TestGuards:
    def test_activate_requires_strategy_regardless_of_balance(self, make_workflow, chain, balances):
        for balance in (0, 1, 10**20):
            balances[CONTRACT] = balance
            outcome = make_workflow("y").run(ActionKind.ACTIVATE)
            assert outcome.reason is FailureReason.STRATEGY_UNSET
        chain.submit.assert_not_called()
        chain.read_fee_parameters.assert_not_called()

    @pytest.mark.parametrize("action", [ActionKind.ACTIVATE, ActionKind.WITHDRAW])
    def test_zero_balance_blocks_activate_and_withdraw(self, make_workflow, context, chain, balances, action):
        context.selector.select(Strategy.AGGRESSIVE)
        balances[CONTRACT] = 0
        outcome = make_workflow("y").run(action)
        assert outcome.reason is FailureReason.ZERO_BALANCE
        assert outcome.path == [WorkflowState.IDLE, WorkflowState.GUARDING, WorkflowState.FAILED]
        chain.submit.assert_not_called()

    @pytest.mark.parametrize("action", [ActionKind.ACTIVATE, ActionKind.WITHDRAW])
    def test_one_wei_is_enough(self, make_workflow, context, chain, balances, action):
        context.selector.select(Strategy.LIGHT)
        balances[CONTRACT] = 1
        outcome = make_workflow("y").run(action)
        assert outcome.succeeded

    def test_deactivate_ignores_balance(self, make_workflow, chain, balances):
        balances[CONTRACT] = 0
        outcome = make_workflow("y").run(ActionKind.DEACTIVATE)
        assert outcome.succeeded
        assert WorkflowState.GUARDING not in outcome.path
        chain.read_balance.assert_not_called()


# ========== Pricing and submission ==========

class TestSubmission:
    def test_priority_price_is_used_for_submission(self, make_workflow, chain):
        chain.read_fee_parameters.return_value = FeeParameters(
            legacy_price=20 * GWEI, priority_price=50 * GWEI, priority_tip=2 * GWEI
        )
        outcome = make_workflow("y").run(ActionKind.DEACTIVATE)
        assert outcome.succeeded
        kwargs = chain.submit.call_args.kwargs
        assert kwargs["price_params"] == {"maxFeePerGas": 50 * GWEI, "maxPriorityFeePerGas": 2 * GWEI}
        assert kwargs["gas_limit"] == 300000

    def test_absent_price_still_submits_without_override(self, make_workflow, console, chain):
        chain.read_fee_parameters.return_value = FeeParameters()
        outcome = make_workflow("y").run(ActionKind.DEACTIVATE)
        assert outcome.succeeded
        assert chain.submit.call_args.kwargs["price_params"] == {}
        assert "unknown" in console_text(console)

    def test_transport_error_while_pricing_propagates(self, make_workflow, chain):
        chain.read_fee_parameters.side_effect = TransportError("connection refused", action="eth_gasPrice")
        workflow = make_workflow("y")
        with pytest.raises(TransportError):
            workflow.run(ActionKind.DEACTIVATE)
        chain.submit.assert_not_called()
        assert not workflow.in_flight(ActionKind.DEACTIVATE)

    def test_rejected_submission_fails_with_reason(self, make_workflow, chain):
        chain.submit.side_effect = RemoteRejection("broadcast Stop", reason="insufficient funds for gas")
        outcome = make_workflow("y").run(ActionKind.DEACTIVATE)
        assert outcome.reason is FailureReason.REMOTE_REJECTION
        assert outcome.detail == "insufficient funds for gas"
        chain.await_confirmation.assert_not_called()

    def test_reverted_receipt_is_a_failure(self, make_workflow, chain):
        chain.await_confirmation.return_value = ConfirmationResult(status=SubmissionStatus.FAILED, block_number=9)
        outcome = make_workflow("y").run(ActionKind.DEACTIVATE)
        assert outcome.reason is FailureReason.REVERTED
        assert outcome.tx_hash == TX_HASH

    def test_successful_path(self, make_workflow, chain):
        outcome = make_workflow("y").run(ActionKind.DEACTIVATE)
        assert outcome.path == [
            WorkflowState.IDLE,
            WorkflowState.PRICING,
            WorkflowState.AWAITING_CONFIRMATION,
            WorkflowState.SUBMITTING,
            WorkflowState.AWAITING_INCLUSION,
            WorkflowState.SUCCEEDED,
        ]
        assert outcome.block_number == 123
        chain.submit.assert_called_once_with("Stop", (), gas_limit=300000, price_params={"gasPrice": 20 * GWEI}, value=0)

    def test_each_action_gets_a_fresh_quote(self, make_workflow, chain):
        workflow = make_workflow("y", "y")
        workflow.run(ActionKind.DEACTIVATE)
        chain.read_fee_parameters.return_value = FeeParameters(legacy_price=99 * GWEI)
        second = workflow.run(ActionKind.DEACTIVATE)
        assert chain.read_fee_parameters.call_count == 2
        assert second.quote.unit_price == 99 * GWEI


# ========== Lost confirmations ==========

class TestConfirmationLost:
    def test_transport_error_while_waiting_is_confirmation_lost(self, make_workflow, chain):
        chain.await_confirmation.side_effect = TransportError("read timed out", action="await Stop")
        outcome = make_workflow("y").run(ActionKind.DEACTIVATE)
        assert outcome.state is WorkflowState.FAILED
        assert outcome.reason is FailureReason.CONFIRMATION_LOST
        assert outcome.reason is not FailureReason.REMOTE_REJECTION
        assert outcome.tx_hash == TX_HASH

    def test_never_resubmits(self, make_workflow, chain):
        chain.await_confirmation.side_effect = TransportError("boom")
        make_workflow("y").run(ActionKind.DEACTIVATE)
        assert chain.submit.call_count == 1

    def test_lock_released_after_terminal_state(self, make_workflow, chain):
        chain.await_confirmation.side_effect = TransportError("boom")
        workflow = make_workflow("y", "y")
        workflow.run(ActionKind.DEACTIVATE)
        assert not workflow.in_flight(ActionKind.DEACTIVATE)
        workflow.run(ActionKind.DEACTIVATE)
        assert chain.submit.call_count == 2

    def test_non_json_receipt_reply_is_confirmation_lost(self, make_workflow, chain):
        w3 = MagicMock()
        w3.eth.wait_for_transaction_receipt.side_effect = json.JSONDecodeError(
            "Expecting value", "<html>bad gateway</html>", 0
        )
        chain.await_confirmation.side_effect = ChainClient(w3, MagicMock(), MagicMock()).await_confirmation
        outcome = make_workflow("y").run(ActionKind.WITHDRAW)
        assert outcome.reason is FailureReason.CONFIRMATION_LOST
        assert outcome.tx_hash == TX_HASH
        assert "not JSON" in outcome.detail
        assert chain.submit.call_count == 1


class TestInFlight:
    def test_same_kind_is_refused_while_in_flight(self, make_workflow, chain):
        workflow = make_workflow("y")
        nested = []

        def reenter(pending):
            nested.append(workflow.run(ActionKind.DEACTIVATE))
            return ConfirmationResult(status=SubmissionStatus.CONFIRMED, block_number=1)

        chain.await_confirmation.side_effect = reenter
        outcome = workflow.run(ActionKind.DEACTIVATE)
        assert outcome.succeeded
        assert nested[0].reason is FailureReason.ALREADY_IN_FLIGHT
        assert chain.submit.call_count == 1

    def test_other_kinds_are_not_blocked(self, make_workflow, context, chain):
        context.selector.select(Strategy.LIGHT)
        workflow = make_workflow("y", "y")
        nested = []

        def reenter(pending):
            if pending.label == "Stop":
                nested.append(workflow.run(ActionKind.WITHDRAW))
            return ConfirmationResult(status=SubmissionStatus.CONFIRMED, block_number=1)

        chain.await_confirmation.side_effect = reenter
        workflow.run(ActionKind.DEACTIVATE)
        assert len(nested) == 1
        assert nested[0].succeeded


# ========== End-to-end scenarios ==========

class TestScenarios:
    def test_a_strategy_unset(self, make_workflow, chain):
        outcome = make_workflow("y").run(ActionKind.ACTIVATE)
        assert outcome.reason is FailureReason.STRATEGY_UNSET
        chain.submit.assert_not_called()

    def test_b_zero_balance(self, make_workflow, context, chain, balances):
        context.selector.select(Strategy.MEDIUM)
        balances[CONTRACT] = 0
        outcome = make_workflow("y").run(ActionKind.ACTIVATE)
        assert outcome.reason is FailureReason.ZERO_BALANCE
        chain.submit.assert_not_called()

    def test_c_legacy_price_preview_and_submit(self, make_workflow, console, context, chain):
        price = 17 * GWEI
        context.selector.select(Strategy.LIGHT)
        chain.read_fee_parameters.return_value = FeeParameters(legacy_price=price)
        outcome = make_workflow("y").run(ActionKind.ACTIVATE)
        assert outcome.succeeded
        assert outcome.quote.max_cost == price * 300000
        assert format_eth(price * 300000) in console_text(console)
        chain.submit.assert_called_once_with("Start", (), gas_limit=300000, price_params={"gasPrice": price}, value=0)

    def test_d_withdraw_confirmation_lost(self, make_workflow, chain):
        chain.await_confirmation.side_effect = TransportError("connection reset", action="await Withdrawal")
        outcome = make_workflow("y").run(ActionKind.WITHDRAW)
        assert outcome.state is WorkflowState.FAILED
        assert outcome.reason is FailureReason.CONFIRMATION_LOST
        assert outcome.tx_hash == TX_HASH
        chain.submit.assert_called_once()
