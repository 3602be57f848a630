"""
Transaction workflow for activate / deactivate / withdraw.

Each invocation walks

    Idle -> Guarding -> Pricing -> AwaitingConfirmation -> Submitting
         -> AwaitingInclusion -> Succeeded | Failed

and returns an Outcome. Guard failures, operator cancellation, rejected
submissions and lost confirmations are Outcomes, not exceptions.
TransportError / RemoteRejection raised before anything is broadcast
propagate to the caller.

Once a transaction has been broadcast its outcome is never retried or
guessed: if the receipt cannot be observed the Outcome is ConfirmationLost
and carries the hash.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set

from rich.console import Console

from contract_console.actions import ActionKind
from contract_console.chain import SubmissionStatus
from contract_console.context import SessionContext
from contract_console.errors import ConsoleError, RemoteRejection, TransportError
from contract_console.fees import FeeEstimator, FeeQuote, render_preview
from contract_console.gate import ConfirmationGate
from contract_console.logs import console as default_console

logger = logging.getLogger(__name__)


class WorkflowState(Enum):
    IDLE = "Idle"
    GUARDING = "Guarding"
    PRICING = "Pricing"
    AWAITING_CONFIRMATION = "AwaitingConfirmation"
    SUBMITTING = "Submitting"
    AWAITING_INCLUSION = "AwaitingInclusion"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class FailureReason(Enum):
    STRATEGY_UNSET = "StrategyUnset"
    ZERO_BALANCE = "ZeroBalance"
    CANCELLED_BY_OPERATOR = "CancelledByOperator"
    ALREADY_IN_FLIGHT = "AlreadyInFlight"
    REMOTE_REJECTION = "RemoteRejection"
    REVERTED = "Reverted"
    CONFIRMATION_LOST = "ConfirmationLost"

    @property
    def informational(self) -> bool:
        """Expected outcome of a guard or the gate, not an error"""
        return self in (
            FailureReason.STRATEGY_UNSET,
            FailureReason.ZERO_BALANCE,
            FailureReason.CANCELLED_BY_OPERATOR,
            FailureReason.ALREADY_IN_FLIGHT,
        )


@dataclass
class Outcome:
    action: ActionKind
    state: WorkflowState = WorkflowState.IDLE
    reason: Optional[FailureReason] = None
    detail: Optional[str] = None
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    quote: Optional[FeeQuote] = None
    path: List[WorkflowState] = field(default_factory=lambda: [WorkflowState.IDLE])

    @property
    def succeeded(self) -> bool:
        return self.state is WorkflowState.SUCCEEDED

    @property
    def submitted(self) -> bool:
        return self.tx_hash is not None

    def enter(self, state: WorkflowState) -> None:
        logger.debug("%s: %s -> %s", self.action.title, self.state.value, state.value)
        self.state = state
        self.path.append(state)

    def fail(self, reason: FailureReason, detail: Optional[str] = None) -> "Outcome":
        self.reason = reason
        self.detail = detail
        self.enter(WorkflowState.FAILED)
        return self


class TransactionWorkflow:
    def __init__(
        self,
        context: SessionContext,
        chain,
        estimator: FeeEstimator,
        gate: ConfirmationGate,
        console: Optional[Console] = None,
    ):
        self.context = context
        self.chain = chain
        self.estimator = estimator
        self.gate = gate
        self.console = console or default_console
        self._in_flight: Set[ActionKind] = set()

    def in_flight(self, action: ActionKind) -> bool:
        return action in self._in_flight

    def run(self, action: ActionKind) -> Outcome:
        """Drive one action to a terminal state"""
        outcome = Outcome(action)
        if action in self._in_flight:
            return outcome.fail(FailureReason.ALREADY_IN_FLIGHT, f"a {action.title} is still awaiting its result")
        self._in_flight.add(action)
        try:
            self._run(outcome)
        except ConsoleError:
            if outcome.state not in (WorkflowState.SUCCEEDED, WorkflowState.FAILED):
                outcome.enter(WorkflowState.FAILED)
            raise
        finally:
            self._in_flight.discard(action)
        self._journal_outcome(outcome)
        return outcome

    def _run(self, outcome: Outcome) -> Outcome:
        action = outcome.action

        if action.requires_strategy or action.requires_funds:
            outcome.enter(WorkflowState.GUARDING)
            if action.requires_strategy and not self.context.selector.is_set():
                return outcome.fail(FailureReason.STRATEGY_UNSET)
            if action.requires_funds:
                balance = self.chain.read_balance(self.context.contract.address)
                if balance == 0:
                    return outcome.fail(FailureReason.ZERO_BALANCE)

        outcome.enter(WorkflowState.PRICING)
        quote = self.estimator.quote(action)
        outcome.quote = quote

        outcome.enter(WorkflowState.AWAITING_CONFIRMATION)
        if not self.gate.confirm(render_preview(quote), action.question):
            return outcome.fail(FailureReason.CANCELLED_BY_OPERATOR)

        outcome.enter(WorkflowState.SUBMITTING)
        self.console.print(f"\n{action.progress}")
        self._journal_intent(quote)
        try:
            pending = self.chain.submit(
                action.operation,
                (),
                gas_limit=quote.gas_limit,
                price_params=quote.price_params(),
                value=0,
            )
        except RemoteRejection as e:
            return outcome.fail(FailureReason.REMOTE_REJECTION, e.reason)
        outcome.tx_hash = pending.tx_hash
        self.console.print(f"📝 Tx hash: {pending.tx_hash}")

        outcome.enter(WorkflowState.AWAITING_INCLUSION)
        self.console.print("⏳ Waiting for confirmation...")
        try:
            result = self.chain.await_confirmation(pending)
        except (TransportError, RemoteRejection) as e:
            # Broadcast already happened; the on-chain result is unknown
            logger.warning("Lost track of %s (%s): %s", action.title, pending.tx_hash, e)
            return outcome.fail(FailureReason.CONFIRMATION_LOST, str(e))

        outcome.block_number = result.block_number
        if result.status is SubmissionStatus.CONFIRMED:
            outcome.enter(WorkflowState.SUCCEEDED)
            return outcome
        return outcome.fail(FailureReason.REVERTED, f"reverted in block {result.block_number}")

    def _journal_intent(self, quote: FeeQuote) -> None:
        self.context.journal.record(
            quote.action.operation,
            "intent",
            chainId=self.chain.chain_id if self.context.journal.enabled else None,
            **{"from": self.context.signer_address},
            to=self.context.contract.address,
            value=0,
            gas=quote.gas_limit,
            pricing=quote.price_params(),
        )

    def _journal_outcome(self, outcome: Outcome) -> None:
        if not outcome.submitted:
            return
        self.context.journal.record(
            outcome.action.operation,
            "outcome",
            txHash=outcome.tx_hash,
            state=outcome.state.value,
            reason=outcome.reason.value if outcome.reason else None,
            blockNumber=outcome.block_number,
        )
