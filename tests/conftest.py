import io
from unittest.mock import MagicMock

import pytest
from eth_account import Account
from rich.console import Console

from contract_console.artifacts import MANAGED_CONTRACT_ABI
from contract_console.chain import ChainClient, ConfirmationResult, FeeParameters, PendingSubmission, SubmissionStatus
from contract_console.context import ContractReference, SessionContext
from contract_console.fees import FeeEstimator
from contract_console.gate import ConfirmationGate
from contract_console.workflow import TransactionWorkflow

TEST_KEY = "0x" + "11" * 32
CONTRACT = "0x000000000000000000000000000000000000dEaD"
TX_HASH = "0x" + "ab" * 32
GWEI = 10**9


def make_console():
    return Console(file=io.StringIO(), width=140, color_system=None)


def console_text(console):
    return console.file.getvalue()


@pytest.fixture
def console():
    return make_console()


@pytest.fixture
def identity():
    return Account.from_key(TEST_KEY)


@pytest.fixture
def context(identity):
    return SessionContext(identity=identity, contract=ContractReference(address=CONTRACT, abi=MANAGED_CONTRACT_ABI))


@pytest.fixture
def balances(identity):
    return {CONTRACT: 5 * 10**17, identity.address: 10**18}


@pytest.fixture
def chain(balances):
    chain = MagicMock(spec=ChainClient)
    chain.read_balance.side_effect = lambda address: balances[address]
    chain.read_fee_parameters.return_value = FeeParameters(legacy_price=20 * GWEI)
    chain.submit.side_effect = lambda operation, *args, **kwargs: PendingSubmission(tx_hash=TX_HASH, label=operation)
    chain.await_confirmation.return_value = ConfirmationResult(status=SubmissionStatus.CONFIRMED, block_number=123)
    chain.chain_id = 1
    return chain


class ScriptedAsk:
    """Answers confirmation prompts from a list and records the questions"""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.questions = []

    def __call__(self, question):
        self.questions.append(question)
        return self.answers.pop(0)


@pytest.fixture
def make_workflow(context, chain, console):
    def factory(*answers, gas_limit=300000):
        ask = ScriptedAsk(*answers)
        gate = ConfirmationGate(ask=ask, console=console)
        estimator = FeeEstimator(chain, default_gas_limit=gas_limit)
        workflow = TransactionWorkflow(context, chain, estimator, gate, console=console)
        workflow.ask = ask
        return workflow
    return factory
