"""State-changing actions the console can submit to the managed contract"""

from enum import Enum


class ActionKind(Enum):
    # (contract operation, title, confirmation question, progress line, success line)
    ACTIVATE = (
        "Start",
        "activation",
        "Activate the contract?",
        "🚀 Activating...",
        "✅ Contract activated.",
    )
    DEACTIVATE = (
        "Stop",
        "deactivation",
        "Deactivate the contract?",
        "🛑 Deactivating...",
        "✅ Contract deactivated.",
    )
    WITHDRAW = (
        "Withdrawal",
        "withdrawal",
        "Withdraw the entire contract balance? The contract decides the recipient.",
        "💸 Withdrawing funds from contract...",
        "✅ Withdrawal transaction confirmed.",
    )

    def __init__(self, operation: str, title: str, question: str, progress: str, success: str):
        self.operation = operation
        self.title = title
        self.question = question
        self.progress = progress
        self.success = success

    @property
    def requires_strategy(self) -> bool:
        return self is ActionKind.ACTIVATE

    @property
    def requires_funds(self) -> bool:
        """Guarded by a zero contract balance"""
        return self in (ActionKind.ACTIVATE, ActionKind.WITHDRAW)


REQUIRED_OPERATIONS = tuple(kind.operation for kind in ActionKind)
