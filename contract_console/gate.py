"""Operator confirmation before anything is signed"""

from typing import Callable, Optional

from rich.console import Console
from rich.prompt import Prompt

from contract_console.logs import console as default_console

APPROVAL = "y"


def _ask(question: str) -> str:
    return Prompt.ask(question, default="", show_default=False)


def is_approval(answer: Optional[str]) -> bool:
    """Only "y" (any case) approves; everything else, empty included, rejects"""
    if answer is None:
        return False
    return answer.strip().lower() == APPROVAL


class ConfirmationGate:
    def __init__(self, ask: Callable[[str], str] = _ask, console: Optional[Console] = None):
        self.ask = ask
        self.console = console or default_console

    def confirm(self, preview_text: str, question: str = "Proceed?") -> bool:
        """Show the preview and block until the operator answers"""
        self.console.print()
        self.console.print(preview_text, markup=False, highlight=False)
        try:
            answer = self.ask(f"\n🚨 {question} (y/n)")
        except EOFError:
            answer = None
        return is_approval(answer)
