"""
Tests for the confirmation gate
"""

import pytest

from contract_console.gate import ConfirmationGate, is_approval

from conftest import console_text


class TestIsApproval:
    @pytest.mark.parametrize("answer", ["y", "Y", " y ", "y\n"])
    def test_approves(self, answer):
        assert is_approval(answer)

    @pytest.mark.parametrize("answer", ["", "n", "N", "yes", "yy", "ok", "1", None])
    def test_rejects(self, answer):
        assert not is_approval(answer)


class TestConfirmationGate:
    def test_preview_is_shown_before_asking(self, console):
        seen = []

        def ask(question):
            seen.append(console_text(console))
            return "y"

        gate = ConfirmationGate(ask=ask, console=console)
        assert gate.confirm("max tx cost: 0.006 ETH", "Activate the contract?")
        assert "max tx cost: 0.006 ETH" in seen[0]

    def test_question_is_passed_through(self, console):
        questions = []
        gate = ConfirmationGate(ask=lambda q: questions.append(q) or "n", console=console)
        assert not gate.confirm("preview", "Deactivate the contract?")
        assert "Deactivate the contract? (y/n)" in questions[0]

    def test_end_of_input_rejects(self, console):
        def ask(question):
            raise EOFError

        assert not ConfirmationGate(ask=ask, console=console).confirm("preview")

    def test_preview_is_not_parsed_as_markup(self, console):
        gate = ConfirmationGate(ask=lambda q: "n", console=console)
        gate.confirm("[bold]literal[/bold]")
        assert "[bold]literal[/bold]" in console_text(console)
