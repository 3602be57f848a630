"""
Interactive session: menus as a small state machine.

Every menu is a handler that draws its screen, reads one choice and returns
the id of the next menu. TransportError and RemoteRejection escaping a
handler are reported and the same menu is shown again; they never end the
session.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import questionary
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from contract_console.actions import ActionKind
from contract_console.context import SessionContext
from contract_console.errors import FeedMalformed, FeedUnreachable, RemoteRejection, TransportError
from contract_console.fees import format_eth
from contract_console.logs import console as default_console
from contract_console.prices import PriceFeedClient, market_tables
from contract_console.strategy import Strategy, strategy_table
from contract_console.workflow import FailureReason, Outcome, TransactionWorkflow

logger = logging.getLogger(__name__)

Option = Tuple[str, str]
Chooser = Callable[[str, Sequence[Option]], Optional[str]]


class MenuId(Enum):
    MAIN = "main"
    STRATEGY = "strategy"
    QUOTES = "quotes"
    INSTRUCTIONS = "instructions"
    EXIT = "exit"


MAIN_OPTIONS: List[Option] = [
    ("1", "1) Activate"),
    ("2", "2) Deactivate"),
    ("3", "3) Withdraw Funds"),
    ("4", "4) Strategy"),
    ("5", "5) Refresh Info"),
    ("6", "6) Quotes"),
    ("7", "7) Instructions"),
    ("0", "0) Exit"),
]

STRATEGY_OPTIONS: List[Option] = [
    ("1", "1) Light"),
    ("2", "2) Medium"),
    ("3", "3) Aggressive"),
    ("0", "0) Back to main menu"),
]

QUOTES_OPTIONS: List[Option] = [
    ("1", "1) Refresh"),
    ("0", "0) Back to main menu"),
]

INSTRUCTIONS_OPTIONS: List[Option] = [
    ("0", "0) Back to main menu"),
]

ACTION_CHOICES = {
    "1": ActionKind.ACTIVATE,
    "2": ActionKind.DEACTIVATE,
    "3": ActionKind.WITHDRAW,
}

STRATEGY_CHOICES = {
    "1": Strategy.LIGHT,
    "2": Strategy.MEDIUM,
    "3": Strategy.AGGRESSIVE,
}

INSTRUCTIONS = """\
[bold]Actions[/bold]
  [cyan]Activate[/cyan]    Calls Start() on the contract. Requires a selected strategy
              and a non-zero contract balance.
  [cyan]Deactivate[/cyan]  Calls Stop() on the contract.
  [cyan]Withdraw[/cyan]    Calls Withdrawal(). The contract code decides where the
              balance goes; read the verified source before relying on it.

Every action shows its gas limit, price and maximum cost and waits for an
explicit "y". If the confirmation cannot be observed after broadcast, the
transaction hash is shown; check it on a block explorer before retrying.

[bold]Strategy[/bold]
  A label recorded for this session only. It is not sent to the contract.

[bold]Configuration[/bold] (.env or environment)
  CONTRACT_ADDRESS=0x...   address of the deployed contract
  PRIVATE_KEY=...          key of the wallet that manages it
  RPC_URL=https://...      node endpoint (optional)"""


def questionary_chooser(title: str, options: Sequence[Option]) -> Optional[str]:
    """Arrow-key select; None on Ctrl-C"""
    return questionary.select(
        title,
        choices=[questionary.Choice(title=label, value=key) for key, label in options],
    ).ask()


@dataclass(frozen=True)
class BalanceSnapshot:
    contract_address: str
    contract_balance: int
    signer_address: str
    signer_balance: int


def read_snapshot(chain, context: SessionContext) -> BalanceSnapshot:
    return BalanceSnapshot(
        contract_address=context.contract.address,
        contract_balance=chain.read_balance(context.contract.address),
        signer_address=context.signer_address,
        signer_balance=chain.read_balance(context.signer_address),
    )


class Session:
    def __init__(
        self,
        context: SessionContext,
        chain,
        workflow: TransactionWorkflow,
        price_feed: PriceFeedClient,
        choose: Chooser = questionary_chooser,
        console: Optional[Console] = None,
    ):
        self.context = context
        self.chain = chain
        self.workflow = workflow
        self.price_feed = price_feed
        self.choose = choose
        self.console = console or default_console
        self.handlers: Dict[MenuId, Callable[[], MenuId]] = {
            MenuId.MAIN: self.main_menu,
            MenuId.STRATEGY: self.strategy_menu,
            MenuId.QUOTES: self.quotes_menu,
            MenuId.INSTRUCTIONS: self.instructions_menu,
        }

    def run(self, start: MenuId = MenuId.MAIN) -> None:
        """Main interactive loop"""
        menu = start
        while menu is not MenuId.EXIT:
            menu = self.step(menu)
        self.console.print("\n👋 Exit.")

    def step(self, menu: MenuId) -> MenuId:
        try:
            return self.handlers[menu]()
        except (TransportError, RemoteRejection) as e:
            logger.debug("Error in %s menu", menu.value, exc_info=True)
            self.console.print(f"[red]❌ Error: {escape(str(e))}[/red]")
            return menu

    # Main menu

    def main_menu(self) -> MenuId:
        self.show_info()
        choice = self.choose("Select menu option", MAIN_OPTIONS)
        return self.dispatch(choice)

    def dispatch(self, choice: Optional[str]) -> MenuId:
        if choice is None or choice == "0":
            return MenuId.EXIT
        if choice in ACTION_CHOICES:
            self.run_action(ACTION_CHOICES[choice])
            return MenuId.MAIN
        if choice == "4":
            return MenuId.STRATEGY
        if choice == "5":
            self.console.print("\n🔄 Refreshing information...")
            return MenuId.MAIN
        if choice == "6":
            return MenuId.QUOTES
        if choice == "7":
            return MenuId.INSTRUCTIONS
        self.console.print("[yellow]⚠️ Invalid choice, please try again.[/yellow]")
        return MenuId.MAIN

    def show_info(self) -> None:
        table = Table(box=box.ROUNDED, show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("📊 Strategy", self.context.selector.label())
        try:
            snapshot = read_snapshot(self.chain, self.context)
        except (TransportError, RemoteRejection) as e:
            table.add_row("📄 Contract address", self.context.contract.address)
            table.add_row("👤 Wallet address", self.context.signer_address)
            self.console.print(table)
            self.console.print(f"[red]Could not read balances: {escape(str(e))}[/red]")
            return
        table.add_row("📄 Contract address", snapshot.contract_address)
        table.add_row("💰 Contract balance", format_eth(snapshot.contract_balance))
        table.add_row("👤 Wallet address", snapshot.signer_address)
        table.add_row("💼 Wallet balance", format_eth(snapshot.signer_balance))
        self.console.print()
        self.console.print(table)

    def run_action(self, action: ActionKind) -> Outcome:
        outcome = self.workflow.run(action)
        self.render_outcome(outcome)
        return outcome

    def render_outcome(self, outcome: Outcome) -> None:
        action = outcome.action
        if outcome.succeeded:
            block = f" (block {outcome.block_number})" if outcome.block_number is not None else ""
            self.console.print(f"[green]{action.success}{block}[/green]\n")
            return

        reason = outcome.reason
        # Guard and gate outcomes are advisories; the rest are errors
        style = "yellow" if reason.informational else "red"
        if not reason.informational:
            logger.warning("%s failed: %s (%s)", action.title, reason.value, outcome.detail)

        if reason is FailureReason.STRATEGY_UNSET:
            self.console.print(Panel(
                "You must select a strategy before activating.\n"
                "Go to menu option 4) Strategy and choose one.",
                title="⚠️  STRATEGY NOT SELECTED",
                style=style,
            ))
        elif reason is FailureReason.ZERO_BALANCE:
            consequence = "Nothing to withdraw!" if action is ActionKind.WITHDRAW else "Cannot activate!"
            self.console.print(Panel(
                f"Contract balance is 0 ETH. {consequence}\n"
                "Send ETH to the contract address first.",
                title="⚠️  CONTRACT BALANCE IS ZERO",
                style=style,
            ))
        elif reason is FailureReason.CANCELLED_BY_OPERATOR:
            self.console.print(f"[{style}]❌ Cancelled by operator. Nothing was sent.[/{style}]\n")
        elif reason is FailureReason.ALREADY_IN_FLIGHT:
            self.console.print(f"[{style}]⏳ {escape(outcome.detail or '')}[/{style}]\n")
        elif reason is FailureReason.REMOTE_REJECTION:
            detail = f": {escape(outcome.detail)}" if outcome.detail else ""
            self.console.print(f"[{style}]✗ The node rejected the {action.title}{detail}[/{style}]\n")
        elif reason is FailureReason.REVERTED:
            self.console.print(f"[{style}]✗ Transaction {outcome.tx_hash} {escape(outcome.detail or 'reverted')}[/{style}]\n")
        elif reason is FailureReason.CONFIRMATION_LOST:
            self.console.print(Panel(
                f"Transaction {outcome.tx_hash} was broadcast, but its result could not be observed.\n"
                "It may or may not have executed. On-chain state is unknown.\n"
                "Check the hash on a block explorer before retrying.\n"
                f"[dim]{escape(outcome.detail or '')}[/dim]",
                title="⚠️  CONFIRMATION LOST",
                style=style,
            ))

    # Sub-menus

    def strategy_menu(self) -> MenuId:
        self.console.print()
        self.console.print(strategy_table())
        if self.context.selector.is_set():
            self.console.print(f"[green]✅ Selected strategy: {self.context.selector.label()}[/green]")
        choice = self.choose("Strategy menu", STRATEGY_OPTIONS)
        if choice is None or choice == "0":
            if self.context.selector.is_set():
                self.console.print(f"\n💾 Strategy saved: {self.context.selector.label()}")
            return MenuId.MAIN
        strategy = STRATEGY_CHOICES.get(choice)
        if strategy is None:
            self.console.print("[yellow]⚠️ Invalid choice, please try again.[/yellow]")
            return MenuId.STRATEGY
        self.context.selector.select(strategy)
        profile = strategy.profile
        self.console.print(f"\n[green]✅ Selected strategy: {strategy.value}[/green]")
        self.console.print(f"   • Assets: {profile.universe}")
        self.console.print(f"   • Slippage: {profile.slippage}")
        self.console.print(f"   • Risk: {profile.risk}")
        if strategy is Strategy.AGGRESSIVE:
            self.console.print(f"   [yellow]⚠️  {profile.notes}[/yellow]")
        return MenuId.STRATEGY

    def show_quotes(self) -> None:
        self.console.print("\n⏳ Loading prices...")
        try:
            snapshot = self.price_feed.fetch()
        except FeedUnreachable as e:
            self.console.print(f"[red]❌ Price feed unreachable: {escape(str(e))}[/red]")
            return
        except FeedMalformed as e:
            self.console.print(f"[red]❌ Price feed returned unexpected data: {escape(str(e))}[/red]")
            return
        for table in market_tables(snapshot):
            self.console.print(table)

    def quotes_menu(self) -> MenuId:
        self.show_quotes()
        choice = self.choose("Quotes menu", QUOTES_OPTIONS)
        if choice == "1":
            self.console.print("\n🔄 Refreshing quotes...")
            return MenuId.QUOTES
        if choice is None or choice == "0":
            return MenuId.MAIN
        self.console.print("[yellow]⚠️ Invalid choice, please try again.[/yellow]")
        return MenuId.QUOTES

    def instructions_menu(self) -> MenuId:
        self.console.print(Panel(INSTRUCTIONS, title="📖 Instructions", box=box.DOUBLE))
        choice = self.choose("Instructions menu", INSTRUCTIONS_OPTIONS)
        if choice is None or choice == "0":
            return MenuId.MAIN
        self.console.print("[yellow]⚠️ Invalid choice, please try again.[/yellow]")
        return MenuId.INSTRUCTIONS
