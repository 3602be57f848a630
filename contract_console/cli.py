#!/usr/bin/env python3
"""
Contract Console - interactive operator tool for the managed contract

Activates, deactivates and withdraws from one deployed contract after showing
the gas cost and asking for explicit confirmation. Configuration comes from
.env / the environment (see contract_console.config).
"""

import sys
from typing import Optional

from eth_account import Account
from rich.markup import escape
from rich.panel import Panel

from contract_console.actions import REQUIRED_OPERATIONS, ActionKind
from contract_console.artifacts import MANAGED_CONTRACT_ABI, load_contract_artifact, require_operations
from contract_console.chain import ChainClient
from contract_console.config import Settings, load_settings
from contract_console.context import ContractReference, SessionContext
from contract_console.errors import ConfigurationError, ConsoleError, TransportError
from contract_console.fees import FeeEstimator
from contract_console.gate import ConfirmationGate
from contract_console.logs import TransactionJournal, configure_logging, console
from contract_console.prices import PriceFeedClient
from contract_console.session import Session
from contract_console.workflow import TransactionWorkflow


def load_interface(settings: Settings) -> list:
    """Interface from CONTRACT_FILE, or the built-in one"""
    if settings.contract_file:
        abi = load_contract_artifact(settings.contract_file, require_bytecode=False).abi
    else:
        abi = MANAGED_CONTRACT_ABI
    require_operations(abi, REQUIRED_OPERATIONS)
    return abi


def build_session(settings: Settings, chain: Optional[ChainClient] = None) -> Session:
    abi = load_interface(settings)
    if chain is None:
        chain = ChainClient.connect(settings, abi)
    context = SessionContext(
        identity=Account.from_key(settings.private_key),
        contract=ContractReference(address=settings.contract_address, abi=abi),
        journal=TransactionJournal(settings.tx_log_path),
    )
    estimator = FeeEstimator(
        chain,
        gas_limits={kind: settings.gas_limit for kind in ActionKind},
        default_gas_limit=settings.gas_limit,
    )
    workflow = TransactionWorkflow(context, chain, estimator, ConfirmationGate())
    price_feed = PriceFeedClient(settings.price_feed_url)
    return Session(context, chain, workflow, price_feed)


def show_owner(session: Session) -> None:
    if "owner" not in session.context.contract.operations:
        return
    try:
        owner = session.chain.call("owner")
        console.print(f"[cyan]👑 Contract owner:[/cyan] {owner}")
    except ConsoleError as e:
        console.print(f"[yellow]⚠️ Failed to read contract owner. Check address and interface. ({escape(str(e))})[/yellow]")


def main():
    try:
        settings = load_settings()
    except ConfigurationError as e:
        console.print(f"[red]❌ Configuration error: {escape(str(e))}[/red]")
        sys.exit(1)
    configure_logging(settings.log_level)

    console.print(Panel.fit("🤖 Contract Console", style="bold magenta"))
    console.print(f"[cyan]RPC:[/cyan] {settings.rpc_url}")
    try:
        session = build_session(settings)
    except ConfigurationError as e:
        console.print(f"[red]❌ Configuration error: {escape(str(e))}[/red]")
        sys.exit(1)
    except TransportError as e:
        console.print(f"[red]❌ Could not reach the node: {escape(str(e))}[/red]")
        sys.exit(1)
    console.print(f"[cyan]Your address:[/cyan] {session.context.signer_address}")
    show_owner(session)

    try:
        session.run()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(0)
    except Exception as e:
        console.print(f"\n[red]Fatal error: {escape(str(e))}[/red]")
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
