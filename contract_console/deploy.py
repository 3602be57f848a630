#!/usr/bin/env python3
"""
Deploy helper - creates the contract from a compiled artifact

Reads {"abi", "bytecode"} from CONTRACT_FILE (default ./contract.json), shows
the network, deployer balance and gas price, asks for confirmation and sends
the creation transaction. Gas is estimated by the node; the legacy gas price
is preferred when the node reports one.
"""

import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from contract_console.artifacts import ContractArtifact, load_contract_artifact
from contract_console.chain import ChainClient, SubmissionStatus
from contract_console.config import load_settings
from contract_console.errors import ConfigurationError, RemoteRejection, TransportError
from contract_console.fees import format_eth, render_preview, select_price
from contract_console.gate import ConfirmationGate
from contract_console.logs import TransactionJournal, configure_logging, console as default_console

DEFAULT_CONTRACT_FILE = "contract.json"


def deploy_contract(
    chain: ChainClient,
    artifact: ContractArtifact,
    gate: ConfirmationGate,
    journal: Optional[TransactionJournal] = None,
    console: Optional[Console] = None,
) -> Optional[str]:
    """Deploy and return the new address; None when the operator cancels"""
    console = console or default_console
    console.print("[green]✓[/green] Contract data loaded")
    console.print(f"   ABI: {len(artifact.abi)} items")
    console.print(f"   Bytecode: {len(artifact.bytecode)} characters\n")

    console.print(f"[cyan]🌐 Chain id:[/cyan] {chain.chain_id}")
    console.print(f"[cyan]👤 Deployer:[/cyan] {chain.signer_address}")
    console.print(f"[cyan]💰 Balance:[/cyan] {format_eth(chain.read_balance(chain.signer_address))}")

    quote = select_price(chain.read_fee_parameters(), None, None, prefer_legacy=True)
    if not gate.confirm(render_preview(quote), "Deploy contract?"):
        console.print("[yellow]❌ Deployment cancelled[/yellow]")
        return None

    console.print("\n🚀 Sending deployment transaction (node will estimate gasLimit)...")
    if journal:
        journal.record("deploy", "deploy", chainId=chain.chain_id, **{"from": chain.signer_address}, pricing=quote.price_params())
    pending = chain.deploy(artifact.abi, artifact.bytecode, quote.price_params())
    console.print(f"📝 Tx hash: {pending.tx_hash}")
    console.print("⏳ Waiting for confirmation...")
    try:
        result = chain.await_confirmation(pending)
    except (TransportError, RemoteRejection) as e:
        console.print(Panel(
            f"Deployment {pending.tx_hash} was broadcast, but its result could not be observed.\n"
            "Check the hash on a block explorer before deploying again.\n"
            f"[dim]{escape(str(e))}[/dim]",
            title="⚠️  CONFIRMATION LOST",
            style="red",
        ))
        raise
    if journal:
        journal.record("deploy", "outcome", txHash=pending.tx_hash, state=result.status.value, contractAddress=result.contract_address)
    if result.status is not SubmissionStatus.CONFIRMED:
        raise RemoteRejection("deployment", reason=f"reverted in block {result.block_number}")
    console.print(f"\n[green]🎉 Contract deployed at address: {result.contract_address}[/green]")
    return result.contract_address


def main():
    try:
        settings = load_settings(require_contract=False)
        artifact = load_contract_artifact(settings.contract_file or Path.cwd() / DEFAULT_CONTRACT_FILE)
    except ConfigurationError as e:
        default_console.print(f"[red]❌ {escape(str(e))}[/red]")
        sys.exit(1)
    configure_logging(settings.log_level)

    default_console.print(Panel.fit("🚀 Contract Deploy", style="bold magenta"))
    try:
        chain = ChainClient.connect(settings, artifact.abi, contract_address=None)
        address = deploy_contract(chain, artifact, ConfirmationGate(), TransactionJournal(settings.tx_log_path))
    except KeyboardInterrupt:
        default_console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(0)
    except (TransportError, RemoteRejection) as e:
        default_console.print(f"[red]❌ Deployment error: {escape(str(e))}[/red]")
        sys.exit(1)
    if address is None:
        sys.exit(0)


if __name__ == "__main__":
    main()
