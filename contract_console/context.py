"""Process-wide session state, passed explicitly to the workflow and the menus"""

from dataclasses import dataclass, field
from typing import Dict, List

from eth_account.signers.local import LocalAccount

from contract_console.artifacts import OperationDescriptor, parse_operations
from contract_console.logs import TransactionJournal
from contract_console.strategy import StrategySelector


@dataclass(frozen=True)
class ContractReference:
    address: str
    abi: List[Dict]

    @property
    def operations(self) -> Dict[str, OperationDescriptor]:
        return {op.name: op for op in parse_operations(self.abi)}


@dataclass
class SessionContext:
    identity: LocalAccount
    contract: ContractReference
    selector: StrategySelector = field(default_factory=StrategySelector)
    journal: TransactionJournal = field(default_factory=TransactionJournal)

    @property
    def signer_address(self) -> str:
        return self.identity.address
