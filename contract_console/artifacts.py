"""
Contract interface and bytecode loading.

The console only needs the managed contract's interface; the deploy helper
also needs its creation bytecode. Both come from a JSON file shaped like a
compiler artifact: {"abi": [...], "bytecode": "0x..."}.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from contract_console.errors import ConfigurationError

# Interface of the managed contract, used when no CONTRACT_FILE is configured
MANAGED_CONTRACT_ABI = [
    {"inputs": [], "stateMutability": "nonpayable", "type": "constructor"},
    {"anonymous": False, "inputs": [{"indexed": False, "internalType": "string", "name": "_msg", "type": "string"}], "name": "Log", "type": "event"},
    {"inputs": [], "name": "Start", "outputs": [], "stateMutability": "payable", "type": "function"},
    {"inputs": [], "name": "Stop", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [], "name": "Withdrawal", "outputs": [], "stateMutability": "payable", "type": "function"},
    {"inputs": [], "name": "owner", "outputs": [{"internalType": "address", "name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"stateMutability": "payable", "type": "receive"},
]

_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")


class Mutability(Enum):
    READ_ONLY = "read-only"
    STATE_CHANGING = "state-changing"
    PAYABLE = "state-changing-with-value"

    @classmethod
    def from_abi(cls, entry: Dict) -> "Mutability":
        state = entry.get("stateMutability")
        if state is None:
            # Pre-0.5 compiler output only carries constant/payable flags
            if entry.get("constant"):
                return cls.READ_ONLY
            return cls.PAYABLE if entry.get("payable") else cls.STATE_CHANGING
        if state in ("view", "pure"):
            return cls.READ_ONLY
        if state == "payable":
            return cls.PAYABLE
        return cls.STATE_CHANGING


@dataclass(frozen=True)
class OperationDescriptor:
    name: str
    inputs: Tuple[str, ...]
    outputs: Tuple[str, ...]
    mutability: Mutability

    @property
    def changes_state(self) -> bool:
        return self.mutability is not Mutability.READ_ONLY


@dataclass(frozen=True)
class ContractArtifact:
    abi: List[Dict]
    bytecode: Optional[str] = None

    @property
    def operations(self) -> Dict[str, OperationDescriptor]:
        return {op.name: op for op in parse_operations(self.abi)}


def parse_operations(abi: Iterable[Dict]) -> List[OperationDescriptor]:
    """Callable functions of an interface definition"""
    ops = []
    for entry in abi:
        if entry.get("type", "function") != "function":
            continue
        name = entry.get("name")
        if not name:
            raise ConfigurationError("Interface contains a function entry without a name")
        ops.append(
            OperationDescriptor(
                name=name,
                inputs=tuple(p.get("type", "") for p in entry.get("inputs", [])),
                outputs=tuple(p.get("type", "") for p in entry.get("outputs", [])),
                mutability=Mutability.from_abi(entry),
            )
        )
    return ops


def require_operations(abi: Iterable[Dict], names: Iterable[str]) -> None:
    """Fail fast unless every name is a state-changing function of the interface"""
    ops = {op.name: op for op in parse_operations(abi)}
    missing = [n for n in names if n not in ops]
    if missing:
        raise ConfigurationError(f"Interface is missing required operations: {', '.join(missing)}")
    read_only = [n for n in names if not ops[n].changes_state]
    if read_only:
        raise ConfigurationError(f"Operations must be state-changing: {', '.join(read_only)}")


def validate_artifact(data: object, require_bytecode: bool = True) -> ContractArtifact:
    if not isinstance(data, dict):
        raise ConfigurationError("Contract file must hold a JSON object with \"abi\" and \"bytecode\"")
    abi = data.get("abi")
    if not abi or not isinstance(abi, list):
        raise ConfigurationError("Contract file is missing or has invalid \"abi\" array")
    if not all(isinstance(entry, dict) for entry in abi):
        raise ConfigurationError("Contract file \"abi\" entries must be objects")

    bytecode = data.get("bytecode")
    if isinstance(bytecode, dict):
        # Hardhat/Foundry artifacts nest it as {"object": "0x..."}
        bytecode = bytecode.get("object")
    if bytecode is None and not require_bytecode:
        return ContractArtifact(abi=abi)
    if not isinstance(bytecode, str) or not bytecode.startswith("0x") or not _HEX_RE.match(bytecode):
        raise ConfigurationError("Contract file is missing or has invalid \"bytecode\" (expected 0x-prefixed hex)")
    if len(bytecode) <= 2 or len(bytecode) % 2:
        raise ConfigurationError("Contract file \"bytecode\" must be a non-empty, even-length hex string")
    return ContractArtifact(abi=abi, bytecode=bytecode)


def load_contract_artifact(path: Union[str, Path], require_bytecode: bool = True) -> ContractArtifact:
    """Read and validate {"abi", "bytecode"} from a JSON file"""
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Could not read contract file {path}: {e}")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Contract file {path} is not valid JSON: {e}")
    return validate_artifact(data, require_bytecode=require_bytecode)
