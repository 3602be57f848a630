"""
Chain client: the only code that talks to the node.

Every call either returns plain values or raises TransportError /
RemoteRejection. Nothing here retries; callers decide.
"""

import json
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import requests
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import (
    BadResponseFormat,
    ContractLogicError,
    ProviderConnectionError,
    RequestTimedOut,
    TimeExhausted,
    Web3RPCError,
)

from contract_console.config import Settings
from contract_console.errors import RemoteRejection, TransportError

logger = logging.getLogger(__name__)

# ethers-style default tip when the node has no eth_maxPriorityFeePerGas
DEFAULT_PRIORITY_TIP = Web3.to_wei(1, "gwei")

# Known revert selectors
REVERT_SELECTORS = {
    "0x08c379a0": "Error(string)",
    "0x4e487b71": "Panic(uint256)",
}


class SubmissionStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class FeeParameters:
    """Pricing data as reported by the node; any field may be absent"""

    legacy_price: Optional[int] = None
    priority_price: Optional[int] = None
    priority_tip: Optional[int] = None


@dataclass
class PendingSubmission:
    tx_hash: str
    label: str
    submitted_at: float = field(default_factory=time.time)
    status: SubmissionStatus = SubmissionStatus.PENDING

    def resolve(self, status: SubmissionStatus) -> None:
        if self.status is not SubmissionStatus.PENDING:
            raise RuntimeError(f"Submission {self.tx_hash} already resolved as {self.status.value}")
        if status is SubmissionStatus.PENDING:
            raise ValueError("A submission can only resolve to confirmed or failed")
        self.status = status


@dataclass(frozen=True)
class ConfirmationResult:
    status: SubmissionStatus
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    contract_address: Optional[str] = None


def decode_revert(err: Exception) -> str:
    """Best-effort human-readable reason for a rejected call or transaction"""
    message = getattr(err, "message", None) or str(err)
    if not isinstance(message, str):
        message = str(message)
    for prefix in ("execution reverted: ", "VM Exception while processing transaction: revert "):
        if message.startswith(prefix):
            return message[len(prefix):][:120]
    for sig, name in REVERT_SELECTORS.items():
        if sig in message:
            return name
    return message[:120]


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Map web3/requests failures onto the console's error taxonomy"""
    try:
        yield
    except ContractLogicError as e:
        raise RemoteRejection(action, reason=decode_revert(e)) from e
    except RequestTimedOut as e:
        raise TransportError(str(e) or "request timed out", action=action) from e
    except Web3RPCError as e:
        raise RemoteRejection(action, reason=decode_revert(e)) from e
    except TimeExhausted as e:
        raise TransportError(f"timed out waiting for the node ({e})", action=action) from e
    except (ProviderConnectionError, BadResponseFormat, requests.exceptions.RequestException) as e:
        raise TransportError(str(e) or type(e).__name__, action=action) from e
    except json.JSONDecodeError as e:
        # Gateways answer with HTML error pages
        raise TransportError(f"node reply is not JSON: {e.doc[:80]!r}", action=action) from e


class ChainClient:
    def __init__(
        self,
        w3: Web3,
        account: LocalAccount,
        contract: Contract,
        receipt_timeout: Optional[float] = None,
        poll_latency: float = 1.0,
    ):
        self.w3 = w3
        self.account = account
        self.contract = contract
        self.receipt_timeout = receipt_timeout
        self.poll_latency = poll_latency
        self._chain_id: Optional[int] = None

    @classmethod
    def connect(cls, settings: Settings, abi: List[Dict], contract_address: Optional[str] = None) -> "ChainClient":
        """Open the node connection and bind the signing identity and contract"""
        provider = Web3.HTTPProvider(
            settings.rpc_url,
            request_kwargs={"timeout": settings.rpc_timeout},
            exception_retry_configuration=None,
        )
        w3 = Web3(provider)
        if not w3.is_connected():
            raise TransportError(f"could not connect to {settings.rpc_url}", action="connect")
        account = Account.from_key(settings.private_key)
        address = contract_address or settings.contract_address
        if address:
            contract = w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
        else:
            contract = w3.eth.contract(abi=abi)
        logger.debug("Connected to %s as %s", settings.rpc_url, account.address)
        return cls(w3, account, contract, receipt_timeout=settings.receipt_timeout)

    @property
    def signer_address(self) -> str:
        return self.account.address

    @property
    def contract_address(self) -> Optional[str]:
        return self.contract.address

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            with translate_errors("read chain id"):
                self._chain_id = int(self.w3.eth.chain_id)
        return self._chain_id

    def read_balance(self, address: str) -> int:
        with translate_errors("read balance"):
            return int(self.w3.eth.get_balance(Web3.to_checksum_address(address)))

    def _optional_fee(self, what: str, fetch: Callable[[], Any]) -> Optional[int]:
        try:
            with translate_errors(what):
                value = fetch()
        except RemoteRejection as e:
            logger.info("Node does not report %s: %s", what, e.reason)
            return None
        return int(value) if value is not None else None

    def read_fee_parameters(self) -> FeeParameters:
        """Legacy gas price and, on fee-market chains, a max fee per gas"""
        legacy = self._optional_fee("eth_gasPrice", lambda: self.w3.eth.gas_price)
        try:
            with translate_errors("read latest block"):
                block = self.w3.eth.get_block("latest")
        except RemoteRejection as e:
            logger.info("Node refused the latest block, using legacy pricing: %s", e.reason)
            return FeeParameters(legacy_price=legacy)
        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            return FeeParameters(legacy_price=legacy)
        tip = self._optional_fee("eth_maxPriorityFeePerGas", lambda: self.w3.eth.max_priority_fee)
        if tip is None:
            tip = DEFAULT_PRIORITY_TIP
        return FeeParameters(
            legacy_price=legacy,
            priority_price=2 * int(base_fee) + tip,
            priority_tip=tip,
        )

    def call(self, operation: str, args: Sequence[Any] = ()) -> Any:
        """Run a read-only contract operation"""
        fn = getattr(self.contract.functions, operation)
        with translate_errors(f"{operation}()"):
            return fn(*args).call({"from": self.signer_address})

    def _base_params(self, value: int, price_params: Dict[str, int]) -> Dict[str, Any]:
        with translate_errors("read nonce"):
            nonce = self.w3.eth.get_transaction_count(self.signer_address, "pending")
        params: Dict[str, Any] = {
            "from": self.signer_address,
            "nonce": nonce,
            "chainId": self.chain_id,
            "value": value,
        }
        params.update(price_params)
        return params

    def _sign_and_send(self, label: str, tx: Dict[str, Any]) -> PendingSubmission:
        signed = self.account.sign_transaction(tx)
        local_hash = Web3.to_hex(signed.hash)
        try:
            with translate_errors(f"broadcast {label}"):
                tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except TransportError as e:
            # The node may have accepted it before the connection failed
            raise TransportError(
                f"{e.args[0]}; transaction {local_hash} may have reached the node, check it before retrying",
                action=e.action,
            ) from e
        pending = PendingSubmission(tx_hash=Web3.to_hex(tx_hash), label=label)
        logger.info("Broadcast %s as %s", label, pending.tx_hash)
        return pending

    def submit(
        self,
        operation: str,
        args: Sequence[Any] = (),
        *,
        gas_limit: int,
        price_params: Dict[str, int],
        value: int = 0,
    ) -> PendingSubmission:
        """Sign and broadcast a state-changing operation with a fixed gas ceiling"""
        fn = getattr(self.contract.functions, operation)
        params = self._base_params(value, price_params)
        params["gas"] = gas_limit
        # With "gas" set, build_transaction does not ask the node for an estimate
        with translate_errors(f"prepare {operation}"):
            tx = fn(*args).build_transaction(params)
        return self._sign_and_send(operation, tx)

    def deploy(self, abi: List[Dict], bytecode: str, price_params: Dict[str, int]) -> PendingSubmission:
        """Sign and broadcast a contract creation; gas is estimated by the node"""
        factory = self.w3.eth.contract(abi=abi, bytecode=bytecode)
        params = self._base_params(0, price_params)
        with translate_errors("prepare deployment"):
            tx = factory.constructor().build_transaction(params)
        return self._sign_and_send("deploy", tx)

    def await_confirmation(self, pending: PendingSubmission) -> ConfirmationResult:
        """Block until the transaction is included; no timeout unless configured"""
        with translate_errors(f"await {pending.label}"):
            receipt = self.w3.eth.wait_for_transaction_receipt(
                pending.tx_hash, timeout=self.receipt_timeout, poll_latency=self.poll_latency
            )
        status = SubmissionStatus.CONFIRMED if receipt.get("status") == 1 else SubmissionStatus.FAILED
        pending.resolve(status)
        return ConfirmationResult(
            status=status,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
            contract_address=receipt.get("contractAddress"),
        )
