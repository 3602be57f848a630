"""
Startup configuration.

Values come from the process environment after a `.env` file in the working
directory has been loaded (variables already exported win). Environment
variables:
  - PRIVATE_KEY: signing key, with or without 0x (required)
  - CONTRACT_ADDRESS: managed contract (required by the console)
  - RPC_URL: node endpoint (default: https://ethereum.publicnode.com)
  - CONTRACT_FILE: JSON file with "abi" and "bytecode"
  - GAS_LIMIT: fixed gas ceiling for activate/deactivate/withdraw (default: 300000)
  - RECEIPT_TIMEOUT: seconds to wait for inclusion (default: wait forever)
  - RPC_TIMEOUT: seconds per HTTP request to the node (default: 30)
  - PRICE_FEED_URL: markets endpoint used by the quotes screen
  - TX_LOG: JSON-lines transaction journal; 1/true/yes selects the default path
  - LOG_LEVEL: diagnostics level (default: WARNING)
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv
from eth_account import Account
from web3 import Web3

from contract_console.errors import ConfigurationError

DEFAULT_RPC_URL = "https://ethereum.publicnode.com"
DEFAULT_GAS_LIMIT = 300000
DEFAULT_RPC_TIMEOUT = 30.0
DEFAULT_TX_LOG_PATH = "/tmp/contract-console-tx.log"
DEFAULT_PRICE_FEED_URL = (
    "https://api.coingecko.com/api/v3/coins/markets"
    "?vs_currency=usd&order=market_cap_desc&per_page=20&page=1&sparkline=false"
)


@dataclass(frozen=True)
class Settings:
    private_key: str
    contract_address: Optional[str]
    rpc_url: str = DEFAULT_RPC_URL
    contract_file: Optional[str] = None
    gas_limit: int = DEFAULT_GAS_LIMIT
    receipt_timeout: Optional[float] = None
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT
    price_feed_url: str = DEFAULT_PRICE_FEED_URL
    tx_log_path: Optional[str] = None
    log_level: str = "WARNING"

    def __repr__(self) -> str:
        # Keep the key out of tracebacks and log lines
        return (
            f"Settings(contract_address={self.contract_address!r}, rpc_url={self.rpc_url!r}, "
            f"contract_file={self.contract_file!r}, gas_limit={self.gas_limit})"
        )


def _getenv(env: Mapping[str, str], name: str) -> Optional[str]:
    val = env.get(name)
    if val is None:
        return None
    val = val.strip().strip('"').strip("'")
    return val or None


def _getenv_int(env: Mapping[str, str], name: str, default: int) -> int:
    val = _getenv(env, name)
    if val is None:
        return default
    try:
        parsed = int(val)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {val!r}")
    if parsed <= 0:
        raise ConfigurationError(f"{name} must be positive, got {parsed}")
    return parsed


def _getenv_float(env: Mapping[str, str], name: str, default: Optional[float]) -> Optional[float]:
    val = _getenv(env, name)
    if val is None:
        return default
    try:
        parsed = float(val)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number of seconds, got {val!r}")
    if parsed <= 0:
        raise ConfigurationError(f"{name} must be positive, got {parsed}")
    return parsed


def _normalize_private_key(raw: str) -> str:
    key = raw if raw.startswith("0x") else "0x" + raw
    try:
        Account.from_key(key)
    except Exception as e:
        raise ConfigurationError(f"PRIVATE_KEY is not a valid signing key: {type(e).__name__}") from None
    return key


def _tx_log_path(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    if raw.lower() in ("1", "true", "yes"):
        return DEFAULT_TX_LOG_PATH
    if raw.lower() in ("0", "false", "no"):
        return None
    return raw


def load_settings(env: Optional[Mapping[str, str]] = None, require_contract: bool = True) -> Settings:
    """Build Settings from `env` (defaults to os.environ after loading .env)"""
    if env is None:
        dotenv_path = find_dotenv(usecwd=True)
        if dotenv_path:
            load_dotenv(dotenv_path, override=False)
        env = os.environ

    raw_key = _getenv(env, "PRIVATE_KEY")
    if not raw_key:
        raise ConfigurationError("Set PRIVATE_KEY in .env or the environment")
    private_key = _normalize_private_key(raw_key)

    contract_address = _getenv(env, "CONTRACT_ADDRESS")
    if contract_address is None:
        if require_contract:
            raise ConfigurationError("Set CONTRACT_ADDRESS (deployed contract address) in .env or the environment")
    elif not Web3.is_address(contract_address):
        raise ConfigurationError(f"CONTRACT_ADDRESS is not a valid address: {contract_address}")
    else:
        contract_address = Web3.to_checksum_address(contract_address)

    return Settings(
        private_key=private_key,
        contract_address=contract_address,
        rpc_url=_getenv(env, "RPC_URL") or DEFAULT_RPC_URL,
        contract_file=_getenv(env, "CONTRACT_FILE"),
        gas_limit=_getenv_int(env, "GAS_LIMIT", DEFAULT_GAS_LIMIT),
        receipt_timeout=_getenv_float(env, "RECEIPT_TIMEOUT", None),
        rpc_timeout=_getenv_float(env, "RPC_TIMEOUT", DEFAULT_RPC_TIMEOUT),
        price_feed_url=_getenv(env, "PRICE_FEED_URL") or DEFAULT_PRICE_FEED_URL,
        tx_log_path=_tx_log_path(_getenv(env, "TX_LOG")),
        log_level=(_getenv(env, "LOG_LEVEL") or "WARNING").upper(),
    )
