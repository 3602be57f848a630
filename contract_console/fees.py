"""
Fee quotes for pending actions.

Gas limits are fixed ceilings per action rather than node estimates. Prices
come from the node: a fee-market (max fee per gas) price is preferred, the
legacy gas price is the fallback, and when neither is reported the quote is
price-absent and submission falls back to the node's own default pricing.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional

from web3 import Web3

from contract_console.actions import ActionKind
from contract_console.chain import FeeParameters

logger = logging.getLogger(__name__)

DEFAULT_GAS_CEILING = 300000


class PriceKind(Enum):
    PRIORITY = "maxFeePerGas"
    LEGACY = "gasPrice"


@dataclass(frozen=True)
class FeeQuote:
    action: Optional[ActionKind]
    gas_limit: Optional[int]
    unit_price: Optional[int] = None
    price_kind: Optional[PriceKind] = None
    priority_tip: Optional[int] = None

    @property
    def price_known(self) -> bool:
        return self.unit_price is not None

    @property
    def max_cost(self) -> Optional[int]:
        if self.unit_price is None or self.gas_limit is None:
            return None
        return self.unit_price * self.gas_limit

    def price_params(self) -> Dict[str, int]:
        """Transaction pricing overrides; empty when the price is absent"""
        if self.unit_price is None:
            return {}
        if self.price_kind is PriceKind.PRIORITY:
            params = {"maxFeePerGas": self.unit_price}
            if self.priority_tip is not None:
                params["maxPriorityFeePerGas"] = min(self.priority_tip, self.unit_price)
            return params
        return {"gasPrice": self.unit_price}


def select_price(fees: FeeParameters, action: Optional[ActionKind], gas_limit: Optional[int], prefer_legacy: bool = False) -> FeeQuote:
    """Pick the quoted price from node fee data; price-absent when neither is reported"""
    priority = None
    if fees.priority_price is not None:
        priority = FeeQuote(action, gas_limit, fees.priority_price, PriceKind.PRIORITY, fees.priority_tip)
    legacy = None
    if fees.legacy_price is not None:
        legacy = FeeQuote(action, gas_limit, fees.legacy_price, PriceKind.LEGACY)
    if prefer_legacy:
        return legacy or priority or FeeQuote(action, gas_limit)
    return priority or legacy or FeeQuote(action, gas_limit)


def format_eth(wei: int) -> str:
    if wei == 0:
        return "0 ETH"
    return f"{Web3.from_wei(wei, 'ether'):f} ETH"


def format_gwei(wei: int) -> str:
    if wei == 0:
        return "0 gwei"
    return f"{Web3.from_wei(wei, 'gwei'):f} gwei"


def render_preview(quote: FeeQuote) -> str:
    title = quote.action.title if quote.action else "deployment"
    lines = [f"📊 Gas parameters for {title}:"]
    gas_limit = str(quote.gas_limit) if quote.gas_limit is not None else "estimated by node"
    if quote.unit_price is not None:
        lines.append(f"   {quote.price_kind.value:<24}: {format_eth(quote.unit_price)} per gas ({format_gwei(quote.unit_price)})")
    else:
        lines.append(f"   {'maxFeePerGas / gasPrice':<24}: unknown (node did not report a price)")
    lines.append(f"   {'gasLimit':<24}: {gas_limit}")
    max_cost = quote.max_cost
    lines.append(f"   {'max tx cost':<24}: {format_eth(max_cost) if max_cost is not None else 'unknown'}")
    return "\n".join(lines)


class FeeEstimator:
    def __init__(self, chain, gas_limits: Optional[Mapping[ActionKind, int]] = None, default_gas_limit: int = DEFAULT_GAS_CEILING):
        self.chain = chain
        self.gas_limits = dict(gas_limits or {})
        self.default_gas_limit = default_gas_limit

    def gas_limit_for(self, action: ActionKind) -> int:
        return self.gas_limits.get(action, self.default_gas_limit)

    def quote(self, action: ActionKind) -> FeeQuote:
        """Fresh quote from live fee data; TransportError propagates"""
        quote = select_price(self.chain.read_fee_parameters(), action, self.gas_limit_for(action))
        if not quote.price_known:
            logger.warning("Node reported no gas price for %s; submitting with node defaults", action.title)
        return quote
