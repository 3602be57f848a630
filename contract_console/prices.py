"""
Market prices for the quotes screen.

Fetches the top markets by capitalisation from a CoinGecko-compatible
`/coins/markets` endpoint. Unreachable feeds raise FeedUnreachable; answers
that are not a list of market rows raise FeedMalformed.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from rich import box
from rich.table import Table

from contract_console.config import DEFAULT_PRICE_FEED_URL
from contract_console.errors import FeedMalformed, FeedUnreachable

logger = logging.getLogger(__name__)

STABLECOIN_IDS = frozenset([
    "tether", "usd-coin", "dai", "binance-usd", "true-usd",
    "usdd", "frax", "pax-dollar", "liquity-usd",
])
MAJOR_IDS = ("bitcoin", "ethereum", "solana")
RANKED_LIMIT = 10


@dataclass(frozen=True)
class AssetQuote:
    id: str
    symbol: str
    price: float
    change_24h: float

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AssetQuote":
        try:
            change = row.get("price_change_percentage_24h")
            return cls(
                id=str(row["id"]),
                symbol=str(row["symbol"]).upper(),
                price=float(row["current_price"]),
                change_24h=float(change) if change is not None else 0.0,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise FeedMalformed(f"market row missing or invalid field: {e}", action="price feed") from e


@dataclass(frozen=True)
class MarketSnapshot:
    majors: List[AssetQuote]
    ranked: List[AssetQuote]


def format_price(price: float) -> str:
    if price >= 1:
        return f"${price:.2f}"
    return f"${price:.6f}"


def format_change(change: float) -> str:
    arrow = "📈" if change >= 0 else "📉"
    return f"{arrow} {change:+.2f}%"


class PriceFeedClient:
    def __init__(self, url: str = DEFAULT_PRICE_FEED_URL, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "application/json")

    def _get(self) -> Any:
        try:
            r = self.session.get(self.url, timeout=self.timeout)
            r.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise FeedUnreachable(str(e), action="price feed") from e
        try:
            data = r.json()
        except ValueError as e:
            raise FeedMalformed(f"response is not JSON: {r.text[:200]!r}", action="price feed") from e
        if isinstance(data, dict) and data.get("error"):
            raise FeedMalformed(f"feed returned an error: {data['error']}", action="price feed")
        status = data.get("status") if isinstance(data, dict) else None
        if isinstance(status, dict) and status.get("error_message"):
            # Rate-limit envelope
            raise FeedUnreachable(status["error_message"], action="price feed")
        if not isinstance(data, list):
            raise FeedMalformed("feed returned non-list data (possibly rate limited)", action="price feed")
        return data

    def fetch(self) -> MarketSnapshot:
        rows = self._get()
        quotes = [AssetQuote.from_row(row) for row in rows if isinstance(row, dict)]
        if len(quotes) != len(rows):
            raise FeedMalformed("feed returned non-object market rows", action="price feed")
        by_id = {q.id: q for q in quotes}
        majors = [by_id[i] for i in MAJOR_IDS if i in by_id]
        ranked = [q for q in quotes if q.id not in STABLECOIN_IDS][:RANKED_LIMIT]
        logger.debug("Fetched %d market rows", len(quotes))
        return MarketSnapshot(majors=majors, ranked=ranked)


def market_tables(snapshot: MarketSnapshot) -> List[Table]:
    majors = Table(title="💰 Major cryptocurrencies", box=box.ROUNDED)
    majors.add_column("Asset", style="cyan")
    majors.add_column("Price", justify="right", style="green")
    majors.add_column("24h", justify="right")
    for q in snapshot.majors:
        majors.add_row(q.symbol, format_price(q.price), format_change(q.change_24h))

    ranked = Table(title=f"🏆 Top {RANKED_LIMIT} (excluding stablecoins)", box=box.ROUNDED)
    ranked.add_column("#", justify="right")
    ranked.add_column("Asset", style="cyan")
    ranked.add_column("Price", justify="right", style="green")
    ranked.add_column("24h", justify="right")
    for index, q in enumerate(snapshot.ranked, start=1):
        ranked.add_row(str(index), q.symbol, format_price(q.price), format_change(q.change_24h))
    return [majors, ranked]
