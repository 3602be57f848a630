"""
Operator strategy selection.

A purely advisory label: it gates activation but never reaches the
contract.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from rich import box
from rich.table import Table


@dataclass(frozen=True)
class StrategyProfile:
    universe: str
    slippage: str
    risk: str
    profit: str
    notes: str


class Strategy(Enum):
    LIGHT = "Light"
    MEDIUM = "Medium"
    AGGRESSIVE = "Aggressive"

    @property
    def profile(self) -> StrategyProfile:
        return PROFILES[self]


PROFILES = {
    Strategy.LIGHT: StrategyProfile(
        universe="Top 10",
        slippage="Low",
        risk="Low",
        profit="Lower",
        notes="Less risk, smaller moves.",
    ),
    Strategy.MEDIUM: StrategyProfile(
        universe="Top 10",
        slippage="Up to 10%",
        risk="Moderate",
        profit="Moderate",
        notes="Wider slippage lets more trades fill; gas use slightly higher.",
    ),
    Strategy.AGGRESSIVE: StrategyProfile(
        universe="Top 200",
        slippage="Up to 49%",
        risk="High",
        profit="Higher, not guaranteed",
        notes="Gas spent on slippage can exceed any gain.",
    ),
}


class StrategySelector:
    """Session-scoped selection; starts unset, re-selection overwrites"""

    def __init__(self):
        self._selected: Optional[Strategy] = None

    @property
    def current(self) -> Optional[Strategy]:
        return self._selected

    def is_set(self) -> bool:
        return self._selected is not None

    def select(self, strategy: Strategy) -> Strategy:
        if not isinstance(strategy, Strategy):
            raise TypeError(f"Expected a Strategy, got {strategy!r}")
        self._selected = strategy
        return strategy

    def label(self) -> str:
        return self._selected.value if self._selected else "not selected"


def strategy_table() -> Table:
    table = Table(title="📊 Strategies", box=box.ROUNDED)
    table.add_column("Parameter", style="cyan")
    for strategy in Strategy:
        table.add_column(strategy.value, style="green")
    rows = [
        ("Assets", "universe"),
        ("Slippage", "slippage"),
        ("Risk", "risk"),
        ("Profit band", "profit"),
        ("Notes", "notes"),
    ]
    for label, attr in rows:
        table.add_row(label, *(getattr(s.profile, attr) for s in Strategy))
    return table
