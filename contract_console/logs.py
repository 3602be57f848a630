"""
Diagnostics logging and the optional transaction journal.

Operator output goes through the shared rich Console; this module only wires
the standard logging tree to the same console and appends JSON lines that
describe intended and finished transactions.
"""

import json
import logging
import os
import time
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

console = Console()

logger = logging.getLogger(__name__)


def configure_logging(level: str = "WARNING", target: Optional[Console] = None) -> None:
    """Route the root logger through RichHandler on the operator console"""
    log_level = getattr(logging, level.upper(), logging.WARNING)
    handler = RichHandler(console=target or console, show_path=False, rich_tracebacks=False, markup=False)
    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, RichHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)
    # web3 and urllib3 are chatty at DEBUG
    for noisy in ("web3", "urllib3"):
        logging.getLogger(noisy).setLevel(max(log_level, logging.INFO))


class TransactionJournal:
    """Append-only JSON-lines record of submissions; disabled when path is None"""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        if self.path:
            try:
                log_dir = os.path.dirname(self.path)
                if log_dir:
                    os.makedirs(log_dir, exist_ok=True)
                with open(self.path, "a"):
                    pass
            except OSError as e:
                logger.warning("Transaction journal disabled, cannot open %s: %s", self.path, e)
                self.path = None

    @property
    def enabled(self) -> bool:
        return self.path is not None

    def record(self, label: str, mode: str, **fields: Any) -> None:
        """Write one entry; mode is one of intent | outcome | deploy"""
        if not self.path:
            return
        entry: Dict[str, Any] = {"timestamp": int(time.time()), "label": label, "mode": mode}
        entry.update(fields)
        try:
            with open(self.path, "a") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            logger.warning("Could not write transaction journal entry for %s: %s", label, e)
