"""Transfer audit logging to JSONL files."""

import json
from datetime import date
from pathlib import Path
from time import time
from typing import Any

import aiofiles
from loguru import logger

from solgen.models import DepositResult, WithdrawReport


class TransferLogger:
    """Append-only JSONL log of broadcast transfers.

    Records addresses, amounts, signatures and errors; never secret keys.
    Uses daily file rotation for manageable file sizes.

    Example output (transfers_2025-12-23.jsonl):
        {"logged_at": 1703347200.0, "kind": "deposit", "result": {...}}
        {"logged_at": 1703347260.0, "kind": "withdraw", "result": {...}}
    """

    def __init__(self, data_dir: Path = Path("data")) -> None:
        """Initialize the transfer logger.

        Args:
            data_dir: Directory for storing transfer logs. Created if not exists.
        """
        self._data_dir = data_dir
        self._ensure_data_dir()

    def _ensure_data_dir(self) -> None:
        """Create data directory if it doesn't exist."""
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Failed to create data directory {}: {}", self._data_dir, e)

    def _get_daily_filepath(self) -> Path:
        """Get the filepath for today's transfer log."""
        return self._data_dir / f"transfers_{date.today().isoformat()}.jsonl"

    async def _append(self, kind: str, result: dict[str, Any]) -> None:
        filepath = self._get_daily_filepath()
        record = {"logged_at": time(), "kind": kind, "result": result}

        try:
            async with aiofiles.open(filepath, "a") as f:
                await f.write(json.dumps(record) + "\n")
        except OSError as e:
            # Funds already moved; a logging failure must not mask that
            logger.error("Failed to persist transfer record to {}: {}", filepath, e)

    async def log_deposit(self, result: DepositResult) -> None:
        """Record a completed mass deposit."""
        await self._append("deposit", result.model_dump())

    async def log_withdraw(self, report: WithdrawReport) -> None:
        """Record the per-wallet outcomes of a mass withdraw."""
        await self._append("withdraw", report.model_dump())
