"""Tests for the persistence layer (TransferLogger)."""

import json
from datetime import date
from pathlib import Path

import pytest

from solgen.models import DepositResult, WithdrawOutcome, WithdrawReport
from solgen.persistence import TransferLogger


@pytest.fixture
def temp_data_dir(tmp_path: Path) -> Path:
    """Create a temporary data directory for tests."""
    return tmp_path / "data"


@pytest.fixture
def transfer_logger(temp_data_dir: Path) -> TransferLogger:
    """Create a TransferLogger instance with temporary directory."""
    return TransferLogger(data_dir=temp_data_dir)


@pytest.fixture
def sample_deposit() -> DepositResult:
    return DepositResult(
        signature="sig_deposit",
        source="Source1111",
        targets=["Target1111", "Target2222"],
        amount_each=0.05,
        completed_at=1234567890.0,
    )


@pytest.fixture
def sample_report() -> WithdrawReport:
    return WithdrawReport(
        destination="Dest1111",
        outcomes=[
            WithdrawOutcome(address="Wallet1111", amount=0.499, signature="sig_1"),
            WithdrawOutcome(address="Wallet2222", error="Rate limit exceeded"),
        ],
        completed_at=1234567891.0,
    )


class TestTransferLoggerInit:
    """Tests for TransferLogger initialization."""

    def test_creates_data_directory(self, temp_data_dir: Path) -> None:
        """TransferLogger should create the data directory if it doesn't exist."""
        assert not temp_data_dir.exists()
        TransferLogger(data_dir=temp_data_dir)
        assert temp_data_dir.is_dir()

    def test_uses_existing_directory(self, temp_data_dir: Path) -> None:
        """TransferLogger should work with an existing directory."""
        temp_data_dir.mkdir(parents=True)
        TransferLogger(data_dir=temp_data_dir)


class TestTransferLoggerWrites:
    """Tests for log_deposit and log_withdraw."""

    @pytest.mark.asyncio
    async def test_creates_daily_file(
        self,
        transfer_logger: TransferLogger,
        temp_data_dir: Path,
        sample_deposit: DepositResult,
    ) -> None:
        """Records go to a file named after today's date."""
        await transfer_logger.log_deposit(sample_deposit)

        expected = temp_data_dir / f"transfers_{date.today().isoformat()}.jsonl"
        assert expected.exists()

    @pytest.mark.asyncio
    async def test_deposit_record(
        self,
        transfer_logger: TransferLogger,
        temp_data_dir: Path,
        sample_deposit: DepositResult,
    ) -> None:
        """Deposit records carry the full result."""
        await transfer_logger.log_deposit(sample_deposit)

        filepath = next(temp_data_dir.glob("transfers_*.jsonl"))
        record = json.loads(filepath.read_text().strip())
        assert record["kind"] == "deposit"
        assert record["result"]["signature"] == "sig_deposit"
        assert record["result"]["targets"] == ["Target1111", "Target2222"]
        assert isinstance(record["logged_at"], float)

    @pytest.mark.asyncio
    async def test_withdraw_record(
        self,
        transfer_logger: TransferLogger,
        temp_data_dir: Path,
        sample_report: WithdrawReport,
    ) -> None:
        """Withdraw records carry every per-wallet outcome."""
        await transfer_logger.log_withdraw(sample_report)

        filepath = next(temp_data_dir.glob("transfers_*.jsonl"))
        record = json.loads(filepath.read_text().strip())
        assert record["kind"] == "withdraw"
        outcomes = record["result"]["outcomes"]
        assert outcomes[0]["signature"] == "sig_1"
        assert outcomes[1]["error"] == "Rate limit exceeded"

    @pytest.mark.asyncio
    async def test_appends_lines(
        self,
        transfer_logger: TransferLogger,
        temp_data_dir: Path,
        sample_deposit: DepositResult,
        sample_report: WithdrawReport,
    ) -> None:
        """Multiple records are appended as separate JSON lines."""
        await transfer_logger.log_deposit(sample_deposit)
        await transfer_logger.log_withdraw(sample_report)
        await transfer_logger.log_deposit(sample_deposit)

        filepath = next(temp_data_dir.glob("transfers_*.jsonl"))
        lines = filepath.read_text().strip().split("\n")
        assert [json.loads(line)["kind"] for line in lines] == [
            "deposit",
            "withdraw",
            "deposit",
        ]

    @pytest.mark.asyncio
    async def test_write_failure_does_not_raise(
        self,
        tmp_path: Path,
        sample_deposit: DepositResult,
    ) -> None:
        """A failing write is logged, never raised."""
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("")
        transfer_logger = TransferLogger(data_dir=blocker)

        # Should not raise
        await transfer_logger.log_deposit(sample_deposit)
