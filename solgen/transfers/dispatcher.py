"""Multi-wallet transfer flows over a seed group."""

from loguru import logger

from solgen.exceptions import (
    InsufficientBalanceError,
    InvalidInputError,
    NoTargetsError,
    ReserveViolationError,
    RpcError,
)
from solgen.models import (
    DepositResult,
    SeedGroup,
    WithdrawOutcome,
    WithdrawReport,
    lamports_to_sol,
    short_address,
    sol_to_lamports,
)
from solgen.persistence.transfer_logger import TransferLogger
from solgen.rpc.client import SolanaRpcClient, parse_address


class BatchTransferDispatcher:
    """Mass deposit and mass withdraw across the wallets of a seed group.

    Mass deposit checks every precondition before broadcasting, so a
    rejected deposit never moves funds. Mass withdraw is best effort: a
    failing wallet is reported and the rest are still processed.

    Both flows refresh the group's cached balances once a broadcast has
    been attempted, whatever the outcome.
    """

    # Minimum SOL kept in the funding wallet after a mass deposit
    MIN_RESERVE_SOL = 0.001
    # SOL left in each wallet on withdraw to pay the transaction fee
    FEE_RESERVE_SOL = 0.001

    def __init__(
        self,
        client: SolanaRpcClient,
        transfer_logger: TransferLogger | None = None,
        balance_concurrency: int = 4,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            client: RPC client used for balances and broadcasts.
            transfer_logger: Optional audit log for completed transfers.
            balance_concurrency: Parallel balance lookups on refresh.
        """
        self._client = client
        self._transfer_logger = transfer_logger
        self._balance_concurrency = balance_concurrency

    async def refresh_balances(self, group: SeedGroup) -> None:
        """Update cached balances; failed lookups become unknown (None)."""
        balances = await self._client.get_balances(
            [w.address for w in group.wallets],
            max_concurrency=self._balance_concurrency,
        )
        for wallet in group.wallets:
            wallet.balance = balances.get(wallet.address)

    async def mass_deposit(self, group: SeedGroup, amount_each: float) -> DepositResult:
        """Fund every wallet of the group from its first wallet.

        Args:
            group: Seed group; wallets[0] pays, the others receive.
            amount_each: SOL sent to each target wallet.

        Returns:
            DepositResult with the transaction signature.

        Raises:
            NoTargetsError: The group has a single wallet.
            InvalidInputError: The amount is not positive.
            InsufficientBalanceError: Source cannot cover the total.
            ReserveViolationError: Source would drop below the reserve.
            RpcError: Broadcast failed.
        """
        source = group.funding_wallet
        targets = group.wallets[1:]
        if not targets:
            raise NoTargetsError("No other wallets to fund.")

        amount_lamports = sol_to_lamports(amount_each)
        if amount_lamports <= 0:
            raise InvalidInputError(f"Invalid amount: {amount_each}")
        total_lamports = amount_lamports * len(targets)
        reserve_lamports = sol_to_lamports(self.MIN_RESERVE_SOL)

        balance_lamports = sol_to_lamports(await self._client.get_balance(source.address))

        if balance_lamports < total_lamports:
            raise InsufficientBalanceError(
                f"Insufficient balance. Deposit in first wallet address: "
                f"{source.address} and try again",
                address=source.address,
            )
        if balance_lamports - total_lamports < reserve_lamports:
            raise ReserveViolationError(
                f"Not enough balance to keep {self.MIN_RESERVE_SOL} SOL in the "
                f"source wallet. Please deposit more."
            )

        logger.info(
            "Mass deposit: {} SOL to {} wallets from {}",
            amount_each,
            len(targets),
            source.short_address,
        )
        try:
            signature = await self._client.broadcast_transfer(
                source.private_key,
                [t.address for t in targets],
                amount_each,
            )
        finally:
            await self.refresh_balances(group)

        result = DepositResult(
            signature=signature,
            source=source.address,
            targets=[t.address for t in targets],
            amount_each=amount_each,
        )
        if self._transfer_logger is not None:
            await self._transfer_logger.log_deposit(result)
        return result

    async def mass_withdraw(self, group: SeedGroup, destination: str) -> WithdrawReport:
        """Sweep every funded wallet of the group to one address.

        Wallets whose cached balance exceeds the fee reserve send their
        fresh balance minus the reserve, in whole lamports. Each wallet is
        its own transaction; failures are recorded and skipped.

        Raises:
            InvalidInputError: The destination address is malformed.
        """
        parse_address(destination)
        reserve_lamports = sol_to_lamports(self.FEE_RESERVE_SOL)

        candidates = [
            w
            for w in group.wallets
            if w.balance is not None
            and w.balance > self.FEE_RESERVE_SOL
            and w.address != destination
        ]
        if not candidates:
            logger.info("No wallets with balance found")
            return WithdrawReport(destination=destination)

        outcomes: list[WithdrawOutcome] = []
        try:
            for wallet in candidates:
                outcome = await self._withdraw_one(
                    wallet.address,
                    wallet.private_key,
                    destination,
                    reserve_lamports,
                )
                outcomes.append(outcome)
        finally:
            await self.refresh_balances(group)

        report = WithdrawReport(destination=destination, outcomes=outcomes)
        logger.info(
            "Withdraw complete: {} succeeded, {} failed, {} SOL moved",
            len(report.succeeded),
            len(report.failed),
            report.total_withdrawn,
        )
        if self._transfer_logger is not None:
            await self._transfer_logger.log_withdraw(report)
        return report

    async def _withdraw_one(
        self,
        address: str,
        private_key: str,
        destination: str,
        reserve_lamports: int,
    ) -> WithdrawOutcome:
        try:
            balance = await self._client.get_balance(address)
            send_lamports = sol_to_lamports(balance) - reserve_lamports
            if send_lamports <= 0:
                return WithdrawOutcome(address=address, error="Balance below fee reserve")

            amount = lamports_to_sol(send_lamports)
            signature = await self._client.broadcast_transfer(
                private_key, [destination], amount
            )
        except (RpcError, InvalidInputError) as e:
            logger.error("Failed to withdraw from {}: {}", short_address(address), str(e))
            return WithdrawOutcome(address=address, error=str(e))

        logger.info("Withdrawn {:.4f} SOL from {}", amount, short_address(address))
        return WithdrawOutcome(address=address, amount=amount, signature=signature)
