"""Main entry point for the SolGen wallet manager."""

import argparse
import asyncio
import getpass
import sys
from pathlib import Path

from loguru import logger

from solgen.config import get_settings, update_network_config
from solgen.exceptions import (
    DecryptionFailedError,
    InvalidInputError,
    RpcError,
    TransferError,
    VaultError,
)
from solgen.models import SeedGroup
from solgen.persistence import TransferLogger
from solgen.rpc import SolanaRpcClient
from solgen.transfers import BatchTransferDispatcher
from solgen.vault import VaultRepository, VaultStore
from solgen.wallet import WalletManager


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru logging."""
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level="DEBUG" if verbose else "INFO",
    )
    logger.add(
        "logs/solgen_{time}.log",
        rotation="100 MB",
        retention="7 days",
        level="DEBUG",
    )


def format_group(index: int, group: SeedGroup) -> str:
    """Render a seed group for the terminal (no secrets)."""
    label = " (imported)" if group.imported else ""
    lines = [f"[{index}] Seed group{label}, {len(group.wallets)} wallet(s)"]
    for i, wallet in enumerate(group.wallets):
        balance = "unknown" if wallet.balance is None else f"{wallet.balance:.4f} SOL"
        lines.append(f"    {i}: {wallet.address}  {balance}")
    return "\n".join(lines)


async def run(args: argparse.Namespace) -> int:
    """Execute one CLI command. Returns the process exit code."""
    settings = get_settings()
    if args.rpc_endpoint is not None or args.request_delay is not None:
        update_network_config(args.rpc_endpoint, args.request_delay)

    async with VaultStore(settings.vault.db_path) as store, SolanaRpcClient() as client:
        repository = VaultRepository(store, settings.vault.storage_key)
        manager = WalletManager(
            repository,
            client,
            balance_concurrency=settings.vault.balance_concurrency,
        )
        dispatcher = BatchTransferDispatcher(
            client,
            transfer_logger=TransferLogger(settings.vault.data_dir),
            balance_concurrency=settings.vault.balance_concurrency,
        )

        if not await repository.exists():
            print("No vault found. Choose a password to create one.")
        await manager.unlock(getpass.getpass("Password: "))

        if args.command == "list":
            if args.refresh:
                await manager.refresh_balances()
                await manager.save()
            if not manager.groups:
                print("No wallets yet. Run 'generate' to create some.")
            for i, group in enumerate(manager.groups):
                print(format_group(i, group))

        elif args.command == "generate":
            group = await manager.create_seed_group(args.count)
            print("New wallets generated successfully!")
            print(format_group(len(manager.groups) - 1, group))

        elif args.command == "recover":
            phrase = getpass.getpass("Seed phrase (12 or 24 words): ")
            group = await manager.recover_seed_group(phrase, args.count)
            print("Seed phrase successfully recovered!")
            print(format_group(len(manager.groups) - 1, group))

        elif args.command == "add-wallet":
            group = await manager.add_wallet(args.group)
            print("New wallet added under seed!")
            print(format_group(args.group, group))

        elif args.command == "delete-wallet":
            await manager.delete_wallet(args.group, args.wallet)
            print("Wallet deleted successfully")

        elif args.command == "delete-seed":
            await manager.delete_seed_group(args.group)
            print("Seed deleted successfully")

        elif args.command == "export":
            args.out.write_text(manager.export_backup(args.group))
            print(f"Backup written to {args.out}")

        elif args.command == "deposit":
            group = manager.get_group(args.group)
            result = await dispatcher.mass_deposit(group, args.amount)
            await manager.save()
            print(f"Transaction successful! Signature: {result.signature}")

        elif args.command == "withdraw":
            group = manager.get_group(args.group)
            report = await dispatcher.mass_withdraw(group, args.destination)
            await manager.save()
            for outcome in report.outcomes:
                if outcome.success:
                    print(f"Withdrawn {outcome.amount:.4f} SOL from {outcome.address}")
                else:
                    print(f"Failed to withdraw from {outcome.address}: {outcome.error}")
            if not report.outcomes:
                print("No wallets with balance found")

    return 0


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="SolGen - HD Solana wallets in an encrypted vault",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument(
        "--rpc-endpoint",
        default=None,
        help="Use this RPC endpoint instead of the defaults (empty string resets)",
    )
    parser.add_argument(
        "--request-delay",
        type=int,
        default=None,
        help="Minimum milliseconds between RPC requests",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="Show seed groups and wallets")
    list_cmd.add_argument("--refresh", action="store_true", help="Refresh balances")

    generate = sub.add_parser("generate", help="Generate a new seed group")
    generate.add_argument("--count", type=int, default=1, help="Wallets to derive")

    recover = sub.add_parser("recover", help="Import an existing seed phrase")
    recover.add_argument("--count", type=int, default=1, help="Wallets to derive")

    add_wallet = sub.add_parser("add-wallet", help="Derive one more wallet")
    add_wallet.add_argument("group", type=int)

    delete_wallet = sub.add_parser("delete-wallet", help="Delete a wallet")
    delete_wallet.add_argument("group", type=int)
    delete_wallet.add_argument("wallet", type=int)

    delete_seed = sub.add_parser("delete-seed", help="Delete a seed group")
    delete_seed.add_argument("group", type=int)

    export = sub.add_parser("export", help="Write seed and keys to a text file")
    export.add_argument("group", type=int)
    export.add_argument("--out", type=Path, default=Path("solana-wallet.txt"))

    deposit = sub.add_parser("deposit", help="Fund all wallets from the first one")
    deposit.add_argument("group", type=int)
    deposit.add_argument("amount", type=float, help="SOL per wallet")

    withdraw = sub.add_parser("withdraw", help="Sweep all wallets to an address")
    withdraw.add_argument("group", type=int)
    withdraw.add_argument("destination")

    return parser.parse_args()


if __name__ == "__main__":
    # Create logs directory if it doesn't exist
    Path("logs").mkdir(exist_ok=True)

    args = parse_args()
    setup_logging(args.verbose)

    try:
        exit_code = asyncio.run(run(args))
    except DecryptionFailedError as e:
        logger.error("{}", str(e))
        exit_code = 2
    except (InvalidInputError, TransferError, RpcError, VaultError, IndexError, ValueError) as e:
        logger.error("{}", str(e))
        exit_code = 1
    sys.exit(exit_code)
