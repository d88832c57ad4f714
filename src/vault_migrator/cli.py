"""Command line entry points.

vault-migrate: rebuild deposit records in a new vault from the old vault's
UserDepositMigrated events.

    vault-migrate <old_vault> <new_vault> <private_key> <rpc_url> [options]

vault-status: print (or keep printing) a vault's public state.

    vault-status <vault> <rpc_url> [--account ADDR] [--watch]
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from dotenv import load_dotenv

from vault_migrator.client.poller import StatePoller
from vault_migrator.client.session import SessionError, VaultSession, VaultState
from vault_migrator.config import get_settings
from vault_migrator.errors import InvalidConfiguration, MigrationError
from vault_migrator.migration.factory import create_pipeline
from vault_migrator.migration.pipeline import CancellationToken, MigrationReport

logger = logging.getLogger(__name__)

MIGRATE_EPILOG = """\
example:
  vault-migrate 0x123... 0x456... 0xprivKey https://bsc-testnet.infura.io/v3/...

arguments:
  old_vault    old vault that already executed its migration
  new_vault    new vault receiving the imported deposits
  private_key  key sending the import transactions (must own the new vault)
  rpc_url      JSON-RPC endpoint of the chain
"""


class ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser exiting with status 1 on usage errors."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(1, f"Error: {message}\n")


def setup_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )


def build_migrate_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="vault-migrate",
        description="Rebuild vault deposits from historical migration events",
        epilog=MIGRATE_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("old_vault", help="Old vault contract address")
    parser.add_argument("new_vault", help="New vault contract address")
    parser.add_argument("private_key", help="Owner private key of the new vault")
    parser.add_argument("rpc_url", help="JSON-RPC endpoint")
    parser.add_argument("--batch-size", type=int, help="Users per import transaction")
    parser.add_argument("--from-block", type=int, help="First block to scan")
    parser.add_argument("--to-block", help="Last block to scan (number or 'latest')")
    parser.add_argument("--confirmation-timeout", type=float, help="Receipt deadline per batch (seconds)")
    parser.add_argument("--dry-run", action="store_true", help="Estimate gas only, send nothing")
    parser.add_argument(
        "--skip-migrated", action="store_true", help="Skip users the new vault already marks as migrated"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def print_report(report: MigrationReport) -> None:
    print("\n" + "=" * 60)
    print("MIGRATION REPORT")
    print("=" * 60)
    for line in report.summary_lines():
        print(f"  {line}")


def _install_cancel_handler(token: CancellationToken) -> None:
    """Cancel at the next batch boundary on SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()

    def _cancel():
        if not token.cancelled:
            logger.warning("Interrupt received: stopping after the current batch")
        token.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _cancel)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform or outside the main thread
            pass


async def run_migration(args: argparse.Namespace) -> int:
    settings = get_settings().model_copy()
    if args.batch_size is not None:
        settings.batch_size = args.batch_size
    if args.from_block is not None:
        settings.from_block = args.from_block
    if args.to_block is not None:
        settings.to_block = int(args.to_block) if args.to_block.isdigit() else args.to_block
    if args.confirmation_timeout is not None:
        settings.confirmation_timeout = args.confirmation_timeout
    if args.dry_run:
        settings.dry_run = True
    if args.skip_migrated:
        settings.skip_migrated = True

    try:
        pipeline = create_pipeline(
            args.old_vault, args.new_vault, args.private_key, args.rpc_url, settings=settings
        )
    except InvalidConfiguration as e:
        logger.error(f"Error: {e}")
        return 1

    token = CancellationToken()
    _install_cancel_handler(token)

    logger.info("Starting migration data rebuild...")
    try:
        report = await pipeline.run(cancel_token=token)
    except MigrationError as e:
        logger.error(f"Migration failed: {e}")
        return 1

    print_report(report)
    logger.info("Migration data rebuild finished")
    return 0


def migrate_main(argv: Optional[list[str]] = None) -> int:
    """Entry point of vault-migrate."""
    load_dotenv()
    args = build_migrate_parser().parse_args(argv)
    setup_logging(args.debug or get_settings().debug)

    try:
        return asyncio.run(run_migration(args))
    except Exception as e:
        logger.exception(f"Migration aborted: {e}")
        return 1


def build_status_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="vault-status", description="Show vault state")
    parser.add_argument("vault", help="Vault contract address")
    parser.add_argument("rpc_url", help="JSON-RPC endpoint")
    parser.add_argument("--account", help="Also show this account's deposit")
    parser.add_argument("--watch", action="store_true", help="Keep refreshing until interrupted")
    parser.add_argument("--interval", type=float, help="Refresh interval in seconds")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


async def _print_state(state: VaultState) -> None:
    print("-" * 40)
    for line in state.describe():
        print(line)


async def run_status(args: argparse.Namespace) -> int:
    settings = get_settings()

    try:
        session = await VaultSession.connect(
            args.rpc_url, args.vault, account=args.account, timeout=settings.rpc_timeout
        )
    except (SessionError, InvalidConfiguration) as e:
        logger.error(f"Error: {e}")
        return 1

    async with session:
        if not args.watch:
            try:
                state = await session.read_state()
            except MigrationError as e:
                logger.error(f"Cannot read vault state: {e}")
                return 1
            await _print_state(state)
            return 0

        poller = StatePoller(session, _print_state, interval=args.interval or settings.poll_interval)
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except (NotImplementedError, RuntimeError):
                pass

        poller.start()
        try:
            await stop.wait()
        finally:
            await poller.stop()
    return 0


def status_main(argv: Optional[list[str]] = None) -> int:
    """Entry point of vault-status."""
    load_dotenv()
    args = build_status_parser().parse_args(argv)
    setup_logging(args.debug or get_settings().debug)

    try:
        return asyncio.run(run_status(args))
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        logger.exception(f"Status check failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(migrate_main())
