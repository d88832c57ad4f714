"""Factory wiring a migration pipeline to a live chain endpoint."""

import logging
from typing import Optional

from vault_migrator.chain.abi import checksum_address
from vault_migrator.chain.rpc import JsonRpcClient
from vault_migrator.chain.transactions import TransactionSender
from vault_migrator.config import Settings, get_settings
from vault_migrator.errors import InvalidConfiguration
from vault_migrator.migration.pipeline import MigrationPipeline
from vault_migrator.source.rpc_source import RpcEventSource
from vault_migrator.vault.rpc_vault import RpcVault

logger = logging.getLogger(__name__)


def create_pipeline(
    old_vault: str,
    new_vault: str,
    private_key: str,
    rpc_url: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> MigrationPipeline:
    """Build a pipeline reading the old vault's log and importing into the new vault.

    Raises:
        InvalidConfiguration: on malformed addresses, key or batch size
    """
    settings = settings or get_settings()
    old_vault = checksum_address(old_vault, "old vault")
    new_vault = checksum_address(new_vault, "new vault")

    if settings.batch_size <= 0:
        raise InvalidConfiguration(f"batch_size must be positive, got {settings.batch_size}")
    if settings.log_chunk_size <= 0:
        raise InvalidConfiguration(f"log_chunk_size must be positive, got {settings.log_chunk_size}")

    rpc = JsonRpcClient(rpc_url or settings.rpc_url, timeout=settings.rpc_timeout)

    try:
        sender = TransactionSender(
            rpc,
            private_key,
            gas_multiplier=settings.gas_multiplier,
            confirmation_timeout=settings.confirmation_timeout,
            poll_interval=settings.receipt_poll_interval,
        )
    except Exception:
        # Never echo the key itself
        raise InvalidConfiguration("Invalid private key") from None

    logger.info(f"Operator account: {sender.address}")
    logger.info(f"RPC URL: {Settings.redact_url(rpc.url)}")
    logger.info(f"Old vault: {old_vault}")
    logger.info(f"New vault: {new_vault}")
    if settings.dry_run:
        logger.warning("DRY RUN: batches are gas-estimated only, nothing is broadcast")

    return MigrationPipeline(
        source=RpcEventSource(rpc, chunk_size=settings.log_chunk_size),
        target=RpcVault(new_vault, rpc, sender=sender, dry_run=settings.dry_run),
        source_address=old_vault,
        batch_size=settings.batch_size,
        from_block=settings.from_block,
        to_block=settings.to_block,
        skip_migrated=settings.skip_migrated,
    )
