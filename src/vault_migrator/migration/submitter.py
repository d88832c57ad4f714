"""Batch submission against the target vault.

One batch is one importUserDepositsBatch transaction. The contract applies
the whole array or nothing, so a single invalid member blocks the batch
before anything is sent. Failures are returned, never retried here.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from vault_migrator.errors import BatchRejected, SubmissionTimeout
from vault_migrator.migration.batcher import Batch
from vault_migrator.migration.validation import is_valid
from vault_migrator.vault.base import VaultTarget

logger = logging.getLogger(__name__)

INVALID_MEMBER = "invalid member"


@dataclass
class SubmissionResult:
    """Outcome of a single batch import."""
    batch_index: int
    success: bool
    size: int = 0
    resource_cost: int = 0              # gas used (estimated in dry-run mode)
    confirmed_at: Optional[int] = None  # block number
    tx_hash: Optional[str] = None
    error_detail: Optional[str] = None
    error_code: Optional[str] = None
    timed_out: bool = False
    dry_run: bool = False               # estimated only, nothing broadcast
    users: list[str] = field(default_factory=list)


class BatchSubmitter:
    """Submits batches to a vault target, one transaction per batch."""

    def __init__(self, target: VaultTarget):
        self.target = target

    async def submit(self, batch: Batch, total_batches: Optional[int] = None) -> SubmissionResult:
        """Import a batch and wait for its confirmation."""
        label = f"{batch.index}/{total_batches}" if total_batches else str(batch.index)
        users = batch.users

        invalid = [e for e in batch.events if not is_valid(e)]
        if invalid:
            logger.error(
                f"Batch {label}: {len(invalid)} invalid member(s), batch skipped: "
                f"{[(e.user, e.amount) for e in invalid]}"
            )
            return SubmissionResult(
                batch_index=batch.index,
                success=False,
                size=len(batch),
                error_detail=INVALID_MEMBER,
                users=users,
            )

        logger.info(f"Batch {label}: importing {len(batch)} users")
        users_col, amounts, timestamps, refunded = batch.columns()

        try:
            receipt = await self.target.import_user_deposits_batch(users_col, amounts, timestamps, refunded)

        except BatchRejected as e:
            logger.error(
                f"Batch {label} failed: {e.reason} (code={e.code}, tx={e.tx_hash}) users={users}"
            )
            return SubmissionResult(
                batch_index=batch.index,
                success=False,
                size=len(batch),
                tx_hash=e.tx_hash,
                error_detail=e.reason,
                error_code=e.code,
                users=users,
            )

        except SubmissionTimeout as e:
            logger.error(
                f"Batch {label}: confirmation timed out for {e.tx_hash}; outcome unknown, "
                f"check the transaction before replaying users={users}"
            )
            return SubmissionResult(
                batch_index=batch.index,
                success=False,
                size=len(batch),
                tx_hash=e.tx_hash,
                error_detail=str(e),
                error_code="TIMEOUT",
                timed_out=True,
                users=users,
            )

        except Exception as e:
            logger.exception(f"Batch {label} failed unexpectedly: {e} users={users}")
            return SubmissionResult(
                batch_index=batch.index,
                success=False,
                size=len(batch),
                error_detail=str(e),
                users=users,
            )

        if receipt.estimated:
            logger.info(f"[DRY RUN] Batch {label}: estimated gas {receipt.gas_used}, not broadcast")
        else:
            logger.info(
                f"Batch {label} imported: gas used {receipt.gas_used}, block {receipt.block_number}"
            )
        return SubmissionResult(
            batch_index=batch.index,
            success=True,
            size=len(batch),
            resource_cost=receipt.gas_used,
            confirmed_at=receipt.block_number,
            tx_hash=receipt.tx_hash or None,
            dry_run=receipt.estimated,
            users=users,
        )
