"""Migration of deposit records from an old vault into a new one.

Pipeline stages:
1. Read UserDepositMigrated events from the old vault
2. Drop events with a zero/missing user or a non-positive amount
3. Split the remaining events into batches (25 users by default)
4. Import each batch with one importUserDepositsBatch transaction
5. Reconcile the new vault's counters against the expected user count
"""

from vault_migrator.migration.batcher import Batch, make_batches
from vault_migrator.migration.factory import create_pipeline
from vault_migrator.migration.pipeline import (
    CancellationToken,
    MigrationPipeline,
    MigrationReport,
    PipelineState,
)
from vault_migrator.migration.submitter import BatchSubmitter, SubmissionResult
from vault_migrator.migration.validation import filter_valid, is_valid
from vault_migrator.migration.verifier import (
    ReconciliationVerifier,
    VerificationOutcome,
    VerificationStatus,
)

__all__ = [
    "Batch",
    "make_batches",
    "create_pipeline",
    "CancellationToken",
    "MigrationPipeline",
    "MigrationReport",
    "PipelineState",
    "BatchSubmitter",
    "SubmissionResult",
    "filter_valid",
    "is_valid",
    "ReconciliationVerifier",
    "VerificationOutcome",
    "VerificationStatus",
]
