"""Migration pipeline: old vault event log -> new vault batch imports.

State machine:
    IDLE -> FETCHING -> VALIDATING -> BATCHING -> SUBMITTING -> VERIFYING -> DONE

Any stage error moves the pipeline to FAILED and is re-raised. A failed batch
is not a stage error: it is recorded in the report and the next batch runs.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from vault_migrator.errors import VerificationReadError
from vault_migrator.migration.batcher import DEFAULT_BATCH_SIZE, make_batches
from vault_migrator.migration.submitter import BatchSubmitter, SubmissionResult
from vault_migrator.migration.validation import filter_valid
from vault_migrator.migration.verifier import ReconciliationVerifier, VerificationOutcome
from vault_migrator.source.base import EventSource, MigrationEvent
from vault_migrator.vault.base import VaultTarget

logger = logging.getLogger(__name__)

MIGRATION_EVENT = "UserDepositMigrated"


class PipelineState(str, Enum):
    """Pipeline lifecycle."""
    IDLE = "idle"
    FETCHING = "fetching"
    VALIDATING = "validating"
    BATCHING = "batching"
    SUBMITTING = "submitting"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"


class CancellationToken:
    """Cooperative cancellation, honoured only between batches."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class MigrationReport:
    """Statistics of a migration run."""
    total_source_events: int = 0
    valid_events: int = 0
    invalid_events: int = 0
    already_migrated: int = 0
    batches_total: int = 0
    batches_attempted: int = 0
    batches_succeeded: int = 0
    batches_estimated: int = 0
    users_imported: int = 0
    users_estimated: int = 0
    final_target_user_count: Optional[int] = None
    final_target_total_amount: Optional[int] = None
    cancelled: bool = False
    results: list[SubmissionResult] = field(default_factory=list)
    verification: Optional[VerificationOutcome] = None

    @property
    def failed_batches(self) -> list[SubmissionResult]:
        return [r for r in self.results if not r.success]

    @property
    def gas_used(self) -> int:
        return sum(r.resource_cost for r in self.results if r.success and not r.dry_run)

    @property
    def estimated_gas(self) -> int:
        return sum(r.resource_cost for r in self.results if r.dry_run)

    def record(self, result: SubmissionResult) -> None:
        self.results.append(result)
        self.batches_attempted += 1
        if result.success and result.dry_run:
            self.batches_estimated += 1
            self.users_estimated += result.size
        elif result.success:
            self.batches_succeeded += 1
            self.users_imported += result.size

    def summary_lines(self) -> list[str]:
        """Human readable summary for the console."""
        lines = [
            f"Source events:      {self.total_source_events}",
            f"Valid events:       {self.valid_events} (invalid: {self.invalid_events})",
            f"Batches:            {self.batches_succeeded}/{self.batches_attempted} succeeded"
            f" ({self.batches_total} planned)",
            f"Users imported:     {self.users_imported}/{self.valid_events - self.already_migrated}",
            f"Gas used:           {self.gas_used}",
        ]
        if self.batches_estimated:
            lines.append(
                f"Dry run:            {self.batches_estimated} batches ({self.users_estimated} users) "
                f"estimated at {self.estimated_gas} gas, nothing broadcast"
            )
        if self.already_migrated:
            lines.append(f"Already migrated:   {self.already_migrated} (skipped)")
        if self.final_target_user_count is not None:
            lines.append(f"Target depositors:  {self.final_target_user_count}")
            lines.append(f"Target deposits:    {self.final_target_total_amount}")
        if self.verification is not None:
            lines.append(f"Verification:       {self.verification.status.value}")
        if self.cancelled:
            lines.append("Run was cancelled before all batches were submitted")
        for failed in self.failed_batches:
            reason = failed.error_detail or "unknown error"
            code = f" [{failed.error_code}]" if failed.error_code else ""
            lines.append(f"Failed batch {failed.batch_index}{code}: {reason}")
            lines.append(f"    users: {', '.join(str(u) for u in failed.users)}")
        return lines


class MigrationPipeline:
    """Replays UserDepositMigrated events of an old vault into a new vault."""

    def __init__(
        self,
        source: EventSource,
        target: VaultTarget,
        source_address: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        from_block: Union[int, str] = 0,
        to_block: Union[int, str] = "latest",
        skip_migrated: bool = False,
        event_signature: str = MIGRATION_EVENT,
    ):
        self.source = source
        self.target = target
        self.source_address = source_address
        self.batch_size = batch_size
        self.from_block = from_block
        self.to_block = to_block
        self.skip_migrated = skip_migrated
        self.event_signature = event_signature
        self.submitter = BatchSubmitter(target)
        self.verifier = ReconciliationVerifier()
        self.state = PipelineState.IDLE
        self.failure: Optional[BaseException] = None

    def _enter(self, state: PipelineState) -> None:
        logger.debug(f"Pipeline state: {self.state.value} -> {state.value}")
        self.state = state

    async def run(self, cancel_token: Optional[CancellationToken] = None) -> MigrationReport:
        """Execute the whole migration.

        Returns:
            The migration report (state DONE)

        Raises:
            MigrationError: fatal source or configuration errors (state FAILED)
        """
        report = MigrationReport()

        try:
            self._enter(PipelineState.FETCHING)
            events = await self.source.fetch_events(
                self.source_address, self.event_signature, self.from_block, self.to_block
            )
            report.total_source_events = len(events)
            logger.info(f"Found {len(events)} historical migration events")

            self._enter(PipelineState.VALIDATING)
            valid, invalid = filter_valid(events)
            report.valid_events = len(valid)
            report.invalid_events = len(invalid)
            logger.info(f"Valid events: {len(valid)}/{len(events)}")
            expected_users = len({e.user.lower() for e in valid})

            if self.skip_migrated and valid:
                valid = await self._drop_migrated(valid, report)

            self._enter(PipelineState.BATCHING)
            batches = make_batches(valid, self.batch_size)
            report.batches_total = len(batches)

            self._enter(PipelineState.SUBMITTING)
            for batch in batches:
                if cancel_token is not None and cancel_token.cancelled:
                    report.cancelled = True
                    logger.warning(
                        f"Cancelled before batch {batch.index}/{len(batches)}; "
                        f"{len(batches) - batch.index + 1} batches not submitted"
                    )
                    break
                result = await self.submitter.submit(batch, len(batches))
                report.record(result)

            logger.info(f"Import statistics: {report.users_imported}/{len(valid)} users imported")

            self._enter(PipelineState.VERIFYING)
            outcome = await self.verifier.verify(self.target, expected_users)
            report.verification = outcome
            report.final_target_user_count = outcome.depositor_count
            report.final_target_total_amount = outcome.total_deposits

        except Exception as e:
            failed_stage = self.state
            self._enter(PipelineState.FAILED)
            self.failure = e
            logger.error(f"Migration failed during {failed_stage.value}: {type(e).__name__}: {e}")
            raise

        self._enter(PipelineState.DONE)
        return report

    async def _drop_migrated(
        self, events: list[MigrationEvent], report: MigrationReport
    ) -> list[MigrationEvent]:
        """Remove users the target already reports as migrated.

        Unreadable records are kept; the vault's own guard is the last line.
        """
        remaining = []
        for event in events:
            try:
                record = await self.target.get_user_deposit(event.user)
            except VerificationReadError as e:
                logger.warning(f"Cannot check migrated flag of {event.user}: {e}")
                remaining.append(event)
                continue
            if record.migrated:
                logger.info(f"Skipping {event.user}: already migrated on target")
                report.already_migrated += 1
                continue
            remaining.append(event)
        return remaining
