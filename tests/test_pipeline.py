"""Tests for the migration pipeline."""

from unittest.mock import AsyncMock

import pytest

from vault_migrator.errors import InvalidConfiguration, SourceQueryError, SourceUnavailable
from vault_migrator.migration.pipeline import CancellationToken, MigrationPipeline, PipelineState
from vault_migrator.migration.verifier import VerificationStatus
from vault_migrator.source.base import MigrationEvent, SimulatedEventSource
from vault_migrator.vault.base import SimulatedVault

from helpers import NEW_VAULT, OLD_VAULT, ZERO, make_events


def pipeline_for(source, vault, **kwargs) -> MigrationPipeline:
    return MigrationPipeline(source=source, target=vault, source_address=OLD_VAULT, **kwargs)


class TestPipelineRun:
    """End-to-end runs against simulated source and target."""

    @pytest.mark.asyncio
    async def test_full_migration(self):
        """Test a complete run importing every valid event."""
        vault = SimulatedVault(address=NEW_VAULT)
        pipeline = pipeline_for(SimulatedEventSource(make_events(30)), vault)

        report = await pipeline.run()

        assert pipeline.state == PipelineState.DONE
        assert report.total_source_events == 30
        assert report.valid_events == 30
        assert report.batches_attempted == 2
        assert report.batches_succeeded == 2
        assert report.users_imported == 30
        assert report.final_target_user_count == 30
        assert report.final_target_total_amount == 30 * 10**18
        assert report.verification.status == VerificationStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_failed_middle_batch_does_not_stop_run(self):
        """60 events, capacity 25, batch 2 fails: 35 users imported, 2 batches succeed."""
        vault = SimulatedVault(address=NEW_VAULT, fail_batches={2})
        pipeline = pipeline_for(SimulatedEventSource(make_events(60)), vault, batch_size=25)

        report = await pipeline.run()

        assert [len(c) for c in vault.import_calls] == [25, 25, 10]
        assert report.batches_attempted == 3
        assert report.batches_succeeded == 2
        assert report.users_imported == 35
        assert [r.batch_index for r in report.failed_batches] == [2]
        assert report.verification.status == VerificationStatus.PARTIAL
        assert pipeline.state == PipelineState.DONE

    @pytest.mark.asyncio
    async def test_timeout_batch_is_recorded(self):
        """Test that a confirmation timeout is recorded as a failed batch."""
        vault = SimulatedVault(timeout_batches={1})
        report = await pipeline_for(SimulatedEventSource(make_events(30)), vault).run()

        assert report.batches_succeeded == 1
        assert report.failed_batches[0].timed_out is True
        assert report.users_imported == 5

    @pytest.mark.asyncio
    async def test_empty_source_still_verifies(self):
        """Test that an empty event log still reaches verification and DONE."""
        vault = SimulatedVault()
        target = AsyncMock(wraps=vault)
        pipeline = pipeline_for(SimulatedEventSource([]), target)

        report = await pipeline.run()

        assert pipeline.state == PipelineState.DONE
        assert report.valid_events == 0
        assert report.batches_attempted == 0
        assert vault.import_calls == []
        target.depositor_count.assert_awaited_once()
        assert report.verification is not None

    @pytest.mark.asyncio
    async def test_invalid_events_dropped(self):
        """Test that invalid events never reach the target."""
        events = make_events(3) + [
            MigrationEvent(user=ZERO, amount=1, timestamp=0, block_number=500),
            MigrationEvent(user=None, amount=1, timestamp=0, block_number=501),
            MigrationEvent(user="0x" + "cd" * 20, amount=0, timestamp=0, block_number=502),
        ]
        vault = SimulatedVault()

        report = await pipeline_for(SimulatedEventSource(events), vault).run()

        assert report.total_source_events == 6
        assert report.valid_events == 3
        assert report.invalid_events == 3
        assert report.users_imported == 3
        assert all(ZERO not in call for call in vault.import_calls)

    @pytest.mark.asyncio
    async def test_rerun_against_idempotent_target(self):
        """Test that a second run leaves an idempotent target unchanged."""
        source = SimulatedEventSource(make_events(40))
        vault = SimulatedVault(idempotent=True)

        first = await pipeline_for(source, vault).run()
        second = await pipeline_for(source, vault).run()

        assert first.final_target_user_count == 40
        assert second.final_target_user_count == first.final_target_user_count
        assert second.final_target_total_amount == first.final_target_total_amount

    @pytest.mark.asyncio
    async def test_rerun_against_naive_target_duplicates(self):
        """Test that replaying into a naive target duplicates depositors."""
        source = SimulatedEventSource(make_events(10))
        vault = SimulatedVault(idempotent=False)

        await pipeline_for(source, vault).run()
        second = await pipeline_for(source, vault).run()

        assert second.final_target_user_count == 20

    @pytest.mark.asyncio
    async def test_skip_migrated_avoids_resubmission(self):
        """Test that already migrated users are skipped before batching."""
        source = SimulatedEventSource(make_events(10))
        vault = SimulatedVault(idempotent=False)

        await pipeline_for(source, vault).run()
        second = await pipeline_for(source, vault, skip_migrated=True).run()

        assert second.already_migrated == 10
        assert second.batches_attempted == 0
        assert len(vault.import_calls) == 1
        assert second.final_target_user_count == 10

    @pytest.mark.asyncio
    async def test_dry_run_imports_nothing(self):
        """Test that a dry run reports estimated batches, never imported users."""
        vault = SimulatedVault(dry_run=True)

        report = await pipeline_for(SimulatedEventSource(make_events(60)), vault).run()

        assert report.batches_attempted == 3
        assert report.batches_estimated == 3
        assert report.users_estimated == 60
        assert report.batches_succeeded == 0
        assert report.users_imported == 0
        assert report.gas_used == 0
        assert report.estimated_gas == 60 * 50_000
        assert report.failed_batches == []
        assert vault.depositors == []
        assert report.verification.status == VerificationStatus.EMPTY
        assert any("nothing broadcast" in line for line in report.summary_lines())

    @pytest.mark.asyncio
    async def test_verification_read_error_omits_counters(self):
        """Test that unreadable counters leave the report without totals."""
        vault = SimulatedVault(read_error=True)

        report = await pipeline_for(SimulatedEventSource(make_events(2)), vault).run()

        assert report.users_imported == 2
        assert report.final_target_user_count is None
        assert report.verification.status == VerificationStatus.UNAVAILABLE


class TestPipelineFailures:
    """Fatal errors end in FAILED."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [SourceUnavailable("down"), SourceQueryError("bad range")])
    async def test_fetch_failure_is_fatal(self, error):
        """Test that source failures end the run in FAILED."""
        source = AsyncMock()
        source.fetch_events = AsyncMock(side_effect=error)
        vault = SimulatedVault()
        pipeline = pipeline_for(source, vault)

        with pytest.raises(type(error)):
            await pipeline.run()

        assert pipeline.state == PipelineState.FAILED
        assert pipeline.failure is error
        assert vault.import_calls == []

    @pytest.mark.asyncio
    async def test_invalid_batch_size_is_fatal(self):
        """Test that a zero batch size ends the run in FAILED."""
        pipeline = pipeline_for(SimulatedEventSource(make_events(3)), SimulatedVault(), batch_size=0)

        with pytest.raises(InvalidConfiguration):
            await pipeline.run()

        assert pipeline.state == PipelineState.FAILED


class TestCancellation:
    """Cancellation is honoured only between batches."""

    @pytest.mark.asyncio
    async def test_cancel_before_start_skips_all_batches(self):
        """Test that a cancelled token skips every batch but still verifies."""
        token = CancellationToken()
        token.cancel()
        vault = SimulatedVault()

        report = await pipeline_for(SimulatedEventSource(make_events(30)), vault).run(cancel_token=token)

        assert report.cancelled is True
        assert report.batches_attempted == 0
        assert report.verification is not None

    @pytest.mark.asyncio
    async def test_cancel_after_first_batch(self):
        """Test that cancellation takes effect at the next batch boundary."""
        token = CancellationToken()
        vault = SimulatedVault()
        original = vault.import_user_deposits_batch

        async def import_then_cancel(*args):
            receipt = await original(*args)
            token.cancel()
            return receipt

        vault.import_user_deposits_batch = import_then_cancel

        report = await pipeline_for(SimulatedEventSource(make_events(60)), vault).run(cancel_token=token)

        assert report.batches_attempted == 1
        assert report.batches_succeeded == 1
        assert report.users_imported == 25
        assert report.cancelled is True
        assert "cancelled" in "\n".join(report.summary_lines())
