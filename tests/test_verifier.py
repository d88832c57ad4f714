"""Tests for reconciliation."""

from unittest.mock import AsyncMock

import pytest

from vault_migrator.errors import VerificationReadError
from vault_migrator.migration.verifier import ReconciliationVerifier, VerificationStatus
from vault_migrator.vault.base import SimulatedVault

from helpers import make_events


def counters(total: int, count: int) -> AsyncMock:
    target = AsyncMock()
    target.total_deposits = AsyncMock(return_value=total)
    target.depositor_count = AsyncMock(return_value=count)
    return target


class TestReconciliationVerifier:
    """Tests for ReconciliationVerifier.verify."""

    @pytest.mark.asyncio
    async def test_complete(self):
        """Test that a matching depositor count is COMPLETE."""
        outcome = await ReconciliationVerifier().verify(counters(500, 5), expected_user_count=5)

        assert outcome.status == VerificationStatus.COMPLETE
        assert outcome.depositor_count == 5
        assert outcome.total_deposits == 500
        assert outcome.passed

    @pytest.mark.asyncio
    async def test_partial(self):
        """Test that a lower depositor count is PARTIAL."""
        outcome = await ReconciliationVerifier().verify(counters(300, 3), expected_user_count=5)

        assert outcome.status == VerificationStatus.PARTIAL
        assert outcome.passed

    @pytest.mark.asyncio
    async def test_empty(self):
        """Test that zero depositors is EMPTY."""
        outcome = await ReconciliationVerifier().verify(counters(0, 0), expected_user_count=5)

        assert outcome.status == VerificationStatus.EMPTY
        assert not outcome.passed

    @pytest.mark.asyncio
    async def test_read_error_never_raises(self):
        """Test that read failures give UNAVAILABLE instead of raising."""
        outcome = await ReconciliationVerifier().verify(SimulatedVault(read_error=True), expected_user_count=5)

        assert outcome.status == VerificationStatus.UNAVAILABLE
        assert outcome.depositor_count is None
        assert outcome.error

    @pytest.mark.asyncio
    async def test_against_simulated_vault(self):
        """Test verification against a simulated vault after an import."""
        vault = SimulatedVault()
        events = make_events(4, amount=10)
        await vault.import_user_deposits_batch(
            [e.user for e in events], [e.amount for e in events], [e.timestamp for e in events], [False] * 4
        )

        outcome = await ReconciliationVerifier().verify(vault, expected_user_count=4)

        assert outcome.status == VerificationStatus.COMPLETE
        assert outcome.total_deposits == 40

    @pytest.mark.asyncio
    async def test_partial_read_failure(self):
        """Test that one failing counter read gives UNAVAILABLE."""
        target = counters(100, 1)
        target.depositor_count = AsyncMock(side_effect=VerificationReadError("rpc down"))

        outcome = await ReconciliationVerifier().verify(target, expected_user_count=1)

        assert outcome.status == VerificationStatus.UNAVAILABLE
