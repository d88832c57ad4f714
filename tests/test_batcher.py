"""Tests for batch partitioning."""

import math

import pytest

from vault_migrator.errors import InvalidConfiguration
from vault_migrator.migration.batcher import make_batches

from helpers import make_events


class TestMakeBatches:
    """Tests for make_batches."""

    @pytest.mark.parametrize("count,capacity", [(1, 25), (24, 25), (25, 25), (26, 25), (60, 25), (7, 3), (10, 1)])
    def test_partition_properties(self, count, capacity):
        """Order is preserved, no batch overflows, and the count is ceil(n/capacity)."""
        events = make_events(count)

        batches = make_batches(events, capacity)

        assert len(batches) == math.ceil(count / capacity)
        assert all(len(b) <= capacity for b in batches)
        assert [e for b in batches for e in b.events] == events

    def test_sixty_events_sizes(self):
        """Test that 60 events at capacity 25 give batches of 25, 25 and 10."""
        batches = make_batches(make_events(60), 25)

        assert [len(b) for b in batches] == [25, 25, 10]
        assert [b.index for b in batches] == [1, 2, 3]

    def test_empty_input(self):
        """Test that no events give no batches."""
        assert make_batches([], 25) == []

    @pytest.mark.parametrize("capacity", [0, -1, 2.5, True])
    def test_invalid_capacity(self, capacity):
        """Test that a non-positive or non-integer capacity is rejected."""
        with pytest.raises(InvalidConfiguration):
            make_batches(make_events(3), capacity)

    def test_invalid_capacity_on_empty_input(self):
        """Test that capacity is checked even when there is nothing to batch."""
        with pytest.raises(InvalidConfiguration):
            make_batches([], 0)

    def test_columns(self):
        """Test that a batch splits into the four import columns."""
        events = make_events(3)
        batch = make_batches(events, 25)[0]

        users, amounts, timestamps, refunded = batch.columns()

        assert users == [e.user for e in events]
        assert amounts == [e.amount for e in events]
        assert timestamps == [e.timestamp for e in events]
        assert refunded == [False, False, False]
