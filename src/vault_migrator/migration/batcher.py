"""Splitting validated events into fixed-capacity import batches."""

from dataclasses import dataclass
from typing import Sequence

from vault_migrator.errors import InvalidConfiguration
from vault_migrator.source.base import MigrationEvent

DEFAULT_BATCH_SIZE = 25


@dataclass(frozen=True)
class Batch:
    """Consecutive events imported by a single transaction."""
    index: int                          # 1-based position in the run
    events: tuple[MigrationEvent, ...]

    def __len__(self) -> int:
        return len(self.events)

    @property
    def users(self) -> list[str]:
        return [e.user for e in self.events]

    def columns(self) -> tuple[list, list, list, list]:
        """Parallel (users, amounts, timestamps, refunded) arrays."""
        return (
            [e.user for e in self.events],
            [e.amount for e in self.events],
            [e.timestamp for e in self.events],
            [False] * len(self.events),
        )


def make_batches(events: Sequence[MigrationEvent], capacity: int = DEFAULT_BATCH_SIZE) -> list[Batch]:
    """Partition events into batches of at most `capacity`, keeping order.

    Raises:
        InvalidConfiguration: if capacity is not a positive integer
    """
    if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
        raise InvalidConfiguration(f"Batch capacity must be a positive integer, got {capacity!r}")

    return [
        Batch(index=number, events=tuple(events[start:start + capacity]))
        for number, start in enumerate(range(0, len(events), capacity), start=1)
    ]
