"""Base interface for migration event sources.

An event source reads the historical `UserDepositMigrated` log of an old
vault contract and returns the records in emission order. Sources keep no
state between calls and never retry: the pipeline decides what to do with
a failure.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

logger = logging.getLogger(__name__)

BlockTag = Union[int, str]


@dataclass(frozen=True)
class MigrationEvent:
    """A deposit record emitted by the old vault during its own migration."""

    user: Optional[str]
    amount: int
    timestamp: int
    block_number: Optional[int] = None
    log_index: Optional[int] = None
    tx_hash: Optional[str] = None

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.block_number or 0, self.log_index or 0)


class EventSource(ABC):
    """Abstract base class for migration event sources."""

    @abstractmethod
    async def fetch_events(
        self,
        source_address: str,
        event_signature: str,
        from_block: BlockTag = 0,
        to_block: BlockTag = "latest",
    ) -> list[MigrationEvent]:
        """Read all matching events in the block range.

        Args:
            source_address: Old vault contract address
            event_signature: Event name, e.g. "UserDepositMigrated"
            from_block: First block (inclusive)
            to_block: Last block (inclusive) or "latest"

        Returns:
            Events ordered by (block_number, log_index)

        Raises:
            SourceUnavailable: endpoint cannot be reached
            SourceQueryError: range or filter rejected, or logs undecodable
        """
        pass


class SimulatedEventSource(EventSource):
    """Event source serving a preloaded list (tests and offline replays)."""

    def __init__(self, events: Optional[list[MigrationEvent]] = None):
        self._events: list[MigrationEvent] = list(events or [])
        self.calls = 0

    def add_event(
        self,
        user: Optional[str],
        amount: int,
        timestamp: int = 0,
        block_number: Optional[int] = None,
    ) -> MigrationEvent:
        """Append a simulated event."""
        event = MigrationEvent(
            user=user,
            amount=amount,
            timestamp=timestamp,
            block_number=block_number if block_number is not None else len(self._events),
            log_index=0,
        )
        self._events.append(event)
        return event

    async def fetch_events(
        self,
        source_address: str,
        event_signature: str,
        from_block: BlockTag = 0,
        to_block: BlockTag = "latest",
    ) -> list[MigrationEvent]:
        """Return the simulated events inside the block range."""
        self.calls += 1
        events = [
            e for e in self._events
            if (e.block_number or 0) >= from_block
            and (to_block == "latest" or (e.block_number or 0) <= to_block)
        ]
        logger.debug(f"[SIMULATED] {len(events)} {event_signature} events from {source_address}")
        return sorted(events, key=lambda e: e.sort_key)
