"""Validity rules for migration events."""

import logging
from typing import Iterable

from vault_migrator.chain.abi import ZERO_ADDRESS
from vault_migrator.errors import InvalidEventData
from vault_migrator.source.base import MigrationEvent

logger = logging.getLogger(__name__)


def check_event(event: MigrationEvent) -> None:
    """Raise InvalidEventData if the event cannot be imported."""
    if not event.user:
        raise InvalidEventData("missing user address")
    if event.user.lower() == ZERO_ADDRESS:
        raise InvalidEventData("user is the zero address")
    if not isinstance(event.amount, int) or event.amount <= 0:
        raise InvalidEventData(f"amount must be positive, got {event.amount!r}")


def is_valid(event: MigrationEvent) -> bool:
    """True iff the user is a non-zero address and the amount is positive."""
    try:
        check_event(event)
    except InvalidEventData:
        return False
    return True


def filter_valid(
    events: Iterable[MigrationEvent],
) -> tuple[list[MigrationEvent], list[MigrationEvent]]:
    """Split events into (valid, invalid), preserving order.

    Every dropped event is logged with its raw values for audit.
    """
    valid: list[MigrationEvent] = []
    invalid: list[MigrationEvent] = []

    for event in events:
        try:
            check_event(event)
        except InvalidEventData as e:
            logger.warning(
                f"Dropping invalid event ({e}): user={event.user!r} amount={event.amount!r} "
                f"block={event.block_number} tx={event.tx_hash}"
            )
            invalid.append(event)
            continue
        valid.append(event)

    return valid, invalid
