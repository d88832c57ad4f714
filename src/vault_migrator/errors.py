"""Error taxonomy for the migration pipeline.

Fatal errors abort the pipeline:
- SourceUnavailable, SourceQueryError: the old vault's event log cannot be read
- InvalidConfiguration: bad batch size, block range or contract address

Recoverable errors are caught at the event or batch level and folded into
the migration report:
- InvalidEventData: a single event is dropped
- BatchRejected, SubmissionTimeout: a single batch is skipped
- VerificationReadError: the report omits the target counters
"""

from typing import Optional, Sequence


class MigrationError(Exception):
    """Base class for all migration errors."""

    fatal = True


class SourceUnavailable(MigrationError):
    """The source ledger endpoint could not be reached."""


class SourceQueryError(MigrationError):
    """The source ledger rejected the block range or event filter."""


class InvalidConfiguration(MigrationError):
    """A migration parameter is invalid."""


class InvalidEventData(MigrationError):
    """An event record is missing fields or carries invalid values."""

    fatal = False


class BatchRejected(MigrationError):
    """A batch import was refused by the endpoint or reverted on chain."""

    fatal = False

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        code: Optional[str] = None,
        tx_hash: Optional[str] = None,
        batch_index: Optional[int] = None,
        users: Sequence[str] = (),
    ):
        super().__init__(message)
        self.reason = reason or message
        self.code = code
        self.tx_hash = tx_hash
        self.batch_index = batch_index
        self.users = list(users)


class SubmissionTimeout(MigrationError):
    """A batch transaction was broadcast but not confirmed before the deadline.

    The outcome on chain is unknown: the transaction may still be mined.
    """

    fatal = False

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        batch_index: Optional[int] = None,
        users: Sequence[str] = (),
    ):
        super().__init__(message)
        self.tx_hash = tx_hash
        self.batch_index = batch_index
        self.users = list(users)


class VerificationReadError(MigrationError):
    """Target aggregate counters could not be read."""

    fatal = False
