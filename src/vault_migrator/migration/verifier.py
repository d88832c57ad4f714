"""Post-migration reconciliation of the target vault's counters."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from vault_migrator.errors import VerificationReadError
from vault_migrator.vault.base import VaultTarget

logger = logging.getLogger(__name__)


class VerificationStatus(str, Enum):
    """How strongly the target state supports a successful migration."""
    COMPLETE = "complete"        # depositor count matches expectation
    PARTIAL = "partial"          # some depositors, not the expected number
    EMPTY = "empty"              # no depositors at all
    UNAVAILABLE = "unavailable"  # counters could not be read


@dataclass
class VerificationOutcome:
    """Finding of a reconciliation check. Informational only."""
    status: VerificationStatus
    expected_user_count: int
    depositor_count: Optional[int] = None
    total_deposits: Optional[int] = None
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status in (VerificationStatus.COMPLETE, VerificationStatus.PARTIAL)


class ReconciliationVerifier:
    """Reads totalDeposits and getDepositorCount and grades the result."""

    async def verify(self, target: VaultTarget, expected_user_count: int) -> VerificationOutcome:
        """Compare the target's depositor count with the expected count.

        Never raises: read failures produce an UNAVAILABLE outcome.
        """
        logger.info("Verifying migration result...")

        try:
            total = await target.total_deposits()
            count = await target.depositor_count()
        except VerificationReadError as e:
            logger.error(f"Verification read failed: {e}")
            return VerificationOutcome(
                status=VerificationStatus.UNAVAILABLE,
                expected_user_count=expected_user_count,
                error=str(e),
            )

        if count == expected_user_count:
            status = VerificationStatus.COMPLETE
        elif count > 0:
            status = VerificationStatus.PARTIAL
        else:
            status = VerificationStatus.EMPTY

        logger.info(
            f"Target state: total deposits {total}, depositors {count}, expected {expected_user_count}"
        )
        if status == VerificationStatus.COMPLETE:
            logger.info("Migration verified: depositor count matches")
        elif status == VerificationStatus.PARTIAL:
            logger.warning("Migration partially verified: depositor count differs from expectation")
        else:
            logger.warning("Migration may not have succeeded: target has no depositors")

        return VerificationOutcome(
            status=status,
            expected_user_count=expected_user_count,
            depositor_count=count,
            total_deposits=total,
        )
