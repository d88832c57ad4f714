"""Base interface for the target vault contract.

The vault itself is deployed externally; this module only describes the
calls the migrator makes against it:
- importUserDepositsBatch: owner-only batch import of deposit records
- totalDeposits / getDepositorCount: aggregate counters used for reconciliation
- getUserDeposit: per-user record (amount, timestamp, refunded, migrated)
"""

import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from vault_migrator.chain.abi import ZERO_ADDRESS
from vault_migrator.chain.transactions import TxReceipt
from vault_migrator.errors import BatchRejected, SubmissionTimeout, VerificationReadError

logger = logging.getLogger(__name__)


@dataclass
class DepositRecord:
    """A user's deposit as stored by the vault."""
    amount: int = 0
    timestamp: int = 0
    refunded: bool = False
    migrated: bool = False

    @property
    def exists(self) -> bool:
        return self.amount > 0 or self.migrated


class VaultTarget(ABC):
    """Abstract handle on a vault contract."""

    def __init__(self, address: str):
        self.address = address

    @abstractmethod
    async def import_user_deposits_batch(
        self,
        users: Sequence[str],
        amounts: Sequence[int],
        timestamps: Sequence[int],
        refunded: Sequence[bool],
    ) -> TxReceipt:
        """Import a batch of deposit records in one transaction.

        Blocks until the transaction is confirmed.

        Returns:
            Receipt of the confirmed transaction

        Raises:
            BatchRejected: refused by the endpoint, unauthorized, or reverted
            SubmissionTimeout: broadcast but not confirmed before the deadline
        """
        pass

    @abstractmethod
    async def total_deposits(self) -> int:
        """Total deposited amount (token base units).

        Raises:
            VerificationReadError: if the counter cannot be read
        """
        pass

    @abstractmethod
    async def depositor_count(self) -> int:
        """Number of depositors recorded by the vault.

        Raises:
            VerificationReadError: if the counter cannot be read
        """
        pass

    @abstractmethod
    async def get_user_deposit(self, user: str) -> DepositRecord:
        """Deposit record of a single user.

        Raises:
            VerificationReadError: if the record cannot be read
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(address={self.address})"


class SimulatedVault(VaultTarget):
    """In-memory vault for tests and rehearsals.

    Args:
        idempotent: ignore users that were already imported, as a vault with
            a per-user migrated flag does. When False every import appends,
            so replaying a batch duplicates depositors.
        fail_batches: 1-based import call numbers that revert
        timeout_batches: 1-based import call numbers whose receipt never arrives
        dry_run: only estimate imports, as RpcVault does without broadcasting
    """

    def __init__(
        self,
        address: str = "0x000000000000000000000000000000000000dEaD",
        idempotent: bool = True,
        fail_batches: Optional[set[int]] = None,
        timeout_batches: Optional[set[int]] = None,
        read_error: bool = False,
        dry_run: bool = False,
    ):
        super().__init__(address)
        self.dry_run = dry_run
        self.idempotent = idempotent
        self.fail_batches = set(fail_batches or ())
        self.timeout_batches = set(timeout_batches or ())
        self.read_error = read_error
        self.deposits: dict[str, DepositRecord] = {}
        self.depositors: list[str] = []
        self._total = 0
        self._block = 1_000_000
        self.import_calls: list[list[str]] = []

    async def import_user_deposits_batch(
        self,
        users: Sequence[str],
        amounts: Sequence[int],
        timestamps: Sequence[int],
        refunded: Sequence[bool],
    ) -> TxReceipt:
        """Apply the batch atomically, or reject it as a whole."""
        self.import_calls.append(list(users))
        call_number = len(self.import_calls)
        tx_hash = f"0x{secrets.token_hex(32)}"

        if not (len(users) == len(amounts) == len(timestamps) == len(refunded)):
            raise BatchRejected("array length mismatch", reason="Array length mismatch", code="CALL_EXCEPTION")
        if call_number in self.fail_batches:
            raise BatchRejected(
                f"[SIMULATED] batch {call_number} reverted",
                reason="execution reverted",
                code="CALL_EXCEPTION",
                tx_hash=tx_hash,
            )
        if call_number in self.timeout_batches:
            raise SubmissionTimeout(f"[SIMULATED] no receipt for {tx_hash}", tx_hash=tx_hash)
        if any(not u or u == ZERO_ADDRESS for u in users):
            raise BatchRejected("invalid user address", reason="Invalid user", code="CALL_EXCEPTION")
        if self.dry_run:
            return TxReceipt(tx_hash="", block_number=None, gas_used=50_000 * len(users), status=1, estimated=True)

        for user, amount, timestamp, was_refunded in zip(users, amounts, timestamps, refunded):
            key = user.lower()
            record = self.deposits.get(key)
            if record is not None and record.migrated and self.idempotent:
                logger.debug(f"[SIMULATED] {user} already migrated, skipped")
                continue
            if record is None:
                record = DepositRecord()
                self.deposits[key] = record
            record.amount += amount
            record.timestamp = timestamp
            record.refunded = was_refunded
            record.migrated = True
            self.depositors.append(key)
            self._total += amount

        self._block += 1
        return TxReceipt(tx_hash=tx_hash, block_number=self._block, gas_used=50_000 * len(users), status=1)

    async def total_deposits(self) -> int:
        if self.read_error:
            raise VerificationReadError("[SIMULATED] totalDeposits unavailable")
        return self._total

    async def depositor_count(self) -> int:
        if self.read_error:
            raise VerificationReadError("[SIMULATED] getDepositorCount unavailable")
        return len(self.depositors)

    async def get_user_deposit(self, user: str) -> DepositRecord:
        if self.read_error:
            raise VerificationReadError("[SIMULATED] getUserDeposit unavailable")
        return self.deposits.get(user.lower(), DepositRecord())
