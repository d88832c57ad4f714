"""Vault handle backed by a JSON-RPC endpoint.

Reads go through eth_call; writes are signed locally by a TransactionSender.
In dry-run mode writes are only gas-estimated, never broadcast.
"""

import logging
from typing import Optional, Sequence

from eth_abi.exceptions import DecodingError

from vault_migrator.chain import abi
from vault_migrator.chain.rpc import JsonRpcClient, RpcError, RpcUnavailable
from vault_migrator.chain.transactions import (
    ConfirmationTimeout,
    TransactionFailed,
    TransactionSender,
    TxReceipt,
)
from vault_migrator.errors import BatchRejected, SubmissionTimeout, VerificationReadError
from vault_migrator.vault.base import DepositRecord, VaultTarget

logger = logging.getLogger(__name__)


class RpcVault(VaultTarget):
    """Vault contract reached over JSON-RPC."""

    def __init__(
        self,
        address: str,
        rpc: JsonRpcClient,
        sender: Optional[TransactionSender] = None,
        dry_run: bool = False,
    ):
        super().__init__(address)
        self.rpc = rpc
        self.sender = sender
        self.dry_run = dry_run

    async def _read(self, function: abi.FunctionABI, *args) -> tuple:
        try:
            result = await self.rpc.eth_call(self.address, function.encode_call(*args))
            return function.decode_result(result)
        except (RpcError, RpcUnavailable, DecodingError, ValueError) as e:
            raise VerificationReadError(f"{function.name} read failed: {e}") from e

    def _require_sender(self) -> TransactionSender:
        if self.sender is None:
            raise TransactionFailed("No signing key configured", reason="no signer", code="NO_SIGNER")
        return self.sender

    # ======================
    # Views
    # ======================

    async def total_deposits(self) -> int:
        return (await self._read(abi.TOTAL_DEPOSITS))[0]

    async def depositor_count(self) -> int:
        return (await self._read(abi.GET_DEPOSITOR_COUNT))[0]

    async def get_user_deposit(self, user: str) -> DepositRecord:
        amount, timestamp, refunded, migrated = await self._read(abi.GET_USER_DEPOSIT, user)
        return DepositRecord(amount=amount, timestamp=timestamp, refunded=refunded, migrated=migrated)

    async def withdraw_allowed(self) -> bool:
        return (await self._read(abi.WITHDRAW_ALLOWED))[0]

    async def current_price(self) -> int:
        return (await self._read(abi.GET_CURRENT_PRICE))[0]

    async def target_price(self) -> int:
        return (await self._read(abi.TARGET_PRICE))[0]

    async def token(self) -> str:
        return (await self._read(abi.TOKEN))[0]

    # ======================
    # Writes
    # ======================

    async def import_user_deposits_batch(
        self,
        users: Sequence[str],
        amounts: Sequence[int],
        timestamps: Sequence[int],
        refunded: Sequence[bool],
    ) -> TxReceipt:
        data = abi.IMPORT_USER_DEPOSITS_BATCH.encode_call(
            list(users), list(amounts), list(timestamps), list(refunded)
        )

        try:
            sender = self._require_sender()
            if self.dry_run:
                gas = await sender.estimate(self.address, data)
                logger.info(f"[DRY RUN] importUserDepositsBatch({len(users)} users) would use ~{gas} gas")
                return TxReceipt(tx_hash="", block_number=None, gas_used=gas, status=1, estimated=True)

            tx_hash = await sender.send(self.address, data)
            logger.info(f"Waiting for confirmation of {tx_hash}...")
            return await sender.wait_for_receipt(tx_hash)

        except TransactionFailed as e:
            raise BatchRejected(str(e), reason=e.reason, code=e.code, tx_hash=e.tx_hash, users=users) from e
        except ConfirmationTimeout as e:
            raise SubmissionTimeout(str(e), tx_hash=e.tx_hash, users=users) from e

    async def approve(self, spender: str, amount: int) -> TxReceipt:
        """Approve `spender` to pull `amount` of the vault's token from the signer."""
        token = await self.token()
        data = abi.ERC20_APPROVE.encode_call(spender, amount)
        return await self._require_sender().transact(token, data)

    async def deposit(self, amount: int) -> TxReceipt:
        return await self._require_sender().transact(self.address, abi.DEPOSIT.encode_call(amount))

    async def withdraw_refund(self) -> TxReceipt:
        return await self._require_sender().transact(self.address, abi.WITHDRAW_REFUND.encode_call())
