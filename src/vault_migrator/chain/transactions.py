"""Transaction building, signing, broadcast and confirmation tracking.

Flow:
1. Estimate gas (reverts surface here, before anything is broadcast)
2. Fetch nonce, gas price and chain id
3. Sign locally with eth-account
4. Broadcast the raw transaction
5. Poll for the receipt until it is mined or the deadline passes
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from eth_account import Account
from web3 import Web3

from vault_migrator.chain.rpc import JsonRpcClient, RpcError, RpcUnavailable

logger = logging.getLogger(__name__)


@dataclass
class TxReceipt:
    """Confirmed transaction outcome."""
    tx_hash: str
    block_number: Optional[int]
    gas_used: int
    status: int
    estimated: bool = False  # gas estimate only, nothing broadcast

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class TransactionFailed(Exception):
    """Raised when a transaction is refused by the endpoint or reverts."""

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        code: Optional[str] = None,
        tx_hash: Optional[str] = None,
    ):
        super().__init__(message)
        self.reason = reason or message
        self.code = code
        self.tx_hash = tx_hash


class ConfirmationTimeout(Exception):
    """Raised when a broadcast transaction is not mined before the deadline."""

    def __init__(self, message: str, tx_hash: str):
        super().__init__(message)
        self.tx_hash = tx_hash


def parse_receipt(receipt: dict) -> TxReceipt:
    """Convert a raw eth_getTransactionReceipt result."""
    return TxReceipt(
        tx_hash=receipt.get("transactionHash", ""),
        block_number=int(receipt.get("blockNumber", "0x0"), 16),
        gas_used=int(receipt.get("gasUsed", "0x0"), 16),
        status=int(receipt.get("status", "0x0"), 16),
    )


def _rpc_error_reason(error: RpcError) -> tuple[str, Optional[str]]:
    """Extract (reason, code) from a node error, preferring revert strings."""
    reason = error.message or str(error)
    if isinstance(error.data, dict) and error.data.get("message"):
        reason = error.data["message"]
    elif isinstance(error.data, str) and not error.data.startswith("0x"):
        reason = error.data
    code = str(error.code) if error.code is not None else None
    return reason, code


class TransactionSender:
    """Signs and submits contract transactions for a single account.

    Transactions are legacy (gasPrice) transactions, which every EVM chain
    accepts, BSC included.
    """

    def __init__(
        self,
        rpc: JsonRpcClient,
        private_key: str,
        gas_multiplier: float = 1.2,
        confirmation_timeout: float = 180.0,
        poll_interval: float = 2.0,
    ):
        self.rpc = rpc
        self._account = Account.from_key(private_key)
        self.gas_multiplier = gas_multiplier
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval
        self._chain_id: Optional[int] = None

    @property
    def address(self) -> str:
        return self._account.address

    async def _get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self.rpc.chain_id()
        return self._chain_id

    async def estimate(self, to: str, data: str, value: int = 0) -> int:
        """Estimate gas for a call, with the safety multiplier applied.

        Raises:
            TransactionFailed: if the node predicts a revert or refuses the call
        """
        call = {"from": self.address, "to": to, "data": data, "value": hex(value)}
        try:
            estimated = await self.rpc.estimate_gas(call)
        except RpcError as e:
            reason, code = _rpc_error_reason(e)
            raise TransactionFailed(f"Gas estimation failed: {reason}", reason=reason, code=code) from e
        except RpcUnavailable as e:
            raise TransactionFailed(str(e), reason=str(e), code="NETWORK_ERROR") from e
        return int(estimated * self.gas_multiplier)

    async def send(self, to: str, data: str, value: int = 0, gas: Optional[int] = None) -> str:
        """Sign and broadcast a transaction. Returns the transaction hash."""
        try:
            if gas is None:
                gas = await self.estimate(to, data, value)

            nonce = await self.rpc.get_transaction_count(self.address, "pending")
            gas_price = await self.rpc.gas_price()
            chain_id = await self._get_chain_id()

            tx = {
                "nonce": nonce,
                "gasPrice": gas_price,
                "gas": gas,
                "to": Web3.to_checksum_address(to),
                "value": value,
                "data": data,
                "chainId": chain_id,
            }

            signed_tx = self._account.sign_transaction(tx)
            raw_tx = signed_tx.raw_transaction.hex()
            tx_hash = await self.rpc.send_raw_transaction(raw_tx)
        except RpcError as e:
            reason, code = _rpc_error_reason(e)
            raise TransactionFailed(f"Broadcast refused: {reason}", reason=reason, code=code) from e
        except RpcUnavailable as e:
            raise TransactionFailed(str(e), reason=str(e), code="NETWORK_ERROR") from e

        logger.info(f"Transaction sent: {tx_hash}")
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str, timeout: Optional[float] = None) -> TxReceipt:
        """Poll until the transaction is mined.

        Transient RPC failures while polling are logged and polling continues
        until the deadline.

        Raises:
            ConfirmationTimeout: if no receipt is available before the deadline
            TransactionFailed: if the transaction was mined but reverted
        """
        timeout = self.confirmation_timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout

        while True:
            try:
                raw = await self.rpc.get_transaction_receipt(tx_hash)
            except (RpcError, RpcUnavailable) as e:
                logger.warning(f"Receipt lookup for {tx_hash} failed: {e}")
                raw = None

            if raw is not None:
                receipt = parse_receipt(raw)
                if not receipt.succeeded:
                    raise TransactionFailed(
                        f"Transaction {tx_hash} reverted in block {receipt.block_number}",
                        reason="execution reverted",
                        code="CALL_EXCEPTION",
                        tx_hash=tx_hash,
                    )
                return receipt

            if time.monotonic() >= deadline:
                raise ConfirmationTimeout(
                    f"No receipt for {tx_hash} after {timeout:.0f}s", tx_hash=tx_hash
                )
            await asyncio.sleep(self.poll_interval)

    async def transact(self, to: str, data: str, value: int = 0) -> TxReceipt:
        """Send a transaction and wait for its confirmation."""
        tx_hash = await self.send(to, data, value)
        return await self.wait_for_receipt(tx_hash)
