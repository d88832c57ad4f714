"""Vault client session.

Holds the endpoint, the vault handle and the optional signing account for
the lifetime of a connection. Every user action is a method on the session:
- read_state: aggregate and per-account vault state
- approve / deposit: token approval then deposit into the vault
- withdraw: refund withdrawal, refused early when it cannot succeed
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import Optional, Union

from vault_migrator.chain.abi import checksum_address
from vault_migrator.chain.rpc import JsonRpcClient, RpcError, RpcUnavailable
from vault_migrator.chain.transactions import TransactionSender, TxReceipt
from vault_migrator.vault.base import DepositRecord
from vault_migrator.vault.rpc_vault import RpcVault

logger = logging.getLogger(__name__)

TOKEN_DECIMALS = 18
WEI = Decimal(10) ** TOKEN_DECIMALS


class SessionError(Exception):
    """Raised when a session action is refused or the endpoint is unusable."""


def to_base_units(amount: Union[str, Decimal, int, float]) -> int:
    """Convert a token amount (e.g. "12.5") to 18-decimal base units.

    Raises:
        SessionError: if the amount is not a positive number or has more
            than 18 decimals
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise SessionError(f"Invalid amount: {amount!r}") from None
    if not value.is_finite() or value <= 0:
        raise SessionError("Amount must be greater than zero")
    with localcontext() as ctx:
        ctx.prec = 80
        if -value.normalize().as_tuple().exponent > TOKEN_DECIMALS:
            raise SessionError(f"Amount has more than {TOKEN_DECIMALS} decimals: {amount}")
        return int(value * WEI)


def from_base_units(value: int) -> Decimal:
    return Decimal(value) / WEI


@dataclass
class VaultState:
    """Snapshot of the vault as shown to a user."""
    total_deposits: int
    depositor_count: int
    target_price: int
    current_price: int
    withdraw_allowed: bool
    account: Optional[str] = None
    user_deposit: Optional[DepositRecord] = None

    @property
    def total_value(self) -> Decimal:
        """Total deposits valued at the current price (both 18 decimals)."""
        return from_base_units(self.total_deposits) * from_base_units(self.current_price)

    def describe(self) -> list[str]:
        lines = [
            f"Total deposits:   {from_base_units(self.total_deposits):,}",
            f"Total value:      ${self.total_value:,.2f}",
            f"Depositors:       {self.depositor_count}",
            f"Target price:     ${from_base_units(self.target_price):,}",
            f"Current price:    ${from_base_units(self.current_price):,}",
            f"Withdrawals:      {'enabled' if self.withdraw_allowed else 'not enabled'}",
        ]
        if self.account and self.user_deposit is not None:
            status = ""
            if self.user_deposit.refunded:
                status = " (refunded)"
            elif self.user_deposit.migrated:
                status = " (migrated)"
            lines.append(
                f"Your deposit:     {from_base_units(self.user_deposit.amount):,}{status}"
            )
        return lines


class VaultSession:
    """A connection to one vault, optionally bound to a signing account."""

    def __init__(
        self,
        vault: RpcVault,
        account: Optional[str] = None,
        chain_id: Optional[int] = None,
    ):
        self.vault = vault
        self.account = account
        self.chain_id = chain_id
        self._closed = False

    @classmethod
    async def connect(
        cls,
        rpc_url: str,
        vault_address: str,
        private_key: Optional[str] = None,
        account: Optional[str] = None,
        timeout: float = 30.0,
        rpc: Optional[JsonRpcClient] = None,
    ) -> "VaultSession":
        """Open a session after checking the endpoint answers.

        Args:
            rpc_url: JSON-RPC endpoint
            vault_address: Vault contract address
            private_key: Signing key; required for write actions
            account: Read-only account to show deposit state for
            rpc: Pre-built client (tests)

        Raises:
            SessionError: if the endpoint is unreachable
        """
        rpc = rpc or JsonRpcClient(rpc_url, timeout=timeout)
        vault_address = checksum_address(vault_address, "vault")

        try:
            chain_id = await rpc.chain_id()
        except (RpcError, RpcUnavailable) as e:
            raise SessionError(f"Cannot connect to {rpc_url}: {e}") from e

        try:
            sender = TransactionSender(rpc, private_key) if private_key else None
        except Exception:
            raise SessionError("Invalid private key") from None
        if sender is not None:
            account = sender.address
        elif account:
            account = checksum_address(account, "account")

        logger.info(f"Connected to chain {chain_id}, vault {vault_address}, account {account or '(none)'}")
        return cls(RpcVault(vault_address, rpc, sender=sender), account=account, chain_id=chain_id)

    async def __aenter__(self) -> "VaultSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self) -> None:
        """End the session; further actions are refused."""
        if not self._closed:
            self._closed = True
            logger.info("Vault session closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionError("Session is closed")

    def _ensure_signer(self) -> None:
        self._ensure_open()
        if self.vault.sender is None:
            raise SessionError("This action needs a signing key")

    async def read_state(self) -> VaultState:
        """Read aggregate state and, with an account, that account's deposit."""
        self._ensure_open()
        reads = [
            self.vault.total_deposits(),
            self.vault.depositor_count(),
            self.vault.target_price(),
            self.vault.current_price(),
            self.vault.withdraw_allowed(),
        ]
        if self.account:
            reads.append(self.vault.get_user_deposit(self.account))

        values = await asyncio.gather(*reads)
        return VaultState(
            total_deposits=values[0],
            depositor_count=values[1],
            target_price=values[2],
            current_price=values[3],
            withdraw_allowed=values[4],
            account=self.account,
            user_deposit=values[5] if self.account else None,
        )

    async def approve(self, amount) -> TxReceipt:
        """Approve the vault to pull `amount` tokens from the account."""
        self._ensure_signer()
        units = to_base_units(amount)
        receipt = await self.vault.approve(self.vault.address, units)
        logger.info(f"Approved {amount} tokens for {self.vault.address}")
        return receipt

    async def deposit(self, amount) -> TxReceipt:
        """Deposit `amount` tokens (approval must already cover it)."""
        self._ensure_signer()
        units = to_base_units(amount)
        receipt = await self.vault.deposit(units)
        logger.info(f"Deposited {amount} tokens")
        return receipt

    async def withdraw(self) -> TxReceipt:
        """Withdraw the account's refund.

        Raises:
            SessionError: if withdrawals are not enabled or there is nothing to withdraw
        """
        self._ensure_signer()
        if not await self.vault.withdraw_allowed():
            raise SessionError("Withdrawals are not enabled yet")

        record = await self.vault.get_user_deposit(self.account)
        if record.amount <= 0:
            raise SessionError("No deposit to withdraw")

        receipt = await self.vault.withdraw_refund()
        logger.info(f"Withdrew refund of {from_base_units(record.amount)} tokens")
        return receipt
