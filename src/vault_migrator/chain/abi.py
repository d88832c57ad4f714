"""ABI fragments and encoding helpers for the vault contracts.

Only the functions and events the migrator and the client session touch are
described here. Calls are encoded as 4-byte selector + eth-abi arguments.
"""

from dataclasses import dataclass
from typing import Any, Sequence

from eth_abi import decode, encode
from eth_utils import (
    decode_hex,
    encode_hex,
    event_signature_to_log_topic,
    function_signature_to_4byte_selector,
)
from web3 import Web3

from vault_migrator.errors import InvalidConfiguration

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class FunctionABI:
    """A contract function: name, argument types and return types."""

    name: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.signature)

    def encode_call(self, *args: Any) -> str:
        """Encode call data as a 0x-prefixed hex string."""
        if len(args) != len(self.inputs):
            raise ValueError(f"{self.signature} expects {len(self.inputs)} arguments, got {len(args)}")
        return encode_hex(self.selector + encode(list(self.inputs), list(args)))

    def decode_result(self, data: str) -> tuple:
        """Decode the hex return data of an eth_call."""
        raw = decode_hex(data) if data else b""
        if not raw and self.outputs:
            raise ValueError(f"{self.signature} returned no data")
        return decode(list(self.outputs), raw)


@dataclass(frozen=True)
class EventABI:
    """A contract event split into indexed and non-indexed parameters."""

    name: str
    indexed: tuple[tuple[str, str], ...]
    data: tuple[tuple[str, str], ...]

    @property
    def signature(self) -> str:
        types = [t for _, t in self._ordered()]
        return f"{self.name}({','.join(types)})"

    def _ordered(self) -> Sequence[tuple[str, str]]:
        # Declaration order: indexed parameters first for every event used here
        return self.indexed + self.data

    @property
    def topic(self) -> str:
        return encode_hex(event_signature_to_log_topic(self.signature))

    def decode_log(self, log: dict) -> dict:
        """Decode a raw eth_getLogs entry into a name -> value dict.

        Raises:
            ValueError: if the topics or data do not match the event layout
        """
        topics = [_as_bytes(t) for t in log.get("topics", [])]
        if not topics or encode_hex(topics[0]) != self.topic:
            raise ValueError(f"log is not a {self.name} event")
        if len(topics) - 1 != len(self.indexed):
            raise ValueError(
                f"{self.name}: expected {len(self.indexed)} indexed topics, got {len(topics) - 1}"
            )

        values = {}
        for (name, type_), topic in zip(self.indexed, topics[1:]):
            values[name] = decode([type_], topic)[0]

        data_types = [t for _, t in self.data]
        decoded = decode(data_types, _as_bytes(log.get("data", "0x")))
        for (name, _), value in zip(self.data, decoded):
            values[name] = value
        return values


def _as_bytes(value) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return decode_hex(value)


# Old vault
USER_DEPOSIT_MIGRATED = EventABI(
    name="UserDepositMigrated",
    indexed=(("user", "address"),),
    data=(("amount", "uint256"), ("timestamp", "uint256")),
)

# New vault
IMPORT_USER_DEPOSITS_BATCH = FunctionABI(
    "importUserDepositsBatch", ("address[]", "uint256[]", "uint256[]", "bool[]")
)
TOTAL_DEPOSITS = FunctionABI("totalDeposits", (), ("uint256",))
GET_DEPOSITOR_COUNT = FunctionABI("getDepositorCount", (), ("uint256",))
GET_USER_DEPOSIT = FunctionABI("getUserDeposit", ("address",), ("uint256", "uint256", "bool", "bool"))
WITHDRAW_ALLOWED = FunctionABI("withdrawAllowed", (), ("bool",))
GET_CURRENT_PRICE = FunctionABI("getCurrentPrice", (), ("uint256",))
TARGET_PRICE = FunctionABI("TARGET_PRICE", (), ("uint256",))
TOKEN = FunctionABI("TOKEN", (), ("address",))
DEPOSIT = FunctionABI("deposit", ("uint256",))
WITHDRAW_REFUND = FunctionABI("withdrawRefund")

# ERC-20
ERC20_APPROVE = FunctionABI("approve", ("address", "uint256"), ("bool",))

EVENTS = {
    USER_DEPOSIT_MIGRATED.name: USER_DEPOSIT_MIGRATED,
}


def checksum_address(address: str, label: str = "contract") -> str:
    """Validate an address and return its checksummed form.

    Raises:
        InvalidConfiguration: if the address is malformed
    """
    if not address or not Web3.is_address(address):
        raise InvalidConfiguration(f"Invalid {label} address: {address!r}")
    return Web3.to_checksum_address(address)
