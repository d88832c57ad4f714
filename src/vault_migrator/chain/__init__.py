"""EVM chain access: JSON-RPC, ABI encoding and transaction submission."""

from vault_migrator.chain.abi import ZERO_ADDRESS, EventABI, FunctionABI
from vault_migrator.chain.rpc import JsonRpcClient, RpcError, RpcUnavailable
from vault_migrator.chain.transactions import (
    ConfirmationTimeout,
    TransactionFailed,
    TransactionSender,
    TxReceipt,
)

__all__ = [
    "ZERO_ADDRESS",
    "EventABI",
    "FunctionABI",
    "JsonRpcClient",
    "RpcError",
    "RpcUnavailable",
    "ConfirmationTimeout",
    "TransactionFailed",
    "TransactionSender",
    "TxReceipt",
]
