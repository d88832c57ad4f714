"""Vault contract handles (JSON-RPC backed and simulated)."""

from vault_migrator.vault.base import DepositRecord, SimulatedVault, VaultTarget
from vault_migrator.vault.rpc_vault import RpcVault

__all__ = ["DepositRecord", "SimulatedVault", "VaultTarget", "RpcVault"]
