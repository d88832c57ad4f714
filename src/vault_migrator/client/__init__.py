"""Vault client session for depositors."""

from vault_migrator.client.poller import StatePoller
from vault_migrator.client.session import SessionError, VaultSession, VaultState

__all__ = ["StatePoller", "SessionError", "VaultSession", "VaultState"]
