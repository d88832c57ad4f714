"""Event sources for reading the old vault's migration log."""

from vault_migrator.source.base import EventSource, MigrationEvent, SimulatedEventSource
from vault_migrator.source.rpc_source import RpcEventSource

__all__ = ["EventSource", "MigrationEvent", "SimulatedEventSource", "RpcEventSource"]
