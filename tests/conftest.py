"""Pytest configuration and fixtures."""

import os

import pytest

# Set test environment
os.environ["DRY_RUN"] = "false"
os.environ["DEBUG"] = "false"
os.environ["RECEIPT_POLL_INTERVAL"] = "0"

from helpers import NEW_VAULT, FakeNode
from vault_migrator.chain.rpc import JsonRpcClient
from vault_migrator.config import get_settings
from vault_migrator.source.base import SimulatedEventSource
from vault_migrator.vault.base import SimulatedVault


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; reset around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def rpc(node: FakeNode) -> JsonRpcClient:
    return node.client()


@pytest.fixture
def sim_source() -> SimulatedEventSource:
    return SimulatedEventSource()


@pytest.fixture
def sim_vault() -> SimulatedVault:
    return SimulatedVault(address=NEW_VAULT)
