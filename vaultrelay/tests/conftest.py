"""Shared fixtures for the VaultRelay test suite."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from vaultrelay.chain.network import ChainDeployment, LocalNetwork
from vaultrelay.chain.state import LocalChain, derive_address
from vaultrelay.chain.token import ERC20Token
from vaultrelay.core.chains import resolve_selector
from vaultrelay.core.config import get_settings
from vaultrelay.core.types import TxStatus, WriteResult
from vaultrelay.pipeline.capabilities import EVMClient

SEPOLIA = resolve_selector("ethereum-testnet-sepolia")
FUJI = resolve_selector("avalanche-testnet-fuji")
ONE = 10**18


# ── Settings ─────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Each test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ── Accounts ─────────────────────────────────────────────────────────────────


@pytest.fixture
def user() -> str:
    return derive_address("test", "user")


@pytest.fixture
def stranger() -> str:
    return derive_address("test", "stranger")


# ── Single chain ─────────────────────────────────────────────────────────────


@pytest.fixture
def chain() -> LocalChain:
    return LocalChain("testchain", SEPOLIA)


@pytest.fixture
def deployer() -> str:
    return derive_address("test", "deployer")


@pytest.fixture
def token(chain: LocalChain, deployer: str) -> ERC20Token:
    return ERC20Token(chain, derive_address("test", "TKN"), "TKN", deployer)


# ── Two-chain network ────────────────────────────────────────────────────────


@pytest.fixture
def network() -> LocalNetwork:
    """sepolia <-> fuji with a bridged ``BnM`` token and funded fee balances."""
    net = LocalNetwork()
    net.add_chain("ethereum-testnet-sepolia", name="sepolia")
    net.add_chain("avalanche-testnet-fuji", name="fuji")
    net.add_token("BnM")
    net.connect("sepolia", "fuji")
    return net


@pytest.fixture
def sepolia(network: LocalNetwork) -> ChainDeployment:
    return network["sepolia"]


@pytest.fixture
def fuji(network: LocalNetwork) -> ChainDeployment:
    return network["fuji"]


@pytest.fixture
def funded_user(network: LocalNetwork, sepolia: ChainDeployment, user: str) -> str:
    """*user* holding 5 BnM on sepolia with the vault approved to pull them."""
    network.fund("sepolia", "BnM", user, 5 * ONE)
    sepolia.tokens["BnM"].approve(user, sepolia.vault.address, 5 * ONE)
    return user


# ── Capability fakes ─────────────────────────────────────────────────────────


@pytest.fixture
def mock_client() -> MagicMock:
    """An ``EVMClient`` whose writes succeed."""
    client = MagicMock(spec=EVMClient)
    client.write_report.return_value = WriteResult(tx_status=TxStatus.SUCCESS, tx_hash=b"\xab" * 32)
    client.poll_logs.return_value = []
    return client
