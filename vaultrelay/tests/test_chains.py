"""Tests for vaultrelay.core.chains — selector registry."""

from __future__ import annotations

import pytest

from vaultrelay.core.chains import SELECTORS, get_all_selectors, get_chain_selector, resolve_selector
from vaultrelay.core.errors import ErrorCode, UnknownChainError


class TestRegistry:
    def test_known_testnets(self):
        assert resolve_selector("ethereum-testnet-sepolia") == 16015286601757825753
        assert resolve_selector("avalanche-testnet-fuji") == 14767482510784806043

    def test_lookup_is_case_insensitive(self):
        assert get_chain_selector("  Ethereum-Testnet-Sepolia ").chain_id == 11155111

    def test_network_filter(self):
        assert get_chain_selector("ethereum-mainnet", is_testnet=True) is None
        assert get_chain_selector("ethereum-mainnet", is_testnet=False).chain_id == 1
        with pytest.raises(UnknownChainError):
            resolve_selector("ethereum-testnet-sepolia", is_testnet=False)

    def test_unknown_name(self):
        with pytest.raises(UnknownChainError) as exc_info:
            resolve_selector("mordor")
        assert exc_info.value.code is ErrorCode.UNKNOWN_CHAIN
        assert "mordor" in exc_info.value.message

    def test_selectors_are_unique_uint64(self):
        selectors = [c.selector for c in get_all_selectors()]
        assert len(set(selectors)) == len(selectors) == len(SELECTORS)
        assert all(0 < s < 2**64 for s in selectors)

    def test_split_by_network(self):
        testnets = get_all_selectors(is_testnet=True)
        mainnets = get_all_selectors(is_testnet=False)
        assert testnets and mainnets
        assert len(testnets) + len(mainnets) == len(get_all_selectors())
