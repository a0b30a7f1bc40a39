"""Cross-chain selector registry (chain selector name → selector)."""

from __future__ import annotations

from dataclasses import dataclass

from vaultrelay.core.errors import UnknownChainError


@dataclass(frozen=True)
class ChainSelector:
    """A chain known to the messaging transport."""

    selector_name: str
    selector: int
    chain_id: int
    display_name: str
    is_testnet: bool = False


# ── Selector Registry ────────────────────────────────────────────────────────

_SELECTORS: tuple[ChainSelector, ...] = (
    # Testnets
    ChainSelector("ethereum-testnet-sepolia", 16015286601757825753, 11155111, "Ethereum Sepolia", True),
    ChainSelector("avalanche-testnet-fuji", 14767482510784806043, 43113, "Avalanche Fuji", True),
    ChainSelector("ethereum-testnet-sepolia-base-1", 10344971235874465080, 84532, "Base Sepolia", True),
    ChainSelector("ethereum-testnet-sepolia-arbitrum-1", 3478487238524512106, 421614, "Arbitrum Sepolia", True),
    ChainSelector("ethereum-testnet-sepolia-optimism-1", 5224473277236331295, 11155420, "OP Sepolia", True),
    ChainSelector("polygon-testnet-amoy", 16281711391670634445, 80002, "Polygon Amoy", True),
    ChainSelector("binance_smart_chain-testnet", 13264668187771770619, 97, "BNB Chain Testnet", True),
    # Mainnets
    ChainSelector("ethereum-mainnet", 5009297550715157269, 1, "Ethereum Mainnet"),
    ChainSelector("avalanche-mainnet", 6433500567565415381, 43114, "Avalanche C-Chain"),
    ChainSelector("ethereum-mainnet-base-1", 15971525489660198786, 8453, "Base"),
    ChainSelector("ethereum-mainnet-arbitrum-1", 4949039107694359620, 42161, "Arbitrum One"),
    ChainSelector("ethereum-mainnet-optimism-1", 3734403246176062136, 10, "Optimism"),
    ChainSelector("polygon-mainnet", 4051577828743386545, 137, "Polygon Mainnet"),
    ChainSelector("binance_smart_chain-mainnet", 11344663589394136015, 56, "BNB Smart Chain"),
)

SELECTORS: dict[str, ChainSelector] = {c.selector_name: c for c in _SELECTORS}


def get_chain_selector(name: str, is_testnet: bool | None = None) -> ChainSelector | None:
    """Look up a chain by selector name, optionally restricted to testnets/mainnets."""
    entry = SELECTORS.get(name.strip().lower())
    if entry is None:
        return None
    if is_testnet is not None and entry.is_testnet != is_testnet:
        return None
    return entry


def resolve_selector(name: str, is_testnet: bool | None = None) -> int:
    """Resolve a selector name to its numeric selector, raising if unsupported."""
    entry = get_chain_selector(name, is_testnet)
    if entry is None:
        raise UnknownChainError(name)
    return entry.selector


def get_all_selectors(is_testnet: bool | None = None) -> list[ChainSelector]:
    """Return all registered chains."""
    return [c for c in _SELECTORS if is_testnet is None or c.is_testnet == is_testnet]
