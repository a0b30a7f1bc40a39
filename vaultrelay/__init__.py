"""VaultRelay — cross-chain vault ledger, inbound dispatcher and relay orchestrator."""

__version__ = "0.1.0"
