"""In-memory ledger: vault, receiver, tokens and a simulated transport router."""
