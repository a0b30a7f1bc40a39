"""Ledger state substrate — contracts, events and whole-call rollback.

A ``LocalChain`` is one independent ledger.  Contracts deployed on it keep
their state in an explicit per-instance ``storage`` dict; nothing is global,
so any number of chains can coexist in one process (and in one test).

Atomicity
---------
Every mutating contract entry point runs inside ``LocalChain.transaction()``:

    with chain.transaction():
        token.transfer_from(...)
        vault.storage["balances"][...] += amount

If anything raises, the storage of *every* contract on the chain is restored
to the snapshot taken at entry and the events emitted since are dropped.
Transactions nest: an inner failure that propagates unwinds the inner
savepoint first, then the outer one.
"""

from __future__ import annotations

import copy
import functools
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, TypeVar

from eth_utils import keccak, to_checksum_address

from vaultrelay.core.auth import Role
from vaultrelay.core.errors import InvalidAddress
from vaultrelay.core.types import EVMLog, to_address

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def derive_address(*parts: str) -> str:
    """Deterministic address for simulated deployments and accounts."""
    return to_checksum_address(keccak(text=":".join(parts))[-20:])


@dataclass
class EventRecord:
    """An event emitted by a contract."""

    address: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)
    topics: tuple[bytes, ...] = ()
    data: bytes = b""
    block_number: int = 0
    tx_hash: bytes = b""
    log_index: int = 0

    def to_log(self) -> EVMLog:
        return EVMLog(
            address=self.address,
            topics=self.topics,
            data=self.data,
            removed=False,
            tx_hash=self.tx_hash,
            block_number=self.block_number,
            log_index=self.log_index,
        )


class LocalChain:
    """One in-memory ledger instance."""

    def __init__(self, name: str, selector: int) -> None:
        self.name = name
        self.selector = selector
        self.events: list[EventRecord] = []
        self._contracts: dict[str, "Contract"] = {}
        self._block_number = 0
        self._depth = 0

    # ── Contracts ────────────────────────────────────────────────────────

    def deploy(self, contract: "Contract") -> None:
        key = contract.address.lower()
        if key in self._contracts:
            raise InvalidAddress(contract.address)
        self._contracts[key] = contract
        logger.debug("[%s] deployed %s at %s", self.name, type(contract).__name__, contract.address)

    def contract(self, address: str) -> "Contract":
        try:
            return self._contracts[address.lower()]
        except KeyError:
            raise InvalidAddress(address) from None

    def has_contract(self, address: str) -> bool:
        return address.lower() in self._contracts

    # ── Transactions ─────────────────────────────────────────────────────

    @property
    def block_number(self) -> int:
        return self._block_number

    @property
    def current_tx_hash(self) -> bytes:
        return keccak(text=f"{self.name}:{self.selector}:{self._block_number + 1}")

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed block atomically (see module docstring)."""
        snapshot = {key: copy.deepcopy(c.storage) for key, c in self._contracts.items()}
        mark = len(self.events)
        self._depth += 1
        try:
            yield
        except BaseException:
            for key, c in self._contracts.items():
                if key in snapshot:
                    c.storage = snapshot[key]
            del self.events[mark:]
            raise
        else:
            if self._depth == 1:
                self._block_number += 1
        finally:
            self._depth -= 1

    # ── Events ───────────────────────────────────────────────────────────

    def record(self, event: EventRecord) -> EventRecord:
        event.block_number = self._block_number + 1
        event.tx_hash = self.current_tx_hash
        event.log_index = len(self.events)
        self.events.append(event)
        return event

    def find_events(self, name: str | None = None, address: str | None = None) -> list[EventRecord]:
        return [
            e for e in self.events
            if (name is None or e.name == name)
            and (address is None or e.address.lower() == address.lower())
        ]


class Contract:
    """Base class for contracts deployed on a ``LocalChain``."""

    def __init__(self, chain: LocalChain, address: str) -> None:
        self.chain = chain
        self.address = to_address(address)
        self.storage: dict[str, Any] = {}
        chain.deploy(self)

    def role_bindings(self) -> dict[Role, str | None]:
        return {}

    def emit(self, name: str, *, topics: tuple[bytes, ...] = (), data: bytes = b"", **args: Any) -> EventRecord:
        return self.chain.record(
            EventRecord(address=self.address, name=name, args=args, topics=topics, data=data)
        )


def atomic(fn: F) -> F:
    """Run a contract method inside its chain's transaction."""

    @functools.wraps(fn)
    def wrapper(self: Contract, *args: Any, **kwargs: Any) -> Any:
        with self.chain.transaction():
            return fn(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]
