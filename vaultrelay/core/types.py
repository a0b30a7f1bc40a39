"""Shared enums and types used across the vault, codec and orchestrator."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from eth_utils import is_address, to_checksum_address

from vaultrelay.core.errors import InvalidAddress, InvalidOperation

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def to_address(value: Any) -> str:
    """Normalise *value* (hex str or 20 raw bytes) to an EIP-55 address."""
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 20:
            raise InvalidAddress(value)
        value = "0x" + bytes(value).hex()
    if not isinstance(value, str) or not is_address(value):
        raise InvalidAddress(value)
    return to_checksum_address(value)


# ── Enums ────────────────────────────────────────────────────────────────────


class IntentKind(str, enum.Enum):
    """Intents emitted by the vault ledger."""

    DEPOSIT_REQUESTED = "DepositRequested"
    WITHDRAW_REQUESTED = "WithdrawRequested"
    WITHDRAW_EXECUTION_REQUESTED = "WithdrawExecutionRequested"

    @property
    def detail(self) -> str:
        """snake_case name used as the ``sent`` outcome detail."""
        return {
            IntentKind.DEPOSIT_REQUESTED: "deposit_requested",
            IntentKind.WITHDRAW_REQUESTED: "withdraw_requested",
            IntentKind.WITHDRAW_EXECUTION_REQUESTED: "withdraw_execution_requested",
        }[self]


class Operation(str, enum.Enum):
    """Operation tags carried in a cross-chain payload."""

    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"

    @classmethod
    def parse(cls, tag: str) -> "Operation":
        try:
            return cls(tag)
        except ValueError:
            raise InvalidOperation(tag) from None


class TxStatus(enum.IntEnum):
    """Status of an authenticated write."""

    FATAL = 0
    REVERTED = 1
    SUCCESS = 2


class HandlerStatus(str, enum.Enum):
    """Terminal outcome of processing one observed log."""

    SENT = "sent"
    SKIPPED = "skipped"
    ERROR = "error"


class Reason(str, enum.Enum):
    """Reason codes for ``skipped`` and ``error`` outcomes."""

    LOG_REMOVED = "log_removed"
    NO_TOPICS = "no_topics"
    DECODE_FAILED = "decode_failed"
    UNSUPPORTED_EVENT = "unsupported_event"
    UNKNOWN_DESTINATION = "unknown_destination"
    PREFLIGHT_FAILED = "preflight_failed"
    HANDLER_EXCEPTION = "handler_exception"


# ── Messages ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TokenAmount:
    token: str
    amount: int


@dataclass(frozen=True)
class EVM2AnyMessage:
    """Outbound cross-chain message, as passed to the transport router."""

    receiver: bytes
    data: bytes
    token_amounts: tuple[TokenAmount, ...] = ()
    fee_token: str = ZERO_ADDRESS
    extra_args: bytes = b""

    def as_abi_tuple(self) -> tuple:
        return (
            self.receiver,
            self.data,
            [(t.token, t.amount) for t in self.token_amounts],
            self.fee_token,
            self.extra_args,
        )


@dataclass(frozen=True)
class Any2EVMMessage:
    """Inbound cross-chain message, as delivered to a receiver."""

    message_id: bytes
    source_chain_selector: int
    sender: bytes
    data: bytes
    dest_token_amounts: tuple[TokenAmount, ...] = ()


@dataclass(frozen=True)
class Intent:
    """A decoded vault intent (DepositRequested / WithdrawRequested / ...)."""

    kind: IntentKind
    user: str
    token: str
    amount: int
    target_chain_selector: int


# ── Capability records ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class EVMLog:
    """A log record as delivered by the log-subscription capability."""

    address: str
    topics: tuple[bytes, ...]
    data: bytes
    removed: bool = False
    tx_hash: bytes = b""
    block_number: int = 0
    log_index: int = 0


@dataclass(frozen=True)
class LogTrigger:
    """Log filter a pipeline is registered against."""

    addresses: tuple[str, ...]
    topics: tuple[tuple[bytes, ...], ...]
    confidence: str = "safe"


@dataclass(frozen=True)
class WriteResult:
    """Result of an authenticated write submission."""

    tx_status: TxStatus
    tx_hash: bytes | None = None
    error_message: str = ""


@dataclass
class HandlerResult:
    """Terminal outcome for one observed log."""

    status: HandlerStatus
    detail: str
    tx_status: int | None = None
    tx_hash: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def skipped(cls, reason: Reason) -> "HandlerResult":
        return cls(status=HandlerStatus.SKIPPED, detail=reason.value)

    @classmethod
    def error(cls, reason: Reason) -> "HandlerResult":
        return cls(status=HandlerStatus.ERROR, detail=reason.value)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"status": self.status.value, "detail": self.detail}
        if self.tx_status is not None:
            out["txStatus"] = self.tx_status
        if self.tx_hash is not None:
            out["txHash"] = self.tx_hash
        return out
