"""Error taxonomy shared by the vault contracts, codec and orchestrator.

Every error carries a stable code so callers can classify failures without
string matching:

    try:
        vault.request_withdraw(user, token, amount, selector)
    except InsufficientBalance as exc:
        exc.code      # ErrorCode.INSUFFICIENT_BALANCE
        exc.details   # {"token": ..., "available": ..., "required": ...}

Contract errors behave like EVM reverts: the mutating call that raised them
has no effect.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


# ── Error Codes ──────────────────────────────────────────────────────────────


class ErrorCode(str, Enum):
    """Stable error codes."""

    # Ledger / receiver reverts
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    INSUFFICIENT_FEE_ASSET = "INSUFFICIENT_FEE_ASSET"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_REPORT = "INVALID_REPORT"
    SOURCE_CHAIN_NOT_ALLOWED = "SOURCE_CHAIN_NOT_ALLOWED"
    SENDER_NOT_ALLOWED = "SENDER_NOT_ALLOWED"
    INVALID_OPERATION = "INVALID_OPERATION"
    INVALID_ADDRESS = "INVALID_ADDRESS"
    TOKEN_TRANSFER_FAILED = "TOKEN_TRANSFER_FAILED"
    UNSUPPORTED_DESTINATION = "UNSUPPORTED_DESTINATION"

    # Off-chain
    CODEC_ERROR = "CODEC_ERROR"
    UNKNOWN_CHAIN = "UNKNOWN_CHAIN"
    CONFIG_ERROR = "CONFIG_ERROR"


# ── Base ─────────────────────────────────────────────────────────────────────


class VaultRelayError(Exception):
    """Domain error with structured code + message."""

    code: ErrorCode = ErrorCode.CODEC_ERROR

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        self.message = message or self.code.value
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "details": self.details}


# ── Ledger errors ────────────────────────────────────────────────────────────


class InvalidAmount(VaultRelayError):
    code = ErrorCode.INVALID_AMOUNT

    def __init__(self, message: str = "Amount must be greater than zero") -> None:
        super().__init__(message)


class InsufficientBalance(VaultRelayError):
    code = ErrorCode.INSUFFICIENT_BALANCE

    def __init__(self, token: str, available: int, required: int) -> None:
        self.token = token
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient balance of {token}: have {available}, need {required}",
            {"token": token, "available": available, "required": required},
        )


class InsufficientFeeAsset(VaultRelayError):
    code = ErrorCode.INSUFFICIENT_FEE_ASSET

    def __init__(self, available: int, required: int) -> None:
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient fee asset: have {available}, need {required}",
            {"available": available, "required": required},
        )


class Unauthorized(VaultRelayError):
    code = ErrorCode.UNAUTHORIZED

    def __init__(self, caller: str, action: str = "") -> None:
        self.caller = caller
        super().__init__(
            f"{caller} is not authorized" + (f" to call {action}" if action else ""),
            {"caller": caller, "action": action},
        )


class InvalidReport(VaultRelayError):
    code = ErrorCode.INVALID_REPORT

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid report: {reason}", {"reason": reason})


class InvalidAddress(VaultRelayError):
    code = ErrorCode.INVALID_ADDRESS

    def __init__(self, value: Any) -> None:
        super().__init__(f"Invalid address: {value!r}", {"value": str(value)})


class TokenTransferError(VaultRelayError):
    """ERC-20 style failure: insufficient balance or allowance."""

    code = ErrorCode.TOKEN_TRANSFER_FAILED


class UnsupportedDestination(VaultRelayError):
    code = ErrorCode.UNSUPPORTED_DESTINATION

    def __init__(self, chain_selector: int) -> None:
        super().__init__(
            f"No lane to destination chain {chain_selector}", {"chain_selector": chain_selector}
        )


# ── Receiver errors ──────────────────────────────────────────────────────────


class SourceChainNotAllowed(VaultRelayError):
    code = ErrorCode.SOURCE_CHAIN_NOT_ALLOWED

    def __init__(self, chain_selector: int) -> None:
        self.chain_selector = chain_selector
        super().__init__(
            f"Source chain {chain_selector} is not allowlisted",
            {"chain_selector": chain_selector},
        )


class SenderNotAllowed(VaultRelayError):
    code = ErrorCode.SENDER_NOT_ALLOWED

    def __init__(self, sender: str) -> None:
        self.sender = sender
        super().__init__(f"Sender {sender} is not allowlisted", {"sender": sender})


class InvalidOperation(VaultRelayError):
    code = ErrorCode.INVALID_OPERATION

    def __init__(self, tag: str) -> None:
        self.tag = tag
        super().__init__(f"Invalid operation: {tag!r}", {"tag": tag})


# ── Off-chain errors ─────────────────────────────────────────────────────────


class CodecError(VaultRelayError):
    code = ErrorCode.CODEC_ERROR


class UnknownChainError(VaultRelayError):
    code = ErrorCode.UNKNOWN_CHAIN

    def __init__(self, name: str) -> None:
        super().__init__(f"Unsupported chain selector name: {name}", {"name": name})


class ConfigError(VaultRelayError):
    code = ErrorCode.CONFIG_ERROR
