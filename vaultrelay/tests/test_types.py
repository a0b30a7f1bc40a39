"""Tests for vaultrelay.core.types and core.errors."""

from __future__ import annotations

import pytest

from vaultrelay.core.errors import (
    ErrorCode,
    InsufficientBalance,
    InvalidAddress,
    InvalidOperation,
    VaultRelayError,
)
from vaultrelay.core.types import (
    ZERO_ADDRESS,
    HandlerResult,
    HandlerStatus,
    IntentKind,
    Operation,
    Reason,
    TxStatus,
    to_address,
)


# ── Enum Tests ───────────────────────────────────────────────────────────────


class TestEnums:
    def test_tx_status_values(self):
        assert [int(s) for s in (TxStatus.FATAL, TxStatus.REVERTED, TxStatus.SUCCESS)] == [0, 1, 2]

    def test_intent_details(self):
        assert {k.detail for k in IntentKind} == {
            "deposit_requested",
            "withdraw_requested",
            "withdraw_execution_requested",
        }

    def test_operation_parse(self):
        assert Operation.parse("DEPOSIT") is Operation.DEPOSIT
        with pytest.raises(InvalidOperation):
            Operation.parse("deposit")


class TestAddresses:
    def test_checksums_hex(self):
        assert to_address("0x5fbdb2315678afecb367f032d93f642f64180aa3") == "0x5FbDB2315678afecb367f032d93F642f64180aa3"

    def test_accepts_raw_bytes(self):
        assert to_address(b"\x00" * 20) == ZERO_ADDRESS

    @pytest.mark.parametrize("value", ["0x1234", b"\x00" * 19, None, 42, "not-an-address"])
    def test_rejects_garbage(self, value):
        with pytest.raises(InvalidAddress):
            to_address(value)


class TestHandlerResult:
    def test_skipped(self):
        result = HandlerResult.skipped(Reason.PREFLIGHT_FAILED)
        assert result.status is HandlerStatus.SKIPPED
        assert result.to_dict() == {"status": "skipped", "detail": "preflight_failed"}

    def test_sent_dict(self):
        result = HandlerResult(HandlerStatus.SENT, "deposit_requested", tx_status=2, tx_hash="0xab")
        assert result.to_dict() == {"status": "sent", "detail": "deposit_requested", "txStatus": 2, "txHash": "0xab"}


class TestErrors:
    def test_error_payload(self):
        exc = InsufficientBalance("0xtoken", 1, 5)
        assert isinstance(exc, VaultRelayError)
        assert exc.to_dict() == {
            "code": ErrorCode.INSUFFICIENT_BALANCE.value,
            "message": "Insufficient balance of 0xtoken: have 1, need 5",
            "details": {"token": "0xtoken", "available": 1, "required": 5},
        }
