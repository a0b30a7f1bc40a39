"""Tests for vaultrelay.codec.abi — payloads, message envelopes, calldata and logs."""

from __future__ import annotations

import pytest
from eth_abi import encode
from eth_utils import keccak

from vaultrelay.codec.abi import (
    BALANCE_OF_SELECTOR,
    EVENT_TOPICS,
    EVM_EXTRA_ARGS_V1_TAG,
    EXECUTE_CCIP_SEND_SELECTOR,
    ON_REPORT_SELECTOR,
    SELECTOR_SIZE,
    build_extra_args,
    decode_deposit_params,
    decode_execute_ccip_send_args,
    decode_extra_args,
    decode_get_fee_args,
    decode_intent_log,
    decode_message,
    decode_operation_data,
    decode_receiver,
    decode_uint256,
    decode_withdraw_params,
    encode_balance_of,
    encode_deposit_params,
    encode_execute_ccip_send,
    encode_get_fee,
    encode_intent_log,
    encode_message,
    encode_on_report,
    encode_operation_data,
    encode_receiver,
    encode_withdraw_params,
    match_intent_topic,
)
from vaultrelay.core.errors import CodecError
from vaultrelay.core.types import EVM2AnyMessage, Intent, IntentKind, Operation, TokenAmount

USER = "0x1111111111111111111111111111111111111111"
TOKEN = "0x2222222222222222222222222222222222222222"
RECEIVER = "0x3333333333333333333333333333333333333333"
LINK = "0x4444444444444444444444444444444444444444"
SEPOLIA = 16015286601757825753
FUJI = 14767482510784806043


@pytest.fixture
def message() -> EVM2AnyMessage:
    return EVM2AnyMessage(
        receiver=encode_receiver(RECEIVER),
        data=encode_operation_data(Operation.DEPOSIT, encode_deposit_params(USER)),
        token_amounts=(TokenAmount(TOKEN, 10**18),),
        fee_token=LINK,
        extra_args=build_extra_args(200_000),
    )


# ── Payload ──────────────────────────────────────────────────────────────


class TestPayload:
    def test_receiver_is_abi_address(self):
        encoded = encode_receiver(RECEIVER)
        assert len(encoded) == 32
        assert encoded[-20:] == bytes.fromhex(RECEIVER[2:])
        assert decode_receiver(encoded) == RECEIVER

    def test_operation_payload_layout(self):
        params = encode_deposit_params(USER)
        data = encode_operation_data(Operation.DEPOSIT, params)
        assert data == encode(["string", "bytes"], ["DEPOSIT", params])
        assert decode_operation_data(data) == ("DEPOSIT", params)

    def test_unknown_tag_is_returned_verbatim(self):
        data = encode_operation_data("BURN", b"")
        assert decode_operation_data(data) == ("BURN", b"")

    def test_deposit_params(self):
        assert decode_deposit_params(encode_deposit_params(USER.lower())) == USER

    def test_withdraw_params(self):
        params = encode_withdraw_params(USER, TOKEN, 5, SEPOLIA)
        assert params == encode(["address", "address", "uint256", "uint64"], [USER, TOKEN, 5, SEPOLIA])
        assert decode_withdraw_params(params) == (USER, TOKEN, 5, SEPOLIA)

    def test_malformed_payload_raises_codec_error(self):
        with pytest.raises(CodecError):
            decode_operation_data(b"\x01\x02")

    def test_malformed_withdraw_params(self):
        with pytest.raises(CodecError):
            decode_withdraw_params(encode_deposit_params(USER))


# ── Extra args ───────────────────────────────────────────────────────────


class TestExtraArgs:
    def test_tagged_gas_limit(self):
        extra = build_extra_args(200_000)
        assert extra[:SELECTOR_SIZE] == EVM_EXTRA_ARGS_V1_TAG == bytes.fromhex("97a657c9")
        assert extra[SELECTOR_SIZE:] == (200_000).to_bytes(32, "big")
        assert len(extra) == 36

    def test_unset_gas_limit_is_empty(self):
        assert build_extra_args(None) == b""
        assert decode_extra_args(b"") is None

    def test_zero_gas_limit_is_encoded(self):
        assert decode_extra_args(build_extra_args(0)) == 0

    def test_decimal_string_gas_limit(self):
        assert build_extra_args("300000") == build_extra_args(300_000)

    def test_decode_rejects_unknown_tag(self):
        with pytest.raises(CodecError):
            decode_extra_args(b"\xde\xad\xbe\xef" + (1).to_bytes(32, "big"))


# ── Message envelope / calldata ──────────────────────────────────────────


class TestMessage:
    def test_message_matches_abi_tuple(self, message):
        expected = encode(
            ["(bytes,bytes,(address,uint256)[],address,bytes)"],
            [(message.receiver, message.data, [(TOKEN, 10**18)], LINK, message.extra_args)],
        )
        assert encode_message(message) == expected
        assert decode_message(expected) == message

    def test_message_without_tokens(self):
        msg = EVM2AnyMessage(receiver=encode_receiver(RECEIVER), data=b"", fee_token=LINK)
        assert decode_message(encode_message(msg)).token_amounts == ()

    def test_execute_ccip_send_calldata(self, message):
        report = encode_execute_ccip_send(FUJI, message)
        assert report[:SELECTOR_SIZE] == EXECUTE_CCIP_SEND_SELECTOR
        assert EXECUTE_CCIP_SEND_SELECTOR == keccak(
            text="executeCCIPSend(uint64,(bytes,bytes,(address,uint256)[],address,bytes))"
        )[:4]
        assert decode_execute_ccip_send_args(report[SELECTOR_SIZE:]) == (FUJI, message)

    def test_get_fee_calldata(self, message):
        data = encode_get_fee(FUJI, message)
        assert decode_get_fee_args(data[SELECTOR_SIZE:]) == (FUJI, message)

    def test_balance_of_calldata(self):
        data = encode_balance_of(USER)
        assert data[:SELECTOR_SIZE] == BALANCE_OF_SELECTOR == bytes.fromhex("70a08231")

    def test_on_report_wraps_report(self, message):
        report = encode_execute_ccip_send(FUJI, message)
        data = encode_on_report(b"", report)
        assert data[:SELECTOR_SIZE] == ON_REPORT_SELECTOR
        assert data[SELECTOR_SIZE:] == encode(["bytes", "bytes"], [b"", report])

    def test_decode_uint256(self):
        assert decode_uint256((42).to_bytes(32, "big")) == 42
        with pytest.raises(CodecError):
            decode_uint256(b"")

    def test_truncated_report_args(self, message):
        args = encode_execute_ccip_send(FUJI, message)[SELECTOR_SIZE:]
        with pytest.raises(CodecError):
            decode_execute_ccip_send_args(args[:40])


# ── Vault logs ───────────────────────────────────────────────────────────


class TestIntentLogs:
    @pytest.mark.parametrize("kind", list(IntentKind))
    def test_topic_is_event_signature_hash(self, kind):
        assert EVENT_TOPICS[kind] == keccak(text=f"{kind.value}(address,address,uint256,uint64)")
        assert match_intent_topic(EVENT_TOPICS[kind]) is kind

    def test_log_layout(self):
        intent = Intent(IntentKind.DEPOSIT_REQUESTED, USER, TOKEN, 10**18, FUJI)
        topics, data = encode_intent_log(intent)
        assert len(topics) == 3
        assert topics[1][-20:] == bytes.fromhex(USER[2:])
        assert topics[2][-20:] == bytes.fromhex(TOKEN[2:])
        assert data == encode(["uint256", "uint64"], [10**18, FUJI])
        assert decode_intent_log(topics, data) == intent

    def test_unknown_topic_returns_none(self):
        assert decode_intent_log((keccak(text="Transfer(address,address,uint256)"),), b"") is None

    def test_missing_indexed_topics(self):
        topic0 = EVENT_TOPICS[IntentKind.WITHDRAW_REQUESTED]
        with pytest.raises(CodecError):
            decode_intent_log((topic0,), b"")

    def test_short_data(self):
        topics, data = encode_intent_log(Intent(IntentKind.WITHDRAW_REQUESTED, USER, TOKEN, 1, FUJI))
        with pytest.raises(CodecError):
            decode_intent_log(topics, data[:16])

    def test_empty_topics(self):
        with pytest.raises(CodecError):
            decode_intent_log((), b"")
