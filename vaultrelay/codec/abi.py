"""ABI codec for cross-chain payloads, message envelopes, calldata and vault logs.

Every encoding here is bit-exact Solidity ABI so the same bytes are accepted by
the on-chain vault, receiver and transport router:

    payload      = abi.encode(string operation, bytes params)
    DEPOSIT      = abi.encode(address recipient)
    WITHDRAW     = abi.encode(address user, address token, uint256 amount, uint64 chainSelector)
    extraArgs    = 0x97a657c9 ‖ abi.encode(uint256 gasLimit)   (or empty)
    message      = (bytes receiver, bytes data, (address,uint256)[] tokenAmounts,
                    address feeToken, bytes extraArgs)
"""

from __future__ import annotations

from typing import Any, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import event_signature_to_log_topic, function_signature_to_4byte_selector

from vaultrelay.core.errors import CodecError
from vaultrelay.core.types import (
    EVM2AnyMessage,
    Intent,
    IntentKind,
    Operation,
    TokenAmount,
    to_address,
)

_CODEC_ERRORS = (DecodingError, EncodingError, ValueError, TypeError, OverflowError)

EVM_EXTRA_ARGS_V1_TAG = bytes.fromhex("97a657c9")

MESSAGE_TYPE = "(bytes,bytes,(address,uint256)[],address,bytes)"
DEPOSIT_PARAM_TYPES = ["address"]
WITHDRAW_PARAM_TYPES = ["address", "address", "uint256", "uint64"]

# ── Function selectors ───────────────────────────────────────────────────────

EXECUTE_CCIP_SEND_SIGNATURE = f"executeCCIPSend(uint64,{MESSAGE_TYPE})"
GET_FEE_SIGNATURE = f"getFee(uint64,{MESSAGE_TYPE})"
BALANCE_OF_SIGNATURE = "balanceOf(address)"
ON_REPORT_SIGNATURE = "onReport(bytes,bytes)"

EXECUTE_CCIP_SEND_SELECTOR = function_signature_to_4byte_selector(EXECUTE_CCIP_SEND_SIGNATURE)
GET_FEE_SELECTOR = function_signature_to_4byte_selector(GET_FEE_SIGNATURE)
BALANCE_OF_SELECTOR = function_signature_to_4byte_selector(BALANCE_OF_SIGNATURE)
ON_REPORT_SELECTOR = function_signature_to_4byte_selector(ON_REPORT_SIGNATURE)

SELECTOR_SIZE = 4

# ── Event topics ─────────────────────────────────────────────────────────────

EVENT_SIGNATURES: dict[IntentKind, str] = {
    kind: f"{kind.value}(address,address,uint256,uint64)" for kind in IntentKind
}
EVENT_TOPICS: dict[IntentKind, bytes] = {
    kind: event_signature_to_log_topic(sig) for kind, sig in EVENT_SIGNATURES.items()
}
_KIND_BY_TOPIC: dict[bytes, IntentKind] = {topic: kind for kind, topic in EVENT_TOPICS.items()}


# ── Payload ──────────────────────────────────────────────────────────────────


def encode_receiver(address: str) -> bytes:
    return encode(["address"], [to_address(address)])


def decode_receiver(data: bytes) -> str:
    """Decode an ABI-encoded address (receiver field or inbound sender)."""
    try:
        (addr,) = decode(["address"], bytes(data))
    except _CODEC_ERRORS as exc:
        raise CodecError(f"Malformed address encoding: {exc}") from exc
    return to_address(addr)


def encode_operation_data(operation: Operation | str, params: bytes) -> bytes:
    tag = operation.value if isinstance(operation, Operation) else operation
    return encode(["string", "bytes"], [tag, params])


def decode_operation_data(data: bytes) -> tuple[str, bytes]:
    """Split a payload into (operation tag, parameter bytes).

    The tag is returned verbatim; mapping it to an ``Operation`` is the
    dispatcher's job.
    """
    try:
        tag, params = decode(["string", "bytes"], bytes(data))
    except _CODEC_ERRORS as exc:
        raise CodecError(f"Malformed operation payload: {exc}") from exc
    return tag, params


def encode_deposit_params(user: str) -> bytes:
    return encode(DEPOSIT_PARAM_TYPES, [to_address(user)])


def decode_deposit_params(params: bytes) -> str:
    try:
        (user,) = decode(DEPOSIT_PARAM_TYPES, bytes(params))
    except _CODEC_ERRORS as exc:
        raise CodecError(f"Malformed DEPOSIT params: {exc}") from exc
    return to_address(user)


def encode_withdraw_params(user: str, token: str, amount: int, chain_selector: int) -> bytes:
    try:
        return encode(
            WITHDRAW_PARAM_TYPES,
            [to_address(user), to_address(token), amount, chain_selector],
        )
    except _CODEC_ERRORS as exc:
        raise CodecError(f"Cannot encode WITHDRAW params: {exc}") from exc


def decode_withdraw_params(params: bytes) -> tuple[str, str, int, int]:
    try:
        user, token, amount, selector = decode(WITHDRAW_PARAM_TYPES, bytes(params))
    except _CODEC_ERRORS as exc:
        raise CodecError(f"Malformed WITHDRAW params: {exc}") from exc
    return to_address(user), to_address(token), amount, selector


# ── Extra args ───────────────────────────────────────────────────────────────


def build_extra_args(gas_limit: int | str | None) -> bytes:
    """Tag + encoded gas limit, or empty bytes when no override is set."""
    if gas_limit is None:
        return b""
    try:
        return EVM_EXTRA_ARGS_V1_TAG + encode(["uint256"], [int(gas_limit)])
    except _CODEC_ERRORS as exc:
        raise CodecError(f"Invalid extra-args gas limit {gas_limit!r}: {exc}") from exc


def decode_extra_args(extra_args: bytes) -> int | None:
    if not extra_args:
        return None
    if extra_args[:SELECTOR_SIZE] != EVM_EXTRA_ARGS_V1_TAG:
        raise CodecError(f"Unknown extra-args tag 0x{bytes(extra_args[:SELECTOR_SIZE]).hex()}")
    try:
        (gas_limit,) = decode(["uint256"], bytes(extra_args[SELECTOR_SIZE:]))
    except _CODEC_ERRORS as exc:
        raise CodecError(f"Malformed extra args: {exc}") from exc
    return gas_limit


# ── Message envelope ─────────────────────────────────────────────────────────


def _message_from_abi(raw: Sequence[Any]) -> EVM2AnyMessage:
    receiver, data, token_amounts, fee_token, extra_args = raw
    return EVM2AnyMessage(
        receiver=receiver,
        data=data,
        token_amounts=tuple(TokenAmount(to_address(t), a) for t, a in token_amounts),
        fee_token=to_address(fee_token),
        extra_args=extra_args,
    )


def encode_message(message: EVM2AnyMessage) -> bytes:
    try:
        return encode([MESSAGE_TYPE], [message.as_abi_tuple()])
    except _CODEC_ERRORS as exc:
        raise CodecError(f"Cannot encode message: {exc}") from exc


def decode_message(data: bytes) -> EVM2AnyMessage:
    try:
        (raw,) = decode([MESSAGE_TYPE], bytes(data))
    except _CODEC_ERRORS as exc:
        raise CodecError(f"Malformed message: {exc}") from exc
    return _message_from_abi(raw)


# ── Calldata ─────────────────────────────────────────────────────────────────


def _send_args(destination_chain_selector: int, message: EVM2AnyMessage) -> bytes:
    try:
        return encode(["uint64", MESSAGE_TYPE], [destination_chain_selector, message.as_abi_tuple()])
    except _CODEC_ERRORS as exc:
        raise CodecError(f"Cannot encode send arguments: {exc}") from exc


def _decode_send_args(args: bytes) -> tuple[int, EVM2AnyMessage]:
    try:
        selector, raw = decode(["uint64", MESSAGE_TYPE], bytes(args))
    except _CODEC_ERRORS as exc:
        raise CodecError(f"Malformed send arguments: {exc}") from exc
    return selector, _message_from_abi(raw)


def encode_execute_ccip_send(destination_chain_selector: int, message: EVM2AnyMessage) -> bytes:
    """Calldata for ``executeCCIPSend``; the authenticated report body."""
    return EXECUTE_CCIP_SEND_SELECTOR + _send_args(destination_chain_selector, message)


def decode_execute_ccip_send_args(args: bytes) -> tuple[int, EVM2AnyMessage]:
    """Decode the arguments that follow the ``executeCCIPSend`` selector."""
    return _decode_send_args(args)


def encode_get_fee(destination_chain_selector: int, message: EVM2AnyMessage) -> bytes:
    return GET_FEE_SELECTOR + _send_args(destination_chain_selector, message)


def decode_get_fee_args(args: bytes) -> tuple[int, EVM2AnyMessage]:
    return _decode_send_args(args)


def encode_balance_of(owner: str) -> bytes:
    return BALANCE_OF_SELECTOR + encode(["address"], [to_address(owner)])


def decode_balance_of_args(args: bytes) -> str:
    return decode_receiver(args)


def encode_on_report(metadata: bytes, report: bytes) -> bytes:
    return ON_REPORT_SELECTOR + encode(["bytes", "bytes"], [metadata, report])


def encode_uint256(value: int) -> bytes:
    return encode(["uint256"], [value])


def decode_uint256(data: bytes) -> int:
    try:
        (value,) = decode(["uint256"], bytes(data))
    except _CODEC_ERRORS as exc:
        raise CodecError(f"Malformed uint256 result: {exc}") from exc
    return value


# ── Vault logs ───────────────────────────────────────────────────────────────


def encode_intent_log(intent: Intent) -> tuple[tuple[bytes, ...], bytes]:
    """Encode an intent as (topics, data) exactly as the vault emits it."""
    topics = (
        EVENT_TOPICS[intent.kind],
        encode(["address"], [to_address(intent.user)]),
        encode(["address"], [to_address(intent.token)]),
    )
    try:
        data = encode(["uint256", "uint64"], [intent.amount, intent.target_chain_selector])
    except _CODEC_ERRORS as exc:
        raise CodecError(f"Cannot encode intent: {exc}") from exc
    return topics, data


def match_intent_topic(topic0: bytes) -> IntentKind | None:
    return _KIND_BY_TOPIC.get(bytes(topic0))


def decode_intent_log(topics: Sequence[bytes], data: bytes) -> Intent | None:
    """Decode a vault log into an ``Intent``.

    Returns ``None`` when topic0 is not one of the vault's intent events;
    raises ``CodecError`` when it is but the topics/data are malformed.
    """
    if not topics:
        raise CodecError("Log has no topics")
    kind = match_intent_topic(topics[0])
    if kind is None:
        return None
    if len(topics) != 3:
        raise CodecError(f"{kind.value} expects 3 topics, got {len(topics)}")
    try:
        (user,) = decode(["address"], bytes(topics[1]))
        (token,) = decode(["address"], bytes(topics[2]))
        amount, selector = decode(["uint256", "uint64"], bytes(data))
    except _CODEC_ERRORS as exc:
        raise CodecError(f"Failed to decode {kind.value}: {exc}") from exc
    return Intent(
        kind=kind,
        user=to_address(user),
        token=to_address(token),
        amount=amount,
        target_chain_selector=selector,
    )
