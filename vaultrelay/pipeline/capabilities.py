"""External capabilities consumed by the orchestrator.

The orchestrator never talks to a node directly; each source chain gets an
``EVMClient`` offering three capabilities:

    call_contract — read-only call, returns raw ABI bytes
    write_report  — authenticated report submission to a receiver contract
    poll_logs     — logs matching a trigger, released at the trigger's confidence

``LocalEVMClient`` (local chains) and ``Web3EVMClient`` (JSON-RPC) implement it.
"""

from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable

from vaultrelay.codec.abi import decode_uint256, encode_balance_of, encode_get_fee
from vaultrelay.core.config import ChainConfig
from vaultrelay.core.types import EVM2AnyMessage, EVMLog, LogTrigger, WriteResult


@runtime_checkable
class EVMClient(Protocol):
    def call_contract(self, to: str, data: bytes) -> bytes: ...

    def write_report(self, receiver: str, report: bytes, gas_limit: int | None = None) -> WriteResult: ...

    def poll_logs(self, trigger: LogTrigger) -> list[EVMLog]: ...


ClientFactory = Callable[[ChainConfig, int], EVMClient]
SelectorResolver = Callable[[str], int]


def read_erc20_balance(client: EVMClient, token: str, owner: str) -> int:
    return decode_uint256(client.call_contract(token, encode_balance_of(owner)))


def estimate_fee(
    client: EVMClient,
    router: str,
    destination_chain_selector: int,
    message: EVM2AnyMessage,
) -> int:
    return decode_uint256(client.call_contract(router, encode_get_fee(destination_chain_selector, message)))
