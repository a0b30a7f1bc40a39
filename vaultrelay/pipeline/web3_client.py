"""``EVMClient`` over a JSON-RPC node (web3.py).

Reads go through ``eth_call``.  Reports are submitted as ``onReport``
transactions signed by the forwarder key (web3's sign-and-send middleware)
and awaited for a receipt.  Logs are fetched with ``eth_getLogs`` up to the
block tag named by the trigger's confidence, resuming after the last block
already returned.
"""

from __future__ import annotations

import logging
from typing import Any, cast

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import HTTPProvider, Web3
from web3.exceptions import TimeExhausted
from web3.middleware import SignAndSendRawMiddlewareBuilder

from vaultrelay.codec.abi import encode_on_report
from vaultrelay.core.errors import ConfigError
from vaultrelay.core.types import EVMLog, LogTrigger, TxStatus, WriteResult, to_address

logger = logging.getLogger(__name__)


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return bytes.fromhex(value.removeprefix("0x"))
    return bytes(value)


class Web3EVMClient:
    def __init__(
        self,
        w3: Web3,
        account: LocalAccount,
        receipt_timeout: float = 120.0,
        start_block: int | None = None,
    ) -> None:
        self.w3 = w3
        self.account = account
        self.receipt_timeout = receipt_timeout
        self._next_block = start_block

    @classmethod
    def from_settings(cls, rpc_url: str, private_key: str, receipt_timeout: float = 120.0) -> "Web3EVMClient":
        if not private_key:
            raise ConfigError("VAULTRELAY_PRIVATE_KEY is required to submit reports")
        account = cast(LocalAccount, Account.from_key(private_key))
        w3 = Web3(HTTPProvider(rpc_url))
        w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(account))
        w3.eth.default_account = account.address
        logger.info("Connected forwarder %s to %s", account.address, rpc_url)
        return cls(w3, account, receipt_timeout=receipt_timeout)

    # ── Reads ────────────────────────────────────────────────────────────

    def call_contract(self, to: str, data: bytes) -> bytes:
        return bytes(self.w3.eth.call({"to": to_address(to), "data": "0x" + bytes(data).hex()}))

    # ── Writes ───────────────────────────────────────────────────────────

    def write_report(self, receiver: str, report: bytes, gas_limit: int | None = None) -> WriteResult:
        tx: dict[str, Any] = {
            "from": self.account.address,
            "to": to_address(receiver),
            "data": "0x" + encode_on_report(b"", report).hex(),
        }
        tx["gas"] = gas_limit or self.w3.eth.estimate_gas(tx)

        tx_hash = bytes(self.w3.eth.send_transaction(tx))
        logger.info("Report submitted to %s, tx 0x%s", tx["to"], tx_hash.hex())
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except TimeExhausted:
            return WriteResult(tx_status=TxStatus.FATAL, tx_hash=tx_hash, error_message="receipt timeout")

        if receipt["status"] == 1:
            return WriteResult(tx_status=TxStatus.SUCCESS, tx_hash=tx_hash)
        return WriteResult(tx_status=TxStatus.REVERTED, tx_hash=tx_hash, error_message="execution reverted")

    # ── Logs ─────────────────────────────────────────────────────────────

    def poll_logs(self, trigger: LogTrigger) -> list[EVMLog]:
        head = self.w3.eth.get_block(trigger.confidence)["number"]
        if self._next_block is None:
            # first poll: only logs finalized from now on
            self._next_block = head + 1
            return []
        if head < self._next_block:
            return []

        params: dict[str, Any] = {
            "fromBlock": self._next_block,
            "toBlock": head,
            "address": list(trigger.addresses),
            "topics": [["0x" + t.hex() for t in position] for position in trigger.topics],
        }
        raw_logs = self.w3.eth.get_logs(params)
        self._next_block = head + 1
        return [
            EVMLog(
                address=to_address(entry["address"]),
                topics=tuple(_as_bytes(t) for t in entry["topics"]),
                data=_as_bytes(entry["data"]),
                removed=bool(entry.get("removed", False)),
                tx_hash=_as_bytes(entry["transactionHash"]),
                block_number=int(entry["blockNumber"]),
                log_index=int(entry["logIndex"]),
            )
            for entry in raw_logs
        ]
