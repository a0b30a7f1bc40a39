"""Tests for vaultrelay.pipeline.web3_client against a mocked web3 instance."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from web3.exceptions import TimeExhausted

from vaultrelay.codec.abi import EVENT_TOPICS, ON_REPORT_SELECTOR, encode_intent_log
from vaultrelay.core.errors import ConfigError
from vaultrelay.core.types import Intent, IntentKind, LogTrigger, TxStatus
from vaultrelay.pipeline.capabilities import EVMClient
from vaultrelay.pipeline.web3_client import Web3EVMClient

VAULT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
USER = "0x1111111111111111111111111111111111111111"
TOKEN = "0x2222222222222222222222222222222222222222"
SIGNER = "0x3333333333333333333333333333333333333333"
TEST_KEY = "0x" + "11" * 32


@pytest.fixture
def w3() -> MagicMock:
    w3 = MagicMock()
    w3.eth.estimate_gas.return_value = 90_000
    w3.eth.send_transaction.return_value = b"\x0f" * 32
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1}
    return w3


@pytest.fixture
def client(w3) -> Web3EVMClient:
    return Web3EVMClient(w3, MagicMock(address=SIGNER), receipt_timeout=5)


@pytest.fixture
def trigger() -> LogTrigger:
    return LogTrigger(addresses=(VAULT,), topics=(tuple(EVENT_TOPICS.values()),))


class TestReads:
    def test_call_contract(self, client, w3):
        w3.eth.call.return_value = b"\x00" * 31 + b"\x07"
        assert client.call_contract(VAULT.lower(), b"\x70\xa0\x82\x31") == b"\x00" * 31 + b"\x07"
        w3.eth.call.assert_called_once_with({"to": VAULT, "data": "0x70a08231"})

    def test_satisfies_protocol(self, client):
        assert isinstance(client, EVMClient)


class TestWriteReport:
    def test_success(self, client, w3):
        result = client.write_report(VAULT, b"\xaa\xbb")
        assert result.tx_status is TxStatus.SUCCESS
        assert result.tx_hash == b"\x0f" * 32
        tx = w3.eth.send_transaction.call_args.args[0]
        assert tx["to"] == VAULT
        assert tx["from"] == SIGNER
        assert tx["data"].startswith("0x" + ON_REPORT_SELECTOR.hex())
        assert tx["gas"] == 90_000

    def test_gas_override_skips_estimate(self, client, w3):
        client.write_report(VAULT, b"\xaa", gas_limit=400_000)
        assert w3.eth.send_transaction.call_args.args[0]["gas"] == 400_000
        w3.eth.estimate_gas.assert_not_called()

    def test_reverted_receipt(self, client, w3):
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 0}
        result = client.write_report(VAULT, b"\xaa")
        assert result.tx_status is TxStatus.REVERTED
        assert result.tx_hash == b"\x0f" * 32

    def test_receipt_timeout_is_fatal(self, client, w3):
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("timed out")
        assert client.write_report(VAULT, b"\xaa").tx_status is TxStatus.FATAL


class TestPollLogs:
    def test_first_poll_starts_at_safe_head(self, client, w3, trigger):
        w3.eth.get_block.return_value = {"number": 100}
        assert client.poll_logs(trigger) == []
        w3.eth.get_block.assert_called_once_with("safe")
        w3.eth.get_logs.assert_not_called()

    def test_resumes_after_last_block(self, w3, trigger):
        client = Web3EVMClient(w3, MagicMock(address=SIGNER), start_block=90)
        topics, data = encode_intent_log(Intent(IntentKind.DEPOSIT_REQUESTED, USER, TOKEN, 5, 1))
        w3.eth.get_block.return_value = {"number": 100}
        w3.eth.get_logs.return_value = [
            {
                "address": VAULT.lower(),
                "topics": list(topics),
                "data": data,
                "removed": False,
                "transactionHash": b"\x01" * 32,
                "blockNumber": 95,
                "logIndex": 3,
            }
        ]

        (log,) = client.poll_logs(trigger)

        params = w3.eth.get_logs.call_args.args[0]
        assert (params["fromBlock"], params["toBlock"]) == (90, 100)
        assert params["address"] == [VAULT]
        assert len(params["topics"][0]) == 3
        assert log.address == VAULT
        assert log.topics == topics
        assert log.data == data
        assert (log.block_number, log.log_index) == (95, 3)

        w3.eth.get_logs.reset_mock()
        assert client.poll_logs(trigger) == []
        w3.eth.get_logs.assert_not_called()

        w3.eth.get_block.return_value = {"number": 104}
        w3.eth.get_logs.return_value = []
        client.poll_logs(trigger)
        assert w3.eth.get_logs.call_args.args[0]["fromBlock"] == 101

    def test_hex_string_fields(self, w3, trigger):
        client = Web3EVMClient(w3, MagicMock(address=SIGNER), start_block=1)
        w3.eth.get_block.return_value = {"number": 2}
        w3.eth.get_logs.return_value = [
            {
                "address": VAULT,
                "topics": ["0x" + "ab" * 32],
                "data": "0x",
                "transactionHash": "0x" + "cd" * 32,
                "blockNumber": 2,
                "logIndex": 0,
            }
        ]
        (log,) = client.poll_logs(trigger)
        assert log.topics == (b"\xab" * 32,)
        assert log.data == b""
        assert log.removed is False


class TestFromSettings:
    def test_requires_private_key(self):
        with pytest.raises(ConfigError):
            Web3EVMClient.from_settings("http://localhost:8545", "")

    def test_builds_signing_client(self):
        client = Web3EVMClient.from_settings("http://localhost:8545", TEST_KEY, receipt_timeout=30)
        assert client.w3.eth.default_account == client.account.address
        assert client.receipt_timeout == 30
