"""``EVMClient`` bound to a ``LocalChain``.

Reads are answered directly from contract state, reports are written as
the chain's forwarder, and logs are released from the chain's event list
in emission order (local chains have no reorgs, so every log is final).
"""

from __future__ import annotations

import logging
from typing import Callable

from vaultrelay.chain.network import LocalNetwork
from vaultrelay.chain.router import SimulatedRouter
from vaultrelay.chain.state import LocalChain
from vaultrelay.chain.token import ERC20Token
from vaultrelay.chain.vault import Vault
from vaultrelay.codec.abi import (
    BALANCE_OF_SELECTOR,
    GET_FEE_SELECTOR,
    SELECTOR_SIZE,
    decode_balance_of_args,
    decode_get_fee_args,
    encode_uint256,
)
from vaultrelay.core.config import ChainConfig
from vaultrelay.core.errors import CodecError, InvalidAddress, VaultRelayError
from vaultrelay.core.types import EVMLog, LogTrigger, TxStatus, WriteResult, to_address

logger = logging.getLogger(__name__)


class LocalEVMClient:
    def __init__(self, chain: LocalChain, forwarder: str) -> None:
        self.chain = chain
        self.forwarder = to_address(forwarder)
        self._cursor = 0

    def call_contract(self, to: str, data: bytes) -> bytes:
        contract = self.chain.contract(to)
        selector, args = bytes(data[:SELECTOR_SIZE]), bytes(data[SELECTOR_SIZE:])
        if selector == BALANCE_OF_SELECTOR and isinstance(contract, ERC20Token):
            return encode_uint256(contract.balance_of(decode_balance_of_args(args)))
        if selector == GET_FEE_SELECTOR and isinstance(contract, SimulatedRouter):
            destination, message = decode_get_fee_args(args)
            return encode_uint256(contract.get_fee(destination, message))
        raise CodecError(f"Unsupported call 0x{selector.hex()} to {type(contract).__name__}")

    def write_report(self, receiver: str, report: bytes, gas_limit: int | None = None) -> WriteResult:
        vault = self.chain.contract(receiver)
        if not isinstance(vault, Vault):
            raise InvalidAddress(receiver)
        tx_hash = self.chain.current_tx_hash
        try:
            vault.on_report(self.forwarder, b"", report)
        except VaultRelayError as exc:
            logger.warning("[%s] report reverted: %s", self.chain.name, exc.message)
            return WriteResult(tx_status=TxStatus.REVERTED, tx_hash=tx_hash, error_message=exc.message)
        return WriteResult(tx_status=TxStatus.SUCCESS, tx_hash=tx_hash)

    def poll_logs(self, trigger: LogTrigger) -> list[EVMLog]:
        events = self.chain.events[self._cursor:]
        self._cursor = len(self.chain.events)
        addresses = {a.lower() for a in trigger.addresses}
        wanted = set(trigger.topics[0]) if trigger.topics else set()
        return [
            e.to_log()
            for e in events
            if e.address.lower() in addresses and e.topics and (not wanted or e.topics[0] in wanted)
        ]


def local_client_factory(network: LocalNetwork) -> Callable[[ChainConfig, int], LocalEVMClient]:
    """Client factory resolving each configured chain to its local deployment."""

    def factory(config: ChainConfig, selector: int) -> LocalEVMClient:
        deployment = network[config.name]
        return LocalEVMClient(deployment.chain, deployment.forwarder)

    return factory
