"""Simulated messaging transport between local chains.

Stands in for the external cross-chain transport during local runs and
tests.  Sending and delivery are separate transactions on separate chains:

    source: vault.execute_ccip_send → router.ccip_send   (fee + tokens locked, message queued)
    relay:  router.relay_pending()                      (one delivery transaction per message)
    dest:   router.deliver → mint bridged tokens → receiver.ccip_receive

A failed delivery rolls back on the destination chain only; the source
chain keeps the sent message, as a real transport would.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from eth_abi import encode
from eth_utils import keccak

from vaultrelay.chain.receiver import Receiver
from vaultrelay.chain.state import Contract, LocalChain, atomic
from vaultrelay.chain.token import ERC20Token
from vaultrelay.codec.abi import decode_receiver, encode_message
from vaultrelay.core.errors import (
    InvalidAddress,
    TokenTransferError,
    UnsupportedDestination,
    VaultRelayError,
)
from vaultrelay.core.types import Any2EVMMessage, EVM2AnyMessage, TokenAmount, to_address

logger = logging.getLogger(__name__)

DEFAULT_BASE_FEE = 10**16  # 0.01 fee token
DEFAULT_BYTE_FEE = 10**12
DEFAULT_TOKEN_FEE = 5 * 10**15


class DeliveryStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class PendingMessage:
    message_id: bytes
    source_chain_selector: int
    destination_chain_selector: int
    sender: str
    message: EVM2AnyMessage
    dest_token_amounts: tuple[TokenAmount, ...]


@dataclass(frozen=True)
class DeliveryResult:
    message_id: bytes
    destination_chain_selector: int
    status: DeliveryStatus
    error: str = ""


class SimulatedRouter(Contract):
    """Fee quoting, send and delivery for one chain's side of every lane."""

    def __init__(
        self,
        chain: LocalChain,
        address: str,
        fee_token: str,
        base_fee: int = DEFAULT_BASE_FEE,
        byte_fee: int = DEFAULT_BYTE_FEE,
        token_fee: int = DEFAULT_TOKEN_FEE,
    ) -> None:
        super().__init__(chain, address)
        self.base_fee = base_fee
        self.byte_fee = byte_fee
        self.token_fee = token_fee
        self._lanes: dict[int, SimulatedRouter] = {}
        self.storage["fee_token"] = to_address(fee_token)
        self.storage["token_map"] = {}  # (dest selector, source token) -> dest token
        self.storage["nonce"] = 0
        self.storage["outbox"] = []
        self.storage["executed"] = set()

    # ── Wiring ───────────────────────────────────────────────────────────

    def connect(self, remote: "SimulatedRouter") -> None:
        self._lanes[remote.chain.selector] = remote

    def map_token(self, destination_chain_selector: int, source_token: str, dest_token: str) -> None:
        self.storage["token_map"][(destination_chain_selector, to_address(source_token))] = to_address(dest_token)

    def is_chain_supported(self, chain_selector: int) -> bool:
        return chain_selector in self._lanes

    @property
    def pending(self) -> list[PendingMessage]:
        return list(self.storage["outbox"])

    # ── Send ─────────────────────────────────────────────────────────────

    def get_fee(self, destination_chain_selector: int, message: EVM2AnyMessage) -> int:
        if destination_chain_selector not in self._lanes:
            raise UnsupportedDestination(destination_chain_selector)
        if to_address(message.fee_token) != self.storage["fee_token"]:
            raise TokenTransferError(f"Unsupported fee token {message.fee_token}")
        return (
            self.base_fee
            + self.byte_fee * len(message.data)
            + self.token_fee * len(message.token_amounts)
        )

    def _erc20(self, token: str) -> ERC20Token:
        contract = self.chain.contract(token)
        if not isinstance(contract, ERC20Token):
            raise InvalidAddress(token)
        return contract

    @atomic
    def ccip_send(self, sender: str, destination_chain_selector: int, message: EVM2AnyMessage) -> bytes:
        fee = self.get_fee(destination_chain_selector, message)
        sender = to_address(sender)
        self._erc20(message.fee_token).transfer_from(self.address, sender, self.address, fee)

        dest_amounts: list[TokenAmount] = []
        for ta in message.token_amounts:
            key = (destination_chain_selector, to_address(ta.token))
            dest_token = self.storage["token_map"].get(key)
            if dest_token is None:
                raise TokenTransferError(
                    f"Token {ta.token} is not supported on lane to {destination_chain_selector}"
                )
            self._erc20(ta.token).transfer_from(self.address, sender, self.address, ta.amount)
            dest_amounts.append(TokenAmount(dest_token, ta.amount))

        self.storage["nonce"] += 1
        message_id = keccak(
            encode(
                ["uint64", "uint64", "uint64", "address", "bytes"],
                [
                    self.chain.selector,
                    destination_chain_selector,
                    self.storage["nonce"],
                    sender,
                    encode_message(message),
                ],
            )
        )
        self.storage["outbox"].append(
            PendingMessage(
                message_id=message_id,
                source_chain_selector=self.chain.selector,
                destination_chain_selector=destination_chain_selector,
                sender=sender,
                message=message,
                dest_token_amounts=tuple(dest_amounts),
            )
        )
        self.emit("CCIPSendRequested", messageId=message_id, destinationChainSelector=destination_chain_selector, fee=fee)
        return message_id

    # ── Relay / delivery ─────────────────────────────────────────────────

    def relay_pending(self) -> list[DeliveryResult]:
        """Deliver every queued message to its destination chain."""
        outbox, self.storage["outbox"] = self.storage["outbox"], []
        return [self._lanes[item.destination_chain_selector].deliver(item) for item in outbox]

    def deliver(self, item: PendingMessage) -> DeliveryResult:
        if item.message_id in self.storage["executed"]:
            return DeliveryResult(item.message_id, self.chain.selector, DeliveryStatus.FAILED, "already executed")
        try:
            with self.chain.transaction():
                receiver = self.chain.contract(decode_receiver(item.message.receiver))
                if not isinstance(receiver, Receiver):
                    raise InvalidAddress(receiver.address)
                for ta in item.dest_token_amounts:
                    self._erc20(ta.token).mint(self.address, receiver.address, ta.amount)
                receiver.ccip_receive(
                    self.address,
                    Any2EVMMessage(
                        message_id=item.message_id,
                        source_chain_selector=item.source_chain_selector,
                        sender=encode(["address"], [item.sender]),
                        data=item.message.data,
                        dest_token_amounts=item.dest_token_amounts,
                    ),
                )
                self.storage["executed"].add(item.message_id)
        except VaultRelayError as exc:
            logger.warning(
                "[%s] delivery of 0x%s failed: %s", self.chain.name, item.message_id.hex(), exc.message
            )
            return DeliveryResult(item.message_id, self.chain.selector, DeliveryStatus.FAILED, exc.message)
        return DeliveryResult(item.message_id, self.chain.selector, DeliveryStatus.SUCCESS)
