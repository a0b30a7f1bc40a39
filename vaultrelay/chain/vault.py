"""Vault ledger — per-user / per-token balances and cross-chain intents.

Entry points
------------
User intents (caller is the user):
    request_deposit   — credit balance, pull tokens into custody, emit DepositRequested
    request_withdraw  — debit balance (tokens stay locked), emit WithdrawRequested

Remote effects (receiver or owner only):
    credit_user       — credit balance; tokens were already moved into custody
    execute_withdraw  — debit balance, emit WithdrawExecutionRequested

Relay (owner or forwarder):
    execute_ccip_send — pay the transport fee from custody and send a message
    on_report         — forwarder-only authenticated report wrapping execute_ccip_send

Every entry point is atomic: it either commits all balance and token effects
or raises and leaves the chain untouched.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Protocol

from vaultrelay.chain.ownable import Ownable2Step
from vaultrelay.chain.state import LocalChain, atomic
from vaultrelay.chain.token import ERC20Token
from vaultrelay.codec.abi import (
    EXECUTE_CCIP_SEND_SELECTOR,
    SELECTOR_SIZE,
    decode_execute_ccip_send_args,
    encode_intent_log,
)
from vaultrelay.core.auth import Role, requires_role
from vaultrelay.core.errors import (
    CodecError,
    InsufficientBalance,
    InsufficientFeeAsset,
    InvalidAddress,
    InvalidAmount,
    InvalidReport,
)
from vaultrelay.core.types import EVM2AnyMessage, Intent, IntentKind, to_address

logger = logging.getLogger(__name__)


class TransportRouter(Protocol):
    """Messaging transport as seen by the vault."""

    address: str

    def get_fee(self, destination_chain_selector: int, message: EVM2AnyMessage) -> int: ...

    def ccip_send(self, sender: str, destination_chain_selector: int, message: EVM2AnyMessage) -> bytes: ...


class Vault(Ownable2Step):
    """Balance ledger and intent source for one chain."""

    def __init__(
        self,
        chain: LocalChain,
        address: str,
        owner: str,
        router: str,
        receiver: str | None = None,
        forwarder: str | None = None,
    ) -> None:
        super().__init__(chain, address, owner)
        self.storage["balances"] = {}  # (user, token) -> amount
        self.storage["router"] = to_address(router)
        self.storage["receiver"] = to_address(receiver) if receiver else None
        self.storage["forwarder"] = to_address(forwarder) if forwarder else None

    def role_bindings(self) -> dict[Role, str | None]:
        return {
            Role.OWNER: self.storage["owner"],
            Role.FORWARDER: self.storage["forwarder"],
            Role.RECEIVER: self.storage["receiver"],
        }

    # ── Views ────────────────────────────────────────────────────────────

    @property
    def receiver(self) -> str | None:
        return self.storage["receiver"]

    @property
    def forwarder(self) -> str | None:
        return self.storage["forwarder"]

    @property
    def router(self) -> str:
        return self.storage["router"]

    def balance_of(self, user: str, token: str) -> int:
        return self.storage["balances"].get((to_address(user), to_address(token)), 0)

    def balances(self) -> dict[tuple[str, str], int]:
        return dict(self.storage["balances"])

    # ── Internals ────────────────────────────────────────────────────────

    def _token(self, token: str) -> ERC20Token:
        contract = self.chain.contract(token)
        if not isinstance(contract, ERC20Token):
            raise InvalidAddress(token)
        return contract

    def _transport(self) -> TransportRouter:
        return self.chain.contract(self.storage["router"])  # type: ignore[return-value]

    def _credit(self, user: str, token: str, amount: int) -> None:
        key = (user, token)
        self.storage["balances"][key] = self.storage["balances"].get(key, 0) + amount

    def _debit(self, user: str, token: str, amount: int) -> None:
        key = (user, token)
        available = self.storage["balances"].get(key, 0)
        if available < amount:
            raise InsufficientBalance(token, available, amount)
        self.storage["balances"][key] = available - amount

    def _emit_intent(self, kind: IntentKind, user: str, token: str, amount: int, target: int) -> None:
        intent = Intent(kind=kind, user=user, token=token, amount=amount, target_chain_selector=target)
        topics, data = encode_intent_log(intent)
        self.emit(
            kind.value,
            topics=topics,
            data=data,
            user=user,
            token=token,
            amount=amount,
            targetChainSelector=target,
        )
        logger.debug("[%s] %s user=%s token=%s amount=%d target=%d", self.chain.name, kind.value, user, token, amount, target)

    def _ensure_allowance(self, token: ERC20Token, spender: str, required: int) -> None:
        if token.allowance(self.address, spender) < required:
            token.approve(self.address, spender, required)

    # ── User intents ─────────────────────────────────────────────────────

    @atomic
    def request_deposit(self, sender: str, token: str, amount: int, target_chain_selector: int) -> None:
        if amount <= 0:
            raise InvalidAmount()
        user, token = to_address(sender), to_address(token)
        self._credit(user, token, amount)
        self._token(token).transfer_from(self.address, user, self.address, amount)
        self._emit_intent(IntentKind.DEPOSIT_REQUESTED, user, token, amount, target_chain_selector)

    @atomic
    def request_withdraw(self, sender: str, token: str, amount: int, target_chain_selector: int) -> None:
        if amount <= 0:
            raise InvalidAmount()
        user, token = to_address(sender), to_address(token)
        self._debit(user, token, amount)
        self._emit_intent(IntentKind.WITHDRAW_REQUESTED, user, token, amount, target_chain_selector)

    # ── Remote effects ───────────────────────────────────────────────────

    @requires_role(Role.RECEIVER, Role.OWNER)
    @atomic
    def credit_user(self, sender: str, user: str, token: str, amount: int) -> None:
        # zero is a DEPOSIT that carried no tokens
        if amount < 0:
            raise InvalidAmount("Amount must not be negative")
        self._credit(to_address(user), to_address(token), amount)

    @requires_role(Role.RECEIVER, Role.OWNER)
    @atomic
    def execute_withdraw(
        self, sender: str, user: str, token: str, amount: int, target_chain_selector: int
    ) -> None:
        if amount <= 0:
            raise InvalidAmount()
        user, token = to_address(user), to_address(token)
        self._debit(user, token, amount)
        self._emit_intent(IntentKind.WITHDRAW_EXECUTION_REQUESTED, user, token, amount, target_chain_selector)

    # ── Relay ────────────────────────────────────────────────────────────

    def _execute_send(self, destination_chain_selector: int, message: EVM2AnyMessage) -> bytes:
        router = self._transport()
        fee = router.get_fee(destination_chain_selector, message)
        fee_token = self._token(message.fee_token)
        available = fee_token.balance_of(self.address)
        if available < fee:
            raise InsufficientFeeAsset(available, fee)

        required: dict[str, int] = defaultdict(int)
        required[fee_token.address] += fee
        for ta in message.token_amounts:
            required[to_address(ta.token)] += ta.amount
        for token, amount in required.items():
            self._ensure_allowance(self._token(token), router.address, amount)

        message_id = router.ccip_send(self.address, destination_chain_selector, message)
        self.emit("CCIPMessageSent", messageId=message_id, destinationChainSelector=destination_chain_selector)
        logger.debug(
            "[%s] CCIPMessageSent id=0x%s dest=%d fee=%d",
            self.chain.name, message_id.hex(), destination_chain_selector, fee,
        )
        return message_id

    @requires_role(Role.OWNER, Role.FORWARDER)
    @atomic
    def execute_ccip_send(self, sender: str, destination_chain_selector: int, message: EVM2AnyMessage) -> bytes:
        return self._execute_send(destination_chain_selector, message)

    @requires_role(Role.FORWARDER)
    @atomic
    def on_report(self, sender: str, metadata: bytes, report: bytes) -> bytes:
        """Authenticated report entry point; ``metadata`` is accepted and ignored."""
        if len(report) < SELECTOR_SIZE:
            raise InvalidReport("report shorter than a function selector")
        if bytes(report[:SELECTOR_SIZE]) != EXECUTE_CCIP_SEND_SELECTOR:
            raise InvalidReport(f"unexpected selector 0x{bytes(report[:SELECTOR_SIZE]).hex()}")
        try:
            destination, message = decode_execute_ccip_send_args(report[SELECTOR_SIZE:])
        except CodecError as exc:
            raise InvalidReport(exc.message) from exc
        return self._execute_send(destination, message)

    # ── Admin ────────────────────────────────────────────────────────────

    @requires_role(Role.OWNER)
    @atomic
    def set_receiver(self, sender: str, receiver: str) -> None:
        self.storage["receiver"] = to_address(receiver)
        self.emit("ReceiverUpdated", receiver=self.storage["receiver"])

    @requires_role(Role.OWNER)
    @atomic
    def set_forwarder(self, sender: str, forwarder: str) -> None:
        self.storage["forwarder"] = to_address(forwarder)
        self.emit("ForwarderUpdated", forwarder=self.storage["forwarder"])

    @requires_role(Role.OWNER)
    @atomic
    def set_router(self, sender: str, router: str) -> None:
        self.storage["router"] = to_address(router)
        self.emit("RouterUpdated", router=self.storage["router"])

    @requires_role(Role.OWNER)
    @atomic
    def recover_tokens(self, sender: str, token: str, to: str, amount: int) -> None:
        """Sweep stray tokens out of custody."""
        if amount <= 0:
            raise InvalidAmount()
        self._token(token).transfer(self.address, to, amount)
        self.emit("TokensRecovered", token=to_address(token), to=to_address(to), amount=amount)

    def describe(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "chain": self.chain.name,
            "owner": self.owner,
            "receiver": self.receiver,
            "forwarder": self.forwarder,
            "router": self.router,
            "entries": len(self.storage["balances"]),
        }
