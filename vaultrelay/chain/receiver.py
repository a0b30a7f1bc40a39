"""Inbound message validator / dispatcher.

Per inbound message::

    Validate  — source chain and origin sender must be allowlisted
    Decode    — split payload into (operation tag, params)
    Transfer  — move the first bridged token amount into vault custody
    Dispatch  — DEPOSIT → vault.credit_user, WITHDRAW → vault.execute_withdraw

Only the first entry of ``dest_token_amounts`` is honoured; any further
entries stay with the receiver.
"""

from __future__ import annotations

import logging

from vaultrelay.chain.ownable import Ownable2Step
from vaultrelay.chain.state import LocalChain, atomic
from vaultrelay.chain.token import ERC20Token
from vaultrelay.chain.vault import Vault
from vaultrelay.codec.abi import (
    decode_deposit_params,
    decode_operation_data,
    decode_receiver,
    decode_withdraw_params,
)
from vaultrelay.core.auth import Role, requires_role
from vaultrelay.core.errors import (
    InvalidAddress,
    InvalidOperation,
    SenderNotAllowed,
    SourceChainNotAllowed,
)
from vaultrelay.core.types import ZERO_ADDRESS, Any2EVMMessage, Operation, to_address

logger = logging.getLogger(__name__)


class Receiver(Ownable2Step):
    """Applies inbound cross-chain effects to a vault."""

    def __init__(
        self,
        chain: LocalChain,
        address: str,
        owner: str,
        router: str,
        vault: str | None = None,
    ) -> None:
        super().__init__(chain, address, owner)
        self.storage["router"] = to_address(router)
        self.storage["vault"] = to_address(vault) if vault else None
        self.storage["allowed_source_chains"] = {}  # selector -> bool
        self.storage["allowed_senders"] = {}  # address -> bool

    def role_bindings(self) -> dict[Role, str | None]:
        return {Role.OWNER: self.storage["owner"], Role.ROUTER: self.storage["router"]}

    # ── Views ────────────────────────────────────────────────────────────

    @property
    def vault(self) -> str | None:
        return self.storage["vault"]

    def is_source_chain_allowed(self, chain_selector: int) -> bool:
        return self.storage["allowed_source_chains"].get(chain_selector, False)

    def is_sender_allowed(self, sender: str) -> bool:
        return self.storage["allowed_senders"].get(to_address(sender), False)

    # ── Inbound ──────────────────────────────────────────────────────────

    def _target(self) -> Vault:
        if self.storage["vault"] is None:
            raise InvalidAddress(ZERO_ADDRESS)
        contract = self.chain.contract(self.storage["vault"])
        if not isinstance(contract, Vault):
            raise InvalidAddress(self.storage["vault"])
        return contract

    @requires_role(Role.ROUTER)
    @atomic
    def ccip_receive(self, sender: str, message: Any2EVMMessage) -> None:
        # Validate
        if not self.is_source_chain_allowed(message.source_chain_selector):
            raise SourceChainNotAllowed(message.source_chain_selector)
        origin = decode_receiver(message.sender)
        if not self.is_sender_allowed(origin):
            raise SenderNotAllowed(origin)

        # Decode
        tag, params = decode_operation_data(message.data)
        operation = Operation.parse(tag)
        vault = self._target()

        # Transfer
        token, amount = ZERO_ADDRESS, 0
        if message.dest_token_amounts:
            first = message.dest_token_amounts[0]
            token, amount = to_address(first.token), first.amount
            bridged = self.chain.contract(token)
            if not isinstance(bridged, ERC20Token):
                raise InvalidAddress(token)
            bridged.transfer(self.address, vault.address, amount)

        # Dispatch
        if operation is Operation.DEPOSIT:
            user = decode_deposit_params(params)
            vault.credit_user(self.address, user, token, amount)
        elif operation is Operation.WITHDRAW:
            user, w_token, w_amount, destination = decode_withdraw_params(params)
            vault.execute_withdraw(self.address, user, w_token, w_amount, destination)
        else:
            raise InvalidOperation(tag)

        self.emit(
            "MessageReceived",
            messageId=message.message_id,
            sourceChainSelector=message.source_chain_selector,
            sender=origin,
            operation=tag,
            token=token,
            amount=amount,
        )
        logger.debug(
            "[%s] MessageReceived id=0x%s op=%s from %s@%d",
            self.chain.name, message.message_id.hex(), tag, origin, message.source_chain_selector,
        )

    # ── Admin ────────────────────────────────────────────────────────────

    @requires_role(Role.OWNER)
    @atomic
    def set_vault(self, sender: str, vault: str) -> None:
        self.storage["vault"] = to_address(vault)
        self.emit("VaultUpdated", vault=self.storage["vault"])

    @requires_role(Role.OWNER)
    @atomic
    def set_router(self, sender: str, router: str) -> None:
        self.storage["router"] = to_address(router)
        self.emit("RouterUpdated", router=self.storage["router"])

    @requires_role(Role.OWNER)
    @atomic
    def allowlist_source_chain(self, sender: str, chain_selector: int, allowed: bool = True) -> None:
        self.storage["allowed_source_chains"][chain_selector] = allowed
        self.emit("SourceChainAllowlisted", chainSelector=chain_selector, allowed=allowed)

    @requires_role(Role.OWNER)
    @atomic
    def allowlist_sender(self, sender: str, account: str, allowed: bool = True) -> None:
        self.storage["allowed_senders"][to_address(account)] = allowed
        self.emit("SenderAllowlisted", sender=to_address(account), allowed=allowed)
