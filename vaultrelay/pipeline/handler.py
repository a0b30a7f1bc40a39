"""Vault log handler — turns one observed vault log into a terminal outcome.

Pipeline for each log::

    removed?       → skipped(log_removed)
    no topics?     → skipped(no_topics)
    decode         → error(decode_failed) | skipped(unsupported_event)
    destination    → skipped(unknown_destination)       (no external calls)
    build message
    preflight      → skipped(preflight_failed)          (reads only)
    send report    → sent(<intent>, txStatus, txHash)

Anything unexpected after decoding becomes ``error(handler_exception)``; one
bad log never stops the next one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from vaultrelay.codec.abi import (
    build_extra_args,
    decode_intent_log,
    encode_deposit_params,
    encode_execute_ccip_send,
    encode_operation_data,
    encode_receiver,
    encode_withdraw_params,
)
from vaultrelay.core.config import ChainConfig, PreflightConfig, WorkflowConfig
from vaultrelay.core.errors import CodecError
from vaultrelay.core.types import (
    EVM2AnyMessage,
    EVMLog,
    HandlerResult,
    HandlerStatus,
    Intent,
    IntentKind,
    Operation,
    Reason,
    TokenAmount,
    WriteResult,
)
from vaultrelay.pipeline.capabilities import EVMClient, estimate_fee, read_erc20_balance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainContext:
    """A configured chain with its resolved selector and client."""

    config: ChainConfig
    chain_selector: int
    client: EVMClient

    @property
    def name(self) -> str:
        return self.config.name


@dataclass(frozen=True)
class RelaySettings:
    preflight: PreflightConfig
    extra_args_gas_limit: int | None = None
    write_gas_limit: int | None = None

    @classmethod
    def from_config(cls, config: WorkflowConfig) -> "RelaySettings":
        return cls(
            preflight=config.preflight,
            extra_args_gas_limit=config.extra_args_gas_limit,
            write_gas_limit=config.write_gas_limit,
        )


class VaultLogHandler:
    """Per-source-chain handler for vault intent logs."""

    def __init__(
        self,
        source: ChainContext,
        chains_by_selector: Mapping[int, ChainContext],
        settings: RelaySettings,
    ) -> None:
        self.source = source
        self._chains = chains_by_selector
        self._settings = settings
        self._extra = {"chain": source.name}

    def __call__(self, log: EVMLog) -> HandlerResult:
        return self.handle(log)

    def _finish(self, result: HandlerResult, message: str, *args: object) -> HandlerResult:
        level = logging.ERROR if result.status is HandlerStatus.ERROR else logging.INFO
        logger.log(
            level,
            message,
            *args,
            extra={"chain": self.source.name, "outcome": result.status.value, "detail": result.detail},
        )
        return result

    # ── Entry ────────────────────────────────────────────────────────────

    def handle(self, log: EVMLog) -> HandlerResult:
        if log.removed:
            return self._finish(
                HandlerResult.skipped(Reason.LOG_REMOVED), "Ignoring removed log 0x%s", log.tx_hash.hex()
            )
        if not log.topics:
            return self._finish(HandlerResult.skipped(Reason.NO_TOPICS), "Log has no topics; skipping decode.")

        try:
            intent = decode_intent_log(log.topics, log.data)
        except CodecError as exc:
            return self._finish(HandlerResult.error(Reason.DECODE_FAILED), "Failed to decode log: %s", exc.message)
        if intent is None:
            return self._finish(HandlerResult.skipped(Reason.UNSUPPORTED_EVENT), "Unsupported event payload")

        try:
            return self._relay(intent)
        except Exception as exc:
            logger.debug("Handler traceback", exc_info=True, extra=self._extra)
            return self._finish(HandlerResult.error(Reason.HANDLER_EXCEPTION), "Handler error: %s", exc)

    def _relay(self, intent: Intent) -> HandlerResult:
        destination = self._chains.get(intent.target_chain_selector)
        if destination is None:
            return self._finish(
                HandlerResult.skipped(Reason.UNKNOWN_DESTINATION),
                "Unknown destination selector %d",
                intent.target_chain_selector,
            )

        message = self.build_message(intent, destination)
        if not self.preflight(destination.chain_selector, message):
            return self._finish(HandlerResult.skipped(Reason.PREFLIGHT_FAILED), "Preflight failed for %s", intent.kind.value)

        result = self.send(destination.chain_selector, message)
        tx_hash = "0x" + result.tx_hash.hex() if result.tx_hash else None
        return self._finish(
            HandlerResult(
                status=HandlerStatus.SENT,
                detail=intent.kind.detail,
                tx_status=int(result.tx_status),
                tx_hash=tx_hash,
            ),
            "%s sent. Tx status %d%s",
            intent.kind.value,
            int(result.tx_status),
            f" txHash {tx_hash}" if tx_hash else "",
        )

    # ── Steps ────────────────────────────────────────────────────────────

    def build_message(self, intent: Intent, destination: ChainContext) -> EVM2AnyMessage:
        """Outbound message for *intent* addressed to *destination*'s receiver."""
        if intent.kind is IntentKind.WITHDRAW_REQUESTED:
            data = encode_operation_data(
                Operation.WITHDRAW,
                encode_withdraw_params(intent.user, intent.token, intent.amount, intent.target_chain_selector),
            )
            token_amounts: tuple[TokenAmount, ...] = ()
        else:
            # DepositRequested and WithdrawExecutionRequested both move funds
            data = encode_operation_data(Operation.DEPOSIT, encode_deposit_params(intent.user))
            token_amounts = (TokenAmount(intent.token, intent.amount),)

        return EVM2AnyMessage(
            receiver=encode_receiver(destination.config.receiver_address),
            data=data,
            token_amounts=token_amounts,
            fee_token=self.source.config.link_token_address,
            extra_args=build_extra_args(self._settings.extra_args_gas_limit),
        )

    def preflight(self, destination_chain_selector: int, message: EVM2AnyMessage) -> bool:
        """Read-only solvency checks against the source vault."""
        cfg = self.source.config
        client = self.source.client

        if self._settings.preflight.check_link:
            required_fee = estimate_fee(client, cfg.router_address, destination_chain_selector, message)
            link_balance = read_erc20_balance(client, cfg.link_token_address, cfg.vault_address)
            if link_balance < required_fee:
                logger.warning("Insufficient LINK. Have %d need %d", link_balance, required_fee, extra=self._extra)
                return False

        if self._settings.preflight.check_token and message.token_amounts:
            first = message.token_amounts[0]
            token_balance = read_erc20_balance(client, first.token, cfg.vault_address)
            if token_balance < first.amount:
                logger.warning("Insufficient token balance. Have %d need %d", token_balance, first.amount, extra=self._extra)
                return False

        return True

    def send(self, destination_chain_selector: int, message: EVM2AnyMessage) -> WriteResult:
        report = encode_execute_ccip_send(destination_chain_selector, message)
        return self.source.client.write_report(
            self.source.config.vault_address,
            report,
            gas_limit=self._settings.write_gas_limit or None,
        )
