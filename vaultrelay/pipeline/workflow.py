"""Relay workflow — one independent handler pipeline per configured chain.

At startup the workflow resolves every chain's selector, builds its client
and registers a ``VaultLogHandler`` against that chain's vault log trigger.
The registration table is fixed after construction:

    workflow = Workflow(config, client_factory)
    workflow.dispatch("sepolia", log)        # process one delivered log
    workflow.poll_once("sepolia")            # pull + process a batch
    await workflow.run(poll_interval=12.0)   # all chains concurrently

Within a chain, logs are handled one at a time in delivery order.  Chains
run concurrently and share only immutable chain contexts.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping

from vaultrelay.codec.abi import EVENT_TOPICS
from vaultrelay.core.chains import resolve_selector
from vaultrelay.core.config import ChainConfig, WorkflowConfig
from vaultrelay.core.errors import ConfigError
from vaultrelay.core.types import EVMLog, HandlerResult, LogTrigger
from vaultrelay.pipeline.capabilities import ClientFactory, SelectorResolver
from vaultrelay.pipeline.handler import ChainContext, RelaySettings, VaultLogHandler

logger = logging.getLogger(__name__)

SAFE_CONFIDENCE = "safe"

ResultSink = Callable[[str, EVMLog, HandlerResult], None]


def build_trigger(config: ChainConfig, confidence: str = SAFE_CONFIDENCE) -> LogTrigger:
    """Vault address + the three intent topics, released at *confidence*."""
    return LogTrigger(
        addresses=(config.vault_address,),
        topics=(tuple(EVENT_TOPICS.values()),),
        confidence=confidence,
    )


@dataclass(frozen=True)
class Registration:
    context: ChainContext
    trigger: LogTrigger
    handler: VaultLogHandler


class Workflow:
    """Registration table of chain → (trigger, handler)."""

    def __init__(
        self,
        config: WorkflowConfig,
        client_factory: ClientFactory,
        resolve: SelectorResolver = resolve_selector,
        on_result: ResultSink | None = None,
    ) -> None:
        contexts: list[ChainContext] = []
        for chain in config.chains:
            selector = resolve(chain.chain_selector_name)
            contexts.append(ChainContext(config=chain, chain_selector=selector, client=client_factory(chain, selector)))

        by_selector: dict[int, ChainContext] = {}
        for ctx in contexts:
            if ctx.chain_selector in by_selector:
                raise ConfigError(
                    f"Chains {by_selector[ctx.chain_selector].name} and {ctx.name} share selector {ctx.chain_selector}"
                )
            by_selector[ctx.chain_selector] = ctx
        self.chains_by_selector: Mapping[int, ChainContext] = MappingProxyType(by_selector)

        settings = RelaySettings.from_config(config)
        self._registrations: dict[str, Registration] = {
            ctx.name: Registration(
                context=ctx,
                trigger=build_trigger(ctx.config),
                handler=VaultLogHandler(ctx, self.chains_by_selector, settings),
            )
            for ctx in contexts
        }
        self._on_result = on_result
        logger.info("Registered %d chain pipeline(s): %s", len(self._registrations), ", ".join(self._registrations))

    @property
    def registrations(self) -> Mapping[str, Registration]:
        return MappingProxyType(self._registrations)

    def registration(self, chain: str) -> Registration:
        try:
            return self._registrations[chain]
        except KeyError:
            raise ConfigError(f"No pipeline registered for chain {chain}") from None

    # ── Sync entry points ────────────────────────────────────────────────

    def dispatch(self, chain: str, log: EVMLog) -> HandlerResult:
        """Run one delivered log through *chain*'s pipeline."""
        result = self.registration(chain).handler(log)
        if self._on_result is not None:
            try:
                self._on_result(chain, log, result)
            except Exception as exc:
                logger.error("Result sink failed: %s", exc, exc_info=True, extra={"chain": chain})
        return result

    def poll_once(self, chain: str) -> list[HandlerResult]:
        """Pull the next batch of logs for *chain* and process them in order."""
        reg = self.registration(chain)
        return [self.dispatch(chain, log) for log in reg.context.client.poll_logs(reg.trigger)]

    # ── Async runner ─────────────────────────────────────────────────────

    async def run(
        self,
        poll_interval: float = 12.0,
        stop: asyncio.Event | None = None,
        max_polls: int | None = None,
    ) -> None:
        """Poll every chain concurrently until *stop* is set (or *max_polls* reached)."""
        stop = stop or asyncio.Event()
        await asyncio.gather(
            *(self._run_chain(name, poll_interval, stop, max_polls) for name in self._registrations)
        )

    async def _run_chain(
        self,
        chain: str,
        poll_interval: float,
        stop: asyncio.Event,
        max_polls: int | None,
    ) -> None:
        reg = self._registrations[chain]
        polls = 0
        while not stop.is_set():
            try:
                logs = await asyncio.to_thread(reg.context.client.poll_logs, reg.trigger)
            except Exception as exc:
                logger.warning("Log polling failed: %s", exc, extra={"chain": chain})
                logs = []
            for log in logs:
                await asyncio.to_thread(self.dispatch, chain, log)

            polls += 1
            if max_polls is not None and polls >= max_polls:
                break
            try:
                await asyncio.wait_for(stop.wait(), timeout=poll_interval)
            except asyncio.TimeoutError:
                pass
