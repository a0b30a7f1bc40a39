"""Local multi-chain network: deploys a full vault stack per chain and wires lanes.

Usage:
    network = LocalNetwork()
    sepolia = network.add_chain("ethereum-testnet-sepolia", name="sepolia")
    fuji = network.add_chain("avalanche-testnet-fuji", name="fuji")
    network.add_token("BnM")
    network.connect("sepolia", "fuji")

    network.fund("sepolia", "BnM", user, 10**18)
    ...
    results = network.relay()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from vaultrelay.chain.receiver import Receiver
from vaultrelay.chain.router import DeliveryResult, SimulatedRouter
from vaultrelay.chain.state import LocalChain, derive_address
from vaultrelay.chain.token import ERC20Token
from vaultrelay.chain.vault import Vault
from vaultrelay.core.chains import resolve_selector
from vaultrelay.core.config import ChainConfig, PreflightConfig, WorkflowConfig
from vaultrelay.core.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_FEE_FUNDING = 10 * 10**18


@dataclass
class ChainDeployment:
    """Everything deployed on one local chain."""

    name: str
    selector_name: str
    chain: LocalChain
    deployer: str
    forwarder: str
    link: ERC20Token
    router: SimulatedRouter
    vault: Vault
    receiver: Receiver
    tokens: dict[str, ERC20Token] = field(default_factory=dict)

    @property
    def selector(self) -> int:
        return self.chain.selector

    def to_chain_config(self) -> ChainConfig:
        return ChainConfig(
            name=self.name,
            chain_selector_name=self.selector_name,
            vault_address=self.vault.address,
            receiver_address=self.receiver.address,
            router_address=self.router.address,
            link_token_address=self.link.address,
        )


class LocalNetwork:
    """A set of local chains connected by simulated transport lanes."""

    def __init__(self) -> None:
        self.chains: dict[str, ChainDeployment] = {}
        self._links: set[frozenset[str]] = set()

    def __getitem__(self, name: str) -> ChainDeployment:
        return self.chains[name]

    def add_chain(
        self,
        selector_name: str,
        name: str | None = None,
        fee_funding: int = DEFAULT_FEE_FUNDING,
    ) -> ChainDeployment:
        name = name or selector_name
        if name in self.chains:
            raise ConfigError(f"Chain {name} already deployed")
        chain = LocalChain(name, resolve_selector(selector_name))
        deployer = derive_address(name, "deployer")
        forwarder = derive_address(name, "forwarder")

        link = ERC20Token(chain, derive_address(name, "LINK"), "LINK", deployer)
        router = SimulatedRouter(chain, derive_address(name, "router"), link.address)
        vault = Vault(chain, derive_address(name, "vault"), deployer, router.address, forwarder=forwarder)
        receiver = Receiver(chain, derive_address(name, "receiver"), deployer, router.address, vault.address)
        vault.set_receiver(deployer, receiver.address)
        if fee_funding:
            link.mint(deployer, vault.address, fee_funding)

        deployment = ChainDeployment(
            name=name,
            selector_name=selector_name,
            chain=chain,
            deployer=deployer,
            forwarder=forwarder,
            link=link,
            router=router,
            vault=vault,
            receiver=receiver,
        )
        for symbol in self._symbols():
            self._deploy_token(deployment, symbol)
        self.chains[name] = deployment
        logger.info("Deployed vault stack on %s (selector %d)", name, chain.selector)
        return deployment

    # ── Tokens ───────────────────────────────────────────────────────────

    def _symbols(self) -> set[str]:
        return {s for d in self.chains.values() for s in d.tokens}

    def _deploy_token(self, deployment: ChainDeployment, symbol: str) -> ERC20Token:
        token = ERC20Token(
            deployment.chain, derive_address(deployment.name, "token", symbol), symbol, deployment.deployer
        )
        token.add_minter(deployment.deployer, deployment.router.address)
        deployment.tokens[symbol] = token
        return token

    def add_token(self, symbol: str) -> dict[str, ERC20Token]:
        """Deploy *symbol* on every chain and map it across existing lanes."""
        for deployment in self.chains.values():
            if symbol not in deployment.tokens:
                self._deploy_token(deployment, symbol)
        for link in self._links:
            self._map_tokens(*sorted(link))
        return {name: d.tokens[symbol] for name, d in self.chains.items()}

    def _map_tokens(self, a: str, b: str) -> None:
        src, dst = self.chains[a], self.chains[b]
        for symbol, token in src.tokens.items():
            if symbol in dst.tokens:
                src.router.map_token(dst.selector, token.address, dst.tokens[symbol].address)
                dst.router.map_token(src.selector, dst.tokens[symbol].address, token.address)

    # ── Lanes ────────────────────────────────────────────────────────────

    def connect(self, a: str, b: str) -> None:
        """Open a lane between two chains and allowlist each side."""
        src, dst = self.chains[a], self.chains[b]
        src.router.connect(dst.router)
        dst.router.connect(src.router)
        for here, there in ((src, dst), (dst, src)):
            here.receiver.allowlist_source_chain(here.deployer, there.selector, True)
            here.receiver.allowlist_sender(here.deployer, there.vault.address, True)
        self._links.add(frozenset((a, b)))
        self._map_tokens(a, b)

    def fund(self, chain: str, symbol: str, account: str, amount: int) -> None:
        deployment = self.chains[chain]
        token = deployment.link if symbol == "LINK" else deployment.tokens[symbol]
        token.mint(deployment.deployer, account, amount)

    def relay(self, max_rounds: int = 8) -> list[DeliveryResult]:
        """Deliver queued messages until every outbox is empty."""
        results: list[DeliveryResult] = []
        for _ in range(max_rounds):
            pending = [d for d in self.chains.values() if d.router.pending]
            if not pending:
                break
            for deployment in pending:
                results.extend(deployment.router.relay_pending())
        return results

    # ── Workflow config ──────────────────────────────────────────────────

    def workflow_config(
        self,
        check_link: bool = True,
        check_token: bool = True,
        extra_args_gas_limit: int | None = 200_000,
        write_gas_limit: int | None = None,
    ) -> WorkflowConfig:
        return WorkflowConfig(
            chains=[d.to_chain_config() for d in self.chains.values()],
            preflight=PreflightConfig(check_link=check_link, check_token=check_token),
            extra_args_gas_limit=extra_args_gas_limit,
            write_gas_limit=write_gas_limit,
        )
