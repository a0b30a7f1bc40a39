"""VaultRelay CLI — cross-chain vault relay orchestrator.

Usage:
    vaultrelay config [--path FILE]     Show settings and the workflow config
    vaultrelay chains [--testnet|--mainnet]
                                        List supported chain selector names
    vaultrelay run [--path FILE]        Relay vault intents over JSON-RPC
    vaultrelay simulate                 Deposit round trip on a local network

Examples:
    VAULTRELAY_PRIVATE_KEY=0x... vaultrelay run --path config.json
    vaultrelay simulate --amount 1000000000000000000 --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from vaultrelay import __version__
from vaultrelay.core.errors import ConfigError, VaultRelayError


# ── Coloured output helpers ──────────────────────────────────────────────────

_RESET = "\033[0m"
_BOLD = "\033[1m"
_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"

_STATUS_COLOR = {
    "sent": _GREEN,
    "skipped": _YELLOW,
    "error": _RED,
}


def _c(text: str, code: str) -> str:
    return f"{code}{text}{_RESET}"


# ── CLI argument parser ─────────────────────────────────────────────────────


def _gas_limit(value: str) -> int:
    try:
        gas = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid gas limit: {value!r}") from None
    if gas < 0:
        raise argparse.ArgumentTypeError(f"gas limit must be non-negative, got {gas}")
    return gas


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vaultrelay",
        description="VaultRelay — cross-chain vault relay orchestrator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--log-level", help="Override VAULTRELAY_LOG_LEVEL")

    sub = parser.add_subparsers(dest="command")

    # ── config ───────────────────────────────────────────────────────────────
    config_p = sub.add_parser("config", help="Show settings and the workflow configuration")
    config_p.add_argument("--path", "-p", help="Workflow config JSON (default: VAULTRELAY_CONFIG_PATH)")

    # ── chains ───────────────────────────────────────────────────────────────
    chains_p = sub.add_parser("chains", help="List supported chain selector names")
    net = chains_p.add_mutually_exclusive_group()
    net.add_argument("--testnet", action="store_true", help="Only testnets")
    net.add_argument("--mainnet", action="store_true", help="Only mainnets")

    # ── run ──────────────────────────────────────────────────────────────────
    run_p = sub.add_parser("run", help="Relay vault intents against JSON-RPC endpoints")
    run_p.add_argument("--path", "-p", help="Workflow config JSON (default: VAULTRELAY_CONFIG_PATH)")
    run_p.add_argument("--interval", type=float, help="Seconds between log polls per chain")
    run_p.add_argument("--max-polls", type=int, help="Stop after this many polls per chain")

    # ── simulate ─────────────────────────────────────────────────────────────
    sim_p = sub.add_parser("simulate", help="Deposit round trip on a local two-chain network")
    sim_p.add_argument("--amount", type=int, default=10**18, help="Deposit amount in token units")
    sim_p.add_argument("--gas-limit", type=_gas_limit, default=200_000, help="Destination execution gas limit")
    sim_p.add_argument("--json", action="store_true", help="Print outcomes as JSON")

    return parser


# ── Config command ───────────────────────────────────────────────────────────


def _run_config(args: argparse.Namespace) -> int:
    """Print current settings (redacted) and the workflow config if it loads."""
    from vaultrelay.core.config import get_settings, load_workflow_config

    s = get_settings()
    print(f"\n{_BOLD}VaultRelay Configuration{_RESET}\n")
    for field_name in sorted(type(s).model_fields):
        val = getattr(s, field_name, "")
        # Redact secrets
        if "key" in field_name:
            val = "****" if val else "(not set)"
        print(f"  {_DIM}{field_name}:{_RESET}  {val}")

    path = args.path or s.config_path
    try:
        config = load_workflow_config(path)
    except ConfigError as exc:
        print(_c(f"\n  Workflow config unavailable: {exc.message}", _YELLOW))
        return 1
    print(f"\n{_BOLD}Workflow{_RESET} ({path})\n")
    print(json.dumps(config.model_dump(by_alias=True), indent=2))
    return 0


# ── Chains command ───────────────────────────────────────────────────────────


def _run_chains(args: argparse.Namespace) -> int:
    from vaultrelay.core.chains import get_all_selectors

    is_testnet = True if args.testnet else False if args.mainnet else None
    for entry in get_all_selectors(is_testnet):
        tag = _c("testnet", _DIM) if entry.is_testnet else _c("mainnet", _CYAN)
        print(f"  {entry.selector_name:<40} {entry.selector:>22}  {tag}  {entry.display_name}")
    return 0


# ── Run command ──────────────────────────────────────────────────────────────


def _run_workflow(args: argparse.Namespace) -> int:
    from vaultrelay.core.chains import resolve_selector
    from vaultrelay.core.config import ChainConfig, get_settings, load_workflow_config
    from vaultrelay.pipeline.web3_client import Web3EVMClient
    from vaultrelay.pipeline.workflow import Workflow

    s = get_settings()

    def client_factory(chain: ChainConfig, selector: int) -> Web3EVMClient:
        url = s.rpc_urls.get(chain.name)
        if not url:
            raise ConfigError(f"No RPC URL configured for chain {chain.name} (VAULTRELAY_RPC_URLS)")
        return Web3EVMClient.from_settings(url, s.private_key, s.receipt_timeout_seconds)

    try:
        config = load_workflow_config(args.path or s.config_path)
        workflow = Workflow(
            config,
            client_factory,
            resolve=lambda name: resolve_selector(name, s.is_testnet),
        )
    except VaultRelayError as exc:
        print(_c(f"Error: {exc.message}", _RED), file=sys.stderr)
        return 1

    interval = args.interval if args.interval is not None else s.poll_interval_seconds
    try:
        asyncio.run(workflow.run(poll_interval=interval, max_polls=args.max_polls))
    except KeyboardInterrupt:
        print(_c("\nStopped.", _DIM), file=sys.stderr)
        return 130
    return 0


# ── Simulate command ─────────────────────────────────────────────────────────


def simulate(amount: int = 10**18, gas_limit: int = 200_000) -> dict[str, Any]:
    """Deposit *amount* on sepolia for fuji and relay it end to end.

    Returns a summary with the handler outcomes, the transport deliveries and
    the resulting vault balances on both chains.
    """
    from vaultrelay.chain.network import LocalNetwork
    from vaultrelay.chain.state import derive_address
    from vaultrelay.pipeline.local_client import local_client_factory
    from vaultrelay.pipeline.workflow import Workflow

    network = LocalNetwork()
    sepolia = network.add_chain("ethereum-testnet-sepolia", name="sepolia")
    fuji = network.add_chain("avalanche-testnet-fuji", name="fuji")
    network.add_token("BnM")
    network.connect("sepolia", "fuji")

    user = derive_address("simulate", "user")
    src_token, dst_token = sepolia.tokens["BnM"], fuji.tokens["BnM"]
    network.fund("sepolia", "BnM", user, amount)
    src_token.approve(user, sepolia.vault.address, amount)
    sepolia.vault.request_deposit(user, src_token.address, amount, fuji.selector)

    workflow = Workflow(network.workflow_config(extra_args_gas_limit=gas_limit), local_client_factory(network))
    outcomes = [{"chain": "sepolia", **r.to_dict()} for r in workflow.poll_once("sepolia")]
    deliveries = network.relay()

    return {
        "user": user,
        "outcomes": outcomes,
        "deliveries": [
            {"messageId": "0x" + d.message_id.hex(), "status": d.status.value, "error": d.error}
            for d in deliveries
        ],
        "balances": {
            "sepolia": sepolia.vault.balance_of(user, src_token.address),
            "fuji": fuji.vault.balance_of(user, dst_token.address),
        },
    }


def _run_simulate(args: argparse.Namespace) -> int:
    try:
        summary = simulate(args.amount, args.gas_limit)
    except VaultRelayError as exc:
        print(_c(f"Simulation failed: {exc.message}", _RED), file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        print(f"\n{_BOLD}Deposit round trip{_RESET} — user {summary['user']}\n")
        for outcome in summary["outcomes"]:
            color = _STATUS_COLOR.get(outcome["status"], _DIM)
            tx = outcome.get("txHash") or "-"
            print(f"  [{outcome['chain']}] {_c(outcome['status'], color)} {outcome['detail']}  tx {tx}")
        for delivery in summary["deliveries"]:
            color = _GREEN if delivery["status"] == "success" else _RED
            print(f"  delivery {delivery['messageId'][:18]}… {_c(delivery['status'], color)}")
        for chain, balance in summary["balances"].items():
            print(f"  {_DIM}{chain} vault balance:{_RESET} {balance}")
        print()

    delivered = all(d["status"] == "success" for d in summary["deliveries"])
    sent = all(o["status"] == "sent" for o in summary["outcomes"])
    return 0 if delivered and sent and summary["outcomes"] else 1


# ── Entrypoint ───────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"vaultrelay {__version__}")
        return 0

    if not args.command:
        parser.print_help()
        return 0

    from vaultrelay.core.config import get_settings
    from vaultrelay.core.logging import setup_logging

    s = get_settings()
    setup_logging(s.app_env, args.log_level or s.log_level)

    if args.command == "config":
        return _run_config(args)

    if args.command == "chains":
        return _run_chains(args)

    if args.command == "run":
        return _run_workflow(args)

    if args.command == "simulate":
        return _run_simulate(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
