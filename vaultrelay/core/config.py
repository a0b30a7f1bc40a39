"""Core configuration for the VaultRelay orchestrator.

Two layers:

* ``Settings`` — process settings from ``VAULTRELAY_*`` environment
  variables / ``.env`` (log level, RPC endpoints, signer key, polling).
* ``WorkflowConfig`` — the relay's chain table, preflight toggles and gas
  overrides, loaded from a JSON file.  Keys may be camelCase
  (``chainSelectorName``) or snake_case.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from vaultrelay.core.errors import ConfigError, InvalidAddress
from vaultrelay.core.types import to_address


class Settings(BaseSettings):
    """Process settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="VAULTRELAY_",
        case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "VaultRelay"
    app_env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    config_path: str = "config.json"

    # ── Chains / RPC ─────────────────────────────────────────────────────
    is_testnet: bool = True
    rpc_urls: dict[str, str] = Field(default_factory=dict)  # chain name -> URL
    private_key: str = ""  # forwarder signer, REQUIRED for `run`
    poll_interval_seconds: float = 12.0
    receipt_timeout_seconds: float = 120.0


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()


# ── Workflow configuration ───────────────────────────────────────────────────


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def _parse_gas_limit(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("gas limit must be an integer")
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise ValueError(f"gas limit must be a non-negative integer, got {value!r}")
        return int(value)
    if isinstance(value, int) and value >= 0:
        return value
    raise ValueError(f"gas limit must be a non-negative integer, got {value!r}")


class ChainConfig(_CamelModel):
    """Per-chain deployment addresses."""

    name: str
    chain_selector_name: str
    vault_address: str
    receiver_address: str
    router_address: str
    link_token_address: str

    @field_validator(
        "vault_address", "receiver_address", "router_address", "link_token_address"
    )
    @classmethod
    def _checksum(cls, v: str) -> str:
        try:
            return to_address(v)
        except InvalidAddress as exc:
            raise ValueError(exc.message) from None


class PreflightConfig(_CamelModel):
    """Read-only solvency checks run before every send."""

    check_link: bool = True
    check_token: bool = True


class WorkflowConfig(_CamelModel):
    """Relay workflow configuration."""

    chains: list[ChainConfig]
    preflight: PreflightConfig = Field(default_factory=PreflightConfig)
    extra_args_gas_limit: int | None = None  # destination execution gas
    write_gas_limit: int | None = None  # gas override for the report write

    @field_validator("extra_args_gas_limit", "write_gas_limit", mode="before")
    @classmethod
    def _gas(cls, v: Any) -> int | None:
        return _parse_gas_limit(v)

    @field_validator("chains")
    @classmethod
    def _unique_names(cls, chains: list[ChainConfig]) -> list[ChainConfig]:
        names = [c.name for c in chains]
        if len(set(names)) != len(names):
            raise ValueError("chain names must be unique")
        return chains

    def chain(self, name: str) -> ChainConfig | None:
        for c in self.chains:
            if c.name == name:
                return c
        return None


def load_workflow_config(path: str | Path) -> WorkflowConfig:
    """Load and validate a workflow configuration JSON file."""
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {p}") from None
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file {p} is not valid JSON: {exc}") from None
    try:
        return WorkflowConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid workflow config {p}: {exc.error_count()} error(s)",
            {"errors": exc.errors(include_url=False)},
        ) from None
