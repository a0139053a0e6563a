"""Oracle configuration.

Values come from CLI flags (``--oracle.min_confirmations``) and are
overridden by environment variables (``BTC_ORACLE__ORACLE__MIN_CONFIRMATIONS``),
which take precedence. The result is validated into an OracleConfig.
"""

from __future__ import annotations

import argparse
import os
from typing import Any

from pydantic import BaseModel, Field, field_validator

from btc_oracle.address import NETWORKS

ENV_PREFIX = "BTC_ORACLE__"


class OracleConfig(BaseModel):
    """Validated runtime configuration."""

    # oracle
    network: str = "mainnet"
    device_name: str = "BTC Oracle"
    pairing_secret: str = "0000"
    min_confirmations: int = Field(default=2, ge=1)
    poll_interval: float = Field(default=30.0, gt=0)
    retry_delay: float = Field(default=300.0, ge=0)
    retry_jitter: float = Field(default=3.0, ge=0)
    block_read_attempts: int = Field(default=3, ge=1)
    block_read_delay: float = Field(default=3.0, ge=0)
    history_limit: int = Field(default=100, ge=1)
    mock: bool = False

    # bitcoind / esplora
    rpc_url: str = "http://127.0.0.1:8332"
    rpc_user: str = ""
    rpc_password: str = ""
    esplora_url: str = "https://blockstream.info/api"

    # ledger gateway
    ledger_url: str = ""

    # chat + operator channel
    http_host: str = "127.0.0.1"
    http_port: int = 8300
    http_token: str = ""
    outbound_url: str = ""
    admin_webhook_url: str = ""

    @field_validator("network")
    @classmethod
    def _known_network(cls, v: str) -> str:
        if v not in NETWORKS:
            raise ValueError(f"network must be one of {sorted(NETWORKS)}")
        return v


# (section, field, type, help)
_OPTIONS: list[tuple[str, str, type, str]] = [
    ("oracle", "network", str, "Bitcoin network: mainnet, testnet or regtest."),
    ("oracle", "device_name", str, "Name shown to chat peers."),
    ("oracle", "pairing_secret", str, "Pairing secret answered with the help text."),
    ("oracle", "min_confirmations", int, "Confirmations before a block is summarized."),
    ("oracle", "poll_interval", float, "Seconds between new-block checks."),
    ("oracle", "retry_delay", float, "Seconds before retrying a failed post."),
    ("oracle", "retry_jitter", float, "Max random seconds added to retry_delay."),
    ("oracle", "block_read_attempts", int, "Attempts to read a block before giving up."),
    ("oracle", "block_read_delay", float, "Seconds between block read attempts."),
    ("oracle", "history_limit", int, "Published heights read back when reconciling."),
    ("bitcoind", "rpc_url", str, "bitcoind JSON-RPC URL."),
    ("bitcoind", "rpc_user", str, "bitcoind RPC user."),
    ("bitcoind", "rpc_password", str, "bitcoind RPC password."),
    ("esplora", "esplora_url", str, "Esplora API base URL for address history."),
    ("ledger", "ledger_url", str, "Ledger gateway base URL."),
    ("http", "http_host", str, "Bind address of the inbound HTTP server."),
    ("http", "http_port", int, "Port of the inbound HTTP server."),
    ("http", "http_token", str, "Bearer token required on inbound requests."),
    ("chat", "outbound_url", str, "Webhook receiving outbound chat replies."),
    ("chat", "admin_webhook_url", str, "Webhook receiving operator alerts."),
]


def _env_name(section: str, name: str) -> str:
    return f"{ENV_PREFIX}{section.upper()}__{name.upper()}"


def add_args(parser: argparse.ArgumentParser) -> None:
    """Adds oracle arguments to the parser."""
    defaults = OracleConfig()
    for section, name, typ, help_text in _OPTIONS:
        parser.add_argument(
            f"--{section}.{name}",
            type=typ,
            default=getattr(defaults, name),
            help=help_text,
        )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use an in-memory ledger instead of the gateway.",
        default=False,
    )


def from_args(args: argparse.Namespace, environ: dict[str, str] | None = None) -> OracleConfig:
    """Build the config from parsed args, letting env vars win."""
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    for section, name, _typ, _help in _OPTIONS:
        values[name] = env.get(_env_name(section, name), getattr(args, f"{section}.{name}"))
    values["mock"] = env.get(f"{ENV_PREFIX}MOCK", "").lower() == "true" or bool(getattr(args, "mock", False))
    return OracleConfig(**values)


__all__ = ["ENV_PREFIX", "OracleConfig", "add_args", "from_args"]
