"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from njangi_circles.models.config import NETWORK_RPC_URLS, ResolverConfig


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "NJANGI_",
) -> ResolverConfig:
    """Load resolver configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (NJANGI_RPC_URL, etc.)
        2. TOML config file
        3. Defaults from ResolverConfig

    Setting only a network picks that network's public fullnode URL.
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = ResolverConfig()
    rpc_url_set = False

    # ── Sui section ────────────────────────────────────────
    sui = raw.get("sui", {})
    if v := sui.get("network"):
        cfg.network = str(v)
    if v := sui.get("rpc_url"):
        cfg.rpc_url = str(v)
        rpc_url_set = True
    if v := sui.get("package_id"):
        cfg.package_id = str(v)
    if v := sui.get("module"):
        cfg.module = str(v)
    if v := sui.get("request_timeout"):
        cfg.request_timeout = float(v)

    # ── Events section ─────────────────────────────────────
    events = raw.get("events", {})
    if v := events.get("page_size"):
        cfg.event_page_size = int(v)
    if v := events.get("max_pages"):
        cfg.max_event_pages = int(v)

    # ── Price section ──────────────────────────────────────
    price = raw.get("price", {})
    if v := price.get("api_url"):
        cfg.price_api_url = str(v)
    if v := price.get("cache_ttl"):
        cfg.price_cache_ttl = int(v)

    # ── Logging section ────────────────────────────────────
    logging_raw = raw.get("logging", {})
    if v := logging_raw.get("level"):
        cfg.log_level = str(v)

    # ── Environment variable overrides (highest priority) ──
    if net := os.environ.get(f"{env_prefix}NETWORK"):
        cfg.network = net
    if rpc := os.environ.get(f"{env_prefix}RPC_URL"):
        cfg.rpc_url = rpc
        rpc_url_set = True
    if pkg := os.environ.get(f"{env_prefix}PACKAGE_ID"):
        cfg.package_id = pkg
    if price_url := os.environ.get(f"{env_prefix}PRICE_API_URL"):
        cfg.price_api_url = price_url

    if not rpc_url_set and cfg.network in NETWORK_RPC_URLS:
        cfg.rpc_url = NETWORK_RPC_URLS[cfg.network]

    return cfg
