"""Configuration models for the resolver and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass

NETWORK_RPC_URLS = {
    "testnet": "https://fullnode.testnet.sui.io:443",
    "mainnet": "https://fullnode.mainnet.sui.io:443",
    "devnet": "https://fullnode.devnet.sui.io:443",
}


@dataclass
class ResolverConfig:
    """Complete resolver configuration."""

    # Sui
    network: str = "testnet"
    rpc_url: str = "https://fullnode.testnet.sui.io:443"
    package_id: str = "0x7a3ff93488ea8899e51aa26d97478c1850aab288bab23989b46e374999ca6bce"
    module: str = "njangi_circle"  # Move module name
    request_timeout: float = 15.0  # seconds per RPC call

    # Events
    event_page_size: int = 50  # fullnode maximum
    max_event_pages: int = 20  # beyond this, membership counts are lower bounds

    # Price
    price_api_url: str = (
        "https://api.coingecko.com/api/v3/simple/price?ids=sui&vs_currencies=usd"
    )
    price_cache_ttl: int = 3600  # seconds

    # Logging
    log_level: str = "info"

    def event_type(self, name: str) -> str:
        """Fully qualified Move event type for this package, e.g. '0x..::njangi_circle::MemberJoined'."""
        return f"{self.package_id}::{self.module}::{name}"
