"""Sui integration components - JSON-RPC ledger reader and price source."""

from njangi_circles.sui.price import CoinGeckoPriceSource
from njangi_circles.sui.rpc import SuiRpcReader

__all__ = ["CoinGeckoPriceSource", "SuiRpcReader"]
