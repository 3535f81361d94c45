"""Protocol interfaces for the resolver's external collaborators."""

from njangi_circles.interfaces.ledger import LedgerReader
from njangi_circles.interfaces.price import PriceSource

__all__ = ["LedgerReader", "PriceSource"]
