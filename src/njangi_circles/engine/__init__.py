"""Resolution engine - config merging, membership, deposits, schedule and money."""

from njangi_circles.engine.config_resolver import ConfigResolver, ConfigSources, reprice
from njangi_circles.engine.deposits import DepositStatusResolver, required_deposit
from njangi_circles.engine.membership import MembershipAggregator, collect_events
from njangi_circles.engine.projector import CircleInputs, CircleProjector

__all__ = [
    "CircleInputs",
    "CircleProjector",
    "ConfigResolver",
    "ConfigSources",
    "DepositStatusResolver",
    "MembershipAggregator",
    "collect_events",
    "reprice",
    "required_deposit",
]
