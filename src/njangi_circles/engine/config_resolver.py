"""Config resolver - merges four ledger source layers into one CircleConfig.

Precedence, per field and independently (highest wins):
    1. Pure inputs of the circle-creation transaction
    2. The CircleCreated event payload
    3. The CircleConfig dynamic-field object attached to the circle
    4. Direct fields of the circle object

A lower layer is consulted only when every higher layer lacks the field or
holds a value that does not parse.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, TypeVar

from njangi_circles.engine.decode import (
    decode_struct,
    parse_address,
    parse_bool,
    parse_int,
)
from njangi_circles.engine.monetary import atomic_to_native, cents_to_dollars, reconcile, to_native
from njangi_circles.exceptions import MissingFieldError
from njangi_circles.models.circle import (
    CYCLE_LENGTH_CODES,
    AmountOrigin,
    CircleConfig,
    CycleType,
    ResolutionFlag,
    RotationStyle,
    SourceKind,
    SourceRecord,
)
from njangi_circles.models.ledger import DynamicFieldInfo, TransactionInput

log = logging.getLogger(__name__)

T = TypeVar("T")

CONFIG_FIELD_NAME = "circle_config"
CONFIG_TYPE_MARKER = "CircleConfig"

CONFIG_KEYS = (
    "contribution_amount",
    "contribution_amount_usd",
    "security_deposit",
    "security_deposit_usd",
    "cycle_length",
    "cycle_day",
    "max_members",
    "rotation_style",
)

USD_AMOUNT_KEYS = ("contribution_amount", "security_deposit", "target_amount")

# create_circle() pure argument positions
CREATION_INPUT_POSITIONS = {
    1: "contribution_amount",  # MIST
    2: "contribution_amount_usd",  # cents
    4: "security_deposit_usd",  # cents
    6: "cycle_day",
}

MIN_MEMBERS = 3
MAX_MEMBERS = 20

_ROTATION_NAMES = {
    "fixed": RotationStyle.FIXED,
    "auction": RotationStyle.AUCTION_BASED,
    "auction-based": RotationStyle.AUCTION_BASED,
    "auction_based": RotationStyle.AUCTION_BASED,
}
_ROTATION_CODES = {0: RotationStyle.FIXED, 1: RotationStyle.AUCTION_BASED}

_CYCLE_NAMES = {
    "weekly": CycleType.WEEKLY,
    "biweekly": CycleType.BIWEEKLY,
    "bi-weekly": CycleType.BIWEEKLY,
    "monthly": CycleType.MONTHLY,
    "quarterly": CycleType.QUARTERLY,
}


@dataclass(frozen=True)
class ConfigSources:
    """Raw config layers for one circle. Any layer may be missing."""

    circle_id: str
    direct_fields: Mapping[str, Any] = field(default_factory=dict)
    tx_input: Mapping[str, Any] | None = None
    creation_event: Mapping[str, Any] | None = None
    dynamic_field_object: Mapping[str, Any] | None = None
    activated: bool | None = None  # a CircleActivated event was seen


# ── Field parsers ──────────────────────────────────────────


def _non_negative_int(value: Any) -> int | None:
    number = parse_int(value)
    if number is None or number < 0:
        return None
    return number


def _parse_cycle_type(value: Any) -> CycleType | None:
    if isinstance(value, str) and value.strip().lower() in _CYCLE_NAMES:
        return _CYCLE_NAMES[value.strip().lower()]
    code = parse_int(value)
    if code is None:
        return None
    ctype = CYCLE_LENGTH_CODES.get(code)
    if ctype is None:
        log.warning("Unknown cycle_length code %r", value)
    return ctype


def _parse_rotation(value: Any) -> RotationStyle | None:
    if isinstance(value, str) and value.strip().lower() in _ROTATION_NAMES:
        return _ROTATION_NAMES[value.strip().lower()]
    code = parse_int(value)
    return _ROTATION_CODES.get(code) if code is not None else None


def _parse_name(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    # vector<u8> as a list of byte values
    if isinstance(value, list) and all(isinstance(b, int) and 0 <= b < 256 for b in value):
        return bytes(value).decode("utf-8", errors="replace")
    return None


def _parse_timestamp_ms(value: Any) -> datetime | None:
    ms = parse_int(value)
    if ms is None or ms <= 0:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _table_id(raw: Any) -> str | None:
    """Object id of a Move Table field: {"fields": {"id": {"id": "0x.."}, "size": ..}}."""
    fields = decode_struct(raw, ("id", "size"), "members table") if raw is not None else None
    if not fields:
        return None
    uid = fields.get("id")
    if isinstance(uid, Mapping):
        return parse_address(uid.get("id"))
    return parse_address(uid)


# ── Source helpers ─────────────────────────────────────────


def select_config_field(fields: Iterable[DynamicFieldInfo]) -> DynamicFieldInfo | None:
    """Pick the circle's CircleConfig entry from a dynamic-field listing."""
    for info in fields:
        if info.name_value == CONFIG_FIELD_NAME:
            return info
        if CONFIG_TYPE_MARKER in (info.object_type or "") or CONFIG_TYPE_MARKER in (info.type or ""):
            return info
    return None


def creation_inputs_from_transaction(inputs: Sequence[TransactionInput]) -> dict[str, Any]:
    """Map create_circle() pure inputs to config keys by position."""
    values: dict[str, Any] = {}
    for index, key in CREATION_INPUT_POSITIONS.items():
        if index < len(inputs) and inputs[index].kind == "pure":
            values[key] = inputs[index].value
    return values


def direct_layer(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Circle object fields, with the nested usd_amounts struct folded in.

    Top-level *_usd keys win over the nested struct.
    """
    layer = dict(fields)
    if "usd_amounts" not in fields:
        return layer
    usd = decode_struct(fields["usd_amounts"], USD_AMOUNT_KEYS, "usd_amounts") or {}
    for nested_key, canonical in (
        ("contribution_amount", "contribution_amount_usd"),
        ("security_deposit", "security_deposit_usd"),
    ):
        if _non_negative_int(layer.get(canonical)) is None and nested_key in usd:
            layer[canonical] = usd[nested_key]
    return layer


# ── Resolver ───────────────────────────────────────────────


class ConfigResolver:
    """Resolves a canonical CircleConfig from layered, possibly conflicting sources."""

    def __init__(self, default_max_members: int = MIN_MEMBERS) -> None:
        self._default_max_members = default_max_members

    def resolve(self, sources: ConfigSources, rate: float | None) -> CircleConfig:
        """Merge all layers. Raises MissingFieldError for admin or cycle type."""
        layers = self._layers(sources)
        defaulted: set[str] = set()
        derived: set[str] = set()
        flags: set[ResolutionFlag] = set()

        def pick(key: str, parser: Callable[[Any], T | None]) -> SourceRecord[T] | None:
            for kind, bag in layers:
                if key not in bag:
                    continue
                value = parser(bag[key])
                if value is not None:
                    log.debug("%s: %s from %s", sources.circle_id[:16], key, kind.value)
                    return SourceRecord(value=value, source=kind)
            return None

        def pick_or_default(key: str, parser: Callable[[Any], T | None], default: T) -> T:
            record = pick(key, parser)
            if record is None:
                defaulted.add(key)
                return default
            return record.value

        admin = pick("admin", parse_address)
        if admin is None:
            raise MissingFieldError("admin", sources.circle_id)
        cycle = pick("cycle_length", _parse_cycle_type)
        if cycle is None:
            raise MissingFieldError("cycle_type", sources.circle_id)
        cycle_type = cycle.value

        cycle_day = pick_or_default("cycle_day", parse_int, 0 if cycle_type.uses_weekday else 1)

        amounts: dict[str, Any] = {}
        for prefix in ("contribution_amount", "security_deposit"):
            cents = pick_or_default(f"{prefix}_usd", _non_negative_int, 0)
            raw_native = pick(prefix, atomic_to_native)
            native = reconcile(raw_native.value if raw_native else None, cents, rate)
            if native.origin is not AmountOrigin.LEDGER:
                derived.add(f"{prefix}_native")
            if native.rate_unavailable:
                flags.add(ResolutionFlag.RATE_UNAVAILABLE)
            amounts[f"{prefix}_usd_cents"] = cents
            amounts[f"{prefix}_usd"] = cents_to_dollars(cents)
            amounts[f"{prefix}_native"] = native.value

        max_members = pick_or_default("max_members", _non_negative_int, self._default_max_members)
        if not MIN_MEMBERS <= max_members <= MAX_MEMBERS:
            log.warning(
                "Circle %s reports max_members=%d outside %d-%d",
                sources.circle_id[:16], max_members, MIN_MEMBERS, MAX_MEMBERS,
            )

        rotation_style = pick_or_default("rotation_style", _parse_rotation, RotationStyle.FIXED)
        name = pick_or_default("name", _parse_name, "")

        if sources.activated:
            is_active = True
        else:
            active_record = pick("is_active", parse_bool)
            is_active = active_record.value if active_record else False

        reported_next = pick("next_payout_time", _parse_timestamp_ms)
        reported_members = pick("current_members", _non_negative_int)

        config = CircleConfig(
            circle_id=sources.circle_id,
            admin=admin.value,
            cycle_type=cycle_type,
            cycle_day=cycle_day,
            name=name,
            max_members=max_members,
            rotation_style=rotation_style,
            is_active=is_active,
            reported_next_payout_at=reported_next.value if reported_next else None,
            reported_member_count=reported_members.value if reported_members else None,
            members_table_id=_table_id(sources.direct_fields.get("members")),
            defaulted=frozenset(defaulted),
            derived=frozenset(derived),
            flags=frozenset(flags),
            **amounts,
        )
        if defaulted:
            log.info(
                "Circle %s resolved with defaults for: %s",
                sources.circle_id[:16], ", ".join(sorted(defaulted)),
            )
        return config

    def _layers(self, sources: ConfigSources) -> list[tuple[SourceKind, Mapping[str, Any]]]:
        layers: list[tuple[SourceKind, Mapping[str, Any]]] = []
        if sources.tx_input:
            layers.append((SourceKind.TRANSACTION_INPUT, sources.tx_input))
        if sources.creation_event:
            layers.append((SourceKind.CREATION_EVENT, sources.creation_event))
        if sources.dynamic_field_object is not None:
            decoded = decode_struct(sources.dynamic_field_object, CONFIG_KEYS, "CircleConfig dynamic field")
            if decoded:
                layers.append((SourceKind.DYNAMIC_FIELD, decoded))
        layers.append((SourceKind.DIRECT_FIELD, direct_layer(sources.direct_fields)))
        return layers


def reprice(config: CircleConfig, rate: float | None) -> CircleConfig:
    """Re-derive the native amounts that were derived from USD, at a new rate."""
    flags = set(config.flags) - {ResolutionFlag.RATE_UNAVAILABLE}
    changes: dict[str, Decimal] = {}
    for name in config.derived:
        prefix = name.removesuffix("_native")
        amount = to_native(getattr(config, f"{prefix}_usd_cents"), rate)
        changes[name] = amount.value
        if amount.rate_unavailable:
            flags.add(ResolutionFlag.RATE_UNAVAILABLE)
    return replace(config, flags=frozenset(flags), **changes)
