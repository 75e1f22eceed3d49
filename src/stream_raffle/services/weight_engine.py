"""Pure weight computation.

The engine turns a user's raw counters and a :class:`WeightSettings` value
into a capped, multi-component weight. It performs no I/O and never fails;
callers clamp invalid inputs with :meth:`WeightInputs.from_user` before
invoking it.

Formula, applied in order:

1. ``base = settings.base_weight``
2. effective months = 0 for non-subscribers, else ``max(1, sub_months)``
3. months component = months x multiplier, capped at cap x multiplier
4. resub component = 0 (tracked, deliberately excluded)
5. loyalty = min(months + resub, loyalty_max_bonus)
6. cheer = min(bits / divisor, cheer cap)
7. donations = 0 (tracked, deliberately excluded)
8. gifted = min(gifted x multiplier, gifted cap)
9. support = min(cheer + donations + gifted, support_max_bonus)
10. total = base + loyalty + support + session_bonus + carry_over

``session_bonus`` is an admin override added after every cap, so it can lift
a user above ``support_max_bonus``.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Protocol


@dataclass(frozen=True)
class WeightSettings:
    """Tunable constants for the weight formula."""

    base_weight: float = 1.0
    sub_months_multiplier: float = 0.5
    sub_months_cap: int = 10
    resub_multiplier: float = 0.2
    resub_cap: int = 5
    cheer_bits_divisor: float = 100.0
    cheer_bits_cap: float = 120.0
    donations_divisor: float = 1000.0
    donations_cap: float = 5.0
    gifted_subs_multiplier: float = 5.0
    gifted_subs_cap: float = 120.0
    carry_over_multiplier: float = 0.5
    carry_over_max_bonus: float = 1.0
    loyalty_max_bonus: float = 3.0
    support_max_bonus: float = 120.0

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_record(cls, record: Any) -> WeightSettings:
        """Build settings from any object exposing the same attribute names."""
        return cls(**{name: getattr(record, name) for name in cls.field_names()})

    def merged(self, changes: dict[str, Any]) -> WeightSettings:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


DEFAULT_WEIGHT_SETTINGS = WeightSettings()


class WeightSource(Protocol):
    """Anything carrying the raw counters the formula reads."""

    is_subscriber: bool
    sub_months: int
    resub_count: int
    total_cheer_bits: int
    total_donations: int
    total_gifted_subs: int
    carry_over_weight: float
    session_bonus: float


def _non_negative(value: Any) -> float:
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return max(0.0, number)


@dataclass(frozen=True)
class WeightInputs:
    """Clamped raw counters handed to :func:`compute_weight`."""

    is_subscriber: bool = False
    sub_months: int = 0
    resub_count: int = 0
    total_cheer_bits: int = 0
    total_donations: int = 0
    total_gifted_subs: int = 0
    carry_over_weight: float = 0.0
    session_bonus: float = 0.0

    @classmethod
    def from_user(cls, user: WeightSource, **overrides: Any) -> WeightInputs:
        """Read counters off a user row, clamping negatives and non-finite values to 0."""
        raw = {
            "is_subscriber": getattr(user, "is_subscriber", False),
            "sub_months": getattr(user, "sub_months", 0),
            "resub_count": getattr(user, "resub_count", 0),
            "total_cheer_bits": getattr(user, "total_cheer_bits", 0),
            "total_donations": getattr(user, "total_donations", 0),
            "total_gifted_subs": getattr(user, "total_gifted_subs", 0),
            "carry_over_weight": getattr(user, "carry_over_weight", 0.0),
            "session_bonus": getattr(user, "session_bonus", 0.0),
        }
        raw.update(overrides)
        return cls(
            is_subscriber=bool(raw["is_subscriber"]),
            sub_months=int(_non_negative(raw["sub_months"])),
            resub_count=int(_non_negative(raw["resub_count"])),
            total_cheer_bits=int(_non_negative(raw["total_cheer_bits"])),
            total_donations=int(_non_negative(raw["total_donations"])),
            total_gifted_subs=int(_non_negative(raw["total_gifted_subs"])),
            carry_over_weight=_non_negative(raw["carry_over_weight"]),
            session_bonus=_non_negative(raw["session_bonus"]),
        )


@dataclass(frozen=True)
class WeightBreakdown:
    """Every component of a computed weight."""

    base_weight: float
    effective_months: int
    months_component: float
    resub_component: float
    loyalty_raw: float
    loyalty: float
    cheer_weight: float
    donations_weight: float
    gifted_subs_weight: float
    support_raw: float
    support: float
    session_bonus: float
    carry_over_weight: float
    total_weight: float

    @property
    def current_weight(self) -> float:
        """Weight earned in the current session, excluding carry-over."""
        return self.total_weight - self.carry_over_weight

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["current_weight"] = self.current_weight
        return data


def compute_weight(inputs: WeightInputs, settings: WeightSettings) -> WeightBreakdown:
    """Compute the full weight breakdown for one user."""
    base = settings.base_weight

    effective_months = max(1, inputs.sub_months) if inputs.is_subscriber else 0
    months_component = min(
        effective_months * settings.sub_months_multiplier,
        settings.sub_months_cap * settings.sub_months_multiplier,
    )
    # Resubs are tracked but intentionally carry no weight.
    resub_component = 0.0
    loyalty_raw = months_component + resub_component
    loyalty = min(loyalty_raw, settings.loyalty_max_bonus)

    if settings.cheer_bits_divisor > 0:
        cheer_weight = min(inputs.total_cheer_bits / settings.cheer_bits_divisor, settings.cheer_bits_cap)
    else:
        cheer_weight = 0.0
    # Donations are tracked but intentionally carry no weight.
    donations_weight = 0.0
    gifted_subs_weight = min(
        inputs.total_gifted_subs * settings.gifted_subs_multiplier,
        settings.gifted_subs_cap,
    )
    support_raw = cheer_weight + donations_weight + gifted_subs_weight
    support = min(support_raw, settings.support_max_bonus)

    total = base + loyalty + support + inputs.session_bonus + inputs.carry_over_weight

    return WeightBreakdown(
        base_weight=base,
        effective_months=effective_months,
        months_component=months_component,
        resub_component=resub_component,
        loyalty_raw=loyalty_raw,
        loyalty=loyalty,
        cheer_weight=cheer_weight,
        donations_weight=donations_weight,
        gifted_subs_weight=gifted_subs_weight,
        support_raw=support_raw,
        support=support,
        session_bonus=inputs.session_bonus,
        carry_over_weight=inputs.carry_over_weight,
        total_weight=total,
    )


def compute_total_weight(inputs: WeightInputs, settings: WeightSettings) -> float:
    """Shortcut returning only the total weight."""
    return compute_weight(inputs, settings).total_weight
