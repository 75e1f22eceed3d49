"""Tests for the weight formula."""

import math

import pytest

from stream_raffle.services.weight_engine import (
    DEFAULT_WEIGHT_SETTINGS,
    WeightInputs,
    WeightSettings,
    compute_total_weight,
    compute_weight,
)


def test_subscriber_with_support_and_carry_over() -> None:
    """6 months, 200 bits, 3 gifted subs, carry 1 -> 1 + 3 + 17 + 1."""
    inputs = WeightInputs(
        is_subscriber=True,
        sub_months=6,
        total_cheer_bits=200,
        total_gifted_subs=3,
        carry_over_weight=1.0,
    )
    breakdown = compute_weight(inputs, DEFAULT_WEIGHT_SETTINGS)

    assert breakdown.loyalty == pytest.approx(3.0)
    assert breakdown.cheer_weight == pytest.approx(2.0)
    assert breakdown.gifted_subs_weight == pytest.approx(15.0)
    assert breakdown.support == pytest.approx(17.0)
    assert breakdown.total_weight == pytest.approx(22.0)
    assert breakdown.current_weight == pytest.approx(21.0)


def test_non_subscriber_carry_over_only() -> None:
    breakdown = compute_weight(WeightInputs(carry_over_weight=2.5), DEFAULT_WEIGHT_SETTINGS)

    assert breakdown.total_weight == pytest.approx(3.5)
    assert breakdown.current_weight == pytest.approx(1.0)
    assert breakdown.effective_months == 0


def test_subscriber_with_zero_months_counts_one_month() -> None:
    breakdown = compute_weight(WeightInputs(is_subscriber=True, sub_months=0), DEFAULT_WEIGHT_SETTINGS)

    assert breakdown.effective_months == 1
    assert breakdown.months_component == pytest.approx(0.5)


def test_non_subscriber_months_are_ignored() -> None:
    breakdown = compute_weight(WeightInputs(is_subscriber=False, sub_months=24), DEFAULT_WEIGHT_SETTINGS)

    assert breakdown.loyalty == 0.0


def test_loyalty_caps_apply_in_order() -> None:
    """Months cap at sub_months_cap, then loyalty caps at loyalty_max_bonus."""
    breakdown = compute_weight(WeightInputs(is_subscriber=True, sub_months=48), DEFAULT_WEIGHT_SETTINGS)

    assert breakdown.months_component == pytest.approx(5.0)
    assert breakdown.loyalty_raw == pytest.approx(5.0)
    assert breakdown.loyalty == pytest.approx(3.0)


def test_support_components_are_capped() -> None:
    inputs = WeightInputs(total_cheer_bits=1_000_000, total_gifted_subs=1_000)
    breakdown = compute_weight(inputs, DEFAULT_WEIGHT_SETTINGS)

    assert breakdown.cheer_weight == pytest.approx(120.0)
    assert breakdown.gifted_subs_weight == pytest.approx(120.0)
    assert breakdown.support_raw == pytest.approx(240.0)
    assert breakdown.support == pytest.approx(120.0)
    assert breakdown.total_weight == pytest.approx(121.0)


def test_resubs_and_donations_carry_no_weight() -> None:
    inputs = WeightInputs(is_subscriber=True, sub_months=2, resub_count=40, total_donations=50_000)
    breakdown = compute_weight(inputs, DEFAULT_WEIGHT_SETTINGS)

    assert breakdown.resub_component == 0.0
    assert breakdown.donations_weight == 0.0
    assert breakdown.total_weight == pytest.approx(2.0)


def test_session_bonus_sits_outside_support_cap() -> None:
    inputs = WeightInputs(total_gifted_subs=100, session_bonus=10.0)
    breakdown = compute_weight(inputs, DEFAULT_WEIGHT_SETTINGS)

    assert breakdown.support == pytest.approx(120.0)
    assert breakdown.session_bonus == pytest.approx(10.0)
    assert breakdown.total_weight == pytest.approx(131.0)


def test_zero_cheer_divisor_disables_cheer_weight() -> None:
    weight_settings = DEFAULT_WEIGHT_SETTINGS.merged({"cheer_bits_divisor": 0})
    breakdown = compute_weight(WeightInputs(total_cheer_bits=500), weight_settings)

    assert breakdown.cheer_weight == 0.0
    assert breakdown.total_weight == pytest.approx(1.0)


class _RawUser:
    is_subscriber = True
    sub_months = -4
    resub_count = -1
    total_cheer_bits = -200
    total_donations = float("nan")
    total_gifted_subs = None
    carry_over_weight = float("inf")
    session_bonus = -3.0


def test_from_user_clamps_bad_counters() -> None:
    inputs = WeightInputs.from_user(_RawUser())

    assert inputs.sub_months == 0
    assert inputs.total_cheer_bits == 0
    assert inputs.total_donations == 0
    assert inputs.total_gifted_subs == 0
    assert inputs.carry_over_weight == 0.0
    assert inputs.session_bonus == 0.0
    assert compute_total_weight(inputs, DEFAULT_WEIGHT_SETTINGS) == pytest.approx(1.5)


@pytest.mark.parametrize(
    "inputs",
    [
        WeightInputs(),
        WeightInputs(is_subscriber=True, sub_months=100, total_cheer_bits=10**9),
        WeightInputs(total_gifted_subs=7, carry_over_weight=0.75, session_bonus=2.0),
    ],
)
def test_components_respect_caps_and_base(inputs: WeightInputs) -> None:
    weight_settings = WeightSettings()
    breakdown = compute_weight(inputs, weight_settings)

    assert breakdown.total_weight >= weight_settings.base_weight
    assert breakdown.loyalty <= weight_settings.loyalty_max_bonus
    assert breakdown.support <= weight_settings.support_max_bonus
    assert breakdown.cheer_weight <= weight_settings.cheer_bits_cap
    assert breakdown.gifted_subs_weight <= weight_settings.gifted_subs_cap
    assert math.isclose(
        breakdown.current_weight + breakdown.carry_over_weight,
        breakdown.total_weight,
    )
