from datetime import date, timedelta

import pytest

from tripdesk.pricing import (
    EARLY_BIRD,
    HIGH_DEMAND,
    LAST_MINUTE,
    calculate_dynamic_price,
    days_until,
    occupancy_percent,
)

TODAY = date(2026, 3, 1)


def in_days(n: int) -> date:
    return TODAY + timedelta(days=n)


def test_full_batch_departing_soon_is_capped_at_twenty_percent():
    result = calculate_dynamic_price(10000, 20, 2, in_days(5), today=TODAY)

    assert result.adjustment_percent == 20
    assert result.effective_price == 12000
    assert result.badges == [HIGH_DEMAND, LAST_MINUTE]
    assert [b.to_dict() for b in result.badges] == [
        {"label": "High Demand", "type": "surge"},
        {"label": "Last Minute", "type": "surge"},
    ]


def test_empty_batch_far_out_gets_early_bird_discount():
    result = calculate_dynamic_price(9999, 20, 18, in_days(45), today=TODAY)

    assert result.adjustment_percent == -5
    assert result.badges == [EARLY_BIRD]
    assert result.effective_price == round(9999 * 0.95)


def test_medium_occupancy_adds_eight_percent():
    # 15 of 20 sold = 75%
    result = calculate_dynamic_price(5000, 20, 5, in_days(20), today=TODAY)

    assert result.adjustment_percent == 8
    assert result.effective_price == 5400
    assert result.badges == [HIGH_DEMAND]


def test_occupancy_boundaries():
    assert calculate_dynamic_price(1000, 100, 30, in_days(20), today=TODAY).adjustment_percent == 8
    assert calculate_dynamic_price(1000, 100, 31, in_days(20), today=TODAY).adjustment_percent == 0
    assert calculate_dynamic_price(1000, 100, 15, in_days(20), today=TODAY).adjustment_percent == 15


def test_date_boundaries():
    assert calculate_dynamic_price(1000, 20, 20, in_days(0), today=TODAY).adjustment_percent == 10
    assert calculate_dynamic_price(1000, 20, 20, in_days(7), today=TODAY).adjustment_percent == 10
    assert calculate_dynamic_price(1000, 20, 20, in_days(8), today=TODAY).adjustment_percent == 0
    assert calculate_dynamic_price(1000, 20, 20, in_days(30), today=TODAY).adjustment_percent == 0
    assert calculate_dynamic_price(1000, 20, 20, in_days(31), today=TODAY).adjustment_percent == -5


def test_past_departure_gets_no_date_adjustment():
    result = calculate_dynamic_price(1000, 20, 20, in_days(-3), today=TODAY)

    assert result.adjustment_percent == 0
    assert result.badges == []
    assert result.effective_price == 1000


def test_early_bird_and_high_demand_combine():
    result = calculate_dynamic_price(2000, 20, 1, in_days(60), today=TODAY)

    assert result.adjustment_percent == 10
    assert result.badges == [HIGH_DEMAND, EARLY_BIRD]
    assert result.effective_price == 2200


@pytest.mark.parametrize("batch_size", [0, -5, None])
def test_non_positive_batch_size_counts_as_empty(batch_size):
    result = calculate_dynamic_price(1000, batch_size, 0, in_days(20), today=TODAY)

    assert result.adjustment_percent == 0
    assert result.effective_price == 1000


def test_unparseable_start_date_is_ignored():
    result = calculate_dynamic_price(1000, 20, 2, "not-a-date", today=TODAY)

    assert result.adjustment_percent == 15
    assert result.badges == [HIGH_DEMAND]


def test_iso_string_start_date_is_accepted():
    assert days_until("2026-03-06", today=TODAY) == 5
    assert days_until("2026-03-06T10:30:00Z", today=TODAY) == 5
    assert days_until(None, today=TODAY) is None


def test_rounds_half_up_to_whole_rupees():
    # 1010 * 0.95 = 959.5
    assert calculate_dynamic_price(1010, 20, 20, in_days(45), today=TODAY).effective_price == 960
    # 1005 * 1.10 = 1105.5
    assert calculate_dynamic_price(1005, 20, 20, in_days(3), today=TODAY).effective_price == 1106


def test_adjustment_always_within_cap_and_price_matches_formula():
    for base in (1, 999, 12345):
        for size in (1, 10, 40):
            for available in {0, size // 2, size}:
                for days in (-1, 0, 3, 7, 15, 31, 90):
                    r = calculate_dynamic_price(base, size, available, in_days(days), today=TODAY)
                    assert -20 <= r.adjustment_percent <= 20
                    expected = int(base * (100 + r.adjustment_percent) / 100 + 0.5)
                    assert r.effective_price == expected


def test_occupancy_percent():
    assert occupancy_percent(20, 2) == 90
    assert occupancy_percent(0, 0) == 0
