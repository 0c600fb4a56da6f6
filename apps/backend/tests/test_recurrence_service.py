from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from finspace import models
from finspace.models import RecurrencePattern, TxnType
from finspace.schemas import RecurrenceConfig, RecurrenceSchedule, TransactionTemplate
from finspace.services.recurrence_service import (
    ERR_END_DATE_PAST,
    ERR_INTERVAL_MAX,
    ERR_INTERVAL_MIN,
    ERR_OCCURRENCES_MAX,
    ERR_OCCURRENCES_MIN,
    calculate_next_date,
    format_recurrence_description,
    generate_recurring_transaction_instances,
    generate_scheduled_dates,
    get_next_execution_date,
    is_leap_year,
    occurrences_between,
    should_execute_today,
    validate_recurrence_config,
)


def _cfg(pattern: str, interval: int = 1, **kwargs) -> RecurrenceConfig:
    return RecurrenceConfig(pattern=pattern, interval=interval, **kwargs)


# ---- calculate_next_date ------------------------------------------------

@pytest.mark.parametrize(
    "pattern, interval, start, expected",
    [
        ("DAILY", 1, datetime(2024, 1, 1), datetime(2024, 1, 2)),
        ("DAILY", 10, datetime(2024, 2, 25), datetime(2024, 3, 6)),
        ("WEEKLY", 1, datetime(2024, 1, 1), datetime(2024, 1, 8)),
        ("WEEKLY", 2, datetime(2024, 12, 25), datetime(2025, 1, 8)),
        ("MONTHLY", 1, datetime(2024, 1, 15), datetime(2024, 2, 15)),
        ("MONTHLY", 3, datetime(2024, 11, 10), datetime(2025, 2, 10)),
        ("YEARLY", 1, datetime(2024, 6, 1), datetime(2025, 6, 1)),
    ],
)
def test_calculate_next_date_steps(pattern, interval, start, expected):
    assert calculate_next_date(start, _cfg(pattern, interval)) == expected


def test_monthly_clamps_to_last_day_of_month():
    cfg = _cfg("MONTHLY")
    assert calculate_next_date(datetime(2024, 1, 31), cfg) == datetime(2024, 2, 29)
    assert calculate_next_date(datetime(2025, 1, 31), cfg) == datetime(2025, 2, 28)
    assert calculate_next_date(datetime(2024, 3, 31), cfg) == datetime(2024, 4, 30)


def test_yearly_from_leap_day():
    assert calculate_next_date(datetime(2024, 2, 29), _cfg("YEARLY")) == datetime(2025, 2, 28)
    assert calculate_next_date(datetime(2024, 2, 29), _cfg("YEARLY", 4)) == datetime(2028, 2, 29)


def test_time_of_day_and_timezone_are_kept():
    start = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
    nxt = calculate_next_date(start, _cfg("MONTHLY"))
    assert nxt == datetime(2024, 2, 15, 10, 30, tzinfo=timezone.utc)
    assert nxt.tzinfo is timezone.utc


def test_fixed_length_patterns_compose():
    start = datetime(2024, 1, 31, 8)
    for pattern in ("DAILY", "WEEKLY"):
        twice = calculate_next_date(calculate_next_date(start, _cfg(pattern, 3)), _cfg(pattern, 4))
        assert twice == calculate_next_date(start, _cfg(pattern, 7))


def test_monthly_chaining_is_not_the_same_as_a_larger_interval():
    start = datetime(2024, 1, 31)
    chained = calculate_next_date(calculate_next_date(start, _cfg("MONTHLY")), _cfg("MONTHLY"))
    assert chained == datetime(2024, 3, 29)
    assert calculate_next_date(start, _cfg("MONTHLY", 2)) == datetime(2024, 3, 31)


def test_is_leap_year():
    assert is_leap_year(2024)
    assert is_leap_year(2000)
    assert not is_leap_year(1900)
    assert not is_leap_year(2023)


# ---- generate_scheduled_dates ------------------------------------------

def test_weekly_schedule_excludes_start():
    dates = generate_scheduled_dates(datetime(2024, 1, 1), _cfg("WEEKLY"), 4)
    assert dates == [datetime(2024, 1, 8), datetime(2024, 1, 15), datetime(2024, 1, 22), datetime(2024, 1, 29)]


def test_schedule_defaults_to_twelve_dates():
    dates = generate_scheduled_dates(datetime(2024, 1, 1), _cfg("MONTHLY"))
    assert len(dates) == 12
    assert dates[-1] == datetime(2025, 1, 1)


def test_schedule_is_strictly_increasing_and_chained():
    cfg = _cfg("MONTHLY")
    dates = generate_scheduled_dates(datetime(2024, 1, 31), cfg, 4)
    assert dates == [datetime(2024, 2, 29), datetime(2024, 3, 29), datetime(2024, 4, 29), datetime(2024, 5, 29)]
    previous = datetime(2024, 1, 31)
    for d in dates:
        assert d > previous
        assert d == calculate_next_date(previous, cfg)
        previous = d


def test_end_date_is_inclusive():
    cfg = _cfg("DAILY", end_date=datetime(2024, 1, 5))
    dates = generate_scheduled_dates(datetime(2024, 1, 1), cfg, 12)
    assert dates == [datetime(2024, 1, 2), datetime(2024, 1, 3), datetime(2024, 1, 4), datetime(2024, 1, 5)]


def test_end_date_before_first_occurrence_gives_nothing():
    cfg = _cfg("MONTHLY", end_date=datetime(2024, 1, 20))
    assert generate_scheduled_dates(datetime(2024, 1, 1), cfg, 5) == []


def test_max_occurrences_caps_desired_count():
    cfg = _cfg("DAILY", max_occurrences=3)
    assert len(generate_scheduled_dates(datetime(2024, 1, 1), cfg, 12)) == 3
    assert len(generate_scheduled_dates(datetime(2024, 1, 1), _cfg("DAILY", max_occurrences=5), 2)) == 2


def test_zero_desired_count_gives_nothing():
    assert generate_scheduled_dates(datetime(2024, 1, 1), _cfg("DAILY"), 0) == []


def test_aware_end_date_with_naive_start():
    cfg = _cfg("DAILY", end_date=datetime(2024, 1, 3, tzinfo=timezone.utc))
    dates = generate_scheduled_dates(datetime(2024, 1, 1), cfg, 10)
    assert dates == [datetime(2024, 1, 2), datetime(2024, 1, 3)]


# ---- validate_recurrence_config -----------------------------------------

NOW = datetime(2024, 6, 1, 12, 0)


def test_valid_config():
    result = validate_recurrence_config(_cfg("MONTHLY", end_date=datetime(2025, 1, 1), max_occurrences=12), now=NOW)
    assert result.is_valid
    assert result.errors == []


@pytest.mark.parametrize(
    "kwargs, error",
    [
        ({"interval": 0}, ERR_INTERVAL_MIN),
        ({"interval": -2}, ERR_INTERVAL_MIN),
        ({"interval": 366}, ERR_INTERVAL_MAX),
        ({"end_date": datetime(2024, 5, 31)}, ERR_END_DATE_PAST),
        ({"max_occurrences": 0}, ERR_OCCURRENCES_MIN),
        ({"max_occurrences": 1001}, ERR_OCCURRENCES_MAX),
    ],
)
def test_invalid_configs_report_one_error(kwargs, error):
    result = validate_recurrence_config(RecurrenceConfig(pattern="DAILY", **kwargs), now=NOW)
    assert not result.is_valid
    assert result.errors == [error]


def test_boundaries_are_valid():
    assert validate_recurrence_config(_cfg("DAILY", 365, max_occurrences=1000), now=NOW).is_valid
    assert validate_recurrence_config(_cfg("DAILY", 1, max_occurrences=1), now=NOW).is_valid
    # An end date equal to "now" is not in the past
    assert validate_recurrence_config(_cfg("DAILY", end_date=NOW), now=NOW).is_valid


def test_errors_are_collected_in_order():
    cfg = RecurrenceConfig(pattern="WEEKLY", interval=0, end_date=datetime(2020, 1, 1), max_occurrences=0)
    result = validate_recurrence_config(cfg, now=NOW)
    assert result.errors == [ERR_INTERVAL_MIN, ERR_END_DATE_PAST, ERR_OCCURRENCES_MIN]
    assert result.is_valid is False


def test_validation_defaults_to_current_time():
    future = datetime.now(timezone.utc) + timedelta(days=2)
    past = datetime.now(timezone.utc) - timedelta(days=2)
    assert validate_recurrence_config(_cfg("DAILY", end_date=future)).is_valid
    assert validate_recurrence_config(_cfg("DAILY", end_date=past)).errors == [ERR_END_DATE_PAST]


# ---- generate_recurring_transaction_instances ---------------------------

def _template(**overrides) -> TransactionTemplate:
    data = {
        "amount": "100.00",
        "description": "Aluguel",
        "type": "EXPENSE",
        "date": datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
        "category_id": 7,
        "space_id": 1,
        "account_id": 2,
    }
    data.update(overrides)
    return TransactionTemplate(**data)


def test_monthly_instances_copy_the_template():
    instances = generate_recurring_transaction_instances(_template(), _cfg("MONTHLY"), "txn-1", 3)

    assert [i.scheduled_date for i in instances] == [
        datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc),
        datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc),
        datetime(2024, 4, 1, 12, 0, tzinfo=timezone.utc),
    ]
    assert [i.id for i in instances] == ["txn-1-1", "txn-1-2", "txn-1-3"]
    for inst in instances:
        assert inst.amount == Decimal("100.00")
        assert inst.description == "Aluguel (Recorrente)"
        assert inst.type == TxnType.EXPENSE
        assert (inst.category_id, inst.space_id, inst.account_id) == (7, 1, 2)
        assert inst.is_generated is True
        assert inst.original_transaction_id == "txn-1"
        assert inst.recurrence_id == "txn-1"


def test_instances_default_to_six_and_accept_mappings():
    template = _template().model_dump()
    instances = generate_recurring_transaction_instances(template, _cfg("WEEKLY"), 42)
    assert len(instances) == 6
    assert instances[0].id == "42-1"
    assert instances[-1].scheduled_date == datetime(2024, 2, 12, 12, 0, tzinfo=timezone.utc)


def test_instances_respect_max_occurrences():
    instances = generate_recurring_transaction_instances(_template(), _cfg("DAILY", max_occurrences=2), 1, 6)
    assert len(instances) == 2


# ---- occurrences_between -------------------------------------------------

def test_occurrences_between_keeps_series_positions():
    found = occurrences_between(datetime(2024, 1, 1), _cfg("DAILY"), datetime(2024, 1, 3), datetime(2024, 1, 6))
    assert found == [(3, datetime(2024, 1, 4)), (4, datetime(2024, 1, 5)), (5, datetime(2024, 1, 6))]


def test_occurrences_between_counts_max_occurrences_from_series_start():
    cfg = _cfg("DAILY", max_occurrences=4)
    found = occurrences_between(datetime(2024, 1, 1), cfg, datetime(2024, 1, 3), datetime(2024, 1, 6))
    assert found == [(3, datetime(2024, 1, 4)), (4, datetime(2024, 1, 5))]


def test_occurrences_between_stops_at_end_date():
    cfg = _cfg("WEEKLY", end_date=datetime(2024, 1, 20))
    found = occurrences_between(datetime(2024, 1, 1), cfg, datetime(2024, 1, 1), datetime(2024, 3, 1))
    assert found == [(1, datetime(2024, 1, 8)), (2, datetime(2024, 1, 15))]


def test_occurrences_between_non_advancing_interval():
    cfg = RecurrenceConfig(pattern="DAILY", interval=0)
    assert occurrences_between(datetime(2024, 1, 1), cfg, datetime(2024, 1, 1), datetime(2024, 2, 1)) == []


# ---- schedules -----------------------------------------------------------

def _schedule(**overrides) -> RecurrenceSchedule:
    data = {
        "id": "sched-1",
        "transaction_template": _template(date=datetime(2024, 1, 1, 9)),
        "recurrence": _cfg("MONTHLY"),
        "start_date": datetime(2024, 1, 1, 9),
    }
    data.update(overrides)
    return RecurrenceSchedule(**data)


def test_next_execution_from_start_or_last_generated():
    assert get_next_execution_date(_schedule()) == datetime(2024, 2, 1, 9)
    later = _schedule(last_generated_date=datetime(2024, 3, 1, 9), occurrence_count=2)
    assert get_next_execution_date(later) == datetime(2024, 4, 1, 9)


def test_next_execution_none_when_exhausted():
    capped = _schedule(recurrence=_cfg("MONTHLY", max_occurrences=2), occurrence_count=2)
    assert get_next_execution_date(capped) is None
    ended = _schedule(recurrence=_cfg("MONTHLY", end_date=datetime(2024, 1, 20)))
    assert get_next_execution_date(ended) is None


def test_should_execute_today():
    assert should_execute_today(_schedule(), today=date(2024, 2, 1))
    assert not should_execute_today(_schedule(), today=date(2024, 2, 2))
    assert not should_execute_today(_schedule(is_active=False), today=date(2024, 2, 1))


# ---- descriptions ----------------------------------------------------------

@pytest.mark.parametrize(
    "config, expected",
    [
        (_cfg("MONTHLY"), "A cada 1 mês(es)"),
        (_cfg("WEEKLY", 2, end_date=datetime(2025, 1, 20)), "A cada 2 semana(s) até 20/01/2025"),
        (_cfg("DAILY", max_occurrences=10), "A cada 1 dia(s) por 10 vezes"),
        (
            _cfg("YEARLY", end_date=datetime(2030, 12, 31), max_occurrences=5),
            "A cada 1 ano(s) até 31/12/2030 ou por 5 vezes",
        ),
    ],
)
def test_format_recurrence_description(config, expected):
    assert format_recurrence_description(config) == expected


def test_pattern_enum_round_trip():
    assert _cfg("monthly").pattern is RecurrencePattern.MONTHLY


def test_weekly_schedule_stops_at_end_date():
    cfg = _cfg("WEEKLY", end_date=datetime(2024, 1, 20))
    assert generate_scheduled_dates(datetime(2024, 1, 1), cfg, 10) == [datetime(2024, 1, 8), datetime(2024, 1, 15)]


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        # max_occurrences is reached first
        ({"end_date": datetime(2024, 1, 10), "max_occurrences": 3}, [datetime(2024, 1, 2), datetime(2024, 1, 3), datetime(2024, 1, 4)]),
        # end_date is reached first
        ({"end_date": datetime(2024, 1, 3), "max_occurrences": 5}, [datetime(2024, 1, 2), datetime(2024, 1, 3)]),
    ],
)
def test_first_bound_reached_stops_generation(kwargs, expected):
    assert generate_scheduled_dates(datetime(2024, 1, 1), _cfg("DAILY", **kwargs), 12) == expected


# ---- local clock -----------------------------------------------------------

@pytest.mark.parametrize("zone", ["Pacific/Kiritimati", "Pacific/Pago_Pago"])
def test_naive_end_date_is_checked_against_configured_zone(monkeypatch, zone):
    monkeypatch.setattr(models, "LOCAL_ZONE", ZoneInfo(zone))
    local_now = models.now_local_naive()

    assert validate_recurrence_config(_cfg("DAILY", end_date=local_now + timedelta(hours=1))).is_valid
    result = validate_recurrence_config(_cfg("DAILY", end_date=local_now - timedelta(hours=1)))
    assert result.errors == [ERR_END_DATE_PAST]


@pytest.mark.parametrize("zone", ["Pacific/Kiritimati", "Pacific/Pago_Pago"])
def test_should_execute_today_uses_configured_zone(monkeypatch, zone):
    monkeypatch.setattr(models, "LOCAL_ZONE", ZoneInfo(zone))
    start = models.now_local_naive() - timedelta(days=1)
    schedule = _schedule(
        transaction_template=_template(date=start),
        recurrence=_cfg("DAILY"),
        start_date=start,
    )
    assert should_execute_today(schedule)
