"""Recurring transaction date generation.

Every function here is pure: no I/O, no shared state. Generation assumes a
configuration that already went through ``validate_recurrence_config``;
with an ``interval`` below 1 the output is unspecified.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timedelta
from typing import Any, Mapping

from finspace.models import RecurrencePattern, now_local_naive
from finspace.schemas import (
    GeneratedInstance,
    RecurrenceConfig,
    RecurrenceSchedule,
    RecurrenceValidationResult,
    TransactionTemplate,
    parse_recurrence_pattern,
    stringify_recurrence_pattern,
)

logger = logging.getLogger(__name__)

GENERATED_SUFFIX = " (Recorrente)"
MAX_INTERVAL = 365
MAX_OCCURRENCES = 1000

ERR_INTERVAL_MIN = "Intervalo deve ser maior que 0"
ERR_INTERVAL_MAX = "Intervalo não pode ser maior que 365"
ERR_END_DATE_PAST = "Data de fim deve ser no futuro"
ERR_OCCURRENCES_MIN = "Número máximo de ocorrências deve ser maior que 0"
ERR_OCCURRENCES_MAX = "Número máximo de ocorrências não pode ser maior que 1000"

_PATTERN_UNITS = {
    RecurrencePattern.DAILY: "dia(s)",
    RecurrencePattern.WEEKLY: "semana(s)",
    RecurrencePattern.MONTHLY: "mês(es)",
    RecurrencePattern.YEARLY: "ano(s)",
}

__all__ = [
    "calculate_next_date",
    "generate_scheduled_dates",
    "validate_recurrence_config",
    "generate_recurring_transaction_instances",
    "build_generated_instance",
    "occurrences_between",
    "get_next_execution_date",
    "should_execute_today",
    "format_recurrence_description",
    "parse_recurrence_pattern",
    "stringify_recurrence_pattern",
    "is_leap_year",
]


def is_leap_year(year: int) -> bool:
    return calendar.isleap(year)


def _add_month(year: int, month: int, delta: int) -> tuple[int, int]:
    total = year * 12 + (month - 1) + delta
    return total // 12, total % 12 + 1


def _clamped(value: date, year: int, month: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(value.day, last_day))


def _is_after(value: date, boundary: date) -> bool:
    """``value > boundary`` across date/datetime and naive/aware mixes.

    A naive side is read as wall-clock time in the other side's zone.
    """
    if isinstance(value, datetime) and isinstance(boundary, datetime):
        if (value.tzinfo is None) != (boundary.tzinfo is None):
            boundary = boundary.replace(tzinfo=value.tzinfo)
        return value > boundary
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(boundary, datetime):
        boundary = boundary.date()
    return value > boundary


def _now_like(value: datetime) -> datetime:
    """Current time in ``value``'s zone; naive values use the configured local zone."""
    if value.tzinfo is None:
        return now_local_naive()
    return datetime.now(value.tzinfo)


def calculate_next_date(from_date: datetime, config: RecurrenceConfig) -> datetime:
    """Return the occurrence that follows ``from_date``.

    Time of day and tzinfo are kept. Monthly and yearly steps clamp the day
    to the last day of the target month (Jan 31 -> Feb 29/28, Feb 29 -> Feb 28).
    """
    pattern = config.pattern
    interval = config.interval

    if pattern == RecurrencePattern.DAILY:
        return from_date + timedelta(days=interval)
    if pattern == RecurrencePattern.WEEKLY:
        return from_date + timedelta(days=7 * interval)
    if pattern == RecurrencePattern.MONTHLY:
        year, month = _add_month(from_date.year, from_date.month, interval)
        return _clamped(from_date, year, month)
    if pattern == RecurrencePattern.YEARLY:
        return _clamped(from_date, from_date.year + interval, from_date.month)
    raise ValueError(f"Unsupported recurrence pattern: {pattern!r}")


def generate_scheduled_dates(
    start_date: datetime,
    config: RecurrenceConfig,
    desired_count: int = 12,
) -> list[datetime]:
    """Produce up to ``desired_count`` occurrences after ``start_date``.

    ``start_date`` itself is never included. Generation stops early at the
    first date strictly after ``config.end_date`` (a date equal to it is
    kept) or once ``config.max_occurrences`` dates exist.
    """
    limit = desired_count
    if config.max_occurrences is not None:
        limit = min(limit, config.max_occurrences)

    dates: list[datetime] = []
    current = start_date
    while len(dates) < limit:
        current = calculate_next_date(current, config)
        if config.end_date is not None and _is_after(current, config.end_date):
            break
        dates.append(current)

    logger.debug("Generated %d %s occurrence(s) from %s", len(dates), config.pattern.value, start_date)
    return dates


def validate_recurrence_config(
    config: RecurrenceConfig,
    now: datetime | None = None,
) -> RecurrenceValidationResult:
    """Check a configuration for consistency; never raises.

    ``now`` defaults to the current time in the end date's zone, or to the
    configured local wall-clock time when the end date is naive.
    """
    errors: list[str] = []

    if config.interval < 1:
        errors.append(ERR_INTERVAL_MIN)
    elif config.interval > MAX_INTERVAL:
        errors.append(ERR_INTERVAL_MAX)

    if config.end_date is not None:
        reference = now if now is not None else _now_like(config.end_date)
        if _is_after(reference, config.end_date):
            errors.append(ERR_END_DATE_PAST)

    if config.max_occurrences is not None:
        if config.max_occurrences < 1:
            errors.append(ERR_OCCURRENCES_MIN)
        elif config.max_occurrences > MAX_OCCURRENCES:
            errors.append(ERR_OCCURRENCES_MAX)

    return RecurrenceValidationResult(is_valid=not errors, errors=errors)


def build_generated_instance(
    template: TransactionTemplate,
    scheduled_date: datetime,
    original_transaction_id: int | str,
    position: int,
) -> GeneratedInstance:
    return GeneratedInstance(
        id=f"{original_transaction_id}-{position}",
        original_transaction_id=original_transaction_id,
        scheduled_date=scheduled_date,
        amount=template.amount,
        description=f"{template.description}{GENERATED_SUFFIX}",
        type=template.type,
        category_id=template.category_id,
        space_id=template.space_id,
        account_id=template.account_id,
        is_generated=True,
        recurrence_id=original_transaction_id,
    )


def generate_recurring_transaction_instances(
    template: TransactionTemplate | Mapping[str, Any],
    config: RecurrenceConfig,
    original_transaction_id: int | str,
    count: int = 6,
) -> list[GeneratedInstance]:
    """Expand ``template`` into ``count`` future instances, ordered by date."""
    if not isinstance(template, TransactionTemplate):
        template = TransactionTemplate.model_validate(template)
    dates = generate_scheduled_dates(template.date, config, count)
    return [
        build_generated_instance(template, scheduled, original_transaction_id, position)
        for position, scheduled in enumerate(dates, start=1)
    ]


def occurrences_between(
    start_date: datetime,
    config: RecurrenceConfig,
    window_start: datetime,
    window_end: datetime,
) -> list[tuple[int, datetime]]:
    """Occurrences after ``start_date`` falling in ``(window_start, window_end]``.

    Returns ``(position, date)`` pairs where ``position`` is the 1-based
    index of the occurrence in the whole series, so ``max_occurrences`` is
    counted from the first occurrence, not from the window.
    """
    found: list[tuple[int, datetime]] = []
    current = start_date
    position = 0
    while config.max_occurrences is None or position < config.max_occurrences:
        following = calculate_next_date(current, config)
        if not _is_after(following, current):
            # interval < 1 never advances
            break
        if config.end_date is not None and _is_after(following, config.end_date):
            break
        if _is_after(following, window_end):
            break
        position += 1
        if _is_after(following, window_start):
            found.append((position, following))
        current = following
    return found


def get_next_execution_date(schedule: RecurrenceSchedule) -> datetime | None:
    """Next occurrence for an active schedule, or ``None`` when it is exhausted."""
    config = schedule.recurrence
    if config.max_occurrences is not None and schedule.occurrence_count >= config.max_occurrences:
        return None
    last = schedule.last_generated_date or schedule.start_date
    following = calculate_next_date(last, config)
    if config.end_date is not None and _is_after(following, config.end_date):
        return None
    return following


def should_execute_today(schedule: RecurrenceSchedule, today: date | None = None) -> bool:
    if not schedule.is_active:
        return False
    following = get_next_execution_date(schedule)
    if following is None:
        return False
    if today is None:
        today = _now_like(following).date()
    return following.date() == today


def format_recurrence_description(config: RecurrenceConfig) -> str:
    """Human readable summary, e.g. ``"A cada 2 semana(s) até 20/01/2025"``."""
    description = f"A cada {config.interval} {_PATTERN_UNITS[config.pattern]}"
    if config.end_date is not None:
        description += f" até {config.end_date.strftime('%d/%m/%Y')}"
    if config.max_occurrences is not None:
        joiner = " ou" if config.end_date is not None else ""
        description += f"{joiner} por {config.max_occurrences} vezes"
    return description
