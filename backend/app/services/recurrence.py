from __future__ import annotations

from collections.abc import Iterator
from datetime import date, timedelta

from app.schemas.recurrence import (
    AfterOccurrencesEnd,
    ByDateEnd,
    CustomUnit,
    MonthlyConfig,
    PatternKind,
    QuarterlyConfig,
    RecurrenceRule,
    YearlyConfig,
)
from app.services.calendar_math import (
    add_months,
    add_years,
    clamp_day_of_month,
    end_of_month,
    js_weekday,
    nth_weekday_of_month,
    quarter_start_month,
    shift_month,
    week_start,
)

MONTH_ABBREVIATIONS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
WEEK_POSITION_NAMES = ["first", "second", "third", "fourth", "last"]

_CONFIG_FIELDS = {
    PatternKind.monthly: "monthly_config",
    PatternKind.yearly: "yearly_config",
    PatternKind.quarterly: "quarterly_config",
    PatternKind.custom: "custom_config",
}

# One step of a rule may span at most a century.
MAX_STEP_YEARS = 100
_APPROX_UNIT_DAYS = {
    PatternKind.monthly: 31,
    PatternKind.yearly: 366,
    PatternKind.quarterly: 92,
    CustomUnit.days: 1,
    CustomUnit.weeks: 7,
    CustomUnit.months: 31,
    CustomUnit.years: 366,
}


class InvalidPatternError(ValueError):
    """Raised when a recurrence rule is malformed or inconsistent."""


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def _check_range(value: int | None, low: int, high: int, label: str) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise InvalidPatternError(f"{label} must be between {low} and {high}.")


def validate_rule(rule: RecurrenceRule) -> RecurrenceRule:
    populated = [field for field in _CONFIG_FIELDS.values() if getattr(rule, field) is not None]
    expected = _CONFIG_FIELDS.get(rule.kind)
    if populated != [expected]:
        raise InvalidPatternError(
            f"A {getattr(rule.kind, 'value', rule.kind)} pattern requires exactly one config: {expected}."
        )
    config = getattr(rule, expected)
    if not _is_positive_int(config.frequency):
        raise InvalidPatternError("Frequency must be a positive integer.")
    unit = config.unit if rule.kind == PatternKind.custom else rule.kind
    if config.frequency * _APPROX_UNIT_DAYS[unit] > MAX_STEP_YEARS * 366:
        raise InvalidPatternError(f"Frequency must not span more than {MAX_STEP_YEARS} years.")

    if rule.kind == PatternKind.monthly:
        _check_range(config.day_of_month, 1, 31, "Day of month")
        _check_range(config.week_of_month, 1, 5, "Week of month")
        _check_range(config.day_of_week, 0, 6, "Day of week")
        if (config.week_of_month is None) != (config.day_of_week is None):
            raise InvalidPatternError("Week of month and day of week must be set together.")
    elif rule.kind == PatternKind.yearly:
        if not config.months:
            raise InvalidPatternError("Yearly pattern requires at least one month.")
        for month in config.months:
            _check_range(month, 1, 12, "Month")
        if config.day_of_month is None:
            raise InvalidPatternError("Yearly pattern requires a day of month.")
        _check_range(config.day_of_month, 1, 31, "Day of month")
    elif rule.kind == PatternKind.quarterly:
        if config.month_of_quarter is None or config.day_of_month is None:
            raise InvalidPatternError("Quarterly pattern requires a month of quarter and a day of month.")
        _check_range(config.month_of_quarter, 1, 3, "Month of quarter")
        _check_range(config.day_of_month, 1, 31, "Day of month")
    else:
        for day in config.days_of_week:
            _check_range(day, 0, 6, "Day of week")

    end = rule.end_condition
    if isinstance(end, AfterOccurrencesEnd) and not _is_positive_int(end.occurrences):
        raise InvalidPatternError("Occurrence count must be a positive integer.")
    return rule


def _resolve_monthly_day(config: MonthlyConfig, year: int, month: int, anchor: date) -> date:
    if config.end_of_month:
        return end_of_month(year, month)
    if config.day_of_month is not None:
        return date(year, month, clamp_day_of_month(year, month, config.day_of_month))
    if config.week_of_month is not None and config.day_of_week is not None:
        return date(year, month, nth_weekday_of_month(year, month, config.day_of_week, config.week_of_month))
    return date(year, month, clamp_day_of_month(year, month, anchor.day))


def _next_monthly(config: MonthlyConfig, after: date) -> date:
    candidate = _resolve_monthly_day(config, after.year, after.month, after)
    if candidate > after:
        return candidate
    year, month = shift_month(after.year, after.month, config.frequency)
    return _resolve_monthly_day(config, year, month, after)


def _next_yearly(config: YearlyConfig, after: date) -> date:
    months = sorted(config.months)
    for month in months:
        candidate = date(after.year, month, clamp_day_of_month(after.year, month, config.day_of_month))
        if candidate > after:
            return candidate
    year = after.year + config.frequency
    return date(year, months[0], clamp_day_of_month(year, months[0], config.day_of_month))


def _next_quarterly(config: QuarterlyConfig, after: date) -> date:
    def resolve(year: int, start_month: int) -> date:
        year, month = shift_month(year, start_month, config.month_of_quarter - 1)
        return date(year, month, clamp_day_of_month(year, month, config.day_of_month))

    start = quarter_start_month(after)
    candidate = resolve(after.year, start)
    if candidate > after:
        return candidate
    year, month = shift_month(after.year, start, 3 * config.frequency)
    return resolve(year, month)


def _next_weekly(frequency: int, days_of_week: frozenset[int], after: date) -> date:
    if not days_of_week:
        return after + timedelta(weeks=frequency)
    weekdays = sorted(days_of_week)
    current = js_weekday(after)
    for target in weekdays:
        if target > current:
            return after + timedelta(days=target - current)
    return week_start(after) + timedelta(weeks=frequency, days=weekdays[0])


def _step(rule: RecurrenceRule, after: date) -> date:
    if rule.kind == PatternKind.monthly:
        return _next_monthly(rule.monthly_config, after)
    if rule.kind == PatternKind.yearly:
        return _next_yearly(rule.yearly_config, after)
    if rule.kind == PatternKind.quarterly:
        return _next_quarterly(rule.quarterly_config, after)

    config = rule.custom_config
    if config.unit == CustomUnit.days:
        return after + timedelta(days=config.frequency)
    if config.unit == CustomUnit.weeks:
        return _next_weekly(config.frequency, config.days_of_week, after)
    if config.unit == CustomUnit.months:
        return add_months(after, config.frequency)
    return add_years(after, config.frequency)


def next_occurrence(rule: RecurrenceRule, after: date) -> date:
    """Return the first occurrence of ``rule`` strictly after ``after``."""
    validate_rule(rule)
    try:
        result = _step(rule, after)
        while result <= after:
            # Never hand back the same date twice; push one more cycle.
            result = _step(rule, result)
    except (OverflowError, ValueError) as exc:
        raise InvalidPatternError(f"No occurrence after {after.isoformat()} within the supported calendar.") from exc
    return result


def _anchors_on_start(rule: RecurrenceRule) -> bool:
    if rule.kind == PatternKind.monthly:
        config = rule.monthly_config
        return not config.end_of_month and config.day_of_month is None and config.week_of_month is None
    if rule.kind == PatternKind.custom:
        config = rule.custom_config
        return config.unit != CustomUnit.weeks or not config.days_of_week
    return False


def first_occurrence(rule: RecurrenceRule, start: date) -> date:
    """Return the first occurrence on or after ``start``.

    Rules without a fixed day (plain monthly, relative custom units) take
    ``start`` itself as their first occurrence and keep its day from then on.
    """
    validate_rule(rule)
    if _anchors_on_start(rule):
        return start
    if rule.kind == PatternKind.custom and js_weekday(start) in rule.custom_config.days_of_week:
        return start
    if rule.kind == PatternKind.custom:
        return next_occurrence(rule, start)
    return next_occurrence(rule, start - timedelta(days=1))


class OccurrencePreview:
    """Finite, restartable sequence of upcoming occurrences.

    Each iteration recomputes from ``after``; nothing is cached or persisted.
    """

    def __init__(self, rule: RecurrenceRule, after: date, count: int) -> None:
        if count < 0:
            raise ValueError("count must not be negative")
        self.rule = validate_rule(rule)
        self.after = after
        self.count = count

    def __iter__(self) -> Iterator[date]:
        current = self.after
        for _ in range(self.count):
            current = next_occurrence(self.rule, current)
            yield current

    def __len__(self) -> int:
        return self.count

    def __repr__(self) -> str:
        return f"OccurrencePreview(after={self.after.isoformat()}, count={self.count})"


def preview_occurrences(rule: RecurrenceRule, after: date, count: int) -> OccurrencePreview:
    return OccurrencePreview(rule, after, count)


def describe_rule(rule: RecurrenceRule) -> str:
    if rule.kind == PatternKind.monthly and rule.monthly_config is not None:
        config = rule.monthly_config
        prefix = f"Every {config.frequency} month(s)"
        if config.end_of_month:
            text = f"{prefix} on the last day"
        elif config.day_of_month is not None:
            text = f"{prefix} on day {config.day_of_month}"
        elif config.week_of_month is not None and config.day_of_week is not None:
            position = WEEK_POSITION_NAMES[min(config.week_of_month, 5) - 1]
            text = f"{prefix} on the {position} {DAY_NAMES[config.day_of_week]}"
        else:
            text = prefix
    elif rule.kind == PatternKind.yearly and rule.yearly_config is not None:
        config = rule.yearly_config
        months = ", ".join(MONTH_ABBREVIATIONS[month - 1] for month in sorted(config.months))
        text = f"Every {config.frequency} year(s) in {months} on day {config.day_of_month}"
    elif rule.kind == PatternKind.quarterly and rule.quarterly_config is not None:
        config = rule.quarterly_config
        text = (
            f"Every {config.frequency} quarter(s) on day {config.day_of_month} "
            f"of month {config.month_of_quarter} of the quarter"
        )
    elif rule.kind == PatternKind.custom and rule.custom_config is not None:
        config = rule.custom_config
        text = f"Every {config.frequency} {config.unit.value}"
        if config.unit == CustomUnit.weeks and config.days_of_week:
            text += " on " + ", ".join(DAY_NAMES[day] for day in sorted(config.days_of_week))
    else:
        return "Custom pattern"

    end = rule.end_condition
    if isinstance(end, AfterOccurrencesEnd):
        text += f", {end.occurrences} time(s)"
    elif isinstance(end, ByDateEnd):
        text += f", until {end.end_date.isoformat()}"
    return text


CA_PRESETS: list[tuple[str, str, RecurrenceRule]] = [
    (
        "Monthly GST Filing",
        "Monthly GST return filing on 20th of every month",
        RecurrenceRule(kind=PatternKind.monthly, monthly_config=MonthlyConfig(frequency=1, day_of_month=20)),
    ),
    (
        "Quarterly GST Filing",
        "Quarterly GST return filing on 18th of first month of quarter",
        RecurrenceRule(
            kind=PatternKind.quarterly,
            quarterly_config=QuarterlyConfig(frequency=1, month_of_quarter=1, day_of_month=18),
        ),
    ),
    (
        "Annual ITR Filing",
        "Annual Income Tax Return filing by July 31st",
        RecurrenceRule(
            kind=PatternKind.yearly,
            yearly_config=YearlyConfig(frequency=1, months=frozenset({7}), day_of_month=31),
        ),
    ),
    (
        "Annual ROC Filing",
        "Annual ROC filing by September 30th",
        RecurrenceRule(
            kind=PatternKind.yearly,
            yearly_config=YearlyConfig(frequency=1, months=frozenset({9}), day_of_month=30),
        ),
    ),
]
