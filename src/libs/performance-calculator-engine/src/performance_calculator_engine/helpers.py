# src/libs/performance-calculator-engine/src/performance_calculator_engine/helpers.py
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, FR, MONTHLY, WEEKLY, rrule

from .constants import (
    PERIOD_TYPE_EXPLICIT,
    PERIOD_TYPE_FIVE_YEAR,
    PERIOD_TYPE_MTD,
    PERIOD_TYPE_QTD,
    PERIOD_TYPE_SI,
    PERIOD_TYPE_THREE_YEAR,
    PERIOD_TYPE_YEAR,
    PERIOD_TYPE_YTD,
)
from .exceptions import InvalidInputDataError
from .models import Bucketing, Frequency


def resolve_period(
    period_type: str,
    inception_date: date,
    as_of_date: date,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    year: Optional[int] = None,
    name: Optional[str] = None
) -> Tuple[str, date, date]:
    """
    Translates a symbolic or explicit period into a concrete start and end date.
    """
    period_name = name or year or period_type
    start_date, end_date = date.max, date.min

    if period_type == PERIOD_TYPE_EXPLICIT:
        if from_date is None or to_date is None:
            raise InvalidInputDataError("ExplicitPeriod requires 'from_date' and 'to_date'.")
        start_date, end_date = from_date, to_date
    elif period_type == PERIOD_TYPE_YEAR:
        if year is None:
            raise InvalidInputDataError("YearPeriod requires 'year'.")
        start_date = date(year, 1, 1)
        end_date = date(year, 12, 31)
    else: # Standard Periods
        end_date = as_of_date
        if period_type == PERIOD_TYPE_YTD:
            start_date = date(as_of_date.year, 1, 1)
        elif period_type == PERIOD_TYPE_QTD:
            quarter_month = (as_of_date.month - 1) // 3 * 3 + 1
            start_date = date(as_of_date.year, quarter_month, 1)
        elif period_type == PERIOD_TYPE_MTD:
            start_date = date(as_of_date.year, as_of_date.month, 1)
        elif period_type == PERIOD_TYPE_THREE_YEAR:
            start_date = as_of_date - relativedelta(years=3) + timedelta(days=1)
        elif period_type == PERIOD_TYPE_FIVE_YEAR:
            start_date = as_of_date - relativedelta(years=5) + timedelta(days=1)
        elif period_type == PERIOD_TYPE_SI:
            start_date = inception_date
        else:
            raise InvalidInputDataError(f"Unknown period type '{period_type}'.")

    # Ensure the series doesn't start before the first event
    final_start_date = max(start_date, inception_date)
    if final_start_date > end_date:
        raise InvalidInputDataError(
            f"Period '{period_name}' resolves to an empty range ({final_start_date} to {end_date})."
        )
    return str(period_name), final_start_date, end_date


def period_bucketing(
    period_type: str,
    inception_date: date,
    as_of_date: date,
    frequency: Optional[Frequency] = None,
    **period_args
) -> Bucketing:
    """Resolves a period into the bucketing of a performance series."""
    _, start_date, end_date = resolve_period(period_type, inception_date, as_of_date, **period_args)
    if frequency is None:
        return Bucketing(start=start_date, end=end_date)
    return Bucketing(frequency=frequency, start=start_date, end=end_date)


def bucket_boundaries(frequency: Frequency, start: date, end: date) -> List[date]:
    """
    Closing dates of the buckets covering [start, end]: every day, every Friday,
    or every month end. `end` always closes the last, possibly partial, bucket.
    """
    if start > end:
        raise InvalidInputDataError(f"Bucketing start {start} is after its end {end}.")

    dtstart = datetime.combine(start, time.min)
    until = datetime.combine(end, time.min)
    if frequency == Frequency.DAILY:
        rule = rrule(DAILY, dtstart=dtstart, until=until)
    elif frequency == Frequency.WEEKLY:
        rule = rrule(WEEKLY, byweekday=FR, dtstart=dtstart, until=until)
    elif frequency == Frequency.MONTHLY:
        rule = rrule(MONTHLY, bymonthday=-1, dtstart=dtstart, until=until)
    else:
        raise InvalidInputDataError(f"Unsupported frequency '{frequency}'.")

    boundaries = [occurrence.date() for occurrence in rule]
    if not boundaries or boundaries[-1] != end:
        boundaries.append(end)
    return boundaries


def end_of_day(day: date) -> datetime:
    """Last instant of `day` in UTC; events at any time that day fall on or before it."""
    return datetime.combine(day, time.max, tzinfo=timezone.utc)
