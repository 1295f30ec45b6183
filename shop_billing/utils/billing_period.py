"""Billing period parsing and calendar arithmetic.

Plan durations are calendar quantities: adding one month to 31 January lands
on the last day of February, not 30 days later. Durations are represented as
``dateutil.relativedelta`` so month and year arithmetic follows the calendar.
"""

import re
from datetime import datetime, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta

# Supported units: P[n]D, P[n]W, P[n]M, P[n]Y
_PERIOD_PATTERN = re.compile(r"^(\d+)?([DWMY])$")


def parse_billing_period(period: str) -> relativedelta:
    """Parse an ISO 8601 duration string into a calendar duration.

    Args:
        period: ISO 8601 duration string (e.g., "P1M", "P1Y", "P7D")

    Returns:
        relativedelta for the period

    Raises:
        ValueError: If the period string is invalid, unsupported or not positive

    Examples:
        >>> parse_billing_period("P3M")
        relativedelta(months=+3)

        >>> parse_billing_period("P1Y")
        relativedelta(years=+1)
    """
    if not period or not isinstance(period, str):
        raise ValueError("Period must be a non-empty string")

    period = period.strip().upper()

    if not period.startswith("P"):
        raise ValueError(f"Invalid period format: '{period}'. Must start with 'P'")

    duration_str = period[1:]
    if not duration_str:
        raise ValueError(f"Invalid period format: '{period}'. No duration specified")

    match = _PERIOD_PATTERN.match(duration_str)
    if not match:
        raise ValueError(
            f"Unsupported period format: '{period}'. "
            "Supported formats: P[n]D, P[n]W, P[n]M, P[n]Y"
        )

    number_str, unit = match.groups()
    number = int(number_str) if number_str else 1

    if number <= 0:
        raise ValueError(f"Period number must be positive, got: {number}")

    if unit == "D":
        return relativedelta(days=number)
    if unit == "W":
        return relativedelta(weeks=number)
    if unit == "M":
        return relativedelta(months=number)
    return relativedelta(years=number)


def months_duration(months: int) -> relativedelta:
    """Build a calendar duration of whole months.

    Raises:
        ValueError: If months is not positive
    """
    if months <= 0:
        raise ValueError(f"Duration in months must be positive, got: {months}")
    return relativedelta(months=months)


def total_months(duration: relativedelta) -> Optional[int]:
    """Return the duration expressed in whole months, or None for day/week durations."""
    if duration.days or duration.hours or duration.minutes or duration.seconds:
        return None
    months = duration.years * 12 + duration.months
    return months or None


def add_billing_period(start: datetime, duration: relativedelta) -> datetime:
    """Add a calendar duration to an instant.

    Day-of-month overflow is clamped to the last day of the target month
    (31 Jan + 1 month = 28/29 Feb).
    """
    return start + duration


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
