"""
Scope resolution: decide between a full and an incremental export.

A full export runs automatically on the first day of each calendar quarter.
Any other day defaults to an incremental export over the preceding 24 hours.
"""

from datetime import date, datetime

from discovery_export.core.exceptions import ConfigurationError
from discovery_export.core.models import ExtractionWindow

QUARTER_START_MONTHS = (1, 4, 7, 10)


def is_quarter_start(day: date) -> bool:
    """True on 1 January, 1 April, 1 July and 1 October."""
    return day.day == 1 and day.month in QUARTER_START_MONTHS


def parse_since(value: datetime | date | str) -> datetime:
    """
    Parse an explicit lower bound.

    Date-only values are interpreted as midnight of that day. Values without
    a UTC offset are taken as local time.

    Raises:
        ConfigurationError: If the value is not an ISO date or timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as e:
            raise ConfigurationError(f"Invalid since timestamp '{value}': {e}") from e
    return parsed if parsed.tzinfo else parsed.astimezone()


def resolve_window(
    full: bool = False,
    since: datetime | date | str | None = None,
    now: datetime | None = None,
) -> ExtractionWindow:
    """
    Resolve the extraction window for a run.

    Args:
        full: A full export was requested
        since: Explicit incremental lower bound
        now: Current time (defaults to the local time, offset-aware)

    Returns:
        The single ExtractionWindow the run will use

    Raises:
        ConfigurationError: If both `full` and `since` are set
    """
    if full and since is not None:
        raise ConfigurationError("A full export and an explicit since bound are mutually exclusive")

    if since is not None:
        return ExtractionWindow.explicit_since(parse_since(since))

    if full:
        return ExtractionWindow.full()

    now = now or datetime.now().astimezone()
    if is_quarter_start(now.date()):
        return ExtractionWindow.full()
    return ExtractionWindow.rolling(now)
