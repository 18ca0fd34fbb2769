"""Locale-aware formatting of substitution values."""
from __future__ import annotations

from datetime import datetime

from babel import Locale, UnknownLocaleError
from babel.dates import format_date, format_time, get_datetime_format

from .messages import InvalidParameterError


def parse_culture(culture: str) -> Locale:
    """Parse a culture code such as "en-US" or "pl_PL" into a Babel locale."""
    if not culture or not culture.strip():
        raise InvalidParameterError("culture")
    sep = "-" if "-" in culture else "_"
    try:
        return Locale.parse(culture.strip(), sep=sep)
    except (UnknownLocaleError, ValueError) as e:
        raise InvalidParameterError("culture", f"unknown culture '{culture}'") from e


def format_long_datetime(value: datetime, culture: str) -> str:
    """
    Format a date as full date plus short time for the culture.

    "Friday, March 1, 2024 at 10:00 AM" for en-US. The time is rendered in the
    datetime's own offset, naive values are not converted.
    """
    locale = parse_culture(culture)
    date_part = format_date(value.date(), format="full", locale=locale)
    time_part = format_time(value.time(), format="short", locale=locale)
    pattern = get_datetime_format("long", locale=locale)
    return pattern.replace("'", "").replace("{0}", time_part).replace("{1}", date_part)
