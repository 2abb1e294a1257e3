"""
Date normalization shared by the encoder and the decoder.

Every date written into a QR payload uses the day.month.year form
(DD.MM.YYYY), whatever form it was captured in. Conversion is lenient:
values that cannot be understood are passed through as-is so that user
data is never destroyed by an unexpected format.
"""

from __future__ import annotations

import datetime
import re
import typing

WIRE_DATE_FORMAT = "DD.MM.YYYY"

_WIRE_DATE = re.compile(r"^(?P<day>\d{2})\.(?P<month>\d{2})\.(?P<year>\d{4})$")

# ISO calendar date, optionally followed by a time part ("2023-05-15T10:00:00.000Z")
_ISO_DATE = re.compile(
    r"""
    ^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})
    (?:[T\s]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)?
    $
    """,
    re.VERBOSE,
)


def _calendar_date(year: str, month: str, day: str) -> typing.Optional[datetime.date]:
    try:
        return datetime.date(int(year), int(month), int(day))
    except ValueError:
        return None


def format_wire_date(value: typing.Any) -> str:
    """
    Render a date in DD.MM.YYYY form.

    - None / empty -> ''
    - already DD.MM.YYYY -> unchanged
    - ISO date or timestamp -> reformatted (the calendar date as written)
    - date/datetime objects -> formatted
    - anything else -> returned unchanged (as text)
    """
    if value is None:
        return ""
    if isinstance(value, datetime.date):
        return value.strftime("%d.%m.%Y")
    if not isinstance(value, str):
        return str(value)
    text = value.strip()
    if not text:
        return ""
    if _WIRE_DATE.match(text):
        return text
    m = _ISO_DATE.match(text)
    if not m:
        return value
    parsed = _calendar_date(m.group("year"), m.group("month"), m.group("day"))
    if parsed is None:
        return value
    return parsed.strftime("%d.%m.%Y")


def parse_wire_date(value: typing.Any) -> str:
    """
    Reverse of format_wire_date for callers that store ISO dates:
    DD.MM.YYYY -> YYYY-MM-DD. ISO input and anything unparseable pass through.
    """
    if value is None:
        return ""
    if isinstance(value, datetime.date):
        return value.strftime("%Y-%m-%d")
    if not isinstance(value, str):
        return str(value)
    text = value.strip()
    m = _WIRE_DATE.match(text)
    if not m:
        return value
    parsed = _calendar_date(m.group("year"), m.group("month"), m.group("day"))
    if parsed is None:
        return value
    return parsed.isoformat()
