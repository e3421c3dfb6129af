"""
Value types that searches compare against.

IncompleteDate models a date where only some of its segments are known, such as
"every June 20th" (``xxxx-06-20Txx:xx:xx``).
"""

import re
from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Tuple, Union

SEGMENTS = ("year", "month", "day", "hour", "minute", "second")

_DATE_PATTERN = re.compile(
    r"^(\d{4}|x{4})-(\d{2}|xx)-(\d{2}|xx)T(\d{2}|xx):(\d{2}|xx):(\d{2}|xx)$", re.IGNORECASE
)


@dataclass(frozen=True)
class IncompleteDate:
    """A date with any subset of its segments defined."""

    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None
    hour: Optional[int] = None
    minute: Optional[int] = None
    second: Optional[int] = None

    def __post_init__(self):
        if not self.defined_segments():
            raise ValueError("An incomplete date needs at least one defined segment")

    @classmethod
    def from_string(cls, text: str) -> "IncompleteDate":
        """
        Parse the ``xxxx-MM-DDTxx:xx:xx`` form, where ``x`` marks an unknown segment.

        Raises:
            ValueError: If the text is not in that form
        """
        match = _DATE_PATTERN.match(text)
        if match is None:
            raise ValueError(f"Not an incomplete date: {text!r}")
        values = {}
        for name, part in zip(SEGMENTS, match.groups()):
            if not part.lower().startswith("x"):
                values[name] = int(part)
        return cls(**values)

    def defined_segments(self) -> Tuple[str, ...]:
        """Names of the defined segments, in calendar order."""
        return tuple(f.name for f in fields(self) if getattr(self, f.name) is not None)

    def is_contiguous(self) -> bool:
        """True when the defined segments form an unbroken run, e.g. month+day."""
        positions = [SEGMENTS.index(name) for name in self.defined_segments()]
        return positions == list(range(positions[0], positions[-1] + 1))

    def __str__(self) -> str:
        parts = []
        for name in SEGMENTS:
            value = getattr(self, name)
            width = 4 if name == "year" else 2
            parts.append("x" * width if value is None else "%0*d" % (width, value))
        return "%s-%s-%sT%s:%s:%s" % tuple(parts)


def parse_date_value(text: str) -> Union[datetime, IncompleteDate, str]:
    """
    Interpret a textual datetime operand.

    Strings in the ``YYYY-MM-DDTHH:MM:SS`` shape become datetimes, the same shape
    with ``x`` placeholders becomes an IncompleteDate, anything else is returned
    unchanged.
    """
    match = _DATE_PATTERN.match(text)
    if match is None:
        return text
    if "x" in text.lower():
        return IncompleteDate.from_string(text)
    return datetime.fromisoformat(text)


def value_kind(value: Any) -> str:
    """Name the kind of a search operand, used to check ANY/BETWEEN operand types."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float, Decimal)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, IncompleteDate):
        return "incomplete date"
    if isinstance(value, (datetime, date)):
        return "datetime"
    return type(value).__name__


__all__ = ["IncompleteDate", "SEGMENTS", "parse_date_value", "value_kind"]
