"""
SQL functions the generated SQLite schema calls.

SQLite has no server-side function language, so ``isa_gtin``, ``UUID_V4`` and
``REGEXP`` are supplied by the connection. Call register_sqlite_functions() on
every connection that uses an objrel schema.
"""

import re
import sqlite3
import uuid
from functools import lru_cache
from typing import Any, Optional, Pattern


def isa_gtin(gtin: Any) -> int:
    """
    Check a GTIN (UPC, EAN, ISBN-13...) check digit.

    Digits are weighted 1, 3, 1, 3... from the right, check digit first, and the
    weighted sum must be a multiple of 10. Returns 1 or 0 so SQLite can use the
    result directly as a boolean.
    """
    digits = str(gtin).strip()
    if not digits.isdigit():
        return 0
    numbers = [int(digit) for digit in reversed(digits)]
    total = sum(numbers[0::2]) + sum(numbers[1::2]) * 3
    return 1 if total % 10 == 0 else 0


def uuid_v4() -> str:
    return str(uuid.uuid4()).upper()


@lru_cache(maxsize=128)
def _compile(pattern: str) -> Pattern:
    return re.compile(pattern)


def regexp(pattern: str, value: Optional[str]) -> int:
    """SQLite's ``value REGEXP pattern`` calls ``regexp(pattern, value)``"""
    if value is None:
        return 0
    return 1 if _compile(pattern).search(str(value)) else 0


def register_sqlite_functions(connection: sqlite3.Connection) -> sqlite3.Connection:
    """Register isa_gtin, UUID_V4 and REGEXP on a SQLite connection"""
    connection.create_function("isa_gtin", 1, isa_gtin)
    connection.create_function("UUID_V4", 0, uuid_v4)
    connection.create_function("REGEXP", 2, regexp)
    return connection


__all__ = ["isa_gtin", "uuid_v4", "regexp", "register_sqlite_functions"]
