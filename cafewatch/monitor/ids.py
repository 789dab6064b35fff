"""
Total order over board item ids.

Board article ids are decimal integers, but listings occasionally carry
malformed values (notice rows, scraped whitespace, placeholder text).
Numeric ids compare as numbers so "120" > "15"; anything else falls back
to plain string order. Comparison never raises.
"""

import logging
import re
from enum import Enum

logger = logging.getLogger(__name__)

_NUMERIC_ID = re.compile(r"^\s*[+-]?\d+\s*$")

# Offending ids already reported at WARNING; later hits log at DEBUG
_MAX_REPORTED = 1024


class IdOrder(int, Enum):
    LESS = -1
    EQUAL = 0
    GREATER = 1


def parse_numeric_id(value: str | None) -> int | None:
    """Return the integer value of a well-formed numeric id, else None."""
    if value is None or not _NUMERIC_ID.match(value):
        return None
    return int(value)


class ContentIdComparator:
    """Numeric-first comparator with a lexicographic fallback."""

    def __init__(self, on_fallback=None) -> None:
        """
        Args:
            on_fallback: Optional zero-arg callback invoked on every string
                fallback (used to feed the malformed-id metric)
        """
        self._on_fallback = on_fallback
        self._reported: set[str] = set()

    def compare(self, a: str, b: str) -> IdOrder:
        """Compare two ids; GREATER means ``a`` is newer than ``b``."""
        num_a = parse_numeric_id(a)
        num_b = parse_numeric_id(b)

        if num_a is not None and num_b is not None:
            return _order(num_a, num_b)

        self._report_malformed(a if num_a is None else b, a, b)
        raw_a = "" if a is None else str(a)
        raw_b = "" if b is None else str(b)
        return _order(raw_a, raw_b)

    def _report_malformed(self, offending: str, a: str, b: str) -> None:
        if self._on_fallback is not None:
            try:
                self._on_fallback()
            except Exception:
                logger.debug("Malformed-id callback failed", exc_info=True)

        key = str(offending)
        if key in self._reported:
            logger.debug("Non-numeric id comparison %r vs %r, using string order", a, b)
            return
        if len(self._reported) < _MAX_REPORTED:
            self._reported.add(key)
        logger.warning(
            "Non-numeric content id %r (comparing %r vs %r), falling back to string order",
            offending, a, b,
        )


def _order(a, b) -> IdOrder:
    if a > b:
        return IdOrder.GREATER
    if a < b:
        return IdOrder.LESS
    return IdOrder.EQUAL


def content_id_sort_key(value: str) -> tuple[int, int, str]:
    """
    Sort key consistent with the comparator for homogeneous id sets.

    Numeric ids sort by value; non-numeric ids sort after them by string.
    """
    num = parse_numeric_id(value)
    if num is None:
        return (1, 0, str(value))
    return (0, num, "")


_default = ContentIdComparator()


def compare_content_ids(a: str, b: str) -> IdOrder:
    """Compare two ids with the shared default comparator."""
    return _default.compare(a, b)
