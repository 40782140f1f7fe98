"""Duplicate invoice-number detection."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from numbers import Real
from typing import Any

from invoice_dashboard.models import CanonicalRow


def _key(value: Any) -> tuple[object, Any]:
    # Pair the value with its kind so "1" and 1 (or True and 1) never collide.
    if isinstance(value, bool):
        return (bool, value)
    if isinstance(value, Real):
        return (Real, value)
    return (type(value), value)


def duplicate_counts(rows: Sequence[CanonicalRow]) -> dict[Any, int]:
    """``{invoice_number: occurrences}`` for every number seen more than once."""
    counts = Counter(_key(row.invoice_number) for row in rows)
    result: dict[Any, int] = {}
    for row in rows:
        n = counts[_key(row.invoice_number)]
        if n > 1:
            result.setdefault(row.invoice_number, n)
    return result


def find_duplicates(rows: Sequence[CanonicalRow]) -> list[CanonicalRow]:
    """Rows whose invoice number occurs more than once, in original order.

    Rows without an invoice number share the ``None`` key and are reported
    together when there is more than one of them.
    """
    counts = Counter(_key(row.invoice_number) for row in rows)
    return [row for row in rows if counts[_key(row.invoice_number)] > 1]
