import logging
import re
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any, Callable, List, Sequence

from .columns import ColumnResolver, ResolvedColumn
from .enum import OrderDirection
from .exceptions import UnknownColumnError
from .schema import GridRequest

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"(\d+)")


@dataclass(frozen=True, eq=False)
class ResolvedOrder:
    column: ResolvedColumn
    direction: OrderDirection = OrderDirection.ASC

    @property
    def descending(self) -> bool:
        return self.direction == OrderDirection.DESC


def resolve_order(resolver: ColumnResolver, request: GridRequest) -> List[ResolvedOrder]:
    """Order criteria in request order, without unknown or non-orderable columns."""
    criteria = []
    for criterion in request.order:
        try:
            column = resolver.resolve(criterion.column_index)
        except UnknownColumnError as exc:
            logger.warning("Skipping column in ordering: %s", exc)
            continue
        if not column.orderable:
            continue
        criteria.append(ResolvedOrder(column, criterion.direction))
    return criteria


def _chunks(value: Any, case_insensitive: bool) -> List[str]:
    text = "" if value is None else str(value).strip()
    if case_insensitive:
        text = text.lower()
    # Even positions hold text, odd positions digit runs.
    return _DIGITS.split(text)


def natural_compare(a: Any, b: Any, case_insensitive: bool = False) -> int:
    """
    Compare two values as strings with embedded digit runs compared by
    numeric value, so "2" < "10" and "file9" < "file10".
    Returns -1, 0 or 1.
    """
    left = _chunks(a, case_insensitive)
    right = _chunks(b, case_insensitive)

    for position, (x, y) in enumerate(zip(left, right)):
        if x == y:
            continue
        if position % 2:
            nx, ny = int(x), int(y)
            if nx != ny:
                return -1 if nx < ny else 1
            # same number, fewer leading zeros first
            return -1 if len(x) < len(y) else 1
        return -1 if x < y else 1

    if len(left) != len(right):
        return -1 if len(left) < len(right) else 1
    return 0


def sort_rows(
    rows: Sequence[Any],
    criteria: Sequence[ResolvedOrder],
    extract: Callable[[Any, str], Any],
    case_insensitive: bool = False,
) -> List[Any]:
    """
    Stable multi-key sort. Keys are compared in order and the first non-zero
    comparison wins; descending keys swap the operands.
    """
    if not criteria:
        return list(rows)

    def compare(a, b):
        for criterion in criteria:
            first, second = (b, a) if criterion.descending else (a, b)
            path = criterion.column.data
            result = natural_compare(
                extract(first, path), extract(second, path), case_insensitive
            )
            if result:
                return result
        return 0

    return sorted(rows, key=cmp_to_key(compare))
