from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

ALL_ROWS = -1
DEFAULT_PAGE_SIZE = 10


@dataclass(frozen=True)
class PageWindow:
    """Offset/limit pair; ``limit`` is None when every remaining row is wanted."""

    offset: int = 0
    limit: Optional[int] = DEFAULT_PAGE_SIZE

    @classmethod
    def from_request(
        cls, start: int, length: int, default_size: int = DEFAULT_PAGE_SIZE
    ) -> "PageWindow":
        offset = max(int(start or 0), 0)
        if length == ALL_ROWS:
            return cls(offset, None)
        if length is None or length <= 0:
            return cls(offset, default_size)
        return cls(offset, int(length))


def paginate(rows: Sequence[Any], window: PageWindow) -> List[Any]:
    """Slice of rows for the window; an offset past the end gives an empty page."""
    if window.limit is None:
        return list(rows[window.offset:])
    return list(rows[window.offset:window.offset + window.limit])
