# Offset pagination with a one-row lookahead in place of a count query.

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

@dataclass(frozen=True)
class PageWindow:
    limit: int
    offset: int = 0

    @property
    def fetch_size(self) -> int:
        """Rows to request from the store: one more than the page holds."""
        return self.limit + 1

    def trim(self, rows: Sequence[T]) -> Tuple[List[T], bool]:
        """Drop the lookahead row. Returns (page_rows, has_more)."""
        has_more = len(rows) > self.limit
        return list(rows[:self.limit]), has_more

def next_offset(offset: int, page_length: int, has_more: bool) -> Optional[int]:
    """Offset of the following page, or None once the listing is exhausted."""
    if not has_more:
        return None
    return offset + page_length
