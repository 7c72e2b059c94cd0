import math
from typing import NamedTuple
from .errors import InvalidOperation

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


class Page(NamedTuple):
    items: list
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)


# Validates 1-based page/limit and returns the number of records to skip
def offset(page: int, limit: int) -> int:
    if page < 1:
        raise InvalidOperation("page must be at least 1")
    if not 1 <= limit <= MAX_LIMIT:
        raise InvalidOperation(f"limit must be between 1 and {MAX_LIMIT}")
    return (page - 1) * limit
