from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Generic, TypeVar


PAGE_SIZE_OPTIONS: tuple[int, ...] = (10, 20, 50, 100)
DEFAULT_PAGE_SIZE = 20

T = TypeVar("T")


def validate_page_size(page_size: int) -> int:
    if page_size not in PAGE_SIZE_OPTIONS:
        raise ValueError(f"page_size must be one of {list(PAGE_SIZE_OPTIONS)}")
    return page_size


def total_pages(total_count: int, page_size: int) -> int:
    return math.ceil(total_count / page_size) if total_count > 0 else 0


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        validate_page_size(self.page_size)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class Page(Generic[T]):
    rows: list[T] = field(default_factory=list)
    total_count: int = 0
    current_page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def total_pages(self) -> int:
        return total_pages(self.total_count, self.page_size)

    @classmethod
    def empty(cls, request: PageRequest) -> Page[T]:
        return cls(rows=[], total_count=0, current_page=request.page, page_size=request.page_size)


def page_window(current: int, total: int, width: int = 5) -> list[int]:
    """Page numbers shown by a pager: the first/last `width` pages near the edges, else centred."""
    if total <= 0:
        return []
    if total <= width:
        return list(range(1, total + 1))
    half = width // 2
    if current <= half + 1:
        start = 1
    elif current >= total - half:
        start = total - width + 1
    else:
        start = current - half
    return list(range(start, start + width))


def showing_range(current: int, page_size: int, total_count: int) -> tuple[int, int]:
    if total_count <= 0:
        return (0, 0)
    first = (current - 1) * page_size + 1
    return (min(first, total_count), min(current * page_size, total_count))
