from __future__ import annotations

import pytest


def test_total_pages_rounds_up_and_is_zero_when_empty() -> None:
    from services.portal.app.pagination import total_pages

    assert total_pages(0, 20) == 0
    assert total_pages(1, 20) == 1
    assert total_pages(20, 20) == 1
    assert total_pages(21, 20) == 2
    assert total_pages(1000, 100) == 10


def test_page_request_offset_and_validation() -> None:
    from services.portal.app.pagination import PageRequest

    assert PageRequest().offset == 0
    assert PageRequest(page=3, page_size=50).offset == 100
    with pytest.raises(ValueError, match="page must be"):
        PageRequest(page=0)
    with pytest.raises(ValueError, match="page_size must be one of"):
        PageRequest(page_size=25)


def test_page_window_slides_with_current_page() -> None:
    from services.portal.app.pagination import page_window

    assert page_window(1, 0) == []
    assert page_window(1, 3) == [1, 2, 3]
    assert page_window(1, 10) == [1, 2, 3, 4, 5]
    assert page_window(3, 10) == [1, 2, 3, 4, 5]
    assert page_window(5, 10) == [3, 4, 5, 6, 7]
    assert page_window(9, 10) == [6, 7, 8, 9, 10]
    assert page_window(10, 10) == [6, 7, 8, 9, 10]


def test_showing_range_clamps_to_total() -> None:
    from services.portal.app.pagination import showing_range

    assert showing_range(1, 20, 0) == (0, 0)
    assert showing_range(1, 20, 45) == (1, 20)
    assert showing_range(3, 20, 45) == (41, 45)


def test_empty_page_keeps_request_position() -> None:
    from services.portal.app.pagination import Page, PageRequest

    page = Page.empty(PageRequest(page=4, page_size=10))
    assert page.rows == []
    assert page.current_page == 4
    assert page.page_size == 10
    assert page.total_pages == 0
