"""Page window for paginated lists."""

ELLIPSIS = "ellipsis"

# Windows at or below this size show every page
MAX_FULL_WINDOW = 7


def should_paginate(total_elements: int, page_size: int, total_pages: int) -> bool:
    """Pagination is hidden when everything fits on one page."""
    return total_elements > page_size and total_pages > 1


def page_window(total_pages: int, current_page: int) -> list[int | str]:
    """
    Page indices (0-based) to display, with ``ELLIPSIS`` markers for gaps.

    Examples for 20 pages:
        current 2  -> 0 1 2 3 4 … 19
        current 17 -> 0 … 15 16 17 18 19
        current 9  -> 0 … 8 9 10 … 19
    """
    if total_pages <= 0:
        return []
    if total_pages <= MAX_FULL_WINDOW:
        return list(range(total_pages))

    pages: list[int | str] = []
    if current_page <= 3:
        pages.extend(range(min(5, total_pages)))
        if total_pages > 5:
            pages.append(ELLIPSIS)
            pages.append(total_pages - 1)
    elif current_page >= total_pages - 4:
        pages.append(0)
        pages.append(ELLIPSIS)
        pages.extend(range(max(0, total_pages - 5), total_pages))
    else:
        pages.append(0)
        pages.append(ELLIPSIS)
        pages.extend(range(current_page - 1, current_page + 2))
        pages.append(ELLIPSIS)
        pages.append(total_pages - 1)
    return pages
