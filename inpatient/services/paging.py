import math


def page_bounds(page, page_size, *, default_size: int = 10) -> tuple[int, int, int]:
    """Return ``(page, page_size, offset)`` with page_size clamped to 1..100."""
    page = max(1, int(page or 1))
    page_size = min(100, max(1, int(page_size or default_size)))
    return page, page_size, (page - 1) * page_size


def pagination_meta(page: int, page_size: int, total: int) -> dict:
    total_pages = math.ceil(total / page_size) if page_size else 0
    return {
        'page': page,
        'pageSize': page_size,
        'total': total,
        'totalPages': total_pages,
        'hasNext': page < total_pages,
        'hasPrev': page > 1,
    }
