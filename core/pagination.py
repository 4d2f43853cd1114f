from __future__ import annotations

import math
from typing import Any, Callable, Optional


DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _coerce_positive(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def paginate(
    queryset,
    page: Any = 1,
    page_size: Any = DEFAULT_PAGE_SIZE,
    max_page_size: int = MAX_PAGE_SIZE,
    serialize: Optional[Callable[[Any], Any]] = None,
) -> dict:
    """Slice a queryset (or list) into ``{"data": [...], "meta": {...}}``."""
    page = _coerce_positive(page, 1)
    page_size = min(_coerce_positive(page_size, DEFAULT_PAGE_SIZE), max_page_size)

    total = queryset.count() if hasattr(queryset, "count") and not isinstance(queryset, list) else len(queryset)
    offset = (page - 1) * page_size
    items = list(queryset[offset : offset + page_size])
    if serialize is not None:
        items = [serialize(item) for item in items]

    return {
        "data": items,
        "meta": {
            "page": page,
            "page_size": page_size,
            "total": total,
            "total_pages": math.ceil(total / page_size) if total else 0,
        },
    }
