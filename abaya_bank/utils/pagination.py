"""Offset pagination helpers"""

import math
from typing import Dict


def offset_for(page: int, limit: int) -> int:
    return (max(page, 1) - 1) * limit


def pagination_block(page: int, limit: int, total: int) -> Dict[str, object]:
    """Metadata returned next to every paged listing"""
    return {
        "current_page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "total": total,
        "has_more": offset_for(page, limit) + limit < total,
    }
