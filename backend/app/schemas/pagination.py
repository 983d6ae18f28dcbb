"""
Pagination helpers shared by list endpoints.
"""

import math


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
