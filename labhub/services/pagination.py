from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Query


def paginate(query: Query, page: int = 1, limit: int = 10, max_limit: int = 200) -> Tuple[List[Any], Dict[str, int]]:
    # Ensure reasonable limits
    limit = min(max(1, limit), max_limit)
    page = max(1, page)
    offset = (page - 1) * limit

    total = query.order_by(None).count()
    rows = query.offset(offset).limit(limit).all()
    return rows, {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": (total + limit - 1) // limit if limit > 0 else 0,
    }
