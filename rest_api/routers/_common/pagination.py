"""
limit/offset query parameters for list endpoints.
"""

from dataclasses import dataclass

from fastapi import Query

from shared.config.constants import Limits


@dataclass(frozen=True)
class Pagination:
    limit: int
    offset: int


def get_pagination(
    limit: int = Query(default=Limits.DEFAULT_PAGE_SIZE, ge=1, le=Limits.MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
) -> Pagination:
    """FastAPI dependency: `pagination: Pagination = Depends(get_pagination)`."""
    return Pagination(limit=limit, offset=offset)
