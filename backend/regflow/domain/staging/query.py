"""Query/filter engine for staging records

All filters are conjunctive. Results are ordered newest first by
``created_at`` with ``id`` as tie-break, and pagination is applied to the
already filtered and sorted set so that repeated calls with no intervening
mutation return consistent pages.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .models import StagingRecord
from .staging_status import StagingStatus


@dataclass(frozen=True)
class StagingQuery:
    """Filter and pagination parameters for listing a project's staging area."""
    status_in: Optional[Sequence[StagingStatus]] = None
    category_in: Optional[Sequence[str]] = None
    keyword: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0


def matches_keyword(record: StagingRecord, keyword: str) -> bool:
    """Case-insensitive substring match on name, description or original file name."""
    needle = keyword.lower()
    return (
        needle in record.name.lower()
        or needle in record.description.lower()
        or needle in record.original_file_name.lower()
    )


def matches(record: StagingRecord, query: StagingQuery) -> bool:
    if query.status_in and record.status not in query.status_in:
        return False

    if query.category_in:
        if record.category is None or record.category.id not in query.category_in:
            return False

    if query.keyword and not matches_keyword(record, query.keyword):
        return False

    return True


def sort_newest_first(records: Iterable[StagingRecord]) -> List[StagingRecord]:
    return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)


def apply_query(records: Iterable[StagingRecord], query: StagingQuery) -> List[StagingRecord]:
    """Filter, sort and paginate records already scoped to one project.

    Args:
        records: Records of a single project
        query: Filters and pagination

    Returns:
        The requested page, newest first
    """
    filtered = sort_newest_first(r for r in records if matches(r, query))

    start = max(query.offset, 0)
    if query.limit is None:
        return filtered[start:]
    return filtered[start:start + query.limit]
