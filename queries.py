"""
Translation of list/report query-string parameters into MongoDB directives.
"""
import math
import re
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection

from errors import ValidationError

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

SortSpec = List[Tuple[str, int]]


class ListParams(BaseModel):
    search: Optional[str] = None
    sort: Optional[SortSpec] = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class Page(BaseModel):
    items: List[Dict[str, Any]]
    total: int
    total_pages: int
    current_page: int


def parse_positive_int(value: Optional[str], name: str, default: int) -> int:
    if value is None or value == "":
        return default
    text = str(value).strip()
    # ASCII digits only; int() also accepts "1_0" and other scripts
    if not (text.isascii() and text.isdecimal()):
        raise ValidationError(f"{name} must be a positive integer")
    number = int(text)
    if number < 1:
        raise ValidationError(f"{name} must be a positive integer")
    return number


def parse_sort(sort_by: Optional[str]) -> Optional[SortSpec]:
    """Parse ``field:order``. Anything without a usable field means no sort."""
    if not sort_by:
        return None
    parts = sort_by.split(":")
    field = parts[0].strip()
    order = parts[1] if len(parts) > 1 else ""
    if not field or field.startswith("$"):
        return None
    return [(field, DESCENDING if order.strip() == "desc" else ASCENDING)]


def build_search_filter(search: Optional[str], fields: Sequence[str]) -> Dict[str, Any]:
    if not search:
        return {}
    pattern = re.escape(search)
    return {"$or": [{field: {"$regex": pattern, "$options": "i"}} for field in fields]}


def parse_list_params(search: Optional[str] = None, sort_by: Optional[str] = None,
                      page: Optional[str] = None, limit: Optional[str] = None) -> ListParams:
    return ListParams(
        search=search or None,
        sort=parse_sort(sort_by),
        page=parse_positive_int(page, "page", DEFAULT_PAGE),
        limit=parse_positive_int(limit, "limit", DEFAULT_LIMIT),
    )


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit)


def paginate(collection: Collection, filter_dict: Dict[str, Any], params: ListParams) -> Page:
    cursor = collection.find(filter_dict)
    if params.sort:
        cursor = cursor.sort(params.sort)
    items = list(cursor.skip(params.skip).limit(params.limit))
    total = collection.count_documents(filter_dict)
    return Page(items=items, total=total, total_pages=total_pages(total, params.limit), current_page=params.page)


def parse_date_param(value: Optional[str], name: str, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime query value into a naive UTC datetime.

    A bare date used as an upper bound is stretched to the last instant of that
    day so the bound stays inclusive.
    """
    if not value:
        return None
    text = value.strip()
    try:
        if len(text) == 10:
            day = date.fromisoformat(text)
            return datetime.combine(day, time.max if end_of_day else time.min)
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date_range(start: Optional[str], end: Optional[str]) -> Tuple[Optional[datetime], Optional[datetime]]:
    start_date = parse_date_param(start, "startDate")
    end_date = parse_date_param(end, "endDate", end_of_day=True)
    if start_date and end_date and start_date > end_date:
        raise ValidationError("startDate must not be after endDate")
    return start_date, end_date
