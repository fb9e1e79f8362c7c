"""Scholarship search query builder.

Translates the listing parameters (search text, category, sort key,
page, page size) into SQLAlchemy filter and ordering clauses for the
`Scholarship` table.
"""

from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import and_, func, or_
from sqlmodel import col

from .errors import InvalidInput
from .models import Scholarship

SEARCH_FIELDS = ("scholarship_name", "university_name", "degree")

SORT_KEYS = {
    "fee_asc": lambda: col(Scholarship.application_fees).asc(),
    "fee_desc": lambda: col(Scholarship.application_fees).desc(),
    "date_desc": lambda: col(Scholarship.post_date).desc(),
}


@dataclass
class ScholarshipQuery:
    search: str = ""
    category: str = ""
    sort: str = ""
    page: int = 1
    limit: int = 6

    @classmethod
    def from_params(cls, search: Optional[str], category: Optional[str], sort: Optional[str],
                    page: Optional[int], limit: Optional[int], default_limit: int = 6,
                    max_limit: Optional[int] = None) -> "ScholarshipQuery":
        """Normalise raw listing parameters.

        Raises `InvalidInput` for a page or page size below 1; a page size
        above `max_limit` is clamped.
        """
        page = 1 if page is None else page
        limit = default_limit if limit is None else limit
        if page < 1:
            raise InvalidInput("page must be >= 1")
        if limit < 1:
            raise InvalidInput("limit must be >= 1")
        if max_limit is not None:
            limit = min(limit, max_limit)
        return cls(
            search=(search or "").strip(),
            category=(category or "").strip(),
            sort=(sort or "").strip(),
            page=page,
            limit=limit,
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def build_filter(self):
        """Return the WHERE clause, or None when nothing is filtered."""
        clauses = []
        if self.search:
            needle = self.search.lower()
            clauses.append(or_(*[
                func.lower(getattr(Scholarship, name)).contains(needle, autoescape=True)
                for name in SEARCH_FIELDS
            ]))
        if self.category:
            clauses.append(col(Scholarship.scholarship_category) == self.category)
        if not clauses:
            return None
        return and_(*clauses) if len(clauses) > 1 else clauses[0]

    def build_order(self) -> List:
        """Return ORDER BY clauses; unknown sort keys mean natural order."""
        factory = SORT_KEYS.get(self.sort)
        return [factory()] if factory else []

    def apply(self, stmt, paginate: bool = True):
        where = self.build_filter()
        if where is not None:
            stmt = stmt.where(where)
        order = self.build_order()
        if order:
            stmt = stmt.order_by(*order)
        if paginate:
            stmt = stmt.offset(self.offset).limit(self.limit)
        return stmt
