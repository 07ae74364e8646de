from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional, Sequence, Tuple

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# registered on every connection by db.database; sqlite LOWER() only folds ASCII
UNICODE_LOWER = "unicode_lower"


def _ident(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid column or table name: {name!r}")
    return name


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input only ever matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class Query:
    """
    Parameterized SELECT builder over a single table or view.

    Predicates are AND-ed together in the order they are added:

        Query("products").in_("category", ["Home"]).gt("stock", 0).order("price")
    """

    def __init__(self, table: str, columns: Sequence[str] = ("*",)):
        self.table = _ident(table)
        self.columns = [c if c == "*" else _ident(c) for c in columns]
        self._where: List[str] = []
        self._params: List[Any] = []
        self._order: List[str] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None

    def _add(self, clause: str, *params: Any) -> Query:
        self._where.append(clause)
        self._params.extend(params)
        return self

    def eq(self, column: str, value: Any) -> Query:
        return self._add(f"{_ident(column)} = ?", value)

    def gt(self, column: str, value: Any) -> Query:
        return self._add(f"{_ident(column)} > ?", value)

    def gte(self, column: str, value: Any) -> Query:
        return self._add(f"{_ident(column)} >= ?", value)

    def lte(self, column: str, value: Any) -> Query:
        return self._add(f"{_ident(column)} <= ?", value)

    def is_not_null(self, column: str) -> Query:
        return self._add(f"{_ident(column)} IS NOT NULL")

    def in_(self, column: str, values: Iterable[Any]) -> Query:
        values = list(values)
        if not values:
            # membership in nothing matches nothing
            return self._add("1 = 0")
        marks = ", ".join("?" for _ in values)
        return self._add(f"{_ident(column)} IN ({marks})", *values)

    def ilike_any(self, columns: Sequence[str], term: str) -> Query:
        """Case-insensitive substring match of `term` against any of `columns`."""
        like = f"%{escape_like(term.strip().lower())}%"
        parts = [f"{UNICODE_LOWER}({_ident(c)}) LIKE ? ESCAPE '\\'" for c in columns]
        return self._add("(" + " OR ".join(parts) + ")", *([like] * len(columns)))

    def order(self, column: str, ascending: bool = True) -> Query:
        self._order.append(f"{_ident(column)} {'ASC' if ascending else 'DESC'}")
        return self

    def range(self, offset: int, limit: int) -> Query:
        self._offset = max(offset, 0)
        self._limit = max(limit, 0)
        return self

    def _where_sql(self) -> str:
        if not self._where:
            return ""
        return " WHERE " + " AND ".join(self._where)

    def to_sql(self) -> Tuple[str, Tuple[Any, ...]]:
        sql = f"SELECT {', '.join(self.columns)} FROM {self.table}" + self._where_sql()
        params = list(self._params)
        if self._order:
            sql += " ORDER BY " + ", ".join(self._order)
        if self._limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([self._limit, self._offset or 0])
        return sql + ";", tuple(params)

    def count_sql(self) -> Tuple[str, Tuple[Any, ...]]:
        """COUNT(*) over the same predicates, ignoring order and range."""
        sql = f"SELECT COUNT(*) FROM {self.table}" + self._where_sql()
        return sql + ";", tuple(self._params)
