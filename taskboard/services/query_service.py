"""Translation of JSON list parameters (where/sort/select) into SQLAlchemy queries.

Clients send Mongo-style documents, usually JSON-encoded in the query string:

    ?where={"completed": false, "deadline": {"$lt": "2030-01-01"}}
    &sort={"deadline": 1}&select={"name": 1}&skip=20&limit=10

Only known fields and a fixed set of operators are accepted; everything else
is reported as a ValidationError.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
import operator
import re
from typing import Any

from sqlalchemy import Boolean, DateTime, Select, String, and_, false, func, not_, or_, select, true
from sqlalchemy.orm import Session

from taskboard.services.errors import ValidationError
from taskboard.utils.date_utils import to_naive_utc

INVALID_QUERY_MESSAGE = "Invalid query parameters"

_COMPARISONS: dict[str, Callable[[Any, Any], Any]] = {
    "$eq": operator.eq,
    "$ne": operator.ne,
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
}

_SORT_DIRECTIONS = {
    1: "asc",
    -1: "desc",
    "asc": "asc",
    "ascending": "asc",
    "desc": "desc",
    "descending": "desc",
}

_REGEX_OPTIONS = set("imsx")


def _invalid(detail: str) -> ValidationError:
    return ValidationError(INVALID_QUERY_MESSAGE, data={"reason": detail})


def parse_json_param(raw: str | None, name: str) -> dict[str, Any] | None:
    """Decode a JSON object passed as a query-string parameter."""
    if raw is None or raw == "":
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise _invalid(f"'{name}' is not valid JSON") from exc
    if not isinstance(value, dict):
        raise _invalid(f"'{name}' must be a JSON object")
    return value


def _is_operator_document(value: Any) -> bool:
    return isinstance(value, dict) and bool(value) and all(
        isinstance(key, str) and key.startswith("$") for key in value
    )


@dataclass(frozen=True)
class ArrayField:
    """A list attribute stored as rows of a link table.

    owner is the id column of the queried model, owner_ref and value are the
    link table columns holding that id and the list element.
    """

    owner: Any
    owner_ref: Any
    value: Any

    def contains(self, element: Any) -> Any:
        return (
            select(self.value)
            .where(self.owner_ref == self.owner, self.value == element)
            .exists()
        )

    def contains_any(self, elements: list[Any]) -> Any:
        return (
            select(self.value)
            .where(self.owner_ref == self.owner, self.value.in_(elements))
            .exists()
        )

    def size_equals(self, size: int) -> Any:
        count = (
            select(func.count())
            .select_from(self.value.table)
            .where(self.owner_ref == self.owner)
            .scalar_subquery()
        )
        return count == size


@dataclass(frozen=True)
class QueryFields:
    """Wire field names a collection can be filtered and sorted by."""

    columns: Mapping[str, Any]
    arrays: Mapping[str, ArrayField] = field(default_factory=dict)

    def column(self, name: str) -> Any:
        if name not in self.columns:
            raise _invalid(f"unknown field '{name}'")
        return self.columns[name]

    def filter_clause(self, document: Mapping[str, Any] | None) -> Any:
        """Build a WHERE clause from a filter document."""
        if not document:
            return true()
        clauses = []
        for key, condition in document.items():
            if key in ("$and", "$or", "$nor"):
                clauses.append(self._logical_clause(key, condition))
            elif key.startswith("$"):
                raise _invalid(f"unsupported top-level operator '{key}'")
            elif key in self.arrays:
                clauses.append(self._array_clause(self.arrays[key], condition))
            else:
                clauses.append(self._field_clause(self.column(key), condition))
        return and_(*clauses) if len(clauses) > 1 else clauses[0]

    def order_by(self, document: Mapping[str, Any] | None) -> list[Any]:
        """Build ORDER BY expressions from a sort document."""
        if not document:
            return []
        ordering = []
        for key, direction in document.items():
            valid = isinstance(direction, (int, str)) and not isinstance(direction, bool)
            if not valid or direction not in _SORT_DIRECTIONS:
                raise _invalid(f"invalid sort direction for '{key}'")
            column = self.column(key)
            if _SORT_DIRECTIONS[direction] == "asc":
                ordering.append(column.asc())
            else:
                ordering.append(column.desc())
        return ordering

    def _logical_clause(self, key: str, condition: Any) -> Any:
        if not isinstance(condition, list) or not condition:
            raise _invalid(f"'{key}' expects a non-empty array")
        parts = []
        for item in condition:
            if not isinstance(item, dict) or not item:
                raise _invalid(f"'{key}' expects an array of filter documents")
            parts.append(self.filter_clause(item))
        if key == "$and":
            return and_(*parts)
        if key == "$or":
            return or_(*parts)
        return not_(or_(*parts))

    def _field_clause(self, column: Any, condition: Any) -> Any:
        if isinstance(condition, dict):
            if not _is_operator_document(condition):
                raise _invalid("embedded documents are not supported")
            return self._operator_clause(column, condition)
        if isinstance(condition, list):
            raise _invalid("array equality is only supported on array fields")
        return self._coerce_compare(column, "$eq", condition)

    def _operator_clause(self, column: Any, condition: Mapping[str, Any]) -> Any:
        clauses = []
        for op, arg in condition.items():
            if op in _COMPARISONS:
                clauses.append(self._coerce_compare(column, op, arg))
            elif op in ("$in", "$nin"):
                if not isinstance(arg, list):
                    raise _invalid(f"'{op}' expects an array")
                values = [_coerce(column, item) for item in arg]
                clauses.append(column.in_(values) if op == "$in" else column.not_in(values))
            elif op == "$regex":
                clauses.append(_regex_clause(column, arg, condition.get("$options", "")))
            elif op == "$options":
                if "$regex" not in condition:
                    raise _invalid("'$options' requires '$regex'")
            elif op == "$exists":
                # Every stored field is always present
                clauses.append(true() if arg else false())
            elif op == "$not":
                if not _is_operator_document(arg):
                    raise _invalid("'$not' expects an operator document")
                clauses.append(not_(self._operator_clause(column, arg)))
            else:
                raise _invalid(f"unsupported operator '{op}'")
        return and_(*clauses) if len(clauses) > 1 else clauses[0]

    @staticmethod
    def _coerce_compare(column: Any, op: str, value: Any) -> Any:
        return _COMPARISONS[op](column, _coerce(column, value))

    @staticmethod
    def _array_clause(array: ArrayField, condition: Any) -> Any:
        if isinstance(condition, list):
            if condition:
                raise _invalid("only empty array equality is supported on array fields")
            return array.size_equals(0)
        if not _is_operator_document(condition):
            return array.contains(_coerce_element(condition))

        clauses = []
        for op, arg in condition.items():
            if op == "$eq":
                clauses.append(array.contains(_coerce_element(arg)))
            elif op == "$ne":
                clauses.append(not_(array.contains(_coerce_element(arg))))
            elif op in ("$in", "$nin", "$all"):
                if not isinstance(arg, list):
                    raise _invalid(f"'{op}' expects an array")
                elements = [_coerce_element(item) for item in arg]
                if op == "$in":
                    clauses.append(array.contains_any(elements))
                elif op == "$nin":
                    clauses.append(not_(array.contains_any(elements)))
                elif elements:
                    clauses.append(and_(*[array.contains(item) for item in elements]))
                else:
                    clauses.append(false())
            elif op == "$size":
                if isinstance(arg, bool) or not isinstance(arg, int) or arg < 0:
                    raise _invalid("'$size' expects a non-negative integer")
                clauses.append(array.size_equals(arg))
            elif op == "$exists":
                clauses.append(true() if arg else false())
            else:
                raise _invalid(f"unsupported array operator '{op}'")
        return and_(*clauses) if len(clauses) > 1 else clauses[0]


def _coerce_element(value: Any) -> str:
    if not isinstance(value, str):
        raise _invalid("array elements must be strings")
    return value


def _coerce(column: Any, value: Any) -> Any:
    """Cast a JSON value to the column's Python type where that is unambiguous."""
    if value is None:
        return None
    column_type = column.type
    if isinstance(column_type, DateTime):
        if isinstance(value, str):
            try:
                return to_naive_utc(datetime.fromisoformat(value))
            except (ValueError, OverflowError) as exc:
                raise _invalid(f"invalid date '{value}'") from exc
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            # JavaScript-style epoch milliseconds
            try:
                return to_naive_utc(datetime.fromtimestamp(value / 1000, tz=timezone.utc))
            except (ValueError, OverflowError, OSError) as exc:
                raise _invalid(f"invalid date '{value}'") from exc
        raise _invalid("dates must be ISO strings or epoch milliseconds")
    if isinstance(column_type, Boolean):
        if isinstance(value, bool):
            return value
        if value in ("true", "false"):
            return value == "true"
        raise _invalid("expected a boolean")
    if isinstance(column_type, String):
        if isinstance(value, (dict, list)):
            raise _invalid("expected a string")
        return value if isinstance(value, str) else str(value)
    return value


def _regex_clause(column: Any, pattern: Any, options: Any) -> Any:
    if not isinstance(pattern, str) or not isinstance(options, str):
        raise _invalid("'$regex' expects a string pattern")
    if not isinstance(column.type, String):
        raise _invalid("'$regex' only applies to string fields")
    if set(options) - _REGEX_OPTIONS:
        raise _invalid(f"unsupported regex options '{options}'")
    if options:
        pattern = f"(?{options}){pattern}"
    try:
        re.compile(pattern)
    except re.error as exc:
        raise _invalid(f"invalid regular expression: {exc}") from exc
    return column.regexp_match(pattern)


def parse_projection(document: Mapping[str, Any] | None) -> tuple[bool, frozenset[str]] | None:
    """Validate a projection document.

    Returns (inclusive, fields) or None when there is nothing to project.
    """
    if not document:
        return None
    included: set[str] = set()
    excluded: set[str] = set()
    for key, flag in document.items():
        if flag in (1, True):
            included.add(key)
        elif flag in (0, False):
            excluded.add(key)
        else:
            raise _invalid(f"invalid projection value for '{key}'")
    # _id is the only field that may be excluded inside an inclusion projection
    if included and excluded - {"_id"}:
        raise _invalid("projection cannot mix inclusion and exclusion")
    if included:
        if "_id" not in excluded:
            included.add("_id")
        return True, frozenset(included)
    return False, frozenset(excluded)


def apply_projection(
    record: dict[str, Any], projection: tuple[bool, frozenset[str]] | None
) -> dict[str, Any]:
    """Keep or drop fields of a serialized record."""
    if projection is None:
        return record
    inclusive, fields = projection
    if inclusive:
        return {key: value for key, value in record.items() if key in fields}
    return {key: value for key, value in record.items() if key not in fields}


@dataclass(frozen=True)
class ListQuery:
    """Parsed list parameters shared by the task and user collections."""

    where: dict[str, Any] | None = None
    sort: dict[str, Any] | None = None
    projection: tuple[bool, frozenset[str]] | None = None
    skip: int | None = None
    limit: int | None = None
    count: bool = False

    @classmethod
    def from_params(
        cls,
        where: str | None = None,
        sort: str | None = None,
        select: str | None = None,
        skip: int | None = None,
        limit: int | None = None,
        count: bool = False,
    ) -> "ListQuery":
        """Parse raw query-string values; skip and limit are validated by the router."""
        return cls(
            where=parse_json_param(where, "where"),
            sort=parse_json_param(sort, "sort"),
            projection=parse_projection(parse_json_param(select, "select")),
            skip=skip,
            limit=limit,
            count=count,
        )

    def statement(self, model: Any, fields: QueryFields) -> Select:
        """Build the SELECT for this query, without projection."""
        stmt = select(model).where(fields.filter_clause(self.where))
        ordering = fields.order_by(self.sort)
        if ordering:
            stmt = stmt.order_by(*ordering)
        if self.skip:
            stmt = stmt.offset(self.skip)
        # limit=0 means "no limit"
        if self.limit:
            stmt = stmt.limit(self.limit)
        return stmt

    def execute(self, db: Session, model: Any, fields: QueryFields) -> list[Any] | int:
        """Run the query, returning records or their count."""
        stmt = self.statement(model, fields)
        if self.count:
            return db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        return list(db.execute(stmt).scalars().all())


__all__ = [
    "ArrayField",
    "INVALID_QUERY_MESSAGE",
    "ListQuery",
    "QueryFields",
    "apply_projection",
    "parse_json_param",
    "parse_projection",
]
