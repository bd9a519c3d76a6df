"""
Change feed filter expressions.

A subscription names a table and one or more equality filters of the form
``column=eq.value``. Several filters combine with OR.

    parse_filter("messages", "channel_id=eq.6f1c...")  -> EqualityFilter
    parse_filter("messages", "")                       -> None (no subscription)
    parse_filter("messages", "content=eq.hi")          -> InvalidFilterError

Every routed column is a UUID foreign key, so values are validated and
normalized as UUIDs; the normalized value is also what rows carry once
serialized.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from core.exceptions import ValidationError
from realtime.changefeed import ROUTED_COLUMNS, group_name

FILTER_PATTERN = re.compile(r"^(?P<column>[a-z_][a-z0-9_]*)=(?P<operator>[a-z]+)\.(?P<value>.+)$")


class InvalidFilterError(ValidationError):
    """Raised for malformed filters, unknown tables and unroutable columns."""

    default_error_code = "INVALID_FILTER"


@dataclass(frozen=True)
class EqualityFilter:
    """``column = value`` on one table."""

    table: str
    column: str
    value: str

    @property
    def group_name(self) -> str:
        return group_name(self.table, self.column, self.value)

    def matches(self, row: dict[str, Any]) -> bool:
        """Check a storage-keyed row."""
        value = row.get(self.column)
        return value is not None and str(value) == self.value

    def __str__(self) -> str:
        return f"{self.column}=eq.{self.value}"


def validate_table(table: str | None) -> str:
    if table not in ROUTED_COLUMNS:
        raise InvalidFilterError(
            f"Unknown table '{table}'",
            error_code="UNKNOWN_TABLE",
            details={"table": table},
        )
    return table


def parse_filter(table: str, expression: str | None) -> EqualityFilter | None:
    """
    Parse one filter expression.

    Returns:
        EqualityFilter, or None for a missing or blank expression

    Raises:
        InvalidFilterError: Unknown table, bad syntax, unsupported operator,
            unroutable column or a value that is not a UUID
    """
    validate_table(table)
    if expression is None or not str(expression).strip():
        return None

    expression = str(expression).strip()
    match = FILTER_PATTERN.match(expression)
    if match is None:
        raise InvalidFilterError(
            "Filter must look like column=eq.value",
            details={"filter": expression},
        )

    column, operator, value = match.group("column", "operator", "value")
    if operator != "eq":
        raise InvalidFilterError(
            f"Unsupported filter operator '{operator}'",
            error_code="UNSUPPORTED_OPERATOR",
            details={"filter": expression},
        )
    if column not in ROUTED_COLUMNS[table]:
        raise InvalidFilterError(
            f"Column '{column}' of '{table}' cannot be filtered",
            error_code="UNROUTABLE_COLUMN",
            details={"table": table, "column": column},
        )

    try:
        value = str(uuid.UUID(value))
    except ValueError:
        raise InvalidFilterError(
            f"Filter value for '{column}' must be a UUID",
            details={"filter": expression},
        ) from None

    return EqualityFilter(table=table, column=column, value=value)


def parse_filters(
    table: str,
    expressions: str | Iterable[str | None] | None,
) -> list[EqualityFilter]:
    """
    Parse a single expression or a list combined with OR.

    Blank expressions are skipped and duplicates collapsed, so the result
    may be empty.
    """
    if expressions is None or isinstance(expressions, str):
        expressions = [expressions]

    parsed: dict[str, EqualityFilter] = {}
    for expression in expressions:
        equality = parse_filter(table, expression)
        if equality is not None:
            parsed.setdefault(equality.group_name, equality)
    return list(parsed.values())
