"""Query constraints accepted by the document services.

Filters compose conjunctively. Plain ``(field, op, value)`` tuples are
accepted wherever a Where is.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Where:
    """Field filter, e.g. Where("age", ">=", 18)."""

    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class OrderBy:
    """Ordering passed through to the store ("asc"/"desc" or ASCENDING/DESCENDING)."""

    field: str
    direction: str = "ASCENDING"


@dataclass(frozen=True)
class Limit:
    """Maximum number of results passed through to the store."""

    count: int


QueryConstraint = Union[Where, OrderBy, Limit, tuple]


def coerce_constraints(constraints: Iterable[Any]) -> list[Where | OrderBy | Limit]:
    """Normalize constraints; raises ValueError for anything malformed."""
    result: list[Where | OrderBy | Limit] = []
    for constraint in constraints:
        if isinstance(constraint, (Where, OrderBy, Limit)):
            result.append(constraint)
        elif isinstance(constraint, (tuple, list)) and len(constraint) == 3:
            result.append(Where(*constraint))
        else:
            raise ValueError(f"Malformed query constraint: {constraint!r}")
    return result
