"""Application DTOs (no dependency on transport payloads)."""

from fireaccess.application.dtos.auth import AuthUser, Session
from fireaccess.application.dtos.query import (
    Limit,
    OrderBy,
    QueryConstraint,
    Where,
    coerce_constraints,
)

__all__ = [
    "AuthUser",
    "Session",
    "Limit",
    "OrderBy",
    "QueryConstraint",
    "Where",
    "coerce_constraints",
]
