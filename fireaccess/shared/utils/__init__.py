"""Shared utilities: datetime, generators."""

from fireaccess.shared.utils.datetime import ensure_utc, expires_in, utc_now
from fireaccess.shared.utils.generators import generate_cuid

__all__ = [
    "generate_cuid",
    "utc_now",
    "ensure_utc",
    "expires_in",
]
