"""Shared utilities (datetime, ID generation)."""

from datalayer.shared.utils.datetime import (
    ensure_utc,
    format_rfc3339,
    parse_datetime,
    utc_now,
)
from datalayer.shared.utils.generators import generate_cuid

__all__ = ["ensure_utc", "format_rfc3339", "generate_cuid", "parse_datetime", "utc_now"]
