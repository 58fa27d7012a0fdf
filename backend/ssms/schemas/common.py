from __future__ import annotations

import re

_LEADING_ALNUM = re.compile(r"^[A-Za-z0-9]")


def clean_required(value: str, field: str, max_length: int) -> str:
    """Strip and length-check a required free-text field."""
    trimmed = value.strip()
    if not trimmed:
        raise ValueError(f"{field} is required")
    if len(trimmed) > max_length:
        raise ValueError(f"{field} must be at most {max_length} characters")
    return trimmed


def starts_alnum(value: str) -> bool:
    return bool(_LEADING_ALNUM.match(value))
