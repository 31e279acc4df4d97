"""Lenient coercion of JSON payload values into store column types."""

import json
import logging
import math
from typing import Any, Optional

logger = logging.getLogger(__name__)


def ensure_number(value: Any) -> Optional[float]:
    """Number or numeric string to float; anything else to None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else value
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def ensure_int(value: Any) -> Optional[int]:
    """Truncating int conversion; None when not numeric."""
    number = ensure_number(value)
    if number is None or math.isinf(number):
        return None
    return int(number)


def ensure_json(value: Any) -> Any:
    """
    Objects pass through, JSON strings are parsed, everything else is None.

    Supabase can hand jsonb columns back as strings, so readers use this too.
    """
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return value
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            logger.warning(f"Failed to parse JSON value ({len(value)} chars)")
            return None
    return None


def ensure_list(value: Any) -> list:
    parsed = ensure_json(value)
    return parsed if isinstance(parsed, list) else []


def ensure_dict(value: Any) -> dict:
    parsed = ensure_json(value)
    return parsed if isinstance(parsed, dict) else {}


def clean_str(value: Any) -> Optional[str]:
    """Trimmed string, or None for empty/missing."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
