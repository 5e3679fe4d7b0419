"""Read-site coercion helpers for schema-on-read records.

Uploaded spreadsheets carry whatever columns and cell types the user
produced, so every field read goes through one of these helpers and each
helper defines its own fallback for missing or malformed cells.
"""

from __future__ import annotations

import math
from typing import Any, Optional

from backend.domain.models import ID_FIELDS, Record


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, float) and math.isnan(value)


def coerce_text(value: Any) -> str:
    """Render a cell as text; missing cells become an empty string."""
    if _is_missing(value):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        # Spreadsheet readers widen integer columns with blanks to float.
        return str(int(value))
    return str(value)


def coerce_number(value: Any) -> Optional[float]:
    """Return the cell as a finite float, or None when it is not numeric."""
    if _is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def split_tokens(value: Any) -> list[str]:
    """Split a comma-separated cell into trimmed, non-empty tokens."""
    tokens = []
    for raw in coerce_text(value).split(","):
        token = raw.strip()
        if token:
            tokens.append(token)
    return tokens


def record_identifier(record: Record) -> str:
    """First non-empty identifier column of a row, as used for cell lookups."""
    for field in ID_FIELDS:
        text = coerce_text(record.get(field))
        if text:
            return text
    return ""
