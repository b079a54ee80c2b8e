"""Input normalization utilities."""

import re
from collections.abc import Iterable

# Emails may be separated by commas, semicolons or whitespace
EMAIL_SEPARATORS = re.compile(r"[,\s;]+")


def _dedupe(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def normalize_emails(value: str | Iterable[str] | None) -> list[str]:
    """
    Normalize recipient emails.

    Accepts a delimited string or an iterable. Returns trimmed, lower-cased,
    de-duplicated addresses in first-seen order.
    """
    if value is None:
        return []
    if isinstance(value, str):
        parts = EMAIL_SEPARATORS.split(value)
    else:
        parts = [str(item or "") for item in value]
    return _dedupe(part.strip().lower() for part in parts)


def parse_id_list(value: str | Iterable[str] | None) -> list[str]:
    """
    Parse document ids from a comma-separated string or an iterable.

    Blank entries are dropped; order is kept and duplicates removed.
    """
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(",")
    else:
        parts = [str(item or "") for item in value]
    return _dedupe(part.strip() for part in parts)
