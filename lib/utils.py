# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application:
# - Timestamps (UTC now, ISO parsing for PostgREST values)
# - Slugs and usernames
# - Pagination ranges
# - Safe lookups in provider payloads
# =============================================================================

import re
import unicodedata
from datetime import datetime, timezone
from typing import Any


# =============================================================================
# Time Utilities
# =============================================================================

def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """
    Parse a PostgREST timestamp into an aware datetime.

    PostgREST returns ISO 8601 strings, sometimes with a trailing "Z" and
    sometimes without an offset at all (timestamp without time zone).
    Naive values are treated as UTC.

    Args:
        value: ISO string, datetime, or None

    Returns:
        Aware datetime, or None when value is empty

    Example:
        parse_timestamp("2025-05-17T16:30:00Z")  # 2025-05-17 16:30:00+00:00
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_iso(value: datetime | None) -> str | None:
    """Serialize a datetime for PostgREST."""
    return value.isoformat() if value else None


# =============================================================================
# Text Utilities
# =============================================================================

def slugify(text: str) -> str:
    """
    Build a URL slug from a display name.

    Accents are stripped, everything is lower-cased and runs of
    non-alphanumerics become a single hyphen.

    Example:
        slugify("Convites de Aniversário")  # "convites-de-aniversario"
    """
    normalized = unicodedata.normalize("NFKD", text)
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text.lower())
    return slug.strip("-")


def username_from_email(email: str) -> str:
    """
    Derive a username from the local part of an e-mail address.

    Example:
        username_from_email("ana.souza+kdg@gmail.com")  # "anasouzakdg"
    """
    local_part = email.split("@", 1)[0]
    username = re.sub(r"[^a-zA-Z0-9]", "", local_part).lower()
    return username or "usuario"


# =============================================================================
# Pagination
# =============================================================================

def page_range(page: int, limit: int) -> tuple[int, int]:
    """
    Convert 1-based page/limit into an inclusive PostgREST range.

    Example:
        page_range(2, 20)  # (20, 39)
    """
    page = max(page, 1)
    start = (page - 1) * limit
    return start, start + limit - 1


# =============================================================================
# Payload Utilities
# =============================================================================

def dig(data: Any, *path: str | int) -> Any:
    """
    Follow keys (and list indexes) through a decoded JSON document.

    Returns None as soon as a level is missing or has the wrong shape, so
    provider payloads with unexpected types never raise.

    Example:
        dig({"items": [{"offer": "X"}]}, "items", 0, "offer")  # "X"
        dig({"transaction": "TX1"}, "transaction", "code")       # None
    """
    for key in path:
        if isinstance(key, int):
            if not isinstance(data, list) or not -len(data) <= key < len(data):
                return None
            data = data[key]
        elif isinstance(data, dict):
            data = data.get(key)
        else:
            return None
    return data


def text_value(value: Any) -> str | None:
    """
    A payload scalar as text; objects, lists and booleans become None.

    Example:
        text_value(123)          # "123"
        text_value({"a": 1})     # None
    """
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    text = str(value).strip()
    return text or None
