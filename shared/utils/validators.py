"""
Shared validators and normalizers for user-supplied input.
"""

import re
import unicodedata
from datetime import datetime
from urllib.parse import urlparse
from typing import Optional

# Internal hosts that must never appear in product image URLs (SSRF prevention)
BLOCKED_HOSTS = [
    "localhost",
    "127.0.0.1",
    "0.0.0.0",
    "10.",
    "192.168.",
    "169.254.",
    "[::1]",
    "metadata.google",
]

BLOCKED_SCHEMES = {"javascript", "data", "file", "ftp", "mailto", "tel"}

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def validate_image_url(url: Optional[str]) -> Optional[str]:
    """
    Validate and sanitize a product image URL.

    Returns:
        The validated URL or None if empty

    Raises:
        ValueError: If the URL is invalid or points to an internal host
    """
    if url is None:
        return None

    url = url.strip()
    if not url:
        return None

    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    if scheme in BLOCKED_SCHEMES:
        raise ValueError(f"Esquema de URL no permitido: {scheme}")
    if scheme not in ("http", "https"):
        raise ValueError("Solo se permiten URLs HTTP/HTTPS")

    host = parsed.netloc.lower()
    if not host:
        raise ValueError("URL sin host válido")
    for blocked in BLOCKED_HOSTS:
        if host.startswith(blocked):
            raise ValueError("URL interna no permitida")

    if len(url) > 2048:
        raise ValueError("URL demasiado larga (máximo 2048 caracteres)")

    return url


def normalize_table_label(label: str | None) -> str:
    """
    Normalize a table identifier for accent and case insensitive matching.

    "Mesa Jardín 3 " and "mesa jardin 3" both become "mesa jardin 3".
    """
    if not label:
        return ""
    decomposed = unicodedata.normalize("NFD", label)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return stripped.strip().lower()


def slugify(value: str) -> str:
    """Build a URL slug from a restaurant or branch name."""
    normalized = normalize_table_label(value)
    slug = re.sub(r"[^a-z0-9]+", "-", normalized).strip("-")
    return slug or "restaurante"


def parse_month(value: str) -> tuple[datetime, datetime]:
    """
    Parse a "YYYY-MM" month filter into a [start, end) datetime range.

    Raises:
        ValueError: If the value is not a valid month
    """
    if not MONTH_PATTERN.match(value or ""):
        raise ValueError("Formato de mes inválido. Use YYYY-MM")
    year, month = (int(part) for part in value.split("-"))
    start = datetime(year, month, 1)
    if month == 12:
        end = datetime(year + 1, 1, 1)
    else:
        end = datetime(year, month + 1, 1)
    return start, end

