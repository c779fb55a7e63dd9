"""Front-door query validation and normalisation.

The pipeline treats queries as opaque cache keys; normalising them before
they enter it is the caller's job.  Both the HTTP ``/search`` route and the
CLI ``search`` command go through :func:`normalize_query`, so "São Paulo, BR"
and "são  paulo br" share one cache entry whichever way they arrive.
"""

from __future__ import annotations

import re

from gittrends_geocoder.utils.errors import InvalidQueryError

MAX_QUERY_LENGTH = 500

_NORMALIZE_COMMA = re.compile(r",")
_NORMALIZE_WHITESPACE = re.compile(r"\s+")
# Letters and digits in any script, whitespace and ,.'"-()/:&
_ALLOWED_QUERY = re.compile(r"^(?:[^\W_]|[\s,.'\"\-()/:&])+$")


def normalize_query(raw: str, field: str = "q") -> str:
    """Validate and normalise a raw location query.

    Lower-cases, trims, drops commas and collapses whitespace.

    Raises
    ------
    InvalidQueryError
        When the query is empty, too long, contains a URL or characters
        outside the allowed set.
    """
    if len(raw) < 1 or len(raw) > MAX_QUERY_LENGTH:
        raise InvalidQueryError(field, raw, f"must be between 1 and {MAX_QUERY_LENGTH} characters")

    normalized = _NORMALIZE_COMMA.sub("", raw.lower().strip())
    normalized = _NORMALIZE_WHITESPACE.sub(" ", normalized).strip()

    if not normalized:
        raise InvalidQueryError(field, raw, "must contain a non-empty address after normalization")
    if "http://" in normalized or "https://" in normalized:
        raise InvalidQueryError(field, raw, "must not contain URLs")
    if not _ALLOWED_QUERY.match(normalized):
        raise InvalidQueryError(field, raw, "contains invalid characters")
    return normalized
