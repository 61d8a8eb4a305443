"""Durable spec identity: UUID v4 generation and body markers.

A remote record is bound to a local spec through a hidden HTML comment at
the top of its body::

    <!-- spec_id: 550e8400-e29b-41d4-a716-446655440000 -->

Platform ids (issue numbers, ticket ids) are not portable between clones
or forks, so the marker is the authoritative link.  All helpers are pure
functions with no I/O.
"""

import re
import uuid

_V4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_MARKER_PATTERN = re.compile(
    r"<!--\s*spec_id:\s*([a-f0-9-]{36})\s*-->", re.IGNORECASE
)
# A marker takes the rest of its line and the blank lines directly below it
_MARKER_LINE = re.compile(
    r"<!--\s*spec_id:\s*[a-f0-9-]{36}\s*-->"
    r"[ \t]*(?:\r?\n)?(?:[ \t]*\r?\n)*",
    re.IGNORECASE,
)
_LEADING_BLANK_LINES = re.compile(r"\A(?:[ \t]*\r?\n)+")


def generate() -> str:
    """Return a new random (version 4) UUID string."""
    return str(uuid.uuid4())


def is_valid(value: object) -> bool:
    """True when *value* is a v4 UUID string (case-insensitive)."""
    return isinstance(value, str) and bool(_V4_PATTERN.match(value))


def marker(spec_id: str) -> str:
    return f"<!-- spec_id: {spec_id} -->"


def strip(body: str) -> str:
    """Remove every spec_id marker and trim the body's outer blank lines.

    Blank lines inside the body are left alone; only those directly
    below a removed marker go with it.  Indentation of the first line is
    kept.
    """
    if not body:
        return ""
    cleaned = _MARKER_LINE.sub("", body)
    return _LEADING_BLANK_LINES.sub("", cleaned).rstrip()


def embed(body: str, spec_id: str) -> str:
    """Prefix *body* with the marker for *spec_id*.

    Any marker already present is removed first, so the result always
    holds exactly one.

    Raises:
        ValueError: If *spec_id* is not a valid v4 UUID.
    """
    if not is_valid(spec_id):
        raise ValueError(f"Invalid UUID format: {spec_id}")
    clean = strip(body)
    if not clean:
        return marker(spec_id)
    return f"{marker(spec_id)}\n\n{clean}"


def extract(body: str | None) -> str | None:
    """Return the first well-formed v4 UUID marker in *body*, or None."""
    if not body:
        return None
    for match in _MARKER_PATTERN.finditer(body):
        candidate = match.group(1)
        if is_valid(candidate):
            return candidate.lower()
    return None


def has_marker(body: str | None) -> bool:
    return extract(body) is not None
