from __future__ import annotations

import hashlib
import re
from typing import Iterable

_ID_SANITIZER = re.compile(r"[^a-z0-9_:\-.]+")


def sanitize_id_part(value: str) -> str:
    """Lowercase ``value`` and strip anything unsafe for an action ID."""

    text = str(value).strip().lower()
    if not text:
        return ""
    text = text.replace(" ", "-").replace("/", "-")
    return _ID_SANITIZER.sub("", text)


def build_action_id(prefix: str, *parts: str) -> str:
    """Return ``prefix-part1-part2-action``, skipping empty parts."""

    cleaned = [p for p in (sanitize_id_part(part) for part in parts) if p]
    base = sanitize_id_part(prefix) or "action"
    if not cleaned:
        return f"{base}-action"
    return f"{base}-{'-'.join(cleaned)}-action"


def digest_parts(values: Iterable[str]) -> str:
    """Order-independent digest, so the same set of values gives the same ID."""

    canonical = "\x00".join(sorted(str(v) for v in values))
    return hashlib.sha256(canonical.encode()).hexdigest()[:12]
