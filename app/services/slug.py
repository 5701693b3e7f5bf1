"""Room slug generation.

``slugify`` is deterministic; uniqueness is decided by the ``rooms.slug``
unique constraint, with ``candidate_slugs`` supplying the retry sequence.
"""

import itertools
import re
from typing import Iterator

FALLBACK_SLUG = "room"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    slug = _NON_ALNUM.sub("-", (name or "").lower()).strip("-")
    return slug or FALLBACK_SLUG


def candidate_slugs(base: str, limit: int | None = None) -> Iterator[str]:
    """Yield ``base``, ``base-1``, ``base-2``, ... (at most ``limit`` values)."""
    counter = itertools.count(1)
    candidates = itertools.chain([base], (f"{base}-{n}" for n in counter))
    if limit is not None:
        candidates = itertools.islice(candidates, limit)
    return candidates
