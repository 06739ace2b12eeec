"""Tag resolution with a per-run, case-insensitive cache.

Unknown tag names are created (commit) or dropped (dry run) through the run's
``ImportEffects``; the resolver itself never writes.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

from .effects import ImportEffects
from .models import TagRef, TagResolution

_CHANNEL_MIN = 50
_CHANNEL_MAX = 200


def tag_color(name: str) -> str:
    """Deterministic ``#RRGGBB`` for ``name`` (case-insensitive).

    The first three bytes of SHA-256 over the lower-cased UTF-8 name become the
    red, green and blue channels, each clamped into ``[50, 200]`` so colors stay
    readable on light and dark backgrounds.
    """

    digest = hashlib.sha256(name.lower().encode("utf-8")).digest()
    r, g, b = (min(max(c, _CHANNEL_MIN), _CHANNEL_MAX) for c in digest[:3])
    return f"#{r:02X}{g:02X}{b:02X}"


class TagResolver:
    def __init__(self, existing: Iterable[TagRef], *, user_id: int, effects: ImportEffects) -> None:
        self.user_id = user_id
        self._effects = effects
        self._cache: dict[str, TagRef] = {}
        for tag in existing:
            self._cache.setdefault(tag.name.strip().lower(), tag)

    def lookup(self, name: str) -> TagRef | None:
        return self._cache.get(name.strip().lower())

    def resolve(self, names: Iterable[str]) -> TagResolution:
        """Map ``names`` to tag ids, creating missing tags when committing."""

        tag_ids: list[int] = []
        created: list[str] = []
        missing: list[str] = []
        for name in names:
            tag = self.lookup(name)
            if tag is None:
                tag = self._effects.create_tag(name, self.user_id, tag_color(name))
                if tag is None:
                    missing.append(name)
                    continue
                self._cache[name.strip().lower()] = tag
                created.append(name)
            if tag.id not in tag_ids:
                tag_ids.append(tag.id)
        return TagResolution(tag_ids=tuple(tag_ids), created=tuple(created), missing=tuple(missing))

    def ensure(self, name: str, color: str) -> TagRef | None:
        """Return the tag called ``name``, creating it with a fixed ``color`` if needed."""

        tag = self.lookup(name)
        if tag is not None:
            return tag
        tag = self._effects.create_tag(name, self.user_id, color)
        if tag is not None:
            self._cache[name.strip().lower()] = tag
        return tag


__all__ = ["TagResolver", "tag_color"]
