"""Tag registry: free-form tag text to stable tag identities.

Lookups are case-insensitive and :meth:`TagRegistry.add` is idempotent under
case-folding, so ``add("Work")`` followed by ``add("WORK")`` yields one tag.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from uuid import UUID

from .models import Tag

_PLACEHOLDER = "Tag"

DEFAULT_TAGS: tuple[str, ...] = (
    "work",
    "reimbursable",
    "subscription",
    "gift",
    "vacation",
    "business",
    "personal",
    "family",
    "urgent",
    "recurring",
)


def _key(name: str) -> str:
    return " ".join(name.strip().split()).casefold()


class TagRegistry:
    def __init__(self, tags: Iterable[Tag] = ()) -> None:
        self._tags: list[Tag] = []
        for t in tags:
            if self.find(t.name) is None:
                self._tags.append(t)

    @classmethod
    def default(cls) -> TagRegistry:
        return cls(Tag(name=n) for n in DEFAULT_TAGS)

    def __iter__(self) -> Iterator[Tag]:
        return iter(list(self._tags))

    def __len__(self) -> int:
        return len(self._tags)

    @property
    def names(self) -> list[str]:
        return [t.name for t in self._tags]

    def find(self, name: str | None) -> Tag | None:
        if not name or not name.strip():
            return None
        key = _key(name)
        for t in self._tags:
            if _key(t.name) == key:
                return t
        return None

    def tag_id(self, name: str) -> UUID | None:
        t = self.find(name)
        return t.id if t is not None else None

    def name_for(self, tag_id: UUID) -> str:
        for t in self._tags:
            if t.id == tag_id:
                return t.name
        return _PLACEHOLDER

    def add(self, name: str) -> Tag:
        """Return the existing tag for ``name`` or create it.

        A blank name creates (or returns) the placeholder tag ``"Tag"``.
        """

        trimmed = " ".join(name.strip().split()) or _PLACEHOLDER
        existing = self.find(trimmed)
        if existing is not None:
            return existing
        tag = Tag(name=trimmed)
        self._tags.append(tag)
        return tag

    def resolve(self, names: Iterable[str], *, create: bool = False) -> list[UUID]:
        """Map tag names to ids, dropping unknown names unless ``create`` is set.

        Order follows ``names``; repeats collapse to the first occurrence.
        """

        ids: list[UUID] = []
        for name in names:
            if not name or not name.strip():
                continue
            tag = self.add(name) if create else self.find(name)
            if tag is not None and tag.id not in ids:
                ids.append(tag.id)
        return ids


__all__ = ["DEFAULT_TAGS", "TagRegistry"]
