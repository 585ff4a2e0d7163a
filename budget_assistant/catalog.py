"""Category catalog: the closed, ordered set of budget categories.

The catalog owns identity and validation of category names. Every category
name the engine emits downstream is resolved through
:meth:`CategoryCatalog.resolve_name` so it carries the catalog's own spelling.

Exports
-------
- ``CategoryCatalog``: ordered collection with case-insensitive lookups and
  explicit, caller-invoked mutations (add, rename, relimit, move).
- ``normalize_name(...)`` / ``validate_name(...)``: shared name helpers.
- ``DEFAULT_CATEGORIES``: the stock category set used for a fresh budget.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import NamedTuple
from uuid import UUID

from .models import Category

OTHER = "Other"

DEFAULT_CATEGORIES: tuple[tuple[str, Decimal], ...] = (
    ("Groceries", Decimal("400")),
    ("Dining", Decimal("250")),
    ("Travel", Decimal("300")),
    ("Gas", Decimal("150")),
    ("Transit", Decimal("100")),
    ("Entertainment", Decimal("150")),
    ("Online Shopping", Decimal("200")),
    ("Bills", Decimal("400")),
    ("Health", Decimal("120")),
    ("Home", Decimal("200")),
    (OTHER, Decimal("100")),
)

# ---------------------------
# Name normalization/validation
# ---------------------------

_ALLOWED_RE = re.compile(r"^[A-Za-z0-9 &\-/'.]+$")


def normalize_name(name: str) -> str:
    """Return a trimmed, single-spaced ``name``. Case is preserved."""

    return " ".join(name.strip().split())


@dataclass(frozen=True, slots=True)
class NameValidation:
    ok: bool
    reason: str | None = None


def validate_name(name: str, *, min_len: int = 1, max_len: int = 64) -> NameValidation:
    """Validate a category name.

    Rules
    -----
    - Trim whitespace; enforce length bounds 1..64.
    - Allowed characters: letters, numbers, spaces, and ``& - / ' .``.
    """

    n = normalize_name(name)
    if len(n) < min_len:
        return NameValidation(False, "Name cannot be empty")
    if len(n) > max_len:
        return NameValidation(False, f"Name must be at most {max_len} characters")
    if not _ALLOWED_RE.match(n):
        return NameValidation(False, "Only letters, numbers, spaces, and & - / ' . are allowed")
    return NameValidation(True, None)


class AddCategoryResult(NamedTuple):
    category: Category
    created: bool


# ---------------------------
# Catalog
# ---------------------------


class CategoryCatalog:
    """Ordered, case-insensitively unique collection of :class:`Category`.

    Iteration order is the display order and doubles as the fallback order
    (the first entry is used when no ``"Other"`` category exists).
    """

    def __init__(self, categories: Iterable[Category] = ()) -> None:
        self._items: list[Category] = []
        for cat in categories:
            if self.find(cat.name) is not None:
                raise ValueError(f"duplicate category name: {cat.name!r}")
            self._items.append(cat)

    @classmethod
    def default(cls) -> CategoryCatalog:
        return cls(Category(name=n, limit=lim) for n, lim in DEFAULT_CATEGORIES)

    # ---- read side ---------------------------------------------------------

    def __iter__(self) -> Iterator[Category]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.find(name) is not None

    def __repr__(self) -> str:
        return f"CategoryCatalog({self.names!r})"

    @property
    def names(self) -> list[str]:
        return [c.name for c in self._items]

    def find(self, name: str | None) -> Category | None:
        """Return the category whose name matches ``name`` case-insensitively."""

        if not name:
            return None
        key = normalize_name(name).casefold()
        for cat in self._items:
            if cat.name.casefold() == key:
                return cat
        return None

    def get(self, category_id: UUID | None) -> Category | None:
        if category_id is None:
            return None
        for cat in self._items:
            if cat.id == category_id:
                return cat
        return None

    def resolve_name(self, name: str | None) -> str | None:
        """Return the catalog spelling of ``name`` or ``None`` when absent."""

        cat = self.find(name)
        return cat.name if cat is not None else None

    def fallback(self) -> Category | None:
        """Return ``"Other"`` when present, else the first entry, else ``None``."""

        return self.find(OTHER) or (self._items[0] if self._items else None)

    def fallback_name(self) -> str:
        cat = self.fallback()
        return cat.name if cat is not None else OTHER

    def name_for(self, category_id: UUID | None) -> str:
        cat = self.get(category_id)
        return cat.name if cat is not None else "Uncategorized"

    # ---- write side --------------------------------------------------------

    def add(self, name: str, limit: Decimal | int | str = Decimal("0")) -> AddCategoryResult:
        """Add a category; an existing case-insensitive match is returned as-is."""

        n = normalize_name(name)
        v = validate_name(n)
        if not v.ok:
            raise ValueError(f"Invalid category name: {v.reason}")
        existing = self.find(n)
        if existing is not None:
            return AddCategoryResult(existing, False)
        cat = Category(name=n, limit=Decimal(str(limit)))
        self._items.append(cat)
        return AddCategoryResult(cat, True)

    def rename(self, category_id: UUID, new_name: str) -> Category:
        n = normalize_name(new_name)
        v = validate_name(n)
        if not v.ok:
            raise ValueError(f"Invalid category name: {v.reason}")
        pos = self._index_of(category_id)
        clash = self.find(n)
        if clash is not None and clash.id != category_id:
            raise ValueError(f"Category name {n!r} already exists")
        updated = replace(self._items[pos], name=n)
        self._items[pos] = updated
        return updated

    def relimit(self, category_id: UUID, limit: Decimal | int | str) -> Category:
        pos = self._index_of(category_id)
        updated = replace(self._items[pos], limit=Decimal(str(limit)))
        self._items[pos] = updated
        return updated

    def move(self, from_index: int, to_index: int) -> None:
        """Move the entry at ``from_index`` so it ends up at ``to_index``."""

        if not 0 <= from_index < len(self._items):
            raise IndexError(f"from_index out of range: {from_index}")
        item = self._items.pop(from_index)
        to_index = max(0, min(to_index, len(self._items)))
        self._items.insert(to_index, item)

    def _index_of(self, category_id: UUID) -> int:
        for pos, cat in enumerate(self._items):
            if cat.id == category_id:
                return pos
        raise KeyError(f"unknown category id: {category_id}")


__all__ = [
    "OTHER",
    "DEFAULT_CATEGORIES",
    "normalize_name",
    "validate_name",
    "NameValidation",
    "AddCategoryResult",
    "CategoryCatalog",
]
