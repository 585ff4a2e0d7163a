"""Merchant memory: normalized merchant name -> category name.

Recurring merchants short-circuit classification. Keys are
``merchant.strip().lower()``; an empty key is never stored.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from .logging_setup import get_logger

logger = get_logger(__name__)


def normalize_merchant(merchant: str | None) -> str:
    return (merchant or "").strip().lower()


class MerchantMemory(Mapping[str, str]):
    """Read-only :class:`~collections.abc.Mapping` plus explicit writes.

    The mapping view (``memory[key]``, ``memory.get(key)``) expects already
    normalized keys; :meth:`lookup` and :meth:`remember` normalize for you.
    """

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = {}
        for merchant, category in (entries or {}).items():
            self.remember(merchant, category)

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MerchantMemory({self._data!r})"

    def lookup(self, merchant: str | None) -> str | None:
        key = normalize_merchant(merchant)
        if not key:
            return None
        return self._data.get(key)

    def remember(self, merchant: str | None, category_name: str) -> bool:
        """Store ``merchant -> category_name``. Returns ``False`` for a blank merchant."""

        key = normalize_merchant(merchant)
        if not key or not category_name or not category_name.strip():
            return False
        self._data[key] = category_name.strip()
        logger.debug("remembered merchant %r -> %r", key, category_name)
        return True

    def forget(self, merchant: str | None) -> bool:
        return self._data.pop(normalize_merchant(merchant), None) is not None

    def as_dict(self) -> dict[str, str]:
        return dict(self._data)


__all__ = ["MerchantMemory", "normalize_merchant"]
