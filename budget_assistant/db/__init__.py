"""db: SQLAlchemy storage for ``budget_assistant``.

Public exports
--------------
- ``Base`` and ``metadata`` for schema creation
- ORM models in ``budget_assistant.db.models`` (re-exported for convenience)
- Engine/session helpers in ``budget_assistant.db.client``
"""

from __future__ import annotations

from .models import (
    Base,
    BaBudget,
    BaCategory,
    BaInstrument,
    BaMerchantMemory,
    BaPurchase,
    BaTag,
)

metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "BaCategory",
    "BaTag",
    "BaInstrument",
    "BaMerchantMemory",
    "BaBudget",
    "BaPurchase",
]
