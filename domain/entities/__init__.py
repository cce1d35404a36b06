"""Domain entities for the LoreSearch system."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Category(str, Enum):
    """Closed classification of lore entries. ``ANY`` is only valid in queries."""

    ANY = "any"
    CHARACTER = "character"
    LOCATION = "location"
    CREATURE = "creature"
    ITEM = "item"
    EVENT = "event"
    ORGANIZATION = "organization"
    DEITY = "deity"
    SPELL = "spell"
    GENERAL = "general"

    @classmethod
    def parse(cls, value: Category | str | None) -> Category:
        """Return the category named by ``value``; ``None`` and ``""`` mean ``ANY``."""
        if value is None:
            return cls.ANY
        if isinstance(value, Category):
            return value
        normalized = value.strip().lower()
        if not normalized:
            return cls.ANY
        try:
            return cls(normalized)
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown category '{value}'. Allowed: {allowed}.") from exc


# Ordered: the first matching rule wins.
_CATEGORY_RULES: tuple[tuple[tuple[str, ...], Category], ...] = (
    (("person", "character"), Category.CHARACTER),
    (("place", "city", "region"), Category.LOCATION),
    (("creature", "monster", "race"), Category.CREATURE),
    (("weapon", "artifact", "magic item"), Category.ITEM),
    (("battle", "war", "event"), Category.EVENT),
    (("guild", "order", "faction"), Category.ORGANIZATION),
    (("god", "deity"), Category.DEITY),
    (("spell", "magic"), Category.SPELL),
)


def normalize_category(raw_type: str | None) -> Category:
    """Map free-form source vocabulary onto a storable category."""
    text = (raw_type or "").strip().lower()
    if not text:
        return Category.GENERAL
    for keywords, category in _CATEGORY_RULES:
        if any(keyword in text for keyword in keywords):
            return category
    try:
        category = Category(text)
    except ValueError:
        return Category.GENERAL
    return Category.GENERAL if category is Category.ANY else category


@dataclass(slots=True, frozen=True)
class LoreDocument:
    """A lore entry as written to the vector index."""

    id: str
    text: str
    title: str
    category: Category = Category.GENERAL
    aliases: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    source_url: str | None = None

    def __post_init__(self) -> None:
        if not self.text:
            raise ValueError(f"Lore document '{self.id}' has empty text.")
        if self.category is Category.ANY:
            raise ValueError(f"Lore document '{self.id}' cannot be stored with category 'any'.")


@dataclass(slots=True)
class LoreResult:
    """A lore entry returned for a query, with its derived relevance."""

    text: str
    title: str
    category: Category
    relevance: float
    source_url: str | None = None


@dataclass(slots=True)
class LoreContext:
    """Bounded-length text block assembled from ranked results."""

    text: str = ""
    sources: list[str] = field(default_factory=list)

    @property
    def source_count(self) -> int:
        return len(self.sources)

    @classmethod
    def empty(cls) -> LoreContext:
        return cls()


@dataclass(slots=True)
class IndexRecord:
    """A row handed to a vector index for upsert."""

    id: str
    vector: list[float]
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class IndexHit:
    """A row returned by a vector index, nearest first."""

    id: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    distance: float = 0.0


__all__ = [
    "Category",
    "normalize_category",
    "LoreDocument",
    "LoreResult",
    "LoreContext",
    "IndexRecord",
    "IndexHit",
]
