"""Domain models for products, ingredients and compatibility."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID


@dataclass(frozen=True)
class Ingredient:
    """An ingredient with the reason it was classified as it was."""

    name: str
    reason: str


@dataclass(frozen=True)
class IngredientSet:
    """Ingredients grouped by verdict, in model output order."""

    good: tuple[Ingredient, ...] = ()
    okay: tuple[Ingredient, ...] = ()
    bad: tuple[Ingredient, ...] = ()

    def is_empty(self) -> bool:
        return not (self.good or self.okay or self.bad)

    def to_dict(self) -> dict[str, list[dict[str, str]]]:
        return {
            group: [
                {"name": item.name, "reason": item.reason}
                for item in getattr(self, group)
            ]
            for group in ("good", "okay", "bad")
        }

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> "IngredientSet":
        def _group(name: str) -> tuple[Ingredient, ...]:
            raw = payload.get(name) or []
            if not isinstance(raw, list):
                return ()
            return tuple(
                Ingredient(name=str(item["name"]), reason=str(item.get("reason", "")))
                for item in raw
                if isinstance(item, dict) and item.get("name")
            )

        return cls(good=_group("good"), okay=_group("okay"), bad=_group("bad"))


@dataclass(frozen=True)
class ProductDraft:
    """Analysis output that has not been stored yet."""

    product_name: str | None
    brand: str | None
    health_score: int | None
    ingredients: IngredientSet | None
    source: str = "deep_analysis"


@dataclass(frozen=True)
class Product:
    """Canonical product record; never mutated after creation."""

    id: UUID
    product_name: str | None
    brand: str | None
    health_score: int | None
    ingredients: IngredientSet | None
    created_at: datetime
    source: str

    @property
    def display_name(self) -> str:
        parts = [part for part in (self.brand, self.product_name) if part]
        return " ".join(parts) or "Unknown product"


class CompatibilityLevel(StrEnum):
    """How well a product fits a health profile."""

    VERY_HIGH = "VERY_HIGH"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"


@dataclass(frozen=True)
class CompatibilityResult:
    """Personal verdict for one (product, profile) pair."""

    level: CompatibilityLevel
    reason: str


@dataclass(frozen=True)
class HealthProfile:
    """Free-text tags describing a user's dietary needs."""

    diet: frozenset[str] = field(default_factory=frozenset)
    food_allergies: frozenset[str] = field(default_factory=frozenset)
    ingredient_sensitivities: frozenset[str] = field(default_factory=frozenset)
    skin_sensitivities: frozenset[str] = field(default_factory=frozenset)
    health_conditions: frozenset[str] = field(default_factory=frozenset)

    FIELDS = (
        "diet",
        "food_allergies",
        "ingredient_sensitivities",
        "skin_sensitivities",
        "health_conditions",
    )

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in self.FIELDS)

    def to_dict(self) -> dict[str, list[str]]:
        return {name: sorted(getattr(self, name)) for name in self.FIELDS}

    @classmethod
    def from_dict(cls, payload: dict[str, object] | None) -> "HealthProfile":
        if not payload:
            return cls()
        values: dict[str, frozenset[str]] = {}
        for name in cls.FIELDS:
            raw = payload.get(name) or []
            if isinstance(raw, list):
                values[name] = frozenset(
                    str(tag).strip() for tag in raw if str(tag).strip()
                )
        return cls(**values)
