"""Structured outputs returned by the inference service."""

from pydantic import BaseModel, Field

from ingredient_scanner.domain.products import (
    CompatibilityLevel,
    CompatibilityResult,
    HealthProfile,
    Ingredient,
    IngredientSet,
)


class ExtractionReply(BaseModel):
    """Cheap identification of the photographed item."""

    is_product: bool
    rejection_reason: str | None = None
    product_name: str | None = None
    brand: str | None = None


class IngredientReply(BaseModel):
    """Single classified ingredient."""

    name: str
    reason: str


class IngredientGroupsReply(BaseModel):
    """Ingredients grouped by verdict."""

    good: list[IngredientReply] = Field(default_factory=list)
    okay: list[IngredientReply] = Field(default_factory=list)
    bad: list[IngredientReply] = Field(default_factory=list)

    def to_ingredient_set(self) -> IngredientSet:
        return IngredientSet(
            good=tuple(Ingredient(item.name, item.reason) for item in self.good),
            okay=tuple(Ingredient(item.name, item.reason) for item in self.okay),
            bad=tuple(Ingredient(item.name, item.reason) for item in self.bad),
        )


class DeepAnalysisReply(BaseModel):
    """Full, search-augmented analysis of a product."""

    is_product: bool
    rejection_reason: str | None = None
    product_name: str | None = None
    brand: str | None = None
    health_score: int | None = Field(default=None, ge=0, le=100)
    ingredients: IngredientGroupsReply | None = None


class CompatibilityReply(BaseModel):
    """Personal compatibility verdict."""

    compatibility_level: CompatibilityLevel
    reason: str

    def to_result(self) -> CompatibilityResult:
        return CompatibilityResult(level=self.compatibility_level, reason=self.reason)


class ProfileReply(BaseModel):
    """Health profile tags extracted from a free-text answer."""

    diet: list[str] = Field(default_factory=list)
    food_allergies: list[str] = Field(default_factory=list)
    ingredient_sensitivities: list[str] = Field(default_factory=list)
    skin_sensitivities: list[str] = Field(default_factory=list)
    health_conditions: list[str] = Field(default_factory=list)

    def to_profile(self) -> HealthProfile:
        return HealthProfile.from_dict(self.model_dump())
