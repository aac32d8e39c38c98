"""Token usage and cost accounting models."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum

COST_PRECISION = Decimal("0.000001")


class CallKind(StrEnum):
    """Kinds of inference calls, each priced independently."""

    EXTRACTION = "extraction"
    DEEP_ANALYSIS = "deep_analysis"
    COMPATIBILITY = "compatibility"
    PROFILE = "profile"


@dataclass(frozen=True)
class TokenCounts:
    """Raw counters reported by the inference service for one call."""

    prompt_tokens: int = 0
    output_tokens: int = 0
    thought_tokens: int = 0
    search_requests: int = 0


@dataclass(frozen=True)
class UsageRecord:
    """Priced usage of one or more inference calls.

    Records form a commutative monoid under ``combine`` with ``zero()`` as
    the identity. Costs are kept exact and only rounded by ``rounded()``.
    """

    prompt_tokens: int = 0
    output_tokens: int = 0
    thought_tokens: int = 0
    total_tokens: int = 0
    search_requests: int = 0
    cost: Decimal = Decimal(0)

    @classmethod
    def zero(cls) -> "UsageRecord":
        """Return the identity record."""
        return cls()

    def combine(self, other: "UsageRecord") -> "UsageRecord":
        """Return the field-wise sum of two records."""
        return UsageRecord(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            thought_tokens=self.thought_tokens + other.thought_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            search_requests=self.search_requests + other.search_requests,
            cost=self.cost + other.cost,
        )

    __add__ = combine

    def rounded(self) -> "UsageRecord":
        """Return a copy with cost rounded to currency precision."""
        return UsageRecord(
            prompt_tokens=self.prompt_tokens,
            output_tokens=self.output_tokens,
            thought_tokens=self.thought_tokens,
            total_tokens=self.total_tokens,
            search_requests=self.search_requests,
            cost=self.cost.quantize(COST_PRECISION, rounding=ROUND_HALF_UP),
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize for persistence and logs."""
        return {
            "prompt_tokens": self.prompt_tokens,
            "output_tokens": self.output_tokens,
            "thought_tokens": self.thought_tokens,
            "total_tokens": self.total_tokens,
            "search_requests": self.search_requests,
            "cost": str(self.cost),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> "UsageRecord":
        """Deserialize a persisted record."""
        return cls(
            prompt_tokens=int(payload.get("prompt_tokens", 0)),
            output_tokens=int(payload.get("output_tokens", 0)),
            thought_tokens=int(payload.get("thought_tokens", 0)),
            total_tokens=int(payload.get("total_tokens", 0)),
            search_requests=int(payload.get("search_requests", 0)),
            cost=Decimal(str(payload.get("cost", "0"))),
        )
