"""Pricing and accumulation of inference usage."""

from dataclasses import dataclass, field
from decimal import Decimal
from functools import reduce

from ingredient_scanner.config import CallPricing
from ingredient_scanner.domain.usage import TokenCounts, UsageRecord

_PER_MILLION = Decimal(1_000_000)


def price_usage(counters: TokenCounts, pricing: CallPricing) -> UsageRecord:
    """Price one call's counters.

    Reasoning tokens are billed at the output rate together with the
    generated tokens.
    """
    billed_output = counters.output_tokens + counters.thought_tokens
    cost = (
        Decimal(counters.prompt_tokens) * pricing.input_rate / _PER_MILLION
        + Decimal(billed_output) * pricing.output_rate / _PER_MILLION
        + Decimal(counters.search_requests) * pricing.search_rate
    )
    return UsageRecord(
        prompt_tokens=counters.prompt_tokens,
        output_tokens=counters.output_tokens,
        thought_tokens=counters.thought_tokens,
        total_tokens=counters.prompt_tokens + billed_output,
        search_requests=counters.search_requests,
        cost=cost,
    )


def combine_all(records: list[UsageRecord]) -> UsageRecord:
    """Combine any number of records."""
    return reduce(UsageRecord.combine, records, UsageRecord.zero())


@dataclass
class UsageAccumulator:
    """Collects the usage of every call made during one scan."""

    records: list[UsageRecord] = field(default_factory=list)

    def add(self, record: UsageRecord) -> None:
        self.records.append(record)

    @property
    def total(self) -> UsageRecord:
        return combine_all(self.records)
