"""Domain models for the per-user scan ledger."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ingredient_scanner.domain.products import CompatibilityResult
from ingredient_scanner.domain.usage import UsageRecord


@dataclass(frozen=True)
class ScanRecord:
    """One user interaction; append-only."""

    scanned_at: datetime
    product_id: UUID | None
    cache_hit: bool
    compatibility: CompatibilityResult | None
    usage: UsageRecord


@dataclass(frozen=True)
class UserTotals:
    """Running totals across all of a user's scans."""

    scan_count: int = 0
    cumulative_cost: Decimal = Decimal(0)

    def add(self, record: ScanRecord) -> "UserTotals":
        return UserTotals(
            scan_count=self.scan_count + 1,
            cumulative_cost=self.cumulative_cost + record.usage.rounded().cost,
        )
