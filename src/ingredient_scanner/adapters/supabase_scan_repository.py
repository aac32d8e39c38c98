"""Supabase repository for the scan ledger."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from ingredient_scanner.domain.products import CompatibilityLevel, CompatibilityResult
from ingredient_scanner.domain.scans import ScanRecord, UserTotals
from ingredient_scanner.domain.usage import UsageRecord
from ingredient_scanner.errors import PersistenceError
from ingredient_scanner.services.scans import ScanRepository


@dataclass
class SupabaseScanRepository(ScanRepository):
    """Supabase implementation for scans and user totals."""

    client: Client

    def append_scan(self, user_id: UUID, record: ScanRecord) -> None:
        """Insert a scan row."""
        usage = record.usage.rounded()
        try:
            self.client.table("scans").insert(
                {
                    "user_id": str(user_id),
                    "scanned_at": record.scanned_at.isoformat(),
                    "product_id": str(record.product_id) if record.product_id else None,
                    "cache_hit": record.cache_hit,
                    "compatibility_level": record.compatibility.level.value
                    if record.compatibility
                    else None,
                    "compatibility_reason": record.compatibility.reason
                    if record.compatibility
                    else None,
                    "usage_json": usage.to_dict(),
                    "cost": str(usage.cost),
                }
            ).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise PersistenceError(f"Failed to record scan for user {user_id}") from exc

    def list_recent_scans(self, user_id: UUID, limit: int) -> list[ScanRecord]:
        """Return the user's most recent scans."""
        response = (
            self.client.table("scans")
            .select(
                "scanned_at, product_id, cache_hit, compatibility_level, "
                "compatibility_reason, usage_json"
            )
            .eq("user_id", str(user_id))
            .order("scanned_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [_parse_scan(row) for row in response.data or []]

    def get_totals(self, user_id: UUID) -> UserTotals | None:
        """Return the user's running totals."""
        response = (
            self.client.table("user_totals")
            .select("scan_count, cumulative_cost")
            .eq("user_id", str(user_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return UserTotals(
            scan_count=int(row.get("scan_count", 0)),
            cumulative_cost=Decimal(str(row.get("cumulative_cost", "0"))),
        )

    def save_totals(self, user_id: UUID, totals: UserTotals) -> None:
        """Upsert the user's running totals."""
        try:
            self.client.table("user_totals").upsert(
                {
                    "user_id": str(user_id),
                    "scan_count": totals.scan_count,
                    "cumulative_cost": str(totals.cumulative_cost),
                },
                on_conflict="user_id",
            ).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise PersistenceError(f"Failed to save totals for user {user_id}") from exc


def _parse_scan(row: dict[str, object]) -> ScanRecord:
    level = row.get("compatibility_level")
    compatibility = (
        CompatibilityResult(
            level=CompatibilityLevel(level),
            reason=str(row.get("compatibility_reason") or ""),
        )
        if level
        else None
    )
    product_id = row.get("product_id")
    usage_raw = row.get("usage_json")
    return ScanRecord(
        scanned_at=datetime.fromisoformat(str(row["scanned_at"])),
        product_id=UUID(str(product_id)) if product_id else None,
        cache_hit=bool(row.get("cache_hit")),
        compatibility=compatibility,
        usage=UsageRecord.from_dict(usage_raw)
        if isinstance(usage_raw, dict)
        else UsageRecord.zero(),
    )
