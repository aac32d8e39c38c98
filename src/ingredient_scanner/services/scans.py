"""Per-user scan history and running totals."""

import asyncio
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from ingredient_scanner.domain.scans import ScanRecord, UserTotals


class ScanRepository(Protocol):
    """Persistence interface for the scan ledger."""

    def append_scan(self, user_id: UUID, record: ScanRecord) -> None:
        """Append a scan to the user's history."""

    def list_recent_scans(self, user_id: UUID, limit: int) -> list[ScanRecord]:
        """Return the user's most recent scans, newest first."""

    def get_totals(self, user_id: UUID) -> UserTotals | None:
        """Return the user's running totals, if any scans were recorded."""

    def save_totals(self, user_id: UUID, totals: UserTotals) -> None:
        """Create or replace the user's running totals."""


@dataclass
class ScanLedger:
    """Append-only scan history with rolled-up totals."""

    repository: ScanRepository
    _totals_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def record(self, user_id: UUID, record: ScanRecord) -> UserTotals:
        """Append a scan and roll its cost into the user's totals."""
        self.repository.append_scan(user_id, record)
        async with self._totals_lock:
            current = self.repository.get_totals(user_id) or UserTotals()
            updated = current.add(record)
            self.repository.save_totals(user_id, updated)
        return updated

    def totals(self, user_id: UUID) -> UserTotals:
        """Return the user's running totals."""
        return self.repository.get_totals(user_id) or UserTotals()

    def history(self, user_id: UUID, limit: int = 10) -> list[ScanRecord]:
        """Return recent scans."""
        return self.repository.list_recent_scans(user_id, limit)
