"""Admin service for reporting."""

from dataclasses import dataclass
from uuid import UUID

from ingredient_scanner.domain.products import Product
from ingredient_scanner.domain.scans import ScanRecord
from ingredient_scanner.services.products import ProductStore
from ingredient_scanner.services.scans import ScanLedger
from ingredient_scanner.services.users import UserService


@dataclass
class AdminService:
    """Service for admin dashboards."""

    user_service: UserService
    product_store: ProductStore
    ledger: ScanLedger

    def list_users(self) -> list[dict[str, object]]:
        """Return users with their scan totals."""
        summaries = []
        for user in self.user_service.list_users():
            totals = self.ledger.totals(user.id)
            summaries.append(
                {
                    "id": str(user.id),
                    "telegram_user_id": user.telegram_user_id,
                    "last_active_at": user.last_active_at.isoformat()
                    if user.last_active_at
                    else None,
                    "scan_count": totals.scan_count,
                    "cumulative_cost": str(totals.cumulative_cost),
                    "profile": user.profile.to_dict(),
                }
            )
        return summaries

    def list_user_scans(self, user_id: UUID, limit: int = 20) -> list[dict[str, object]]:
        """Return a user's recent scans."""
        return [_serialize_scan(scan) for scan in self.ledger.history(user_id, limit)]

    def list_products(self, limit: int = 20) -> list[dict[str, object]]:
        """Return recently created products."""
        return [_serialize_product(product) for product in self.product_store.list_recent(limit)]


def _serialize_scan(scan: ScanRecord) -> dict[str, object]:
    return {
        "scanned_at": scan.scanned_at.isoformat(),
        "product_id": str(scan.product_id) if scan.product_id else None,
        "cache_hit": scan.cache_hit,
        "compatibility": {
            "level": scan.compatibility.level.value,
            "reason": scan.compatibility.reason,
        }
        if scan.compatibility
        else None,
        "usage": scan.usage.to_dict(),
    }


def _serialize_product(product: Product) -> dict[str, object]:
    return {
        "id": str(product.id),
        "product_name": product.product_name,
        "brand": product.brand,
        "health_score": product.health_score,
        "ingredients": product.ingredients.to_dict() if product.ingredients else None,
        "created_at": product.created_at.isoformat(),
        "source": product.source,
    }
