"""Supabase repository for canonical products."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from ingredient_scanner.domain.products import IngredientSet, Product
from ingredient_scanner.errors import PersistenceError
from ingredient_scanner.services.products import ProductIdentity, ProductRepository

_TABLE = "products"
_UNIQUE_VIOLATION = "23505"
# PostgREST caps each response at the project's max-rows setting.
_PAGE_SIZE = 1000

_logger = logging.getLogger(__name__)


@dataclass
class SupabaseProductRepository(ProductRepository):
    """Supabase-backed product repository."""

    client: Client
    page_size: int = _PAGE_SIZE

    def get_product(self, product_id: UUID) -> Product | None:
        """Return a product by id, if present."""
        response = (
            self.client.table(_TABLE)
            .select("*")
            .eq("id", str(product_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_product(response.data[0])

    def find_by_exact_key(self, key: str) -> Product | None:
        """Return the product stored under an exact key, if present."""
        response = (
            self.client.table(_TABLE)
            .select("*")
            .eq("exact_key", key)
            .order("created_at", desc=False)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_product(response.data[0])

    def list_identities(self) -> list[ProductIdentity]:
        """Return id, name and brand of every stored product, page by page."""
        identities: list[ProductIdentity] = []
        start = 0
        while True:
            response = (
                self.client.table(_TABLE)
                .select("id, product_name, brand")
                .order("created_at", desc=False)
                .range(start, start + self.page_size - 1)
                .execute()
            )
            rows = response.data or []
            identities.extend(
                ProductIdentity(
                    id=UUID(row["id"]),
                    product_name=row.get("product_name"),
                    brand=row.get("brand"),
                )
                for row in rows
            )
            if len(rows) < self.page_size:
                return identities
            start += self.page_size

    def insert_product(self, product: Product, key: str) -> Product:
        """Insert a product row.

        A unique-key conflict means another process stored the same product
        first; that record is returned instead.
        """
        try:
            response = (
                self.client.table(_TABLE)
                .insert(
                    {
                        "id": str(product.id),
                        "product_name": product.product_name,
                        "brand": product.brand,
                        "health_score": product.health_score,
                        "ingredients_json": product.ingredients.to_dict()
                        if product.ingredients
                        else None,
                        "exact_key": key,
                        "source": product.source,
                        "created_at": product.created_at.isoformat(),
                    }
                )
                .execute()
            )
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                existing = self._find_after_conflict(key)
                if existing is not None:
                    _logger.info(
                        "Product key %r already stored as %s", key, existing.id
                    )
                    return existing
            raise PersistenceError(f"Failed to create product {product.id}") from exc
        except httpx.HTTPError as exc:
            raise PersistenceError(f"Failed to create product {product.id}") from exc
        if not response.data:
            raise PersistenceError(f"Failed to create product {product.id}")
        return _parse_product(response.data[0])

    def list_recent_products(self, limit: int) -> list[Product]:
        """Return the most recently created products."""
        response = (
            self.client.table(_TABLE)
            .select("*")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [_parse_product(row) for row in response.data or []]

    def _find_after_conflict(self, key: str) -> Product | None:
        try:
            return self.find_by_exact_key(key)
        except (APIError, httpx.HTTPError) as exc:
            raise PersistenceError(f"Failed to re-read product {key!r}") from exc


def _parse_product(row: dict[str, object]) -> Product:
    """Parse a product row into a domain model."""
    created_raw = row.get("created_at")
    created_at = (
        datetime.fromisoformat(created_raw)
        if isinstance(created_raw, str) and created_raw
        else datetime.now(tz=UTC)
    )
    ingredients_raw = row.get("ingredients_json")
    health_score = row.get("health_score")
    return Product(
        id=UUID(str(row["id"])),
        product_name=row.get("product_name"),
        brand=row.get("brand"),
        health_score=int(health_score) if health_score is not None else None,
        ingredients=IngredientSet.from_dict(ingredients_raw)
        if isinstance(ingredients_raw, dict)
        else None,
        created_at=created_at,
        source=str(row.get("source") or "deep_analysis"),
    )
