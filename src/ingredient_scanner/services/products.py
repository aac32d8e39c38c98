"""Product identity resolution and persistence."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID, uuid4

from rapidfuzz import process
from rapidfuzz.distance import Indel

from ingredient_scanner.domain.products import Product, ProductDraft
from ingredient_scanner.services.normalizer import exact_key, normalize_key

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductIdentity:
    """The fields needed to match a stored product."""

    id: UUID
    product_name: str | None
    brand: str | None


class ProductRepository(Protocol):
    """Persistence interface for canonical products."""

    def get_product(self, product_id: UUID) -> Product | None:
        """Return a product by id, if present."""

    def find_by_exact_key(self, key: str) -> Product | None:
        """Return the product stored under an exact key, if present."""

    def list_identities(self) -> list[ProductIdentity]:
        """Return id, name and brand of every stored product."""

    def insert_product(self, product: Product, key: str) -> Product:
        """Insert a new product; never overwrites an existing id.

        When another writer already stored the same exact key, returns that
        record instead.
        """

    def list_recent_products(self, limit: int) -> list[Product]:
        """Return the most recently created products."""


@dataclass
class ProductStore:
    """Exact and fuzzy lookup plus serialized creation of products."""

    repository: ProductRepository
    fuzzy_accept_threshold: float = 0.1
    _create_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def get(self, product_id: UUID) -> Product | None:
        """Return a product by id."""
        return self.repository.get_product(product_id)

    def find_exact(self, name: str | None, brand: str | None) -> Product | None:
        """Return the product whose name and brand match ignoring case/spacing."""
        if not (name or brand):
            return None
        return self.repository.find_by_exact_key(exact_key(name, brand))

    def find_fuzzy(self, name: str | None, brand: str | None) -> Product | None:
        """Return the closest stored product within the acceptance threshold."""
        query = normalize_key(brand, name)
        if not query:
            return None
        candidates = {
            identity.id: key
            for identity in self.repository.list_identities()
            if (key := normalize_key(identity.brand, identity.product_name))
        }
        best = process.extractOne(
            query,
            candidates,
            scorer=Indel.normalized_distance,
            score_cutoff=self.fuzzy_accept_threshold,
        )
        if best is None:
            return None
        _, best_distance, best_id = best
        _logger.info(
            "Fuzzy match for %r: product=%s distance=%.3f", query, best_id, best_distance
        )
        return self.repository.get_product(best_id)

    def create(self, draft: ProductDraft) -> Product:
        """Persist a new product with a fresh id and creation time."""
        return self._insert(_new_product(draft))

    async def resolve_or_create(self, draft: ProductDraft) -> tuple[Product, bool]:
        """Return an existing product for the draft or create one.

        Creation is serialized so a concurrent writer's recheck observes the
        first commit. The flag is True when a new record was created.
        """
        async with self._create_lock:
            existing = self.find_exact(draft.product_name, draft.brand)
            if existing is None:
                existing = self.find_fuzzy(draft.product_name, draft.brand)
            if existing is not None:
                _logger.info("Reusing product %s for concurrent analysis", existing.id)
                return existing, False
            product = _new_product(draft)
            stored = self._insert(product)
            if stored.id != product.id:
                _logger.info("Reusing product %s stored by another writer", stored.id)
                return stored, False
            _logger.info("Created product %s (%s)", stored.id, stored.display_name)
            return stored, True

    def list_recent(self, limit: int = 20) -> list[Product]:
        """Return the most recently created products."""
        return self.repository.list_recent_products(limit)

    def _insert(self, product: Product) -> Product:
        return self.repository.insert_product(
            product, exact_key(product.product_name, product.brand)
        )


def _new_product(draft: ProductDraft) -> Product:
    return Product(
        id=uuid4(),
        product_name=draft.product_name,
        brand=draft.brand,
        health_score=draft.health_score,
        ingredients=draft.ingredients,
        created_at=datetime.now(tz=UTC),
        source=draft.source,
    )
