"""Tiered product analysis pipeline."""

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from uuid import UUID

from ingredient_scanner.config import PipelineConfig
from ingredient_scanner.domain.analysis import (
    CompatibilityReply,
    DeepAnalysisReply,
    ExtractionReply,
)
from ingredient_scanner.domain.products import (
    CompatibilityLevel,
    CompatibilityResult,
    HealthProfile,
    Product,
    ProductDraft,
)
from ingredient_scanner.domain.scans import ScanRecord, UserTotals
from ingredient_scanner.domain.usage import CallKind, UsageRecord
from ingredient_scanner.errors import ImageFetchError, InferenceError
from ingredient_scanner.services.inference import (
    InferenceGateway,
    InferenceRequest,
    ReplyT,
    to_data_url,
)
from ingredient_scanner.services.products import ProductStore
from ingredient_scanner.services.scans import ScanLedger
from ingredient_scanner.services.usage import UsageAccumulator

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


_NULLABLE_STRING: dict[str, object] = {"anyOf": [{"type": "string"}, {"type": "null"}]}

_INGREDIENT_LIST: dict[str, object] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "reason": {"type": "string"},
        },
        "required": ["name", "reason"],
        "additionalProperties": False,
    },
}

EXTRACTION_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "is_product": {"type": "boolean"},
        "rejection_reason": _NULLABLE_STRING,
        "product_name": _NULLABLE_STRING,
        "brand": _NULLABLE_STRING,
    },
    "required": ["is_product", "rejection_reason", "product_name", "brand"],
    "additionalProperties": False,
}

DEEP_ANALYSIS_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "is_product": {"type": "boolean"},
        "rejection_reason": _NULLABLE_STRING,
        "product_name": _NULLABLE_STRING,
        "brand": _NULLABLE_STRING,
        "health_score": {
            "anyOf": [
                {"type": "integer", "minimum": 0, "maximum": 100},
                {"type": "null"},
            ]
        },
        "ingredients": {
            "anyOf": [
                {
                    "type": "object",
                    "properties": {
                        "good": _INGREDIENT_LIST,
                        "okay": _INGREDIENT_LIST,
                        "bad": _INGREDIENT_LIST,
                    },
                    "required": ["good", "okay", "bad"],
                    "additionalProperties": False,
                },
                {"type": "null"},
            ]
        },
    },
    "required": [
        "is_product",
        "rejection_reason",
        "product_name",
        "brand",
        "health_score",
        "ingredients",
    ],
    "additionalProperties": False,
}

COMPATIBILITY_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "compatibility_level": {
            "type": "string",
            "enum": [level.value for level in CompatibilityLevel],
        },
        "reason": {"type": "string"},
    },
    "required": ["compatibility_level", "reason"],
    "additionalProperties": False,
}

EXTRACTION_PROMPT = (
    "Look at the photo. Decide whether it shows a packaged consumer product "
    "(food, drink, supplement or cosmetic) with a readable label. "
    "If it does, return the product name and brand exactly as printed. "
    "If it does not, set is_product to false and explain why in "
    "rejection_reason."
)

DEEP_ANALYSIS_PROMPT = (
    "Analyze the packaged product in the photo. Read the ingredient list from "
    "the label; if it is not fully visible, search the web for the official "
    "ingredient list of this exact product. Classify every ingredient as "
    "good, okay or bad for a typical consumer with a one-sentence reason, "
    "and give an overall health_score from 0 (avoid) to 100 (excellent)."
)

COMPATIBILITY_PROMPT = (
    "Rate how compatible this product is with the user's health profile. "
    "Consider allergies and sensitivities first, then health conditions and "
    "diet. Use VERY_HIGH, HIGH, MEDIUM, LOW or NONE and give a short reason "
    "that names the ingredients that drove the verdict."
)


class ScanOutcome(StrEnum):
    """Terminal states of a scan."""

    REJECTED = "rejected"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen=True)
class ScanRequest:
    """Inbound photo scan for one user."""

    user_id: UUID
    profile: HealthProfile
    load_image: Callable[[], Awaitable[bytes]]


@dataclass(frozen=True)
class ScanResult:
    """What the caller gets back from a scan."""

    outcome: ScanOutcome
    usage: UsageRecord
    product: Product | None = None
    cache_hit: bool = False
    compatibility: CompatibilityResult | None = None
    rejection_reason: str | None = None
    error: Exception | None = None
    record: ScanRecord | None = None
    totals: UserTotals | None = None


@dataclass
class AnalysisPipeline:
    """Extraction, store lookup, deep analysis on miss, fresh compatibility."""

    gateway: InferenceGateway
    product_store: ProductStore
    ledger: ScanLedger
    config: PipelineConfig
    fast_model: str
    deep_model: str
    reasoning_effort: str | None = None
    store: bool = False
    clock: Callable[[], datetime] = _utcnow

    async def run(self, scan: ScanRequest) -> ScanResult:
        """Run one scan to a terminal outcome."""
        usage = UsageAccumulator()
        try:
            try:
                image_bytes = await scan.load_image()
            except Exception as exc:
                raise ImageFetchError(f"Could not load photo: {exc}") from exc
            image_data_url = to_data_url(image_bytes)

            extraction = await self._call(
                usage,
                self._request(
                    CallKind.EXTRACTION,
                    self.fast_model,
                    EXTRACTION_PROMPT,
                    "product_extraction",
                    EXTRACTION_SCHEMA,
                    image_data_url=image_data_url,
                ),
                ExtractionReply,
            )
            if not extraction.is_product:
                return self._rejected(scan, extraction.rejection_reason, usage)

            product = self.product_store.find_fuzzy(
                extraction.product_name, extraction.brand
            )
            cache_hit = product is not None
            if product is None:
                analysis = await self._call(
                    usage,
                    self._request(
                        CallKind.DEEP_ANALYSIS,
                        self.deep_model,
                        _with_hints(DEEP_ANALYSIS_PROMPT, extraction),
                        "product_analysis",
                        DEEP_ANALYSIS_SCHEMA,
                        image_data_url=image_data_url,
                        web_search=True,
                    ),
                    DeepAnalysisReply,
                )
                if not analysis.is_product:
                    return self._rejected(scan, analysis.rejection_reason, usage)
                product, _ = await self.product_store.resolve_or_create(
                    _draft_from(analysis, extraction)
                )
        except Exception as exc:
            _logger.exception(
                "Scan failed for user %s (%s)", scan.user_id, type(exc).__name__
            )
            return ScanResult(
                outcome=ScanOutcome.FAILED, usage=usage.total, error=exc
            )

        compatibility = await self._score(product, scan.profile, usage)
        total_usage = usage.total
        record = ScanRecord(
            scanned_at=self.clock(),
            product_id=product.id,
            cache_hit=cache_hit,
            compatibility=compatibility,
            usage=total_usage,
        )
        totals = await self._record(scan.user_id, record)
        _logger.info(
            "Scan resolved for user %s: product=%s cache_hit=%s calls=%s cost=%s",
            scan.user_id,
            product.id,
            cache_hit,
            len(usage.records),
            total_usage.rounded().cost,
        )
        return ScanResult(
            outcome=ScanOutcome.RESOLVED,
            usage=total_usage,
            product=product,
            cache_hit=cache_hit,
            compatibility=compatibility,
            record=record,
            totals=totals,
        )

    async def _score(
        self, product: Product, profile: HealthProfile, usage: UsageAccumulator
    ) -> CompatibilityResult | None:
        """Score compatibility; failures degrade to no verdict."""
        request = self._request(
            CallKind.COMPATIBILITY,
            self.fast_model,
            _compatibility_prompt(product, profile),
            "compatibility",
            COMPATIBILITY_SCHEMA,
        )
        try:
            reply = await self._call(usage, request, CompatibilityReply)
        except Exception:
            _logger.exception("Compatibility scoring failed for product %s", product.id)
            return None
        return reply.to_result()

    async def _record(self, user_id: UUID, record: ScanRecord) -> UserTotals | None:
        try:
            return await self.ledger.record(user_id, record)
        except Exception:
            _logger.exception("Failed to record scan for user %s", user_id)
            return None

    async def _call(
        self,
        usage: UsageAccumulator,
        request: InferenceRequest,
        reply_model: type[ReplyT],
    ) -> ReplyT:
        try:
            result = await self.gateway.request(request, reply_model)
        except InferenceError as exc:
            usage.add(exc.usage)
            raise
        usage.add(result.usage)
        return result.data

    def _request(  # noqa: PLR0913
        self,
        kind: CallKind,
        model: str,
        prompt: str,
        schema_name: str,
        schema: dict[str, object],
        *,
        image_data_url: str | None = None,
        web_search: bool = False,
    ) -> InferenceRequest:
        return InferenceRequest(
            kind=kind,
            model=model,
            prompt=prompt,
            schema_name=schema_name,
            schema=schema,
            max_output_tokens=self.config.max_output_tokens[kind],
            image_data_url=image_data_url,
            web_search=web_search,
            reasoning_effort=self.reasoning_effort,
            store=self.store,
        )

    def _rejected(
        self, scan: ScanRequest, reason: str | None, usage: UsageAccumulator
    ) -> ScanResult:
        total = usage.total
        _logger.info(
            "Scan rejected for user %s: %s (cost=%s)",
            scan.user_id,
            reason,
            total.rounded().cost,
        )
        return ScanResult(
            outcome=ScanOutcome.REJECTED,
            usage=total,
            rejection_reason=reason or "This doesn't look like a packaged product.",
        )


def _with_hints(prompt: str, extraction: ExtractionReply) -> str:
    hints = []
    if extraction.brand:
        hints.append(f"Brand read from the label: {extraction.brand}.")
    if extraction.product_name:
        hints.append(f"Product name read from the label: {extraction.product_name}.")
    if not hints:
        return prompt
    return prompt + "\n" + " ".join(hints)


def _draft_from(analysis: DeepAnalysisReply, extraction: ExtractionReply) -> ProductDraft:
    return ProductDraft(
        product_name=analysis.product_name or extraction.product_name,
        brand=analysis.brand or extraction.brand,
        health_score=analysis.health_score,
        ingredients=(
            analysis.ingredients.to_ingredient_set() if analysis.ingredients else None
        ),
    )


def _compatibility_prompt(product: Product, profile: HealthProfile) -> str:
    ingredients = product.ingredients.to_dict() if product.ingredients else {}
    return "\n\n".join(
        [
            COMPATIBILITY_PROMPT,
            f"Product: {product.display_name}",
            "Ingredients:\n" + json.dumps(ingredients, ensure_ascii=False),
            "Health profile:\n" + json.dumps(profile.to_dict(), ensure_ascii=False),
        ]
    )
