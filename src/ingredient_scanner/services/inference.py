"""Structured-output inference gateway with a bounded retry."""

import base64
import logging
from dataclasses import dataclass, field, replace
from typing import Generic, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from ingredient_scanner.config import CallPricing
from ingredient_scanner.domain.usage import CallKind, TokenCounts, UsageRecord
from ingredient_scanner.errors import (
    EmptyResponseError,
    InferenceUnavailableError,
    MalformedOutputError,
    ResponseValidationError,
)
from ingredient_scanner.services.usage import UsageAccumulator, price_usage
from ingredient_scanner.services.validation import parse_json_object

STRICT_JSON_INSTRUCTION = (
    "Return only valid JSON matching the schema. "
    "Do not truncate the output. No explanations."
)

_logger = logging.getLogger(__name__)

ReplyT = TypeVar("ReplyT", bound=BaseModel)


@dataclass(frozen=True)
class InferenceRequest:
    """One structured question for the inference service."""

    kind: CallKind
    model: str
    prompt: str
    schema_name: str
    schema: dict[str, object]
    max_output_tokens: int
    system_instruction: str | None = None
    image_data_url: str | None = None
    temperature: float | None = None
    web_search: bool = False
    reasoning_effort: str | None = None
    store: bool = False


@dataclass(frozen=True)
class ReplySegment:
    """A piece of model output; reasoning segments are never parsed."""

    text: str
    reasoning: bool = False


@dataclass(frozen=True)
class InferenceReply:
    """Raw reply of the inference service."""

    segments: list[ReplySegment]
    counters: TokenCounts = field(default_factory=TokenCounts)

    @property
    def answer_text(self) -> str:
        """Join the non-reasoning segments."""
        return "".join(segment.text for segment in self.segments if not segment.reasoning)


class InferenceClient(Protocol):
    """Interface for the structured-output inference service."""

    async def complete(self, request: InferenceRequest) -> InferenceReply:
        """Run the request and return its output segments and counters."""


@dataclass(frozen=True)
class InferenceResult(Generic[ReplyT]):
    """Validated reply plus the usage of every attempt behind it."""

    data: ReplyT
    usage: UsageRecord
    attempts: int


@dataclass
class InferenceGateway:
    """Runs structured requests with validation and one strict retry."""

    client: InferenceClient
    pricing: dict[CallKind, CallPricing]
    retry_count: int = 1

    async def request(
        self, request: InferenceRequest, reply_model: type[ReplyT]
    ) -> InferenceResult[ReplyT]:
        """Run a request and validate the answer against ``reply_model``.

        Raises an ``InferenceError`` subclass whose ``usage`` covers every
        attempt made.
        """
        usage = UsageAccumulator()
        current = request
        attempt = 0
        while True:
            attempt += 1
            try:
                reply = await self.client.complete(current)
            except Exception as exc:
                raise InferenceUnavailableError(
                    f"{request.kind} call failed: {exc}", usage.total
                ) from exc
            usage.add(price_usage(reply.counters, self.pricing[request.kind]))
            try:
                data = _validate(reply.answer_text, reply_model)
            except EmptyResponseError as exc:
                exc.usage = usage.total
                raise
            except ResponseValidationError as exc:
                exc.usage = usage.total
                if attempt > self.retry_count:
                    _logger.warning(
                        "%s output invalid after %s attempts: %s",
                        request.kind,
                        attempt,
                        exc,
                    )
                    raise
                _logger.info(
                    "%s output invalid (attempt %s), retrying strictly: %s",
                    request.kind,
                    attempt,
                    exc,
                )
                current = _strict(request)
                continue
            return InferenceResult(data=data, usage=usage.total, attempts=attempt)


def _validate(text: str, reply_model: type[ReplyT]) -> ReplyT:
    payload = parse_json_object(text)
    try:
        return reply_model.model_validate(payload)
    except ValidationError as exc:
        raise MalformedOutputError(
            f"Response does not match {reply_model.__name__}: {exc.error_count()} errors"
        ) from exc


def _strict(request: InferenceRequest) -> InferenceRequest:
    """Return the retry variant: deterministic, same budget and tools."""
    instruction = STRICT_JSON_INSTRUCTION
    if request.system_instruction:
        instruction = f"{request.system_instruction}\n\n{STRICT_JSON_INSTRUCTION}"
    return replace(request, temperature=0.0, system_instruction=instruction)


def to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
