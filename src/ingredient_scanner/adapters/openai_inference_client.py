"""OpenAI Responses API client for structured inference."""

import logging
from dataclasses import dataclass

from openai import AsyncOpenAI

from ingredient_scanner.domain.usage import TokenCounts
from ingredient_scanner.services.inference import (
    InferenceClient,
    InferenceReply,
    InferenceRequest,
    ReplySegment,
)

_logger = logging.getLogger(__name__)


@dataclass
class OpenAIInferenceClient(InferenceClient):
    """Inference client backed by the OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIInferenceClient":
        """Create an OpenAI inference client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def complete(self, request: InferenceRequest) -> InferenceReply:
        """Call the Responses API with a strict JSON schema output format."""
        content: list[dict[str, object]] = [
            {"type": "input_text", "text": request.prompt}
        ]
        if request.image_data_url:
            content.append({"type": "input_image", "image_url": request.image_data_url})
        request_payload: dict[str, object] = {
            "model": request.model,
            "input": [{"role": "user", "content": content}],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": request.schema_name,
                    "strict": True,
                    "schema": request.schema,
                }
            },
            "max_output_tokens": request.max_output_tokens,
            "store": request.store,
        }
        if request.system_instruction:
            request_payload["instructions"] = request.system_instruction
        if request.web_search:
            request_payload["tools"] = [{"type": "web_search"}]
        if request.reasoning_effort:
            request_payload["reasoning"] = {"effort": request.reasoning_effort}
            if request.temperature is not None:
                # Reasoning models reject sampling parameters.
                _logger.info(
                    "Dropping temperature=%s for %s call on reasoning model %s",
                    request.temperature,
                    request.kind.value,
                    request.model,
                )
        elif request.temperature is not None:
            request_payload["temperature"] = request.temperature

        response = await self.client.responses.create(**request_payload)
        return _to_reply(response)


def _to_reply(response: object) -> InferenceReply:
    """Split response output into answer and reasoning segments."""
    segments: list[ReplySegment] = []
    searches = 0
    for item in getattr(response, "output", None) or []:
        item_type = getattr(item, "type", None)
        if item_type == "message":
            for part in getattr(item, "content", None) or []:
                if getattr(part, "type", None) == "output_text":
                    segments.append(ReplySegment(text=part.text))
        elif item_type == "reasoning":
            for part in getattr(item, "summary", None) or []:
                segments.append(ReplySegment(text=part.text, reasoning=True))
        elif item_type == "web_search_call":
            searches += 1
    return InferenceReply(segments=segments, counters=_counters(response, searches))


def _counters(response: object, searches: int) -> TokenCounts:
    usage = getattr(response, "usage", None)
    if usage is None:
        return TokenCounts(search_requests=searches)
    details = getattr(usage, "output_tokens_details", None)
    reasoning = int(getattr(details, "reasoning_tokens", 0) or 0)
    output = int(getattr(usage, "output_tokens", 0) or 0)
    return TokenCounts(
        prompt_tokens=int(getattr(usage, "input_tokens", 0) or 0),
        # output_tokens includes reasoning tokens in the Responses API.
        output_tokens=max(output - reasoning, 0),
        thought_tokens=reasoning,
        search_requests=searches,
    )
