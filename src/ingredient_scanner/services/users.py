"""User-related business logic."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from ingredient_scanner.domain.analysis import ProfileReply
from ingredient_scanner.domain.models import UserRecord
from ingredient_scanner.domain.products import HealthProfile
from ingredient_scanner.domain.usage import CallKind, UsageRecord
from ingredient_scanner.services.inference import InferenceGateway, InferenceRequest

_TAG_LIST: dict[str, object] = {"type": "array", "items": {"type": "string"}}

PROFILE_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {name: _TAG_LIST for name in HealthProfile.FIELDS},
    "required": list(HealthProfile.FIELDS),
    "additionalProperties": False,
}

PROFILE_PROMPT = (
    "Turn the user's description of their health into short lowercase tags. "
    "Put each tag in exactly one list: diet (e.g. vegan, keto), "
    "food_allergies, ingredient_sensitivities (e.g. caffeine, lactose), "
    "skin_sensitivities and health_conditions. Leave a list empty when "
    "nothing applies.\n\nUser description:\n"
)

_logger = logging.getLogger(__name__)


class UserRepository(Protocol):
    """Persistence interface for user data."""

    def get_by_telegram_id(self, telegram_user_id: int) -> UserRecord | None:
        """Return the user for a Telegram user id, if present."""

    def create_user(self, telegram_user_id: int) -> UserRecord:
        """Create and return a new user record."""

    def touch_last_active(self, user_id: UUID) -> None:
        """Update the last active timestamp for the user."""

    def update_profile(self, user_id: UUID, profile: HealthProfile) -> None:
        """Replace the user's health profile."""

    def list_users(self) -> list[UserRecord]:
        """Return all users, most recently active first."""


@dataclass
class UserService:
    """Application service for users and their health profiles."""

    repository: UserRepository
    gateway: InferenceGateway
    model: str
    max_output_tokens: int = 1024
    reasoning_effort: str | None = None
    store: bool = False

    def ensure_user(self, telegram_user_id: int) -> UserRecord:
        """Ensure a user exists for the Telegram id and return it."""
        existing = self.repository.get_by_telegram_id(telegram_user_id)
        if existing:
            self.repository.touch_last_active(existing.id)
            return existing
        return self.repository.create_user(telegram_user_id)

    def update_profile(self, user: UserRecord, profile: HealthProfile) -> UserRecord:
        """Persist a new profile and return the updated user."""
        self.repository.update_profile(user.id, profile)
        return UserRecord(
            id=user.id,
            telegram_user_id=user.telegram_user_id,
            profile=profile,
            last_active_at=user.last_active_at,
        )

    async def extract_profile(self, text: str) -> tuple[HealthProfile, UsageRecord]:
        """Extract profile tags from free text via the inference gateway."""
        result = await self.gateway.request(
            InferenceRequest(
                kind=CallKind.PROFILE,
                model=self.model,
                prompt=PROFILE_PROMPT + text.strip(),
                schema_name="health_profile",
                schema=PROFILE_SCHEMA,
                max_output_tokens=self.max_output_tokens,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
            ),
            ProfileReply,
        )
        _logger.info(
            "Profile extracted in %s attempt(s), cost=%s",
            result.attempts,
            result.usage.rounded().cost,
        )
        return result.data.to_profile(), result.usage

    def list_users(self) -> list[UserRecord]:
        """Return all users."""
        return self.repository.list_users()
