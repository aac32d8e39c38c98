"""Supabase-backed user repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from ingredient_scanner.domain.models import UserRecord
from ingredient_scanner.domain.products import HealthProfile
from ingredient_scanner.errors import PersistenceError
from ingredient_scanner.services.users import UserRepository

_COLUMNS = "id, telegram_user_id, profile_json, last_active_at"


@dataclass
class SupabaseUserRepository(UserRepository):
    """Supabase implementation for user persistence."""

    client: Client

    def get_by_telegram_id(self, telegram_user_id: int) -> UserRecord | None:
        """Return the user for a Telegram user id, if present."""
        response = (
            self.client.table("users")
            .select(_COLUMNS)
            .eq("telegram_user_id", telegram_user_id)
            .limit(1)
            .execute()
        )
        if response.data:
            return _parse_user(response.data[0])
        return None

    def create_user(self, telegram_user_id: int) -> UserRecord:
        """Create a new user row and return it."""
        response = (
            self.client.table("users")
            .insert({"telegram_user_id": telegram_user_id, "profile_json": {}})
            .execute()
        )
        if not response.data:
            raise PersistenceError("Failed to create user in Supabase")
        return _parse_user(response.data[0])

    def touch_last_active(self, user_id: UUID) -> None:
        """Update the last_active_at timestamp for a user."""
        self.client.table("users").update(
            {"last_active_at": datetime.now(tz=UTC).isoformat()}
        ).eq("id", str(user_id)).execute()

    def update_profile(self, user_id: UUID, profile: HealthProfile) -> None:
        """Replace the stored health profile."""
        try:
            self.client.table("users").update({"profile_json": profile.to_dict()}).eq(
                "id", str(user_id)
            ).execute()
        except (APIError, httpx.HTTPError) as exc:
            raise PersistenceError(f"Failed to save profile for user {user_id}") from exc

    def list_users(self) -> list[UserRecord]:
        """Return all users ordered by last activity."""
        response = (
            self.client.table("users")
            .select(_COLUMNS)
            .order("last_active_at", desc=True)
            .execute()
        )
        return [_parse_user(row) for row in response.data or []]


def _parse_user(row: dict[str, object]) -> UserRecord:
    last_active = row.get("last_active_at")
    profile_raw = row.get("profile_json")
    return UserRecord(
        id=UUID(str(row["id"])),
        telegram_user_id=int(row["telegram_user_id"]),
        profile=HealthProfile.from_dict(profile_raw if isinstance(profile_raw, dict) else None),
        last_active_at=datetime.fromisoformat(last_active)
        if isinstance(last_active, str) and last_active
        else None,
    )
