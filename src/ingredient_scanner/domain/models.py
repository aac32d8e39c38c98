"""Domain models for the ingredient scanner."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from ingredient_scanner.domain.products import HealthProfile


@dataclass(frozen=True)
class UserRecord:
    """Represents a user stored in the database."""

    id: UUID
    telegram_user_id: int
    profile: HealthProfile = field(default_factory=HealthProfile)
    last_active_at: datetime | None = None
