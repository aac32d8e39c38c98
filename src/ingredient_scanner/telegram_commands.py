"""Telegram bot command configuration."""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class TelegramCommand:
    """Declarative bot command definition."""

    command: str
    description: str


class BotCommand(Enum):
    """Enum of bot commands (single source of truth)."""

    START = TelegramCommand("start", "Welcome and how scanning works")
    PROFILE = TelegramCommand("profile", "Describe your diet, allergies and conditions")
    HISTORY = TelegramCommand("history", "Your last scans")
    USAGE = TelegramCommand("usage", "Scan count and analysis cost so far")
    HELP = TelegramCommand("help", "Quick guide and tips")

    @property
    def slash(self) -> str:
        return f"/{self.value.command}"


def telegram_commands() -> list[dict[str, str]]:
    """Return commands formatted for Telegram API."""
    return [
        {"command": entry.value.command, "description": entry.value.description}
        for entry in BotCommand
    ]


def match_command(text: str) -> tuple[BotCommand, str] | None:
    """Return the command at the start of a message and its argument text."""
    if not text.startswith("/"):
        return None
    head, _, rest = text.partition(" ")
    name = head[1:].split("@", maxsplit=1)[0].lower()
    for entry in BotCommand:
        if entry.value.command == name:
            return entry, rest.strip()
    return None
