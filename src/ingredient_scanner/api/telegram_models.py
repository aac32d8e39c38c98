"""Pydantic models for the Telegram webhook payloads the bot reads."""

from pydantic import BaseModel, Field


class TelegramUser(BaseModel):
    """Sender of a message."""

    id: int
    is_bot: bool | None = None
    username: str | None = None


class TelegramChat(BaseModel):
    """Chat a message was posted in."""

    id: int
    type: str


class TelegramPhotoSize(BaseModel):
    """One resolution of an uploaded photo."""

    file_id: str
    file_unique_id: str
    width: int
    height: int
    file_size: int | None = None

    @property
    def area(self) -> int:
        return self.width * self.height


class TelegramMessage(BaseModel):
    """Inbound message; either a command, free text or a product photo."""

    message_id: int
    date: int
    chat: TelegramChat
    from_user: TelegramUser = Field(alias="from")
    text: str | None = None
    caption: str | None = None
    photo: list[TelegramPhotoSize] = Field(default_factory=list)

    def largest_photo(self) -> TelegramPhotoSize | None:
        """Return the highest resolution size, if the message has a photo."""
        if not self.photo:
            return None
        return max(self.photo, key=lambda size: size.area)


class TelegramUpdate(BaseModel):
    """Webhook update; only new messages are handled."""

    update_id: int
    message: TelegramMessage | None = None
