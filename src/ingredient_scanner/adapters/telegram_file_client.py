"""Telegram photo download client."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from ingredient_scanner.errors import ImageFetchError

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramFileClient(Protocol):
    """Interface for downloading Telegram files."""

    async def download_file_bytes(self, file_id: str) -> bytes:
        """Download a Telegram file and return its bytes."""


@dataclass
class HttpxTelegramFileClient(TelegramFileClient):
    """Telegram file client using httpx."""

    bot_token: str
    http_client: httpx.AsyncClient
    base_url: str = TELEGRAM_API_URL

    @classmethod
    def create(cls, bot_token: str) -> "HttpxTelegramFileClient":
        """Create a Telegram file client with a managed httpx session."""
        return cls(bot_token=bot_token, http_client=httpx.AsyncClient())

    async def download_file_bytes(self, file_id: str) -> bytes:
        """Resolve the file path via getFile and download its content."""
        response = await self.http_client.get(
            f"{self.base_url}/bot{self.bot_token}/getFile",
            params={"file_id": file_id},
            timeout=10,
        )
        response.raise_for_status()
        payload = response.json()
        if not payload.get("ok"):
            raise ImageFetchError(f"Telegram getFile failed for {file_id}")
        file_path = payload["result"].get("file_path")
        if not file_path:
            raise ImageFetchError(f"Telegram returned no file path for {file_id}")
        file_response = await self.http_client.get(
            f"{self.base_url}/file/bot{self.bot_token}/{file_path}", timeout=20
        )
        file_response.raise_for_status()
        if not file_response.content:
            raise ImageFetchError(f"Telegram returned an empty file for {file_id}")
        return file_response.content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
