"""Telegram Bot API client and notifier."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from lesson_automation_framework.core.exceptions import TelegramApiError
from lesson_automation_framework.notify.base import Notifier

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramClient:
    """
    Minimal async client for the Telegram Bot API.

    Every method raises ``TelegramApiError`` when the API answers with
    ``ok: false`` or cannot be reached.

    Usage:
        async with TelegramClient(token) as client:
            me = await client.get_me()
            await client.send_message(chat_id, "hello")
    """

    def __init__(
        self,
        token: str,
        base_url: str = TELEGRAM_API_URL,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._token = token
        self._base_url = f"{base_url.rstrip('/')}/bot{token}"
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "TelegramClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _call(
        self,
        method: str,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        url = f"{self._base_url}/{method}"
        kwargs: Dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            if files:
                response = await self._client.post(url, data=data, files=files, **kwargs)
            else:
                response = await self._client.post(url, json=data or {}, **kwargs)
        except httpx.HTTPError as e:
            raise TelegramApiError(f"Telegram connection error: {e}")

        try:
            payload = response.json()
        except ValueError:
            raise TelegramApiError(
                f"Telegram returned a non-JSON response ({response.status_code})",
                error_code=response.status_code,
            )

        if not payload.get("ok"):
            raise TelegramApiError(
                payload.get("description", "Unknown Telegram API error"),
                error_code=payload.get("error_code", response.status_code),
            )
        return payload.get("result")

    async def get_me(self) -> Dict[str, Any]:
        return await self._call("getMe")

    async def get_updates(self, offset: Optional[int] = None, timeout: int = 30) -> List[Dict[str, Any]]:
        data: Dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message"]}
        if offset is not None:
            data["offset"] = offset
        # HTTP timeout must outlast the long-poll window
        return await self._call("getUpdates", data, timeout=timeout + 10)

    async def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: Optional[str] = "Markdown",
    ) -> Dict[str, Any]:
        data: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            data["parse_mode"] = parse_mode
        return await self._call("sendMessage", data)

    async def send_photo(
        self,
        chat_id: int,
        photo: bytes,
        caption: str = "",
        filename: str = "screenshot.png",
    ) -> Dict[str, Any]:
        data = {"chat_id": str(chat_id), "caption": caption}
        files = {"photo": (filename, photo, "image/png")}
        return await self._call("sendPhoto", data, files=files)


class TelegramNotifier(Notifier):
    """Delivers notifications to one Telegram chat."""

    def __init__(self, client: TelegramClient, chat_id: int):
        self.client = client
        self.chat_id = chat_id

    async def send_text(self, message: str) -> None:
        try:
            await self.client.send_message(self.chat_id, message)
        except TelegramApiError as e:
            if not e.is_markup_error:
                logger.error(f"Failed to send Telegram message: {e}")
                return
            # error texts often carry underscores or brackets Markdown rejects
            try:
                await self.client.send_message(self.chat_id, message, parse_mode=None)
            except TelegramApiError as retry_error:
                logger.error(f"Failed to send Telegram message: {retry_error}")

    async def send_image(self, image: bytes, caption: str = "") -> None:
        try:
            await self.client.send_photo(self.chat_id, image, caption=caption)
        except TelegramApiError as e:
            logger.error(f"Failed to send Telegram photo: {e}")
