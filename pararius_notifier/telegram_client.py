from __future__ import annotations

import logging

import requests

LOGGER = logging.getLogger(__name__)


class TelegramError(RuntimeError):
    pass


class TelegramClient:
    """Thin wrapper over the Telegram Bot HTTP API.

    Calls go through module-level ``requests`` functions, so the command
    poller and the delivery worker never share a connection pool.
    """

    def __init__(self, bot_token: str, timeout_seconds: int) -> None:
        self.timeout_seconds = timeout_seconds
        self.base_endpoint = f"https://api.telegram.org/bot{bot_token}"

    def get_me(self) -> dict:
        response = requests.get(
            f"{self.base_endpoint}/getMe", timeout=self.timeout_seconds
        )
        response.raise_for_status()
        result = self._unwrap(response, "getMe")
        if not isinstance(result, dict):
            raise TelegramError("Telegram getMe returned an unexpected payload")
        return result

    def get_updates(self, offset: int, poll_timeout: int = 30, limit: int = 20) -> list[dict]:
        payload = {
            "offset": offset,
            "limit": limit,
            "timeout": poll_timeout,
            "allowed_updates": '["message"]',
        }
        response = requests.get(
            f"{self.base_endpoint}/getUpdates",
            params=payload,
            timeout=self.timeout_seconds + poll_timeout,
        )
        response.raise_for_status()
        data = response.json()
        if not data.get("ok"):
            LOGGER.warning("Telegram getUpdates returned non-ok payload")
            return []
        result = data.get("result", [])
        if not isinstance(result, list):
            return []
        return [item for item in result if isinstance(item, dict)]

    def send_message(self, chat_id: int, text: str) -> None:
        payload = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        response = requests.post(
            f"{self.base_endpoint}/sendMessage", json=payload, timeout=self.timeout_seconds
        )
        if response.status_code >= 400:
            LOGGER.error(
                "Telegram send failed for chat_id=%s status=%s body=%s",
                chat_id,
                response.status_code,
                response.text,
            )
            response.raise_for_status()


    @staticmethod
    def _unwrap(response: requests.Response, method: str) -> object:
        data = response.json()
        if not data.get("ok"):
            raise TelegramError(
                f"Telegram {method} failed: {data.get('description', 'unknown error')}"
            )
        return data.get("result")
