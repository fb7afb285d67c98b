from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from requests import RequestException

from pararius_notifier.notifier import SubscribeResult, SubscriberNotifier, UnsubscribeResult
from pararius_notifier.telegram_client import TelegramClient, TelegramError

LOGGER = logging.getLogger(__name__)

WELCOME_TEXT = (
    "Welcome to the Property Notifier Bot! "
    "Use /subscribe to get notifications about new property listings."
)
ALREADY_SUBSCRIBED_TEXT = "You are already subscribed to property notifications!"
NOT_SUBSCRIBED_TEXT = "You are not currently subscribed to property notifications."
UNSUBSCRIBED_TEXT = (
    "You have been unsubscribed from property notifications. "
    "Use /subscribe to subscribe again."
)
UNKNOWN_COMMAND_TEXT = "I don't know that command"
STORAGE_ERROR_TEXT = "Sorry, your request could not be saved. Please try again later."

ERROR_PAUSE_SECONDS = 5


@dataclass(frozen=True)
class InboundCommand:
    name: str
    chat_id: int
    first_name: str = ""
    username: str = ""


def parse_command(text: str) -> str | None:
    text = text.strip()
    if not text.startswith("/"):
        return None
    command_token = text.split(maxsplit=1)[0]
    return command_token[1:].split("@", maxsplit=1)[0].lower()


class CommandHandler:
    def __init__(self, notifier: SubscriberNotifier) -> None:
        self.notifier = notifier

    def handle(self, command: InboundCommand) -> str:
        if command.name == "start":
            return WELCOME_TEXT

        if command.name == "subscribe":
            try:
                result = self.notifier.subscribe(
                    command.chat_id, command.first_name, command.username
                )
            except OSError as exc:
                LOGGER.error("Error saving subscribers: %s", exc)
                return STORAGE_ERROR_TEXT
            if result is SubscribeResult.ALREADY_SUBSCRIBED:
                return ALREADY_SUBSCRIBED_TEXT
            name = command.first_name or "there"
            return (
                f"Thanks for subscribing, {name}! "
                "You will now receive notifications about new property listings."
            )

        if command.name == "unsubscribe":
            try:
                result = self.notifier.unsubscribe(command.chat_id)
            except OSError as exc:
                LOGGER.error("Error saving subscribers: %s", exc)
                return STORAGE_ERROR_TEXT
            if result is UnsubscribeResult.NOT_SUBSCRIBED:
                return NOT_SUBSCRIBED_TEXT
            return UNSUBSCRIBED_TEXT

        return UNKNOWN_COMMAND_TEXT


class CommandPoller:
    """Long-polls Telegram for bot commands and answers each one."""

    def __init__(
        self,
        transport: TelegramClient,
        handler: CommandHandler,
        *,
        poll_timeout: int = 30,
    ) -> None:
        self.transport = transport
        self.handler = handler
        self.poll_timeout = poll_timeout
        self.offset = 0

    def run(self, stop_event: threading.Event) -> None:
        LOGGER.info("Listening for bot commands")
        while not stop_event.is_set():
            try:
                self.poll_once()
            except (RequestException, TelegramError, ValueError) as exc:
                LOGGER.warning(
                    "Fetching bot updates failed (%s). Retrying in %ss", exc, ERROR_PAUSE_SECONDS
                )
                stop_event.wait(ERROR_PAUSE_SECONDS)
            except Exception:
                LOGGER.exception("Unexpected failure while handling bot updates")
                stop_event.wait(ERROR_PAUSE_SECONDS)
        LOGGER.info("Command listener stopped")

    def poll_once(self) -> int:
        updates = self.transport.get_updates(offset=self.offset, poll_timeout=self.poll_timeout)
        processed = 0
        for update in updates:
            update_id = update.get("update_id")
            if isinstance(update_id, int):
                self.offset = max(self.offset, update_id + 1)

            command = _to_command(update)
            if command is None:
                continue

            reply = self.handler.handle(command)
            try:
                self.transport.send_message(command.chat_id, reply)
            except RequestException as exc:
                LOGGER.warning("Error sending reply to %s: %s", command.chat_id, exc)
            processed += 1

        if processed:
            LOGGER.info("Processed %s bot command(s)", processed)
        return processed


def _to_command(update: dict) -> InboundCommand | None:
    message = update.get("message")
    if not isinstance(message, dict):
        return None

    name = parse_command(str(message.get("text") or ""))
    if name is None:
        return None

    chat = message.get("chat") if isinstance(message.get("chat"), dict) else {}
    chat_id = chat.get("id")
    if not isinstance(chat_id, int):
        return None

    sender = message.get("from") if isinstance(message.get("from"), dict) else {}
    return InboundCommand(
        name=name,
        chat_id=chat_id,
        first_name=str(sender.get("first_name") or ""),
        username=str(sender.get("username") or ""),
    )
