from __future__ import annotations

import enum
import json
import logging
import threading
from pathlib import Path

from pararius_notifier.listing_store import write_atomic
from pararius_notifier.models import Listing, Subscriber
from pararius_notifier.telegram_client import TelegramClient

LOGGER = logging.getLogger(__name__)


class SubscribeResult(enum.Enum):
    ADDED = "added"
    ALREADY_SUBSCRIBED = "already_subscribed"


class UnsubscribeResult(enum.Enum):
    REMOVED = "removed"
    NOT_SUBSCRIBED = "not_subscribed"


class SubscriberNotifier:
    """Owns the subscriber set and fans notifications out to it.

    All access to the set goes through ``_lock``. Each mutation is written to
    ``subscribers_path`` before the method returns; when that write fails the
    mutation is undone and the ``OSError`` is raised to the caller.
    """

    def __init__(self, transport: TelegramClient, subscribers_path: str) -> None:
        self.transport = transport
        self.subscribers_path = Path(subscribers_path)
        self._subscribers: dict[int, Subscriber] = {}
        self._lock = threading.Lock()

    def load(self) -> int:
        if not self.subscribers_path.exists():
            LOGGER.info("No subscribers file found, starting with an empty subscriber list")
            return 0

        try:
            with self.subscribers_path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
            loaded = {
                int(key): Subscriber.from_record(record) for key, record in raw.items()
            }
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            LOGGER.warning("Could not load subscribers from %s: %s", self.subscribers_path, exc)
            return 0

        with self._lock:
            self._subscribers = loaded
        LOGGER.info("Loaded %s subscriber(s) from disk", len(loaded))
        return len(loaded)

    def subscribe(self, chat_id: int, first_name: str, username: str = "") -> SubscribeResult:
        with self._lock:
            if chat_id in self._subscribers:
                return SubscribeResult.ALREADY_SUBSCRIBED

            self._subscribers[chat_id] = Subscriber(
                chat_id=chat_id, first_name=first_name, username=username or ""
            )
            try:
                self._persist()
            except OSError:
                del self._subscribers[chat_id]
                raise

        LOGGER.info("New subscriber: %s (ID: %s)", first_name, chat_id)
        return SubscribeResult.ADDED

    def unsubscribe(self, chat_id: int) -> UnsubscribeResult:
        with self._lock:
            removed = self._subscribers.pop(chat_id, None)
            if removed is None:
                return UnsubscribeResult.NOT_SUBSCRIBED
            try:
                self._persist()
            except OSError:
                self._subscribers[chat_id] = removed
                raise

        LOGGER.info("Unsubscribed user: %s", chat_id)
        return UnsubscribeResult.REMOVED

    def has_subscribers(self) -> bool:
        with self._lock:
            return bool(self._subscribers)

    def subscribers(self) -> list[Subscriber]:
        with self._lock:
            return list(self._subscribers.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def notify_all(self, message: str) -> int:
        delivered = 0
        for subscriber in self.subscribers():
            try:
                self.transport.send_message(subscriber.chat_id, message)
            except Exception as exc:
                LOGGER.warning(
                    "Error sending notification to %s: %s", subscriber.chat_id, exc
                )
                continue
            delivered += 1
        return delivered

    def _persist(self) -> None:
        self.subscribers_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            str(chat_id): subscriber.to_record()
            for chat_id, subscriber in self._subscribers.items()
        }
        write_atomic(self.subscribers_path, json.dumps(payload, indent=2, ensure_ascii=False))
        LOGGER.info("Saved %s subscriber(s) to disk", len(payload))


def format_listing_message(listing: Listing) -> str:
    lines = ["🏠 New rental listing", "", listing.title]
    if listing.address:
        lines.append(f"Address: {listing.address}")
    if listing.price_value:
        lines.append(f"Price: €{listing.price_value} per month")
    else:
        lines.append("Price: unknown")
    if listing.size:
        lines.append(f"Size: {listing.size}")
    if listing.rooms:
        lines.append(f"Rooms: {listing.rooms}")
    lines.extend(["", listing.url])
    return "\n".join(lines)
