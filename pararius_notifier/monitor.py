from __future__ import annotations

import enum
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait

from requests import RequestException

from pararius_notifier.commands import CommandHandler, CommandPoller
from pararius_notifier.config import Settings
from pararius_notifier.listing_store import ListingStore
from pararius_notifier.models import Listing, WatchTarget
from pararius_notifier.notifier import SubscriberNotifier, format_listing_message
from pararius_notifier.pararius_client import ParariusClient
from pararius_notifier.telegram_client import TelegramClient

LOGGER = logging.getLogger(__name__)


class SchedulerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class MonitorService:
    """Polls every watch target on a fixed interval and notifies subscribers.

    Components default to the real implementations built from ``settings``;
    tests pass their own.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client: ParariusClient | None = None,
        store: ListingStore | None = None,
        transport: TelegramClient | None = None,
        notifier: SubscriberNotifier | None = None,
        dry_run: bool = False,
    ) -> None:
        self.settings = settings
        self.dry_run = dry_run
        self.client = client or ParariusClient(
            origin=settings.site_origin,
            timeout_seconds=settings.http_timeout_seconds,
            max_retries=settings.http_max_retries,
            user_agent=settings.user_agent,
        )
        self.store = store or ListingStore(settings.output_dir)

        if transport is None and settings.telegram_bot_token and not dry_run:
            transport = TelegramClient(
                bot_token=settings.telegram_bot_token,
                timeout_seconds=settings.http_timeout_seconds,
            )
        self.transport = transport
        if notifier is None and transport is not None:
            notifier = SubscriberNotifier(transport, settings.subscribers_path)
        self.notifier = notifier

        self.state = SchedulerState.IDLE
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._delivery = ThreadPoolExecutor(max_workers=1, thread_name_prefix="delivery")
        self._pending: list[Future] = []
        self._poller_thread: threading.Thread | None = None

    def authenticate(self) -> None:
        if self.transport is None:
            return
        bot = self.transport.get_me()
        LOGGER.info("Authorized on account %s", bot.get("username", "<unknown>"))

    def poll_target(self, target: WatchTarget) -> tuple[int, int]:
        listings = self.client.fetch_listings(target.url)
        LOGGER.info("Fetched %s listing(s) from %s", len(listings), target.name)

        new_listings: list[Listing] = []
        seen: set[str] = set()
        for listing in listings:
            if not listing.url:
                LOGGER.warning("Skipping listing without URL: %s", listing.title)
                continue
            if listing.fingerprint in seen or self.store.exists(listing.fingerprint):
                continue
            seen.add(listing.fingerprint)

            if self.dry_run:
                LOGGER.info("[DRY-RUN] New listing: %s | %s", listing.title, listing.url)
                new_listings.append(listing)
                continue

            try:
                path = self.store.save(listing)
            except OSError as exc:
                LOGGER.error("Error writing listing %s to disk: %s", listing.url, exc)
                continue
            LOGGER.info("New listing: %s | %s (saved to %s)", listing.title, listing.url, path)
            new_listings.append(listing)

        if new_listings and not self.dry_run:
            self._notify(new_listings)
        return len(listings), len(new_listings)

    def poll_once(self) -> tuple[int, int] | None:
        if not self._cycle_lock.acquire(blocking=False):
            LOGGER.info("Previous poll still running, skipping this tick")
            return None

        self.state = SchedulerState.RUNNING
        total_count = 0
        new_count = 0
        try:
            for target in self.settings.watch_targets:
                try:
                    total, new = self.poll_target(target)
                except RequestException as exc:
                    LOGGER.warning("Fetching %s failed: %s", target.name, exc)
                    continue
                except Exception:
                    LOGGER.exception("Unexpected failure while polling %s", target.name)
                    continue
                total_count += total
                new_count += new
        finally:
            self.state = SchedulerState.IDLE
            self._cycle_lock.release()

        LOGGER.info("Poll finished: total=%s new=%s", total_count, new_count)
        return total_count, new_count

    def run_forever(self) -> None:
        interval = self.settings.poll_interval_seconds
        next_tick = time.monotonic()
        while not self._stop_event.is_set():
            self.poll_once()
            next_tick = _next_tick(next_tick, interval, time.monotonic())
            sleep_seconds = max(0.0, next_tick - time.monotonic())
            LOGGER.debug("Sleeping for %.0fs before next poll", sleep_seconds)
            self._stop_event.wait(sleep_seconds)

    def serve(self) -> None:
        """Run the command listener and the poll loop until ``stop()``."""
        if self.notifier is not None:
            self.notifier.load()
            poller = CommandPoller(
                self.transport,
                CommandHandler(self.notifier),
                poll_timeout=self.settings.telegram_poll_timeout_seconds,
            )
            self._poller_thread = threading.Thread(
                target=poller.run, args=(self._stop_event,), name="commands", daemon=True
            )
            self._poller_thread.start()

        try:
            self.run_forever()
        finally:
            self.close()

    def stop(self) -> None:
        LOGGER.info("Shutdown requested, finishing current poll")
        self._stop_event.set()

    def flush_deliveries(self, timeout: float | None = None) -> None:
        wait(list(self._pending), timeout=timeout)
        self._pending = [future for future in self._pending if not future.done()]

    def close(self) -> None:
        self._stop_event.set()
        self._delivery.shutdown(wait=True)
        if self._poller_thread is not None:
            self._poller_thread.join(timeout=self.poller_join_timeout)
            if self._poller_thread.is_alive():
                LOGGER.warning("Command listener did not stop within %ss", self.poller_join_timeout)
        self.client.close()

    @property
    def poller_join_timeout(self) -> int:
        # One getUpdates call lasts at most the long-poll window plus the HTTP timeout.
        return self.settings.http_timeout_seconds + self.settings.telegram_poll_timeout_seconds

    def _notify(self, listings: list[Listing]) -> None:
        if self.notifier is None or not self.notifier.has_subscribers():
            LOGGER.info("No subscribers, skipping %s notification(s)", len(listings))
            return

        self._pending = [future for future in self._pending if not future.done()]
        for listing in listings:
            message = format_listing_message(listing)
            self._pending.append(self._delivery.submit(self._deliver, message, listing.url))

    def _deliver(self, message: str, url: str) -> None:
        delivered = self.notifier.notify_all(message)
        LOGGER.info("Sent notification for %s to %s subscriber(s)", url, delivered)


def _next_tick(previous: float, interval: float, now: float) -> float:
    next_tick = previous + interval
    if next_tick < now:
        missed = int((now - next_tick) // interval) + 1
        LOGGER.warning("Poll overran the interval, skipping %s tick(s)", missed)
        next_tick += missed * interval
    return next_tick
