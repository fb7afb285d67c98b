"""Shared fixtures: settings factory, fake HTTP client and fake Telegram transport."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Callable

import pytest

from pararius_notifier.config import Settings
from pararius_notifier.models import WatchTarget
from pararius_notifier.pararius_client import parse_listings

SEARCH_PAGE = """
<html><body>
<section class="listing-search-item">
  <h2 class="listing-search-item__title">
    <a href="/appartement-te-huur/utrecht/abc123/oudegracht">Appartement Oudegracht</a>
  </h2>
  <div class="listing-search-item__location">3511 AB Utrecht (Binnenstad)</div>
  <div class="listing-search-item__price">€ 1.850 per maand</div>
  <ul class="illustrated-features">
    <li class="illustrated-features__item">65 m²</li>
    <li class="illustrated-features__item">3 kamers</li>
    <li class="illustrated-features__item">Gestoffeerd</li>
  </ul>
</section>
<section class="listing-search-item">
  <h2 class="listing-search-item__title">
    <a href="/studio-te-huur/utrecht/def456/biltstraat">Studio Biltstraat</a>
  </h2>
  <div class="listing-search-item__price">Prijs op aanvraag</div>
</section>
<section class="advertisement">
  <h2></h2>
  <p>Sponsored</p>
</section>
</body></html>
"""


class FakeTransport:
    def __init__(self, failing_chat_ids: tuple[int, ...] = ()) -> None:
        self.failing_chat_ids = set(failing_chat_ids)
        self.sent: list[tuple[int, str]] = []
        self.updates: list[list[dict]] = []
        self.offsets: list[int] = []

    def send_message(self, chat_id: int, text: str) -> None:
        if chat_id in self.failing_chat_ids:
            raise ConnectionError(f"chat {chat_id} unreachable")
        self.sent.append((chat_id, text))

    def get_updates(self, offset: int, poll_timeout: int = 30, limit: int = 20) -> list[dict]:
        self.offsets.append(offset)
        return self.updates.pop(0) if self.updates else []

    def get_me(self) -> dict:
        return {"id": 1, "username": "test_bot"}


class FakeClient:
    """Serves canned HTML per URL; raises the mapped exception instead when configured."""

    def __init__(self, pages: dict[str, str], origin: str = "https://www.pararius.nl") -> None:
        self.pages = pages
        self.origin = origin
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    def fetch_listings(self, search_url: str):
        self.calls.append(search_url)
        if search_url in self.errors:
            raise self.errors[search_url]
        return parse_listings(self.pages[search_url], origin=self.origin)

    def close(self) -> None:
        return


@pytest.fixture
def search_page() -> str:
    return SEARCH_PAGE


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    def factory(**overrides) -> Settings:
        base = Settings(
            output_dir=str(tmp_path / "listings"),
            telegram_bot_token="123:abc",
            watch_targets=(WatchTarget(url="https://www.pararius.nl/huurwoningen/utrecht"),),
            site_origin="https://www.pararius.nl",
            poll_interval_seconds=300,
            http_timeout_seconds=5,
            http_max_retries=0,
            telegram_poll_timeout_seconds=0,
            subscribers_path=str(tmp_path / "subscribers" / "subscribers.json"),
            log_level="INFO",
            user_agent="pytest",
        )
        return replace(base, **overrides)

    return factory
