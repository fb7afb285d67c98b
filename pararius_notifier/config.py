from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from pararius_notifier.models import WatchTarget

DEFAULT_WATCH_URL = "https://www.pararius.nl/huurwoningen/utrecht/0-2500"
DEFAULT_SITE_ORIGIN = "https://www.pararius.nl"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


@dataclass(frozen=True)
class Settings:
    output_dir: str
    telegram_bot_token: str | None
    watch_targets: tuple[WatchTarget, ...]
    site_origin: str
    poll_interval_seconds: int
    http_timeout_seconds: int
    http_max_retries: int
    telegram_poll_timeout_seconds: int
    subscribers_path: str
    log_level: str
    user_agent: str


def _get_int(name: str, default: int, minimum: int) -> int:
    raw_value = os.getenv(name, str(default)).strip()
    try:
        value = int(raw_value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw_value!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _get_required(name: str, override: str | None = None) -> str:
    value = (override or os.getenv(name, "")).strip()
    if not value:
        raise ValueError(f"Missing required setting: {name}")
    return value


def _parse_watch_target(item: str) -> WatchTarget:
    label, separator, url = item.partition("=")
    # An "=" after the scheme belongs to the URL's query string, not a label.
    if not separator or "://" in label:
        return WatchTarget(url=item)
    if not url.strip():
        raise ValueError(f"WATCH_URLS entry has no URL: {item!r}")
    return WatchTarget(url=url.strip(), label=label.strip())


def _get_watch_targets() -> tuple[WatchTarget, ...]:
    raw_value = os.getenv("WATCH_URLS", "").strip()
    if not raw_value:
        return (WatchTarget(url=DEFAULT_WATCH_URL, label="Utrecht"),)

    items = [item.strip() for item in raw_value.split(",") if item.strip()]
    if not items:
        raise ValueError("WATCH_URLS must contain at least one URL")
    targets: list[WatchTarget] = []
    seen: set[str] = set()
    for item in items:
        target = _parse_watch_target(item)
        if target.url in seen:
            continue
        seen.add(target.url)
        targets.append(target)
    return tuple(targets)


def load_settings(
    *,
    output_dir: str | None = None,
    bot_token: str | None = None,
    require_bot_token: bool = True,
) -> Settings:
    load_dotenv()

    token = (bot_token or os.getenv("TELEGRAM_BOT_TOKEN", "")).strip() or None
    if require_bot_token and token is None:
        raise ValueError("Missing required setting: TELEGRAM_BOT_TOKEN (or --token)")

    return Settings(
        output_dir=_get_required("OUTPUT_DIR", output_dir),
        telegram_bot_token=token,
        watch_targets=_get_watch_targets(),
        site_origin=os.getenv("SITE_ORIGIN", DEFAULT_SITE_ORIGIN).strip().rstrip("/"),
        poll_interval_seconds=_get_int("POLL_INTERVAL_SECONDS", default=300, minimum=30),
        http_timeout_seconds=_get_int("HTTP_TIMEOUT_SECONDS", default=15, minimum=5),
        http_max_retries=_get_int("HTTP_MAX_RETRIES", default=2, minimum=0),
        telegram_poll_timeout_seconds=_get_int(
            "TELEGRAM_POLL_TIMEOUT_SECONDS", default=30, minimum=0
        ),
        subscribers_path=os.getenv("SUBSCRIBERS_PATH", "subscribers/subscribers.json").strip(),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        user_agent=os.getenv("USER_AGENT", DEFAULT_USER_AGENT).strip(),
    )
