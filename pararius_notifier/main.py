from __future__ import annotations

import argparse
import logging
import signal

from requests import RequestException

from pararius_notifier.config import load_settings
from pararius_notifier.monitor import MonitorService
from pararius_notifier.telegram_client import TelegramError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Pararius rental listing monitor with Telegram notifications"
    )
    parser.add_argument("--output", help="Directory to save listing JSON files (env: OUTPUT_DIR)")
    parser.add_argument("--token", help="Telegram bot token (env: TELEGRAM_BOT_TOKEN)")
    parser.add_argument("--once", action="store_true", help="Run one polling cycle and exit")
    parser.add_argument(
        "--dry-run", action="store_true", help="Log new listings without saving or sending"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        settings = load_settings(
            output_dir=args.output,
            bot_token=args.token,
            require_bot_token=not args.dry_run,
        )
    except ValueError as exc:
        raise SystemExit(f"Configuration error: {exc}") from None

    log_level = logging.DEBUG if args.debug else getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logger = logging.getLogger(__name__)

    try:
        service = MonitorService(settings, dry_run=args.dry_run)
    except OSError as exc:
        raise SystemExit(f"Failed to create output directory: {exc}") from None

    try:
        service.authenticate()
    except (RequestException, TelegramError) as exc:
        service.close()
        raise SystemExit(f"Telegram authentication failed: {exc}") from None

    if args.once:
        if service.notifier is not None:
            service.notifier.load()
        try:
            result = service.poll_once()
        finally:
            service.close()
        total, new = result or (0, 0)
        logger.info("One-shot done: total=%s new=%s", total, new)
        return

    # Stop after the in-flight poll completes.
    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, lambda *_: service.stop())
    service.serve()


if __name__ == "__main__":
    main()
