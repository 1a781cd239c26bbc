from __future__ import annotations

import logging
from pathlib import Path

from telegram.ext import Application

from birthday_tracker.bot_handlers import HandlerDependencies, build_handlers, error_handler
from birthday_tracker.config_store import ensure_default_config, load_config
from birthday_tracker.record_store import RecordStore
from birthday_tracker.settings import load_settings
from birthday_tracker.wish_ledger import WishLedger

LOGGER = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)

    _ensure_parent(settings.tracker_config_path)
    _ensure_parent(settings.record_store_path)

    ensure_default_config(settings.tracker_config_path)
    config = load_config(settings.tracker_config_path)
    LOGGER.info("Using timezone %s with leap day rule %s", config.timezone, config.leap_day_rule)

    store = RecordStore(settings.record_store_path)

    application = Application.builder().token(settings.telegram_bot_token).build()
    application.bot_data["handler_deps"] = HandlerDependencies(
        settings=settings,
        config=config,
        store=store,
        ledger=WishLedger(store),
    )

    for handler in build_handlers():
        application.add_handler(handler)
    application.add_error_handler(error_handler)

    application.run_polling()


if __name__ == "__main__":
    main()
