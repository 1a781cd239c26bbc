from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    telegram_allowed_user_ids: frozenset[int]
    tracker_config_path: Path
    record_store_path: Path
    log_level: str = "INFO"


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        raise ValueError(f"Missing required environment variable: {name}")
    return value.strip()


def _parse_user_ids(raw: str) -> frozenset[int]:
    user_ids: set[int] = set()
    for token in raw.split(","):
        cleaned = token.strip()
        if not cleaned:
            continue
        try:
            user_ids.add(int(cleaned))
        except ValueError as exc:
            raise ValueError(f"TELEGRAM_ALLOWED_USER_IDS contains a non-integer: {cleaned!r}") from exc

    if not user_ids:
        raise ValueError("TELEGRAM_ALLOWED_USER_IDS must list at least one user id")
    return frozenset(user_ids)


def load_settings() -> Settings:
    root = Path.cwd()

    token = _required_env("TELEGRAM_BOT_TOKEN")
    allowed_user_ids = _parse_user_ids(_required_env("TELEGRAM_ALLOWED_USER_IDS"))

    tracker_config_path = Path(
        os.getenv("TRACKER_CONFIG_PATH", root / "config" / "tracker.toml")
    )
    record_store_path = Path(
        os.getenv("RECORD_STORE_PATH", root / "data" / "records.json")
    )

    return Settings(
        telegram_bot_token=token,
        telegram_allowed_user_ids=allowed_user_ids,
        tracker_config_path=tracker_config_path,
        record_store_path=record_store_path,
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
