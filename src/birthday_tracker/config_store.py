from __future__ import annotations

import os
import tempfile
import tomllib
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from birthday_tracker.models import DEFAULT_LEAP_DAY_RULE, LEAP_DAY_RULES, AppConfig

DEFAULT_TIMEZONE = "UTC"
DEFAULT_COUNTDOWN_REFRESH_SECONDS = 5
DEFAULT_COUNTDOWN_MAX_MINUTES = 10


def _toml_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _validate_bounded_int(name: str, value: int, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer")
    if value < low or value > high:
        raise ValueError(f"{name} must be between {low} and {high}")
    return value


def validate_config(config: AppConfig) -> AppConfig:
    timezone = config.timezone.strip()
    if not timezone:
        raise ValueError("timezone must not be empty")
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {timezone}") from exc

    leap_day_rule = config.leap_day_rule.strip().lower()
    if leap_day_rule not in LEAP_DAY_RULES:
        raise ValueError(f"leap_day_rule must be one of {sorted(LEAP_DAY_RULES)}")

    return AppConfig(
        timezone=timezone,
        leap_day_rule=leap_day_rule,
        countdown_refresh_seconds=_validate_bounded_int(
            "countdown_refresh_seconds", config.countdown_refresh_seconds, 1, 3600
        ),
        countdown_max_minutes=_validate_bounded_int(
            "countdown_max_minutes", config.countdown_max_minutes, 1, 1440
        ),
    )


def load_config(path: Path) -> AppConfig:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("rb") as file_obj:
        data = tomllib.load(file_obj)

    config = AppConfig(
        timezone=str(data.get("timezone", "")),
        leap_day_rule=str(data.get("leap_day_rule", DEFAULT_LEAP_DAY_RULE)),
        countdown_refresh_seconds=data.get("countdown_refresh_seconds", DEFAULT_COUNTDOWN_REFRESH_SECONDS),
        countdown_max_minutes=data.get("countdown_max_minutes", DEFAULT_COUNTDOWN_MAX_MINUTES),
    )
    return validate_config(config)


def render_config(config: AppConfig) -> str:
    validated = validate_config(config)

    lines: list[str] = [
        "# All \"today\", \"this month\" and wish-year checks use this timezone.",
        f'timezone = "{_toml_escape(validated.timezone)}"',
        "",
        "# Where Feb 29 birthdays land in non-leap years: feb28 or mar1.",
        f'leap_day_rule = "{validated.leap_day_rule}"',
        "",
        f"countdown_refresh_seconds = {validated.countdown_refresh_seconds}",
        f"countdown_max_minutes = {validated.countdown_max_minutes}",
    ]
    return "\n".join(lines) + "\n"


def save_config_atomic(path: Path, config: AppConfig) -> None:
    rendered = render_config(config)
    path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        delete=False,
    ) as temp_file:
        temp_file.write(rendered)
        temp_name = temp_file.name

    os.replace(temp_name, path)


def ensure_default_config(path: Path) -> None:
    if path.exists():
        return

    default_config = AppConfig(
        timezone=DEFAULT_TIMEZONE,
        leap_day_rule=DEFAULT_LEAP_DAY_RULE,
        countdown_refresh_seconds=DEFAULT_COUNTDOWN_REFRESH_SECONDS,
        countdown_max_minutes=DEFAULT_COUNTDOWN_MAX_MINUTES,
    )
    save_config_atomic(path, default_config)
