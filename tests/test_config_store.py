from pathlib import Path

import pytest

from birthday_tracker.config_store import ensure_default_config, load_config, save_config_atomic
from birthday_tracker.models import AppConfig


def _write(path: Path, body: str) -> None:
    path.write_text(body.strip() + "\n", encoding="utf-8")


def test_roundtrip_config(tmp_path: Path) -> None:
    path = tmp_path / "tracker.toml"
    config = AppConfig(
        timezone="America/Los_Angeles",
        leap_day_rule="mar1",
        countdown_refresh_seconds=2,
        countdown_max_minutes=30,
    )

    save_config_atomic(path, config)

    assert load_config(path) == config


def test_ensure_default_config_creates_file_once(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "tracker.toml"

    ensure_default_config(path)
    first = load_config(path)
    path.write_text(path.read_text(encoding="utf-8").replace('"UTC"', '"Asia/Tokyo"'), encoding="utf-8")
    ensure_default_config(path)

    assert first.timezone == "UTC"
    assert first.leap_day_rule == "feb28"
    assert load_config(path).timezone == "Asia/Tokyo"


def test_missing_optional_keys_use_defaults(tmp_path: Path) -> None:
    path = tmp_path / "tracker.toml"
    _write(path, 'timezone = "Europe/Berlin"')

    config = load_config(path)

    assert config.leap_day_rule == "feb28"
    assert config.countdown_refresh_seconds == 5
    assert config.countdown_max_minutes == 10


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.toml")


@pytest.mark.parametrize(
    "body",
    [
        'timezone = ""',
        'timezone = "Mars/Olympus_Mons"',
        'timezone = "UTC"\nleap_day_rule = "never"',
        'timezone = "UTC"\ncountdown_refresh_seconds = 0',
        'timezone = "UTC"\ncountdown_max_minutes = "ten"',
    ],
)
def test_invalid_values_rejected(tmp_path: Path, body: str) -> None:
    path = tmp_path / "tracker.toml"
    _write(path, body)

    with pytest.raises(ValueError):
        load_config(path)
