import os
from dataclasses import dataclass

import yaml
from babel import Locale, UnknownLocaleError

from .stats import DEFAULT_LOCALE

CONFIG_ENV_KEY = "CONFIG_PATH"
DEFAULT_CONFIG_PATH = "config.yml"
DEFAULT_DATABASE_PATH = "serverstats.db"


@dataclass
class BotConfig:
    token: str
    log_level: str
    database_path: str
    default_locale: str = DEFAULT_LOCALE


def load_config(path: str | None = None) -> BotConfig:
    config_path = path or os.environ.get(CONFIG_ENV_KEY, DEFAULT_CONFIG_PATH)
    with open(config_path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}

    token = str(data.get("token") or "").strip()
    if not token:
        raise ValueError("Config missing 'token'")

    log_level = str(data.get("log_level") or "INFO").upper()
    valid_levels = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
    if log_level not in valid_levels:
        raise ValueError(
            f"Invalid log_level '{log_level}'. Must be one of {sorted(valid_levels)}"
        )

    database_path = str(data.get("database_path") or DEFAULT_DATABASE_PATH).strip()
    if not database_path:
        raise ValueError("Config missing 'database_path'")

    default_locale = str(data.get("default_locale") or DEFAULT_LOCALE).strip()
    try:
        Locale.parse(default_locale, sep="-")
    except (UnknownLocaleError, ValueError) as exc:
        raise ValueError(f"Invalid default_locale '{default_locale}': {exc}") from exc

    return BotConfig(
        token=token,
        log_level=log_level,
        database_path=database_path,
        default_locale=default_locale,
    )
