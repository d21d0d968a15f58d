import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings for the encryption core.

    Attributes:
        log_level: Level name passed to `configure_logging`
        reject_reinitialize: Refuse to overwrite a conversation whose peer key is bound
        fingerprint_group: Characters per group when rendering fingerprints for humans
    """
    log_level: str = "WARNING"
    reject_reinitialize: bool = False
    fingerprint_group: int = 4


def load_settings() -> Settings:
    """Read settings from the environment (and a `.env` file, if present)."""
    log_level = os.getenv("CHAT_E2EE_LOG_LEVEL", "WARNING").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"CHAT_E2EE_LOG_LEVEL: unknown level {log_level!r}")

    group_raw = os.getenv("CHAT_E2EE_FINGERPRINT_GROUP", "4")
    try:
        group = int(group_raw)
    except ValueError:
        raise ValueError(f"CHAT_E2EE_FINGERPRINT_GROUP must be an integer, got {group_raw!r}")
    if group < 1:
        raise ValueError("CHAT_E2EE_FINGERPRINT_GROUP must be >= 1")

    return Settings(
        log_level=log_level,
        reject_reinitialize=_env_bool("CHAT_E2EE_REJECT_REINITIALIZE", False),
        fingerprint_group=group,
    )


def configure_logging(level: str | None = None) -> None:
    if level is None:
        level = load_settings().log_level
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
