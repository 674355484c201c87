"""
src/config.py
==============
Configuration — wavgate

Responsibility:
    - Read process-wide settings from the environment (and a .env file)
    - Validate them once, at startup
    - Expose them as an immutable Settings object

Environment variables:
    WELCOME_FILE_PATH             Location of the welcome prompt (welcome_file_path)
    WELCOME_TARGET_PROFILE        mulaw | alaw | pcm16        (default: mulaw)
    WELCOME_MAX_DURATION_SECONDS  Longest acceptable prompt   (default: 120)
    FFMPEG_BINARY                 ffmpeg executable           (default: found on PATH)
    FFMPEG_TIMEOUT_SECONDS        Conversion time limit       (default: 60)
"""

import logging
import math
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

from src.audio.converter import locate_ffmpeg
from src.audio.profile import AudioProfile, InvalidProfileError, get_target_profile

logger = logging.getLogger("wavgate.config")

DEFAULT_TARGET_PROFILE = "mulaw"
DEFAULT_FFMPEG_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_DURATION_SECONDS = 120.0


class ConfigurationError(Exception):
    """Raised when a setting is missing or invalid."""
    pass


@dataclass(frozen=True)
class Settings:
    """Validated process-wide settings."""

    welcome_file_path: str | None
    target_profile_name: str
    ffmpeg_binary: str
    ffmpeg_timeout_seconds: float
    max_duration_seconds: float

    @property
    def target_profile(self) -> AudioProfile:
        return get_target_profile(self.target_profile_name)

    def require_welcome_file_path(self) -> str:
        """
        Raises:
            ConfigurationError: If WELCOME_FILE_PATH is not set.
        """
        if not self.welcome_file_path:
            raise ConfigurationError(
                "WELCOME_FILE_PATH is not set; cannot locate the welcome prompt."
            )
        return self.welcome_file_path


def load_settings() -> Settings:
    """
    Build Settings from the current environment.

    Raises:
        ConfigurationError: If any value is invalid.
    """
    target_name = os.getenv("WELCOME_TARGET_PROFILE", DEFAULT_TARGET_PROFILE).strip().lower()
    try:
        get_target_profile(target_name)
    except InvalidProfileError as exc:
        raise ConfigurationError(f"WELCOME_TARGET_PROFILE: {exc}") from exc

    welcome_file_path = os.getenv("WELCOME_FILE_PATH", "").strip() or None

    settings = Settings(
        welcome_file_path=os.path.expanduser(welcome_file_path) if welcome_file_path else None,
        target_profile_name=target_name,
        ffmpeg_binary=os.getenv("FFMPEG_BINARY", "").strip() or locate_ffmpeg(),
        ffmpeg_timeout_seconds=_positive_float("FFMPEG_TIMEOUT_SECONDS", DEFAULT_FFMPEG_TIMEOUT_SECONDS),
        max_duration_seconds=_positive_float("WELCOME_MAX_DURATION_SECONDS", DEFAULT_MAX_DURATION_SECONDS),
    )

    logger.debug("Settings loaded: %s", settings)
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load .env once and return the cached process-wide Settings."""
    load_dotenv()
    return load_settings()


def _positive_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive finite number, got {raw!r}")
    return value
