"""settings.py — Reader configuration from the environment and .env."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from pacing import DEFAULT_WPM
from tts_engine import DEFAULT_MODEL, DEFAULT_VOICE_ID

ENV_FILE = Path(".env")
_TRUE = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    wpm: int = DEFAULT_WPM
    tts_enabled: bool = False
    ocr_lang: str = "eng"
    ocr_scale: float = 2.0
    elevenlabs_api_key: str = ""
    voice_id: str = DEFAULT_VOICE_ID
    tts_model: str = DEFAULT_MODEL


def _positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be a positive integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {raw!r}")
    return value


def _positive_float(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a positive number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be a positive number, got {raw!r}")
    return value


def load_settings(env=None, env_file: Path | None = ENV_FILE) -> Settings:
    """Read settings from `env` (default: os.environ after loading .env)."""
    if env is None:
        if env_file is not None:
            load_dotenv(env_file)
        env = os.environ

    settings = Settings()
    raw = env.get("RSVP_WPM", "").strip()
    if raw:
        settings.wpm = _positive_int("RSVP_WPM", raw)
    settings.tts_enabled = env.get("RSVP_TTS", "").strip().lower() in _TRUE
    settings.ocr_lang = env.get("RSVP_OCR_LANG", "").strip() or settings.ocr_lang
    raw = env.get("RSVP_OCR_SCALE", "").strip()
    if raw:
        settings.ocr_scale = _positive_float("RSVP_OCR_SCALE", raw)
    settings.elevenlabs_api_key = env.get("ELEVENLABS_API_KEY", "").strip()
    settings.voice_id = env.get("VOICE_ID", "").strip() or settings.voice_id
    settings.tts_model = env.get("RSVP_TTS_MODEL", "").strip() or settings.tts_model
    return settings
