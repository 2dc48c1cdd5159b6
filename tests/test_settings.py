import os

import pytest

from settings import Settings, load_settings
from tts_engine import DEFAULT_MODEL, DEFAULT_VOICE_ID


def test_defaults_when_environment_is_empty() -> None:
    settings = load_settings(env={})
    assert settings == Settings()
    assert settings.wpm == 300
    assert settings.tts_enabled is False
    assert settings.voice_id == DEFAULT_VOICE_ID
    assert settings.tts_model == DEFAULT_MODEL


def test_values_are_read_from_environment() -> None:
    settings = load_settings(env={
        "RSVP_WPM": " 450 ",
        "RSVP_TTS": "Yes",
        "RSVP_OCR_LANG": "deu",
        "RSVP_OCR_SCALE": "3",
        "ELEVENLABS_API_KEY": "sk-test",
        "VOICE_ID": "voice123",
        "RSVP_TTS_MODEL": "eleven_multilingual_v2",
    })
    assert settings.wpm == 450
    assert settings.tts_enabled is True
    assert settings.ocr_lang == "deu"
    assert settings.ocr_scale == 3.0
    assert settings.elevenlabs_api_key == "sk-test"
    assert settings.voice_id == "voice123"
    assert settings.tts_model == "eleven_multilingual_v2"


@pytest.mark.parametrize("raw", ["fast", "0", "-20", "2.5"])
def test_bad_wpm_is_rejected(raw: str) -> None:
    with pytest.raises(ValueError, match="RSVP_WPM"):
        load_settings(env={"RSVP_WPM": raw})


def test_bad_ocr_scale_is_rejected() -> None:
    with pytest.raises(ValueError, match="RSVP_OCR_SCALE"):
        load_settings(env={"RSVP_OCR_SCALE": "0"})


def test_dotenv_file_is_loaded(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("RSVP_WPM", raising=False)
    (tmp_path / ".env").write_text("RSVP_WPM=275\n")
    try:
        assert load_settings().wpm == 275
    finally:
        os.environ.pop("RSVP_WPM", None)
