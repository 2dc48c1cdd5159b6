import asyncio
import shutil
from types import SimpleNamespace

import pytest

import tts_engine
from tts_engine import ElevenLabsSpeech, is_retryable, synthesize_audio


class FlakyTextToSpeech:
    def __init__(self, errors):
        self.errors = list(errors)
        self.calls = []

    def convert(self, **kwargs):
        self.calls.append(kwargs)
        if self.errors:
            raise self.errors.pop(0)
        return iter([b"ID3", b"audio"])


def test_synthesize_retries_rate_limits() -> None:
    pytest.importorskip("elevenlabs")
    tts = FlakyTextToSpeech([RuntimeError("429 Too Many Requests: rate limited")])
    client = SimpleNamespace(text_to_speech=tts)

    audio = synthesize_audio(client, "Hello world.", "voice", "model", retry_delay=0)

    assert audio == b"ID3audio"
    assert len(tts.calls) == 2
    assert tts.calls[0]["text"] == "Hello world."
    assert tts.calls[0]["voice_id"] == "voice"


def test_synthesize_raises_other_errors_immediately() -> None:
    pytest.importorskip("elevenlabs")
    tts = FlakyTextToSpeech([ValueError("invalid voice")])
    client = SimpleNamespace(text_to_speech=tts)

    with pytest.raises(ValueError, match="invalid voice"):
        synthesize_audio(client, "Hi.", "voice", "model", retry_delay=0)
    assert len(tts.calls) == 1


def test_synthesize_gives_up_after_max_retries() -> None:
    pytest.importorskip("elevenlabs")
    tts = FlakyTextToSpeech([RuntimeError("rate limit")] * tts_engine.MAX_RETRIES)
    client = SimpleNamespace(text_to_speech=tts)

    with pytest.raises(RuntimeError, match="TTS failed after"):
        synthesize_audio(client, "Hi.", "voice", "model", retry_delay=0)


class StatusError(Exception):
    def __init__(self, status_code, message=""):
        super().__init__(message)
        self.status_code = status_code


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (StatusError(429), True),
        (StatusError(503, "Service Unavailable"), True),
        (StatusError(400, "rate must be a number"), False),
        (RuntimeError("503 Service Unavailable"), True),
        (RuntimeError("rate limit exceeded"), True),
        (RuntimeError("5 characters is too short for this voice"), False),
        (RuntimeError("50 requests queued"), False),
    ],
)
def test_retryable_errors(error: Exception, expected: bool) -> None:
    assert is_retryable(error) is expected


def test_synthesize_does_not_retry_client_errors_starting_with_five() -> None:
    pytest.importorskip("elevenlabs")
    tts = FlakyTextToSpeech([ValueError("5 characters is too short for this voice")])
    client = SimpleNamespace(text_to_speech=tts)

    with pytest.raises(ValueError):
        synthesize_audio(client, "Hi.", "voice", "model", retry_delay=0)
    assert len(tts.calls) == 1


@pytest.mark.skipif(shutil.which("true") is None, reason="needs a no-op player command")
def test_speak_plays_synthesized_audio(monkeypatch: pytest.MonkeyPatch) -> None:
    spoken = []

    def fake_synthesize(client, text, voice_id, model_id):
        spoken.append((text, voice_id, model_id))
        return b"mp3"

    monkeypatch.setattr(tts_engine, "synthesize_audio", fake_synthesize)
    speech = ElevenLabsSpeech(client=None, voice_id="v1", model_id="m1", player_command=("true",))
    try:
        future = speech.speak("Read this aloud.")
        assert future.result(timeout=10) is None
    finally:
        speech.shutdown()
    assert spoken == [("Read this aloud.", "v1", "m1")]


def test_cancelled_utterance_is_not_played(monkeypatch: pytest.MonkeyPatch) -> None:
    played = []
    speech = ElevenLabsSpeech(client=None, player_command=("true",))

    def fake_synthesize(client, text, voice_id, model_id):
        speech.cancel()
        return b"mp3"

    monkeypatch.setattr(tts_engine, "synthesize_audio", fake_synthesize)
    monkeypatch.setattr(tts_engine.subprocess, "Popen", lambda *a, **k: played.append(a))
    try:
        assert speech.speak("Never heard.").result(timeout=10) is None
    finally:
        speech.shutdown()
    assert played == []


def test_speak_returns_asyncio_future_inside_event_loop(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(tts_engine, "synthesize_audio", lambda *a: b"")
    speech = ElevenLabsSpeech(client=None, player_command=("true",))
    monkeypatch.setattr(speech, "_speak", lambda text, generation: text.upper())

    async def run():
        future = speech.speak("quiet")
        assert isinstance(future, asyncio.Future)
        return await future

    try:
        assert asyncio.run(run()) == "QUIET"
    finally:
        speech.shutdown()
