"""tts_engine.py — ElevenLabs speech for read-along, one utterance at a time."""

import asyncio
import logging
import os
import re
import shutil
import subprocess
import tempfile
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY = 5
DEFAULT_MODEL = "eleven_turbo_v2_5"
# ElevenLabs default fallback voice (Aria - neutral, natural)
DEFAULT_VOICE_ID = "9BWtsMINqrJLrRacOk9x"
PLAYER_COMMAND = ("ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet")


def player_available(command=PLAYER_COMMAND) -> bool:
    return shutil.which(command[0]) is not None


def is_retryable(error: Exception) -> bool:
    """Rate limits and server errors are worth another attempt."""
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status == 429 or status >= 500
    message = str(error).lower()
    return "429" in message or "rate" in message or re.match(r"5\d\d\b", message) is not None


def synthesize_audio(client, text: str, voice_id: str, model_id: str, retry_delay: float = RETRY_DELAY) -> bytes:
    """Call ElevenLabs TTS API for one batch of words, returning MP3 bytes."""
    from elevenlabs import VoiceSettings

    delay = retry_delay
    last_error = None

    for attempt in range(MAX_RETRIES):
        try:
            audio_generator = client.text_to_speech.convert(
                voice_id=voice_id,
                text=text,
                model_id=model_id,
                voice_settings=VoiceSettings(
                    stability=0.5,
                    similarity_boost=0.75,
                    style=0.0,
                    use_speaker_boost=True,
                ),
                output_format="mp3_44100_128",
            )
            return b"".join(audio_generator)

        except Exception as e:
            last_error = e
            if is_retryable(e):
                logger.warning("Rate limit / server error (attempt %d/%d): %s", attempt + 1, MAX_RETRIES, e)
                time.sleep(delay)
                delay *= 2
            else:
                raise

    raise RuntimeError(f"TTS failed after {MAX_RETRIES} attempts: {last_error}")


class ElevenLabsSpeech:
    """
    Speech collaborator: speak() synthesizes and plays a batch on a worker
    thread and returns a future for it. Inside a running event loop the
    future is an asyncio future, so completion is observed on the loop.
    cancel() stops playback of the current utterance and discards any
    synthesis still in progress.
    """

    def __init__(
        self,
        client,
        voice_id: str = DEFAULT_VOICE_ID,
        model_id: str = DEFAULT_MODEL,
        player_command=PLAYER_COMMAND,
        executor: ThreadPoolExecutor | None = None,
    ):
        self.client = client
        self.voice_id = voice_id
        self.model_id = model_id
        self.player_command = tuple(player_command)
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="speech")
        self._lock = threading.Lock()
        self._generation = 0
        self._process: subprocess.Popen | None = None

    def speak(self, text: str):
        with self._lock:
            self._generation += 1
            generation = self._generation
        future = self._executor.submit(self._speak, text, generation)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return future
        return asyncio.wrap_future(future, loop=loop)

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            process = self._process
        if process is not None and process.poll() is None:
            process.terminate()

    def shutdown(self) -> None:
        self.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _speak(self, text: str, generation: int) -> None:
        audio = synthesize_audio(self.client, text, self.voice_id, self.model_id)
        if not self._is_current(generation):
            return

        fd, name = tempfile.mkstemp(suffix=".mp3", prefix="rsvp_")
        audio_path = Path(name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(audio)
            with self._lock:
                if generation != self._generation:
                    return
                self._process = subprocess.Popen(
                    [*self.player_command, str(audio_path)],
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
                process = self._process
            process.wait()
        finally:
            with self._lock:
                if self._process is not None and self._process.poll() is not None:
                    self._process = None
            audio_path.unlink(missing_ok=True)
