"""
Speech Recognizers — Streaming Speech-to-Text Backends
=======================================================
A recognizer turns a stream of audio frames into partial and final
transcripts. TranscriptionSession only talks to the two small interfaces
below, so any backend (or a scripted fake in tests) can be plugged in.

    SpeechRecognizer.start(on_result, on_error) -> RecognitionTask
    RecognitionTask.append(frame) / end_audio() / cancel()

Results and errors are delivered asynchronously, possibly on another
thread and possibly after the caller has stopped listening.
"""

from __future__ import annotations

import io
import logging
import queue
import threading
import time
import wave
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class RecognitionResult:
    text: str
    is_final: bool = False
    confidence: Optional[float] = None


class RecognizerErrorCode(Enum):
    CANCELED = "canceled"          # the task was cancelled (by us or by the system)
    UNAVAILABLE = "unavailable"    # backend temporarily unreachable / overloaded
    OTHER = "other"


class RecognizerError(Exception):
    """An error reported by a recognition task."""

    def __init__(self, code: RecognizerErrorCode, message: str = ""):
        super().__init__(message or code.value)
        self.code = code
        self.message = message or code.value


ResultCallback = Callable[[RecognitionResult], None]
ErrorCallback = Callable[[RecognizerError], None]


# ─────────────────────────────────────────────────────────────
#  Interfaces
# ─────────────────────────────────────────────────────────────

class RecognitionTask(ABC):
    """One in-flight recognition request."""

    @abstractmethod
    def append(self, frame: np.ndarray):
        """Feed one block of float32 mono samples. Must not block."""
        ...

    @abstractmethod
    def end_audio(self):
        """No more audio is coming; deliver the final result."""
        ...

    @abstractmethod
    def cancel(self):
        """Abandon the request. Reports a CANCELED error."""
        ...


class SpeechRecognizer(ABC):
    """Factory for recognition tasks."""

    @abstractmethod
    def is_available(self) -> bool:
        ...

    @abstractmethod
    def start(self, on_result: ResultCallback, on_error: ErrorCallback) -> RecognitionTask:
        ...


# ─────────────────────────────────────────────────────────────
#  OpenAI transcription backend
# ─────────────────────────────────────────────────────────────

def pcm16_wav(samples: np.ndarray, sample_rate: int) -> io.BytesIO:
    """Encode float32 samples in [-1, 1] as a mono 16-bit WAV file in memory."""
    pcm16 = np.clip(samples * 32768.0, -32768, 32767).astype(np.int16)
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm16.tobytes())
    buffer.seek(0)
    buffer.name = "speech.wav"
    return buffer


def classify_recognizer_error(exc: BaseException) -> RecognizerErrorCode:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int) and (status == 429 or status >= 500):
        return RecognizerErrorCode.UNAVAILABLE
    name = type(exc).__name__.lower()
    if "connection" in name or "timeout" in name or isinstance(exc, (ConnectionError, TimeoutError)):
        return RecognizerErrorCode.UNAVAILABLE
    return RecognizerErrorCode.OTHER


_END = object()
_CANCEL = object()


class _OpenAITask(RecognitionTask):
    """Buffers audio on a worker thread and transcribes it in passes.

    A partial pass runs every `partial_interval` seconds while new audio
    keeps arriving; one final pass runs over the whole buffer after
    end_audio().
    """

    def __init__(self, recognizer: OpenAIStreamingRecognizer,
                 on_result: ResultCallback, on_error: ErrorCallback):
        self._recognizer = recognizer
        self._on_result = on_result
        self._on_error = on_error
        self._queue: queue.Queue = queue.Queue()
        self._chunks: list[np.ndarray] = []
        self._done = threading.Event()
        self._thread = threading.Thread(target=self._run, name="openai-recognizer", daemon=True)
        self._thread.start()

    def append(self, frame: np.ndarray):
        if not self._done.is_set():
            self._queue.put_nowait(np.asarray(frame, dtype=np.float32).reshape(-1).copy())

    def end_audio(self):
        self._queue.put_nowait(_END)

    def cancel(self):
        self._queue.put_nowait(_CANCEL)

    def _audio(self) -> np.ndarray:
        if not self._chunks:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(self._chunks)

    def _run(self):
        interval = self._recognizer.partial_interval
        last_pass = time.monotonic()
        dirty = False
        try:
            while True:
                try:
                    item = self._queue.get(timeout=0.1)
                except queue.Empty:
                    item = None

                if item is _CANCEL:
                    self._on_error(RecognizerError(RecognizerErrorCode.CANCELED,
                                                   "Recognition request was canceled"))
                    return
                if item is _END:
                    text = self._recognizer.transcribe(self._audio()) if self._chunks else ""
                    self._on_result(RecognitionResult(text=text, is_final=True))
                    return
                if item is not None:
                    self._chunks.append(item)
                    dirty = True

                if dirty and interval > 0 and time.monotonic() - last_pass >= interval:
                    text = self._recognizer.transcribe(self._audio())
                    last_pass = time.monotonic()
                    dirty = False
                    if text:
                        self._on_result(RecognitionResult(text=text, is_final=False))
        except Exception as e:
            code = classify_recognizer_error(e)
            logger.warning("Transcription failed (%s): %s", code.value, e)
            self._on_error(RecognizerError(code, str(e)))
        finally:
            self._done.set()


class OpenAIStreamingRecognizer(SpeechRecognizer):
    """Pseudo-streaming recognizer over the OpenAI transcription endpoint.

    Install: pip install openai
    """

    DEFAULT_MODEL = "gpt-4o-mini-transcribe"

    def __init__(self, api_key: str = "", model: str = "", language: Optional[str] = None,
                 sample_rate: int = 16000, partial_interval: float = 1.5,
                 timeout: float = 30.0):
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.language = language
        self.sample_rate = sample_rate
        self.partial_interval = partial_interval
        self.timeout = timeout
        self._client = None

    def _get_client(self):
        if self._client is None:
            try:
                from openai import OpenAI
                self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
            except ImportError:
                raise ImportError(
                    "OpenAI recognizer requires 'openai'. "
                    "Install with: pip install openai"
                )
        return self._client

    def transcribe(self, samples: np.ndarray) -> str:
        kwargs = {"model": self.model, "file": pcm16_wav(samples, self.sample_rate)}
        if self.language:
            kwargs["language"] = self.language
        response = self._get_client().audio.transcriptions.create(**kwargs)
        return (getattr(response, "text", "") or "").strip()

    def is_available(self) -> bool:
        return bool(self.api_key)

    def start(self, on_result: ResultCallback, on_error: ErrorCallback) -> RecognitionTask:
        logger.debug("Starting %s recognition task", self.model)
        return _OpenAITask(self, on_result, on_error)
