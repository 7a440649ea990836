"""
Transcription Session — Microphone to Live Transcript
======================================================
Owns the microphone and one recognition task while recording. Every
captured frame is forwarded to the recognizer and, independently,
measured for the live level bars.

State machine:

    READY ──start──▶ RECORDING ──stop──▶ PROCESSING ──finish_processing──▶ GENERATED | ERROR
      ▲                 │                                                         │
      │                 ├── interrupted / unavailable ──▶ ERROR ──start──▶ RECORDING
      └── other error ──┘

Recognizer errors are classified rather than treated as uniformly fatal:

    CANCELED after stop()       — expected, swallowed
    CANCELED while RECORDING    — RecognizerInterrupted (recoverable)
    UNAVAILABLE                 — RecognizerUnavailable (recoverable, retry is up to the caller)
    anything else               — RecordingError, back to READY

Callbacks carry the generation number of the recording that created
them. Anything arriving for an older generation is dropped, so a late
result or error can never touch a newer recording or a stopped one.
"""

from __future__ import annotations

import functools
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from lancards.audio_input import AudioSource, has_input_device
from lancards.audio_levels import AudioLevelMeter
from lancards.errors import (
    LanCardsError, PermissionDenied, RecognizerInterrupted, RecognizerUnavailable,
    RecordingError,
)
from lancards.events import Signal
from lancards.recognizers import (
    RecognitionResult, RecognitionTask, RecognizerError, RecognizerErrorCode,
    SpeechRecognizer,
)

logger = logging.getLogger(__name__)


class TranscriptionState(Enum):
    READY = "ready"
    RECORDING = "recording"
    PROCESSING = "processing"
    GENERATED = "generated"
    ERROR = "error"


@dataclass
class SessionEvent:
    """Something observers of a session may care about.

    kind is one of "state", "partial", "final", "levels", "error".
    """

    kind: str
    state: Optional[TranscriptionState] = None
    text: Optional[str] = None
    levels: Optional[list[float]] = None
    error: Optional[LanCardsError] = None


class PermissionChecker:
    """Microphone permission means a capture device exists; speech
    permission means the recognizer is usable."""

    def __init__(self, recognizer: SpeechRecognizer,
                 microphone_check: Callable[[], bool] = has_input_device):
        self.recognizer = recognizer
        self.microphone_check = microphone_check

    def microphone_granted(self) -> bool:
        return bool(self.microphone_check())

    def speech_granted(self) -> bool:
        return bool(self.recognizer.is_available())

    def request(self) -> bool:
        return self.microphone_granted() and self.speech_granted()


class TranscriptionSession:
    """Recording lifecycle around one SpeechRecognizer and one AudioSource."""

    def __init__(self, recognizer: SpeechRecognizer, audio_source: AudioSource,
                 permissions: Optional[PermissionChecker] = None,
                 meter: Optional[AudioLevelMeter] = None,
                 finalize_timeout: float = 2.0):
        self.recognizer = recognizer
        self.audio_source = audio_source
        self.permissions = permissions or PermissionChecker(recognizer)
        self.meter = meter or AudioLevelMeter()
        self.finalize_timeout = finalize_timeout
        self.events = Signal("transcription")

        self._lock = threading.RLock()
        self._state = TranscriptionState.READY
        self._generation = 0
        self._task: Optional[RecognitionTask] = None
        self._final_event = threading.Event()
        self._permissions_granted = False
        self._transcript = ""
        self._levels = self.meter.silence()
        self._error_message: Optional[str] = None

    # ── Published state ─────────────────────────────────────

    @property
    def state(self) -> TranscriptionState:
        return self._state

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def audio_levels(self) -> list[float]:
        return list(self._levels)

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def has_permissions(self) -> bool:
        return self._permissions_granted

    def _set_state(self, state: TranscriptionState):
        if state is self._state:
            return
        logger.debug("Session %s -> %s", self._state.value, state.value)
        self._state = state
        self.events.emit(SessionEvent("state", state=state))

    def _publish_levels(self, levels: list[float]):
        self._levels = levels
        self.events.emit(SessionEvent("levels", levels=list(levels)))

    # ── Operations ──────────────────────────────────────────

    def request_permissions(self) -> bool:
        granted = self.permissions.request()
        self._permissions_granted = granted
        if not granted:
            logger.warning("Microphone or speech recognition permission missing")
        return granted

    def start(self):
        """Begin recording.

        Raises:
            PermissionDenied: microphone or speech permission is missing.
            RecordingError: the recognizer or the audio device failed to start.
        """
        with self._lock:
            if self._state is TranscriptionState.RECORDING:
                return
            if not self._permissions_granted and not self.request_permissions():
                raise PermissionDenied()

            self._generation += 1
            token = self._generation
            self._final_event.clear()
            self._transcript = ""
            self._error_message = None

            task = None
            try:
                task = self.recognizer.start(
                    functools.partial(self._on_result, token),
                    functools.partial(self._on_error, token),
                )
                self._task = task
                self.audio_source.start(functools.partial(self._on_frame, token))
            except Exception as e:
                self._generation += 1
                self._task = None
                if task is not None:
                    task.cancel()
                self._error_message = f"Failed to start recording: {e}"
                logger.error(self._error_message)
                self._set_state(TranscriptionState.ERROR)
                raise RecordingError(self._error_message) from e

            logger.info("Recording started")
            self._set_state(TranscriptionState.RECORDING)

    def stop(self) -> str:
        """Stop recording and return the final transcript.

        Waits at most `finalize_timeout` for the recognizer's final
        result; after that the task is cancelled and whatever partial
        transcript arrived is used.
        """
        with self._lock:
            if self._state is not TranscriptionState.RECORDING:
                return self._transcript.strip()
            token = self._generation
            task = self._task
            self._set_state(TranscriptionState.PROCESSING)

        # The device is closed outside the lock: closing waits for the
        # capture callback, which itself takes the lock.
        self._close_audio()
        if task is not None:
            task.end_audio()
            if not self._final_event.wait(self.finalize_timeout):
                logger.warning("No final transcript after %.1fs; cancelling recognition",
                               self.finalize_timeout)
                task.cancel()

        with self._lock:
            if self._generation == token:
                self._generation += 1
            self._task = None
            self._publish_levels(self.meter.silence())
            transcript = self._transcript.strip()
            self._transcript = transcript
            self.events.emit(SessionEvent("final", text=transcript))
        logger.info("Recording stopped (%d chars transcribed)", len(transcript))
        return transcript

    def finish_processing(self, succeeded: bool):
        """Record the outcome of the generation the transcript was handed to."""
        with self._lock:
            if self._state is TranscriptionState.PROCESSING:
                self._set_state(TranscriptionState.GENERATED if succeeded else TranscriptionState.ERROR)

    def cleanup(self):
        """Release the microphone and recognizer and return to READY."""
        with self._lock:
            task = self._retire()
            self._set_state(TranscriptionState.READY)
        self._teardown(task)

    # ── Callbacks ───────────────────────────────────────────

    def _on_frame(self, token: int, frame):
        if token != self._generation:
            return
        task = self._task
        if task is not None:
            task.append(frame)
        levels = self.meter.measure(frame)
        with self._lock:
            if token == self._generation and self._state is TranscriptionState.RECORDING:
                self._publish_levels(levels)

    def _on_result(self, token: int, result: RecognitionResult):
        with self._lock:
            if token != self._generation:
                logger.debug("Dropping late recognition result")
                return
            self._transcript = result.text
            if result.is_final:
                self._final_event.set()
            else:
                self.events.emit(SessionEvent("partial", text=result.text))

    def _on_error(self, token: int, error: RecognizerError):
        with self._lock:
            if token != self._generation:
                logger.debug("Dropping late recognizer error: %s", error.message)
                return

            if self._state is not TranscriptionState.RECORDING:
                if error.code is RecognizerErrorCode.CANCELED:
                    logger.debug("Recognizer cancellation after stop ignored")
                else:
                    logger.warning("Recognizer error while finalizing: %s", error.message)
                self._final_event.set()
                return

            if error.code is RecognizerErrorCode.CANCELED:
                failure: LanCardsError = RecognizerInterrupted(
                    "Speech recognition was interrupted. Please try again.")
                next_state = TranscriptionState.ERROR
            elif error.code is RecognizerErrorCode.UNAVAILABLE:
                failure = RecognizerUnavailable(
                    "Speech recognition temporarily unavailable. Please try again.")
                next_state = TranscriptionState.ERROR
            else:
                failure = RecordingError(f"Speech recognition error: {error.message}")
                next_state = TranscriptionState.READY

            logger.warning("%s", failure)
            task = self._retire()
            self._error_message = str(failure)
            self._set_state(next_state)
            self.events.emit(SessionEvent("error", state=next_state, error=failure))
        self._teardown(task)

    # ── Teardown ────────────────────────────────────────────

    def _retire(self) -> Optional[RecognitionTask]:
        """Invalidate outstanding callbacks and reset levels. Caller holds the lock."""
        self._generation += 1
        task, self._task = self._task, None
        self._final_event.set()
        self._publish_levels(self.meter.silence())
        return task

    def _teardown(self, task: Optional[RecognitionTask]):
        self._close_audio()
        if task is not None:
            task.cancel()

    def _close_audio(self):
        try:
            self.audio_source.stop()
        except Exception as e:
            logger.warning("Closing the audio source failed: %s", e)
