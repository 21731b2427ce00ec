"""Audio playback with pause, resume and progress reporting.

One ``PlaybackController`` owns at most one session. The audio device is
driven through an ``AudioOutput``; the default one streams the decoded
buffer to sounddevice. Progress is sampled once per frame from a clock, not
from the device, so it can be tested with a manual clock.
"""

# Standard library imports
import asyncio
import functools
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Callable, List, Optional

from safetyspeak.core import AudioArtifact

logger = logging.getLogger(__name__)

DEFAULT_FRAME_INTERVAL = 1 / 60


class PlaybackState(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


class PlaybackEndReason(str, Enum):
    """Why a playback session stopped emitting audio."""
    NATURAL = "natural"    # Reached the end of the buffer
    PAUSED = "paused"      # Paused by the operator, can be resumed
    STOPPED = "stopped"    # Stopped explicitly or its item was removed
    REPLACED = "replaced"  # Another item started playing


@dataclass(eq=False)
class PlaybackSession:
    """Playback of one item's audio across play/pause cycles."""
    item_id: str
    artifact: AudioArtifact
    cumulative_offset: float = 0.0
    session_start: Optional[float] = None
    running: bool = False

    def elapsed(self, now: float) -> float:
        """Seconds of audio consumed, including the current interval."""
        if self.running and self.session_start is not None:
            return self.cumulative_offset + (now - self.session_start)
        return self.cumulative_offset


class AudioOutput(ABC):
    """Emits a decoded buffer to an audio device."""

    @abstractmethod
    def start(
        self,
        artifact: AudioArtifact,
        offset_seconds: float,
        on_finished: Callable[[], None]
    ):
        """Start emitting from ``offset_seconds``.

        ``on_finished`` is called on the event loop thread when the buffer
        plays to its end, never after ``halt()``.
        """

    @abstractmethod
    def halt(self):
        """Stop emitting immediately. Safe to call when idle."""


class SoundDeviceOutput(AudioOutput):
    """AudioOutput backed by a sounddevice output stream.

    Must be started from the thread running the event loop; the stream
    callback runs on the audio thread.
    """

    def __init__(self, device=None):
        self.device = device
        self._stream = None
        self._halted: Optional[threading.Event] = None

    def start(self, artifact, offset_seconds, on_finished):
        import sounddevice as sd

        self.halt()

        loop = asyncio.get_running_loop()
        samples = artifact.samples[artifact.frame_at(offset_seconds):]
        halted = threading.Event()
        position = 0

        def callback(outdata, frames, time_info, status):
            nonlocal position
            if status:
                logger.debug("Output stream status: %s", status)
            chunk = samples[position:position + frames]
            outdata[:len(chunk), 0] = chunk
            position += len(chunk)
            if len(chunk) < frames:
                outdata[len(chunk):] = 0
                raise sd.CallbackStop()

        def finished_callback():
            if not halted.is_set():
                loop.call_soon_threadsafe(on_finished)

        stream = sd.OutputStream(
            samplerate=artifact.sample_rate,
            channels=1,
            dtype='float32',
            device=self.device,
            callback=callback,
            finished_callback=finished_callback,
        )
        self._stream = stream
        self._halted = halted
        stream.start()

    def halt(self):
        stream, halted = self._stream, self._halted
        self._stream = None
        self._halted = None
        if stream is None:
            return
        halted.set()
        try:
            stream.stop()
        finally:
            stream.close()


class PlaybackController:
    """
    Play, pause, resume and stop one item's audio at a time.

    Args:
        output: Audio device wrapper (sounddevice when None)
        clock: Monotonic clock in seconds
        frame_interval: Seconds between progress samples
    """

    def __init__(
        self,
        output: Optional[AudioOutput] = None,
        clock: Callable[[], float] = time.monotonic,
        frame_interval: float = DEFAULT_FRAME_INTERVAL
    ):
        self.output = output if output is not None else SoundDeviceOutput()
        self.clock = clock
        self.frame_interval = frame_interval
        self.progress = 0.0

        self._session: Optional[PlaybackSession] = None
        self._progress_task: Optional[asyncio.Task] = None
        self._progress_listeners: List[Callable[[str, float], None]] = []
        self._end_listeners: List[Callable[[str, PlaybackEndReason], None]] = []

    @property
    def session(self) -> Optional[PlaybackSession]:
        return self._session

    @property
    def state(self) -> PlaybackState:
        if self._session is None:
            return PlaybackState.STOPPED
        if self._session.running:
            return PlaybackState.PLAYING
        return PlaybackState.PAUSED

    @property
    def playing_item_id(self) -> Optional[str]:
        return self._session.item_id if self._session is not None else None

    @property
    def is_paused(self) -> bool:
        return self.state == PlaybackState.PAUSED

    def elapsed(self) -> float:
        if self._session is None:
            return 0.0
        return self._session.elapsed(self.clock())

    def on_progress(self, callback: Callable[[str, float], None]):
        """Register ``callback(item_id, progress)``, called once per frame."""
        self._progress_listeners.append(callback)

    def on_session_end(self, callback: Callable[[str, PlaybackEndReason], None]):
        """Register ``callback(item_id, reason)``, called when emission stops."""
        self._end_listeners.append(callback)

    # Commands

    def play(self, artifact: AudioArtifact, item_id: str, resume: bool = False):
        """
        Start or resume playback of an item.

        Another item's session is stopped first. Without ``resume`` the item
        restarts from the beginning; with ``resume`` a paused session of the
        same item continues from its offset.
        """
        if artifact.duration <= 0:
            raise ValueError(f"Audio for {item_id} is empty")

        session = self._session
        if session is not None and session.item_id != item_id:
            self._end(PlaybackEndReason.REPLACED)
            session = None

        if session is not None and resume:
            if session.running:
                return
        else:
            if session is not None:
                self._teardown(session)
            session = PlaybackSession(item_id=item_id, artifact=artifact)
            self._session = session
            self.progress = 0.0

        session.session_start = self.clock()
        session.running = True
        logger.debug("Playing %s from %.2fs", item_id, session.cumulative_offset)
        self.output.start(
            session.artifact,
            session.cumulative_offset,
            functools.partial(self._on_output_finished, session)
        )
        self._progress_task = asyncio.get_running_loop().create_task(
            self._run_progress(session)
        )

    def pause(self):
        """Pause the running session, keeping its offset."""
        session = self._session
        if session is None or not session.running:
            return

        offset = session.elapsed(self.clock())
        session.cumulative_offset = min(offset, session.artifact.duration)
        session.session_start = None
        self._teardown(session)
        self.progress = min(session.cumulative_offset / session.artifact.duration, 1.0)
        self._notify_end(session.item_id, PlaybackEndReason.PAUSED)

    def stop(self):
        """Stop and forget the current session."""
        if self._session is not None:
            self._end(PlaybackEndReason.STOPPED)

    def release(self, item_id: str):
        """Stop playback if it belongs to ``item_id``."""
        if self.playing_item_id == item_id:
            self.stop()

    # Progress

    async def progress_samples(
        self,
        session: Optional[PlaybackSession] = None
    ) -> AsyncIterator[float]:
        """Yield the playback fraction once per frame until it reaches 1.0."""
        session = session or self._session
        if session is None:
            return

        duration = session.artifact.duration
        while True:
            value = min(session.elapsed(self.clock()) / duration, 1.0) if duration > 0 else 1.0
            yield value
            if value >= 1.0:
                return
            await asyncio.sleep(self.frame_interval)

    async def _run_progress(self, session: PlaybackSession):
        samples = self.progress_samples(session)
        try:
            async for value in samples:
                if self._session is not session or not session.running:
                    break
                self.progress = value
                self._notify_progress(session.item_id, value)
        finally:
            await samples.aclose()

    # Internals

    def _on_output_finished(self, session: PlaybackSession):
        # Stale completion from a paused, stopped or replaced session
        if self._session is not session or not session.running:
            return
        self.progress = 1.0
        self._notify_progress(session.item_id, 1.0)
        self._end(PlaybackEndReason.NATURAL)

    def _teardown(self, session: PlaybackSession):
        """Halt emission and progress sampling for a session."""
        if session.running:
            session.running = False
            self.output.halt()
        task = self._progress_task
        self._progress_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _end(self, reason: PlaybackEndReason):
        session = self._session
        self._session = None
        self._teardown(session)
        self.progress = 0.0
        logger.debug("Playback of %s ended: %s", session.item_id, reason.value)
        self._notify_end(session.item_id, reason)

    def _notify_progress(self, item_id: str, value: float):
        for callback in list(self._progress_listeners):
            callback(item_id, value)

    def _notify_end(self, item_id: str, reason: PlaybackEndReason):
        for callback in list(self._end_listeners):
            callback(item_id, reason)
