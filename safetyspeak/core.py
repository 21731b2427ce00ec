"""Shared types for SafetySpeak.

Target languages, audio artifacts and output formats used by the queue
processor, the playback controller and the stage backends.
"""

# Standard library imports
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

# Third-party imports
import numpy as np
import soundfile as sf

from safetyspeak.errors import SynthesisError

DEFAULT_SAMPLE_RATE = 24000


class TargetLanguage(str, Enum):
    """Languages a briefing can be delivered in.

    Values double as the language names used in translation prompts.
    """
    KOREAN = "Korean"
    ENGLISH = "English"
    CHINESE = "Chinese (Simplified)"
    VIETNAMESE = "Vietnamese"
    RUSSIAN = "Russian"
    UZBEK = "Uzbek"

    @classmethod
    def parse(cls, value: Union[str, "TargetLanguage"]) -> "TargetLanguage":
        """Resolve a language from its value, member name or a loose spelling.

        Raises:
            ValueError: If no language matches
        """
        if isinstance(value, cls):
            return value

        wanted = str(value).strip().lower()
        for lang in cls:
            if wanted in (lang.value.lower(), lang.name.lower()):
                return lang
        # "chinese" for "Chinese (Simplified)"
        for lang in cls:
            if lang.value.lower().split(" (")[0] == wanted:
                return lang

        supported = ', '.join(lang.value for lang in cls)
        raise ValueError(f"Unsupported language: {value}\nSupported: {supported}")


DEFAULT_LANGUAGE = TargetLanguage.CHINESE

# Display names for selectors: (label shown to the Korean operator, native name)
LANGUAGE_LABELS = {
    TargetLanguage.KOREAN: ("한국어", "한국어"),
    TargetLanguage.ENGLISH: ("영어", "English"),
    TargetLanguage.CHINESE: ("중국어 (간체)", "中文 (简体)"),
    TargetLanguage.VIETNAMESE: ("베트남어", "Tiếng Việt"),
    TargetLanguage.RUSSIAN: ("러시아어", "Русский"),
    TargetLanguage.UZBEK: ("우즈베키스탄어", "Oʻzbekcha"),
}

# Kokoro language codes; languages missing here have no speech voice
SPEECH_LANGUAGES = {
    TargetLanguage.KOREAN: 'ko',
    TargetLanguage.ENGLISH: 'en-us',
    TargetLanguage.CHINESE: 'zh',
}

# Short codes used in output file names
LANGUAGE_CODES = {
    TargetLanguage.KOREAN: 'ko',
    TargetLanguage.ENGLISH: 'en',
    TargetLanguage.CHINESE: 'zh',
    TargetLanguage.VIETNAMESE: 'vi',
    TargetLanguage.RUSSIAN: 'ru',
    TargetLanguage.UZBEK: 'uz',
}


class AudioFormat(Enum):
    """Supported audio output formats."""
    WAV = "wav"
    MP3 = "mp3"
    M4A = "m4a"


@dataclass(eq=False)
class AudioArtifact:
    """A fully decoded mono audio buffer for one queue item."""
    samples: np.ndarray
    sample_rate: int = DEFAULT_SAMPLE_RATE

    @classmethod
    def from_samples(
        cls,
        samples: Optional[Sequence[float]],
        sample_rate: Optional[int]
    ) -> "AudioArtifact":
        """Decode backend output into a playable buffer.

        Args:
            samples: Raw samples returned by the speech backend
            sample_rate: Sample rate reported by the backend

        Returns:
            AudioArtifact with float32 samples

        Raises:
            SynthesisError: If there is no audio or it cannot be decoded
        """
        if samples is None or sample_rate is None:
            raise SynthesisError("The speech model returned no audio data.")

        try:
            data = np.asarray(samples, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise SynthesisError(f"Failed to decode audio data: {e}") from e

        if data.ndim == 2 and 1 in data.shape:
            data = data.reshape(-1)
        if data.ndim != 1:
            raise SynthesisError(f"Failed to decode audio data: expected mono, got shape {data.shape}")
        if data.size == 0:
            raise SynthesisError("The speech model returned no audio data.")
        if not np.all(np.isfinite(data)):
            raise SynthesisError("Failed to decode audio data: non-finite samples")
        if int(sample_rate) <= 0:
            raise SynthesisError(f"Failed to decode audio data: invalid sample rate {sample_rate}")

        return cls(samples=data, sample_rate=int(sample_rate))

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        """Length in seconds."""
        if self.sample_rate <= 0:
            return 0.0
        return self.frame_count / self.sample_rate

    def frame_at(self, seconds: float) -> int:
        """Convert a time offset to a frame index clamped to the buffer."""
        frame = int(round(seconds * self.sample_rate))
        return max(0, min(frame, self.frame_count))

    def save(self, output_path: str, format: AudioFormat = AudioFormat.WAV):
        """Save the buffer to a file.

        Args:
            output_path: Output file path
            format: Audio format
        """
        if format == AudioFormat.WAV:
            sf.write(output_path, self.samples, self.sample_rate)
        elif format in [AudioFormat.MP3, AudioFormat.M4A]:
            from pydub import AudioSegment

            # Write to temp WAV first
            with tempfile.NamedTemporaryFile(suffix='.wav', delete=False) as tmp:
                tmp_path = tmp.name
                sf.write(tmp_path, self.samples, self.sample_rate)

            try:
                audio = AudioSegment.from_wav(tmp_path)
                if format == AudioFormat.MP3:
                    audio.export(output_path, format='mp3', bitrate='128k')
                else:  # M4A
                    audio.export(output_path, format='mp4', codec='aac', bitrate='128k')
            finally:
                os.unlink(tmp_path)
