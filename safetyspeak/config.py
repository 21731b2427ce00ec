"""Pipeline configuration for SafetySpeak.

Limits, delays and backend settings used by the queue processor, the
playback controller and the default stage backends.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from safetyspeak.core import TargetLanguage


@dataclass
class PipelineConfig:
    """Configuration for the processing pipeline.

    Attributes:
        max_input_length: Extracted text longer than this is clipped (characters)
        max_speech_length: Longest text accepted by a single speech request
        inter_item_delay: Pause between queue items (seconds)
        passthrough_delay: Simulated latency when translation is skipped (seconds)
        passthrough_language: Language whose items are not translated
        max_file_size_mb: Largest file accepted at intake
        sample_rate: Sample rate of synthesized audio (Hz)
        frame_interval: Progress sampling period during playback (seconds)
        translation_model: Chat model used for translation
        translation_base_url: Base URL of the OpenAI-compatible API
        translation_timeout: HTTP timeout for translation requests (seconds)
        api_key: API key for the translation backend
        log_level: Logging level name used by the CLI
    """
    max_input_length: int = 10000
    max_speech_length: int = 4000
    inter_item_delay: float = 0.1
    passthrough_delay: float = 0.3
    passthrough_language: TargetLanguage = TargetLanguage.KOREAN
    max_file_size_mb: float = 3.0
    sample_rate: int = 24000
    frame_interval: float = 1 / 60
    translation_model: str = "gpt-4.1-mini"
    translation_base_url: str = "https://api.openai.com/v1"
    translation_timeout: float = 60.0
    api_key: Optional[str] = field(default=None, repr=False)
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate limits after dataclass init."""
        if self.max_input_length <= 0:
            raise ValueError("max_input_length must be positive")
        if self.max_speech_length <= 0:
            raise ValueError("max_speech_length must be positive")
        if self.inter_item_delay < 0 or self.passthrough_delay < 0:
            raise ValueError("delays must not be negative")
        if self.frame_interval <= 0:
            raise ValueError("frame_interval must be positive")
        if not isinstance(self.passthrough_language, TargetLanguage):
            self.passthrough_language = TargetLanguage.parse(self.passthrough_language)

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)

    @classmethod
    def from_env(cls):
        """Load configuration from environment variables.

        Environment variables:
            SAFETYSPEAK_MAX_INPUT_LENGTH: Extraction clip length (integer)
            SAFETYSPEAK_MAX_SPEECH_LENGTH: Speech request limit (integer)
            SAFETYSPEAK_INTER_ITEM_DELAY: Delay between items (seconds)
            SAFETYSPEAK_PASSTHROUGH_DELAY: Delay for skipped translation (seconds)
            SAFETYSPEAK_PASSTHROUGH_LANGUAGE: Language that is never translated
            SAFETYSPEAK_MAX_FILE_SIZE_MB: Intake size limit (megabytes)
            SAFETYSPEAK_SAMPLE_RATE: Synthesis sample rate (integer)
            SAFETYSPEAK_FRAME_INTERVAL: Playback progress period (seconds)
            SAFETYSPEAK_TRANSLATION_MODEL: Chat model name
            SAFETYSPEAK_TRANSLATION_BASE_URL: API base URL
            SAFETYSPEAK_TRANSLATION_TIMEOUT: HTTP timeout (seconds)
            SAFETYSPEAK_API_KEY / OPENAI_API_KEY: Translation API key
            SAFETYSPEAK_LOG_LEVEL: Logging level name

        Returns:
            PipelineConfig instance with values from environment
        """
        defaults = cls()

        return cls(
            max_input_length=int(os.getenv('SAFETYSPEAK_MAX_INPUT_LENGTH', defaults.max_input_length)),
            max_speech_length=int(os.getenv('SAFETYSPEAK_MAX_SPEECH_LENGTH', defaults.max_speech_length)),
            inter_item_delay=float(os.getenv('SAFETYSPEAK_INTER_ITEM_DELAY', defaults.inter_item_delay)),
            passthrough_delay=float(os.getenv('SAFETYSPEAK_PASSTHROUGH_DELAY', defaults.passthrough_delay)),
            passthrough_language=TargetLanguage.parse(
                os.getenv('SAFETYSPEAK_PASSTHROUGH_LANGUAGE', defaults.passthrough_language.value)
            ),
            max_file_size_mb=float(os.getenv('SAFETYSPEAK_MAX_FILE_SIZE_MB', defaults.max_file_size_mb)),
            sample_rate=int(os.getenv('SAFETYSPEAK_SAMPLE_RATE', defaults.sample_rate)),
            frame_interval=float(os.getenv('SAFETYSPEAK_FRAME_INTERVAL', defaults.frame_interval)),
            translation_model=os.getenv('SAFETYSPEAK_TRANSLATION_MODEL', defaults.translation_model),
            translation_base_url=os.getenv('SAFETYSPEAK_TRANSLATION_BASE_URL', defaults.translation_base_url),
            translation_timeout=float(os.getenv('SAFETYSPEAK_TRANSLATION_TIMEOUT', defaults.translation_timeout)),
            api_key=os.getenv('SAFETYSPEAK_API_KEY') or os.getenv('OPENAI_API_KEY') or None,
            log_level=os.getenv('SAFETYSPEAK_LOG_LEVEL', defaults.log_level).upper(),
        )
