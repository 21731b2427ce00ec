"""Stage gateway: the three external operations the queue processor awaits.

``StageGateway`` is the contract. ``BackendStageGateway`` adapts the
blocking default backends (document extraction, chat translation, Kokoro
speech) by running them in the event loop's default executor.
"""

import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from typing import Optional

from safetyspeak.config import PipelineConfig
from safetyspeak.core import AudioArtifact, TargetLanguage
from safetyspeak.errors import SynthesisError, TranslationError
from safetyspeak.jobs.models import DocumentSource

logger = logging.getLogger(__name__)


class StageGateway(ABC):
    """Asynchronous extraction, translation and speech synthesis."""

    @abstractmethod
    async def extract(self, source: DocumentSource) -> str:
        """Return the text of a document. Raises ExtractionError."""

    @abstractmethod
    async def translate(self, text: str, target_language: TargetLanguage) -> str:
        """Return translated text. Raises TranslationError, also on empty output."""

    @abstractmethod
    async def synthesize(
        self,
        text: str,
        language: Optional[TargetLanguage] = None
    ) -> AudioArtifact:
        """Return decoded speech audio. Raises SynthesisError."""


class BackendStageGateway(StageGateway):
    """
    Gateway over blocking backend objects.

    Args:
        extractor: Object with ``extract(path) -> str``
        translator: Object with ``translate(text, language) -> str``
        synthesizer: Object with ``synthesize(text, language) -> AudioArtifact``
        config: Pipeline limits
    """

    def __init__(self, extractor, translator, synthesizer, config: Optional[PipelineConfig] = None):
        self.extractor = extractor
        self.translator = translator
        self.synthesizer = synthesizer
        self.config = config or PipelineConfig()

    async def _run_blocking(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    async def extract(self, source: DocumentSource) -> str:
        if not source.is_file:
            return source.text
        return await self._run_blocking(self.extractor.extract, source.path)

    async def translate(self, text: str, target_language: TargetLanguage) -> str:
        translated = await self._run_blocking(self.translator.translate, text, target_language)
        if not translated or not translated.strip():
            raise TranslationError("Translation failed: empty response")
        return translated.strip()

    async def synthesize(
        self,
        text: str,
        language: Optional[TargetLanguage] = None
    ) -> AudioArtifact:
        if len(text) > self.config.max_speech_length:
            raise SynthesisError(
                f"Text is too long for speech ({len(text)} > "
                f"{self.config.max_speech_length} characters).",
                hint="Split the content into shorter parts."
            )

        try:
            artifact = await self._run_blocking(
                self.synthesizer.synthesize, text, language or TargetLanguage.KOREAN
            )
        except SynthesisError:
            raise
        except Exception as e:
            raise SynthesisError(f"Speech generation failed ({e})") from e

        if not isinstance(artifact, AudioArtifact):
            raise SynthesisError("The speech model returned no audio data.")
        return artifact
