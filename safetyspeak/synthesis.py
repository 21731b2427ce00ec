"""Speech synthesis with the Kokoro ONNX model.

Loads the model lazily, splits text at sentence boundaries and subdivides
chunks that exceed the model's phoneme limit.
"""

# Standard library imports
import logging
import os
from typing import List, Optional, Tuple

# Third-party imports
import numpy as np
from kokoro_onnx import Kokoro

from safetyspeak.core import AudioArtifact, SPEECH_LANGUAGES, TargetLanguage
from safetyspeak.errors import SynthesisError

logger = logging.getLogger(__name__)

# Default voice per Kokoro language code
DEFAULT_VOICES = {
    'ko': 'af_sarah',
    'en-us': 'af_sarah',
    'zh': 'zf_xiaobei',
}

# Chunks shorter than this are not subdivided further
MIN_CHUNK_SIZE = 20


def chunk_text(text: str, chunk_size: int = 1000) -> List[str]:
    """Split text into chunks at sentence boundaries.

    Args:
        text: Text to chunk
        chunk_size: Target chunk size in characters

    Returns:
        List of text chunks
    """
    sentences = text.replace('\n', ' ').split('.')
    chunks = []
    current_chunk = []
    current_size = 0

    for sentence in sentences:
        if not sentence.strip():
            continue

        sentence = sentence.strip() + '.'
        sentence_size = len(sentence)

        # Split long sentences
        if sentence_size > chunk_size:
            if current_chunk:
                chunks.append(' '.join(current_chunk))
                current_chunk = []
                current_size = 0
            chunks.extend(_split_words(sentence, chunk_size))
            continue

        # Start new chunk if needed
        if current_size + sentence_size > chunk_size and current_chunk:
            chunks.append(' '.join(current_chunk))
            current_chunk = []
            current_size = 0

        current_chunk.append(sentence)
        current_size += sentence_size

    if current_chunk:
        chunks.append(' '.join(current_chunk))

    return chunks


def _split_words(text: str, size: int) -> List[str]:
    """Split text on word boundaries into pieces of at most ``size`` characters."""
    pieces = []
    current_piece = []
    current_piece_size = 0

    for word in text.split():
        word_size = len(word) + 1
        if current_piece_size + word_size > size and current_piece:
            pieces.append(' '.join(current_piece).strip())
            current_piece = [word]
            current_piece_size = word_size
        else:
            current_piece.append(word)
            current_piece_size += word_size

    if current_piece:
        pieces.append(' '.join(current_piece).strip())
    return pieces


class SpeechSynthesizer:
    """Text-to-speech backend built on kokoro-onnx."""

    def __init__(
        self,
        model_path: str = "kokoro-v1.0.onnx",
        voices_path: str = "voices-v1.0.bin",
        speed: float = 1.0,
        use_gpu: bool = False,
        provider: Optional[str] = None,
        voices: Optional[dict] = None
    ):
        """Initialize the synthesizer.

        Args:
            model_path: Path to the Kokoro ONNX model file
            voices_path: Path to the voices binary file
            speed: Speech speed multiplier
            use_gpu: If True, automatically select the best available GPU provider
            provider: Explicit onnxruntime provider name; takes precedence over use_gpu
            voices: Voice per Kokoro language code, overriding the defaults

        Raises:
            FileNotFoundError: If model or voices files don't exist
        """
        self.model_path = model_path
        self.voices_path = voices_path
        self.speed = speed
        self.use_gpu = use_gpu
        self.provider = provider
        self.voices = {**DEFAULT_VOICES, **(voices or {})}
        self.kokoro: Optional[Kokoro] = None

        if not os.path.exists(model_path):
            raise FileNotFoundError(f"Model file not found: {model_path}")
        if not os.path.exists(voices_path):
            raise FileNotFoundError(f"Voices file not found: {voices_path}")

    def load_model(self):
        """Load the Kokoro model, selecting an execution provider first.

        Raises:
            RuntimeError: If a GPU was requested but none is available
        """
        if self.kokoro is None:
            if self.provider:
                os.environ['ONNX_PROVIDER'] = self.provider
            elif self.use_gpu:
                selected_provider = self._select_gpu_provider()
                if selected_provider:
                    os.environ['ONNX_PROVIDER'] = selected_provider
                else:
                    raise RuntimeError("GPU requested but no compatible GPU provider found")

            logger.info("Loading speech model %s", self.model_path)
            self.kokoro = Kokoro(self.model_path, self.voices_path)

    def _select_gpu_provider(self) -> Optional[str]:
        """Select the best available GPU provider.

        Returns:
            Provider name or None if no GPU available
        """
        try:
            import onnxruntime as ort
        except ImportError:
            return None

        available_providers = ort.get_available_providers()
        for name in (
            'CUDAExecutionProvider',
            'TensorrtExecutionProvider',
            'ROCMExecutionProvider',
            'CoreMLExecutionProvider',
        ):
            if name in available_providers:
                return name
        return None

    def process_chunk(
        self,
        chunk: str,
        voice: str,
        lang: str
    ) -> Tuple[Optional[List[float]], Optional[int]]:
        """Synthesize one chunk, subdividing it on phoneme length errors.

        Returns:
            Tuple of (samples, sample_rate) or (None, None) if nothing could be produced
        """
        try:
            samples, sample_rate = self.kokoro.create(
                chunk, voice=voice, speed=self.speed, lang=lang
            )
            return samples, sample_rate
        except IndexError as e:
            # Kokoro overflows its phoneme buffer ("index 510 is out of bounds")
            if "out of bounds" not in str(e) or len(chunk) <= MIN_CHUNK_SIZE:
                raise
            logger.debug("Chunk of %d chars too long for model, subdividing", len(chunk))

        all_samples = []
        last_sample_rate = None
        for piece in _split_words(chunk, int(len(chunk) * 0.6)):
            samples, sr = self.process_chunk(piece, voice, lang)
            if samples is not None:
                all_samples.extend(samples)
                last_sample_rate = sr

        if all_samples:
            return all_samples, last_sample_rate
        return None, None

    def synthesize(self, text: str, language: TargetLanguage) -> AudioArtifact:
        """Convert text to a decoded audio buffer.

        Args:
            text: Text to speak
            language: Language of the text

        Returns:
            AudioArtifact with the whole utterance

        Raises:
            SynthesisError: If the language has no voice or no audio was produced
        """
        lang = SPEECH_LANGUAGES.get(language)
        if lang is None:
            raise SynthesisError(f"No speech voice available for {language.value}")

        self.load_model()
        voice = self.voices.get(lang, DEFAULT_VOICES['en-us'])

        all_samples = []
        sample_rate = None
        for chunk in chunk_text(text):
            samples, sr = self.process_chunk(chunk, voice, lang)
            if samples is not None:
                all_samples.extend(samples)
                if sample_rate is None:
                    sample_rate = sr

        if not all_samples:
            raise SynthesisError("The speech model returned no audio data.")
        return AudioArtifact.from_samples(np.array(all_samples), sample_rate)
