#!/usr/bin/env python3
"""Unit tests for Kokoro speech synthesis.

The Kokoro model is mocked; these tests cover chunking, voice selection and
the phoneme-limit subdivision.
"""

import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import unittest
from unittest.mock import Mock, patch

import numpy as np

from safetyspeak.core import AudioArtifact, TargetLanguage
from safetyspeak.errors import SynthesisError
from safetyspeak.synthesis import DEFAULT_VOICES, SpeechSynthesizer, chunk_text


class TestChunkText(unittest.TestCase):
    """Test sentence-boundary chunking."""

    def test_short_text_is_one_chunk(self):
        self.assertEqual(chunk_text("Wear a helmet. Clip your harness."),
                         ["Wear a helmet. Clip your harness."])

    def test_chunks_respect_size(self):
        text = "Keep the walkway clear. " * 50
        chunks = chunk_text(text, chunk_size=100)
        self.assertGreater(len(chunks), 1)
        for chunk in chunks:
            self.assertLessEqual(len(chunk), 100)

    def test_long_sentence_is_split_on_words(self):
        text = " ".join(["scaffold"] * 60)
        chunks = chunk_text(text, chunk_size=50)
        self.assertGreater(len(chunks), 1)
        self.assertEqual(" ".join(chunks).rstrip("."), text)

    def test_empty_text(self):
        self.assertEqual(chunk_text("   "), [])


class TestSpeechSynthesizer(unittest.TestCase):
    """Test SpeechSynthesizer with a mocked model."""

    def setUp(self):
        self.exists_patch = patch('safetyspeak.synthesis.os.path.exists', return_value=True)
        self.kokoro_patch = patch('safetyspeak.synthesis.Kokoro')
        self.exists_patch.start()
        self.kokoro_class = self.kokoro_patch.start()
        self.kokoro = self.kokoro_class.return_value
        self.kokoro.create.return_value = (np.zeros(2400, dtype=np.float32), 24000)

    def tearDown(self):
        self.kokoro_patch.stop()
        self.exists_patch.stop()

    def test_missing_model_files(self):
        with patch('safetyspeak.synthesis.os.path.exists', return_value=False):
            with self.assertRaises(FileNotFoundError):
                SpeechSynthesizer()

    def test_model_is_loaded_lazily_once(self):
        synthesizer = SpeechSynthesizer()
        self.kokoro_class.assert_not_called()

        synthesizer.synthesize("Wear a helmet.", TargetLanguage.ENGLISH)
        synthesizer.synthesize("Clip your harness.", TargetLanguage.ENGLISH)
        self.kokoro_class.assert_called_once_with("kokoro-v1.0.onnx", "voices-v1.0.bin")

    def test_synthesize_returns_artifact(self):
        synthesizer = SpeechSynthesizer(speed=1.2)
        artifact = synthesizer.synthesize("安全第一。", TargetLanguage.CHINESE)

        self.assertIsInstance(artifact, AudioArtifact)
        self.assertEqual(artifact.sample_rate, 24000)
        self.assertEqual(artifact.frame_count, 2400)
        self.kokoro.create.assert_called_with(
            "安全第一。.", voice=DEFAULT_VOICES['zh'], speed=1.2, lang='zh'
        )

    def test_chunks_are_concatenated(self):
        synthesizer = SpeechSynthesizer()
        text = "Keep the walkway clear. " * 100
        artifact = synthesizer.synthesize(text, TargetLanguage.ENGLISH)

        calls = self.kokoro.create.call_count
        self.assertGreater(calls, 1)
        self.assertEqual(artifact.frame_count, 2400 * calls)

    def test_voice_override(self):
        synthesizer = SpeechSynthesizer(voices={'en-us': 'am_adam'})
        synthesizer.synthesize("Stop work.", TargetLanguage.ENGLISH)
        self.assertEqual(self.kokoro.create.call_args.kwargs['voice'], 'am_adam')

    def test_language_without_voice(self):
        synthesizer = SpeechSynthesizer()
        with self.assertRaises(SynthesisError):
            synthesizer.synthesize("Xavfsizlik", TargetLanguage.UZBEK)
        self.kokoro.create.assert_not_called()

    def test_no_audio_produced(self):
        self.kokoro.create.return_value = (np.array([], dtype=np.float32), 24000)
        synthesizer = SpeechSynthesizer()
        with self.assertRaises(SynthesisError):
            synthesizer.synthesize("Wear a helmet.", TargetLanguage.ENGLISH)

    def test_phoneme_overflow_is_subdivided(self):
        """Test that an index overflow splits the chunk and retries."""
        def create(chunk, voice, speed, lang):
            if len(chunk) > 60:
                raise IndexError("index 510 is out of bounds for axis 0 with size 510")
            return np.ones(100, dtype=np.float32), 24000

        self.kokoro.create.side_effect = create
        synthesizer = SpeechSynthesizer()
        synthesizer.load_model()

        samples, sample_rate = synthesizer.process_chunk(
            "Inspect every anchor point and lanyard before climbing the scaffold today.",
            'af_sarah', 'en-us'
        )
        self.assertEqual(sample_rate, 24000)
        self.assertGreaterEqual(len(samples), 200)

    def test_other_index_errors_propagate(self):
        self.kokoro.create.side_effect = IndexError("list index out of range")
        synthesizer = SpeechSynthesizer()
        synthesizer.load_model()
        with self.assertRaises(IndexError):
            synthesizer.process_chunk("Wear a helmet.", 'af_sarah', 'en-us')

    def test_explicit_provider(self):
        with patch.dict(os.environ, {}, clear=False):
            synthesizer = SpeechSynthesizer(provider='CPUExecutionProvider')
            synthesizer.load_model()
            self.assertEqual(os.environ['ONNX_PROVIDER'], 'CPUExecutionProvider')

    def test_gpu_requested_but_unavailable(self):
        synthesizer = SpeechSynthesizer(use_gpu=True)
        with patch.object(synthesizer, '_select_gpu_provider', return_value=None):
            with self.assertRaises(RuntimeError):
                synthesizer.load_model()

    def test_select_gpu_provider(self):
        fake_ort = Mock()
        fake_ort.get_available_providers.return_value = ['CPUExecutionProvider', 'CUDAExecutionProvider']
        with patch.dict(sys.modules, {'onnxruntime': fake_ort}):
            self.assertEqual(SpeechSynthesizer()._select_gpu_provider(), 'CUDAExecutionProvider')


if __name__ == '__main__':
    unittest.main(verbosity=2)
