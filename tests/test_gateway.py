"""
Tests for the backend stage gateway.
"""
import asyncio
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from safetyspeak.config import PipelineConfig
from safetyspeak.core import TargetLanguage
from safetyspeak.errors import ExtractionError, SynthesisError, TranslationError
from safetyspeak.gateway import BackendStageGateway
from safetyspeak.jobs.models import DocumentSource

from fakes import make_artifact


def make_gateway(**backends):
    extractor = backends.get('extractor', Mock())
    translator = backends.get('translator', Mock())
    synthesizer = backends.get('synthesizer', Mock())
    return BackendStageGateway(extractor, translator, synthesizer, PipelineConfig(max_speech_length=100))


def test_extract_file_runs_extractor():
    extractor = Mock()
    extractor.extract.return_value = "문서 내용"
    gateway = make_gateway(extractor=extractor)

    result = asyncio.run(gateway.extract(DocumentSource(path="a.pdf")))

    assert result == "문서 내용"
    extractor.extract.assert_called_once_with(Path("a.pdf"))


def test_extract_text_source_is_returned_as_is():
    extractor = Mock()
    gateway = make_gateway(extractor=extractor)

    assert asyncio.run(gateway.extract(DocumentSource(text="붙여넣은 텍스트"))) == "붙여넣은 텍스트"
    extractor.extract.assert_not_called()


def test_extract_error_propagates():
    extractor = Mock()
    extractor.extract.side_effect = ExtractionError("File not found: a.pdf")
    gateway = make_gateway(extractor=extractor)

    with pytest.raises(ExtractionError):
        asyncio.run(gateway.extract(DocumentSource(path="a.pdf")))


def test_translate_strips_result():
    translator = Mock()
    translator.translate.return_value = "  Wear a helmet.\n"
    gateway = make_gateway(translator=translator)

    assert asyncio.run(gateway.translate("안전모", TargetLanguage.ENGLISH)) == "Wear a helmet."
    translator.translate.assert_called_once_with("안전모", TargetLanguage.ENGLISH)


@pytest.mark.parametrize("result", ["", "   ", None])
def test_translate_empty_result(result):
    translator = Mock()
    translator.translate.return_value = result
    gateway = make_gateway(translator=translator)

    with pytest.raises(TranslationError, match="empty response"):
        asyncio.run(gateway.translate("안전모", TargetLanguage.ENGLISH))


def test_synthesize_returns_artifact():
    synthesizer = Mock()
    artifact = make_artifact(0.2)
    synthesizer.synthesize.return_value = artifact
    gateway = make_gateway(synthesizer=synthesizer)

    assert asyncio.run(gateway.synthesize("Wear a helmet.", TargetLanguage.ENGLISH)) is artifact


def test_synthesize_defaults_to_korean():
    synthesizer = Mock()
    synthesizer.synthesize.return_value = make_artifact(0.2)
    gateway = make_gateway(synthesizer=synthesizer)

    asyncio.run(gateway.synthesize("안전모"))
    synthesizer.synthesize.assert_called_once_with("안전모", TargetLanguage.KOREAN)


def test_synthesize_rejects_long_text():
    synthesizer = Mock()
    gateway = make_gateway(synthesizer=synthesizer)

    with pytest.raises(SynthesisError) as exc_info:
        asyncio.run(gateway.synthesize("x" * 101, TargetLanguage.ENGLISH))

    assert "too long" in exc_info.value.message
    assert exc_info.value.hint
    synthesizer.synthesize.assert_not_called()


def test_synthesize_wraps_backend_errors():
    synthesizer = Mock()
    synthesizer.synthesize.side_effect = RuntimeError("onnx session failed")
    gateway = make_gateway(synthesizer=synthesizer)

    with pytest.raises(SynthesisError, match="onnx session failed") as exc_info:
        asyncio.run(gateway.synthesize("Stop.", TargetLanguage.ENGLISH))
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_synthesize_rejects_non_audio():
    synthesizer = Mock()
    synthesizer.synthesize.return_value = None
    gateway = make_gateway(synthesizer=synthesizer)

    with pytest.raises(SynthesisError, match="no audio"):
        asyncio.run(gateway.synthesize("Stop.", TargetLanguage.ENGLISH))
