"""
Tests for the chat-completions translator.
"""
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from safetyspeak.core import TargetLanguage
from safetyspeak.errors import TranslationError
from safetyspeak.translation import (
    ChatTranslator,
    SYSTEM_PROMPT,
    _short_message,
    build_translation_prompt,
)


def make_response(status=200, body=None, text=""):
    response = MagicMock(spec=requests.Response)
    response.status_code = status
    response.text = text
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(
            f"{status} Error", response=response
        )
    return response


def make_translator(response=None, error=None, api_key="sk-test-key-123456"):
    session = MagicMock(spec=requests.Session)
    if error is not None:
        session.post.side_effect = error
    else:
        session.post.return_value = response
    return ChatTranslator(api_key=api_key, base_url="https://llm.example.com/v1/", session=session)


def chat_body(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def test_prompt_contains_language_and_text():
    prompt = build_translation_prompt("안전모를 착용하십시오.", TargetLanguage.VIETNAMESE)
    assert "from Korean to Vietnamese" in prompt
    assert "construction workers" in prompt
    assert prompt.endswith("Original Text:\n안전모를 착용하십시오.")


def test_translate_posts_chat_request():
    translator = make_translator(make_response(body=chat_body("  Wear your helmet.  ")))

    result = translator.translate("안전모를 착용하십시오.", TargetLanguage.ENGLISH)

    assert result == "Wear your helmet."
    args, kwargs = translator.session.post.call_args
    assert args[0] == "https://llm.example.com/v1/chat/completions"
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test-key-123456"
    assert kwargs["timeout"] == 60.0
    messages = kwargs["json"]["messages"]
    assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert "from Korean to English" in messages[1]["content"]


@pytest.mark.parametrize("api_key", [None, "", "   ", "YOUR_API_KEY"])
def test_missing_api_key(api_key):
    translator = make_translator(make_response(body=chat_body("x")), api_key=api_key)

    with pytest.raises(TranslationError) as exc_info:
        translator.translate("텍스트", TargetLanguage.ENGLISH)

    assert exc_info.value.hint == "Set SAFETYSPEAK_API_KEY or OPENAI_API_KEY."
    translator.session.post.assert_not_called()


@pytest.mark.parametrize("status,body,expected", [
    (429, {"error": {"message": "Rate limit reached"}}, "Translation failed: too many requests (429): Rate limit reached"),
    (401, {"error": {"message": "Incorrect API key provided: sk-abcdefghijkl"}},
     "Translation failed: API key rejected (401): Incorrect API key provided: [redacted-key]"),
    (400, None, "Translation failed: invalid request (400)"),
    (503, None, "Translation failed: HTTP 503"),
])
def test_http_errors(status, body, expected):
    translator = make_translator(make_response(status=status, body=body))

    with pytest.raises(TranslationError) as exc_info:
        translator.translate("텍스트", TargetLanguage.ENGLISH)

    assert exc_info.value.message == expected


def test_timeout():
    translator = make_translator(error=requests.Timeout("read timed out"))

    with pytest.raises(TranslationError, match="request timed out"):
        translator.translate("텍스트", TargetLanguage.ENGLISH)


def test_connection_error():
    translator = make_translator(error=requests.ConnectionError("Name or service not known"))

    with pytest.raises(TranslationError, match="Name or service not known"):
        translator.translate("텍스트", TargetLanguage.ENGLISH)


@pytest.mark.parametrize("body", [
    chat_body(""),
    chat_body("   "),
    chat_body(None),
])
def test_empty_response(body):
    translator = make_translator(make_response(body=body))

    with pytest.raises(TranslationError, match="empty response"):
        translator.translate("텍스트", TargetLanguage.ENGLISH)


@pytest.mark.parametrize("body", [None, {"choices": []}, {"unexpected": True}])
def test_malformed_response(body):
    translator = make_translator(make_response(body=body))

    with pytest.raises(TranslationError, match="malformed response"):
        translator.translate("텍스트", TargetLanguage.ENGLISH)


def test_short_message_caps_length():
    message = _short_message("word " * 100)
    assert len(message) <= 180
    assert message.endswith("...")
