"""Translation of safety briefing text.

Uses an OpenAI-compatible chat-completions endpoint over plain HTTP. The
prompt asks for the register of a construction safety interpreter and for
the translation only.
"""

import logging
import re
from typing import Optional

import requests

from safetyspeak.core import TargetLanguage
from safetyspeak.errors import TranslationError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a professional construction safety interpreter. "
    "Return only the translated text with no commentary."
)

MAX_ERROR_MESSAGE_CHARS = 180


def build_translation_prompt(text: str, target_language: TargetLanguage) -> str:
    """Build the user prompt for one translation request."""
    return (
        f"Translate the following safety education material from Korean to "
        f"{target_language.value}.\n\n"
        "Guidelines:\n"
        "1. Maintain a serious, authoritative, and instructional tone suitable "
        "for construction workers.\n"
        "2. Ensure safety terminology is accurate in the target language.\n"
        "3. Do not add any conversational filler. Output ONLY the translated text.\n\n"
        f"Original Text:\n{text}"
    )


def _short_message(text: str) -> str:
    """Collapse whitespace, redact keys and cap the length of provider messages."""
    compact = " ".join(text.split())
    compact = re.sub(r"\bsk-[A-Za-z0-9_-]{8,}\b", "[redacted-key]", compact)
    if len(compact) <= MAX_ERROR_MESSAGE_CHARS:
        return compact
    return f"{compact[:MAX_ERROR_MESSAGE_CHARS - 3]}..."


class ChatTranslator:
    """Translator backed by a chat-completions API."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4.1-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 60.0,
        session: Optional[requests.Session] = None
    ):
        """Initialize translator settings.

        Args:
            api_key: API key; requests fail with TranslationError when missing
            model: Chat model name
            base_url: Base URL of the API
            timeout_seconds: HTTP timeout per request
            session: Optional requests session (shared connection pool)
        """
        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session if session is not None else requests.Session()

    def _require_api_key(self):
        if not self.api_key or self.api_key.startswith("YOUR_"):
            raise TranslationError(
                "API key is not configured.",
                hint="Set SAFETYSPEAK_API_KEY or OPENAI_API_KEY."
            )

    def translate(self, text: str, target_language: TargetLanguage) -> str:
        """Translate text into the target language.

        Args:
            text: Source text (Korean)
            target_language: Language to translate into

        Returns:
            Translated text

        Raises:
            TranslationError: On missing key, HTTP or transport failure, or empty output
        """
        self._require_api_key()

        payload = {
            "model": self.model,
            "temperature": 0.0,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_translation_prompt(text, target_language)},
            ],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        logger.debug("Requesting %s translation (%d chars)", target_language.value, len(text))
        try:
            response = self.session.post(
                f"{self.base_url}/chat/completions",
                headers=headers,
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            raise TranslationError(f"Translation failed: {self._describe_http_error(e)}") from e
        except requests.Timeout as e:
            raise TranslationError("Translation failed: request timed out") from e
        except requests.RequestException as e:
            raise TranslationError(f"Translation failed: {_short_message(str(e))}") from e

        translated = self._extract_text(response)
        if not translated:
            raise TranslationError("Translation failed: empty response")
        return translated

    @staticmethod
    def _extract_text(response: requests.Response) -> str:
        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise TranslationError("Translation failed: malformed response") from e
        if not isinstance(content, str):
            return ""
        return content.strip()

    @staticmethod
    def _describe_http_error(error: requests.HTTPError) -> str:
        response = error.response
        if response is None:
            return _short_message(str(error))

        status = response.status_code
        detail = ""
        try:
            body = response.json()
            if isinstance(body, dict) and isinstance(body.get("error"), dict):
                detail = str(body["error"].get("message") or "")
        except ValueError:
            detail = response.text or ""

        if status == 429:
            prefix = "too many requests (429)"
        elif status in (401, 403):
            prefix = f"API key rejected ({status})"
        elif status == 400:
            prefix = "invalid request (400)"
        else:
            prefix = f"HTTP {status}"
        return f"{prefix}: {_short_message(detail)}" if detail else prefix
