"""Error taxonomy for the processing pipeline.

Hard failures (extraction, empty content, translation, unexpected stage
errors) end an item in the ``error`` state. ``SynthesisError`` is the one
soft failure: the item still completes, without audio.
"""

from typing import Optional


class SafetySpeakError(RuntimeError):
    """Base class for pipeline errors.

    Attributes:
        stage: Pipeline stage the error belongs to (extraction, translation, ...)
        hint: Optional suggestion shown to the operator
    """

    stage = "pipeline"

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint


class ExtractionError(SafetySpeakError):
    """Document could not be read or its format is not supported."""

    stage = "extraction"


class EmptyContentError(SafetySpeakError):
    """Nothing left to translate after extraction."""

    stage = "extraction"


class TranslationError(SafetySpeakError):
    """Translation backend failed or returned nothing."""

    stage = "translation"


class SynthesisError(SafetySpeakError):
    """Speech could not be produced for the translated text."""

    stage = "synthesis"


class StageError(SafetySpeakError):
    """Unexpected failure inside a stage, wrapped with the stage name."""

    def __init__(self, stage: str, message: str, hint: Optional[str] = None):
        super().__init__(message, hint)
        self.stage = stage


class InvalidTransitionError(SafetySpeakError):
    """Queue item state machine violation."""


class UnsupportedFileError(ValueError):
    """File rejected at intake (type or size)."""
