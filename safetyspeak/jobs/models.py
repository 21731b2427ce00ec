"""
Data models for the processing queue.

A QueueItem is one document (or pasted text) delivered in one target
language. Its status moves forward through the pipeline stages and ends in
either ``completed`` or ``error``.
"""

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from ..core import AudioArtifact, TargetLanguage
from ..errors import InvalidTransitionError

MANUAL_INPUT_NAME = "Manual text input"


class ItemStatus(str, Enum):
    """Pipeline stage of a queue item."""
    IDLE = "idle"                # Waiting to be processed
    EXTRACTING = "extracting"    # Reading text from the document
    TRANSLATING = "translating"  # Translating extracted text
    SPEAKING = "speaking"        # Synthesizing speech
    COMPLETED = "completed"      # Finished (audio may be missing, see error_message)
    ERROR = "error"              # Failed with error


TERMINAL_STATUSES = frozenset({ItemStatus.COMPLETED, ItemStatus.ERROR})

# Forward-only transitions; ERROR is reachable from every non-terminal state
_TRANSITIONS = {
    ItemStatus.IDLE: {ItemStatus.EXTRACTING, ItemStatus.TRANSLATING, ItemStatus.ERROR},
    ItemStatus.EXTRACTING: {ItemStatus.TRANSLATING, ItemStatus.ERROR},
    ItemStatus.TRANSLATING: {ItemStatus.SPEAKING, ItemStatus.ERROR},
    ItemStatus.SPEAKING: {ItemStatus.COMPLETED, ItemStatus.ERROR},
    ItemStatus.COMPLETED: set(),
    ItemStatus.ERROR: set(),
}


@dataclass(frozen=True)
class DocumentSource:
    """
    Where an item's text comes from.

    Exactly one of ``text`` and ``path`` is set.
    """
    text: Optional[str] = None
    path: Optional[Path] = None

    def __post_init__(self):
        if (self.text is None) == (self.path is None):
            raise ValueError("DocumentSource needs exactly one of text or path")
        if self.path is not None and not isinstance(self.path, Path):
            object.__setattr__(self, 'path', Path(self.path))

    @property
    def is_file(self) -> bool:
        return self.path is not None


@dataclass
class ErrorInfo:
    """
    Information about a stage failure.

    Kept next to the short user-facing message for debugging.
    """
    error_type: str
    error_message: str
    traceback: str = ""
    failed_stage: Optional[str] = None
    hint: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass(eq=False)
class QueueItem:
    """
    One unit of work in the processing queue.

    Only the queue processor mutates items; observers receive copies.
    """
    source: DocumentSource
    display_name: str
    target_language: TargetLanguage
    item_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    original_text: str = ""
    translated_text: Optional[str] = None
    status: ItemStatus = ItemStatus.IDLE
    error_message: Optional[str] = None
    error_info: Optional[ErrorInfo] = None
    audio: Optional[AudioArtifact] = None
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    completed_at: Optional[float] = None

    @classmethod
    def from_text(
        cls,
        text: str,
        target_language: TargetLanguage,
        display_name: str = MANUAL_INPUT_NAME
    ) -> 'QueueItem':
        """Create an item from text typed or pasted by the operator."""
        return cls(
            source=DocumentSource(text=text),
            display_name=display_name,
            target_language=TargetLanguage.parse(target_language),
            original_text=text,
        )

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        target_language: TargetLanguage
    ) -> 'QueueItem':
        """Create an item whose text is extracted from a document."""
        path = Path(path)
        return cls(
            source=DocumentSource(path=path),
            display_name=path.name,
            target_language=TargetLanguage.parse(target_language),
        )

    def derive(self, target_language: TargetLanguage) -> 'QueueItem':
        """
        Create a new idle item for another language.

        The extracted text is reused, so the new item skips extraction.
        """
        return QueueItem(
            source=self.source,
            display_name=self.display_name,
            target_language=TargetLanguage.parse(target_language),
            original_text=self.original_text,
        )

    def copy(self) -> 'QueueItem':
        """Shallow snapshot; the audio buffer is shared, not copied."""
        return replace(self)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def needs_extraction(self) -> bool:
        """True if the text still has to be read from the source document."""
        return not self.original_text and self.source.is_file

    @property
    def has_audio(self) -> bool:
        return self.audio is not None

    def can_transition_to(self, status: ItemStatus) -> bool:
        return status in _TRANSITIONS[self.status]

    def transition_to(self, status: ItemStatus):
        """
        Move to a new status.

        Raises:
            InvalidTransitionError: If the move is not forward along the pipeline
        """
        if not self.can_transition_to(status):
            raise InvalidTransitionError(
                f"Item {self.item_id}: cannot move from {self.status.value} to {status.value}"
            )
        if self.status == ItemStatus.IDLE:
            self.started_at = time.time()
        self.status = status
        if status in TERMINAL_STATUSES:
            self.completed_at = time.time()

    def set_original_text(self, text: str):
        """Store extracted text. Extraction happens at most once per item."""
        if self.original_text:
            raise InvalidTransitionError(f"Item {self.item_id}: original text is already set")
        self.original_text = text

    def get_elapsed_time(self) -> Optional[float]:
        """Get elapsed processing time in seconds."""
        if self.started_at is None:
            return None

        if self.completed_at is not None:
            return self.completed_at - self.started_at
        else:
            return time.time() - self.started_at

    def can_be_cancelled(self) -> bool:
        """Only items that have not started can be cancelled."""
        return self.status == ItemStatus.IDLE

    def format_status_message(self) -> str:
        """Format a user-friendly status message."""
        if self.status == ItemStatus.IDLE:
            return "Waiting in queue..."
        elif self.status == ItemStatus.EXTRACTING:
            return "Reading document..."
        elif self.status == ItemStatus.TRANSLATING:
            return f"Translating to {self.target_language.value}..."
        elif self.status == ItemStatus.SPEAKING:
            return "Generating speech..."
        elif self.status == ItemStatus.COMPLETED:
            if self.error_message:
                return f"Completed without audio: {self.error_message}"
            return "Completed"
        elif self.status == ItemStatus.ERROR:
            if self.error_message:
                return f"Failed: {self.error_message}"
            return "Failed"
        else:
            return str(self.status.value)


# Type aliases for clarity
ItemID = str
