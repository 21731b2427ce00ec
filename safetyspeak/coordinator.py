"""
Wiring between the operator, the queue processor and playback.

The coordinator validates intake, remembers the selected language and
turns toggle actions into processor and playback commands. Front ends
(the CLI, or any UI) render from ``snapshot()``.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .config import PipelineConfig
from .core import DEFAULT_LANGUAGE, TargetLanguage
from .errors import UnsupportedFileError
from .extraction import is_valid_file_size, is_valid_file_type
from .jobs.models import ItemID, QueueItem
from .jobs.processor import JobQueueProcessor
from .playback import PlaybackController, PlaybackState

logger = logging.getLogger(__name__)

UNSUPPORTED_FILES_MESSAGE = "Unsupported file type included"


class Coordinator:
    """
    Operator-facing commands over one processor and one playback controller.

    Args:
        processor: Queue processor
        playback: Playback controller (the processor's controller if None)
        config: Intake limits (the processor's config if None)
    """

    def __init__(
        self,
        processor: JobQueueProcessor,
        playback: Optional[PlaybackController] = None,
        config: Optional[PipelineConfig] = None
    ):
        self.processor = processor
        self.playback = playback or processor.playback
        self.config = config or processor.config
        self.selected_language = DEFAULT_LANGUAGE

    def select_language(self, language: Union[str, TargetLanguage]) -> TargetLanguage:
        """Set the language used for newly added items."""
        self.selected_language = TargetLanguage.parse(language)
        return self.selected_language

    def check_file(self, path: Union[str, Path]):
        """
        Validate a file for intake.

        Raises:
            UnsupportedFileError: If the type or size is not accepted
        """
        path = Path(path)
        if not is_valid_file_type(path):
            raise UnsupportedFileError(f"Unsupported file type: {path.name}")
        if not path.is_file():
            raise UnsupportedFileError(f"File not found: {path}")
        if not is_valid_file_size(path, self.config.max_file_size_bytes):
            raise UnsupportedFileError(
                f"{path.name} is larger than {self.config.max_file_size_mb:g} MB"
            )

    def add_files(
        self,
        paths: Iterable[Union[str, Path]],
        language: Optional[Union[str, TargetLanguage]] = None
    ) -> List[ItemID]:
        """
        Queue one item per accepted file.

        Rejected files are skipped. When every file is rejected the queue
        is left untouched and the global error is set.

        Returns:
            IDs of the queued items
        """
        language = TargetLanguage.parse(language) if language else self.selected_language
        paths = list(paths)
        items = []
        for path in paths:
            try:
                self.check_file(path)
            except UnsupportedFileError as e:
                logger.warning("Skipping %s: %s", path, e)
                continue
            items.append(QueueItem.from_file(path, language))

        if not items:
            if paths:
                self.processor.set_global_error(UNSUPPORTED_FILES_MESSAGE)
            return []
        return self.processor.enqueue(items)

    def add_text(
        self,
        text: str,
        language: Optional[Union[str, TargetLanguage]] = None
    ) -> Optional[ItemID]:
        """Queue pasted text. Blank text is ignored."""
        if not text or not text.strip():
            return None
        language = TargetLanguage.parse(language) if language else self.selected_language
        return self.processor.enqueue([QueueItem.from_text(text, language)])[0]

    def toggle_processing(self) -> bool:
        """Start or stop the queue. Returns the new running state."""
        if self.processor.is_running:
            self.processor.stop()
        else:
            self.processor.start()
        return self.processor.is_running

    def toggle_playback(self, item_id: ItemID) -> PlaybackState:
        """
        Play, pause or resume an item's audio.

        Raises:
            KeyError: If the item is not queued
            ValueError: If the item has no audio
        """
        item = self.processor.get_item(item_id)
        if item is None:
            raise KeyError(item_id)
        if not item.has_audio:
            raise ValueError(f"{item.display_name} has no audio to play")

        if self.playback.playing_item_id == item_id:
            if self.playback.state == PlaybackState.PLAYING:
                self.playback.pause()
            else:
                self.playback.play(item.audio, item_id, resume=True)
        else:
            self.playback.play(item.audio, item_id)
        return self.playback.state

    def translate_again(
        self,
        item_id: ItemID,
        language: Union[str, TargetLanguage]
    ) -> ItemID:
        """Queue an item's extracted text for another language."""
        return self.processor.add_derived_job(item_id, TargetLanguage.parse(language)).item_id

    def remove(self, item_id: ItemID) -> bool:
        return self.processor.remove(item_id)

    def clear(self):
        self.processor.clear()

    def snapshot(self) -> Dict[str, Any]:
        """Everything a front end needs to render the current state."""
        return {
            'queue': self.processor.items,
            'current_item_id': self.processor.current_item_id,
            'is_processing': self.processor.is_running,
            'global_error': self.processor.global_error,
            'selected_language': self.selected_language,
            'playing_item_id': self.playback.playing_item_id,
            'playback_state': self.playback.state,
            'playback_progress': self.playback.progress,
        }
