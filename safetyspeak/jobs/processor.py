"""
Sequential queue processor.

Drives queue items one at a time through extraction, translation and
speech synthesis on the running asyncio event loop. Extraction and
translation failures end the item in ``error``; a synthesis failure still
completes the item, without audio and with a warning.
"""

import asyncio
import logging
import time
import traceback
from typing import Callable, Dict, Iterable, List, Optional

from ..config import PipelineConfig
from ..core import TargetLanguage
from ..errors import (
    EmptyContentError,
    ExtractionError,
    SafetySpeakError,
    StageError,
    SynthesisError,
)
from .logger import ItemLogger, LogStore
from .models import ErrorInfo, ItemID, ItemStatus, QueueItem

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Cancelled by user"


class JobQueueProcessor:
    """
    Owns the processing queue and its start/stop control state.

    Exactly one item is in flight at a time. Items are picked in insertion
    order among those still ``idle``, so items added while the queue runs
    are processed once the scan reaches them.

    Example:
        processor = JobQueueProcessor(gateway)
        processor.enqueue([QueueItem.from_text("...", TargetLanguage.ENGLISH)])
        processor.start()
        await processor.join()
    """

    def __init__(
        self,
        gateway,
        config: Optional[PipelineConfig] = None,
        playback=None,
        log_store: Optional[LogStore] = None
    ):
        """
        Initialize the processor.

        Args:
            gateway: StageGateway used for every stage call
            config: Pipeline limits and delays (defaults if None)
            playback: PlaybackController to release when items are removed
            log_store: Store for per-item logs (new store if None)
        """
        self.gateway = gateway
        self.config = config or PipelineConfig()
        self.playback = playback
        self.log_store = log_store or LogStore()

        self._queue: List[QueueItem] = []
        self._index: Dict[ItemID, QueueItem] = {}
        self._running = False
        self._current_item_id: Optional[ItemID] = None
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[Callable[['JobQueueProcessor'], None]] = []

        self.global_error: Optional[str] = None

    # Read-only views

    @property
    def items(self) -> tuple:
        """Snapshot of the queue in insertion order."""
        return tuple(item.copy() for item in self._queue)

    @property
    def current_item_id(self) -> Optional[ItemID]:
        return self._current_item_id

    @property
    def is_running(self) -> bool:
        return self._running

    def get_item(self, item_id: ItemID) -> Optional[QueueItem]:
        """Get a snapshot of one item, or None if it is not in the queue."""
        item = self._index.get(item_id)
        return item.copy() if item is not None else None

    def get_item_logs(self, item_id: ItemID, limit: int = 100) -> list:
        return self.log_store.get_logs(item_id, limit=limit)

    def get_item_errors(self, item_id: ItemID) -> list:
        """Error entries logged for an item, newest first."""
        return self.log_store.get_logs(item_id, level=ItemLogger.ERROR)

    def statistics(self) -> Dict[str, int]:
        """Count items per status."""
        stats = {status.value: 0 for status in ItemStatus}
        for item in self._queue:
            stats[item.status.value] += 1
        stats['total'] = len(self._queue)
        return stats

    # Observers

    def on_change(self, callback: Callable[['JobQueueProcessor'], None]):
        """Register a callback invoked after every item or control change."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[['JobQueueProcessor'], None]):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self):
        for callback in list(self._listeners):
            try:
                callback(self)
            except Exception:
                logger.exception("Queue listener %r failed", callback)

    # Queue commands

    def enqueue(self, items: Iterable[QueueItem]) -> List[ItemID]:
        """
        Append items to the end of the queue.

        Clears the global error. If the processor is running, new idle
        items are picked up by the next scan.

        Returns:
            IDs of the added items

        Raises:
            ValueError: If an item ID is already queued
        """
        new_items = list(items)
        ids = [item.item_id for item in new_items]
        if len(set(ids)) != len(ids) or any(item_id in self._index for item_id in ids):
            raise ValueError("Queue item IDs must be unique")

        for item in new_items:
            self._queue.append(item)
            self._index[item.item_id] = item
            ItemLogger(item.item_id, self.log_store).info(
                f"Queued: {item.display_name} -> {item.target_language.value}",
                metadata={
                    'source': str(item.source.path) if item.source.is_file else 'text',
                    'language': item.target_language.value,
                }
            )

        self.global_error = None
        self._notify()
        return ids

    def remove(self, item_id: ItemID) -> bool:
        """
        Remove an item at any status.

        Playback bound to the item is stopped before the item leaves the
        queue. If the item is in flight, its pending stage result is
        discarded when it arrives.

        Returns:
            True if the item was removed, False if it was not queued
        """
        item = self._index.get(item_id)
        if item is None:
            return False

        if self.playback is not None:
            self.playback.release(item_id)

        del self._index[item_id]
        self._queue = [queued for queued in self._queue if queued is not item]
        self.log_store.delete_logs(item_id)

        if item_id == self._current_item_id:
            logger.info("Removed in-flight item %s; its pending result will be discarded", item_id)

        self._notify()
        return True

    def clear(self):
        """Remove every item, stop the driving loop and any playback."""
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
        # A cancelled task may still be unwinding; start() spawns a fresh one
        self._task = None

        if self.playback is not None:
            self.playback.stop()

        self._queue = []
        self._index.clear()
        self._current_item_id = None
        self.log_store.clear()
        self._notify()

    def cancel(self, item_id: ItemID) -> bool:
        """
        Cancel an item that has not started.

        Returns:
            True if cancelled, False if the item is unknown or already started
        """
        item = self._index.get(item_id)
        if item is None or not item.can_be_cancelled():
            return False

        self._update(item, status=ItemStatus.ERROR, error_message=CANCELLED_MESSAGE)
        ItemLogger(item_id, self.log_store).warning("Item cancelled by user")
        return True

    def add_derived_job(self, item_id: ItemID, language: TargetLanguage) -> QueueItem:
        """
        Queue the text of an existing item for another language.

        The new item reuses the extracted text, so extraction is not run again.

        Returns:
            Snapshot of the new item

        Raises:
            KeyError: If the item is not queued
            ValueError: If the item has no extracted text yet
        """
        item = self._index.get(item_id)
        if item is None:
            raise KeyError(item_id)
        if not item.original_text:
            raise ValueError(f"Item {item_id} has no extracted text yet")

        derived = item.derive(language)
        self.enqueue([derived])
        return derived.copy()

    def retry(self, item_id: ItemID) -> QueueItem:
        """
        Queue a failed item again as a new idle item.

        Returns:
            Snapshot of the new item

        Raises:
            KeyError: If the item is not queued
            ValueError: If the item has not failed
        """
        item = self._index.get(item_id)
        if item is None:
            raise KeyError(item_id)
        if item.status != ItemStatus.ERROR:
            raise ValueError(f"Only failed items can be retried (status: {item.status.value})")

        retried = item.derive(item.target_language)
        self.enqueue([retried])
        return retried.copy()

    def set_global_error(self, message: Optional[str]):
        """Report a queue-level problem (e.g. rejected input)."""
        self.global_error = message
        self._notify()

    # Control

    def start(self):
        """
        Start processing idle items.

        Must be called from a running event loop.
        """
        if self._running:
            return

        self._running = True
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._drive())
        self._notify()

    def stop(self):
        """
        Stop after the item in flight.

        Never aborts a stage call; the loop halts when it next checks the flag.
        """
        if not self._running:
            return
        self._running = False
        self._notify()

    async def join(self):
        """Wait until the driving loop has exited."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    async def _drive(self):
        logger.info("Queue processing started")
        try:
            while self._running:
                item = self._next_idle_item()
                if item is None:
                    self._running = False
                    logger.info("Queue processing finished: no idle items left")
                    break

                self._current_item_id = item.item_id
                self._notify()
                try:
                    await self._process_item(item)
                finally:
                    if self._current_item_id == item.item_id:
                        self._current_item_id = None
                    self._notify()

                await asyncio.sleep(self.config.inter_item_delay)
        finally:
            if self._task is asyncio.current_task():
                self._task = None
            self._notify()

    def _next_idle_item(self) -> Optional[QueueItem]:
        for item in self._queue:
            if item.status == ItemStatus.IDLE:
                return item
        return None

    # Pipeline

    def _is_attached(self, item: QueueItem) -> bool:
        return self._index.get(item.item_id) is item

    def _update(self, item: QueueItem, status: Optional[ItemStatus] = None, **changes):
        """Apply a status change and field updates in one step, then notify."""
        if status is not None:
            item.transition_to(status)
        if 'original_text' in changes:
            item.set_original_text(changes.pop('original_text'))
        for name, value in changes.items():
            setattr(item, name, value)
        self._notify()

    async def _process_item(self, item: QueueItem):
        item_log = ItemLogger(item.item_id, self.log_store)
        item_log.info(f"Processing started: {item.display_name}")
        started = time.monotonic()

        try:
            completed = await self._run_pipeline(item, item_log)
        except SafetySpeakError as e:
            self._fail(item, e, item_log)
            return

        if completed:
            item_log.info(
                f"Processing finished in {time.monotonic() - started:.1f}s",
                metadata={'has_audio': item.has_audio}
            )

    async def _run_pipeline(self, item: QueueItem, item_log: ItemLogger) -> bool:
        """
        Run the stages for one item.

        Returns:
            False if the item was removed while a stage was running
        """
        text = item.original_text

        # 1. Extraction (if needed)
        if item.needs_extraction:
            self._update(item, status=ItemStatus.EXTRACTING)
            stage_start = time.monotonic()
            item_log.log_stage_start("extraction")
            try:
                text = await self.gateway.extract(item.source)
            except ExtractionError as e:
                raise ExtractionError(f"Failed to read file: {e.message}", hint=e.hint) from e
            except Exception as e:
                raise StageError("extraction", f"Failed to read file: {e}") from e
            if not self._is_attached(item):
                logger.info("Item %s removed during extraction; result discarded", item.item_id)
                return False

            text = text or ""
            if len(text) > self.config.max_input_length:
                item_log.warning(
                    f"Extracted text clipped to {self.config.max_input_length} characters",
                    metadata={'original_length': len(text)}
                )
                text = text[:self.config.max_input_length]
            if text:
                self._update(item, original_text=text)
            item_log.log_stage_complete(
                "extraction", time.monotonic() - stage_start, metadata={'characters': len(text)}
            )

        # 2. Nothing to translate
        if not text or not text.strip():
            raise EmptyContentError(
                "No content to translate: the text could not be extracted or is empty."
            )

        # 3. Translation (identity copy for the passthrough language)
        self._update(item, status=ItemStatus.TRANSLATING)
        stage_start = time.monotonic()
        item_log.log_stage_start("translation", metadata={'language': item.target_language.value})
        if item.target_language == self.config.passthrough_language:
            await asyncio.sleep(self.config.passthrough_delay)
            translated = text
        else:
            try:
                translated = await self.gateway.translate(text, item.target_language)
            except SafetySpeakError:
                raise
            except Exception as e:
                raise StageError("translation", f"Translation failed: {e}") from e
        if not self._is_attached(item):
            logger.info("Item %s removed during translation; result discarded", item.item_id)
            return False
        self._update(item, translated_text=translated)
        item_log.log_stage_complete("translation", time.monotonic() - stage_start)

        # 4. Speech synthesis (soft failure)
        self._update(item, status=ItemStatus.SPEAKING)
        stage_start = time.monotonic()
        item_log.log_stage_start("synthesis")
        audio = None
        failure = None
        try:
            audio = await self.gateway.synthesize(translated, item.target_language)
        except Exception as e:
            failure = e
        else:
            if audio is None or audio.duration <= 0:
                audio = None
                failure = SynthesisError("The speech model returned no audio data.")
        if not self._is_attached(item):
            logger.info("Item %s removed during synthesis; result discarded", item.item_id)
            return False

        warning = None
        if failure is not None:
            item_log.log_error_with_context(failure, "speech synthesis", level=ItemLogger.WARNING)
            warning = f"Speech generation failed: {failure}"
        else:
            item_log.log_stage_complete(
                "synthesis", time.monotonic() - stage_start, metadata={'duration': audio.duration}
            )
        self._update(item, status=ItemStatus.COMPLETED, audio=audio, error_message=warning)
        return True

    def _fail(self, item: QueueItem, error: SafetySpeakError, item_log: ItemLogger):
        if not self._is_attached(item) or item.is_terminal:
            logger.info("Dropping %s for detached item %s", type(error).__name__, item.item_id)
            return
        item_log.log_error_with_context(error, f"{error.stage} stage")

        error_info = ErrorInfo(
            error_type=type(error).__name__,
            error_message=error.message,
            traceback="".join(traceback.format_exception(type(error), error, error.__traceback__)),
            failed_stage=error.stage,
            hint=error.hint,
        )
        self._update(
            item,
            status=ItemStatus.ERROR,
            error_message=error.message,
            error_info=error_info
        )
