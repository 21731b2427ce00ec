"""
Structured logging for queue items.

Keeps a per-item log in memory (the queue is not persisted) and mirrors
every entry to the standard Python logging tree.
"""

import itertools
import logging
import threading
import time
import traceback
from collections import defaultdict, deque
from typing import Optional, Dict, Any, List

from .models import ItemID


class LogStore:
    """
    Thread-safe in-memory store of item log entries.

    Each item keeps at most ``max_entries_per_item`` entries; older ones
    are dropped first.
    """

    def __init__(self, max_entries_per_item: int = 500):
        self.max_entries_per_item = max_entries_per_item
        self._entries: Dict[ItemID, deque] = defaultdict(
            lambda: deque(maxlen=self.max_entries_per_item)
        )
        self._sequence = itertools.count()
        self._lock = threading.Lock()

    def add_log(
        self,
        item_id: ItemID,
        level: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """
        Add a log entry for an item.

        Args:
            item_id: Item ID
            level: Log level (INFO, WARNING, ERROR)
            message: Log message
            metadata: Optional additional context
        """
        with self._lock:
            self._entries[item_id].append({
                'id': next(self._sequence),
                'item_id': item_id,
                'timestamp': time.time(),
                'level': level,
                'message': message,
                'metadata': dict(metadata) if metadata else None,
            })

    def get_logs(
        self,
        item_id: ItemID,
        level: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Get log entries for an item, newest first.

        Args:
            item_id: Item ID
            level: Filter by log level (None for all)
            limit: Maximum number of entries to return

        Returns:
            List of log entry dictionaries
        """
        with self._lock:
            entries = list(self._entries.get(item_id, ()))

        if level is not None:
            entries = [e for e in entries if e['level'] == level]

        entries.reverse()
        if limit is not None:
            entries = entries[:limit]
        return entries

    def delete_logs(self, item_id: ItemID):
        with self._lock:
            self._entries.pop(item_id, None)

    def clear(self):
        with self._lock:
            self._entries.clear()


class ItemLogger:
    """
    Logger for item-specific structured logging.

    Features:
    - Thread-safe logging operations
    - Entries kept in a LogStore for display next to the item
    - Structured metadata support
    - Standard Python logging integration
    """

    # Log levels
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"

    def __init__(self, item_id: ItemID, store: LogStore):
        """
        Initialize logger for a specific item.

        Args:
            item_id: Item ID to log for
            store: LogStore holding the entries
        """
        self.item_id = item_id
        self.store = store
        self._lock = threading.Lock()

        self._py_logger = logging.getLogger(f"safetyspeak.item.{item_id}")

    def _log(
        self,
        level: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ):
        with self._lock:
            self.store.add_log(
                item_id=self.item_id,
                level=level,
                message=message,
                metadata=metadata
            )

            py_level = self._level_to_py_level(level)
            if self._py_logger.isEnabledFor(py_level):
                extra_msg = f" [{metadata}]" if metadata else ""
                self._py_logger.log(py_level, f"{message}{extra_msg}")

    @staticmethod
    def _level_to_py_level(level: str) -> int:
        """Convert string level to Python logging level."""
        return {
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
        }.get(level, logging.INFO)

    def info(self, message: str, metadata: Optional[Dict[str, Any]] = None):
        """Log info message."""
        self._log(self.INFO, message, metadata)

    def warning(self, message: str, metadata: Optional[Dict[str, Any]] = None):
        """Log warning message."""
        self._log(self.WARNING, message, metadata)

    def log_stage_start(self, stage: str, metadata: Optional[Dict[str, Any]] = None):
        """Log start of a pipeline stage."""
        self.info(
            f"Starting {stage}",
            metadata={"stage": stage, **(metadata or {})}
        )

    def log_stage_complete(
        self,
        stage: str,
        duration_seconds: float,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """Log completion of a pipeline stage."""
        self.info(
            f"Completed {stage} in {duration_seconds:.2f}s",
            metadata={
                "stage": stage,
                "duration_seconds": duration_seconds,
                **(metadata or {})
            }
        )

    def log_error_with_context(
        self,
        error: BaseException,
        context: str,
        level: str = ERROR
    ):
        """
        Log an error with full context.

        Args:
            error: Exception that occurred
            context: Description of what was being done
            level: Log level (synthesis failures are logged as warnings)
        """
        error_metadata = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            "context": context,
            "traceback": "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
        }

        self._log(
            level,
            f"Error during {context}: {type(error).__name__}: {str(error)}",
            metadata=error_metadata
        )
