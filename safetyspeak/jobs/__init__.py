"""
Sequential processing queue for SafetySpeak.

Items are processed one at a time on the asyncio event loop: text is
extracted from the document (if needed), translated and turned into speech.
Per-item logs are kept in memory for display next to each item.

Key Components:
- JobQueueProcessor: Queue commands, start/stop control and the driving loop
- QueueItem: One document or pasted text in one target language
- ItemLogger: Structured per-item logging

Example Usage:
    from safetyspeak.jobs import JobQueueProcessor, QueueItem

    processor = JobQueueProcessor(gateway)
    processor.enqueue([QueueItem.from_file("briefing.pdf", "Vietnamese")])
    processor.start()

    # Check status
    for item in processor.items:
        print(item.display_name, item.format_status_message())
"""

# Import key components for easy access
from .models import (
    QueueItem,
    ItemStatus,
    DocumentSource,
    ErrorInfo,
    ItemID,
    MANUAL_INPUT_NAME,
    TERMINAL_STATUSES,
)

from .logger import ItemLogger, LogStore
from .processor import JobQueueProcessor

__all__ = [
    # Data models
    'QueueItem',
    'ItemStatus',
    'DocumentSource',
    'ErrorInfo',
    'ItemID',
    'MANUAL_INPUT_NAME',
    'TERMINAL_STATUSES',

    # Core components
    'ItemLogger',
    'LogStore',
    'JobQueueProcessor',
]
