"""
SafetySpeak: multilingual safety briefings for construction sites.

Documents or pasted text go through a sequential queue (extract, translate,
synthesize speech) and the finished audio can be played, paused and resumed.

Example Usage:
    import asyncio
    from safetyspeak import JobQueueProcessor, QueueItem, TargetLanguage

    async def run(gateway):
        processor = JobQueueProcessor(gateway)
        processor.enqueue([QueueItem.from_text("안전모를 착용하십시오.", TargetLanguage.ENGLISH)])
        processor.start()
        await processor.join()
        return processor.items
"""

__version__ = "1.1.0"

from .config import PipelineConfig
from .core import AudioArtifact, AudioFormat, DEFAULT_LANGUAGE, TargetLanguage
from .coordinator import Coordinator
from .errors import (
    EmptyContentError,
    ExtractionError,
    SafetySpeakError,
    StageError,
    SynthesisError,
    TranslationError,
)
from .gateway import BackendStageGateway, StageGateway
from .jobs import ItemStatus, JobQueueProcessor, QueueItem
from .playback import PlaybackController, PlaybackEndReason, PlaybackState

__all__ = [
    'PipelineConfig',
    'AudioArtifact',
    'AudioFormat',
    'DEFAULT_LANGUAGE',
    'TargetLanguage',
    'Coordinator',
    'EmptyContentError',
    'ExtractionError',
    'SafetySpeakError',
    'StageError',
    'SynthesisError',
    'TranslationError',
    'BackendStageGateway',
    'StageGateway',
    'ItemStatus',
    'JobQueueProcessor',
    'QueueItem',
    'PlaybackController',
    'PlaybackEndReason',
    'PlaybackState',
]
