"""
Test doubles for the stage gateway, the audio device and the clock.
"""
import asyncio
from collections import defaultdict

import numpy as np

from safetyspeak.core import AudioArtifact
from safetyspeak.gateway import StageGateway
from safetyspeak.playback import AudioOutput


def make_artifact(seconds=1.0, sample_rate=24000):
    """Silent mono buffer of the given length."""
    return AudioArtifact.from_samples(np.zeros(int(seconds * sample_rate), dtype=np.float32), sample_rate)


class FakeGateway(StageGateway):
    """
    Scripted gateway.

    Extraction results are looked up by file name; a result that is an
    exception is raised. Translation prefixes the text with the language.
    Any stage can be held open with ``hold(stage)`` until ``release(stage)``.
    """

    def __init__(self, documents=None, translate=None, synthesize=None):
        self.documents = dict(documents or {})
        self.translate_fn = translate or (lambda text, lang: f"[{lang.value}] {text}")
        self.synthesize_fn = synthesize or (lambda text, lang: make_artifact(0.5))
        self.calls = defaultdict(list)
        self._gates = {}

    def hold(self, stage):
        self._gates[stage] = asyncio.Event()

    def release(self, stage):
        self._gates.pop(stage).set()

    async def _pass_gate(self, stage):
        gate = self._gates.get(stage)
        if gate is not None:
            await gate.wait()

    async def extract(self, source):
        self.calls['extract'].append(source)
        await self._pass_gate('extract')
        if not source.is_file:
            return source.text
        result = self.documents.get(source.path.name, "")
        if isinstance(result, BaseException):
            raise result
        return result

    async def translate(self, text, target_language):
        self.calls['translate'].append((text, target_language))
        await self._pass_gate('translate')
        return self.translate_fn(text, target_language)

    async def synthesize(self, text, language=None):
        self.calls['synthesize'].append((text, language))
        await self._pass_gate('synthesize')
        return self.synthesize_fn(text, language)


class FakeOutput(AudioOutput):
    """Records start/halt calls; ``finish()`` simulates the buffer running out."""

    def __init__(self):
        self.starts = []
        self.halts = 0
        self._on_finished = None

    def start(self, artifact, offset_seconds, on_finished):
        self.starts.append((artifact, offset_seconds))
        self._on_finished = on_finished

    def halt(self):
        self.halts += 1
        self._on_finished = None

    @property
    def active(self):
        return self._on_finished is not None

    def finish(self):
        callback, self._on_finished = self._on_finished, None
        callback()


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


async def wait_until(predicate, timeout=2.0):
    """Yield to the event loop until ``predicate()`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not reached before timeout")
        await asyncio.sleep(0.001)
