"""Deterministic generation capabilities.

ScriptedGenerator replays a fixed script of outputs and exceptions, one per
call; EchoGenerator returns the prompt itself. Both serve offline runs of
the CLI and the test suite.
"""

from __future__ import annotations

import threading
from typing import Iterable, Union

from cogen.core.models import Candidate, GenerationRequest

ScriptStep = Union[str, BaseException]


class ScriptedGenerator:
    """Returns script entries in order; repeats the last entry once exhausted.

    An entry that is an exception instance is raised instead of returned.
    """

    def __init__(self, script: Iterable[ScriptStep]):
        self.script = list(script)
        if not self.script:
            raise ValueError("script must not be empty")
        self.calls: list[GenerationRequest] = []
        self._lock = threading.Lock()

    def generate(self, request: GenerationRequest) -> Candidate:
        with self._lock:
            index = min(len(self.calls), len(self.script) - 1)
            self.calls.append(request)
        step = self.script[index]
        if isinstance(step, BaseException):
            raise step
        return Candidate(content=step, cycle=request.cycle, model="scripted")

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)


class EchoGenerator:
    """Treats the prompt as the artifact."""

    def generate(self, request: GenerationRequest) -> Candidate:
        return Candidate(content=request.prompt, cycle=request.cycle, model="echo")
