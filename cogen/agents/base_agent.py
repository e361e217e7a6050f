"""Collaborator contracts and the abstract base agent for cogen.

The loop only depends on two injected capabilities:
    ContextProvider.get_context(mission) -> str
    GenerationCapability.generate(request) -> Candidate

BaseAgent wraps a concrete implementation with lifecycle logging and
runtime metrics. Unlike a pipeline stage it re-raises errors: the loop
decides whether a failure is transient or fatal.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

from cogen.core.models import Candidate, GenerationRequest


@runtime_checkable
class ContextProvider(Protocol):
    def get_context(self, mission: str) -> str:
        """Supporting knowledge for a mission. Pure and idempotent."""


@runtime_checkable
class GenerationCapability(Protocol):
    def generate(self, request: GenerationRequest) -> Candidate:
        """Produce one candidate.

        Raises:
            TransientGenerationError: attempt failed, a retry may succeed.
            FatalGenerationError: capability unavailable.
        """


class BaseAgent(ABC):
    """Base class for cogen agents.

    Every agent follows the same lifecycle:
    1. Receive input (mission string, generation request)
    2. Process (file lookups, LLM calls)
    3. Return its output
    4. Log metrics and errors throughout

    Subclasses implement `process()` and receive dependencies via
    __init__ injection.
    """

    def __init__(self, name: str, role: str):
        self.name = name
        self.role = role
        self.logger = logging.getLogger(f"cogen.agent.{name.lower()}")
        self._metrics_lock = threading.Lock()
        self._metrics: dict[str, Any] = {
            "total_processed": 0,
            "total_errors": 0,
            "last_duration_seconds": 0.0,
        }

    @abstractmethod
    def process(self, input_data: Any) -> Any:
        """Process input and return the agent's output."""

    def run(self, input_data: Any) -> Any:
        """Execute the agent with lifecycle logging and metrics.

        Agents should override process(), not run(). Exceptions propagate
        after being counted.
        """
        self.logger.debug("[%s] Starting: %s", self.name, _summarize_input(input_data))
        start = time.monotonic()
        try:
            result = self.process(input_data)
        except Exception as e:
            duration = time.monotonic() - start
            self._record(duration, error=True)
            self.logger.warning("[%s] Error after %.2fs: %s", self.name, duration, e)
            raise
        duration = time.monotonic() - start
        self._record(duration, error=False)
        self.logger.debug("[%s] Complete (%.2fs)", self.name, duration)
        return result

    def _record(self, duration: float, error: bool) -> None:
        with self._metrics_lock:
            key = "total_errors" if error else "total_processed"
            self._metrics[key] += 1
            self._metrics["last_duration_seconds"] = duration

    def get_metrics(self) -> dict[str, Any]:
        """Return a copy of the agent's runtime metrics."""
        with self._metrics_lock:
            return self._metrics.copy()


def _summarize_input(input_data: Any) -> str:
    """Short log-safe summary of agent input; never the full text."""
    if isinstance(input_data, GenerationRequest):
        return f"cycle={input_data.cycle} prompt_chars={len(input_data.prompt)}"
    if isinstance(input_data, str):
        return f"chars={len(input_data)}"
    return type(input_data).__name__
