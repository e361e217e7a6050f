"""Shared fixtures for cogen tests.

Collaborators are deterministic in-process implementations (scripted
generator, static context); no network access is required.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from cogen.agents.librarian import StaticContextProvider
from cogen.agents.scripted import ScriptedGenerator
from cogen.core.config import AppConfig, load_config
from cogen.memory.result_cache import FingerprintCache
from cogen.orchestrator.facade import Orchestrator
from cogen.orchestrator.loop import GenerationLoop
from cogen.orchestrator.metrics import OrchestratorMetrics
from cogen.sandbox.checks import SandboxPolicy
from cogen.sandbox.runner import ValidationSandbox
from cogen.security.limiter import AdmissionLimiter


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config_dir() -> Path:
    return Path(__file__).parent.parent / "config"


@pytest.fixture
def app_config(config_dir: Path) -> AppConfig:
    return load_config(config_dir=config_dir, environ={})


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def policy() -> SandboxPolicy:
    return SandboxPolicy(
        max_size_bytes=256,
        timeout_seconds=2.0,
        declaration_keywords=("const", "let", "function", "class"),
        banned_tokens=("eval", "innerHTML", "document.write"),
    )


@pytest.fixture
def sandbox(policy: SandboxPolicy) -> ValidationSandbox:
    return ValidationSandbox(policy=policy)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_loop(sandbox: ValidationSandbox):
    def _make(script, contexts=None, max_cycles: int = 7) -> GenerationLoop:
        generator = script if hasattr(script, "generate") else ScriptedGenerator(script)
        return GenerationLoop(
            context_provider=StaticContextProvider(contexts or {}),
            generator=generator,
            sandbox=sandbox,
            max_cycles=max_cycles,
            metrics=OrchestratorMetrics(),
        )
    return _make


@pytest.fixture
def make_orchestrator(make_loop, clock: FakeClock):
    created: list[Orchestrator] = []

    def _make(script, ceiling: int = 1000, window_seconds: float = 60.0, **kwargs) -> Orchestrator:
        loop = make_loop(script, **kwargs)
        orchestrator = Orchestrator(
            loop=loop,
            limiter=AdmissionLimiter(ceiling=ceiling, window_seconds=window_seconds, clock=clock),
            cache=FingerprintCache(),
        )
        created.append(orchestrator)
        return orchestrator

    yield _make
    for orchestrator in created:
        orchestrator.close()
