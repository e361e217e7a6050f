"""Tests for cogen/agents/base_agent.py and cogen/agents/scripted.py."""

from __future__ import annotations

from typing import Any

import pytest

from cogen.agents.base_agent import BaseAgent, GenerationCapability
from cogen.agents.scripted import EchoGenerator, ScriptedGenerator
from cogen.core.exceptions import TransientGenerationError
from cogen.core.models import Constraints, GenerationRequest


class UpperAgent(BaseAgent):
    def __init__(self):
        super().__init__(name="Upper", role="test")

    def process(self, input_data: Any) -> str:
        if input_data == "fail":
            raise ValueError("bad input")
        return str(input_data).upper()


def _request(cycle: int = 1, prompt: str = "const a = 1;") -> GenerationRequest:
    return GenerationRequest(prompt=prompt, constraints=Constraints(max_size_bytes=100), cycle=cycle)


class TestBaseAgent:
    def test_run_returns_process_output(self):
        agent = UpperAgent()
        assert agent.run("abc") == "ABC"
        metrics = agent.get_metrics()
        assert metrics["total_processed"] == 1
        assert metrics["total_errors"] == 0

    def test_run_reraises_and_counts_errors(self):
        agent = UpperAgent()
        with pytest.raises(ValueError, match="bad input"):
            agent.run("fail")
        assert agent.get_metrics()["total_errors"] == 1

    def test_logger_name(self):
        assert UpperAgent().logger.name == "cogen.agent.upper"

    def test_cannot_instantiate_abstract(self):
        with pytest.raises(TypeError):
            BaseAgent(name="x", role="y")


class TestScriptedGenerator:
    def test_replays_in_order_then_repeats_last(self):
        generator = ScriptedGenerator(["const a = 1;", "const b = 2;"])
        outputs = [generator.generate(_request(cycle=i)).content for i in range(1, 5)]
        assert outputs == ["const a = 1;", "const b = 2;", "const b = 2;", "const b = 2;"]
        assert generator.call_count == 4

    def test_raises_exception_entries(self):
        generator = ScriptedGenerator([TransientGenerationError("flaky"), "const a = 1;"])
        with pytest.raises(TransientGenerationError):
            generator.generate(_request())
        assert generator.generate(_request(cycle=2)).cycle == 2

    def test_requires_script(self):
        with pytest.raises(ValueError):
            ScriptedGenerator([])

    def test_satisfies_protocol(self):
        assert isinstance(ScriptedGenerator(["x"]), GenerationCapability)


class TestEchoGenerator:
    def test_echoes_prompt(self):
        candidate = EchoGenerator().generate(_request(prompt="let x = 1;"))
        assert candidate.content == "let x = 1;"
        assert candidate.model == "echo"
