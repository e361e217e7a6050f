"""Tests for cogen/core/factory.py."""

from __future__ import annotations

import pytest

from cogen.agents.builder import Builder
from cogen.agents.librarian import Librarian, StaticContextProvider
from cogen.agents.scripted import EchoGenerator
from cogen.core.config import AppConfig, ContextConfig, SandboxConfig
from cogen.core.exceptions import ConfigError
from cogen.core.factory import ComponentFactory
from cogen.core.models import Directive
from cogen.llm.client import OpenRouterClient
from cogen.sandbox.runner import ProcessIsolation, ThreadIsolation


class TestCreate:
    def test_wires_from_config_dir(self, config_dir):
        bundle = ComponentFactory.create(config_dir=config_dir, env="test", generator=EchoGenerator())
        try:
            assert bundle.orchestrator.limiter.ceiling == 5
            assert bundle.orchestrator.limiter.window_seconds == 30
            assert bundle.sandbox.policy.timeout_seconds == 5.0
            assert isinstance(bundle.sandbox.isolation, ThreadIsolation)
            assert isinstance(bundle.context_provider, StaticContextProvider)
            assert bundle.llm_client is None
            assert bundle.orchestrator.loop.max_cycles == 7
            assert bundle.orchestrator.metrics is bundle.orchestrator.loop.metrics
        finally:
            bundle.close()

    def test_builds_llm_generator_by_default(self, app_config):
        bundle = ComponentFactory.create(config=app_config, api_key="test-key")
        try:
            assert isinstance(bundle.generator, Builder)
            assert isinstance(bundle.llm_client, OpenRouterClient)
            assert bundle.llm_client.api_key == "test-key"
            assert bundle.generator.config.model == app_config.generator.model
        finally:
            bundle.close()

    def test_knowledge_file_enables_librarian(self, config_dir):
        config = AppConfig(
            context=ContextConfig(knowledge_file=str(config_dir / "knowledge.example.yaml")),
        )
        bundle = ComponentFactory.create(config=config, generator=EchoGenerator())
        try:
            assert isinstance(bundle.context_provider, Librarian)
        finally:
            bundle.close()

    def test_missing_knowledge_file(self, tmp_path):
        config = AppConfig(context=ContextConfig(knowledge_file=str(tmp_path / "none.yaml")))
        with pytest.raises(ConfigError):
            ComponentFactory.create(config=config, generator=EchoGenerator())

    def test_process_isolation(self):
        config = AppConfig(sandbox=SandboxConfig(isolation="process"))
        bundle = ComponentFactory.create(config=config, generator=EchoGenerator())
        try:
            assert isinstance(bundle.sandbox.isolation, ProcessIsolation)
        finally:
            bundle.close()


class TestEndToEnd:
    def test_handle_through_bundle(self, app_config):
        bundle = ComponentFactory.create(config=app_config, generator=EchoGenerator())
        try:
            result = bundle.orchestrator.handle("caller", Directive(prompt="const x = 1;"))
            assert result.code == "const x = 1;"
            assert result.cycles == 1
            assert bundle.orchestrator.handle("caller", Directive(prompt="const x = 1;")) is result
        finally:
            bundle.close()
