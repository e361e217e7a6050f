"""Component factory for cogen.

Creates and wires the limiter, cache, sandbox, context provider, generator
and loop from AppConfig so the facade receives fully-initialized
dependencies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from cogen.agents.base_agent import ContextProvider, GenerationCapability
from cogen.agents.builder import Builder
from cogen.agents.librarian import Librarian, StaticContextProvider
from cogen.core.config import AppConfig, PromptLoader, load_config
from cogen.llm.client import OpenRouterClient
from cogen.memory.result_cache import FingerprintCache
from cogen.orchestrator.facade import Orchestrator
from cogen.orchestrator.loop import GenerationLoop
from cogen.orchestrator.metrics import OrchestratorMetrics
from cogen.sandbox.runner import ValidationSandbox
from cogen.security.limiter import AdmissionLimiter

logger = logging.getLogger("cogen.factory")


@dataclass
class ComponentBundle:
    """Container for the initialized components.

    The factory builds the bundle once; the orchestrator owns the
    limiter and cache from then on.
    """

    config: AppConfig
    orchestrator: Orchestrator
    sandbox: ValidationSandbox
    context_provider: ContextProvider
    generator: GenerationCapability
    llm_client: Optional[OpenRouterClient] = None

    def close(self) -> None:
        self.orchestrator.close()
        if self.llm_client is not None:
            self.llm_client.close()


class ComponentFactory:
    """Factory for creating and wiring all cogen components.

    Usage:
        bundle = ComponentFactory.create(config_dir=Path("config"))
        result = bundle.orchestrator.handle("caller-1", Directive(prompt="..."))
    """

    @staticmethod
    def create(
        config: Optional[AppConfig] = None,
        config_dir: Optional[Path] = None,
        env: Optional[str] = None,
        api_key: Optional[str] = None,
        generator: Optional[GenerationCapability] = None,
        context_provider: Optional[ContextProvider] = None,
    ) -> ComponentBundle:
        """Create and wire all components.

        Args:
            config: Pre-built config; loaded from config_dir/env when omitted.
            config_dir: Path to config/ directory. Default: project root/config.
            env: Environment name for config overlay (e.g., "test").
            api_key: LLM API key. Falls back to OPENROUTER_API_KEY env var.
            generator: Generation capability override (skips the LLM client).
            context_provider: Context provider override.

        Returns:
            ComponentBundle with an orchestrator ready to serve requests.
        """
        if config is None:
            config = load_config(config_dir=config_dir, env=env)
        logger.info("Initializing components...")

        llm_client: Optional[OpenRouterClient] = None
        if generator is None:
            llm_client = OpenRouterClient(config=config.llm, api_key=api_key)
            prompts_dir = config_dir / "prompts" if config_dir else None
            generator = Builder(
                llm_client=llm_client,
                config=config.generator,
                prompt_loader=PromptLoader(prompts_dir),
            )
            logger.info("LLM generator configured (model=%s)", config.generator.model)

        if context_provider is None:
            if config.context.knowledge_file:
                context_provider = Librarian.from_file(
                    config.context.knowledge_file,
                    max_context_chars=config.context.max_context_chars,
                )
            else:
                context_provider = StaticContextProvider()

        sandbox = ValidationSandbox.from_config(config.sandbox)
        metrics = OrchestratorMetrics()
        loop = GenerationLoop(
            context_provider=context_provider,
            generator=generator,
            sandbox=sandbox,
            max_cycles=config.orchestrator.max_cycles,
            metrics=metrics,
        )
        orchestrator = Orchestrator(
            loop=loop,
            limiter=AdmissionLimiter(
                ceiling=config.limiter.ceiling,
                window_seconds=config.limiter.window_seconds,
            ),
            cache=FingerprintCache(max_entries=config.cache.max_entries),
            config=config.orchestrator,
            metrics=metrics,
        )
        logger.info(
            "Orchestrator ready (isolation=%s, max_cycles=%d, ceiling=%d/%.0fs)",
            config.sandbox.isolation,
            config.orchestrator.max_cycles,
            config.limiter.ceiling,
            config.limiter.window_seconds,
        )
        return ComponentBundle(
            config=config,
            orchestrator=orchestrator,
            sandbox=sandbox,
            context_provider=context_provider,
            generator=generator,
            llm_client=llm_client,
        )
