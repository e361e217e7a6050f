"""Builder agent for cogen: the LLM-backed Generation Capability.

Composes a prompt from the directive, mission context, the run's fixed
constraints and feedback from rejected attempts, calls the LLM, and
returns the first fenced code block as a Candidate.
"""

from __future__ import annotations

from typing import Any, Optional

from cogen.agents.base_agent import BaseAgent
from cogen.core.config import GeneratorConfig, PromptLoader
from cogen.core.exceptions import (
    AuthenticationError,
    FatalGenerationError,
    LLMError,
    ModelNotFoundError,
    TransientGenerationError,
)
from cogen.core.models import AttemptRecord, Candidate, GenerationRequest
from cogen.llm.client import LLMMessage, OpenRouterClient
from cogen.llm.response_parser import extract_artifact


class Builder(BaseAgent):
    """Code generation agent.

    Injected dependencies:
        llm_client: OpenAI-compatible client for LLM calls.
        config: Model and prompt settings.
        prompt_loader: Loads the system prompt template.
    """

    # Hardcoded fallback if config/prompts/generator_system.txt doesn't exist
    _DEFAULT_SYSTEM_PROMPT = (
        "You generate a single self-contained code artifact for the request. "
        "Start with a declaration (const, let, function, class, def, ...). "
        "Return only one fenced code block and nothing else."
    )

    def __init__(
        self,
        llm_client: OpenRouterClient,
        config: Optional[GeneratorConfig] = None,
        prompt_loader: Optional[PromptLoader] = None,
    ):
        super().__init__(name="Builder", role="generator")
        self.llm_client = llm_client
        self.config = config or GeneratorConfig()
        self._prompt_loader = prompt_loader or PromptLoader()

    def generate(self, request: GenerationRequest) -> Candidate:
        return self.run(request)

    def process(self, input_data: Any) -> Candidate:
        request: GenerationRequest = input_data
        messages = self.build_messages(request)
        try:
            response = self.llm_client.complete(messages, model=self.config.model)
        except (AuthenticationError, ModelNotFoundError) as e:
            raise FatalGenerationError(str(e)) from e
        except LLMError as e:
            raise TransientGenerationError(str(e)) from e

        content = extract_artifact(response.content)
        if not content:
            raise TransientGenerationError("LLM returned an empty artifact")
        return Candidate(content=content, cycle=request.cycle, model=response.model)

    def build_messages(self, request: GenerationRequest) -> list[LLMMessage]:
        system = self._prompt_loader.load(
            self.config.system_prompt_file, default=self._DEFAULT_SYSTEM_PROMPT,
        )
        return [
            LLMMessage(role="system", content=system),
            LLMMessage(role="user", content=self._compose_user_prompt(request)),
        ]

    def _compose_user_prompt(self, request: GenerationRequest) -> str:
        constraints = request.constraints
        sections = [f"## Request\n{request.prompt}"]

        if request.context:
            sections.append(f"## Context\n{request.context}")

        rules = [f"- At most {constraints.max_size_bytes} bytes."]
        if constraints.declaration_keywords:
            keywords = ", ".join(constraints.declaration_keywords)
            rules.append(f"- The first line must start with one of: {keywords}.")
        if constraints.banned_tokens:
            banned = ", ".join(f"`{t}`" for t in constraints.banned_tokens)
            rules.append(f"- Never use: {banned}.")
        sections.append("## Constraints\n" + "\n".join(rules))

        feedback = request.feedback[-self.config.max_feedback_items:]
        if feedback:
            lines = [_describe_attempt(a) for a in feedback]
            sections.append("## Previous attempts (rejected)\n" + "\n".join(lines))

        return "\n\n".join(sections)


def _describe_attempt(attempt: AttemptRecord) -> str:
    line = f"- Attempt {attempt.cycle}: {attempt.reason}"
    if attempt.detail:
        line += f" ({attempt.detail})"
    return line
