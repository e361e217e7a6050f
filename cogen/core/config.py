"""Configuration loader for cogen.

Loads config from a YAML cascade: config/default.yaml is always loaded,
then environment-specific overrides, then COGEN_* environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from cogen.core.exceptions import ConfigError


# ---------------------------------------------------------------------------
# Config schema
# ---------------------------------------------------------------------------

class LLMConfig(BaseModel):
    provider: str = "openrouter"
    base_url: str = "https://openrouter.ai/api/v1"
    default_temperature: float = 0.3
    default_max_tokens: int = 2048
    timeout_seconds: int = 60
    provider_retries: int = 2
    provider_backoff_seconds: float = 2.0


class GeneratorConfig(BaseModel):
    model: str = "openai/gpt-4o-mini"
    system_prompt_file: str = "generator_system.txt"
    max_feedback_items: int = 7


class LimiterConfig(BaseModel):
    ceiling: int = Field(default=1000, ge=1)
    window_seconds: float = Field(default=60.0, gt=0)


class CacheConfig(BaseModel):
    # None keeps the cache unbounded; an int enables oldest-insertion eviction.
    max_entries: Optional[int] = Field(default=None, ge=1)


class SandboxConfig(BaseModel):
    isolation: str = "thread"  # "thread" or "process"
    timeout_ms: int = Field(default=100, ge=1)
    max_size_bytes: int = Field(default=16_384, ge=1)
    declaration_keywords: list[str] = Field(
        default_factory=lambda: [
            "const",
            "let",
            "var",
            "function",
            "class",
            "export",
            "import",
            "async",
            "def",
            "from",
            "interface",
            "type",
            "enum",
        ]
    )
    banned_tokens: list[str] = Field(
        default_factory=lambda: [
            "eval",
            "Function(",
            "setTimeout(\"",
            "setInterval(\"",
            "innerHTML",
            "outerHTML",
            "insertAdjacentHTML",
            "document.write",
            "exec",
            "__import__",
            "child_process",
            "require(",
        ]
    )


class OrchestratorConfig(BaseModel):
    max_cycles: int = Field(default=7, ge=1)
    max_prompt_chars: int = Field(default=200, ge=1)
    max_mission_chars: int = Field(default=100, ge=0)
    max_workers: int = Field(default=8, ge=1)
    request_timeout_seconds: Optional[float] = None


class ContextConfig(BaseModel):
    knowledge_file: Optional[str] = None
    max_context_chars: int = 4000


class ApiConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8080
    caller_header: str = "X-Caller-Id"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AppConfig(BaseModel):
    llm: LLMConfig = Field(default_factory=LLMConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    limiter: LimiterConfig = Field(default_factory=LimiterConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

# COGEN_<SECTION>__<FIELD>=value, e.g. COGEN_LIMITER__CEILING=50
ENV_PREFIX = "COGEN_"


def _default_config_dir() -> Path:
    return Path(__file__).parent.parent.parent / "config"


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    return data if isinstance(data, dict) else {}


def _env_overrides(environ: dict[str, str]) -> dict[str, Any]:
    """Collect COGEN_SECTION__FIELD variables into a nested dict.

    Values are parsed as YAML scalars so numbers and booleans keep their type.
    """
    overrides: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(ENV_PREFIX) or "__" not in name:
            continue
        section, _, field = name[len(ENV_PREFIX):].lower().partition("__")
        if not section or not field:
            continue
        try:
            value = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        overrides.setdefault(section, {})[field] = value
    return overrides


def load_config(
    config_dir: Optional[Path] = None,
    env: Optional[str] = None,
    environ: Optional[dict[str, str]] = None,
) -> AppConfig:
    """Load application config from YAML cascade.

    Order: default.yaml -> {env}.yaml -> COGEN_* env vars
    """
    if config_dir is None:
        config_dir = _default_config_dir()
    if environ is None:
        environ = dict(os.environ)

    merged = _load_yaml(config_dir / "default.yaml")

    env = env or environ.get("COGEN_ENV")
    if env:
        overlay = _load_yaml(config_dir / f"{env}.yaml")
        merged = _deep_merge(merged, overlay)

    merged = _deep_merge(merged, _env_overrides(environ))

    try:
        return AppConfig(**merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


# ---------------------------------------------------------------------------
# Prompt loader
# ---------------------------------------------------------------------------

class PromptLoader:
    """Loads prompt templates from config/prompts/ directory.

    Falls back to hardcoded defaults if the file doesn't exist,
    enabling prompt iteration without code changes.
    """

    def __init__(self, prompts_dir: Optional[Path] = None):
        if prompts_dir is None:
            prompts_dir = _default_config_dir() / "prompts"
        self.prompts_dir = prompts_dir

    def load(self, name: str, default: str = "") -> str:
        """Load a prompt template by filename.

        Args:
            name: Filename within config/prompts/ (e.g. "generator_system.txt").
            default: Fallback text if file doesn't exist.

        Returns:
            Prompt text (stripped of leading/trailing whitespace).
        """
        path = self.prompts_dir / name
        if path.exists():
            return path.read_text().strip()
        return default
