"""Librarian agent for cogen: the file-backed Context Provider.

Loads a read-only YAML knowledge file once and answers mission lookups:

    missions:
      checkout: "Payments use integer cents; never floats."
    topics:
      - keywords: [date, time]
        text: "Dates are ISO-8601 UTC strings."

get_context(mission) returns the exact mission entry (if any) followed by
every topic whose keywords appear in the mission, truncated to
max_context_chars. Lookups never mutate state.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from cogen.agents.base_agent import BaseAgent
from cogen.core.exceptions import ConfigError

logger = logging.getLogger("cogen.agent.librarian")


class Librarian(BaseAgent):
    """Keyword and exact-match knowledge lookup.

    Injected dependencies:
        missions: Mapping of mission name -> context text.
        topics: List of {"keywords": [...], "text": str}.
        max_context_chars: Upper bound on returned context length.
    """

    def __init__(
        self,
        missions: Optional[Mapping[str, str]] = None,
        topics: Optional[list[dict[str, Any]]] = None,
        max_context_chars: int = 4000,
    ):
        super().__init__(name="Librarian", role="context")
        self._missions = {_key(k): str(v) for k, v in (missions or {}).items()}
        self._topics = [
            (tuple(_key(k) for k in topic.get("keywords", [])), str(topic.get("text", "")))
            for topic in (topics or [])
        ]
        self.max_context_chars = max_context_chars

    @classmethod
    def from_file(cls, path: str | Path, max_context_chars: int = 4000) -> "Librarian":
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Knowledge file not found: {path}")
        try:
            data = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid knowledge file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Knowledge file {path} must be a mapping")

        librarian = cls(
            missions=data.get("missions") or {},
            topics=data.get("topics") or [],
            max_context_chars=max_context_chars,
        )
        logger.info(
            "Loaded knowledge file %s (%d missions, %d topics)",
            path, len(librarian._missions), len(librarian._topics),
        )
        return librarian

    def get_context(self, mission: str) -> str:
        return self.run(mission)

    def process(self, input_data: Any) -> str:
        mission = str(input_data or "")
        if not mission.strip():
            return ""

        parts: list[str] = []
        exact = self._missions.get(_key(mission))
        if exact:
            parts.append(exact)

        words = set(re.findall(r"[\w-]+", mission.lower()))
        for keywords, text in self._topics:
            if text and any(k in words for k in keywords) and text not in parts:
                parts.append(text)

        return "\n\n".join(parts)[: self.max_context_chars]


class StaticContextProvider:
    """Context from a plain mapping; unknown missions yield an empty context."""

    def __init__(self, contexts: Optional[Mapping[str, str]] = None):
        self._contexts = dict(contexts or {})

    def get_context(self, mission: str) -> str:
        return self._contexts.get(mission, "")


def _key(text: str) -> str:
    return str(text).strip().lower()
