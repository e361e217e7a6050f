"""Candidate checks run inside the validation sandbox.

Pure functions over plain strings and a plain policy object, so the same
code runs on a worker thread or in a separate interpreter. Checks run in a
fixed order and stop at the first failure:

1. Size: UTF-8 byte length <= max_size_bytes -> "oversize"
2. Structure: first significant line starts with a declaration keyword
   -> "malformed-structure"
3. Denylist: no banned token present -> "banned-token"
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

OVERSIZE = "oversize"
MALFORMED_STRUCTURE = "malformed-structure"
BANNED_TOKEN = "banned-token"

# Lines skipped when looking for the first declaration.
_SKIPPED_PREFIXES = ("//", "#", "/*", "*", "@", "'use strict'", '"use strict"')

_IDENT_CHAR = re.compile(r"[\w$]")


@dataclass(frozen=True)
class SandboxPolicy:
    """Validation policy copied into the sandbox with each candidate."""

    max_size_bytes: int = 16_384
    timeout_seconds: float = 0.1
    declaration_keywords: tuple[str, ...] = ()
    banned_tokens: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["declaration_keywords"] = list(self.declaration_keywords)
        data["banned_tokens"] = list(self.banned_tokens)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SandboxPolicy":
        return cls(
            max_size_bytes=int(data.get("max_size_bytes", 16_384)),
            timeout_seconds=float(data.get("timeout_seconds", 0.1)),
            declaration_keywords=tuple(data.get("declaration_keywords", ())),
            banned_tokens=tuple(data.get("banned_tokens", ())),
        )


@dataclass
class CheckOutcome:
    reason: Optional[str] = None
    detail: Optional[str] = None
    checks_run: list[str] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.reason is None


def check_size(text: str, policy: SandboxPolicy) -> Optional[str]:
    size = len(text.encode("utf-8"))
    if size > policy.max_size_bytes:
        return f"{size} bytes exceeds limit of {policy.max_size_bytes}"
    return None


def first_significant_line(text: str) -> str:
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(_SKIPPED_PREFIXES):
            continue
        return stripped
    return ""


def check_structure(text: str, policy: SandboxPolicy) -> Optional[str]:
    line = first_significant_line(text)
    if not line:
        return "no declaration found"
    if not policy.declaration_keywords:
        return None
    first_word = re.match(r"[A-Za-z_$][\w$]*", line)
    if first_word is None or first_word.group(0) not in policy.declaration_keywords:
        return "does not begin with a declaration keyword"
    return None


def token_pattern(token: str) -> re.Pattern[str]:
    """Regex for a banned token.

    Identifier edges must sit on a word boundary, so "eval" matches
    "eval(x)" but not "evaluate".
    """
    prefix = r"(?<![\w$])" if _IDENT_CHAR.match(token[0]) else ""
    suffix = r"(?![\w$])" if _IDENT_CHAR.match(token[-1]) else ""
    return re.compile(prefix + re.escape(token) + suffix)


def check_banned_tokens(text: str, policy: SandboxPolicy) -> Optional[str]:
    for token in policy.banned_tokens:
        if token and token_pattern(token).search(text):
            return token
    return None


CHECKS = (
    (OVERSIZE, check_size),
    (MALFORMED_STRUCTURE, check_structure),
    (BANNED_TOKEN, check_banned_tokens),
)


def run_checks(text: str, policy: SandboxPolicy) -> CheckOutcome:
    """Apply every check in order, short-circuiting on the first failure."""
    outcome = CheckOutcome()
    for reason, check in CHECKS:
        outcome.checks_run.append(reason)
        detail = check(text, policy)
        if detail is not None:
            outcome.reason = reason
            outcome.detail = detail
            break
    return outcome
