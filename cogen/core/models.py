"""Pydantic data models for cogen.

Defines the data contracts passed between the limiter, cache, loop,
sandbox and the injected collaborators.
"""

from __future__ import annotations

import enum
import hashlib
import time
import unicodedata
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def _now_ms() -> int:
    return int(time.time() * 1000)


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class RejectionReason(str, enum.Enum):
    OVERSIZE = "oversize"
    MALFORMED_STRUCTURE = "malformed-structure"
    BANNED_TOKEN = "banned-token"
    TIMEOUT = "timeout"


class LoopState(str, enum.Enum):
    START = "START"
    GENERATING = "GENERATING"
    VALIDATING = "VALIDATING"
    ACCEPTED = "ACCEPTED"
    LEARNING = "LEARNING"
    FINALIZED = "FINALIZED"
    EXHAUSTED = "EXHAUSTED"
    ABORTED = "ABORTED"


# ---------------------------------------------------------------------------
# Directive + fingerprint
# ---------------------------------------------------------------------------

class Directive(BaseModel):
    """Caller-supplied request. Untrusted text; never executed."""
    model_config = ConfigDict(frozen=True)

    prompt: str
    mission: str = ""

    @property
    def fingerprint(self) -> str:
        return compute_fingerprint(self.prompt, self.mission)


def _normalize(text: str) -> str:
    return unicodedata.normalize("NFC", text).strip()


def code_point_length(text: str) -> int:
    """Length in code points of the text as submitted (no normalization)."""
    return len(text)


def compute_fingerprint(prompt: str, mission: str = "") -> str:
    """Deterministic SHA-256 over the normalized (prompt, mission) pair.

    Fields are length-prefixed so ("ab", "c") and ("a", "bc") differ.
    Used only as a cache key.
    """
    p, m = _normalize(prompt), _normalize(mission or "")
    payload = f"{len(p)}:{p}|{len(m)}:{m}"
    return sha256_hex(payload)


# ---------------------------------------------------------------------------
# Generation contracts
# ---------------------------------------------------------------------------

class Constraints(BaseModel):
    """Fixed generation policy for one loop run. Not mutated during the loop."""
    model_config = ConfigDict(frozen=True)

    max_size_bytes: int
    banned_tokens: tuple[str, ...] = ()
    declaration_keywords: tuple[str, ...] = ()


class AttemptRecord(BaseModel):
    """Learning record for one failed cycle, fed back to the next attempt."""
    model_config = ConfigDict(frozen=True)

    cycle: int
    reason: str  # RejectionReason value, "generator-error" or "sandbox-fault"
    detail: Optional[str] = None


class GenerationRequest(BaseModel):
    """Input handed to the Generation Capability for one cycle."""
    model_config = ConfigDict(frozen=True)

    prompt: str
    context: str = ""
    constraints: Constraints
    feedback: tuple[AttemptRecord, ...] = ()
    cycle: int = 1


class Candidate(BaseModel):
    """One generated attempt. Owned by the current loop iteration."""
    model_config = ConfigDict(frozen=True)

    content: str
    cycle: int = 1
    model: Optional[str] = None

    @property
    def size_bytes(self) -> int:
        return len(self.content.encode("utf-8"))


class ValidationVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    accepted: bool
    reason: Optional[RejectionReason] = None
    detail: Optional[str] = None
    duration_ms: float = 0.0

    @classmethod
    def accept(cls, duration_ms: float = 0.0) -> "ValidationVerdict":
        return cls(accepted=True, duration_ms=duration_ms)

    @classmethod
    def reject(
        cls,
        reason: RejectionReason,
        detail: Optional[str] = None,
        duration_ms: float = 0.0,
    ) -> "ValidationVerdict":
        return cls(accepted=False, reason=reason, detail=detail, duration_ms=duration_ms)


# ---------------------------------------------------------------------------
# Finalized result
# ---------------------------------------------------------------------------

class IntegrityRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str
    timestamp: int = Field(default_factory=_now_ms)  # epoch milliseconds
    cycles: int


class GenerationResult(BaseModel):
    """Finalized artifact plus integrity record. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    code: str
    fingerprint: str
    integrity: IntegrityRecord

    @classmethod
    def finalize(cls, candidate: Candidate, fingerprint: str, cycles: int) -> "GenerationResult":
        return cls(
            code=candidate.content,
            fingerprint=fingerprint,
            integrity=IntegrityRecord(hash=sha256_hex(candidate.content), cycles=cycles),
        )

    @property
    def cycles(self) -> int:
        return self.integrity.cycles

    def verify(self) -> bool:
        """True when the artifact still hashes to its integrity record."""
        return sha256_hex(self.code) == self.integrity.hash

    def to_response(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "cycles": self.integrity.cycles,
            "hash": self.integrity.hash,
            "timestamp": self.integrity.timestamp,
        }
