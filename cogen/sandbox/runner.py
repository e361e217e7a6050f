"""Validation sandbox runners.

Both runners copy the candidate and policy in as plain JSON-compatible
data and copy a verdict out. Neither hands the checks a reference to
orchestrator state. Exceeding the time budget yields a "timeout" verdict;
a crash inside the sandbox raises ValidationSandboxFault.

Isolation modes:
    thread:  checks run on a daemon worker thread; the caller waits at most
             timeout_seconds for the verdict.
    process: checks run in a fresh interpreter (cogen.sandbox.worker) that
             is killed when it exceeds timeout_seconds.
"""

from __future__ import annotations

import json
import logging
import os
import queue
import subprocess
import sys
import threading
import time
from pathlib import Path
from typing import Optional, Protocol

from cogen.core.config import SandboxConfig
from cogen.core.exceptions import ConfigError, ValidationSandboxFault
from cogen.core.models import Candidate, RejectionReason, ValidationVerdict
from cogen.sandbox.checks import SandboxPolicy, run_checks

logger = logging.getLogger("cogen.sandbox")

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_SAFE_ENV_VARS = ("PATH", "LANG", "LC_ALL", "LC_CTYPE", "SYSTEMROOT")
MAX_VERDICT_BYTES = 65_536


class IsolationRunner(Protocol):
    def run(self, payload: dict, timeout_seconds: float) -> Optional[dict]:
        """Return {"reason", "detail"} or None on timeout."""


class ThreadIsolation:
    """Runs checks on a throwaway daemon thread with a copied payload."""

    def run(self, payload: dict, timeout_seconds: float) -> Optional[dict]:
        inbox = json.loads(json.dumps(payload))
        outbox: queue.Queue[tuple[str, dict | str]] = queue.Queue(maxsize=1)

        def _work() -> None:
            try:
                policy = SandboxPolicy.from_dict(inbox["policy"])
                outcome = run_checks(str(inbox["candidate"]), policy)
                outbox.put(("ok", {"reason": outcome.reason, "detail": outcome.detail}))
            except Exception as e:
                outbox.put(("fault", f"{type(e).__name__}: {e}"))

        worker = threading.Thread(target=_work, name="cogen-sandbox", daemon=True)
        worker.start()
        try:
            status, body = outbox.get(timeout=timeout_seconds)
        except queue.Empty:
            return None

        if status == "fault":
            logger.warning("Sandbox thread crashed: %s", body)
            raise ValidationSandboxFault()
        return json.loads(json.dumps(body))


class ProcessIsolation:
    """Runs checks in a separate interpreter with a sanitized environment."""

    def __init__(self, command: Optional[list[str]] = None):
        self.command = command or [sys.executable, "-E", "-s", "-m", "cogen.sandbox.worker"]

    def run(self, payload: dict, timeout_seconds: float) -> Optional[dict]:
        env = {k: os.environ[k] for k in _SAFE_ENV_VARS if k in os.environ}
        try:
            result = subprocess.run(
                self.command,
                input=json.dumps(payload),
                capture_output=True,
                text=True,
                timeout=timeout_seconds,
                cwd=str(_PROJECT_ROOT),
                env=env,
            )
        except subprocess.TimeoutExpired:
            return None
        except OSError as e:
            logger.warning("Sandbox process could not start: %s", e)
            raise ValidationSandboxFault() from e

        if result.returncode != 0:
            logger.warning(
                "Sandbox process exited rc=%d: %s",
                result.returncode, result.stderr[-500:],
            )
            raise ValidationSandboxFault()

        try:
            body = json.loads(result.stdout[:MAX_VERDICT_BYTES])
        except json.JSONDecodeError as e:
            logger.warning("Sandbox process returned unparsable verdict")
            raise ValidationSandboxFault() from e
        if not isinstance(body, dict):
            raise ValidationSandboxFault()
        return body


class ValidationSandbox:
    """Validates candidates against a policy inside an isolation runner."""

    def __init__(
        self,
        policy: SandboxPolicy,
        isolation: Optional[IsolationRunner] = None,
    ):
        self.policy = policy
        self.isolation = isolation or ThreadIsolation()

    @classmethod
    def from_config(cls, config: SandboxConfig) -> "ValidationSandbox":
        policy = SandboxPolicy(
            max_size_bytes=config.max_size_bytes,
            timeout_seconds=config.timeout_ms / 1000.0,
            declaration_keywords=tuple(config.declaration_keywords),
            banned_tokens=tuple(config.banned_tokens),
        )
        mode = config.isolation.lower()
        if mode == "process":
            isolation: IsolationRunner = ProcessIsolation()
        elif mode == "thread":
            isolation = ThreadIsolation()
        else:
            raise ConfigError(f"Unknown sandbox isolation mode '{config.isolation}'")
        return cls(policy=policy, isolation=isolation)

    def validate(
        self,
        candidate: Candidate | str,
        policy: Optional[SandboxPolicy] = None,
    ) -> ValidationVerdict:
        """Run the ordered checks on candidate.

        Raises:
            ValidationSandboxFault: The sandbox itself failed.
        """
        policy = policy or self.policy
        text = candidate.content if isinstance(candidate, Candidate) else candidate
        payload = {"candidate": text, "policy": policy.to_dict()}

        start = time.monotonic()
        body = self.isolation.run(payload, policy.timeout_seconds)
        duration_ms = (time.monotonic() - start) * 1000.0

        if body is None:
            logger.info("Sandbox timed out after %.1fms", duration_ms)
            return ValidationVerdict.reject(RejectionReason.TIMEOUT, duration_ms=duration_ms)

        reason = body.get("reason")
        if reason is None:
            return ValidationVerdict.accept(duration_ms=duration_ms)
        try:
            kind = RejectionReason(reason)
        except ValueError as e:
            logger.warning("Sandbox returned unknown reason %r", reason)
            raise ValidationSandboxFault() from e

        detail = body.get("detail")
        return ValidationVerdict.reject(
            kind,
            detail=str(detail)[:200] if detail is not None else None,
            duration_ms=duration_ms,
        )
