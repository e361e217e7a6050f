"""Orchestrator facade: the public entry point of cogen.

handle(caller_id, directive):
  size bounds -> admission limiter -> fingerprint -> cache lookup
  -> (collapse onto an in-flight run, or start one) -> cache store -> result

Loop runs execute on a bounded thread pool owned by the facade. Identical
directives submitted while a run is in flight wait on the same future, so
each fingerprint has at most one run at a time. A caller that stops waiting
gets RequestTimeout; its run keeps going and still populates the cache.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Optional

from cogen.core.config import OrchestratorConfig
from cogen.core.exceptions import DirectiveTooLarge, RateLimitExceeded, RequestTimeout
from cogen.core.models import Directive, GenerationResult, code_point_length, compute_fingerprint
from cogen.memory.result_cache import FingerprintCache
from cogen.orchestrator.loop import GenerationLoop
from cogen.orchestrator.metrics import OrchestratorMetrics
from cogen.security.limiter import AdmissionLimiter

logger = logging.getLogger("cogen.orchestrator")


class Orchestrator:
    """Ties the limiter, cache and generation loop together.

    The facade owns the cache, the limiter and the in-flight map for the
    process lifetime. Each is guarded by its own short lock; no lock is
    held while a loop runs or while a caller waits.
    """

    def __init__(
        self,
        loop: GenerationLoop,
        limiter: Optional[AdmissionLimiter] = None,
        cache: Optional[FingerprintCache] = None,
        config: Optional[OrchestratorConfig] = None,
        metrics: Optional[OrchestratorMetrics] = None,
    ):
        self.config = config or OrchestratorConfig()
        self.loop = loop
        self.limiter = limiter or AdmissionLimiter()
        self.cache = cache or FingerprintCache()
        self.metrics = metrics or loop.metrics
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="cogen-loop",
        )
        self._inflight: dict[str, Future[GenerationResult]] = {}
        self._inflight_lock = threading.Lock()
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def handle(
        self,
        caller_id: str,
        directive: Directive,
        timeout: Optional[float] = None,
    ) -> GenerationResult:
        """Serve one directive for caller_id.

        Args:
            caller_id: Identity used for admission control.
            directive: Prompt plus optional mission.
            timeout: Seconds this caller is willing to wait. Defaults to
                config.request_timeout_seconds (None waits indefinitely).

        Raises:
            DirectiveTooLarge, RateLimitExceeded, GenerationExhausted,
            GenerationCapabilityFailure, RequestTimeout
        """
        fingerprint, cached = self._admit(caller_id, directive)
        if cached is not None:
            return cached

        future = self._submit(fingerprint, directive)
        wait = timeout if timeout is not None else self.config.request_timeout_seconds
        try:
            return future.result(timeout=wait)
        except FutureTimeout:
            self.metrics.incr("request_timeouts")
            logger.info("Caller %s stopped waiting for %s", caller_id, fingerprint[:12])
            raise RequestTimeout(wait) from None

    def submit(self, caller_id: str, directive: Directive) -> Future[GenerationResult]:
        """Non-blocking variant of handle(); admission is checked up front."""
        fingerprint, cached = self._admit(caller_id, directive)
        if cached is not None:
            done: Future[GenerationResult] = Future()
            done.set_result(cached)
            return done
        return self._submit(fingerprint, directive)

    def in_flight(self) -> int:
        with self._inflight_lock:
            return len(self._inflight)

    def stats(self) -> dict[str, Any]:
        snapshot = self.metrics.snapshot()
        snapshot["cache_entries"] = len(self.cache)
        snapshot["limiter_windows"] = len(self.limiter)
        snapshot["in_flight"] = self.in_flight()
        return snapshot

    def close(self, wait: bool = True) -> None:
        """Stop accepting requests and shut the loop pool down."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=wait)
        logger.info("Orchestrator closed")

    def __enter__(self) -> "Orchestrator":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _admit(
        self,
        caller_id: str,
        directive: Directive,
    ) -> tuple[str, Optional[GenerationResult]]:
        """Bounds, admission and cache lookup. Returns (fingerprint, cached)."""
        if self._closed:
            raise RuntimeError("Orchestrator is closed")
        self.metrics.incr("requests")

        self._check_bounds(directive)
        try:
            self.limiter.check(caller_id)
        except RateLimitExceeded:
            self.metrics.incr("admission_rejections")
            raise

        fingerprint = compute_fingerprint(directive.prompt, directive.mission)
        cached = self.cache.get(fingerprint)
        if cached is not None:
            self.metrics.incr("cache_hits")
            logger.debug("Cache hit for %s", fingerprint[:12])
        return fingerprint, cached

    def _check_bounds(self, directive: Directive) -> None:
        prompt_len = code_point_length(directive.prompt)
        if prompt_len > self.config.max_prompt_chars:
            raise DirectiveTooLarge("prompt", prompt_len, self.config.max_prompt_chars)
        mission_len = code_point_length(directive.mission or "")
        if mission_len > self.config.max_mission_chars:
            raise DirectiveTooLarge("mission", mission_len, self.config.max_mission_chars)

    def _submit(self, fingerprint: str, directive: Directive) -> Future[GenerationResult]:
        with self._inflight_lock:
            existing = self._inflight.get(fingerprint)
            if existing is not None:
                self.metrics.incr("collapsed_requests")
                return existing

            # A run may have finished between the cache miss and taking the lock.
            cached = self.cache.get(fingerprint)
            if cached is not None:
                self.metrics.incr("cache_hits")
                done: Future[GenerationResult] = Future()
                done.set_result(cached)
                return done

            future = self._executor.submit(self._run_and_store, fingerprint, directive)
            self._inflight[fingerprint] = future
            return future

    def _run_and_store(self, fingerprint: str, directive: Directive) -> GenerationResult:
        try:
            result = self.loop.run(directive, fingerprint=fingerprint)
            return self.cache.put(fingerprint, result)
        finally:
            with self._inflight_lock:
                self._inflight.pop(fingerprint, None)
