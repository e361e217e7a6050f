"""Bounded generate/validate/learn loop for cogen.

State machine per run:

    START -> GENERATING -> VALIDATING -> ACCEPTED -> FINALIZED
                 ^              |
                 |              v
                 +-------- LEARNING        (cycle < max_cycles)
                                |
                                v
                            EXHAUSTED      (cycle == max_cycles)

    GENERATING -> ABORTED on a fatal capability fault.

A cycle is one generate+validate pair. Rejections, transient generator
errors and sandbox faults each consume one cycle and are fed back to the
next generation call as AttemptRecords. The loop instance holds only
immutable configuration; all per-run state lives in a _RunState, so one
loop can serve many concurrent runs.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from cogen.agents.base_agent import ContextProvider, GenerationCapability
from cogen.core.exceptions import (
    FatalGenerationError,
    GenerationCapabilityFailure,
    GenerationExhausted,
    ValidationSandboxFault,
)
from cogen.core.models import (
    AttemptRecord,
    Candidate,
    Constraints,
    Directive,
    GenerationRequest,
    GenerationResult,
    LoopState,
    ValidationVerdict,
)
from cogen.llm.response_parser import normalize_error_signature
from cogen.orchestrator.metrics import CycleMetric, LoopRun, OrchestratorMetrics
from cogen.sandbox.runner import ValidationSandbox

logger = logging.getLogger("cogen.orchestrator.loop")

DEFAULT_MAX_CYCLES = 7
GENERATOR_ERROR = "generator-error"
SANDBOX_FAULT = "sandbox-fault"


@dataclass
class _RunState:
    fingerprint: str
    state: LoopState = LoopState.START
    cycle: int = 0
    feedback: list[AttemptRecord] = field(default_factory=list)
    trace: Optional[list[LoopState]] = None

    def transition(self, new_state: LoopState) -> None:
        logger.debug(
            "[%s] %s -> %s (cycle %d)",
            self.fingerprint[:12], self.state.value, new_state.value, self.cycle,
        )
        self.state = new_state
        if self.trace is not None:
            self.trace.append(new_state)


class GenerationLoop:
    """Drives up to max_cycles generate/validate cycles for one directive.

    Injected dependencies:
        context_provider: mission -> context text.
        generator: GenerationRequest -> Candidate.
        sandbox: Validates candidates in isolation.
        max_cycles: Hard bound on generate/validate pairs per run.
        metrics: Optional shared metrics collector.
    """

    def __init__(
        self,
        context_provider: ContextProvider,
        generator: GenerationCapability,
        sandbox: ValidationSandbox,
        max_cycles: int = DEFAULT_MAX_CYCLES,
        metrics: Optional[OrchestratorMetrics] = None,
    ):
        if max_cycles < 1:
            raise ValueError("max_cycles must be >= 1")
        self.context_provider = context_provider
        self.generator = generator
        self.sandbox = sandbox
        self.max_cycles = max_cycles
        self.metrics = metrics or OrchestratorMetrics()
        policy = sandbox.policy
        self.constraints = Constraints(
            max_size_bytes=policy.max_size_bytes,
            banned_tokens=tuple(policy.banned_tokens),
            declaration_keywords=tuple(policy.declaration_keywords),
        )

    def run(
        self,
        directive: Directive,
        fingerprint: Optional[str] = None,
        trace: Optional[list[LoopState]] = None,
    ) -> GenerationResult:
        """Run the loop to FINALIZED, EXHAUSTED or ABORTED.

        Args:
            directive: The caller's directive (already size-checked).
            fingerprint: Cache key for the directive; computed if omitted.
            trace: Optional list that receives every state entered.

        Returns:
            The finalized GenerationResult.

        Raises:
            GenerationExhausted: No candidate accepted within max_cycles.
            GenerationCapabilityFailure: Generator or context provider faulted.
        """
        fingerprint = fingerprint or directive.fingerprint
        run_state = _RunState(fingerprint=fingerprint, trace=trace)
        if trace is not None:
            trace.append(LoopState.START)
        loop_run = self.metrics.start_run(fingerprint)

        context = self._load_context(directive, run_state, loop_run)

        while run_state.cycle < self.max_cycles:
            run_state.cycle += 1
            metric = CycleMetric(cycle=run_state.cycle)

            run_state.transition(LoopState.GENERATING)
            candidate = self._generate(directive, context, run_state, loop_run, metric)
            if candidate is None:
                self._learn(run_state, loop_run, metric)
                continue

            run_state.transition(LoopState.VALIDATING)
            verdict = self._validate(candidate, run_state, metric)
            if verdict is not None and verdict.accepted:
                metric.outcome = "accepted"
                self.metrics.record_cycle(loop_run, metric)
                run_state.transition(LoopState.ACCEPTED)
                result = GenerationResult.finalize(candidate, fingerprint, cycles=run_state.cycle)
                run_state.transition(LoopState.FINALIZED)
                self.metrics.complete_run(loop_run, "finalized")
                return result

            self._learn(run_state, loop_run, metric)

        run_state.transition(LoopState.EXHAUSTED)
        self.metrics.complete_run(loop_run, "exhausted")
        raise GenerationExhausted(
            cycles=run_state.cycle,
            reasons=[a.reason for a in run_state.feedback],
        )

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _load_context(self, directive: Directive, run_state: _RunState, loop_run: LoopRun) -> str:
        if not directive.mission:
            return ""
        try:
            return self.context_provider.get_context(directive.mission) or ""
        except Exception as e:
            logger.warning("[%s] Context provider failed: %s", run_state.fingerprint[:12], e)
            run_state.transition(LoopState.ABORTED)
            self.metrics.complete_run(loop_run, "aborted")
            raise GenerationCapabilityFailure("Context provider unavailable", cycles=0) from e

    def _generate(
        self,
        directive: Directive,
        context: str,
        run_state: _RunState,
        loop_run: LoopRun,
        metric: CycleMetric,
    ) -> Optional[Candidate]:
        request = GenerationRequest(
            prompt=directive.prompt,
            context=context,
            constraints=self.constraints,
            feedback=tuple(run_state.feedback),
            cycle=run_state.cycle,
        )
        start = time.monotonic()
        try:
            return self.generator.generate(request)
        except FatalGenerationError as e:
            logger.warning("[%s] Generation capability fault: %s", run_state.fingerprint[:12], e)
            run_state.transition(LoopState.ABORTED)
            self.metrics.complete_run(loop_run, "aborted")
            raise GenerationCapabilityFailure(cycles=run_state.cycle - 1) from e
        except Exception as e:
            logger.info("[%s] Cycle %d generator error: %s", run_state.fingerprint[:12], run_state.cycle, e)
            metric.outcome = GENERATOR_ERROR
            metric.reason = GENERATOR_ERROR
            run_state.feedback.append(
                AttemptRecord(
                    cycle=run_state.cycle,
                    reason=GENERATOR_ERROR,
                    detail=normalize_error_signature(str(e))[:200] or type(e).__name__,
                )
            )
            return None
        finally:
            metric.generation_seconds = time.monotonic() - start

    def _validate(
        self,
        candidate: Candidate,
        run_state: _RunState,
        metric: CycleMetric,
    ) -> Optional[ValidationVerdict]:
        start = time.monotonic()
        try:
            verdict = self.sandbox.validate(candidate)
        except Exception as e:
            if not isinstance(e, ValidationSandboxFault):
                logger.warning("[%s] Sandbox raised %s", run_state.fingerprint[:12], type(e).__name__)
            metric.outcome = SANDBOX_FAULT
            metric.reason = SANDBOX_FAULT
            run_state.feedback.append(AttemptRecord(cycle=run_state.cycle, reason=SANDBOX_FAULT))
            return None
        finally:
            metric.validation_seconds = time.monotonic() - start

        if not verdict.accepted:
            reason = verdict.reason.value if verdict.reason else "rejected"
            logger.info("[%s] Cycle %d rejected: %s", run_state.fingerprint[:12], run_state.cycle, reason)
            metric.outcome = "rejected"
            metric.reason = reason
            run_state.feedback.append(
                AttemptRecord(cycle=run_state.cycle, reason=reason, detail=verdict.detail)
            )
        return verdict

    def _learn(self, run_state: _RunState, loop_run: LoopRun, metric: CycleMetric) -> None:
        run_state.transition(LoopState.LEARNING)
        self.metrics.record_cycle(loop_run, metric)
