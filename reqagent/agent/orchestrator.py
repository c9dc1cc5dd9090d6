"""Pipeline Orchestrator - runs agents in sequence, in parallel groups and in loops.

The orchestrator owns:
1. Single agent execution with validation, audit records and an optional TTL cache
2. Sequential pipelines with stop-on-error
3. Parallel groups with a full join and title-deduplicated merge
4. The bounded validate/refine self-correction loop
5. Per-agent circuit breakers for retried execution
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel

from reqagent.agent.registry import AgentRegistry
from reqagent.agent.schemas import (
    AgentContext,
    AgentInput,
    AgentKind,
    AgentResult,
    InputType,
    PipelineConfig,
    PipelineOutcome,
    RefinementOutcome,
    RequirementCandidate,
)
from reqagent.core.config import settings
from reqagent.core.database import RecordStore
from reqagent.core.exceptions import ValidationExhausted
from reqagent.models.schemas import AgentExecutionRecord

logger = logging.getLogger(__name__)

# (kind, input, action label) -> result. Lets callers wrap each call, e.g. in a job step.
AgentCall = Callable[[AgentKind, AgentInput, str], Awaitable[AgentResult]]

CIRCUIT_BREAKER_THRESHOLD = 5
CIRCUIT_BREAKER_RESET_SECONDS = 60
RETRYABLE_PATTERNS = ("timeout", "network", "econnreset", "etimedout", "503", "429")

# (metric, weight, default when no candidate carries metrics)
QUALITY_WEIGHTS = [
    ("structural_fit", 0.25, 70.0),
    ("industry_fit", 0.20, 70.0),
    ("missing_risk", 0.20, 70.0),
    ("duplicate_ratio", 0.15, 80.0),
    ("feasibility", 0.20, 75.0),
]

QUALITY_SUGGESTIONS = {
    "structural_fit": (70, 'Standardize requirement sentences as "Subject shall action [condition]".'),
    "industry_fit": (70, "Add industry-specific requirements."),
    "missing_risk": (70, "Check for missing security, performance and interface requirements."),
    "duplicate_ratio": (80, "Consolidate duplicate requirements."),
    "feasibility": (70, "Add quantified acceptance criteria so requirements are testable."),
}


# ============== Circuit Breaker ==============

class BreakerState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreakerState(BaseModel):
    agent_type: AgentKind
    state: BreakerState = BreakerState.CLOSED
    failure_count: int = 0
    last_failure_time: Optional[datetime] = None
    next_retry_time: Optional[datetime] = None


class AgentHealth(BaseModel):
    agent_type: AgentKind
    name: str
    status: str  # HEALTHY, DEGRADED, UNHEALTHY
    circuit_breaker: CircuitBreakerState


def is_retryable_error(error: Optional[str]) -> bool:
    if not error:
        return False
    lowered = error.lower()
    return any(pattern in lowered for pattern in RETRYABLE_PATTERNS)


def merge_candidates(results: List[AgentResult], include_failed: bool = False) -> List[RequirementCandidate]:
    """Concatenate candidate lists, first occurrence of a title wins.

    Failed results are skipped unless ``include_failed`` is set, in which
    case their fallback candidates are merged too.
    """
    seen = set()
    merged = []
    for result in results:
        if not result.candidates or not (result.success or include_failed):
            continue
        for candidate in result.candidates:
            key = candidate.title.strip().lower()
            if key in seen:
                continue
            seen.add(key)
            merged.append(candidate)
    return merged


def collect_final_candidates(results: List[AgentResult]) -> List[RequirementCandidate]:
    for result in reversed(results):
        if result.success and result.candidates:
            return list(result.candidates)
    return []


class PipelineOrchestrator:
    """Coordinates agent execution over a candidate set."""

    def __init__(
        self,
        registry: AgentRegistry,
        store: Optional[RecordStore] = None,
        cache_ttl_seconds: Optional[int] = None,
    ):
        """Initialize the orchestrator.

        Args:
            registry: Live agents keyed by kind
            store: Record store for execution audit rows (optional)
            cache_ttl_seconds: Lifetime of cached results
        """
        self.registry = registry
        self.store = store
        self.cache_ttl_seconds = (
            cache_ttl_seconds if cache_ttl_seconds is not None else settings.agent_cache_ttl_seconds
        )
        self._cache: Dict[str, Tuple[float, AgentResult]] = {}
        self._breakers: Dict[AgentKind, CircuitBreakerState] = {}

    # ============== Single Agent ==============

    @staticmethod
    def _cache_key(kind: AgentKind, agent_input: AgentInput) -> str:
        return f"{kind.value}:{agent_input.model_dump_json()}"

    async def execute_agent(
        self,
        kind: AgentKind,
        agent_input: AgentInput,
        context: AgentContext,
        use_cache: bool = False,
    ) -> AgentResult:
        """Run one agent. Never raises; every failure becomes ``success=False``."""
        agent = self.registry.get(kind)
        if agent is None:
            logger.warning(f"Agent not registered: {kind}")
            return AgentResult(agent_type=kind, success=False, error=f"Agent {kind.value} not registered")

        if use_cache:
            cached = self._cache.get(self._cache_key(kind, agent_input))
            if cached and time.monotonic() - cached[0] < self.cache_ttl_seconds:
                logger.info(f"Cache hit for {kind.value}")
                return cached[1].model_copy(update={"cached": True})

        start = time.perf_counter()
        try:
            if not agent.validate(agent_input):
                logger.warning(f"Input rejected by {kind.value} agent")
                return AgentResult(agent_type=kind, success=False, error=f"Invalid input for {kind.value} agent")
            logger.info(f"Executing agent: {agent.name or kind.value}")
            result = await agent.execute(agent_input, context)
        except Exception as e:
            logger.error(f"Agent {kind.value} failed: {e}")
            result = AgentResult(agent_type=kind, success=False, error=str(e))
        result.execution_time_ms = round((time.perf_counter() - start) * 1000, 2)

        await self._record_execution(context, kind, result)

        if use_cache and result.success:
            self._cache[self._cache_key(kind, agent_input)] = (time.monotonic(), result)

        logger.info(f"Agent {kind.value} executed: success={result.success}")
        return result

    async def _record_execution(self, context: AgentContext, kind: AgentKind, result: AgentResult):
        if self.store is None:
            return
        record = AgentExecutionRecord(
            session_id=context.session_id,
            agent_type=kind.value,
            success=result.success,
            candidate_count=len(result.candidates or []),
            metrics=result.metrics,
            error=result.error,
            execution_ms=result.execution_time_ms,
            user_id=context.user_id,
        )
        try:
            await self.store.append_agent_execution(record)
        except Exception as e:
            logger.warning(f"Failed to record execution of {kind.value}: {e}")

    def clear_cache(self):
        self._cache.clear()

    # ============== Pipelines ==============

    async def execute_pipeline(
        self,
        config: PipelineConfig,
        agent_input: AgentInput,
        context: AgentContext,
    ) -> PipelineOutcome:
        """
        Run agents one after another, feeding each result's candidates forward.

        Args:
            config: Agent order and stop-on-error flag
            agent_input: Initial input
            context: Session context; every result is appended to ``previous_results``

        Returns:
            PipelineOutcome with all results and the final candidate set
        """
        results: List[AgentResult] = []
        current = agent_input
        logger.info(f"Starting sequential pipeline with {len(config.agents)} agents")

        for kind in config.agents:
            result = await self.execute_agent(kind, current, context, use_cache=config.use_cache)
            results.append(result)
            context.previous_results.append(result)

            if not result.success and config.stop_on_error:
                logger.warning(f"Pipeline stopped due to error in {kind.value}: {result.error}")
                break

            if result.candidates:
                current = AgentInput(type=InputType.REQUIREMENTS, requirements=result.candidates)

        return PipelineOutcome(results=results, final_candidates=collect_final_candidates(results))

    async def execute_parallel(
        self,
        groups: List[List[AgentKind]],
        agent_input: AgentInput,
        context: AgentContext,
    ) -> PipelineOutcome:
        """Run each group concurrently on the same input, then merge before the next group."""
        results: List[AgentResult] = []
        current = agent_input
        logger.info(f"Starting parallel pipeline with {len(groups)} groups")

        for group in groups:
            snapshot = current
            group_results = await asyncio.gather(*[
                self.execute_agent(kind, snapshot, context) for kind in group
            ], return_exceptions=True)

            finished = []
            for kind, result in zip(group, group_results):
                if isinstance(result, Exception):
                    logger.error(f"Agent {kind.value} raised in parallel group: {result}")
                    result = AgentResult(agent_type=kind, success=False, error=str(result))
                finished.append(result)

            results.extend(finished)
            context.previous_results.extend(finished)

            merged = merge_candidates(finished)
            if merged:
                current = AgentInput(type=InputType.REQUIREMENTS, requirements=merged)

        return PipelineOutcome(results=results, final_candidates=collect_final_candidates(results))

    # ============== Validate / Refine ==============

    async def validate_and_refine(
        self,
        candidates: List[RequirementCandidate],
        context: AgentContext,
        max_iterations: Optional[int] = None,
        threshold: Optional[float] = None,
        strict: bool = False,
        call: Optional[AgentCall] = None,
    ) -> RefinementOutcome:
        """
        Bounded self-correction loop.

        Each iteration runs the validator. A score at or above ``threshold``
        ends the loop with the validator's candidates. Otherwise the refiner
        rewrites the validator's output and the refined set is validated
        again. When iterations run out the last refined set is kept.

        Args:
            candidates: Starting candidate set
            context: Session context
            max_iterations: Loop bound (default from settings)
            threshold: Acceptance score out of 100 (default from settings)
            strict: Raise ValidationExhausted instead of accepting a degraded set
            call: Optional agent invoker used instead of ``execute_agent``

        Returns:
            RefinementOutcome
        """
        max_iterations = max_iterations or settings.validation_max_iterations
        threshold = settings.validation_threshold if threshold is None else threshold

        async def invoke(kind: AgentKind, agent_input: AgentInput, action: str) -> AgentResult:
            if call is not None:
                return await call(kind, agent_input, action)
            result = await self.execute_agent(kind, agent_input, context)
            context.previous_results.append(result)
            return result

        current = list(candidates)
        results: List[AgentResult] = []
        score = 0.0

        for iteration in range(1, max_iterations + 1):
            validation = await invoke(
                AgentKind.VALIDATOR,
                AgentInput(type=InputType.REQUIREMENTS, requirements=current),
                f"Validate Requirements (Loop {iteration})",
            )
            results.append(validation)
            score = float(validation.metrics.get("overall_score") or 0)
            validated = validation.candidates or current

            if score >= threshold:
                logger.info(f"Validation accepted at iteration {iteration} with score {score}")
                return RefinementOutcome(
                    candidates=validated, iterations=iteration, final_score=score,
                    accepted=True, results=results,
                )

            refinement = await invoke(
                AgentKind.REFINER,
                AgentInput(type=InputType.REQUIREMENTS, requirements=validated),
                f"Refine & Fix Issues (Loop {iteration})",
            )
            results.append(refinement)
            current = refinement.candidates or validated
            logger.info(f"Iteration {iteration}: score {score} below {threshold}, refined {len(current)}")

        logger.warning(f"Validation loop exhausted after {max_iterations} iterations (score {score})")
        if strict:
            raise ValidationExhausted(max_iterations, score, threshold)
        return RefinementOutcome(
            candidates=current, iterations=max_iterations, final_score=score,
            accepted=False, results=results,
        )

    # ============== Quality Analysis ==============

    async def analyze_quality(
        self,
        candidates: List[RequirementCandidate],
        industry: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Validator plus risk detector, reduced to a weighted five-metric summary."""
        context = AgentContext(industry=industry)
        agent_input = AgentInput(type=InputType.REQUIREMENTS, requirements=candidates)

        validation = await self.execute_agent(AgentKind.VALIDATOR, agent_input, context)
        risk = await self.execute_agent(AgentKind.RISK_DETECTOR, agent_input, context)

        scored = [c.accuracy_metrics for c in validation.candidates or [] if c.accuracy_metrics]
        scores = []
        for metric, weight, default in QUALITY_WEIGHTS:
            if scored:
                value = sum(getattr(m, metric) for m in scored) / len(scored)
            else:
                value = default
            scores.append({"metric": metric, "score": round(value, 1), "weight": weight})

        suggestions = [
            QUALITY_SUGGESTIONS[s["metric"]][1]
            for s in scores
            if s["score"] < QUALITY_SUGGESTIONS[s["metric"]][0]
        ]

        return {
            "overall_score": round(sum(s["score"] * s["weight"] for s in scores)),
            "scores": scores,
            "suggestions": suggestions,
            "risk_summary": risk.metrics,
            "requirements": validation.candidates or candidates,
        }

    # ============== Circuit Breaker / Retry ==============

    def _breaker(self, kind: AgentKind) -> CircuitBreakerState:
        if kind not in self._breakers:
            self._breakers[kind] = CircuitBreakerState(agent_type=kind)
        return self._breakers[kind]

    def is_circuit_open(self, kind: AgentKind) -> bool:
        state = self._breakers.get(kind)
        if state is None or state.state != BreakerState.OPEN:
            return False
        if state.next_retry_time and datetime.now() >= state.next_retry_time:
            state.state = BreakerState.HALF_OPEN
            return False
        return True

    def record_success(self, kind: AgentKind):
        state = self._breakers.get(kind)
        if state:
            state.failure_count = 0
            state.state = BreakerState.CLOSED

    def record_failure(self, kind: AgentKind):
        state = self._breaker(kind)
        state.failure_count += 1
        state.last_failure_time = datetime.now()
        if state.failure_count >= CIRCUIT_BREAKER_THRESHOLD or state.state == BreakerState.HALF_OPEN:
            state.state = BreakerState.OPEN
            state.next_retry_time = state.last_failure_time + timedelta(seconds=CIRCUIT_BREAKER_RESET_SECONDS)
            logger.warning(f"Circuit breaker OPEN for {kind.value}")

    def reset_circuit_breaker(self, kind: AgentKind):
        if kind in self._breakers:
            self._breakers[kind] = CircuitBreakerState(agent_type=kind)
            logger.info(f"Circuit breaker reset for {kind.value}")

    async def execute_with_retry(
        self,
        kind: AgentKind,
        agent_input: AgentInput,
        context: AgentContext,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
        backoff: float = 2.0,
    ) -> AgentResult:
        """Run an agent behind its circuit breaker, retrying transient failures."""
        if self.is_circuit_open(kind):
            return AgentResult(
                agent_type=kind,
                success=False,
                error=f"Circuit breaker is OPEN for {kind.value}. Try again later.",
            )

        delay = base_delay
        result = None
        for attempt in range(max_retries + 1):
            result = await self.execute_agent(kind, agent_input, context)
            if result.success:
                self.record_success(kind)
                return result
            if not is_retryable_error(result.error):
                break
            if attempt < max_retries:
                logger.warning(f"Retry {attempt + 1}/{max_retries} for {kind.value} in {delay:.1f}s")
                await asyncio.sleep(delay)
                delay = min(delay * backoff, max_delay)

        self.record_failure(kind)
        return result

    def get_agent_health(self) -> List[AgentHealth]:
        health = []
        for kind in self.registry.kinds():
            agent = self.registry.get(kind)
            state = self._breakers.get(kind) or CircuitBreakerState(agent_type=kind)
            if state.state == BreakerState.OPEN:
                status = "UNHEALTHY"
            elif state.state == BreakerState.HALF_OPEN:
                status = "DEGRADED"
            else:
                status = "HEALTHY"
            health.append(AgentHealth(
                agent_type=kind,
                name=agent.name or kind.value,
                status=status,
                circuit_breaker=state,
            ))
        return health
