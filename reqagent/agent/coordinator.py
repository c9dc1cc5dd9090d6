"""Job Runner - goal-driven requirement generation as a background job.

The runner turns a business goal into a reviewed requirement set:
1. Goal analysis and context analysis
2. Three generators in parallel (functional, non-functional, security)
3. The bounded validate/refine loop
4. In-batch duplicate gate and accuracy heatmap
5. Red team attack simulation and prototyping

Every agent call is recorded as an AgentStep on the job, and the
governance guard is checked before each new step.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Optional, Set

from reqagent.agent.governance import GovernanceGuard
from reqagent.agent.orchestrator import PipelineOrchestrator, merge_candidates
from reqagent.agent.schemas import AgentContext, AgentInput, AgentKind, AgentResult, InputType
from reqagent.analysis.accuracy import AccuracyScorer
from reqagent.analysis.duplicates import find_duplicates_in_batch
from reqagent.core.database import RecordStore
from reqagent.core.exceptions import PolicyViolation
from reqagent.models.schemas import AgentJob, AgentStep, JobStatus, StepStatus

logger = logging.getLogger(__name__)

GENERATION_FOCUSES = [
    ("FUNC", "Generate Functional Req"),
    ("NFR", "Generate Non-Functional Req"),
    ("SEC", "Generate Security Req"),
]

# Step order per stage
STEP_ORDER = {
    AgentKind.GOAL_MANAGER: 1,
    AgentKind.CONTEXT_ANALYZER: 2,
    AgentKind.GENERATOR: 3,
    AgentKind.VALIDATOR: 4,
    AgentKind.REFINER: 5,
    AgentKind.RED_TEAM: 6,
    AgentKind.PROTOTYPER: 7,
}


class JobRunner:
    """Creates, starts and runs goal-driven jobs."""

    def __init__(
        self,
        store: RecordStore,
        orchestrator: PipelineOrchestrator,
        guard: Optional[GovernanceGuard] = None,
        scorer: Optional[AccuracyScorer] = None,
    ):
        """Initialize the runner.

        Args:
            store: Record store for jobs and steps
            orchestrator: Executes individual agents
            guard: Governance guard (defaults to one over ``store``)
            scorer: Accuracy scorer for the heatmap (defaults to the registry's)
        """
        self.store = store
        self.orchestrator = orchestrator
        self.guard = guard or GovernanceGuard(store)
        self.scorer = scorer or orchestrator.registry.scorer or AccuracyScorer()
        self._running: Set[str] = set()
        self._tasks: Dict[str, asyncio.Task] = {}

    # ============== Job Lifecycle ==============

    async def create_job(self, goal: str, user_id: Optional[str] = None) -> AgentJob:
        logger.info(f"Creating new agent job for goal: {goal[:80]}")
        return await self.store.create_job(AgentJob(goal=goal, creator_id=user_id))

    def _claim(self, job_id: str) -> bool:
        if job_id in self._running:
            logger.warning(f"Job {job_id} is already running in this process")
            return False
        self._running.add(job_id)
        return True

    async def start_job(self, job_id: str) -> bool:
        """
        Mark a job RUNNING and schedule its pipeline in the background.

        Returns:
            True if scheduled, False if the job is already running here

        Raises:
            ValueError: If the job does not exist
        """
        job = await self.store.get_job(job_id)
        if job is None:
            raise ValueError(f"Job not found: {job_id}")
        if not self._claim(job_id):
            return False

        await self.store.update_job(job_id, status=JobStatus.RUNNING, started_at=datetime.now())
        self._tasks[job_id] = asyncio.create_task(self._run_claimed(job_id))
        return True

    async def submit(self, goal: str, user_id: Optional[str] = None) -> str:
        """Create and start a job; returns its id immediately."""
        job = await self.create_job(goal, user_id)
        await self.start_job(job.id)
        return job.id

    async def wait(self, job_id: str) -> Optional[AgentJob]:
        """Wait for a background run to finish and return the stored job."""
        task = self._tasks.get(job_id)
        if task is not None:
            await task
        return await self.store.get_job(job_id)

    async def run_pipeline(self, job_id: str):
        """Run the pipeline in the caller's task. No-op if the job is already running.

        Raises:
            ValueError: If the job does not exist
        """
        if await self.store.get_job(job_id) is None:
            raise ValueError(f"Job not found: {job_id}")
        if not self._claim(job_id):
            return
        try:
            await self.store.update_job(job_id, status=JobStatus.RUNNING, started_at=datetime.now())
        except Exception:
            self._running.discard(job_id)
            raise
        await self._run_claimed(job_id)

    async def _run_claimed(self, job_id: str):
        try:
            await self._run(job_id)
        except PolicyViolation as e:
            logger.warning(f"Job {job_id} halted by governance: {e}")
            await self._fail(job_id, str(e))
        except Exception as e:
            logger.error(f"Pipeline error for job {job_id}: {e}")
            await self._fail(job_id, str(e))
        finally:
            self._running.discard(job_id)
            self._tasks.pop(job_id, None)

    async def _fail(self, job_id: str, error: str):
        try:
            await self.store.update_job(
                job_id, status=JobStatus.FAILED, error=error, completed_at=datetime.now()
            )
        except Exception as e:
            logger.error(f"Failed to mark job {job_id} as failed: {e}")

    # ============== Steps ==============

    async def _run_step(
        self,
        job_id: str,
        context: AgentContext,
        kind: AgentKind,
        action: str,
        agent_input: AgentInput,
    ) -> AgentResult:
        await self.guard.enforce(job_id)
        step = await self.store.create_step(AgentStep(
            job_id=job_id,
            agent_type=kind.value,
            order=STEP_ORDER[kind],
            action=action,
        ))

        result = await self.orchestrator.execute_agent(kind, agent_input, context)
        context.previous_results.append(result)

        await self.store.update_step(
            step.id,
            status=StepStatus.SUCCESS if result.success else StepStatus.FAILED,
            output=result.model_dump(mode="json", exclude={"logs"}),
            error=result.error,
            completed_at=datetime.now(),
        )
        return result

    # ============== Pipeline ==============

    async def _run(self, job_id: str):
        job = await self.store.get_job(job_id)
        if job is None:
            logger.warning(f"Job {job_id} disappeared before its pipeline ran")
            return

        context = AgentContext(session_id=job_id, user_id=job.creator_id)

        async def step(kind: AgentKind, agent_input: AgentInput, action: str) -> AgentResult:
            return await self._run_step(job_id, context, kind, action, agent_input)

        # 1. Goal
        goal_result = await step(
            AgentKind.GOAL_MANAGER, AgentInput(type=InputType.GOAL, content=job.goal), "Analyze Goal"
        )
        goal = goal_result.output or {}

        # 2. Context
        context_result = await step(
            AgentKind.CONTEXT_ANALYZER,
            AgentInput(type=InputType.GOAL, payload={"goal": goal}),
            "Analyze Context",
        )
        domain_context = context_result.output or {}
        context.industry = domain_context.get("industry") or goal.get("domain")
        await self.store.update_job(job_id, context=domain_context)

        # 3. Parallel generation
        generated = await asyncio.gather(*[
            step(
                AgentKind.GENERATOR,
                AgentInput(
                    type=InputType.GOAL,
                    payload={"goal": goal, "context": domain_context, "focus": focus},
                ),
                action,
            )
            for focus, action in GENERATION_FOCUSES
        ])
        candidates = merge_candidates(list(generated), include_failed=True)
        logger.info(f"Job {job_id}: {len(candidates)} candidates generated")

        # 4. Validate / refine
        outcome = await self.orchestrator.validate_and_refine(candidates, context, call=step)

        # 5. Duplicate gate and heatmap
        batch = find_duplicates_in_batch(outcome.candidates)
        if batch["duplicates"]:
            logger.info(f"Job {job_id}: dropped {len(batch['duplicates'])} in-batch duplicates")
        heatmap = self.scorer.generate_heatmap(batch["unique"], context.industry)
        requirements = heatmap["candidates"]

        # 6. Red team
        review_input = AgentInput(type=InputType.REQUIREMENTS, requirements=requirements)
        red_team = await step(AgentKind.RED_TEAM, review_input, "Red Team Attack Simulation")

        # 7. Prototype
        prototype = await step(AgentKind.PROTOTYPER, review_input, "Instant Prototyping (Schema & UI)")

        await self.store.update_job(
            job_id,
            status=JobStatus.COMPLETED,
            completed_at=datetime.now(),
            result={
                "requirements": [c.model_dump(mode="json") for c in requirements],
                "attacks": (red_team.output or {}).get("attacks", []),
                "prototype": prototype.output or {},
                "heatmap": heatmap["summary"],
                "duplicates": batch["duplicates"],
                "validation": {
                    "iterations": outcome.iterations,
                    "final_score": outcome.final_score,
                    "accepted": outcome.accepted,
                },
            },
        )
        logger.info(f"Job {job_id} completed with {len(requirements)} requirements")
