"""Governance guard for goal-driven jobs."""

import logging
from typing import Optional

from reqagent.core.config import settings
from reqagent.core.database import RecordStore
from reqagent.core.exceptions import PolicyViolation

logger = logging.getLogger(__name__)


class GovernanceGuard:
    """Checks a job against its policy before every new step."""

    def __init__(self, store: RecordStore, max_steps: Optional[int] = None):
        self.store = store
        self.max_steps = max_steps if max_steps is not None else settings.max_job_steps

    async def validate_policy(self, job_id: str) -> bool:
        """False if the job is unknown or already has ``max_steps`` steps."""
        job = await self.store.get_job(job_id)
        if job is None:
            return False

        step_count = await self.store.count_steps(job_id)
        if step_count >= self.max_steps:
            logger.warning(f"Job {job_id} exceeded max steps ({self.max_steps}). Halting.")
            return False

        return True

    async def enforce(self, job_id: str):
        if not await self.validate_policy(job_id):
            raise PolicyViolation(
                f"Job {job_id} violates governance policy (max {self.max_steps} steps)",
                job_id=job_id,
            )
