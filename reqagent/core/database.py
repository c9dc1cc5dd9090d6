"""Record store: provider configs, settings, logs, jobs and requirement records."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from motor.motor_asyncio import AsyncIOMotorClient

from reqagent.core.config import settings
from reqagent.models.schemas import (
    ProviderConfig,
    ExecutionLogEntry,
    AgentExecutionRecord,
    AgentJob,
    AgentStep,
    RequirementRecord,
    RequirementStatus,
)

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """
    Interface to the configuration/record store.

    The engine only needs a narrow slice of the store: active provider
    configs, two global settings, append-only log sinks, job/step records
    and a read/deprecate view of stored requirements.
    """

    # ============== Providers & Settings ==============

    @abstractmethod
    async def list_active_provider_configs(self) -> List[ProviderConfig]:
        """Active provider configs in load order (not sorted)."""
        pass

    @abstractmethod
    async def get_setting(self, key: str) -> Optional[str]:
        """Read a named global setting such as ``ai.model``."""
        pass

    # ============== Append-only Sinks ==============

    @abstractmethod
    async def append_execution_log(self, entry: ExecutionLogEntry) -> None:
        pass

    @abstractmethod
    async def append_agent_execution(self, record: AgentExecutionRecord) -> None:
        pass

    # ============== Jobs & Steps ==============

    @abstractmethod
    async def create_job(self, job: AgentJob) -> AgentJob:
        pass

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[AgentJob]:
        pass

    @abstractmethod
    async def update_job(self, job_id: str, **fields) -> None:
        pass

    @abstractmethod
    async def create_step(self, step: AgentStep) -> AgentStep:
        pass

    @abstractmethod
    async def update_step(self, step_id: str, **fields) -> None:
        pass

    @abstractmethod
    async def list_steps(self, job_id: str) -> List[AgentStep]:
        pass

    async def count_steps(self, job_id: str) -> int:
        return len(await self.list_steps(job_id))

    # ============== Requirement Records ==============

    @abstractmethod
    async def find_requirement_by_title(self, title: str) -> Optional[RequirementRecord]:
        """Case-insensitive exact title match among non-deprecated records."""
        pass

    @abstractmethod
    async def recent_requirements(self, limit: int) -> List[RequirementRecord]:
        """Most recent non-deprecated records, newest first."""
        pass

    @abstractmethod
    async def active_requirements(self) -> List[RequirementRecord]:
        """All non-deprecated records, oldest first, stable on ties."""
        pass

    @abstractmethod
    async def reference_requirements(
        self,
        status: RequirementStatus,
        limit: int,
        min_trust: Optional[float] = None,
        max_trust: Optional[float] = None,
    ) -> List[RequirementRecord]:
        """Records in ``status`` with ``min_trust <= trust_grade < max_trust``, newest first."""
        pass

    @abstractmethod
    async def mark_deprecated(self, requirement_ids: List[str]) -> int:
        """Flip records to DEPRECATED; returns the number changed."""
        pass


class InMemoryRecordStore(RecordStore):
    """Dict-backed store used by tests and the CLI demo mode."""

    def __init__(
        self,
        provider_configs: Optional[List[ProviderConfig]] = None,
        settings_map: Optional[Dict[str, str]] = None,
        requirements: Optional[List[RequirementRecord]] = None,
    ):
        self.provider_configs: List[ProviderConfig] = list(provider_configs or [])
        self.settings: Dict[str, str] = dict(settings_map or {})
        self.requirements: List[RequirementRecord] = list(requirements or [])
        self.execution_logs: List[ExecutionLogEntry] = []
        self.agent_executions: List[AgentExecutionRecord] = []
        self.jobs: Dict[str, AgentJob] = {}
        self.steps: Dict[str, AgentStep] = {}

    async def list_active_provider_configs(self) -> List[ProviderConfig]:
        return [c for c in self.provider_configs if c.is_active]

    async def get_setting(self, key: str) -> Optional[str]:
        return self.settings.get(key)

    async def append_execution_log(self, entry: ExecutionLogEntry) -> None:
        self.execution_logs.append(entry)

    async def append_agent_execution(self, record: AgentExecutionRecord) -> None:
        self.agent_executions.append(record)

    async def create_job(self, job: AgentJob) -> AgentJob:
        self.jobs[job.id] = job
        return job

    async def get_job(self, job_id: str) -> Optional[AgentJob]:
        return self.jobs.get(job_id)

    async def update_job(self, job_id: str, **fields) -> None:
        job = self.jobs.get(job_id)
        if job is None:
            raise KeyError(f"Job not found: {job_id}")
        self.jobs[job_id] = job.model_copy(update=fields)

    async def create_step(self, step: AgentStep) -> AgentStep:
        self.steps[step.id] = step
        return step

    async def update_step(self, step_id: str, **fields) -> None:
        step = self.steps.get(step_id)
        if step is None:
            raise KeyError(f"Step not found: {step_id}")
        self.steps[step_id] = step.model_copy(update=fields)

    async def list_steps(self, job_id: str) -> List[AgentStep]:
        steps = [s for s in self.steps.values() if s.job_id == job_id]
        return sorted(steps, key=lambda s: s.order)

    def _active(self) -> List[RequirementRecord]:
        return [r for r in self.requirements if r.status != RequirementStatus.DEPRECATED]

    async def find_requirement_by_title(self, title: str) -> Optional[RequirementRecord]:
        wanted = title.lower()
        for record in self._active():
            if record.title.lower() == wanted:
                return record
        return None

    async def recent_requirements(self, limit: int) -> List[RequirementRecord]:
        # sorted() is stable, so ties keep insertion order before the reverse
        ordered = sorted(self._active(), key=lambda r: r.created_at)
        return list(reversed(ordered))[:limit]

    async def active_requirements(self) -> List[RequirementRecord]:
        return sorted(self._active(), key=lambda r: r.created_at)

    async def reference_requirements(
        self,
        status: RequirementStatus,
        limit: int,
        min_trust: Optional[float] = None,
        max_trust: Optional[float] = None,
    ) -> List[RequirementRecord]:
        matches = []
        for record in self.requirements:
            if record.status != status:
                continue
            if min_trust is not None and (record.trust_grade is None or record.trust_grade < min_trust):
                continue
            if max_trust is not None and (record.trust_grade is None or record.trust_grade >= max_trust):
                continue
            matches.append(record)
        ordered = sorted(matches, key=lambda r: r.created_at)
        return list(reversed(ordered))[:limit]

    async def mark_deprecated(self, requirement_ids: List[str]) -> int:
        targets = set(requirement_ids)
        changed = 0
        for i, record in enumerate(self.requirements):
            if record.id in targets and record.status != RequirementStatus.DEPRECATED:
                self.requirements[i] = record.model_copy(
                    update={"status": RequirementStatus.DEPRECATED}
                )
                changed += 1
        return changed


class MongoRecordStore(RecordStore):
    """Async MongoDB record store."""

    PROVIDERS = "ai_providers"
    SETTINGS = "settings"
    EXECUTION_LOGS = "ai_logs"
    AGENT_EXECUTIONS = "agent_executions"
    JOBS = "agent_jobs"
    STEPS = "agent_steps"
    REQUIREMENTS = "requirements"

    def __init__(self, uri: Optional[str] = None, database: Optional[str] = None):
        self._uri = uri or settings.mongodb_uri
        self._database = database or settings.mongodb_database
        self.client: Optional[AsyncIOMotorClient] = None
        self.db = None

    async def connect(self):
        """Establish database connection."""
        try:
            if self.client is None:
                self.client = AsyncIOMotorClient(self._uri)
                # Test connection
                await self.client.admin.command('ping')
            self.db = self.client[self._database]
            logger.info(f"Connected to MongoDB: {self._database}")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    async def disconnect(self):
        """Close database connection."""
        if self.client:
            self.client.close()
            self.client = None
            logger.info("MongoDB connection closed")

    @staticmethod
    def _from_doc(model, doc: Optional[Dict[str, Any]]):
        if doc is None:
            return None
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return model(**doc)

    @staticmethod
    def _plain(fields: Dict[str, Any]) -> Dict[str, Any]:
        return {k: (v.value if isinstance(v, Enum) else v) for k, v in fields.items()}

    @classmethod
    def _to_doc(cls, item) -> Dict[str, Any]:
        doc = cls._plain(item.model_dump(mode="python"))
        doc["_id"] = doc.pop("id")
        return doc

    async def list_active_provider_configs(self) -> List[ProviderConfig]:
        cursor = self.db[self.PROVIDERS].find({"is_active": True})
        return [self._from_doc(ProviderConfig, d) async for d in cursor]

    async def get_setting(self, key: str) -> Optional[str]:
        doc = await self.db[self.SETTINGS].find_one({"key": key})
        return doc.get("value") if doc else None

    async def append_execution_log(self, entry: ExecutionLogEntry) -> None:
        await self.db[self.EXECUTION_LOGS].insert_one(self._to_doc(entry))

    async def append_agent_execution(self, record: AgentExecutionRecord) -> None:
        await self.db[self.AGENT_EXECUTIONS].insert_one(self._to_doc(record))

    async def create_job(self, job: AgentJob) -> AgentJob:
        await self.db[self.JOBS].insert_one(self._to_doc(job))
        return job

    async def get_job(self, job_id: str) -> Optional[AgentJob]:
        doc = await self.db[self.JOBS].find_one({"_id": job_id})
        return self._from_doc(AgentJob, doc)

    async def update_job(self, job_id: str, **fields) -> None:
        await self.db[self.JOBS].update_one({"_id": job_id}, {"$set": self._plain(fields)})

    async def create_step(self, step: AgentStep) -> AgentStep:
        await self.db[self.STEPS].insert_one(self._to_doc(step))
        return step

    async def update_step(self, step_id: str, **fields) -> None:
        await self.db[self.STEPS].update_one({"_id": step_id}, {"$set": self._plain(fields)})

    async def list_steps(self, job_id: str) -> List[AgentStep]:
        cursor = self.db[self.STEPS].find({"job_id": job_id}).sort("order", 1)
        return [self._from_doc(AgentStep, d) async for d in cursor]

    async def count_steps(self, job_id: str) -> int:
        return await self.db[self.STEPS].count_documents({"job_id": job_id})

    async def find_requirement_by_title(self, title: str) -> Optional[RequirementRecord]:
        doc = await self.db[self.REQUIREMENTS].find_one(
            {
                "title": title,
                "status": {"$ne": RequirementStatus.DEPRECATED.value},
            },
            collation={"locale": "en", "strength": 2},
        )
        return self._from_doc(RequirementRecord, doc)

    async def recent_requirements(self, limit: int) -> List[RequirementRecord]:
        cursor = (
            self.db[self.REQUIREMENTS]
            .find({"status": {"$ne": RequirementStatus.DEPRECATED.value}})
            .sort([("created_at", -1), ("_id", -1)])
            .limit(limit)
        )
        return [self._from_doc(RequirementRecord, d) async for d in cursor]

    async def active_requirements(self) -> List[RequirementRecord]:
        cursor = (
            self.db[self.REQUIREMENTS]
            .find({"status": {"$ne": RequirementStatus.DEPRECATED.value}})
            .sort([("created_at", 1), ("_id", 1)])
        )
        return [self._from_doc(RequirementRecord, d) async for d in cursor]

    async def reference_requirements(
        self,
        status: RequirementStatus,
        limit: int,
        min_trust: Optional[float] = None,
        max_trust: Optional[float] = None,
    ) -> List[RequirementRecord]:
        query: Dict[str, Any] = {"status": status.value}
        trust: Dict[str, float] = {}
        if min_trust is not None:
            trust["$gte"] = min_trust
        if max_trust is not None:
            trust["$lt"] = max_trust
        if trust:
            query["trust_grade"] = trust
        cursor = (
            self.db[self.REQUIREMENTS]
            .find(query)
            .sort([("created_at", -1), ("_id", -1)])
            .limit(limit)
        )
        return [self._from_doc(RequirementRecord, d) async for d in cursor]

    async def mark_deprecated(self, requirement_ids: List[str]) -> int:
        if not requirement_ids:
            return 0
        result = await self.db[self.REQUIREMENTS].update_many(
            {
                "_id": {"$in": requirement_ids},
                "status": {"$ne": RequirementStatus.DEPRECATED.value},
            },
            {"$set": {
                "status": RequirementStatus.DEPRECATED.value,
                "updated_at": datetime.now(),
            }},
        )
        return result.modified_count
