"""Pydantic models for records read from and written to the record store."""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
import uuid

from pydantic import BaseModel, Field


def new_id() -> str:
    return str(uuid.uuid4())


# ============== Enums ==============

class ProviderKind(str, Enum):
    """Inference backend kinds."""
    OPENAI = "OPENAI"  # Cloud
    VLLM = "VLLM"  # Self-hosted, OpenAI-compatible server
    OLLAMA = "OLLAMA"  # Self-hosted, native Ollama API


class LogStatus(str, Enum):
    """Outcome of one adapter attempt."""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class JobStatus(str, Enum):
    """Agent job lifecycle."""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class StepStatus(str, Enum):
    """Agent step lifecycle."""
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class RequirementStatus(str, Enum):
    """Subset of requirement statuses the duplicate detector cares about."""
    DRAFT = "DRAFT"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    DEPRECATED = "DEPRECATED"


# ============== Provider Models ==============

class ProviderConfig(BaseModel):
    """Stored configuration for one inference backend."""
    id: str = Field(default_factory=new_id)
    name: str = Field(description="Display name")
    kind: ProviderKind = Field(description="Backend kind")
    endpoint: Optional[str] = Field(default=None, description="Base URL for self-hosted backends")
    api_key: Optional[str] = Field(default=None)
    models: Optional[str] = Field(default=None, description="Default model served by this backend")
    priority: int = Field(default=0, description="Higher is tried first")
    timeout_seconds: Optional[float] = Field(default=None)
    is_active: bool = Field(default=True)
    # Carried for the admin surface; the failover loop makes one attempt per provider
    max_retries: int = Field(default=3)
    retry_delay_ms: int = Field(default=1000)


class ExecutionLogEntry(BaseModel):
    """One row per adapter attempt."""
    id: str = Field(default_factory=new_id)
    provider_name: str
    model: Optional[str] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    status: LogStatus
    error_message: Optional[str] = None
    context: Optional[str] = Field(default=None, description="Free-form action context tag")
    timestamp: datetime = Field(default_factory=datetime.now)


# ============== Job Models ==============

class AgentStep(BaseModel):
    """One agent invocation inside a job."""
    id: str = Field(default_factory=new_id)
    job_id: str
    agent_type: str
    order: int
    action: str
    status: StepStatus = StepStatus.RUNNING
    output: Optional[Any] = None
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None


class AgentJob(BaseModel):
    """A goal-driven generation run."""
    id: str = Field(default_factory=new_id)
    goal: str
    creator_id: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    context: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class AgentExecutionRecord(BaseModel):
    """Audit row written after each agent execution."""
    id: str = Field(default_factory=new_id)
    session_id: str
    agent_type: str
    success: bool
    candidate_count: int = 0
    metrics: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    execution_ms: float = 0.0
    user_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)


# ============== Requirement Records ==============

class RequirementRecord(BaseModel):
    """Stored requirement as seen by the duplicate detector."""
    id: str = Field(default_factory=new_id)
    code: Optional[str] = None
    title: str
    content: str = ""
    status: RequirementStatus = RequirementStatus.DRAFT
    trust_grade: Optional[float] = Field(default=None, description="Reviewer trust in the record, 0-1")
    created_at: datetime = Field(default_factory=datetime.now)
