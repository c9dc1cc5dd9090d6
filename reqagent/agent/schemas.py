"""Data models and schemas for the requirement agent pipeline."""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
import uuid


# ============== Enums ==============

class AgentKind(str, Enum):
    """Closed set of agent kinds."""
    # Candidate-transforming agents
    EXTRACTOR = "EXTRACTOR"
    REFINER = "REFINER"
    CLASSIFIER = "CLASSIFIER"
    EXPANDER = "EXPANDER"
    VALIDATOR = "VALIDATOR"
    RISK_DETECTOR = "RISK_DETECTOR"
    # Goal-driven generation workflow
    GOAL_MANAGER = "GOAL_MANAGER"
    CONTEXT_ANALYZER = "CONTEXT_ANALYZER"
    GENERATOR = "GENERATOR"
    RED_TEAM = "RED_TEAM"
    PROTOTYPER = "PROTOTYPER"


class InputType(str, Enum):
    """What an AgentInput carries."""
    TEXT = "TEXT"
    FILE = "FILE"  # Extracted file text in ``content``
    URL = "URL"
    REQUIREMENTS = "REQUIREMENTS"
    GOAL = "GOAL"  # Workflow agents read ``payload``


class RequirementType(str, Enum):
    FUNCTIONAL = "FUNCTIONAL"
    NON_FUNCTIONAL = "NON_FUNCTIONAL"
    INTERFACE = "INTERFACE"
    CONSTRAINT = "CONSTRAINT"


# ============== Coercion ==============

def coerce_confidence(value, default: float = 0.7) -> float:
    """Clamp to [0, 1]; models sometimes answer in percent."""
    if value is None:
        return default
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    if 1.0 < value <= 100.0:
        value = value / 100.0
    return min(1.0, max(0.0, value))


def coerce_requirement_type(value) -> Optional[str]:
    """Map loose labels like "non-functional" onto RequirementType values."""
    if value is None:
        return None
    if isinstance(value, RequirementType):
        return value.value
    normalized = str(value).strip().upper().replace("-", "_").replace(" ", "_")
    if normalized in RequirementType.__members__:
        return normalized
    return None


# ============== Provenance ==============

class ThinkingLogEntry(BaseModel):
    """One reasoning step recorded against a candidate. Never edited once written."""
    timestamp: datetime = Field(default_factory=datetime.now)
    agent_type: AgentKind
    reasoning: str
    references: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)


# ============== Candidates ==============

class AccuracyMetrics(BaseModel):
    """Five-factor accuracy scores (0-100) plus their rounded mean."""
    structural_fit: float
    industry_fit: float
    missing_risk: float = Field(description="100 - raw missing risk")
    duplicate_ratio: float = Field(description="100 - raw duplicate ratio")
    feasibility: float
    overall_score: int


class RequirementCandidate(BaseModel):
    """A draft requirement tracked through the pipeline."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4())[:8])
    title: str
    content: str = ""
    category: Optional[str] = None
    type: Optional[RequirementType] = None
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    source: Optional[str] = None
    thinking_log: List[ThinkingLogEntry] = Field(default_factory=list)

    # Enrichment set by individual agents
    industry: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    risks: List[Dict[str, Any]] = Field(default_factory=list)
    priority: Optional[str] = None
    rationale: Optional[str] = None
    accuracy_metrics: Optional[AccuracyMetrics] = None

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value):
        return coerce_confidence(value)

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value):
        return coerce_requirement_type(value)

    def with_thinking(self, entry: ThinkingLogEntry, **updates) -> "RequirementCandidate":
        """Copy with ``updates`` applied and ``entry`` appended to the provenance chain."""
        updates["thinking_log"] = list(self.thinking_log) + [entry]
        return self.model_copy(update=updates)


# ============== Agent I/O ==============

class AgentInput(BaseModel):
    """Input handed to an agent."""
    type: InputType = InputType.TEXT
    content: Optional[str] = None
    url: Optional[str] = None
    requirements: List[RequirementCandidate] = Field(default_factory=list)
    payload: Dict[str, Any] = Field(default_factory=dict, description="Workflow agent arguments")


class AgentResult(BaseModel):
    """Outcome of one agent execution."""
    agent_type: AgentKind
    success: bool
    execution_time_ms: float = 0.0
    candidates: Optional[List[RequirementCandidate]] = None
    metrics: Dict[str, Any] = Field(default_factory=dict)
    logs: List[ThinkingLogEntry] = Field(default_factory=list)
    output: Optional[Dict[str, Any]] = Field(default=None, description="Workflow agent payload")
    error: Optional[str] = None
    cached: bool = False


class AgentContext(BaseModel):
    """Session context shared by every stage of one pipeline run."""
    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: Optional[str] = None
    industry: Optional[str] = None
    system_type: Optional[str] = None  # SAAS, INTERNAL, B2C, B2B
    organization_maturity: Optional[str] = None  # STARTUP, MID, ENTERPRISE
    regulation_level: Optional[str] = None  # HIGH, MEDIUM, LOW
    previous_results: List[AgentResult] = Field(default_factory=list)


# ============== Pipeline Models ==============

class PipelineConfig(BaseModel):
    """Sequential pipeline definition."""
    agents: List[AgentKind]
    stop_on_error: bool = False
    use_cache: bool = False


class PipelineOutcome(BaseModel):
    """Results of a sequential or grouped run."""
    results: List[AgentResult] = Field(default_factory=list)
    final_candidates: List[RequirementCandidate] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.results) and all(r.success for r in self.results)


class RefinementOutcome(BaseModel):
    """Result of the bounded validate/refine loop."""
    candidates: List[RequirementCandidate]
    iterations: int
    final_score: float
    accepted: bool = Field(description="True if the threshold was reached")
    results: List[AgentResult] = Field(default_factory=list)


# ============== Autonomous Generation ==============

class AutonomousGenerationConfig(BaseModel):
    """Inputs for generating a requirement set from an industry profile."""
    industry: str
    system_type: str = Field(description="SAAS, INTERNAL, B2C, B2B")
    organization_maturity: str = Field(default="MID", description="STARTUP, MID, ENTERPRISE")
    regulation_level: str = Field(default="MEDIUM", description="HIGH, MEDIUM, LOW")
    include_non_functional: bool = True
    include_security_requirements: bool = True
    max_requirements: int = Field(default=20, ge=1)


class AutonomousGenerationResult(BaseModel):
    """Generated set plus the reference reasoning every candidate starts from."""
    requirements: List[RequirementCandidate] = Field(default_factory=list)
    thinking_process: List[ThinkingLogEntry] = Field(default_factory=list)
    config: AutonomousGenerationConfig
    generated_at: datetime = Field(default_factory=datetime.now)
    total_generated: int = 0
    results: List[AgentResult] = Field(default_factory=list)
