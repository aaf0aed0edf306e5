"""
Shared pydantic models for the agent layer.

Agent-specific input/output models live next to each agent; this module only
holds the envelope types every agent and the orchestrator agree on.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Severity = Literal["error", "warning", "info"]
AnalysisDepth = Literal["basic", "standard", "comprehensive"]


class CamelModel(BaseModel):
    """snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserContext(CamelModel):
    """What the founder told us about their situation; every field is optional."""

    budget: Optional[str] = None
    timeline: Optional[str] = None
    experience: Optional[str] = None
    industry: Optional[str] = None
    commitment: Optional[str] = None
    risk_tolerance: Optional[str] = None
    interests: List[str] = Field(default_factory=list)


class ValidationIssue(CamelModel):
    field: str
    message: str
    severity: Severity = "error"


class AgentContext(CamelModel):
    """Ambient parameters for one execution. Frozen so nothing mutates it mid-run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    request_id: str = "local"
    analysis_depth: AnalysisDepth = "standard"
    time_budget_seconds: Optional[float] = None
    data_sources: List[str] = Field(default_factory=list)


class ExecutionMetrics(CamelModel):
    api_calls: int = 0
    tokens_used: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    error_count: int = 0
    quality_score: float = Field(0, ge=0, le=100)


class AgentMetadata(CamelModel):
    agent_id: str
    version: str = "1.0.0"
    timestamp: datetime = Field(default_factory=utcnow)
    duration_ms: int = 0
    tokens_used: int = 0
    cached: bool = False
    fallback_stages: List[str] = Field(default_factory=list)
    metrics: ExecutionMetrics = Field(default_factory=ExecutionMetrics)


class AgentErrorInfo(CamelModel):
    code: str
    message: str


OutputT = TypeVar("OutputT", bound=BaseModel)


class AgentResult(CamelModel, Generic[OutputT]):
    agent_id: str
    success: bool
    is_valid: bool
    output: Optional[OutputT] = None
    confidence: int = Field(0, ge=0, le=100)
    errors: List[ValidationIssue] = Field(default_factory=list)
    error: Optional[AgentErrorInfo] = None
    metadata: AgentMetadata

    @property
    def usable(self) -> bool:
        return self.success and self.is_valid and self.output is not None


class QualityReport(CamelModel):
    score: float = Field(ge=0, le=100)
    issues: List[ValidationIssue] = Field(default_factory=list)


class ConfidenceSummary(CamelModel):
    overall: int = Field(ge=0, le=100)
    breakdown: Dict[str, int] = Field(default_factory=dict)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
