from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from app.api.ai.metrics import AgentHealth
from app.api.ai.schemas import CamelModel

IdeaTier = Literal["public", "exclusive", "ai-generated"]


# INBOUND schema for POST /ai-agents/analyze
class AnalyzeRequest(CamelModel):
    opportunity_id: str = Field(..., min_length=1, description="id of a stored business idea")
    agents: Optional[List[str]] = Field(None, description="agent ids to run; all enabled agents when omitted")


# INBOUND schema – new row in business_ideas
class IdeaCreate(CamelModel):
    title: str = Field(..., min_length=3, max_length=255)
    description: str = Field(..., min_length=10)
    category: str = Field(..., min_length=1, max_length=100)
    tier: IdeaTier = "public"
    target_market: Optional[str] = Field(None, max_length=255)
    business_model: Optional[str] = Field(None, max_length=255)
    idea_data: Optional[Dict[str, Any]] = None


# INBOUND schema – partial update, only fields that were sent are applied
class IdeaUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = Field(None, min_length=10)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    tier: Optional[IdeaTier] = None
    target_market: Optional[str] = Field(None, max_length=255)
    business_model: Optional[str] = Field(None, max_length=255)
    idea_data: Optional[Dict[str, Any]] = None

    @field_validator("title", "description", "category", "tier")
    @classmethod
    def reject_null(cls, value):
        # NOT NULL columns: omit the field to leave it unchanged
        if value is None:
            raise ValueError("must not be null")
        return value


# OUTBOUND schema – reflects a row in business_ideas
class IdeaOut(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    category: str
    tier: str
    target_market: Optional[str] = None
    business_model: Optional[str] = None
    confidence_overall: Optional[int] = None
    market_size_tam: Optional[str] = None
    idea_data: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


class ProvidersStatus(CamelModel):
    llm: Optional[str] = None
    cache: bool = False
    data_source: bool = False


class HealthResponse(CamelModel):
    """Returned by GET /health."""
    status: str
    service: str
    agents: Dict[str, str]
    providers: ProvidersStatus
    active_executions: int = 0
    metrics: Dict[str, AgentHealth] = Field(default_factory=dict)
    timestamp: datetime


class DataSourceHealth(CamelModel):
    """Returned by GET /health/data-source."""
    provider: Optional[str] = None
    connected: bool = False
    rate_limit: Optional[Dict[str, Any]] = None
