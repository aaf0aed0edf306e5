"""
Environment-driven settings.

Every option is read with ``os.getenv`` so the service can be configured the
same way locally, in containers and in tests::

    LLM_PROVIDER=anthropic ANTHROPIC_API_KEY=... uvicorn app.main:app
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Optional, get_args

from app.api.ai.errors import ConfigurationError
from app.api.ai.schemas import AnalysisDepth

AGENT_IDS = (
    "market-research",
    "financial-modeling",
    "founder-fit",
    "risk-assessment",
)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _agent_flag_name(agent_id: str) -> str:
    # market-research -> AGENT_MARKET_RESEARCH_ENABLED
    return "AGENT_%s_ENABLED" % agent_id.replace("-", "_").upper()


@dataclass(frozen=True)
class Settings:
    # LLM
    llm_provider: str = "openai"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    llm_timeout_seconds: float = 30.0

    # Cache
    cache_provider: str = "memory"
    cache_ttl_seconds: int = 3600

    # Market data
    data_source_provider: str = "none"
    data_source_base_url: Optional[str] = None
    data_source_api_key: Optional[str] = None
    data_source_auth_type: str = "api_key"
    data_source_timeout_seconds: float = 10.0
    github_token: Optional[str] = None

    # Agents
    agents_enabled: Dict[str, bool] = field(
        default_factory=lambda: {agent_id: True for agent_id in AGENT_IDS}
    )
    analysis_depth: str = "standard"
    min_confidence: int = 70

    # Persistence / read-through
    database_url: str = "sqlite:///./venture_agents.db"
    db_fetch_timeout_seconds: float = 5.0

    # Service
    use_cloud_logging: bool = False
    log_level: str = "INFO"
    allowed_origins: str = "*"

    def __post_init__(self):
        if self.analysis_depth not in get_args(AnalysisDepth):
            raise ConfigurationError(
                "ANALYSIS_DEPTH must be one of %s, got %r" % (", ".join(get_args(AnalysisDepth)), self.analysis_depth)
            )

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            llm_provider=os.getenv("LLM_PROVIDER", "openai").strip().lower(),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-20241022"),
            llm_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 30.0),
            cache_provider=os.getenv("CACHE_PROVIDER", "memory").strip().lower(),
            cache_ttl_seconds=_env_int("CACHE_TTL_SECONDS", 3600),
            data_source_provider=os.getenv("DATA_SOURCE_PROVIDER", "none").strip().lower(),
            data_source_base_url=os.getenv("DATA_SOURCE_BASE_URL") or None,
            data_source_api_key=os.getenv("DATA_SOURCE_API_KEY") or None,
            data_source_auth_type=os.getenv("DATA_SOURCE_AUTH_TYPE", "api_key").strip().lower(),
            data_source_timeout_seconds=_env_float("DATA_SOURCE_TIMEOUT_SECONDS", 10.0),
            github_token=os.getenv("GITHUB_TOKEN") or None,
            agents_enabled={
                agent_id: _env_bool(_agent_flag_name(agent_id), True)
                for agent_id in AGENT_IDS
            },
            analysis_depth=os.getenv("ANALYSIS_DEPTH", "standard").strip().lower(),
            min_confidence=_env_int("MIN_CONFIDENCE", 70),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./venture_agents.db"),
            db_fetch_timeout_seconds=_env_float("DB_FETCH_TIMEOUT_SECONDS", 5.0),
            use_cloud_logging=_env_bool("USE_CLOUD_LOGGING", False),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            allowed_origins=os.getenv("ALLOWED_ORIGINS", "*"),
        )

    @property
    def llm_api_key(self) -> Optional[str]:
        if self.llm_provider == "openai":
            return self.openai_api_key
        if self.llm_provider in ("anthropic", "claude"):
            return self.anthropic_api_key
        return None

    @property
    def llm_model(self) -> Optional[str]:
        if self.llm_provider == "openai":
            return self.openai_model
        if self.llm_provider in ("anthropic", "claude"):
            return self.anthropic_model
        return None

    def enabled_agents(self):
        return [agent_id for agent_id in AGENT_IDS if self.agents_enabled.get(agent_id, True)]

    def cors_origins(self):
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read once from the environment."""
    return Settings.from_env()
