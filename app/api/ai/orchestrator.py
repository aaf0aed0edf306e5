# app/api/ai/orchestrator.py

import logging
import random
import string
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Dict, Iterable, List, Literal, Optional

from pydantic import Field

from app.api.ai.agents import (
    FinancialModelingAgent,
    FounderFitAgent,
    MarketResearchAgent,
    RiskAssessmentAgent,
)
from app.api.ai.agents.financial_modeling import FinancialModelingInput, FinancialModelingOutput
from app.api.ai.agents.founder_fit import FounderBackground, FounderFitInput, FounderFitOutput
from app.api.ai.agents.market_research import MarketResearchInput, MarketResearchOutput
from app.api.ai.agents.risk_assessment import (
    FinancialProjections,
    RiskAssessmentInput,
    RiskAssessmentOutput,
    TeamProfile,
)
from app.api.ai.fallbacks import FINANCIAL_MODELING, FOUNDER_FIT, MARKET_RESEARCH, RISK_ASSESSMENT
from app.api.ai.providers import (
    MemoryCacheProvider,
    MockDataSourceProvider,
    MockLLMProvider,
    create_cache_provider,
    create_data_source_provider,
    create_llm_provider,
)
from app.api.ai.schemas import (
    AgentContext,
    AgentErrorInfo,
    AgentMetadata,
    AgentResult,
    AnalysisDepth,
    CamelModel,
    ConfidenceSummary,
    ExecutionMetrics,
    UserContext,
    utcnow,
)
from app.config import AGENT_IDS, Settings, get_settings

logger = logging.getLogger(__name__)

PHASE_ONE = (MARKET_RESEARCH, FINANCIAL_MODELING, FOUNDER_FIT)
WARNING_ACTIVE_EXECUTIONS = 10
CRITICAL_ACTIVE_EXECUTIONS = 50


class BusinessIdeaInput(CamelModel):
    """The idea as submitted; every agent input is derived from it."""

    title: str = Field(min_length=3)
    description: str = Field(min_length=10)
    category: str = Field(min_length=1)
    tier: Literal["public", "exclusive", "ai-generated"] = "public"
    target_market: Optional[str] = None
    business_model: Optional[str] = None
    user_context: Optional[UserContext] = None
    founder_background: Optional[FounderBackground] = None
    analysis_depth: Optional[AnalysisDepth] = None


class DataFreshness(CamelModel):
    timestamp: str
    sources: List[str] = Field(default_factory=list)


class AnalysisMetadata(CamelModel):
    total_execution_time_ms: int = 0
    agents_executed: List[str] = Field(default_factory=list)
    agents_failed: List[str] = Field(default_factory=list)
    tokens_used: int = 0
    data_freshness: DataFreshness
    tier: Optional[str] = None


class QualityMetrics(CamelModel):
    completeness: int = Field(0, ge=0, le=100)
    consistency: int = Field(0, ge=0, le=100)
    actionability: int = Field(0, ge=0, le=100)
    reliability: int = Field(0, ge=0, le=100)


class CombinedAnalysis(CamelModel):
    request_id: str
    success: bool
    input: BusinessIdeaInput
    market_research: Optional[AgentResult[MarketResearchOutput]] = None
    financial_modeling: Optional[AgentResult[FinancialModelingOutput]] = None
    founder_fit: Optional[AgentResult[FounderFitOutput]] = None
    risk_assessment: Optional[AgentResult[RiskAssessmentOutput]] = None
    confidence: ConfidenceSummary
    metadata: AnalysisMetadata
    quality_metrics: QualityMetrics

    def result_for(self, agent_id: str) -> Optional[AgentResult]:
        return getattr(self, RESULT_FIELDS[agent_id])

    def agents_covered(self) -> List[str]:
        """Agents whose slot holds a usable result; failed slots do not count."""
        covered = []
        for agent_id in AGENT_IDS:
            result = self.result_for(agent_id)
            if result is not None and result.usable:
                covered.append(agent_id)
        return covered


RESULT_FIELDS = {
    MARKET_RESEARCH: "market_research",
    FINANCIAL_MODELING: "financial_modeling",
    FOUNDER_FIT: "founder_fit",
    RISK_ASSESSMENT: "risk_assessment",
}

OUTPUT_MODELS = {
    MARKET_RESEARCH: MarketResearchOutput,
    FINANCIAL_MODELING: FinancialModelingOutput,
    FOUNDER_FIT: FounderFitOutput,
    RISK_ASSESSMENT: RiskAssessmentOutput,
}


def generate_request_id() -> str:
    """``req_<epoch-ms>_<random base36>``"""
    alphabet = string.digits + string.ascii_lowercase
    suffix = "".join(random.choice(alphabet) for _ in range(11))
    return "req_%d_%s" % (int(time.time() * 1000), suffix)


def failed_result(agent_id: str, exc: BaseException) -> AgentResult:
    return AgentResult[OUTPUT_MODELS[agent_id]](
        agent_id=agent_id,
        success=False,
        is_valid=False,
        confidence=0,
        error=AgentErrorInfo(
            code="%s_FAILED" % agent_id.replace("-", "_").upper(),
            message=str(exc) or type(exc).__name__,
        ),
        metadata=AgentMetadata(agent_id=agent_id, metrics=ExecutionMetrics(error_count=1)),
    )


def _usable_output(result: Optional[AgentResult]):
    if result is not None and result.usable:
        return result.output
    return None


class AgentOrchestrator:
    """
    Runs the four analysis agents for one business idea and merges their
    results into a :class:`CombinedAnalysis`.

    Market research, financial modeling and founder fit are independent and
    run concurrently; risk assessment runs afterwards so it can use the
    financial projections and skill gaps they produced. A defect in any one
    agent is recorded as a failed result and never stops the others.
    """

    def __init__(self, llm, cache=None, data_source=None, settings: Optional[Settings] = None, max_workers: int = 3):
        self.llm = llm
        self.cache = cache
        self.data_source = data_source
        self.settings = settings or Settings()
        self.max_workers = max_workers
        agent_kwargs = dict(
            cache=cache,
            data_source=data_source,
            cache_ttl=self.settings.cache_ttl_seconds,
            min_confidence=self.settings.min_confidence,
        )
        self.agents = {
            MARKET_RESEARCH: MarketResearchAgent(llm, **agent_kwargs),
            FINANCIAL_MODELING: FinancialModelingAgent(llm, **agent_kwargs),
            FOUNDER_FIT: FounderFitAgent(llm, **agent_kwargs),
            RISK_ASSESSMENT: RiskAssessmentAgent(llm, **agent_kwargs),
        }
        self._lock = threading.Lock()
        self._active_executions = 0

    # -- public API -----------------------------------------------------

    def resolve_agents(self, agents: Optional[Iterable[str]] = None) -> List[str]:
        enabled = self.settings.enabled_agents()
        if agents is None:
            return enabled
        requested = list(agents)
        unknown = [name for name in requested if name not in AGENT_IDS]
        if unknown:
            raise ValueError("Unknown agent(s): %s" % ", ".join(unknown))
        return [agent_id for agent_id in AGENT_IDS if agent_id in requested and agent_id in enabled]

    def analyze(self, idea: BusinessIdeaInput, agents: Optional[Iterable[str]] = None) -> CombinedAnalysis:
        selected = self.resolve_agents(agents)
        request_id = generate_request_id()
        started = time.perf_counter()
        logger.info("Starting business analysis for '%s' (request %s, agents %s)", idea.title, request_id, selected)

        context = AgentContext(
            request_id=request_id,
            analysis_depth=idea.analysis_depth or self.settings.analysis_depth,
            data_sources=[self.data_source.name] if self.data_source is not None else [],
        )

        with self._lock:
            self._active_executions += 1
        try:
            results: Dict[str, AgentResult] = {}
            phase_one = [agent_id for agent_id in PHASE_ONE if agent_id in selected]
            if phase_one:
                with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="agent") as pool:
                    futures = {}
                    for agent_id in phase_one:
                        make_input = partial(self.build_input, agent_id, idea)
                        futures[agent_id] = pool.submit(self._run_agent, agent_id, make_input, context)
                    for agent_id, future in futures.items():
                        results[agent_id] = future.result()

            if RISK_ASSESSMENT in selected:
                results[RISK_ASSESSMENT] = self._run_agent(
                    RISK_ASSESSMENT, partial(self.build_risk_input, idea, results), context
                )
        finally:
            with self._lock:
                self._active_executions -= 1

        analysis = self.combine(request_id, idea, results, started)
        logger.info(
            "Analysis %s finished in %sms (confidence %s, failed %s)",
            request_id,
            analysis.metadata.total_execution_time_ms,
            analysis.confidence.overall,
            analysis.metadata.agents_failed,
        )
        return analysis

    def get_health_status(self) -> dict:
        with self._lock:
            active = self._active_executions
        status = "healthy"
        if active > WARNING_ACTIVE_EXECUTIONS:
            status = "warning"
        if active > CRITICAL_ACTIVE_EXECUTIONS:
            status = "critical"

        enabled = set(self.settings.enabled_agents())
        agents = {}
        metrics = {}
        for agent_id, agent in self.agents.items():
            if agent_id not in enabled:
                agents[agent_id] = "disabled"
                continue
            agents[agent_id] = "busy" if agent.is_busy else "ready"
            metrics[agent_id] = agent.metrics.health_check()

        # a struggling agent degrades the service but never marks it critical
        if status == "healthy" and any(h.status != "healthy" for h in metrics.values()):
            status = "warning"

        return {
            "status": status,
            "agents": agents,
            "providers": {
                "llm": self.llm.name,
                "cache": self.cache is not None and self.cache.name != "none",
                "data_source": self.data_source is not None,
            },
            "active_executions": active,
            "metrics": metrics,
        }

    def agent_metrics(self, agent_id: str, time_range_hours: float = 24) -> dict:
        if agent_id not in self.agents:
            raise ValueError("Unknown agent: %s" % agent_id)
        collector = self.agents[agent_id].metrics
        return {
            "agentId": agent_id,
            "aggregated": collector.aggregated(time_range_hours).model_dump(by_alias=True),
            "percentiles": collector.percentiles(time_range_hours),
            "errorDistribution": collector.error_distribution(time_range_hours),
            "recentErrors": [r.model_dump(by_alias=True) for r in collector.recent_errors()],
        }

    def check_data_source(self) -> dict:
        """Connectivity and quota of the market-data provider, if one is configured."""
        if self.data_source is None:
            return {"provider": None, "connected": False, "rateLimit": None}
        connected = self.data_source.check_connection()
        rate_limit = self.data_source.get_rate_limit() if connected else None
        return {"provider": self.data_source.name, "connected": connected, "rateLimit": rate_limit}

    # -- input derivation -------------------------------------------------

    def _shared_fields(self, idea: BusinessIdeaInput) -> dict:
        user = idea.user_context or UserContext()
        return {
            "idea_text": idea.description,
            "title": idea.title,
            "category": idea.category,
            "target_market": idea.target_market or (", ".join(user.interests) or None),
            "business_model": idea.business_model or "%s tier business model" % idea.tier,
            "user_context": UserContext(
                budget=user.budget,
                timeline=user.timeline,
                experience=user.experience,
                industry=user.industry,
            ),
        }

    def build_input(self, agent_id: str, idea: BusinessIdeaInput):
        if agent_id == MARKET_RESEARCH:
            return MarketResearchInput(
                title=idea.title, description=idea.description, category=idea.category, tier=idea.tier
            )
        if agent_id == FINANCIAL_MODELING:
            return FinancialModelingInput(**self._shared_fields(idea))
        if agent_id == FOUNDER_FIT:
            user = idea.user_context or UserContext()
            background = idea.founder_background or FounderBackground(
                experience=user.experience, industry=user.industry
            )
            return FounderFitInput(
                idea_text=idea.description,
                title=idea.title,
                category=idea.category,
                founder_background=background,
                user_context=user,
            )
        if agent_id == RISK_ASSESSMENT:
            return self.build_risk_input(idea, {})
        raise ValueError("Unknown agent: %s" % agent_id)

    def build_risk_input(self, idea: BusinessIdeaInput, results: Dict[str, AgentResult]) -> RiskAssessmentInput:
        """Risk input enriched with phase-one outputs, when those outputs are valid."""
        fields = self._shared_fields(idea)

        financial = _usable_output(results.get(FINANCIAL_MODELING))
        if financial is not None:
            fields["financial_projections"] = FinancialProjections(
                revenue_5_year=financial.scenarios.realistic.revenue_5_year,
                total_funding=financial.funding_requirements.total_required,
                break_even_month=financial.key_metrics.break_even_month,
            )

        founder = _usable_output(results.get(FOUNDER_FIT))
        if founder is not None:
            user = idea.user_context or UserContext()
            fields["team_profile"] = TeamProfile(
                founder_experience=user.experience or "Not specified",
                team_size=len(founder.team_composition.core_team) or 1,
                missing_skills=list(founder.skills_analysis.skill_gaps),
            )
        return RiskAssessmentInput(**fields)

    # -- execution --------------------------------------------------------

    def _run_agent(self, agent_id: str, make_input, context: AgentContext) -> AgentResult:
        logger.info("Executing %s agent (request %s)", agent_id, context.request_id)
        try:
            return self.agents[agent_id].execute(make_input(), context)
        except Exception as e:
            logger.error("%s agent failed for request %s: %s", agent_id, context.request_id, e, exc_info=True)
            return failed_result(agent_id, e)

    def combine(self, request_id: str, idea: BusinessIdeaInput, results: Dict[str, AgentResult], started: float):
        executed = [agent_id for agent_id in AGENT_IDS if agent_id in results]
        failed = [agent_id for agent_id in executed if not results[agent_id].success]
        usable = {agent_id: r for agent_id, r in results.items() if r.usable}

        breakdown = {agent_id: results[agent_id].confidence for agent_id in executed}
        if usable:
            overall = round(sum(r.output.confidence.overall for r in usable.values()) / len(usable))
        else:
            overall = 0

        sources = [self.llm.name]
        if self.data_source is not None:
            sources.append(self.data_source.name)

        return CombinedAnalysis(
            request_id=request_id,
            success=bool(usable),
            input=idea,
            confidence=ConfidenceSummary(overall=overall, breakdown=breakdown),
            metadata=AnalysisMetadata(
                total_execution_time_ms=int((time.perf_counter() - started) * 1000),
                agents_executed=executed,
                agents_failed=failed,
                tokens_used=sum(r.metadata.tokens_used for r in results.values()),
                data_freshness=DataFreshness(timestamp=utcnow().isoformat(), sources=sources),
            ),
            quality_metrics=calculate_quality_metrics(results),
            **{RESULT_FIELDS[agent_id]: result for agent_id, result in results.items()},
        )


def calculate_quality_metrics(results: Dict[str, AgentResult]) -> QualityMetrics:
    mr = _usable_output(results.get(MARKET_RESEARCH))
    fm = _usable_output(results.get(FINANCIAL_MODELING))
    ff = _usable_output(results.get(FOUNDER_FIT))
    ra = _usable_output(results.get(RISK_ASSESSMENT))

    # Completeness: 15 points for producing output, 5 + 5 for depth.
    completeness = 0
    max_completeness = 0
    depth_checks = []
    if mr is not None:
        depth_checks.append((len(mr.customer_evidence) >= 2, len(mr.market_signals) >= 3))
    if fm is not None:
        depth_checks.append((fm.market_size is not None, len(fm.revenue_projections) >= 3))
    if ff is not None:
        depth_checks.append((ff.skills_analysis is not None, ff.team_composition is not None))
    if ra is not None:
        depth_checks.append((len(ra.major_risk_categories) >= 4, len(ra.mitigation_strategies) >= 3))
    for first, second in depth_checks:
        max_completeness += 25
        completeness += 15 + (5 if first else 0) + (5 if second else 0)
    completeness = round(completeness / max_completeness * 100) if max_completeness else 0

    consistency = 0
    checks = 0
    if mr is not None and fm is not None:
        checks += 1
        if (mr.confidence.overall > 70) == (fm.confidence.overall > 70):
            consistency += 30
    if ff is not None and fm is not None:
        checks += 1
        consistency += 25
    if ra is not None and mr is not None:
        checks += 1
        if abs((100 - mr.confidence.overall) - ra.overall_risk_score) < 20:
            consistency += 30
    consistency = min(100, round(consistency / checks * (100 / 85))) if checks else 0

    actionability = 0
    if mr is not None:
        if mr.problem_statement.quantified_impact:
            actionability += 15
        if any(e.willingness_to_pay for e in mr.customer_evidence):
            actionability += 10
    if fm is not None:
        if fm.funding_requirements.total_required:
            actionability += 15
        if fm.key_metrics.break_even_month:
            actionability += 10
    if ff is not None:
        if ff.skills_analysis.skill_gaps:
            actionability += 15
        if ff.recommendations.immediate:
            actionability += 10
    if ra is not None:
        if len(ra.mitigation_strategies) >= 3:
            actionability += 15
        if ra.recommendations.immediate:
            actionability += 10

    confidences = [out.confidence.overall for out in (mr, fm, ff, ra) if out is not None]
    reliability = round(sum(confidences) / len(confidences)) if confidences else 0

    return QualityMetrics(
        completeness=completeness,
        consistency=consistency,
        actionability=min(100, actionability),
        reliability=reliability,
    )


def create_development_orchestrator(settings: Optional[Settings] = None) -> AgentOrchestrator:
    """Offline orchestrator: mock LLM, in-memory cache, canned market data."""
    return AgentOrchestrator(
        llm=MockLLMProvider(),
        cache=MemoryCacheProvider(),
        data_source=MockDataSourceProvider(),
        settings=settings,
    )


def create_orchestrator_from_settings(settings: Optional[Settings] = None) -> AgentOrchestrator:
    settings = settings or get_settings()
    llm = create_llm_provider(
        settings.llm_provider,
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        timeout=settings.llm_timeout_seconds,
    )
    cache = create_cache_provider(settings.cache_provider)
    data_source = create_data_source_provider(
        settings.data_source_provider,
        base_url=settings.data_source_base_url,
        api_key=settings.data_source_api_key,
        auth_type=settings.data_source_auth_type,
        timeout=settings.data_source_timeout_seconds,
        github_token=settings.github_token,
    )
    logger.info(
        "Orchestrator configured (llm=%s, cache=%s, data_source=%s)",
        llm.name,
        cache.name,
        data_source.name if data_source is not None else "none",
    )
    return AgentOrchestrator(llm=llm, cache=cache, data_source=data_source, settings=settings)
