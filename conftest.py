"""Shared fixtures: canned LLM replies, an in-memory database and an API client."""

import copy
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api import routes
from app.api.ai import fallbacks
from app.api.ai.agents.financial_modeling import RevenueProjection
from app.api.ai.agents.risk_assessment import RiskCategory
from app.api.ai.errors import LLMProviderError
from app.api.ai.orchestrator import AgentOrchestrator, BusinessIdeaInput
from app.api.ai.read_through import ReadThroughService
from app.api.ai.providers import LLMProvider, MemoryCacheProvider, MockDataSourceProvider, MockLLMProvider
from app.config import Settings
from app.database.database import init_db, make_engine
from app.main import app, get_orchestrator

SMARTFIT = {
    "title": "SmartFit AI",
    "description": "An AI-powered fitness app that adapts workout plans to wearable data and recovery.",
    "category": "Health & Fitness Technology",
}


class FailingLLM(LLMProvider):
    """Every call fails the way a vendor outage would."""

    name = "failing"

    def __init__(self):
        self.calls = 0

    def generate(self, prompt, options=None):
        self.calls += 1
        raise LLMProviderError("vendor unavailable")


def build_canned_responses():
    """Valid JSON replies for all twenty stage prompts, keyed by prompt marker."""
    inp = SimpleNamespace(title=SMARTFIT["title"], category=SMARTFIT["category"])

    signals = copy.deepcopy(fallbacks.MARKET_SIGNALS)
    signals.append({
        "type": "funding_activity",
        "description": "Connected-fitness startups raised $2.1B last year",
        "strength": "high",
        "trend": "increasing",
        "source": "Crunchbase funding data",
        "quantifiedImpact": "$2.1B invested",
        "timeframe": "Last 12 months",
    })

    market_size = fallbacks.resolve(fallbacks.FINANCIAL_MODELING, "market_size", inp)
    market_size["confidence"] = 75
    projections = fallbacks.resolve(fallbacks.FINANCIAL_MODELING, "revenue_projections", inp)
    for projection in projections:
        projection["confidence"] = 70

    risks = copy.deepcopy(fallbacks.RISKS)
    risks.append({
        "category": "Strategic Risk",
        "description": "Large wearable vendors may bundle similar coaching",
        "impact": "High",
        "probability": "High",
        "riskScore": 75,
        "timeframe": "12-24 months",
        "indicators": ["Vendor product announcements"],
        "consequences": ["Price pressure"],
        "confidence": 70,
    })
    risk_models = [RiskCategory.model_validate(r) for r in risks]

    return {
        "TASK: PROBLEM STATEMENT ANALYSIS": {
            "summary": (
                "Busy professionals abandon fitness programs because generic workout plans ignore their "
                "recovery, schedule and progress, so motivation drops within weeks."
            ),
            "quantifiedImpact": "50% of gym members quit within 6 months",
            "currentSolutions": ["Static workout apps", "Personal trainers", "Wearable dashboards"],
            "solutionLimitations": ["No adaptation", "Expensive", "No coaching"],
            "costOfInaction": "Wasted subscriptions and missed health outcomes",
        },
        "TASK: MARKET SIGNAL DETECTION": {"signals": signals},
        "TASK: CUSTOMER EVIDENCE RESEARCH": fallbacks.resolve(
            fallbacks.MARKET_RESEARCH, "customer_evidence.segment", inp
        ),
        "TASK: COMPETITOR LANDSCAPE ANALYSIS": {"competitors": copy.deepcopy(fallbacks.COMPETITORS)},
        "TASK: MARKET TIMING ASSESSMENT": copy.deepcopy(fallbacks.MARKET_TIMING),
        "TASK: TAM/SAM/SOM MARKET SIZE ANALYSIS": market_size,
        "TASK: REVENUE PROJECTIONS (5 YEARS)": {"projections": projections},
        "TASK: COST STRUCTURE ANALYSIS": copy.deepcopy(fallbacks.COST_ANALYSIS),
        "TASK: FUNDING REQUIREMENTS ANALYSIS": copy.deepcopy(fallbacks.FUNDING_REQUIREMENTS),
        "TASK: FINANCIAL SCENARIO ANALYSIS": fallbacks.resolve(
            fallbacks.FINANCIAL_MODELING,
            "scenarios",
            inp,
            revenue_projections=[RevenueProjection.model_validate(p) for p in projections],
        ),
        "TASK: FOUNDER SKILLS GAP ANALYSIS": copy.deepcopy(fallbacks.SKILLS_ANALYSIS),
        "TASK: TEAM COMPOSITION PLANNING": copy.deepcopy(fallbacks.TEAM_COMPOSITION),
        "TASK: INVESTMENT REQUIREMENTS FOR THE FOUNDER": copy.deepcopy(fallbacks.INVESTMENT_REQUIREMENTS),
        "TASK: FOUNDER RECOMMENDATIONS": copy.deepcopy(fallbacks.FOUNDER_RECOMMENDATIONS),
        "TASK: FOUNDER SCENARIO COMPARISON": copy.deepcopy(fallbacks.FOUNDER_SCENARIOS),
        "TASK: RISK IDENTIFICATION AND CATEGORIZATION": {"risks": risks},
        "TASK: RISK MITIGATION STRATEGIES": {
            "strategies": fallbacks.resolve(
                fallbacks.RISK_ASSESSMENT, "mitigation", inp, risk_identification=risk_models
            )
        },
        "TASK: RISK SCENARIO PLANNING": {"scenarios": copy.deepcopy(fallbacks.RISK_SCENARIOS)},
        "TASK: RISK MONITORING FRAMEWORK": copy.deepcopy(fallbacks.MONITORING_FRAMEWORK),
        "TASK: RISK MANAGEMENT RECOMMENDATIONS": fallbacks.resolve(
            fallbacks.RISK_ASSESSMENT, "recommendations", inp
        ),
    }


@pytest.fixture
def canned_responses():
    return build_canned_responses()


@pytest.fixture
def mock_llm(canned_responses):
    return MockLLMProvider(canned_responses)


@pytest.fixture
def failing_llm():
    return FailingLLM()


@pytest.fixture
def smartfit_idea():
    return BusinessIdeaInput(**SMARTFIT)


@pytest.fixture
def orchestrator(mock_llm):
    return AgentOrchestrator(
        llm=mock_llm,
        cache=MemoryCacheProvider(),
        data_source=MockDataSourceProvider(),
        settings=Settings(llm_provider="mock"),
    )


# ------------------------------------------------------------------
# Database
# ------------------------------------------------------------------

@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ------------------------------------------------------------------
# API
# ------------------------------------------------------------------

@pytest.fixture
def read_through(session_factory, orchestrator):
    service = ReadThroughService(session_factory, lambda: orchestrator, db_timeout=2)
    yield service
    service.shutdown()


@pytest.fixture
def client(session_factory, read_through, orchestrator):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[routes.get_db] = override_get_db
    app.dependency_overrides[routes.get_read_through] = lambda: read_through
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
