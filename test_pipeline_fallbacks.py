from typing import List
from types import SimpleNamespace

import pytest

from app.api.ai import fallbacks
from app.api.ai.agents.financial_modeling import FinancialModelingOutput
from app.api.ai.agents.founder_fit import FounderFitOutput
from app.api.ai.agents.market_research import MarketResearchOutput, MarketSignal, MarketTiming
from app.api.ai.agents.risk_assessment import RiskAssessmentOutput
from app.api.ai.errors import LLMProviderError, PipelineError, ResponseParseError
from app.api.ai.orchestrator import AgentOrchestrator
from app.api.ai.pipeline import Pipeline, Stage, validate_fallback
from app.config import Settings

IDEA = SimpleNamespace(title="SmartFit AI", category="Health & Fitness Technology")


def _raise(error):
    def run(inp, context, **deps):
        raise error

    return run


def test_stage_receives_only_declared_dependencies():
    seen = {}

    def first(inp, context):
        return 1

    def second(inp, context, *, first):
        seen["first"] = first
        return first + 1

    run = Pipeline("market-research", [
        Stage("first", first),
        Stage("second", second, requires=("first",)),
    ]).run(IDEA, None)

    assert run["second"] == 2
    assert seen == {"first": 1}
    assert run.fallback_stages == []


@pytest.mark.parametrize("error", [LLMProviderError("down"), ResponseParseError("bad json")])
def test_recoverable_failure_uses_registered_fallback(error):
    run = Pipeline("market-research", [
        Stage("market_timing", _raise(error), model=MarketTiming),
    ]).run(IDEA, None)

    assert isinstance(run["market_timing"], MarketTiming)
    assert run["market_timing"].assessment == "perfect"
    assert run.fallback_stages == ["market_timing"]


def test_fallback_list_is_validated_into_stage_model():
    run = Pipeline("market-research", [
        Stage("market_signals", _raise(LLMProviderError("down")), model=List[MarketSignal]),
    ]).run(IDEA, None)
    assert all(isinstance(s, MarketSignal) for s in run["market_signals"])
    assert len(run["market_signals"]) == 3


def test_defects_propagate():
    pipeline = Pipeline("market-research", [Stage("market_timing", _raise(KeyError("bug")))])
    with pytest.raises(KeyError):
        pipeline.run(IDEA, None)


def test_non_recoverable_stage_does_not_fall_back():
    pipeline = Pipeline("financial-modeling", [
        Stage("key_metrics", _raise(LLMProviderError("down")), recoverable=False),
    ])
    with pytest.raises(LLMProviderError):
        pipeline.run(IDEA, None)


def test_missing_dependency_is_a_pipeline_error():
    pipeline = Pipeline("market-research", [
        Stage("market_timing", lambda inp, ctx, **deps: None, requires=("market_signals",)),
    ])
    with pytest.raises(PipelineError):
        pipeline.run(IDEA, None)


def test_duplicate_stage_names_rejected():
    with pytest.raises(PipelineError):
        Pipeline("market-research", [
            Stage("a", lambda inp, ctx: 1),
            Stage("a", lambda inp, ctx: 2),
        ])


def test_unknown_fallback_is_a_pipeline_error():
    with pytest.raises(PipelineError):
        fallbacks.resolve("market-research", "no_such_stage", IDEA)


def test_fallback_records_are_independent_copies():
    first = fallbacks.resolve(fallbacks.RISK_ASSESSMENT, "risk_identification", IDEA)
    first[0]["riskScore"] = 1
    second = fallbacks.resolve(fallbacks.RISK_ASSESSMENT, "risk_identification", IDEA)
    assert second[0]["riskScore"] == 70


def test_segment_fallback_uses_segment():
    evidence = validate_fallback(
        fallbacks.MARKET_RESEARCH,
        "customer_evidence.segment",
        dict,
        IDEA,
        segment={"industry": "Retail", "size": "small"},
    )
    assert evidence["customerProfile"] == {
        "industry": "Retail",
        "companySize": "small",
        "role": "Operations Manager",
        "geography": "United States",
    }


def test_failing_llm_still_yields_valid_outputs_for_every_agent(failing_llm, smartfit_idea):
    """With the vendor down every stage falls back and every agent stays schema-valid."""
    orchestrator = AgentOrchestrator(llm=failing_llm, settings=Settings(llm_provider="mock"))

    analysis = orchestrator.analyze(smartfit_idea)

    expected = {
        "market-research": MarketResearchOutput,
        "financial-modeling": FinancialModelingOutput,
        "founder-fit": FounderFitOutput,
        "risk-assessment": RiskAssessmentOutput,
    }
    for agent_id, model in expected.items():
        result = analysis.result_for(agent_id)
        assert result.success and result.is_valid, agent_id
        assert isinstance(result.output, model)
        assert result.metadata.fallback_stages, agent_id
        assert 0 <= result.confidence <= 100
    assert analysis.success
    assert analysis.metadata.agents_failed == []
    assert failing_llm.calls > 0
