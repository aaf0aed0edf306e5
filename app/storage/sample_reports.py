# Sample analysis served when no stored report exists and generation fails.
# Headline sections are written out for "SmartFit AI"; the remaining
# sections reuse the deterministic fallback records so the report always
# validates against the current output models.

import copy

from app.api.ai import fallbacks
from app.api.ai.agents.financial_modeling import (
    CostAnalysis,
    FinancialModelingAgent,
    FinancialModelingInput,
    FinancialModelingOutput,
    FundingRequirements,
    RevenueProjection,
    TamSamSom,
    calculate_key_metrics,
)
from app.api.ai.agents.founder_fit import (
    FounderFitAgent,
    FounderFitInput,
    FounderFitOutput,
    SkillsAnalysis,
    TeamComposition,
    calculate_readiness,
)
from app.api.ai.agents.market_research import (
    Competitor,
    CustomerEvidence,
    MarketResearchAgent,
    MarketResearchInput,
    MarketResearchOutput,
    MarketSignal,
    MarketTiming,
    ProblemStatement,
)
from app.api.ai.agents.risk_assessment import (
    RiskAssessmentAgent,
    RiskAssessmentOutput,
    RiskCategory,
    calculate_overall_risk,
)
from app.api.ai.orchestrator import (
    AnalysisMetadata,
    BusinessIdeaInput,
    CombinedAnalysis,
    DataFreshness,
    OUTPUT_MODELS,
    calculate_quality_metrics,
)
from app.api.ai.schemas import AgentMetadata, AgentResult, ConfidenceSummary, utcnow

SAMPLE_IDEA = {
    "title": "SmartFit AI",
    "description": (
        "An AI-powered fitness app that builds adaptive workout and nutrition plans from wearable data "
        "and adjusts them daily based on recovery, progress and schedule."
    ),
    "category": "Health & Fitness Technology",
    "tier": "public",
    "targetMarket": "Busy professionals aged 25-45 who own a wearable",
    "businessModel": "Freemium subscription",
}

SMARTFIT_PROBLEM = {
    "summary": (
        "Busy professionals abandon fitness programs because generic plans ignore their recovery, "
        "schedule and progress. Most fitness apps deliver static routines and leave users to adapt "
        "them, so motivation drops within weeks."
    ),
    "quantifiedImpact": "Roughly 50% of new gym members quit within 6 months; lapsed members waste about $500 a year",
    "currentSolutions": [
        "Static workout apps",
        "Personal trainers ($60-120 per session)",
        "Wearable dashboards without coaching",
        "Online video programs",
    ],
    "solutionLimitations": [
        "Static apps do not adapt to recovery or missed sessions",
        "Personal trainers are too expensive for most users",
        "Wearables report data but give no plan",
        "Video programs offer no personalization",
    ],
    "costOfInaction": "Continued churn from fitness programs, wasted subscriptions and missed health outcomes",
}

SMARTFIT_MARKET_SIZE = {
    "tam": {
        "value": "$96B",
        "description": "Global fitness and wellness app and coaching market",
        "methodology": "Top-down from industry reports on digital fitness spending",
        "assumptions": ["Global scope", "Includes coaching services", "Annual spend"],
    },
    "sam": {
        "value": "$9.6B",
        "description": "Wearable owners in North America and Europe paying for fitness apps",
        "methodology": "TAM filtered by wearable ownership and geography",
        "assumptions": ["English-speaking markets first", "Wearable required", "Paid tier adoption"],
    },
    "som": {
        "value": "$120M",
        "description": "Realistic subscriber base after five years",
        "methodology": "Comparable app subscriber growth curves",
        "marketShare": "1.25% of SAM",
        "timeframe": "5 years",
    },
    "confidence": 70,
}

SMARTFIT_SKILL_GAPS = ["Machine Learning", "Exercise Science", "Mobile Development"]


def _skills_analysis():
    record = copy.deepcopy(fallbacks.SKILLS_ANALYSIS)
    record["requiredSkills"] = [
        {
            "name": name,
            "category": "technical" if name != "Exercise Science" else "industry",
            "importance": "critical",
            "requiredLevel": "advanced",
            "gap": "large" if name == "Machine Learning" else "moderate",
            "developmentTime": "6-12 months",
            "developmentCost": "$5,000-15,000",
            "alternatives": ["Hire specialist", "Advisor", "Contractor"],
        }
        for name in SMARTFIT_SKILL_GAPS
    ] + [
        {
            "name": "Product Management",
            "category": "business",
            "importance": "important",
            "requiredLevel": "intermediate",
            "gap": "none",
            "developmentTime": "Covered",
            "developmentCost": "$0",
            "alternatives": [],
        }
    ]
    record["skillsGapSummary"] = {
        "totalSkills": 4,
        "criticalGaps": 1,
        "moderateGaps": 2,
        "skillsCovered": 1,
        "overallReadiness": "medium",
    }
    return SkillsAnalysis.model_validate(record)


def _result(model, agent_id, output):
    return AgentResult[model](
        agent_id=agent_id,
        success=True,
        is_valid=True,
        output=output,
        confidence=output.confidence.overall,
        metadata=AgentMetadata(agent_id=agent_id, cached=True),
    )


def _market_research(idea):
    inp = MarketResearchInput(
        title=idea.title, description=idea.description, category=idea.category, tier=idea.tier
    )
    problem = ProblemStatement.model_validate(SMARTFIT_PROBLEM)
    signals = [MarketSignal.model_validate(s) for s in fallbacks.resolve(fallbacks.MARKET_RESEARCH, "market_signals", inp)]
    evidence = [
        CustomerEvidence.model_validate(e)
        for e in fallbacks.resolve(fallbacks.MARKET_RESEARCH, "customer_evidence", inp)
    ]
    competitors = [Competitor.model_validate(c) for c in fallbacks.resolve(fallbacks.MARKET_RESEARCH, "competitors", inp)]
    timing = MarketTiming.model_validate(fallbacks.resolve(fallbacks.MARKET_RESEARCH, "market_timing", inp))
    return MarketResearchOutput(
        problem_statement=problem,
        market_signals=signals,
        customer_evidence=evidence,
        competitor_analysis=competitors,
        market_timing=timing,
        confidence=MarketResearchAgent.calculate_confidence(problem, signals, evidence, competitors, timing),
    )


def _financial_modeling(idea):
    inp = FinancialModelingInput(idea_text=idea.description, title=idea.title, category=idea.category)
    market_size = TamSamSom.model_validate(SMARTFIT_MARKET_SIZE)
    projections = [
        RevenueProjection.model_validate(p)
        for p in fallbacks.resolve(fallbacks.FINANCIAL_MODELING, "revenue_projections", inp)
    ]
    costs = CostAnalysis.model_validate(fallbacks.resolve(fallbacks.FINANCIAL_MODELING, "cost_analysis", inp))
    funding = FundingRequirements.model_validate(
        fallbacks.resolve(fallbacks.FINANCIAL_MODELING, "funding_requirements", inp)
    )
    scenarios = fallbacks.resolve(
        fallbacks.FINANCIAL_MODELING, "scenarios", inp, revenue_projections=projections
    )
    return FinancialModelingOutput(
        market_size=market_size,
        revenue_projections=projections,
        cost_analysis=costs,
        funding_requirements=funding,
        key_metrics=calculate_key_metrics(projections, costs),
        scenarios=scenarios,
        confidence=FinancialModelingAgent.calculate_confidence(market_size, projections),
    )


def _founder_fit(idea):
    inp = FounderFitInput(idea_text=idea.description, title=idea.title, category=idea.category)
    skills = _skills_analysis()
    team = TeamComposition.model_validate(fallbacks.resolve(fallbacks.FOUNDER_FIT, "team_composition", inp))
    return FounderFitOutput(
        skills_analysis=skills,
        team_composition=team,
        investment_requirements=fallbacks.resolve(fallbacks.FOUNDER_FIT, "investment_requirements", inp),
        readiness_score=calculate_readiness(inp, skills),
        recommendations=fallbacks.resolve(fallbacks.FOUNDER_FIT, "recommendations", inp),
        scenarios=fallbacks.resolve(fallbacks.FOUNDER_FIT, "scenarios", inp),
        confidence=FounderFitAgent.calculate_confidence(skills, team),
    )


def _risk_assessment(idea):
    risks = [
        RiskCategory.model_validate(r)
        for r in fallbacks.resolve(fallbacks.RISK_ASSESSMENT, "risk_identification", idea)
    ]
    overall = calculate_overall_risk(risks)
    return RiskAssessmentOutput(
        overall_risk_score=overall.score,
        risk_profile=overall.profile,
        major_risk_categories=risks,
        mitigation_strategies=fallbacks.resolve(
            fallbacks.RISK_ASSESSMENT, "mitigation", idea, risk_identification=risks
        ),
        risk_scenarios=fallbacks.resolve(fallbacks.RISK_ASSESSMENT, "scenarios", idea),
        monitoring_framework=fallbacks.resolve(fallbacks.RISK_ASSESSMENT, "monitoring", idea),
        recommendations=fallbacks.resolve(
            fallbacks.RISK_ASSESSMENT, "recommendations", idea, overall_risk=overall
        ),
        confidence=RiskAssessmentAgent.calculate_confidence(risks),
    )


def sample_analysis(opportunity_id=None) -> CombinedAnalysis:
    """
    Build the SmartFit AI sample report, tagged with ``opportunity_id`` and
    the ``sample`` tier. A fresh object is returned on every call.
    """
    idea = BusinessIdeaInput.model_validate(SAMPLE_IDEA)
    outputs = {
        fallbacks.MARKET_RESEARCH: _market_research(idea),
        fallbacks.FINANCIAL_MODELING: _financial_modeling(idea),
        fallbacks.FOUNDER_FIT: _founder_fit(idea),
        fallbacks.RISK_ASSESSMENT: _risk_assessment(idea),
    }
    results = {
        agent_id: _result(OUTPUT_MODELS[agent_id], agent_id, output)
        for agent_id, output in outputs.items()
    }
    overall = round(sum(o.confidence.overall for o in outputs.values()) / len(outputs))
    request_id = "sample_%s" % opportunity_id if opportunity_id is not None else "sample"

    return CombinedAnalysis(
        request_id=request_id,
        success=True,
        input=idea,
        market_research=results[fallbacks.MARKET_RESEARCH],
        financial_modeling=results[fallbacks.FINANCIAL_MODELING],
        founder_fit=results[fallbacks.FOUNDER_FIT],
        risk_assessment=results[fallbacks.RISK_ASSESSMENT],
        confidence=ConfidenceSummary(
            overall=overall,
            breakdown={agent_id: o.confidence.overall for agent_id, o in outputs.items()},
        ),
        metadata=AnalysisMetadata(
            agents_executed=list(outputs),
            data_freshness=DataFreshness(timestamp=utcnow().isoformat(), sources=["sample"]),
            tier="sample",
        ),
        quality_metrics=calculate_quality_metrics(results),
    )
