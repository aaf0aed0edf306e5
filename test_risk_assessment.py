import copy

import pytest

from app.api.ai import fallbacks
from app.api.ai.agents import RiskAssessmentAgent
from app.api.ai.agents.risk_assessment import (
    RiskCategory,
    calculate_overall_risk,
    risk_profile_for,
)
from app.api.ai.providers import MockLLMProvider

IDEA = {
    "ideaText": "An AI-powered fitness app that adapts workout plans to wearable data.",
    "title": "SmartFit AI",
    "category": "Health & Fitness Technology",
    "financialProjections": {"revenue5Year": "$4,000,000", "totalFunding": "$2,500,000", "breakEvenMonth": 28},
    "teamProfile": {"founderExperience": "5 years", "teamSize": 1, "missingSkills": ["Product Management"]},
}


def _risk(category="Market Risk", impact="Medium", probability="Medium", score=50):
    return RiskCategory(
        category=category,
        description="Something could go wrong",
        impact=impact,
        probability=probability,
        risk_score=score,
        timeframe="6-12 months",
        indicators=["Signal"],
        consequences=["Loss"],
        confidence=70,
    )


@pytest.mark.parametrize("score, profile", [
    (80, "Extreme"),
    (79, "High"),
    (65, "High"),
    (64, "Moderate"),
    (40, "Moderate"),
    (39, "Low"),
])
def test_risk_profile_boundaries(score, profile):
    assert risk_profile_for(score) == profile


def test_overall_risk_of_fallback_risks_is_weighted():
    risks = [RiskCategory.model_validate(r) for r in fallbacks.RISKS]
    overall = calculate_overall_risk(risks)
    assert overall.score == 69
    assert overall.profile == "High"


def test_overall_risk_edge_cases():
    assert calculate_overall_risk([]).model_dump() == {"score": 50, "profile": "Moderate"}

    low = calculate_overall_risk([_risk(impact="Low", probability="Low", score=1)])
    assert (low.score, low.profile) == (10, "Low")

    extreme = calculate_overall_risk([_risk(impact="Critical", probability="Very High", score=100)])
    assert (extreme.score, extreme.profile) == (95, "Extreme")


def test_risk_assessment_from_llm_answers(mock_llm):
    result = RiskAssessmentAgent(mock_llm).execute(IDEA)

    assert result.success and result.is_valid
    assert result.metadata.fallback_stages == []
    output = result.output
    assert len(output.major_risk_categories) == 5
    assert output.overall_risk_score == 71
    assert output.risk_profile == "High"
    assert result.confidence == 78
    assert output.confidence.breakdown.strategic_risks == 70

    identification = next(c.prompt for c in mock_llm.calls if "RISK IDENTIFICATION" in c.prompt)
    assert "Missing Skills: Product Management" in identification
    assert "Break-even Timeline: Month 28" in identification


def test_risk_assessment_with_failing_llm(failing_llm):
    result = RiskAssessmentAgent(failing_llm).execute(IDEA)

    assert result.success and result.is_valid
    output = result.output
    assert output.overall_risk_score == 69
    assert output.risk_profile == "High"
    assert result.confidence == 74
    assert [m.risk_category for m in output.mitigation_strategies] == [
        "Financial Risk",
        "Market Risk",
        "Operational Risk",
        "Technology Risk",
    ]
    assert output.recommendations.risk_tolerance.startswith("Moderate risk tolerance")


def test_mitigation_prompt_lists_only_top_risks(canned_responses):
    risks = []
    for i in range(10):
        risk = copy.deepcopy(fallbacks.RISKS[0])
        risk["category"] = "Category-%02d" % i
        risk["riskScore"] = 100 - i * 5
        risks.append(risk)
    canned_responses["TASK: RISK IDENTIFICATION AND CATEGORIZATION"] = {"risks": risks}
    llm = MockLLMProvider(canned_responses)

    RiskAssessmentAgent(llm).execute(IDEA)

    prompt = next(c.prompt for c in llm.calls if "RISK MITIGATION STRATEGIES" in c.prompt)
    assert "Category-07" in prompt
    assert "Category-08" not in prompt
    assert "Category-09" not in prompt


def test_no_mitigation_strategies_is_reported_but_not_invalid(canned_responses):
    canned_responses["TASK: RISK MITIGATION STRATEGIES"] = {"strategies": []}

    result = RiskAssessmentAgent(MockLLMProvider(canned_responses)).execute(IDEA)

    assert result.is_valid and result.success
    assert result.output.mitigation_strategies == []
    issue = next(i for i in result.errors if i.field == "mitigationStrategies")
    assert issue.severity == "error"
    assert result.metadata.metrics.quality_score == 58


def test_risk_score_out_of_range_falls_back(canned_responses):
    risks = copy.deepcopy(fallbacks.RISKS)
    risks[0]["riskScore"] = 250
    canned_responses["TASK: RISK IDENTIFICATION AND CATEGORIZATION"] = {"risks": risks}

    result = RiskAssessmentAgent(MockLLMProvider(canned_responses)).execute(IDEA)

    assert "risk_identification" in result.metadata.fallback_stages
    assert result.output.overall_risk_score == 69
