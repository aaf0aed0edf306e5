import copy

import pytest

from app.api.ai import fallbacks
from app.api.ai.agents import FounderFitAgent
from app.api.ai.agents.founder_fit import (
    FounderBackground,
    FounderFitInput,
    SkillsAnalysis,
    calculate_readiness,
    commitment_level,
    experience_alignment,
    resource_availability,
    risk_management,
)
from app.api.ai.schemas import UserContext

IDEA = {
    "ideaText": "An AI-powered fitness app that adapts workout plans to wearable data.",
    "title": "SmartFit AI",
    "category": "Health & Fitness Technology",
}

FALLBACK_SKILLS = SkillsAnalysis.model_validate(fallbacks.SKILLS_ANALYSIS)


def test_readiness_with_no_background_or_context():
    readiness = calculate_readiness(FounderFitInput(**IDEA), FALLBACK_SKILLS)

    breakdown = readiness.breakdown
    assert breakdown.skills_readiness == 10
    assert breakdown.experience_alignment == 40
    assert breakdown.resource_availability == 50
    assert breakdown.commitment_level == 50
    assert breakdown.risk_management == 60
    assert readiness.overall == 42


@pytest.mark.parametrize("user, expected", [
    (UserContext(budget="High budget", commitment="Full-time"), 90),
    (UserContext(budget="moderate", commitment="part-time"), 50),
    (UserContext(budget="limited savings", commitment="side project"), 15),
    (UserContext(), 50),
])
def test_resource_availability(user, expected):
    assert resource_availability(user) == expected


@pytest.mark.parametrize("user, expected", [
    (UserContext(commitment="full-time", risk_tolerance="high"), 90),
    (UserContext(commitment="part-time", risk_tolerance="medium"), 65),
    (UserContext(commitment="side hustle", risk_tolerance="low"), 25),
])
def test_commitment_level_is_clamped(user, expected):
    assert commitment_level(user) == expected


def test_experience_alignment_caps_at_ninety():
    background = FounderBackground(
        experience="Senior engineer, previously at a startup",
        industry="Fitness",
    )
    assert experience_alignment(background) == 90
    assert experience_alignment(FounderBackground(industry="Not specified")) == 40


def test_risk_management_is_clamped():
    background = FounderBackground(experience="10 years", network="Strong")
    assert risk_management(background, UserContext(risk_tolerance="medium")) == 85
    assert risk_management(FounderBackground(), UserContext()) == 60


def test_skill_gaps_are_derived_from_required_skills():
    data = copy.deepcopy(fallbacks.SKILLS_ANALYSIS)
    data["requiredSkills"][0]["gap"] = "none"
    data["skillGaps"] = ["Something made up"]

    analysis = SkillsAnalysis.model_validate(data)

    assert analysis.skill_gaps == ["Product Management"]
    assert FALLBACK_SKILLS.skill_gaps == ["Business Strategy", "Product Management"]


def test_founder_fit_from_llm_answers(mock_llm):
    idea = dict(
        IDEA,
        founderBackground={"experience": "Senior product lead at a startup", "industry": "Fitness"},
        userContext={"budget": "substantial", "commitment": "full-time", "riskTolerance": "medium"},
    )

    result = FounderFitAgent(mock_llm).execute(idea)

    assert result.success and result.is_valid
    assert result.metadata.fallback_stages == []
    assert result.metadata.metrics.api_calls == 5
    assert result.confidence == 72
    readiness = result.output.readiness_score
    assert readiness.breakdown.resource_availability == 90
    assert readiness.breakdown.commitment_level == 85
    assert readiness.breakdown.experience_alignment == 90


def test_low_readiness_raises_quality_warning(failing_llm):
    agent = FounderFitAgent(failing_llm)

    result = agent.execute(IDEA)

    assert result.is_valid
    assert result.output.readiness_score.overall == 42
    assert [i.field for i in result.errors] == ["readinessScore.overall"]
    assert result.metadata.metrics.quality_score == 67


def test_many_critical_gaps_lower_quality(failing_llm):
    agent = FounderFitAgent(failing_llm)
    output = agent.execute(IDEA).output
    output.skills_analysis.skills_gap_summary.critical_gaps = 4

    report = agent.perform_quality_assurance(output, None)

    fields = [i.field for i in report.issues]
    assert "skillsAnalysis.skillsGapSummary.criticalGaps" in fields
    assert report.score == 57


def test_founder_output_aliases(failing_llm):
    data = FounderFitAgent(failing_llm).execute(IDEA).output.model_dump(by_alias=True)
    assert "priority1" in data["skillsAnalysis"]["developmentPlan"]
    assert "year1TeamCosts" in data["investmentRequirements"]["teamInvestment"]
    assert data["skillsAnalysis"]["skillGaps"] == ["Business Strategy", "Product Management"]
