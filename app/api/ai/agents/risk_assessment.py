"""
Risk assessment: identifies the venture's major risks, plans mitigation and
monitoring, and scores the overall risk profile.

The overall score is a weighted mean of the individual risk scores, where
each risk's weight is its impact weight times its probability weight.
"""

import logging
from typing import List, Literal, Optional

from pydantic import Field

from app.api.ai.agents.base import BaseAgent
from app.api.ai.fallbacks import RISK_ASSESSMENT
from app.api.ai.pipeline import Pipeline, Stage
from app.api.ai.schemas import CamelModel, QualityReport, UserContext, ValidationIssue, clamp
from app.api.ai.utils import extract_keywords, or_default

logger = logging.getLogger(__name__)

RiskProfile = Literal["Low", "Moderate", "High", "Extreme"]

IMPACT_WEIGHTS = {"Critical": 1.5, "High": 1.3, "Medium": 1.0, "Low": 0.7}
PROBABILITY_WEIGHTS = {"Very High": 1.4, "High": 1.2, "Medium": 1.0, "Low": 0.8}
MAX_MITIGATED_RISKS = 8
HIGH_RISK_SCORE = 60


class FinancialProjections(CamelModel):
    revenue_5_year: Optional[str] = Field(None, alias="revenue5Year")
    total_funding: Optional[str] = None
    break_even_month: Optional[int] = None


class TeamProfile(CamelModel):
    founder_experience: Optional[str] = None
    team_size: Optional[int] = Field(None, ge=0)
    missing_skills: List[str] = Field(default_factory=list)


class RiskAssessmentInput(CamelModel):
    idea_text: str = Field(min_length=10)
    title: str = Field(min_length=1)
    category: str = Field(min_length=1)
    target_market: Optional[str] = None
    business_model: Optional[str] = None
    financial_projections: Optional[FinancialProjections] = None
    team_profile: Optional[TeamProfile] = None
    user_context: Optional[UserContext] = None


class RiskCategory(CamelModel):
    category: str
    description: str
    impact: Literal["Low", "Medium", "High", "Critical"]
    probability: Literal["Low", "Medium", "High", "Very High"]
    risk_score: float = Field(ge=1, le=100)
    timeframe: str
    indicators: List[str]
    consequences: List[str]
    confidence: float = Field(ge=0, le=100)


class MitigationImplementation(CamelModel):
    timeframe: str
    cost: str
    resources: List[str]
    steps: List[str]


class MitigationEffectiveness(CamelModel):
    risk_reduction: str
    success_probability: float = Field(ge=0, le=100)
    cost_benefit: str


class MitigationStrategy(CamelModel):
    risk_category: str
    strategy: str
    description: str
    implementation: MitigationImplementation
    effectiveness: MitigationEffectiveness
    dependencies: List[str]
    kpis: List[str]


class ScenarioImpact(CamelModel):
    financial: str
    operational: str
    strategic: str
    timeline: str


class RiskScenario(CamelModel):
    scenario: str
    description: str
    probability: float = Field(ge=0, le=100)
    combined_risks: List[str]
    impact: ScenarioImpact
    warning_signals: List[str]
    contingency_plan: str


class KeyRiskIndicator(CamelModel):
    indicator: str
    measurement: str
    threshold: str
    frequency: str
    owner: str


class ReviewSchedule(CamelModel):
    weekly: List[str]
    monthly: List[str]
    quarterly: List[str]


class Escalation(CamelModel):
    risk_level: str
    authority: str
    timeframe: str
    actions: List[str]


class MonitoringFramework(CamelModel):
    key_risk_indicators: List[KeyRiskIndicator]
    review_schedule: ReviewSchedule
    escalation_matrix: List[Escalation]


class RiskRecommendations(CamelModel):
    immediate: List[str]
    short_term: List[str]
    long_term: List[str]
    risk_tolerance: str


class OverallRisk(CamelModel):
    score: int = Field(ge=1, le=100)
    profile: RiskProfile


class RiskBreakdown(CamelModel):
    market_risks: int = Field(ge=0, le=100)
    operational_risks: int = Field(ge=0, le=100)
    financial_risks: int = Field(ge=0, le=100)
    strategic_risks: int = Field(ge=0, le=100)


class RiskConfidence(CamelModel):
    overall: int = Field(ge=0, le=100)
    breakdown: RiskBreakdown


class RiskAssessmentOutput(CamelModel):
    overall_risk_score: int = Field(ge=1, le=100)
    risk_profile: RiskProfile
    major_risk_categories: List[RiskCategory]
    mitigation_strategies: List[MitigationStrategy]
    risk_scenarios: List[RiskScenario]
    monitoring_framework: MonitoringFramework
    recommendations: RiskRecommendations
    confidence: RiskConfidence


IDENTIFICATION_PROMPT = (
    "TASK: RISK IDENTIFICATION AND CATEGORIZATION\n\n"
    "Identify and categorize major risks for this business venture:\n\n"
    "Business: \"{title}\"\n"
    "Description: \"{idea_text}\"\n"
    "Category: {category}\n"
    "Target Market: {target_market}\n"
    "Business Model: {business_model}\n\n"
    "Financial Context:\n{financial}\n\n"
    "Team Context:\n{team}\n\n"
    "{external}\n\n"
    "Analyze risks across market, operational, financial, strategic and technology categories.\n"
    "For each identified risk provide category, description, impact (Low/Medium/High/Critical), "
    "probability (Low/Medium/High/Very High), riskScore (1-100 based on impact x probability), "
    "timeframe, early warning indicators, consequences and confidence (0-100).\n"
    "Focus on the 8-12 most significant risks. Base assessments on industry data and startup failure "
    "patterns.\n"
    "Return a JSON object {{\"risks\": [...]}}."
)

MITIGATION_PROMPT = (
    "TASK: RISK MITIGATION STRATEGIES\n\n"
    "Business: {title}\n"
    "Budget: {budget}\n\n"
    "Top risks:\n{risks}\n\n"
    "For each risk provide riskCategory, strategy, description, implementation (timeframe, cost, "
    "resources, steps), effectiveness (riskReduction, successProbability 0-100, costBenefit), "
    "dependencies and kpis. Prefer practical, low-cost actions an early-stage team can execute.\n"
    "Return a JSON object {{\"strategies\": [...]}}."
)

SCENARIO_PROMPT = (
    "TASK: RISK SCENARIO PLANNING\n\n"
    "Business: {title}\n"
    "Category: {category}\n\n"
    "High-priority risks:\n{risks}\n\n"
    "Describe 3-4 realistic scenarios in which several of these risks materialize together. For each give "
    "scenario, description, probability (0-100), combinedRisks, impact (financial, operational, strategic, "
    "timeline), warningSignals and contingencyPlan.\n"
    "Return a JSON object {{\"scenarios\": [...]}}."
)

MONITORING_PROMPT = (
    "TASK: RISK MONITORING FRAMEWORK\n\n"
    "Risks to monitor:\n{risks}\n\n"
    "Design a monitoring framework with keyRiskIndicators (indicator, measurement, threshold, frequency, "
    "owner), a reviewSchedule (weekly, monthly, quarterly) and an escalationMatrix (riskLevel, authority, "
    "timeframe, actions).\n"
    "Return valid JSON with keyRiskIndicators, reviewSchedule and escalationMatrix."
)

RECOMMENDATIONS_PROMPT = (
    "TASK: RISK MANAGEMENT RECOMMENDATIONS\n\n"
    "Business: {title}\n"
    "Overall Risk Score: {score} ({profile})\n"
    "Top Risks: {risks}\n"
    "Planned Mitigations: {mitigations}\n\n"
    "Give immediate (next 30 days), shortTerm (3-6 months) and longTerm (6-18 months) risk management "
    "actions, plus a one-sentence riskTolerance stance appropriate to the overall score.\n"
    "Return valid JSON with immediate, shortTerm, longTerm and riskTolerance."
)


def risk_profile_for(score: float) -> str:
    if score >= 80:
        return "Extreme"
    if score >= 65:
        return "High"
    if score >= 40:
        return "Moderate"
    return "Low"


def _weight(risk: RiskCategory) -> float:
    return IMPACT_WEIGHTS.get(risk.impact, 0.7) * PROBABILITY_WEIGHTS.get(risk.probability, 0.8)


def calculate_overall_risk(risks) -> OverallRisk:
    if not risks:
        return OverallRisk(score=50, profile="Moderate")
    total_weight = sum(_weight(r) for r in risks)
    weighted = sum(r.risk_score * _weight(r) for r in risks)
    score = int(clamp(round(weighted / total_weight), 10, 95))
    return OverallRisk(score=score, profile=risk_profile_for(score))


def _risk_lines(risks) -> str:
    return "\n".join(
        "- %s: %s (impact %s, probability %s, score %d)"
        % (r.category, r.description, r.impact, r.probability, r.risk_score)
        for r in risks
    ) or "None identified"


def _financial_context(inp) -> str:
    projections = inp.financial_projections
    if projections is None:
        return "Financial projections not available"
    break_even = "Month %d" % projections.break_even_month if projections.break_even_month else "Not specified"
    return (
        "- Revenue (5-year): %s\n- Total Funding Needed: %s\n- Break-even Timeline: %s"
        % (or_default(projections.revenue_5_year), or_default(projections.total_funding), break_even)
    )


def _team_context(inp) -> str:
    team = inp.team_profile
    if team is None:
        return "Team profile not available"
    return (
        "- Founder Experience: %s\n- Current Team Size: %s\n- Missing Skills: %s"
        % (
            or_default(team.founder_experience),
            team.team_size if team.team_size else "Not specified",
            ", ".join(team.missing_skills) or "Not specified",
        )
    )


class RiskAssessmentAgent(BaseAgent):
    agent_id = RISK_ASSESSMENT
    input_model = RiskAssessmentInput
    output_model = RiskAssessmentOutput

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.pipeline = Pipeline(self.agent_id, [
            Stage("risk_identification", self._identify, model=List[RiskCategory]),
            Stage("mitigation", self._mitigation,
                  requires=("risk_identification",), model=List[MitigationStrategy]),
            Stage("scenarios", self._scenarios,
                  requires=("risk_identification",), model=List[RiskScenario]),
            Stage("monitoring", self._monitoring,
                  requires=("risk_identification",), model=MonitoringFramework),
            Stage("overall_risk", self._overall_risk,
                  requires=("risk_identification",), recoverable=False),
            Stage("recommendations", self._recommendations,
                  requires=("risk_identification", "mitigation", "overall_risk"), model=RiskRecommendations),
        ])

    def process_request(self, inp, context):
        logger.info("Assessing risk for: %s (%s)", inp.title, inp.category)
        run = self.run_pipeline(self.pipeline, inp, context)
        overall = run["overall_risk"]
        return {
            "overall_risk_score": overall.score,
            "risk_profile": overall.profile,
            "major_risk_categories": run["risk_identification"],
            "mitigation_strategies": run["mitigation"],
            "risk_scenarios": run["scenarios"],
            "monitoring_framework": run["monitoring"],
            "recommendations": run["recommendations"],
            "confidence": self.calculate_confidence(run["risk_identification"]),
        }

    def _identify(self, inp, context):
        intelligence = self.fetch_enrichment(
            "risk_intelligence", {"industry": inp.category, "keywords": extract_keywords(inp.idea_text)}
        )
        prompt = IDENTIFICATION_PROMPT.format(
            title=inp.title,
            idea_text=inp.idea_text,
            category=inp.category,
            target_market=or_default(inp.target_market),
            business_model=or_default(inp.business_model),
            financial=_financial_context(inp),
            team=_team_context(inp),
            external=self.enrichment_text("Risk intelligence", intelligence),
        )
        return self.ask(prompt, List[RiskCategory], temperature=0.3, max_tokens=4000)

    def _mitigation(self, inp, context, *, risk_identification):
        top = sorted(risk_identification, key=lambda r: r.risk_score, reverse=True)[:MAX_MITIGATED_RISKS]
        prompt = MITIGATION_PROMPT.format(
            title=inp.title,
            budget=or_default((inp.user_context or UserContext()).budget),
            risks=_risk_lines(top),
        )
        return self.ask(prompt, List[MitigationStrategy], temperature=0.4, max_tokens=4500)

    def _scenarios(self, inp, context, *, risk_identification):
        high = [
            r for r in risk_identification
            if r.risk_score >= HIGH_RISK_SCORE or r.impact in ("High", "Critical")
        ]
        prompt = SCENARIO_PROMPT.format(title=inp.title, category=inp.category, risks=_risk_lines(high))
        return self.ask(prompt, List[RiskScenario], temperature=0.4, max_tokens=3500)

    def _monitoring(self, inp, context, *, risk_identification):
        prompt = MONITORING_PROMPT.format(risks=_risk_lines(risk_identification))
        return self.ask(prompt, MonitoringFramework, temperature=0.3, max_tokens=2500)

    def _overall_risk(self, inp, context, *, risk_identification):
        return calculate_overall_risk(risk_identification)

    def _recommendations(self, inp, context, *, risk_identification, mitigation, overall_risk):
        prompt = RECOMMENDATIONS_PROMPT.format(
            title=inp.title,
            score=overall_risk.score,
            profile=overall_risk.profile,
            risks=", ".join(r.category for r in risk_identification[:5]) or "None",
            mitigations=", ".join(m.strategy for m in mitigation[:5]) or "None",
        )
        return self.ask(prompt, RiskRecommendations, temperature=0.4, max_tokens=2000)

    @staticmethod
    def calculate_confidence(risks) -> RiskConfidence:
        def covers(word):
            return any(word in r.category.lower() for r in risks)

        breakdown = RiskBreakdown(
            market_risks=85 if covers("market") else 70,
            operational_risks=80 if covers("operational") else 65,
            financial_risks=75 if covers("financial") else 60,
            strategic_risks=70 if covers("strategic") else 55,
        )
        values = list(breakdown.model_dump().values())
        overall = round(sum(values) / len(values))
        return RiskConfidence(overall=int(clamp(overall, 40, 95)), breakdown=breakdown)

    def perform_quality_assurance(self, output, context):
        issues = []
        score = output.confidence.overall
        if len(output.major_risk_categories) < 3:
            issues.append(ValidationIssue(
                field="majorRiskCategories",
                message="Insufficient risk categories identified",
                severity="warning",
            ))
            score -= 10
        if not output.mitigation_strategies:
            issues.append(ValidationIssue(
                field="mitigationStrategies",
                message="No mitigation strategies provided",
                severity="error",
            ))
            score -= 20
        return QualityReport(score=clamp(score, 0, 100), issues=issues)
