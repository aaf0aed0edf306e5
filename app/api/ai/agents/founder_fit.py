"""
Founder fit: skill gaps, team building, personal investment and a readiness
score for the person behind the idea.
"""

import logging
from typing import List, Literal, Optional

from pydantic import Field, model_validator

from app.api.ai.agents.base import BaseAgent
from app.api.ai.fallbacks import FOUNDER_FIT
from app.api.ai.pipeline import Pipeline, Stage
from app.api.ai.schemas import CamelModel, QualityReport, UserContext, ValidationIssue, clamp
from app.api.ai.utils import or_default

logger = logging.getLogger(__name__)


class FounderBackground(CamelModel):
    experience: Optional[str] = None
    industry: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    previous_roles: List[str] = Field(default_factory=list)
    education: Optional[str] = None
    network: Optional[str] = None


class FounderFitInput(CamelModel):
    idea_text: str = Field(min_length=10)
    title: str = Field(min_length=1)
    category: str = Field(min_length=1)
    founder_background: Optional[FounderBackground] = None
    user_context: Optional[UserContext] = None


class Skill(CamelModel):
    name: str
    category: Literal["technical", "business", "industry", "leadership", "functional"]
    importance: Literal["critical", "important", "nice-to-have"]
    current_level: Optional[Literal["none", "beginner", "intermediate", "advanced", "expert"]] = None
    required_level: Literal["beginner", "intermediate", "advanced", "expert"]
    gap: Literal["none", "small", "moderate", "large", "critical"]
    development_time: str
    development_cost: str
    alternatives: List[str] = Field(default_factory=list)


class SkillsGapSummary(CamelModel):
    total_skills: int = Field(ge=0)
    critical_gaps: int = Field(ge=0)
    moderate_gaps: int = Field(ge=0)
    skills_covered: int = Field(ge=0)
    overall_readiness: Literal["low", "medium", "high"]


class DevelopmentPlan(CamelModel):
    priority_1: List[str] = Field(alias="priority1")
    priority_2: List[str] = Field(alias="priority2")
    priority_3: List[str] = Field(alias="priority3")
    timeline: str
    total_cost: str
    recommendations: List[str] = Field(default_factory=list)


class StrengthsAndWeaknesses(CamelModel):
    strengths: List[str]
    weaknesses: List[str]
    unique_advantages: List[str]
    risk_areas: List[str]


class SkillsAnalysis(CamelModel):
    required_skills: List[Skill]
    skills_gap_summary: SkillsGapSummary
    development_plan: DevelopmentPlan
    strengths_and_weaknesses: StrengthsAndWeaknesses
    # Names of required skills with any gap; always recomputed.
    skill_gaps: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def derive_skill_gaps(self):
        self.skill_gaps = [skill.name for skill in self.required_skills if skill.gap != "none"]
        return self


class TeamMember(CamelModel):
    role: str
    skills: List[str]
    experience: str
    salary_range: str
    equity_range: str
    timeline: str
    priority: Literal["immediate", "early", "growth", "scale"]
    alternatives: List[str] = Field(default_factory=list)
    justification: str


class Advisor(CamelModel):
    expertise: str
    value: str
    equity_range: str
    time_commitment: str
    network_value: str


class HiringPhase(CamelModel):
    phase: str
    roles: List[str]
    timeline: str
    total_cost: str
    key_milestones: List[str]


class TeamDynamics(CamelModel):
    culture_considerations: List[str]
    communication_style: str
    decision_making: str
    conflict_resolution: List[str]


class TeamComposition(CamelModel):
    core_team: List[TeamMember]
    advisors: List[Advisor]
    hiring_plan: List[HiringPhase]
    team_dynamics: TeamDynamics


class PersonalInvestment(CamelModel):
    time_commitment: str
    financial_investment: str
    opportunity_cost: str
    risk_assessment: str
    mitigation_strategies: List[str]


class Course(CamelModel):
    name: str
    cost: str
    duration: str
    provider: str
    skills: List[str]


class SkillInvestment(CamelModel):
    training_costs: str
    courses_and_certifications: List[Course]
    mentoring_and_coaching: str
    networking_investment: str
    total_development_cost: str


class TeamInvestment(CamelModel):
    year_1_team_costs: str = Field(alias="year1TeamCosts")
    equity_budget: str
    recruitment_costs: str
    retention_strategies: List[str]
    total_team_investment: str


class InvestmentRiskMitigation(CamelModel):
    contingency_planning: List[str]
    exit_strategies: List[str]
    insurance_recommendations: List[str]
    legal_protections: List[str]


class InvestmentRequirements(CamelModel):
    personal_investment: PersonalInvestment
    skill_investment: SkillInvestment
    team_investment: TeamInvestment
    risk_mitigation: InvestmentRiskMitigation


class ReadinessBreakdown(CamelModel):
    skills_readiness: int = Field(ge=0, le=100)
    experience_alignment: int = Field(ge=0, le=100)
    resource_availability: int = Field(ge=0, le=100)
    commitment_level: int = Field(ge=0, le=100)
    risk_management: int = Field(ge=0, le=100)


class ReadinessScore(CamelModel):
    overall: int = Field(ge=0, le=100)
    breakdown: ReadinessBreakdown


class FounderRecommendations(CamelModel):
    immediate: List[str]
    short_term: List[str]
    long_term: List[str]
    red_flags: List[str]
    success_factors: List[str]


class SoloFounderScenario(CamelModel):
    viability: str
    timeline: str
    risks: List[str]
    mitigations: List[str]


class CoFounderScenario(CamelModel):
    ideal_profile: str
    complementary_skills: List[str]
    equity_considerations: str
    finding_strategies: List[str]


class TeamBuildScenario(CamelModel):
    timeline: str
    priority_roles: List[str]
    total_cost: str
    funding_needs: str


class FounderScenarios(CamelModel):
    solo_founder: SoloFounderScenario
    co_founder: CoFounderScenario
    team_build: TeamBuildScenario


class FounderFitBreakdown(CamelModel):
    skills_assessment: int = Field(ge=0, le=100)
    team_planning: int = Field(ge=0, le=100)
    cost_estimation: int = Field(ge=0, le=100)
    market_alignment: int = Field(ge=0, le=100)


class FounderFitConfidence(CamelModel):
    overall: int = Field(ge=0, le=100)
    breakdown: FounderFitBreakdown


class FounderFitOutput(CamelModel):
    skills_analysis: SkillsAnalysis
    team_composition: TeamComposition
    investment_requirements: InvestmentRequirements
    readiness_score: ReadinessScore
    recommendations: FounderRecommendations
    scenarios: FounderScenarios
    confidence: FounderFitConfidence


SKILLS_PROMPT = (
    "TASK: FOUNDER SKILLS GAP ANALYSIS\n\n"
    "Business Idea: {title}\n"
    "Description: {idea_text}\n"
    "Category: {category}\n\n"
    "Founder Background:\n"
    "- Experience: {experience}\n"
    "- Industry: {industry}\n"
    "- Current Skills: {skills}\n"
    "- Previous Roles: {roles}\n"
    "- Education: {education}\n"
    "{external}\n\n"
    "Identify 6-10 skills required to build this business. For each skill give name, category "
    "(technical/business/industry/leadership/functional), importance (critical/important/nice-to-have), "
    "currentLevel, requiredLevel, gap (none/small/moderate/large/critical), developmentTime, "
    "developmentCost and alternatives (hire, outsource, partner).\n"
    "Then summarise in skillsGapSummary (totalSkills, criticalGaps, moderateGaps, skillsCovered, "
    "overallReadiness low/medium/high), a developmentPlan (priority1, priority2, priority3, timeline, "
    "totalCost, recommendations) and strengthsAndWeaknesses (strengths, weaknesses, uniqueAdvantages, "
    "riskAreas).\n"
    "Return valid JSON with requiredSkills, skillsGapSummary, developmentPlan and strengthsAndWeaknesses."
)

TEAM_PROMPT = (
    "TASK: TEAM COMPOSITION PLANNING\n\n"
    "Design optimal team composition for this startup:\n"
    "Business Idea: {title}\n"
    "Category: {category}\n"
    "Critical Skill Gaps: {critical_gaps}\n"
    "Founder Budget: {budget}\n"
    "Timeline: {timeline}\n\n"
    "Skills Assessment:\n"
    "- Critical gaps: {critical_count}\n"
    "- Overall readiness: {readiness}\n\n"
    "For each critical role give role, skills, experience, salaryRange, equityRange, timeline, priority "
    "(immediate/early/growth/scale), alternatives and justification. Also recommend advisors (expertise, "
    "value, equityRange, timeCommitment, networkValue), a phased hiringPlan (phase, roles, timeline, "
    "totalCost, keyMilestones) and teamDynamics (cultureConsiderations, communicationStyle, decisionMaking, "
    "conflictResolution).\n"
    "Return valid JSON with coreTeam, advisors, hiringPlan and teamDynamics."
)

INVESTMENT_PROMPT = (
    "TASK: INVESTMENT REQUIREMENTS FOR THE FOUNDER\n\n"
    "Business Idea: {title}\n"
    "Development Plan Cost: {development_cost}\n"
    "Core Team Roles: {roles}\n"
    "Founder Budget: {budget}\n"
    "Commitment: {commitment}\n\n"
    "Estimate what the founder must invest:\n"
    "- personalInvestment: timeCommitment, financialInvestment, opportunityCost, riskAssessment, "
    "mitigationStrategies\n"
    "- skillInvestment: trainingCosts, coursesAndCertifications (name, cost, duration, provider, skills), "
    "mentoringAndCoaching, networkingInvestment, totalDevelopmentCost\n"
    "- teamInvestment: year1TeamCosts, equityBudget, recruitmentCosts, retentionStrategies, "
    "totalTeamInvestment\n"
    "- riskMitigation: contingencyPlanning, exitStrategies, insuranceRecommendations, legalProtections\n"
    "Return valid JSON with those four sections."
)

RECOMMENDATIONS_PROMPT = (
    "TASK: FOUNDER RECOMMENDATIONS\n\n"
    "Business Idea: {title}\n"
    "Overall Readiness: {readiness}%\n"
    "Critical Skill Gaps: {critical_gaps}\n"
    "Skills Readiness: {skills_readiness}%\n"
    "Experience Alignment: {experience_alignment}%\n"
    "Resource Availability: {resource_availability}%\n\n"
    "Give specific, actionable recommendations:\n"
    "- immediate (next 30 days)\n"
    "- shortTerm (3-6 months)\n"
    "- longTerm (6-18 months)\n"
    "- redFlags that should make the founder reconsider\n"
    "- successFactors\n"
    "Return valid JSON with immediate, shortTerm, longTerm, redFlags and successFactors."
)

SCENARIOS_PROMPT = (
    "TASK: FOUNDER SCENARIO COMPARISON\n\n"
    "Business Idea: {title}\n"
    "Critical Skill Gaps: {critical_gaps}\n"
    "Planned Core Team: {roles}\n\n"
    "Compare three paths:\n"
    "- soloFounder: viability, timeline, risks, mitigations\n"
    "- coFounder: idealProfile, complementarySkills, equityConsiderations, findingStrategies\n"
    "- teamBuild: timeline, priorityRoles, totalCost, fundingNeeds\n"
    "Return valid JSON with soloFounder, coFounder and teamBuild."
)


def _contains(text: Optional[str], *needles: str) -> bool:
    lowered = (text or "").lower()
    return any(needle in lowered for needle in needles)


def _specified(value: Optional[str]) -> bool:
    return bool(value) and value != "Not specified"


def skills_readiness(skills_analysis: SkillsAnalysis) -> float:
    summary = skills_analysis.skills_gap_summary
    if summary.total_skills == 0:
        return 50
    coverage = summary.skills_covered / summary.total_skills * 100
    return clamp(coverage - summary.critical_gaps * 15, 10, 90)


def experience_alignment(background: FounderBackground) -> float:
    score = 40
    if _contains(background.experience, "senior", "lead"):
        score += 20
    if _specified(background.industry):
        score += 15
    if background.previous_roles:
        score += 15
    if _contains(background.experience, "startup", "entrepreneur"):
        score += 20
    return min(90, score)


def resource_availability(user: UserContext) -> float:
    score = 50
    if _contains(user.budget, "high", "substantial"):
        score += 25
    elif _contains(user.budget, "moderate"):
        score += 10
    elif _contains(user.budget, "low", "limited"):
        score -= 15

    if _contains(user.commitment, "full-time"):
        score += 15
    elif _contains(user.commitment, "part-time"):
        score -= 10
    elif _contains(user.commitment, "side"):
        score -= 20
    return clamp(score, 10, 90)


def commitment_level(user: UserContext) -> float:
    score = 50
    if _contains(user.commitment, "full-time"):
        score += 30
    elif _contains(user.commitment, "part-time"):
        score += 10
    elif _contains(user.commitment, "side"):
        score -= 10

    if _contains(user.risk_tolerance, "high"):
        score += 15
    elif _contains(user.risk_tolerance, "medium"):
        score += 5
    elif _contains(user.risk_tolerance, "low"):
        score -= 15
    return clamp(score, 15, 90)


def risk_management(background: FounderBackground, user: UserContext) -> float:
    score = 60
    if _specified(background.experience):
        score += 15
    if _specified(background.network):
        score += 10
    if _contains(user.risk_tolerance, "medium"):
        score += 10
    return clamp(score, 20, 85)


def calculate_readiness(inp: FounderFitInput, skills_analysis: SkillsAnalysis) -> ReadinessScore:
    background = inp.founder_background or FounderBackground()
    user = inp.user_context or UserContext()
    parts = ReadinessBreakdown(
        skills_readiness=round(skills_readiness(skills_analysis)),
        experience_alignment=round(experience_alignment(background)),
        resource_availability=round(resource_availability(user)),
        commitment_level=round(commitment_level(user)),
        risk_management=round(risk_management(background, user)),
    )
    values = list(parts.model_dump().values())
    overall = round(sum(values) / len(values))
    return ReadinessScore(overall=int(clamp(overall, 15, 95)), breakdown=parts)


class FounderFitAgent(BaseAgent):
    agent_id = FOUNDER_FIT
    input_model = FounderFitInput
    output_model = FounderFitOutput

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.pipeline = Pipeline(self.agent_id, [
            Stage("skills_analysis", self._skills_analysis, model=SkillsAnalysis),
            Stage("team_composition", self._team_composition,
                  requires=("skills_analysis",), model=TeamComposition),
            Stage("investment_requirements", self._investment_requirements,
                  requires=("skills_analysis", "team_composition"), model=InvestmentRequirements),
            Stage("readiness", self._readiness, requires=("skills_analysis",), recoverable=False),
            Stage("recommendations", self._recommendations,
                  requires=("skills_analysis", "readiness"), model=FounderRecommendations),
            Stage("scenarios", self._scenarios,
                  requires=("skills_analysis", "team_composition"), model=FounderScenarios),
        ])

    def process_request(self, inp, context):
        logger.info("Assessing founder fit for: %s", inp.title)
        run = self.run_pipeline(self.pipeline, inp, context)
        return {
            "skills_analysis": run["skills_analysis"],
            "team_composition": run["team_composition"],
            "investment_requirements": run["investment_requirements"],
            "readiness_score": run["readiness"],
            "recommendations": run["recommendations"],
            "scenarios": run["scenarios"],
            "confidence": self.calculate_confidence(run["skills_analysis"], run["team_composition"]),
        }

    @staticmethod
    def _critical_gaps(skills_analysis):
        return [s.name for s in skills_analysis.required_skills if s.gap in ("critical", "large")]

    def _skills_analysis(self, inp, context):
        background = inp.founder_background or FounderBackground()
        market = self.fetch_enrichment("skills_market", {"category": inp.category})
        prompt = SKILLS_PROMPT.format(
            title=inp.title,
            idea_text=inp.idea_text,
            category=inp.category,
            experience=or_default(background.experience),
            industry=or_default(background.industry),
            skills=", ".join(background.skills) or "Not specified",
            roles=", ".join(background.previous_roles) or "Not specified",
            education=or_default(background.education),
            external=self.enrichment_text("Skills market data", market),
        )
        return self.ask(prompt, SkillsAnalysis, temperature=0.3, max_tokens=4000)

    def _team_composition(self, inp, context, *, skills_analysis):
        user = inp.user_context or UserContext()
        prompt = TEAM_PROMPT.format(
            title=inp.title,
            category=inp.category,
            critical_gaps=", ".join(self._critical_gaps(skills_analysis)) or "None",
            budget=or_default(user.budget),
            timeline=or_default(user.timeline),
            critical_count=skills_analysis.skills_gap_summary.critical_gaps,
            readiness=skills_analysis.skills_gap_summary.overall_readiness,
        )
        return self.ask(prompt, TeamComposition, temperature=0.4, max_tokens=4500)

    def _investment_requirements(self, inp, context, *, skills_analysis, team_composition):
        user = inp.user_context or UserContext()
        prompt = INVESTMENT_PROMPT.format(
            title=inp.title,
            development_cost=skills_analysis.development_plan.total_cost,
            roles=", ".join(m.role for m in team_composition.core_team) or "None planned",
            budget=or_default(user.budget),
            commitment=or_default(user.commitment),
        )
        return self.ask(prompt, InvestmentRequirements, temperature=0.3, max_tokens=4000)

    def _readiness(self, inp, context, *, skills_analysis):
        return calculate_readiness(inp, skills_analysis)

    def _recommendations(self, inp, context, *, skills_analysis, readiness):
        prompt = RECOMMENDATIONS_PROMPT.format(
            title=inp.title,
            readiness=readiness.overall,
            critical_gaps=skills_analysis.skills_gap_summary.critical_gaps,
            skills_readiness=readiness.breakdown.skills_readiness,
            experience_alignment=readiness.breakdown.experience_alignment,
            resource_availability=readiness.breakdown.resource_availability,
        )
        return self.ask(prompt, FounderRecommendations, temperature=0.4, max_tokens=2500)

    def _scenarios(self, inp, context, *, skills_analysis, team_composition):
        prompt = SCENARIOS_PROMPT.format(
            title=inp.title,
            critical_gaps=", ".join(self._critical_gaps(skills_analysis)) or "None",
            roles=", ".join(m.role for m in team_composition.core_team) or "None planned",
        )
        return self.ask(prompt, FounderScenarios, temperature=0.4, max_tokens=2000)

    @staticmethod
    def calculate_confidence(skills_analysis, team_composition) -> FounderFitConfidence:
        skills = 80 if skills_analysis.required_skills else 60
        team = 75 if team_composition.core_team else 55
        cost = 70
        market = 65
        overall = round((skills + team + cost + market) / 4)
        return FounderFitConfidence(
            overall=int(clamp(overall, 45, 90)),
            breakdown=FounderFitBreakdown(
                skills_assessment=skills,
                team_planning=team,
                cost_estimation=cost,
                market_alignment=market,
            ),
        )

    def perform_quality_assurance(self, output, context):
        issues = []
        score = output.confidence.overall
        if output.skills_analysis.skills_gap_summary.critical_gaps > 3:
            issues.append(ValidationIssue(
                field="skillsAnalysis.skillsGapSummary.criticalGaps",
                message="Too many critical skill gaps identified",
                severity="warning",
            ))
            score -= 10
        if output.readiness_score.overall < 50:
            issues.append(ValidationIssue(
                field="readinessScore.overall",
                message="Low founder readiness score",
                severity="warning",
            ))
            score -= 5
        return QualityReport(score=clamp(score, 0, 100), issues=issues)
