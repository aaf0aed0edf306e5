"""
Market research: problem validation, demand signals, customer evidence,
competitive landscape and timing for a business idea.
"""

import logging
import re
from typing import List, Literal, Optional

from pydantic import Field

from app.api.ai.agents.base import BaseAgent
from app.api.ai.fallbacks import MARKET_RESEARCH
from app.api.ai.pipeline import RECOVERABLE_ERRORS, Pipeline, Stage, validate_fallback
from app.api.ai.schemas import CamelModel, QualityReport, ValidationIssue, clamp
from app.api.ai.utils import customer_segments, extract_keywords

logger = logging.getLogger(__name__)


class MarketResearchInput(CamelModel):
    title: str = Field(min_length=3)
    description: str = Field(min_length=10)
    category: str = Field(min_length=1)
    tier: Literal["public", "exclusive", "ai-generated"] = "public"


class ProblemStatement(CamelModel):
    summary: str
    quantified_impact: str
    current_solutions: List[str]
    solution_limitations: List[str]
    cost_of_inaction: str


class MarketSignal(CamelModel):
    type: Literal["search_trend", "funding_activity", "regulatory_change", "social_sentiment", "patent_activity"]
    description: str
    strength: Literal["low", "medium", "high"]
    trend: Literal["declining", "stable", "increasing"]
    source: str
    quantified_impact: Optional[str] = None
    timeframe: Optional[str] = None


class CustomerProfile(CamelModel):
    industry: str
    company_size: Literal["startup", "small", "medium", "enterprise"]
    role: str
    geography: str


class PainPoint(CamelModel):
    description: str
    quote: str
    quantified_impact: str


class CurrentSolution(CamelModel):
    description: str
    cost: str
    limitations: List[str]


class WillingnessToPay(CamelModel):
    amount: str
    confidence: Literal["low", "medium", "high"]
    reasoning_basis: str


class CustomerEvidence(CamelModel):
    customer_profile: CustomerProfile
    pain_point: PainPoint
    current_solution: CurrentSolution
    willingness_to_pay: WillingnessToPay
    credibility_score: float = Field(ge=0, le=100)


class CompetitorFunding(CamelModel):
    total_raised: str
    last_round: str
    stage: str


class Competitor(CamelModel):
    name: str
    description: str
    market_position: Literal["startup", "challenger", "leader", "niche"]
    funding: CompetitorFunding
    strengths: List[str]
    weaknesses: List[str]
    differentiation_opportunity: str


class MarketTiming(CamelModel):
    assessment: Literal["too-early", "perfect", "getting-late", "too-late"]
    reasoning: str
    catalysts: List[str]
    confidence: float = Field(ge=0, le=100)


class MarketResearchBreakdown(CamelModel):
    problem_validation: int = Field(ge=0, le=100)
    market_signals: int = Field(ge=0, le=100)
    customer_evidence: int = Field(ge=0, le=100)
    competitor_analysis: int = Field(ge=0, le=100)
    market_timing: int = Field(ge=0, le=100)


class MarketResearchConfidence(CamelModel):
    overall: int = Field(ge=0, le=100)
    breakdown: MarketResearchBreakdown


class MarketResearchOutput(CamelModel):
    problem_statement: ProblemStatement
    market_signals: List[MarketSignal]
    customer_evidence: List[CustomerEvidence]
    competitor_analysis: List[Competitor]
    market_timing: MarketTiming
    confidence: MarketResearchConfidence


PROBLEM_PROMPT = (
    "TASK: PROBLEM STATEMENT ANALYSIS\n\n"
    "Analyze the problem space for the business idea: \"{title}\"\n"
    "Description: {description}\n"
    "Category: {category}\n\n"
    "Generate a comprehensive problem statement with:\n"
    "1. A 2-3 sentence problem summary with specific pain points\n"
    "2. Quantified impact metrics (dollar amounts, percentages, time lost)\n"
    "3. 4-5 current solutions in the market\n"
    "4. Limitations of each current solution\n"
    "5. Cost of inaction for potential customers\n\n"
    "Use realistic industry data and market assumptions. Focus on {category} sector specifics.\n"
    "Consider the analysis depth: {depth}\n\n"
    "Return valid JSON matching this structure:\n"
    "{{\"summary\": \"string\", \"quantifiedImpact\": \"string\", \"currentSolutions\": [\"string\"], "
    "\"solutionLimitations\": [\"string\"], \"costOfInaction\": \"string\"}}"
)

SIGNALS_PROMPT = (
    "TASK: MARKET SIGNAL DETECTION\n\n"
    "Detect market signals for business idea: \"{title}\"\n"
    "Category: {category}\n"
    "Analysis depth: {depth}\n"
    "{external}\n\n"
    "Generate 3-6 market signals including:\n"
    "- Search trends and interest indicators\n"
    "- Funding activity in the sector\n"
    "- Regulatory changes affecting the market\n"
    "- Social sentiment and discussion volume\n"
    "- Patent/innovation activity\n\n"
    "Each signal should have:\n"
    "- type (search_trend, funding_activity, regulatory_change, social_sentiment, patent_activity)\n"
    "- description with specific metrics\n"
    "- strength (low, medium, high)\n"
    "- trend (declining, stable, increasing)\n"
    "- source or basis for the signal\n"
    "- quantifiedImpact where possible\n"
    "- timeframe\n\n"
    "Return a JSON object {{\"signals\": [...]}} holding the array of market signals."
)

EVIDENCE_PROMPT = (
    "TASK: CUSTOMER EVIDENCE RESEARCH\n\n"
    "Generate realistic customer evidence for a {industry} {size} company:\n"
    "Business idea: \"{title}\"\n"
    "Problem context: {problem}\n"
    "Target segment: {industry} {size} companies\n\n"
    "Create detailed customer evidence including:\n"
    "customerProfile: industry ({industry}), companySize ({size}), decision maker role, geography\n"
    "painPoint: description, a realistic conversational quote, quantifiedImpact (time/money lost)\n"
    "currentSolution: what they use today, its cost, 3-4 specific limitations\n"
    "willingnessToPay: price range, confidence (low/medium/high), reasoningBasis\n"
    "credibilityScore: 1-100 (how realistic this evidence is)\n\n"
    "Make this sound like real customer research, not generic responses.\n"
    "Return valid JSON matching the CustomerEvidence structure."
)

COMPETITOR_PROMPT = (
    "TASK: COMPETITOR LANDSCAPE ANALYSIS\n\n"
    "Analyze competitors for business idea: \"{title}\"\n"
    "Category: {category}\n"
    "Problem being solved: {problem}\n"
    "{external}\n\n"
    "Identify 2-4 key competitors. For each competitor:\n"
    "- name\n"
    "- description of their solution\n"
    "- marketPosition: startup, challenger, leader, or niche\n"
    "- funding: totalRaised, lastRound, stage\n"
    "- 3-4 strengths and 3-4 weaknesses\n"
    "- differentiationOpportunity against this competitor\n\n"
    "Include a mix of direct competitors, indirect competitors and adjacent players who might enter "
    "the space. Use realistic funding numbers and market positions.\n"
    "Return a JSON object {{\"competitors\": [...]}} holding the array of competitors."
)

TIMING_PROMPT = (
    "TASK: MARKET TIMING ASSESSMENT\n\n"
    "Assess market timing for business idea: \"{title}\"\n"
    "Category: {category}\n\n"
    "Market signals:\n{signals}\n\n"
    "Competitive landscape:\n{competitors}\n\n"
    "Consider technology readiness, regulation, market maturity, the funding climate, buyer readiness "
    "and first-mover versus fast-follower dynamics.\n\n"
    "Assessment options:\n"
    "- too-early: Technology or market not ready\n"
    "- perfect: Ideal timing window\n"
    "- getting-late: Window closing but still viable\n"
    "- too-late: Market saturated or declining\n\n"
    "Provide the assessment with reasoning, 3-5 specific catalysts driving timing and a confidence "
    "score 1-100.\n"
    "Return valid JSON with assessment, reasoning, catalysts and confidence."
)

COMPLETENESS_THRESHOLD = 70
CONSISTENCY_THRESHOLD = 75
ACTIONABILITY_THRESHOLD = 60


class MarketResearchAgent(BaseAgent):
    agent_id = MARKET_RESEARCH
    input_model = MarketResearchInput
    output_model = MarketResearchOutput

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.pipeline = Pipeline(self.agent_id, [
            Stage("problem_statement", self._problem_statement, model=ProblemStatement),
            Stage("market_signals", self._market_signals, model=List[MarketSignal]),
            Stage("customer_evidence", self._customer_evidence,
                  requires=("problem_statement",), model=List[CustomerEvidence]),
            Stage("competitors", self._competitors,
                  requires=("problem_statement",), model=List[Competitor]),
            Stage("market_timing", self._market_timing,
                  requires=("market_signals", "competitors"), model=MarketTiming),
        ])

    def process_request(self, inp, context):
        logger.info("Processing market research for: %s", inp.title)
        run = self.run_pipeline(self.pipeline, inp, context)
        return {
            "problem_statement": run["problem_statement"],
            "market_signals": run["market_signals"],
            "customer_evidence": run["customer_evidence"],
            "competitor_analysis": run["competitors"],
            "market_timing": run["market_timing"],
            "confidence": self.calculate_confidence(
                run["problem_statement"],
                run["market_signals"],
                run["customer_evidence"],
                run["competitors"],
                run["market_timing"],
            ),
        }

    # -- stages ---------------------------------------------------------

    def _problem_statement(self, inp, context):
        prompt = PROBLEM_PROMPT.format(
            title=inp.title, description=inp.description, category=inp.category, depth=context.analysis_depth
        )
        return self.ask(prompt, ProblemStatement, temperature=0.3, max_tokens=1000)

    def _market_signals(self, inp, context):
        trends = self.fetch_enrichment(
            "market_trends", {"keywords": extract_keywords(inp.description), "category": inp.category}
        )
        prompt = SIGNALS_PROMPT.format(
            title=inp.title,
            category=inp.category,
            depth=context.analysis_depth,
            external=self.enrichment_text("External market data", trends),
        )
        return self.ask(prompt, List[MarketSignal], temperature=0.4, max_tokens=1500)

    def _customer_evidence(self, inp, context, *, problem_statement):
        evidence = []
        for segment in customer_segments(inp.category)[:3]:
            prompt = EVIDENCE_PROMPT.format(
                industry=segment["industry"],
                size=segment["size"],
                title=inp.title,
                problem=problem_statement.summary,
            )
            try:
                evidence.append(self.ask(prompt, CustomerEvidence, temperature=0.5, max_tokens=800))
            except RECOVERABLE_ERRORS as exc:
                logger.warning(
                    "Customer evidence for %s %s failed (%s); using fallback.",
                    segment["industry"],
                    segment["size"],
                    type(exc).__name__,
                )
                self.note_fallback("customer_evidence.segment")
                evidence.append(validate_fallback(
                    self.agent_id, "customer_evidence.segment", CustomerEvidence, inp, segment=segment
                ))
        return evidence

    def _competitors(self, inp, context, *, problem_statement):
        companies = self.fetch_enrichment(
            "companies", {"keywords": extract_keywords(inp.description), "category": inp.category}
        )
        prompt = COMPETITOR_PROMPT.format(
            title=inp.title,
            category=inp.category,
            problem=problem_statement.summary,
            external=self.enrichment_text("Competitor data", companies),
        )
        return self.ask(prompt, List[Competitor], temperature=0.4, max_tokens=1200)

    def _market_timing(self, inp, context, *, market_signals, competitors):
        signals = "\n".join(
            "- %s: %s (%s strength, %s)" % (s.type, s.description, s.strength, s.trend) for s in market_signals
        )
        rivals = "\n".join(
            "- %s: %s with %s raised" % (c.name, c.market_position, c.funding.total_raised) for c in competitors
        )
        prompt = TIMING_PROMPT.format(
            title=inp.title, category=inp.category, signals=signals or "None", competitors=rivals or "None"
        )
        return self.ask(prompt, MarketTiming, temperature=0.3, max_tokens=600)

    # -- scoring --------------------------------------------------------

    @staticmethod
    def calculate_confidence(problem, signals, evidence, competitors, timing) -> MarketResearchConfidence:
        def capped(value):
            return int(round(min(95, value)))

        def count_score(items, full):
            return full if len(items) >= 3 else len(items) * 6

        problem_validation = capped(
            (20 if problem.quantified_impact else 0)
            + count_score(problem.current_solutions, 20)
            + count_score(problem.solution_limitations, 20)
            + (20 if problem.cost_of_inaction else 0)
            + (15 if len(problem.summary) > 100 else 10)
        )
        signal_score = capped(
            len(signals) * 15
            + sum(10 for s in signals if s.strength == "high")
            + sum(5 for s in signals if s.quantified_impact)
        )
        if evidence:
            mean_credibility = sum(e.credibility_score for e in evidence) / len(evidence)
            evidence_score = capped(len(evidence) * 20 + mean_credibility * 0.3)
        else:
            evidence_score = 0
        competitor_score = capped(
            (30 if len(competitors) >= 2 else len(competitors) * 15)
            + sum(15 for c in competitors if c.funding.total_raised != "Unknown")
            + sum(len(c.strengths) + len(c.weaknesses) for c in competitors) * 2
        )
        timing_score = int(round(timing.confidence))

        overall = round(
            problem_validation * 0.25
            + signal_score * 0.2
            + evidence_score * 0.25
            + competitor_score * 0.15
            + timing_score * 0.15
        )
        return MarketResearchConfidence(
            overall=int(clamp(overall, 0, 100)),
            breakdown=MarketResearchBreakdown(
                problem_validation=problem_validation,
                market_signals=signal_score,
                customer_evidence=evidence_score,
                competitor_analysis=competitor_score,
                market_timing=timing_score,
            ),
        )

    def business_checks(self, output):
        issues = []
        if len(output.customer_evidence) < 2:
            issues.append(ValidationIssue(
                field="customerEvidence",
                message="At least 2 customer evidence examples required",
                severity="warning",
            ))
        if len(output.market_signals) < 3:
            issues.append(ValidationIssue(
                field="marketSignals",
                message="At least 3 market signals recommended",
                severity="warning",
            ))
        return issues

    def perform_quality_assurance(self, output, context):
        issues = []
        completeness = self.assess_completeness(output)
        if completeness < COMPLETENESS_THRESHOLD:
            issues.append(ValidationIssue(
                field="completeness",
                message="Data completeness score %s below threshold %s" % (completeness, COMPLETENESS_THRESHOLD),
                severity="warning",
            ))
        consistency = self.assess_consistency(output)
        if consistency < CONSISTENCY_THRESHOLD:
            issues.append(ValidationIssue(
                field="consistency",
                message="Inconsistencies detected between analysis sections",
                severity="warning",
            ))
        actionability = self.assess_actionability(output)
        if actionability < ACTIONABILITY_THRESHOLD:
            issues.append(ValidationIssue(
                field="actionability",
                message="Analysis lacks specific, actionable insights",
                severity="warning",
            ))
        score = completeness * 0.3 + consistency * 0.3 + actionability * 0.4
        return QualityReport(score=clamp(score, 0, 100), issues=issues)

    @staticmethod
    def assess_completeness(output) -> int:
        checks = [
            (len(output.problem_statement.summary) > 50, 15),
            (len(output.problem_statement.quantified_impact) > 0, 10),
            (len(output.problem_statement.current_solutions) >= 3, 10),
            (len(output.market_signals) >= 3, 15),
            (len(output.customer_evidence) >= 2, 15),
            (len(output.competitor_analysis) >= 2, 15),
            (len(output.market_timing.catalysts) >= 3, 10),
            (output.confidence.overall >= 70, 10),
        ]
        return sum(points for passed, points in checks if passed)

    @staticmethod
    def assess_consistency(output) -> int:
        score = 100
        keywords = [w for w in output.problem_statement.summary.lower().split() if len(w) > 3]

        def mentions_problem(text):
            text = text.lower()
            return any(word in text for word in keywords)

        if not any(mentions_problem(e.pain_point.description) for e in output.customer_evidence):
            score -= 20
        if not any(mentions_problem(c.description) for c in output.competitor_analysis):
            score -= 15

        increasing = sum(1 for s in output.market_signals if s.trend == "increasing")
        assessment = output.market_timing.assessment
        if (assessment == "too-early" and increasing > 2) or (assessment == "too-late" and increasing > 1):
            score -= 25
        return max(0, score)

    @staticmethod
    def assess_actionability(output) -> int:
        score = 0
        metrics = [output.problem_statement.quantified_impact]
        metrics += [e.pain_point.quantified_impact for e in output.customer_evidence]
        metrics += [s.quantified_impact for s in output.market_signals if s.quantified_impact]
        if any(re.search(r"\$|%|\d+", m) for m in metrics):
            score += 25
        if any(s.timeframe for s in output.market_signals):
            score += 15
        if all(len(c.differentiation_opportunity) > 20 for c in output.competitor_analysis):
            score += 20
        if all(e.customer_profile.industry and e.customer_profile.role for e in output.customer_evidence):
            score += 20
        catalyst_words = ("launch", "regulation", "trend", "investment")
        if any(word in c.lower() for c in output.market_timing.catalysts for word in catalyst_words):
            score += 20
        return min(100, score)
