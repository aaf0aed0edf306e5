"""
Financial modeling: market sizing, revenue and cost projections, funding
needs and scenario analysis.
"""

import logging
from typing import List, Optional

from pydantic import Field, model_validator

from app.api.ai.agents.base import BaseAgent
from app.api.ai.fallbacks import FINANCIAL_MODELING, year5_revenue
from app.api.ai.pipeline import Pipeline, Stage
from app.api.ai.schemas import CamelModel, QualityReport, UserContext, clamp
from app.api.ai.utils import ceil_div, format_usd, or_default, parse_amount

logger = logging.getLogger(__name__)


class FinancialModelingInput(CamelModel):
    idea_text: str = Field(min_length=10)
    title: str = Field(min_length=1)
    category: str = Field(min_length=1)
    target_market: Optional[str] = None
    business_model: Optional[str] = None
    user_context: Optional[UserContext] = None


class MarketSegmentSize(CamelModel):
    value: str
    description: str
    methodology: str
    assumptions: List[str] = Field(default_factory=list)


class ObtainableMarket(MarketSegmentSize):
    market_share: str
    timeframe: str


class TamSamSom(CamelModel):
    tam: MarketSegmentSize
    sam: MarketSegmentSize
    som: ObtainableMarket
    confidence: float = Field(ge=0, le=100)

    @model_validator(mode="after")
    def check_nesting(self):
        tam, sam, som = (parse_amount(s.value) for s in (self.tam, self.sam, self.som))
        if sam and tam and sam > tam:
            raise ValueError("SAM %s exceeds TAM %s" % (self.sam.value, self.tam.value))
        if som and sam and som > sam:
            raise ValueError("SOM %s exceeds SAM %s" % (self.som.value, self.sam.value))
        return self


class RevenueProjection(CamelModel):
    year: int = Field(ge=1, le=10)
    revenue: str
    customers: int = Field(ge=0)
    average_revenue_per_user: str
    growth_rate: str
    assumptions: List[str] = Field(default_factory=list)
    confidence: float = Field(ge=0, le=100)


class DevelopmentCost(CamelModel):
    category: str
    amount: str
    description: str
    timeline: str
    confidence: str


class OperationalCost(CamelModel):
    category: str
    monthly_amount: str
    description: str
    scaling_factor: str
    confidence: str


class MarketingCost(CamelModel):
    category: str
    amount: str
    description: str
    timeline: str
    expected_roi: str = Field(alias="expectedROI")


class UnitEconomics(CamelModel):
    customer_acquisition_cost: str
    customer_lifetime_value: str
    ltv_to_cac_ratio: str = Field(alias="ltv2cacRatio")
    payback_period: str


class CostAnalysis(CamelModel):
    development_costs: List[DevelopmentCost]
    operational_costs: List[OperationalCost]
    marketing_costs: List[MarketingCost]
    total_first_year_costs: str
    cost_structure: str
    unit_economics: UnitEconomics


class FundingStage(CamelModel):
    stage: str
    amount: str
    timeline: str
    milestones: List[str]
    valuation: str
    dilution: str


class UseOfFunds(CamelModel):
    category: str
    percentage: float = Field(ge=0, le=100)
    amount: str
    description: str


class InvestorType(CamelModel):
    type: str
    target_amount: str
    probability: float = Field(ge=0, le=1)
    requirements: List[str]


class FundingAlternative(CamelModel):
    type: str
    description: str
    pros: List[str]
    cons: List[str]


class FundingRequirements(CamelModel):
    total_required: str
    stages: List[FundingStage]
    use_of_funds: List[UseOfFunds]
    investor_types: List[InvestorType]
    alternatives: List[FundingAlternative]


class KeyMetrics(CamelModel):
    break_even_month: int = Field(ge=1, le=60)
    cash_flow_positive: str
    burn_rate: str
    runway: str
    gross_margin: str
    net_margin: str


class Scenario(CamelModel):
    revenue_5_year: str = Field(alias="revenue5Year")
    profitability: str
    description: str


class FinancialScenarios(CamelModel):
    conservative: Scenario
    realistic: Scenario
    optimistic: Scenario


class FinancialBreakdown(CamelModel):
    market_size: int = Field(ge=0, le=100)
    revenue: int = Field(ge=0, le=100)
    costs: int = Field(ge=0, le=100)
    funding: int = Field(ge=0, le=100)


class FinancialConfidence(CamelModel):
    overall: int = Field(ge=0, le=100)
    breakdown: FinancialBreakdown


class FinancialModelingOutput(CamelModel):
    market_size: TamSamSom
    revenue_projections: List[RevenueProjection]
    cost_analysis: CostAnalysis
    funding_requirements: FundingRequirements
    key_metrics: KeyMetrics
    scenarios: FinancialScenarios
    confidence: FinancialConfidence


MARKET_SIZE_PROMPT = (
    "TASK: TAM/SAM/SOM MARKET SIZE ANALYSIS\n\n"
    "Business Idea: {title}\n"
    "Description: {idea_text}\n"
    "Category: {category}\n"
    "Target Market: {target_market}\n"
    "Business Model: {business_model}\n"
    "{external}\n\n"
    "Provide:\n"
    "1. TAM (Total Addressable Market): total market demand for the category, global scope\n"
    "2. SAM (Serviceable Addressable Market): the portion of TAM the business model can reach\n"
    "3. SOM (Serviceable Obtainable Market): realistic capture in 3-5 years, with marketShare and timeframe\n\n"
    "For each give value (e.g. \"$50B\"), description, methodology and 3 assumptions.\n"
    "Add an overall confidence score 0-100 reflecting data quality.\n"
    "Return JSON with tam, sam, som and confidence."
)

REVENUE_PROMPT = (
    "TASK: REVENUE PROJECTIONS (5 YEARS)\n\n"
    "Business Idea: {title}\n"
    "Description: {idea_text}\n"
    "Business Model: {business_model}\n"
    "Market Size: TAM {tam}, SAM {sam}, SOM {som}\n"
    "Founder Budget: {budget}\n"
    "Timeline: {timeline}\n\n"
    "Create year-by-year projections for years 1 to 5. For each year provide year, revenue, customers, "
    "averageRevenuePerUser, growthRate (\"N/A\" for year 1), 3 assumptions and a confidence score 0-100.\n"
    "Keep growth realistic for an early-stage company and consistent with the SOM.\n"
    "Return a JSON object {{\"projections\": [...]}}."
)

COST_PROMPT = (
    "TASK: COST STRUCTURE ANALYSIS\n\n"
    "Business Idea: {title}\n"
    "Description: {idea_text}\n"
    "Category: {category}\n"
    "Business Model: {business_model}\n"
    "Founder Budget: {budget}\n\n"
    "Break down first-year costs:\n"
    "- developmentCosts: category, amount, description, timeline, confidence (High/Medium/Low)\n"
    "- operationalCosts: category, monthlyAmount, description, scalingFactor, confidence\n"
    "- marketingCosts: category, amount, description, timeline, expectedROI\n"
    "- totalFirstYearCosts as a dollar amount\n"
    "- costStructure: one-line characterisation\n"
    "- unitEconomics: customerAcquisitionCost, customerLifetimeValue, ltv2cacRatio, paybackPeriod\n"
    "Return valid JSON with those keys."
)

FUNDING_PROMPT = (
    "TASK: FUNDING REQUIREMENTS ANALYSIS\n\n"
    "Business Idea: {title}\n"
    "Year 1 Revenue: {year1_revenue}\n"
    "Year 5 Revenue: {year5_revenue}\n"
    "First Year Costs: {first_year_costs}\n"
    "Founder Budget: {budget}\n\n"
    "Determine:\n"
    "- totalRequired funding to reach profitability\n"
    "- stages: stage, amount, timeline, milestones, valuation, dilution\n"
    "- useOfFunds: category, percentage, amount, description (percentages sum to 100)\n"
    "- investorTypes: type, targetAmount, probability (0-1), requirements\n"
    "- alternatives: type, description, pros, cons\n"
    "Return valid JSON with those keys."
)

SCENARIO_PROMPT = (
    "TASK: FINANCIAL SCENARIO ANALYSIS\n\n"
    "Business Idea: {title}\n"
    "SOM: {som}\n"
    "Baseline Year 5 Revenue: {year5_revenue}\n\n"
    "Model three scenarios: conservative, realistic and optimistic. For each give revenue5Year, "
    "profitability (when the business becomes profitable) and a one-sentence description of the "
    "conditions behind it.\n"
    "Return JSON {{\"conservative\": {{...}}, \"realistic\": {{...}}, \"optimistic\": {{...}}}}."
)

MAX_BREAK_EVEN_MONTH = 60
NO_REVENUE_BREAK_EVEN_MONTH = 24


def calculate_key_metrics(revenue_projections, cost_analysis) -> KeyMetrics:
    """Break-even, burn and margins from year-1 revenue and first-year costs."""
    ordered = sorted(revenue_projections, key=lambda p: p.year)
    year1_revenue = parse_amount(ordered[0].revenue) if ordered else 0
    first_year_costs = parse_amount(cost_analysis.total_first_year_costs)

    if year1_revenue > 0:
        break_even = min(MAX_BREAK_EVEN_MONTH, max(1, ceil_div(first_year_costs, year1_revenue)))
    else:
        break_even = NO_REVENUE_BREAK_EVEN_MONTH

    return KeyMetrics(
        break_even_month=break_even,
        cash_flow_positive="Month %d" % (break_even + 6),
        burn_rate="%s/month" % format_usd(first_year_costs / 12),
        runway="18-24 months with initial funding",
        gross_margin="65-75%",
        net_margin="15-25%" if year1_revenue > first_year_costs else "Negative in Year 1",
    )


class FinancialModelingAgent(BaseAgent):
    agent_id = FINANCIAL_MODELING
    input_model = FinancialModelingInput
    output_model = FinancialModelingOutput

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.pipeline = Pipeline(self.agent_id, [
            Stage("market_size", self._market_size, model=TamSamSom),
            Stage("revenue_projections", self._revenue_projections,
                  requires=("market_size",), model=List[RevenueProjection]),
            Stage("cost_analysis", self._cost_analysis, model=CostAnalysis),
            Stage("funding_requirements", self._funding_requirements,
                  requires=("revenue_projections", "cost_analysis"), model=FundingRequirements),
            Stage("scenarios", self._scenarios,
                  requires=("market_size", "revenue_projections"), model=FinancialScenarios),
            Stage("key_metrics", self._key_metrics,
                  requires=("revenue_projections", "cost_analysis"), recoverable=False),
        ])

    def process_request(self, inp, context):
        logger.info("Building financial model for: %s", inp.title)
        run = self.run_pipeline(self.pipeline, inp, context)
        return {
            "market_size": run["market_size"],
            "revenue_projections": run["revenue_projections"],
            "cost_analysis": run["cost_analysis"],
            "funding_requirements": run["funding_requirements"],
            "key_metrics": run["key_metrics"],
            "scenarios": run["scenarios"],
            "confidence": self.calculate_confidence(run["market_size"], run["revenue_projections"]),
        }

    @staticmethod
    def _user(inp):
        return inp.user_context or UserContext()

    def _market_size(self, inp, context):
        external = self.fetch_enrichment("market_size", {"category": inp.category, "region": "global"})
        prompt = MARKET_SIZE_PROMPT.format(
            title=inp.title,
            idea_text=inp.idea_text,
            category=inp.category,
            target_market=or_default(inp.target_market),
            business_model=or_default(inp.business_model),
            external=self.enrichment_text("Market data", external),
        )
        return self.ask(prompt, TamSamSom, temperature=0.3, max_tokens=2000)

    def _revenue_projections(self, inp, context, *, market_size):
        user = self._user(inp)
        prompt = REVENUE_PROMPT.format(
            title=inp.title,
            idea_text=inp.idea_text,
            business_model=or_default(inp.business_model),
            tam=market_size.tam.value,
            sam=market_size.sam.value,
            som=market_size.som.value,
            budget=or_default(user.budget),
            timeline=or_default(user.timeline),
        )
        projections = self.ask(prompt, List[RevenueProjection], temperature=0.4, max_tokens=2500)
        return sorted(projections, key=lambda p: p.year)

    def _cost_analysis(self, inp, context):
        prompt = COST_PROMPT.format(
            title=inp.title,
            idea_text=inp.idea_text,
            category=inp.category,
            business_model=or_default(inp.business_model),
            budget=or_default(self._user(inp).budget),
        )
        return self.ask(prompt, CostAnalysis, temperature=0.3, max_tokens=3000)

    def _funding_requirements(self, inp, context, *, revenue_projections, cost_analysis):
        prompt = FUNDING_PROMPT.format(
            title=inp.title,
            year1_revenue=revenue_projections[0].revenue if revenue_projections else "Unknown",
            year5_revenue=year5_revenue(revenue_projections),
            first_year_costs=cost_analysis.total_first_year_costs,
            budget=or_default(self._user(inp).budget),
        )
        return self.ask(prompt, FundingRequirements, temperature=0.4, max_tokens=3500)

    def _scenarios(self, inp, context, *, market_size, revenue_projections):
        prompt = SCENARIO_PROMPT.format(
            title=inp.title,
            som=market_size.som.value,
            year5_revenue=year5_revenue(revenue_projections),
        )
        return self.ask(prompt, FinancialScenarios, temperature=0.4, max_tokens=1500)

    def _key_metrics(self, inp, context, *, revenue_projections, cost_analysis):
        return calculate_key_metrics(revenue_projections, cost_analysis)

    @staticmethod
    def calculate_confidence(market_size, revenue_projections) -> FinancialConfidence:
        market = market_size.confidence
        if revenue_projections:
            revenue = sum(p.confidence for p in revenue_projections) / len(revenue_projections)
        else:
            revenue = 50
        costs = 75
        funding = (market + revenue) / 2
        overall = round((market + revenue + costs + funding) / 4)
        return FinancialConfidence(
            overall=int(clamp(overall, 40, 95)),
            breakdown=FinancialBreakdown(
                market_size=round(market),
                revenue=round(revenue),
                costs=costs,
                funding=round(funding),
            ),
        )

    def perform_quality_assurance(self, output, context):
        score = 70
        if output.confidence.overall > 80:
            score += 10
        size = output.market_size
        if size.tam.value and size.sam.value and size.som.value:
            score += 10
        return QualityReport(score=score)
