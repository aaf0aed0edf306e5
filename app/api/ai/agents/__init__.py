from app.api.ai.agents.base import AgentStatus, BaseAgent
from app.api.ai.agents.financial_modeling import FinancialModelingAgent, FinancialModelingInput
from app.api.ai.agents.founder_fit import FounderFitAgent, FounderFitInput
from app.api.ai.agents.market_research import MarketResearchAgent, MarketResearchInput
from app.api.ai.agents.risk_assessment import RiskAssessmentAgent, RiskAssessmentInput

__all__ = [
    "AgentStatus",
    "BaseAgent",
    "FinancialModelingAgent",
    "FinancialModelingInput",
    "FounderFitAgent",
    "FounderFitInput",
    "MarketResearchAgent",
    "MarketResearchInput",
    "RiskAssessmentAgent",
    "RiskAssessmentInput",
]
