"""
Deterministic records substituted when a stage's LLM call or validation fails.

``FALLBACKS`` maps ``(agent_id, stage_name)`` to a builder ``(inp, **deps)``
returning plain JSON data; :mod:`app.api.ai.pipeline` validates the result
into the stage's model. Static records are module-level constants and are
deep-copied on every use. Derived records compute from their dependencies,
e.g. mitigation plans for the top risks or scenarios scaled from year-5
revenue.
"""

import copy
from typing import Any, Callable, Dict, Tuple

from app.api.ai.errors import PipelineError
from app.api.ai.utils import customer_segments, format_usd, parse_amount

Builder = Callable[..., Any]

MARKET_RESEARCH = "market-research"
FINANCIAL_MODELING = "financial-modeling"
FOUNDER_FIT = "founder-fit"
RISK_ASSESSMENT = "risk-assessment"


# ---------------------------------------------------------------------------
# Market research
# ---------------------------------------------------------------------------

def _problem_statement(inp, **_):
    return {
        "summary": (
            "Teams in the %s space rely on manual, fragmented workflows to solve the problem "
            "%s addresses, which costs them time and leads to inconsistent results."
            % (inp.category, inp.title)
        ),
        "quantifiedImpact": "An estimated 5-10 hours per week lost per team, roughly $15,000 per year",
        "currentSolutions": ["Spreadsheets and manual tracking", "Generic all-in-one suites", "Outsourced consultants"],
        "solutionLimitations": [
            "Manual work does not scale",
            "Generic tools ignore domain-specific needs",
            "Consultants are expensive and slow",
        ],
        "costOfInaction": "Continued productivity loss and slower growth relative to better-equipped competitors",
    }


MARKET_SIGNALS = [
    {
        "type": "search_trend",
        "description": "Search interest for category solutions has grown steadily over the past two years",
        "strength": "medium",
        "trend": "increasing",
        "source": "Search trend analysis",
        "quantifiedImpact": "+40% year over year",
        "timeframe": "Last 24 months",
    },
    {
        "type": "funding_activity",
        "description": "Venture funding into adjacent startups remains active",
        "strength": "medium",
        "trend": "stable",
        "source": "Public funding announcements",
        "timeframe": "Last 12 months",
    },
    {
        "type": "social_sentiment",
        "description": "Practitioners openly discuss frustration with existing tools",
        "strength": "low",
        "trend": "increasing",
        "source": "Community forums",
    },
]


def _customer_evidence_segment(inp, segment=None, **_):
    segment = segment or {"industry": "Technology", "size": "startup"}
    return {
        "customerProfile": {
            "industry": segment["industry"],
            "companySize": segment["size"],
            "role": "Operations Manager",
            "geography": "United States",
        },
        "painPoint": {
            "description": "Existing workflows are manual and hard to scale for %s" % inp.category,
            "quote": "We spend far too much time stitching tools together instead of serving customers.",
            "quantifiedImpact": "About 6 hours per week of avoidable work",
        },
        "currentSolution": {
            "description": "Spreadsheets combined with a generic software suite",
            "cost": "$200/month",
            "limitations": ["No automation", "Poor reporting", "Does not fit domain workflows"],
        },
        "willingnessToPay": {
            "amount": "$50-150/month",
            "confidence": "medium",
            "reasoningBasis": "Comparable to spend on existing tools with clearer time savings",
        },
        "credibilityScore": 55,
    }


def _customer_evidence(inp, **_):
    return [_customer_evidence_segment(inp, segment=s) for s in customer_segments(inp.category)[:3]]


COMPETITORS = [
    {
        "name": "Established Suite Vendor",
        "description": "Broad platform that covers the workflow as one module among many",
        "marketPosition": "leader",
        "funding": {"totalRaised": "Unknown", "lastRound": "Unknown", "stage": "Public or late stage"},
        "strengths": ["Brand recognition", "Large customer base"],
        "weaknesses": ["Generic feature set", "Slow to adapt"],
        "differentiationOpportunity": "Focus on a narrow, underserved workflow with a better user experience",
    },
    {
        "name": "Early-Stage Specialist",
        "description": "Young startup targeting part of the same problem",
        "marketPosition": "startup",
        "funding": {"totalRaised": "Unknown", "lastRound": "Unknown", "stage": "Seed"},
        "strengths": ["Focused product"],
        "weaknesses": ["Limited resources"],
        "differentiationOpportunity": "Win on depth of integration and measurable outcomes for customers",
    },
]

MARKET_TIMING = {
    "assessment": "perfect",
    "reasoning": "Demand signals are rising while no competitor has locked up the segment",
    "catalysts": ["Growing adoption trend for automation tools", "Increased investment in the category"],
    "confidence": 60,
}


# ---------------------------------------------------------------------------
# Financial modeling
# ---------------------------------------------------------------------------

def _market_size(inp, **_):
    return {
        "tam": {
            "value": "$50B",
            "description": "Global %s market size" % inp.category,
            "methodology": "Industry analysis and market research",
            "assumptions": ["Global market scope", "Annual market size", "Growing market category"],
        },
        "sam": {
            "value": "$5B",
            "description": "Addressable market for %s" % inp.title,
            "methodology": "TAM filtered by business model constraints",
            "assumptions": ["Geographic limitations", "Business model focus", "Target customer segments"],
        },
        "som": {
            "value": "$150M",
            "description": "Realistic market capture potential",
            "methodology": "Market share analysis of comparable companies",
            "marketShare": "3% of SAM",
            "timeframe": "5 years",
        },
        "confidence": 60,
    }


REVENUE_LADDER = (50_000, 200_000, 800_000, 2_000_000, 4_000_000)


def _revenue_projections(inp, **_):
    projections = []
    for index, revenue in enumerate(REVENUE_LADDER):
        if index == 0:
            growth = "N/A"
        else:
            growth = "%d%%" % round((revenue / REVENUE_LADDER[index - 1] - 1) * 100)
        projections.append({
            "year": index + 1,
            "revenue": format_usd(revenue),
            "customers": round(revenue / 1000),
            "averageRevenuePerUser": "$1,000",
            "growthRate": growth,
            "assumptions": [
                "Conservative growth rates",
                "Market penetration assumptions",
                "Customer acquisition estimates",
            ],
            "confidence": 65,
        })
    return projections


COST_ANALYSIS = {
    "developmentCosts": [
        {
            "category": "Technology Development",
            "amount": "$250,000",
            "description": "Software development, infrastructure setup, and initial product build",
            "timeline": "6-12 months",
            "confidence": "Medium",
        },
        {
            "category": "Legal and Compliance",
            "amount": "$50,000",
            "description": "Legal entity setup, intellectual property, and regulatory compliance",
            "timeline": "3-6 months",
            "confidence": "High",
        },
    ],
    "operationalCosts": [
        {
            "category": "Personnel",
            "monthlyAmount": "$75,000",
            "description": "Core team salaries and benefits",
            "scalingFactor": "Linear with team size",
            "confidence": "High",
        },
        {
            "category": "Infrastructure",
            "monthlyAmount": "$15,000",
            "description": "Cloud hosting, software licenses, and tools",
            "scalingFactor": "Logarithmic with user growth",
            "confidence": "Medium",
        },
    ],
    "marketingCosts": [
        {
            "category": "Digital Marketing",
            "amount": "$100,000",
            "description": "Online advertising, content marketing, and SEO",
            "timeline": "Ongoing",
            "expectedROI": "3:1",
        }
    ],
    "totalFirstYearCosts": "$1,380,000",
    "costStructure": "Personnel-heavy with moderate technology costs",
    "unitEconomics": {
        "customerAcquisitionCost": "$500",
        "customerLifetimeValue": "$2,500",
        "ltv2cacRatio": "5:1",
        "paybackPeriod": "10 months",
    },
}

FUNDING_REQUIREMENTS = {
    "totalRequired": "$2,500,000",
    "stages": [
        {
            "stage": "Seed",
            "amount": "$750,000",
            "timeline": "Months 1-12",
            "milestones": ["MVP launch", "Initial customers", "Product-market fit"],
            "valuation": "$3M",
            "dilution": "25%",
        },
        {
            "stage": "Series A",
            "amount": "$1,750,000",
            "timeline": "Months 12-24",
            "milestones": ["Revenue growth", "Market expansion", "Team scaling"],
            "valuation": "$8M",
            "dilution": "22%",
        },
    ],
    "useOfFunds": [
        {"category": "Product Development", "percentage": 40, "amount": "$1,000,000", "description": "Engineering and R&D"},
        {"category": "Marketing & Sales", "percentage": 30, "amount": "$750,000", "description": "Customer acquisition"},
        {"category": "Personnel", "percentage": 25, "amount": "$625,000", "description": "Team expansion"},
        {"category": "Operations", "percentage": 5, "amount": "$125,000", "description": "General expenses"},
    ],
    "investorTypes": [
        {
            "type": "Angel Investors",
            "targetAmount": "$250,000",
            "probability": 0.7,
            "requirements": ["Strong team", "Market opportunity", "Early traction"],
        },
        {
            "type": "Venture Capital",
            "targetAmount": "$1,500,000",
            "probability": 0.5,
            "requirements": ["Scalable business model", "Large market", "Strong growth metrics"],
        },
    ],
    "alternatives": [
        {
            "type": "Revenue-based Financing",
            "description": "Alternative to traditional equity funding",
            "pros": ["Less dilution", "Flexible terms", "Performance-based"],
            "cons": ["Higher cost of capital", "Revenue requirements", "Limited amount"],
        }
    ],
}


def year5_revenue(revenue_projections) -> str:
    ordered = sorted(revenue_projections or [], key=lambda p: p.year)
    if len(ordered) >= 5:
        return ordered[4].revenue
    return "$1M"


def _financial_scenarios(inp, revenue_projections=None, **_):
    baseline = year5_revenue(revenue_projections)
    base_amount = parse_amount(baseline)
    return {
        "conservative": {
            "revenue5Year": format_usd(base_amount * 0.6),
            "profitability": "Year 4-5",
            "description": "Slower growth due to market challenges and increased competition",
        },
        "realistic": {
            "revenue5Year": baseline,
            "profitability": "Year 3-4",
            "description": "Steady growth with expected market conditions and competition",
        },
        "optimistic": {
            "revenue5Year": format_usd(base_amount * 1.8),
            "profitability": "Year 2-3",
            "description": "Accelerated growth with strong market adoption and competitive advantages",
        },
    }


# ---------------------------------------------------------------------------
# Founder fit
# ---------------------------------------------------------------------------

SKILLS_ANALYSIS = {
    "requiredSkills": [
        {
            "name": "Business Strategy",
            "category": "business",
            "importance": "critical",
            "requiredLevel": "advanced",
            "gap": "moderate",
            "developmentTime": "6-12 months",
            "developmentCost": "$5,000-10,000",
            "alternatives": ["MBA program", "Business mentor", "Strategy consultant"],
        },
        {
            "name": "Product Management",
            "category": "technical",
            "importance": "critical",
            "requiredLevel": "advanced",
            "gap": "large",
            "developmentTime": "3-6 months",
            "developmentCost": "$3,000-5,000",
            "alternatives": ["Product management course", "PM mentor", "Hire PM"],
        },
    ],
    "skillsGapSummary": {
        "totalSkills": 2,
        "criticalGaps": 1,
        "moderateGaps": 1,
        "skillsCovered": 0,
        "overallReadiness": "medium",
    },
    "developmentPlan": {
        "priority1": ["Business Strategy", "Product Management"],
        "priority2": ["Marketing", "Financial Management"],
        "priority3": ["Leadership", "Industry Expertise"],
        "timeline": "12-18 months",
        "totalCost": "$15,000-25,000",
        "recommendations": [
            "Focus on critical business skills first",
            "Consider finding co-founder with complementary skills",
        ],
    },
    "strengthsAndWeaknesses": {
        "strengths": ["Domain knowledge", "Market understanding"],
        "weaknesses": ["Technical implementation", "Business operations"],
        "uniqueAdvantages": ["Industry connections", "Problem insight"],
        "riskAreas": ["Skill development time", "Resource constraints"],
    },
}

TEAM_COMPOSITION = {
    "coreTeam": [
        {
            "role": "Technical Co-founder/CTO",
            "skills": ["Software Development", "System Architecture", "Technical Leadership"],
            "experience": "5+ years",
            "salaryRange": "$120,000-150,000",
            "equityRange": "10-20%",
            "timeline": "Immediate",
            "priority": "immediate",
            "alternatives": ["Technical consultant", "Outsourced development", "No-code solutions"],
            "justification": "Critical for product development and technical decision-making",
        }
    ],
    "advisors": [
        {
            "expertise": "Industry Expert",
            "value": "Domain knowledge and market insights",
            "equityRange": "0.5-1%",
            "timeCommitment": "2-4 hours/month",
            "networkValue": "Customer introductions and partnerships",
        }
    ],
    "hiringPlan": [
        {
            "phase": "Phase 1 (Months 1-6)",
            "roles": ["Technical Co-founder", "Product Manager"],
            "timeline": "6 months",
            "totalCost": "$180,000",
            "keyMilestones": ["MVP launch", "First customers"],
        }
    ],
    "teamDynamics": {
        "cultureConsiderations": ["Startup mentality", "Customer focus", "Rapid iteration"],
        "communicationStyle": "Direct and transparent",
        "decisionMaking": "Collaborative with founder having final say",
        "conflictResolution": ["Open discussion", "Data-driven decisions", "External mediation if needed"],
    },
}

INVESTMENT_REQUIREMENTS = {
    "personalInvestment": {
        "timeCommitment": "50-60 hours/week for 2+ years",
        "financialInvestment": "$25,000-50,000",
        "opportunityCost": "$150,000-200,000 (lost salary)",
        "riskAssessment": "High personal and financial risk",
        "mitigationStrategies": ["Maintain emergency fund", "Plan exit strategy", "Seek co-founder"],
    },
    "skillInvestment": {
        "trainingCosts": "$15,000-25,000",
        "coursesAndCertifications": [
            {
                "name": "Business Strategy Certificate",
                "cost": "$5,000",
                "duration": "3 months",
                "provider": "Top Business School",
                "skills": ["Strategic Planning", "Market Analysis"],
            }
        ],
        "mentoringAndCoaching": "$10,000-15,000",
        "networkingInvestment": "$5,000",
        "totalDevelopmentCost": "$30,000-45,000",
    },
    "teamInvestment": {
        "year1TeamCosts": "$200,000-300,000",
        "equityBudget": "20-30% total",
        "recruitmentCosts": "$15,000-25,000",
        "retentionStrategies": ["Competitive equity", "Growth opportunities", "Strong culture"],
        "totalTeamInvestment": "$235,000-350,000",
    },
    "riskMitigation": {
        "contingencyPlanning": ["Define success metrics", "Set decision checkpoints", "Plan pivot strategies"],
        "exitStrategies": ["Return to employment", "Sell assets", "License technology"],
        "insuranceRecommendations": ["Health insurance", "Disability insurance", "Key person insurance"],
        "legalProtections": ["IP protection", "Founder agreements", "Employment contracts"],
    },
}

FOUNDER_RECOMMENDATIONS = {
    "immediate": [
        "Validate business idea with potential customers",
        "Begin developing critical missing skills",
        "Network with industry experts and potential co-founders",
        "Create detailed business plan and financial projections",
    ],
    "shortTerm": [
        "Complete skills development program",
        "Build minimum viable product",
        "Establish advisory board",
        "Secure initial funding or bootstrap resources",
    ],
    "longTerm": [
        "Scale team based on growth needs",
        "Develop advanced industry expertise",
        "Build strategic partnerships",
        "Prepare for institutional funding",
    ],
    "redFlags": [
        "Unable to validate market demand",
        "Cannot acquire necessary skills within timeline",
        "Insufficient funding to reach milestones",
        "Major industry or regulatory changes",
    ],
    "successFactors": [
        "Strong founder-market fit",
        "Validated customer demand",
        "Complementary team capabilities",
        "Adequate funding runway",
    ],
}

FOUNDER_SCENARIOS = {
    "soloFounder": {
        "viability": "Challenging but possible",
        "timeline": "24-36 months to build capabilities",
        "risks": ["Skills development time", "Resource constraints", "Burnout potential"],
        "mitigations": ["Strong advisory board", "Outsource non-core functions", "Gradual team build"],
    },
    "coFounder": {
        "idealProfile": "Technical co-founder with complementary skills",
        "complementarySkills": ["Technical development", "Product management", "Industry expertise"],
        "equityConsiderations": "40-50% for co-founder depending on contribution",
        "findingStrategies": ["Industry networking", "Startup events", "Professional connections"],
    },
    "teamBuild": {
        "timeline": "12-18 months to build core team",
        "priorityRoles": ["CTO", "Product Manager", "Sales Lead"],
        "totalCost": "$300,000-500,000 Year 1",
        "fundingNeeds": "Seed funding of $750,000-1.5M required",
    },
}


# ---------------------------------------------------------------------------
# Risk assessment
# ---------------------------------------------------------------------------

RISKS = [
    {
        "category": "Market Risk",
        "description": "Customer demand may be lower than anticipated",
        "impact": "High",
        "probability": "Medium",
        "riskScore": 70,
        "timeframe": "6-12 months",
        "indicators": ["Customer acquisition rates", "Market research feedback", "Competitor performance"],
        "consequences": ["Slower growth", "Reduced revenue", "Increased marketing costs"],
        "confidence": 65,
    },
    {
        "category": "Financial Risk",
        "description": "Funding may not be available when needed",
        "impact": "Critical",
        "probability": "Medium",
        "riskScore": 80,
        "timeframe": "12-18 months",
        "indicators": ["Cash burn rate", "Investor interest", "Market conditions"],
        "consequences": ["Business closure", "Forced pivots", "Team reduction"],
        "confidence": 70,
    },
    {
        "category": "Operational Risk",
        "description": "Key team members may leave during critical periods",
        "impact": "High",
        "probability": "Medium",
        "riskScore": 65,
        "timeframe": "3-12 months",
        "indicators": ["Employee satisfaction", "Workload levels", "Compensation competitiveness"],
        "consequences": ["Project delays", "Knowledge loss", "Increased hiring costs"],
        "confidence": 75,
    },
    {
        "category": "Technology Risk",
        "description": "Technical implementation may be more complex than anticipated",
        "impact": "Medium",
        "probability": "High",
        "riskScore": 60,
        "timeframe": "1-6 months",
        "indicators": ["Development velocity", "Bug rates", "Technical debt accumulation"],
        "consequences": ["Delayed launch", "Increased development costs", "Quality issues"],
        "confidence": 80,
    },
]


def _mitigation(inp, risk_identification=(), **_):
    top = sorted(risk_identification, key=lambda r: r.risk_score, reverse=True)[:4]
    return [
        {
            "riskCategory": risk.category,
            "strategy": "Comprehensive %s mitigation" % risk.category.lower(),
            "description": "Implement systematic approach to reduce %s exposure" % risk.category.lower(),
            "implementation": {
                "timeframe": "1-3 months",
                "cost": "$5,000 - $25,000",
                "resources": ["Management time", "External consultants", "Team training"],
                "steps": [
                    "Assess current exposure level",
                    "Design mitigation framework",
                    "Implement monitoring systems",
                    "Regular review and adjustment",
                ],
            },
            "effectiveness": {
                "riskReduction": "40-60%",
                "successProbability": 75,
                "costBenefit": "3:1 ROI expected",
            },
            "dependencies": ["Team availability", "Budget allocation", "Management commitment"],
            "kpis": ["Risk score reduction", "Incident frequency", "Response time improvement"],
        }
        for risk in top
    ]


RISK_SCENARIOS = [
    {
        "scenario": "Market Adoption Delay",
        "description": "Customer adoption is slower than projected due to market education needs",
        "probability": 40,
        "combinedRisks": ["Market Risk", "Financial Risk"],
        "impact": {
            "financial": "30% revenue shortfall in Year 1",
            "operational": "Extended runway needed",
            "strategic": "Pivot considerations required",
            "timeline": "6-month delay in growth milestones",
        },
        "warningSignals": ["Low customer engagement", "High customer acquisition costs", "Competitor struggles"],
        "contingencyPlan": "Intensify customer education, adjust pricing model, seek additional funding",
    },
    {
        "scenario": "Technical Complexity Underestimation",
        "description": "Development takes longer and costs more than anticipated",
        "probability": 30,
        "combinedRisks": ["Technology Risk", "Financial Risk", "Operational Risk"],
        "impact": {
            "financial": "50% budget overrun",
            "operational": "Team stress and potential turnover",
            "strategic": "Delayed market entry",
            "timeline": "3-6 month launch delay",
        },
        "warningSignals": ["Missed development milestones", "Increasing bug reports", "Team overtime"],
        "contingencyPlan": "Scope reduction, additional technical hiring, phased launch approach",
    },
]

MONITORING_FRAMEWORK = {
    "keyRiskIndicators": [
        {
            "indicator": "Monthly Cash Burn Rate",
            "measurement": "Dollars spent per month",
            "threshold": "10% above budget = Yellow, 20% = Red",
            "frequency": "Weekly",
            "owner": "CFO/Finance Lead",
        },
        {
            "indicator": "Customer Acquisition Rate",
            "measurement": "New customers per month",
            "threshold": "20% below target = Yellow, 40% = Red",
            "frequency": "Weekly",
            "owner": "Head of Marketing",
        },
        {
            "indicator": "Team Satisfaction Score",
            "measurement": "Employee survey (1-10 scale)",
            "threshold": "Below 7 = Yellow, Below 6 = Red",
            "frequency": "Monthly",
            "owner": "Head of People",
        },
    ],
    "reviewSchedule": {
        "weekly": ["Cash flow", "Customer metrics", "Development progress"],
        "monthly": ["Team satisfaction", "Market position", "Competitor analysis"],
        "quarterly": ["Strategic review", "Risk assessment update", "Mitigation effectiveness"],
    },
    "escalationMatrix": [
        {
            "riskLevel": "Yellow (Moderate)",
            "authority": "Department Head",
            "timeframe": "48 hours",
            "actions": ["Investigate cause", "Implement quick fixes", "Monitor closely"],
        },
        {
            "riskLevel": "Red (High)",
            "authority": "CEO/Founder",
            "timeframe": "24 hours",
            "actions": ["Emergency team meeting", "Activate contingency plan", "Stakeholder communication"],
        },
    ],
}


def _risk_recommendations(inp, overall_risk=None, **_):
    score = overall_risk.score if overall_risk is not None else 50
    if score > 70:
        tolerance = (
            "Conservative approach recommended due to high risk profile - "
            "focus on validation and incremental growth"
        )
    else:
        tolerance = (
            "Moderate risk tolerance appropriate - "
            "balance growth opportunities with prudent risk management"
        )
    return {
        "immediate": [
            "Establish weekly cash flow monitoring and 13-week rolling forecasts",
            "Implement basic customer feedback collection system",
            "Create emergency contact list and communication protocols",
            "Document all critical processes and knowledge",
        ],
        "shortTerm": [
            "Develop comprehensive risk monitoring dashboard",
            "Build strategic partnerships to reduce dependency risks",
            "Establish multiple funding pipeline options",
            "Implement automated backup and security protocols",
        ],
        "longTerm": [
            "Create diversified revenue stream strategy",
            "Build organizational resilience and adaptability capabilities",
            "Establish industry advisory board for strategic guidance",
            "Develop succession planning for key roles",
        ],
        "riskTolerance": tolerance,
    }


def _static(record) -> Builder:
    def build(inp, **_):
        return copy.deepcopy(record)

    return build


FALLBACKS: Dict[Tuple[str, str], Builder] = {
    (MARKET_RESEARCH, "problem_statement"): _problem_statement,
    (MARKET_RESEARCH, "market_signals"): _static(MARKET_SIGNALS),
    (MARKET_RESEARCH, "customer_evidence"): _customer_evidence,
    (MARKET_RESEARCH, "customer_evidence.segment"): _customer_evidence_segment,
    (MARKET_RESEARCH, "competitors"): _static(COMPETITORS),
    (MARKET_RESEARCH, "market_timing"): _static(MARKET_TIMING),
    (FINANCIAL_MODELING, "market_size"): _market_size,
    (FINANCIAL_MODELING, "revenue_projections"): _revenue_projections,
    (FINANCIAL_MODELING, "cost_analysis"): _static(COST_ANALYSIS),
    (FINANCIAL_MODELING, "funding_requirements"): _static(FUNDING_REQUIREMENTS),
    (FINANCIAL_MODELING, "scenarios"): _financial_scenarios,
    (FOUNDER_FIT, "skills_analysis"): _static(SKILLS_ANALYSIS),
    (FOUNDER_FIT, "team_composition"): _static(TEAM_COMPOSITION),
    (FOUNDER_FIT, "investment_requirements"): _static(INVESTMENT_REQUIREMENTS),
    (FOUNDER_FIT, "recommendations"): _static(FOUNDER_RECOMMENDATIONS),
    (FOUNDER_FIT, "scenarios"): _static(FOUNDER_SCENARIOS),
    (RISK_ASSESSMENT, "risk_identification"): _static(RISKS),
    (RISK_ASSESSMENT, "mitigation"): _mitigation,
    (RISK_ASSESSMENT, "scenarios"): _static(RISK_SCENARIOS),
    (RISK_ASSESSMENT, "monitoring"): _static(MONITORING_FRAMEWORK),
    (RISK_ASSESSMENT, "recommendations"): _risk_recommendations,
}


def resolve(agent_id: str, key: str, inp: Any, **deps: Any) -> Any:
    try:
        builder = FALLBACKS[(agent_id, key)]
    except KeyError:
        raise PipelineError("No fallback registered for %s stage '%s'" % (agent_id, key))
    return builder(inp, **deps)
