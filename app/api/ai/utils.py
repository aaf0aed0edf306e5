# app/api/ai/utils.py

import math
import re
from typing import Dict, List

_AMOUNT_RE = re.compile(r"(-?\d+(?:\.\d+)?)\s*([kmb])?(?![a-z])", re.IGNORECASE)
_MULTIPLIERS = {"k": 1_000, "m": 1_000_000, "b": 1_000_000_000}
_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

STOP_WORDS = {"this", "that", "with", "from", "they", "been", "have", "their", "would", "there"}

# Category -> (industry, company size) used to pick customer-evidence segments.
SEGMENT_MAP: Dict[str, List[Dict[str, str]]] = {
    "ai-automation": [
        {"industry": "Professional Services", "size": "small"},
        {"industry": "E-commerce", "size": "medium"},
        {"industry": "Manufacturing", "size": "enterprise"},
    ],
    "saas-tools": [
        {"industry": "Technology", "size": "startup"},
        {"industry": "Marketing Agencies", "size": "small"},
        {"industry": "Financial Services", "size": "medium"},
    ],
    "ecommerce": [
        {"industry": "Retail", "size": "small"},
        {"industry": "Consumer Goods", "size": "medium"},
        {"industry": "Fashion", "size": "startup"},
    ],
    "fintech": [
        {"industry": "Banking", "size": "enterprise"},
        {"industry": "Insurance", "size": "medium"},
        {"industry": "Investment", "size": "small"},
    ],
    "healthtech": [
        {"industry": "Healthcare Providers", "size": "medium"},
        {"industry": "Pharmaceuticals", "size": "enterprise"},
        {"industry": "Medical Devices", "size": "small"},
    ],
}
DEFAULT_SEGMENTS = [
    {"industry": "Technology", "size": "startup"},
    {"industry": "Professional Services", "size": "small"},
    {"industry": "Enterprise Software", "size": "medium"},
]


def parse_amount(text) -> float:
    """
    Parse a human money string into a float.

    ``"$1,380,000"`` -> 1380000, ``"$150M"`` -> 150e6, ``"$2.5B"`` -> 2.5e9,
    ``"$50k"`` -> 50000. The suffix must follow the number directly, so the
    ``m`` in ``"$120,000/month"`` is not read as millions. Anything without a
    number parses as 0.
    """
    if text is None:
        return 0.0
    if isinstance(text, (int, float)):
        return float(text)
    cleaned = str(text).replace(",", "").replace("$", "")
    match = _AMOUNT_RE.search(cleaned)
    if not match:
        return 0.0
    value = float(match.group(1))
    suffix = (match.group(2) or "").lower()
    return value * _MULTIPLIERS.get(suffix, 1)


def format_usd(amount: float) -> str:
    return "${:,}".format(int(round(amount)))


def ceil_div(numerator: float, denominator: float) -> int:
    return int(math.ceil(numerator / denominator))


def extract_keywords(text: str, limit: int = 5) -> List[str]:
    words = re.sub(r"[^\w\s]", "", (text or "").lower()).split()
    return [w for w in words if len(w) > 3 and w not in STOP_WORDS][:limit]


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", (text or "").strip()).strip()


def customer_segments(category: str) -> List[Dict[str, str]]:
    return SEGMENT_MAP.get((category or "").strip().lower(), DEFAULT_SEGMENTS)


def or_default(value, default: str = "Not specified"):
    return value if value else default
