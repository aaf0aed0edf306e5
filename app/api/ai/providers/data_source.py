"""
Market-data lookups used to enrich agent prompts.

Agents call :meth:`DataSourceProvider.fetch_data` and treat any failure as
"no enrichment available"; nothing here is required for an analysis to
complete. A provider that does not serve a request type answers with
``success=False`` rather than raising.

Public sources need no account: Hacker News search (via Algolia) for market
discussion and GitHub repository search for open-source competitors. The
``free`` provider routes each request type to whichever of them serves it.
"""

from __future__ import annotations

import base64
import copy
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import requests

from app.api.ai.errors import ConfigurationError, DataSourceError
from app.api.ai.schemas import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DataRequest:
    type: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DataResponse:
    success: bool
    data: Dict[str, Any]
    source: str
    timestamp: str = field(default_factory=lambda: utcnow().isoformat())
    cached: bool = False

    @property
    def metadata(self) -> Dict[str, Any]:
        return {"source": self.source, "timestamp": self.timestamp, "cached": self.cached}


class DataSourceProvider:
    name = "base"
    # request types this provider can answer; None means "try anything"
    supported_types: Optional[frozenset] = None

    def fetch_data(self, request: DataRequest) -> DataResponse:
        raise NotImplementedError

    def supports(self, data_type: str) -> bool:
        return self.supported_types is None or data_type in self.supported_types

    def check_connection(self) -> bool:
        return True

    def get_rate_limit(self) -> Optional[Dict[str, Any]]:
        return None

    def unsupported(self, request: DataRequest) -> DataResponse:
        return DataResponse(success=False, data={}, source=self.name)


class RequestsDataSourceProvider(DataSourceProvider):
    """Shared ``requests`` plumbing: one session, a timeout, typed failures."""

    health_path = ""
    health_params: Optional[Dict[str, Any]] = None

    def __init__(self, base_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None):
        url = "%s/%s" % (self.base_url, path.lstrip("/")) if path else self.base_url
        try:
            response = self.session.get(url, params=params, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout as e:
            raise DataSourceError("Data source timed out after %ss: %s" % (self.timeout, url)) from e
        except (requests.RequestException, ValueError) as e:
            raise DataSourceError("Data source request failed for %s: %s" % (url, e)) from e
        return payload, response

    def check_connection(self) -> bool:
        try:
            self._get(self.health_path, self.health_params)
        except DataSourceError as e:
            logger.warning("%s data source unreachable: %s", self.name, e)
            return False
        return True


class HttpDataSourceProvider(RequestsDataSourceProvider):
    """
    Generic JSON-over-HTTP market data client.

    ``GET {base_url}/{request.type}`` with ``request.params`` as the query
    string. Authentication is added according to ``auth_type``:
    ``api_key`` -> ``X-API-Key``, ``bearer`` -> ``Authorization: Bearer``,
    ``basic`` -> ``Authorization: Basic`` (``api_key`` holds ``user:password``).
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        auth_type: str = "api_key",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        if not base_url:
            raise ConfigurationError("DATA_SOURCE_BASE_URL is required for the http data source")
        super().__init__(base_url, timeout=timeout, session=session)
        self.api_key = api_key
        self.auth_type = auth_type

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if not self.api_key:
            return headers
        if self.auth_type == "bearer":
            headers["Authorization"] = "Bearer %s" % self.api_key
        elif self.auth_type == "basic":
            token = base64.b64encode(self.api_key.encode("utf-8")).decode("ascii")
            headers["Authorization"] = "Basic %s" % token
        else:
            headers["X-API-Key"] = self.api_key
        return headers

    def fetch_data(self, request: DataRequest) -> DataResponse:
        payload, _ = self._get(request.type, request.params)
        if not isinstance(payload, dict):
            payload = {"items": payload}
        logger.info("Fetched %s data from %s", request.type, self.base_url)
        return DataResponse(success=True, data=payload, source=self.base_url)


def _search_terms(params: Dict[str, Any]) -> str:
    keywords = [k for k in params.get("keywords") or [] if k]
    if not keywords and params.get("category"):
        keywords = [params["category"]]
    return " ".join(keywords)


def _ratio_label(positive: int, negative: int) -> str:
    ratio = positive / max(1, positive + negative)
    if ratio > 0.6:
        return "positive"
    if ratio < 0.4:
        return "negative"
    return "neutral"


TECH_KEYWORDS = (
    "ai", "api", "saas", "startup", "tech", "software", "platform", "app", "service", "ml",
    "algorithm", "data", "automation", "business", "market", "product", "customer", "revenue",
)
POSITIVE_KEYWORDS = ("successful", "growth", "profitable", "innovative", "breakthrough")
NEGATIVE_KEYWORDS = ("failed", "struggling", "problem", "issues", "decline")


def summarize_stories(stories: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Discussion volume, sentiment and topics from Hacker News search hits."""
    if not stories:
        return {
            "techInterest": 0.0,
            "discussionVolume": "none",
            "sentiment": "neutral",
            "keyTopics": [],
            "topAuthors": [],
            "storyCount": 0,
        }

    topics: List[str] = []
    authors: Counter = Counter()
    tech_matches = positive = negative = total_points = total_comments = 0
    for story in stories:
        title = (story.get("title") or "").lower()
        words = set(title.replace("-", " ").split())
        points = story.get("points") or 0
        total_points += points
        total_comments += story.get("num_comments") or 0

        matched = [k for k in TECH_KEYWORDS if k in words]
        tech_matches += len(matched)
        topics.extend(k for k in matched if k not in topics)

        if any(w in title for w in POSITIVE_KEYWORDS) or points > 100:
            positive += 1
        if any(w in title for w in NEGATIVE_KEYWORDS) or points < 5:
            negative += 1
        if story.get("author"):
            authors[story["author"]] += points

    avg_points = total_points / len(stories)
    volume = "low"
    if len(stories) > 10 and avg_points > 10:
        volume = "medium"
    if len(stories) > 20 and avg_points > 25:
        volume = "high"

    return {
        "techInterest": round(min(1.0, tech_matches / (len(stories) * 3)), 2),
        "discussionVolume": volume,
        "sentiment": _ratio_label(positive, negative),
        "keyTopics": topics[:8],
        "topAuthors": [{"author": a, "points": p} for a, p in authors.most_common(5)],
        "storyCount": len(stories),
        "averagePoints": round(avg_points),
        "totalComments": total_comments,
    }


class HackerNewsDataSourceProvider(RequestsDataSourceProvider):
    """Market discussion from the public Hacker News search API (no key needed)."""

    name = "hackernews"
    supported_types = frozenset({"market_trends"})
    health_path = "search"
    health_params = {"query": "test", "hitsPerPage": 1}

    def __init__(self, base_url: str = "https://hn.algolia.com/api/v1", **kwargs: Any):
        super().__init__(base_url, **kwargs)

    def fetch_data(self, request: DataRequest) -> DataResponse:
        if not self.supports(request.type):
            return self.unsupported(request)
        query = _search_terms(request.params)
        payload, _ = self._get(
            "search",
            {"query": query, "tags": "story", "hitsPerPage": request.params.get("limit", 20)},
        )
        stories = payload.get("hits") or []
        data = summarize_stories(stories)
        data["stories"] = [
            {"title": s.get("title"), "points": s.get("points") or 0, "url": s.get("url")}
            for s in stories[:10]
        ]
        data["query"] = query
        logger.info("Fetched %d Hacker News stories for %r", len(stories), query)
        return DataResponse(success=True, data=data, source=self.name)

    def get_rate_limit(self) -> Optional[Dict[str, Any]]:
        # Algolia publishes no per-client quota for this API
        return {"remaining": 10000, "resetTime": (utcnow() + timedelta(hours=1)).isoformat()}


def summarize_repositories(repos: List[Dict[str, Any]], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Activity level, leading languages and likely competitors from repository search hits."""
    if not repos:
        return {"companies": [], "technologies": [], "activity": "low", "innovationScore": 0.0, "topics": []}

    now = now or utcnow()
    languages: Counter = Counter()
    topics: List[str] = []
    recent = 0
    total_stars = total_forks = 0
    for repo in repos:
        total_stars += repo.get("stargazers_count") or 0
        total_forks += repo.get("forks_count") or 0
        if repo.get("language"):
            languages[repo["language"]] += 1
        topics.extend(t for t in repo.get("topics") or [] if t not in topics)
        updated = repo.get("updated_at")
        if updated:
            updated_at = datetime.fromisoformat(updated.replace("Z", "+00:00"))
            if (now - updated_at).days < 30:
                recent += 1

    avg_stars = total_stars / len(repos)
    avg_forks = total_forks / len(repos)
    recent_ratio = recent / len(repos)
    activity = "low"
    if recent_ratio > 0.3 and avg_stars > 100:
        activity = "medium"
    if recent_ratio > 0.5 and avg_stars > 1000:
        activity = "high"

    competitors = [
        {
            "name": repo.get("name"),
            "owner": (repo.get("owner") or {}).get("login"),
            "stars": repo.get("stargazers_count") or 0,
            "description": repo.get("description"),
        }
        for repo in repos
        if (repo.get("stargazers_count") or 0) > 500
    ][:5]

    return {
        "companies": competitors,
        "technologies": [{"language": lang, "repositories": n} for lang, n in languages.most_common(5)],
        "activity": activity,
        "innovationScore": round(min(1.0, avg_stars / 1000 * 0.4 + avg_forks / 100 * 0.3 + recent_ratio * 0.3), 2),
        "topics": topics[:8],
    }


def _reset_time(epoch_seconds) -> str:
    return datetime.fromtimestamp(int(epoch_seconds or 0), tz=timezone.utc).isoformat()


class GitHubDataSourceProvider(RequestsDataSourceProvider):
    """Open-source projects in the idea's space from GitHub repository search."""

    name = "github"
    supported_types = frozenset({"companies"})
    health_path = "rate_limit"

    def __init__(self, base_url: str = "https://api.github.com", token: Optional[str] = None, **kwargs: Any):
        super().__init__(base_url, **kwargs)
        self.token = token

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = "Bearer %s" % self.token
        return headers

    def fetch_data(self, request: DataRequest) -> DataResponse:
        if not self.supports(request.type):
            return self.unsupported(request)
        query = _search_terms(request.params)
        if request.params.get("language"):
            query = "%s language:%s" % (query, request.params["language"])
        payload, response = self._get(
            "search/repositories",
            {"q": query, "sort": "stars", "order": "desc", "per_page": 30},
        )
        repos = payload.get("items") or []
        data = summarize_repositories(repos)
        headers = getattr(response, "headers", None) or {}
        data["rateLimit"] = {
            "remaining": int(headers.get("x-ratelimit-remaining", 60)),
            "resetTime": _reset_time(headers.get("x-ratelimit-reset")),
        }
        data["query"] = query
        logger.info("Fetched %d GitHub repositories for %r", len(repos), query)
        return DataResponse(success=True, data=data, source=self.name)

    def get_rate_limit(self) -> Optional[Dict[str, Any]]:
        try:
            payload, _ = self._get("rate_limit")
        except DataSourceError as e:
            logger.warning("GitHub rate limit lookup failed: %s", e)
            return None
        rate = payload.get("rate") or {}
        return {"remaining": rate.get("remaining"), "resetTime": _reset_time(rate.get("reset"))}


class RoutingDataSourceProvider(DataSourceProvider):
    """Sends each request type to the first child provider that serves it."""

    name = "free"

    def __init__(self, providers: Iterable[DataSourceProvider]):
        self.providers = list(providers)

    def fetch_data(self, request: DataRequest) -> DataResponse:
        for provider in self.providers:
            if provider.supports(request.type):
                return provider.fetch_data(request)
        return self.unsupported(request)

    def supports(self, data_type: str) -> bool:
        return any(p.supports(data_type) for p in self.providers)

    def check_connection(self) -> bool:
        return all([p.check_connection() for p in self.providers])

    def get_rate_limit(self) -> Optional[Dict[str, Any]]:
        return {p.name: p.get_rate_limit() for p in self.providers}


MOCK_DATA: Dict[str, Dict[str, Any]] = {
    "market_size": {
        "globalMarket": "$48.2B",
        "growthRate": "12.4% CAGR",
        "segments": ["SMB", "Mid-market", "Enterprise"],
        "sources": ["Industry analyst estimates", "Public filings"],
    },
    "market_trends": {
        "searchInterest": "+180% over 24 months",
        "fundingVolume": "$3.1B raised across 140 deals last year",
        "sentiment": "Positive, rising discussion volume",
    },
    "companies": {
        "companies": [
            {"name": "Incumbent Suite", "totalRaised": "$120M", "stage": "Series C"},
            {"name": "Nimble Upstart", "totalRaised": "$8M", "stage": "Seed"},
        ]
    },
    "risk_intelligence": {
        "failureRate": "Roughly 70% of startups in the category fail within 5 years",
        "commonRisks": ["Customer acquisition cost", "Regulatory change", "Incumbent response"],
    },
    "skills_market": {
        "inDemand": ["Machine learning", "Product management", "Growth marketing"],
        "medianSalaries": {"engineer": "$145,000", "productManager": "$135,000"},
    },
    "industry_reports": {
        "reports": ["Annual category outlook", "Buyer survey"],
    },
}


class MockDataSourceProvider(DataSourceProvider):
    name = "mock"

    def __init__(self, data: Optional[Dict[str, Dict[str, Any]]] = None):
        self.data = data if data is not None else MOCK_DATA
        self.requests = []

    def fetch_data(self, request: DataRequest) -> DataResponse:
        self.requests.append(request)
        payload = self.data.get(request.type)
        if payload is None:
            return DataResponse(success=False, data={}, source="mock")
        result = copy.deepcopy(payload)
        result["query"] = dict(request.params)
        return DataResponse(success=True, data=result, source="mock")


def create_data_source_provider(kind: str, **config: Any) -> Optional[DataSourceProvider]:
    kind = (kind or "none").strip().lower()
    timeout = config.get("timeout") or 10.0
    if kind in ("none", ""):
        return None
    if kind == "mock":
        return MockDataSourceProvider()
    if kind == "http":
        return HttpDataSourceProvider(
            base_url=config.get("base_url") or "",
            api_key=config.get("api_key"),
            auth_type=config.get("auth_type") or "api_key",
            timeout=timeout,
        )
    if kind == "hackernews":
        return HackerNewsDataSourceProvider(timeout=timeout)
    if kind == "github":
        return GitHubDataSourceProvider(token=config.get("github_token"), timeout=timeout)
    if kind == "free":
        return RoutingDataSourceProvider([
            HackerNewsDataSourceProvider(timeout=timeout),
            GitHubDataSourceProvider(token=config.get("github_token"), timeout=timeout),
        ])
    raise ConfigurationError("Unsupported data source provider: %r" % kind)
