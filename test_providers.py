import base64
from datetime import datetime, timezone
from types import SimpleNamespace

import httpx
import openai
import pytest
import requests

from app.api.ai.errors import ConfigurationError, DataSourceError, LLMProviderError
from app.api.ai.providers import (
    AnthropicProvider,
    DataRequest,
    GitHubDataSourceProvider,
    HackerNewsDataSourceProvider,
    HttpDataSourceProvider,
    LLMOptions,
    MockDataSourceProvider,
    MockLLMProvider,
    OpenAIProvider,
    RoutingDataSourceProvider,
    create_data_source_provider,
    create_llm_provider,
)
from app.api.ai.providers.data_source import summarize_repositories, summarize_stories
from app.api.ai.providers.llm import JSON_INSTRUCTION


# ------------------------------------------------------------------
# LLM gateway
# ------------------------------------------------------------------

def test_mock_llm_matches_prompt_fragment_case_insensitively():
    llm = MockLLMProvider({"market timing": {"assessment": "perfect"}})
    response = llm.generate("TASK: MARKET TIMING ASSESSMENT ...", LLMOptions(format="json"))
    assert response.text == '{"assessment": "perfect"}'
    assert response.tokens_used == 100
    assert llm.call_count == 1


def test_mock_llm_defaults_for_unmatched_prompts():
    llm = MockLLMProvider()
    assert llm.generate("anything", LLMOptions(format="json")).text == "{}"
    assert llm.generate("anything", LLMOptions(format="text")).text == "Mock response"


def test_mock_llm_callable_reply_receives_prompt():
    llm = MockLLMProvider({"echo": lambda prompt: prompt.upper()})
    assert llm.generate("echo this").text == "ECHO THIS"


def test_mock_llm_callable_can_simulate_vendor_failure():
    def boom(prompt):
        raise LLMProviderError("rate limited")

    llm = MockLLMProvider({"boom": boom})
    with pytest.raises(LLMProviderError):
        llm.generate("boom")


class _Completions:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.requests = []

    def create(self, **request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.reply


def _openai_reply(content):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")],
        usage=SimpleNamespace(total_tokens=42),
        model="gpt-4o",
    )


def _openai_provider(completions):
    provider = OpenAIProvider(api_key="test-key")
    provider.client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return provider


def test_openai_provider_requests_json_mode():
    completions = _Completions(reply=_openai_reply('{"ok": true}'))
    provider = _openai_provider(completions)

    response = provider.generate("Give me JSON", LLMOptions(format="json", temperature=0.3, max_tokens=500))

    assert response.text == '{"ok": true}'
    assert response.tokens_used == 42
    request = completions.requests[0]
    assert request["response_format"] == {"type": "json_object"}
    assert request["temperature"] == 0.3
    assert request["max_tokens"] == 500
    assert request["messages"][1]["content"].endswith(JSON_INSTRUCTION)


def test_openai_provider_text_mode_has_no_response_format():
    completions = _Completions(reply=_openai_reply("plain words"))
    provider = _openai_provider(completions)
    provider.generate("Say hi", LLMOptions(format="text"))
    assert "response_format" not in completions.requests[0]


def test_openai_provider_empty_completion_is_an_error():
    provider = _openai_provider(_Completions(reply=_openai_reply("   ")))
    with pytest.raises(LLMProviderError):
        provider.generate("prompt")


def test_openai_provider_wraps_timeouts():
    timeout = openai.APITimeoutError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
    provider = _openai_provider(_Completions(error=timeout))
    with pytest.raises(LLMProviderError, match="timed out"):
        provider.generate("prompt")


def test_anthropic_provider_joins_text_blocks():
    reply = SimpleNamespace(
        content=[
            SimpleNamespace(type="text", text='{"a": '),
            SimpleNamespace(type="tool_use", text="ignored"),
            SimpleNamespace(type="text", text="1}"),
        ],
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
        model="claude-3-5-sonnet-20241022",
        stop_reason="end_turn",
    )
    messages = _Completions(reply=reply)
    provider = AnthropicProvider(api_key="test-key")
    provider.client = SimpleNamespace(messages=messages)

    response = provider.generate("prompt", LLMOptions(format="json"))

    assert response.text == '{"a": 1}'
    assert response.tokens_used == 15
    assert response.finish_reason == "end_turn"
    assert messages.requests[0]["messages"][0]["content"].endswith(JSON_INSTRUCTION)


def test_create_llm_provider_requires_keys():
    with pytest.raises(ConfigurationError):
        create_llm_provider("openai", api_key=None)
    with pytest.raises(ConfigurationError):
        create_llm_provider("claude", api_key="")
    with pytest.raises(ConfigurationError):
        create_llm_provider("llama")
    assert create_llm_provider("mock").name == "mock"
    assert create_llm_provider("anthropic", api_key="k").name == "anthropic"


# ------------------------------------------------------------------
# Data source
# ------------------------------------------------------------------

class _Response:
    def __init__(self, payload, status=200, headers=None):
        self.payload = payload
        self.status = status
        self.headers = headers or {}

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError("HTTP %s" % self.status)

    def json(self):
        return self.payload


class _Session:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def test_http_data_source_builds_url_and_api_key_header():
    session = _Session(_Response({"globalMarket": "$10B"}))
    provider = HttpDataSourceProvider("https://data.example.com/", api_key="secret", session=session)

    response = provider.fetch_data(DataRequest(type="market_size", params={"category": "fintech"}))

    assert response.success
    assert response.data == {"globalMarket": "$10B"}
    call = session.calls[0]
    assert call["url"] == "https://data.example.com/market_size"
    assert call["params"] == {"category": "fintech"}
    assert call["headers"]["X-API-Key"] == "secret"
    assert call["timeout"] == 10.0


@pytest.mark.parametrize("auth_type, expected", [
    ("bearer", "Bearer user:pw"),
    ("basic", "Basic " + base64.b64encode(b"user:pw").decode("ascii")),
])
def test_http_data_source_authorization_schemes(auth_type, expected):
    session = _Session(_Response({}))
    provider = HttpDataSourceProvider("https://d.example", api_key="user:pw", auth_type=auth_type, session=session)
    provider.fetch_data(DataRequest(type="companies"))
    assert session.calls[0]["headers"]["Authorization"] == expected


def test_http_data_source_wraps_list_payloads():
    provider = HttpDataSourceProvider("https://d.example", session=_Session(_Response([1, 2])))
    assert provider.fetch_data(DataRequest(type="companies")).data == {"items": [1, 2]}


@pytest.mark.parametrize("error", [requests.Timeout("slow"), requests.ConnectionError("down")])
def test_http_data_source_failures_raise_data_source_error(error):
    provider = HttpDataSourceProvider("https://d.example", session=_Session(error=error))
    with pytest.raises(DataSourceError):
        provider.fetch_data(DataRequest(type="companies"))


def test_http_data_source_http_error_status():
    provider = HttpDataSourceProvider("https://d.example", session=_Session(_Response({}, status=503)))
    with pytest.raises(DataSourceError):
        provider.fetch_data(DataRequest(type="companies"))


def test_mock_data_source_echoes_query_and_copies_data():
    provider = MockDataSourceProvider()
    first = provider.fetch_data(DataRequest(type="market_trends", params={"category": "fintech"}))
    first.data["searchInterest"] = "mutated"
    second = provider.fetch_data(DataRequest(type="market_trends"))

    assert first.data["query"] == {"category": "fintech"}
    assert second.data["searchInterest"] != "mutated"
    assert not provider.fetch_data(DataRequest(type="unknown")).success


def test_create_data_source_provider():
    assert create_data_source_provider("none") is None
    assert create_data_source_provider("mock").name == "mock"
    with pytest.raises(ConfigurationError):
        create_data_source_provider("http")
    with pytest.raises(ConfigurationError):
        create_data_source_provider("ftp")
    assert create_data_source_provider("hackernews").name == "hackernews"
    assert create_data_source_provider("github", github_token="ghp_x").token == "ghp_x"
    routed = create_data_source_provider("free", timeout=3)
    assert [p.name for p in routed.providers] == ["hackernews", "github"]
    assert all(p.timeout == 3 for p in routed.providers)


STORIES = [
    {"title": "AI fitness startup growth", "points": 150, "num_comments": 40, "author": "pg", "url": "https://a"},
    {"title": "Why wearables failed", "points": 3, "num_comments": 1, "author": "dang", "url": None},
]

REPOS = [
    {
        "name": "fitbot",
        "owner": {"login": "acme"},
        "stargazers_count": 2500,
        "forks_count": 300,
        "language": "Python",
        "topics": ["fitness", "ai"],
        "description": "Adaptive training plans",
        "updated_at": "2026-10-10T00:00:00Z",
    },
    {
        "name": "tiny",
        "owner": {"login": "bob"},
        "stargazers_count": 50,
        "forks_count": 5,
        "language": "Python",
        "topics": ["fitness"],
        "description": None,
        "updated_at": "2025-01-01T00:00:00Z",
    },
]


def test_summarize_stories():
    summary = summarize_stories(STORIES)

    assert summary["techInterest"] == 0.33
    assert summary["keyTopics"] == ["ai", "startup"]
    assert summary["sentiment"] == "neutral"
    assert summary["discussionVolume"] == "low"
    assert summary["topAuthors"][0] == {"author": "pg", "points": 150}
    assert summary["totalComments"] == 41
    assert summarize_stories([])["discussionVolume"] == "none"


def test_hackernews_searches_stories_for_market_trends():
    session = _Session(_Response({"hits": STORIES}))
    provider = HackerNewsDataSourceProvider(session=session)

    response = provider.fetch_data(DataRequest(type="market_trends", params={"keywords": ["fitness", "wearables"]}))

    assert response.success and response.source == "hackernews"
    assert response.data["storyCount"] == 2
    assert response.data["query"] == "fitness wearables"
    assert response.data["stories"][0] == {"title": STORIES[0]["title"], "points": 150, "url": "https://a"}
    call = session.calls[0]
    assert call["url"] == "https://hn.algolia.com/api/v1/search"
    assert call["params"] == {"query": "fitness wearables", "tags": "story", "hitsPerPage": 20}


def test_providers_decline_request_types_they_do_not_serve():
    session = _Session(_Response({}))
    assert not HackerNewsDataSourceProvider(session=session).fetch_data(DataRequest(type="companies")).success
    assert not GitHubDataSourceProvider(session=session).fetch_data(DataRequest(type="market_trends")).success
    assert session.calls == []


def test_summarize_repositories():
    summary = summarize_repositories(REPOS, now=datetime(2026, 10, 17, tzinfo=timezone.utc))

    assert summary["companies"] == [
        {"name": "fitbot", "owner": "acme", "stars": 2500, "description": "Adaptive training plans"}
    ]
    assert summary["technologies"] == [{"language": "Python", "repositories": 2}]
    assert summary["activity"] == "medium"
    assert summary["innovationScore"] == 1.0
    assert summary["topics"] == ["fitness", "ai"]
    assert summarize_repositories([])["activity"] == "low"


def test_github_searches_repositories_for_companies():
    headers = {"x-ratelimit-remaining": "42", "x-ratelimit-reset": "0"}
    session = _Session(_Response({"items": REPOS}, headers=headers))
    provider = GitHubDataSourceProvider(token="ghp_secret", session=session)

    response = provider.fetch_data(DataRequest(type="companies", params={"category": "fitness tracker"}))

    assert response.success and response.source == "github"
    assert response.data["companies"][0]["name"] == "fitbot"
    assert response.data["rateLimit"] == {"remaining": 42, "resetTime": "1970-01-01T00:00:00+00:00"}
    call = session.calls[0]
    assert call["url"] == "https://api.github.com/search/repositories"
    assert call["params"] == {"q": "fitness tracker", "sort": "stars", "order": "desc", "per_page": 30}
    assert call["headers"]["Authorization"] == "Bearer ghp_secret"


def test_github_without_token_sends_no_authorization():
    session = _Session(_Response({"items": []}))
    GitHubDataSourceProvider(session=session).fetch_data(DataRequest(type="companies", params={"category": "x"}))
    assert "Authorization" not in session.calls[0]["headers"]


def test_check_connection():
    session = _Session(_Response({"hits": []}))
    assert HackerNewsDataSourceProvider(session=session).check_connection()
    assert session.calls[0]["params"] == {"query": "test", "hitsPerPage": 1}

    down = HackerNewsDataSourceProvider(session=_Session(error=requests.ConnectionError("down")))
    assert not down.check_connection()
    assert MockDataSourceProvider().check_connection()


def test_github_rate_limit():
    session = _Session(_Response({"rate": {"remaining": 4999, "reset": 0}}))
    provider = GitHubDataSourceProvider(session=session)

    assert provider.get_rate_limit() == {"remaining": 4999, "resetTime": "1970-01-01T00:00:00+00:00"}
    assert session.calls[0]["url"] == "https://api.github.com/rate_limit"

    broken = GitHubDataSourceProvider(session=_Session(_Response({}, status=403)))
    assert broken.get_rate_limit() is None


def test_routing_provider_sends_each_type_to_its_source():
    hn_session = _Session(_Response({"hits": STORIES}))
    gh_session = _Session(_Response({"items": REPOS}))
    provider = RoutingDataSourceProvider([
        HackerNewsDataSourceProvider(session=hn_session),
        GitHubDataSourceProvider(session=gh_session),
    ])

    assert provider.fetch_data(DataRequest(type="market_trends", params={"category": "fitness"})).source == "hackernews"
    assert provider.fetch_data(DataRequest(type="companies", params={"category": "fitness"})).source == "github"
    assert not provider.fetch_data(DataRequest(type="market_size")).success
    assert len(hn_session.calls) == 1 and len(gh_session.calls) == 1
    assert provider.supports("companies") and not provider.supports("skills_market")
    assert set(provider.get_rate_limit()) == {"hackernews", "github"}
