"""
LLM gateway.

Every agent talks to a text-generation vendor through :class:`LLMProvider`:
``generate(prompt, options)`` returns an :class:`LLMResponse` whose ``text``
is the raw completion. Vendor SDK errors, timeouts and empty completions are
all surfaced as :class:`LLMProviderError` so callers only handle one type.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

import anthropic
import openai

from app.api.ai.errors import ConfigurationError, LLMProviderError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_MESSAGE = (
    "You are a business analysis AI assistant specializing in market research, "
    "financial modeling, and risk assessment."
)
JSON_INSTRUCTION = "\n\nPlease respond with valid JSON only."


@dataclass(frozen=True)
class LLMOptions:
    format: str = "text"  # "json" | "text"
    temperature: float = 0.7
    max_tokens: int = 2000
    system_message: Optional[str] = None


@dataclass(frozen=True)
class LLMResponse:
    text: str
    tokens_used: int = 0
    model: str = ""
    finish_reason: str = "stop"


class LLMProvider:
    """Interface implemented by every vendor adapter."""

    name = "base"

    def generate(self, prompt: str, options: Optional[LLMOptions] = None) -> LLMResponse:
        raise NotImplementedError

    @staticmethod
    def _prepare(prompt: str, options: LLMOptions) -> str:
        if options.format == "json":
            return prompt + JSON_INSTRUCTION
        return prompt


class OpenAIProvider(LLMProvider):
    name = "openai"

    def __init__(self, api_key: str, model: str = "gpt-4o", timeout: float = 30.0):
        self.model = model
        self.client = openai.OpenAI(api_key=api_key, timeout=timeout, max_retries=2)

    def generate(self, prompt: str, options: Optional[LLMOptions] = None) -> LLMResponse:
        options = options or LLMOptions()
        request = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": options.system_message or DEFAULT_SYSTEM_MESSAGE},
                {"role": "user", "content": self._prepare(prompt, options)},
            ],
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }
        if options.format == "json":
            request["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(**request)
        except openai.APITimeoutError as e:
            raise LLMProviderError("OpenAI request timed out: %s" % e) from e
        except openai.APIError as e:
            raise LLMProviderError("OpenAI request failed: %s" % e) from e

        if not response.choices:
            raise LLMProviderError("OpenAI returned no choices")
        choice = response.choices[0]
        content = (choice.message.content or "").strip()
        if not content:
            raise LLMProviderError("OpenAI returned an empty completion")

        tokens = response.usage.total_tokens if response.usage else 0
        logger.info("OpenAI completion received (model=%s, tokens=%s)", response.model, tokens)
        return LLMResponse(
            text=content,
            tokens_used=tokens,
            model=response.model,
            finish_reason=choice.finish_reason or "stop",
        )


class AnthropicProvider(LLMProvider):
    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-20241022",
        timeout: float = 30.0,
    ):
        self.model = model
        self.client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=2)

    def generate(self, prompt: str, options: Optional[LLMOptions] = None) -> LLMResponse:
        options = options or LLMOptions()
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=options.max_tokens,
                temperature=options.temperature,
                system=options.system_message or DEFAULT_SYSTEM_MESSAGE,
                messages=[{"role": "user", "content": self._prepare(prompt, options)}],
            )
        except anthropic.APITimeoutError as e:
            raise LLMProviderError("Anthropic request timed out: %s" % e) from e
        except anthropic.APIError as e:
            raise LLMProviderError("Anthropic request failed: %s" % e) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        ).strip()
        if not text:
            raise LLMProviderError("Anthropic returned no text content")

        usage = response.usage
        tokens = (usage.input_tokens + usage.output_tokens) if usage else 0
        logger.info("Anthropic completion received (model=%s, tokens=%s)", response.model, tokens)
        return LLMResponse(
            text=text,
            tokens_used=tokens,
            model=response.model,
            finish_reason=response.stop_reason or "stop",
        )


CannedResponse = Union[str, dict, list, Callable[[str], str]]


@dataclass
class MockCall:
    prompt: str
    options: LLMOptions


class MockLLMProvider(LLMProvider):
    """
    Offline provider for development and tests.

    ``responses`` maps a case-insensitive prompt fragment to a canned reply
    (a string, a JSON-serialisable object, or a callable taking the prompt).
    The first matching fragment wins; unmatched JSON prompts get ``{}``, which
    fails schema validation and exercises the agent fallbacks.
    """

    name = "mock"

    def __init__(self, responses: Optional[Dict[str, CannedResponse]] = None, tokens_per_call: int = 100):
        self.responses: Dict[str, CannedResponse] = dict(responses or {})
        self.tokens_per_call = tokens_per_call
        self.calls: List[MockCall] = []
        self._lock = threading.Lock()

    def generate(self, prompt: str, options: Optional[LLMOptions] = None) -> LLMResponse:
        options = options or LLMOptions()
        with self._lock:
            self.calls.append(MockCall(prompt=prompt, options=options))

        lowered = prompt.lower()
        reply: CannedResponse = "{}" if options.format == "json" else "Mock response"
        for fragment, canned in self.responses.items():
            if fragment.lower() in lowered:
                reply = canned
                break

        if callable(reply):
            reply = reply(prompt)
        if not isinstance(reply, str):
            reply = json.dumps(reply)

        return LLMResponse(
            text=reply,
            tokens_used=self.tokens_per_call,
            model="mock-model-v1",
            finish_reason="stop",
        )

    @property
    def call_count(self) -> int:
        return len(self.calls)


def create_llm_provider(
    provider: str,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    timeout: float = 30.0,
) -> LLMProvider:
    provider = (provider or "").strip().lower()
    if provider == "mock":
        return MockLLMProvider()
    if provider == "openai":
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for the openai provider")
        return OpenAIProvider(api_key=api_key, model=model or "gpt-4o", timeout=timeout)
    if provider in ("anthropic", "claude"):
        if not api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY is required for the anthropic provider")
        return AnthropicProvider(
            api_key=api_key, model=model or "claude-3-5-sonnet-20241022", timeout=timeout
        )
    raise ConfigurationError("Unsupported LLM provider: %r" % provider)
