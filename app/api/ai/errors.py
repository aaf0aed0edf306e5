"""Exceptions raised by the agent layer."""


class AgentError(Exception):
    """Base class for recoverable agent-layer failures."""


class ConfigurationError(AgentError):
    """A provider or orchestrator cannot be built from the given settings."""


class LLMProviderError(AgentError):
    """The LLM vendor call failed, timed out or returned nothing usable."""


class ResponseParseError(AgentError):
    """Model output was not parseable JSON."""


class DataSourceError(AgentError):
    """A market-data lookup failed."""


class CacheError(AgentError):
    """The cache backend rejected a read or write."""


class PipelineError(AgentError):
    """A stage asked for a result that no earlier stage produced."""
