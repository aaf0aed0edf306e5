from app.api.ai.providers.cache import (
    CacheProvider,
    DatabaseCacheProvider,
    MemoryCacheProvider,
    NullCacheProvider,
    create_cache_provider,
    make_cache_key,
)
from app.api.ai.providers.data_source import (
    DataRequest,
    DataResponse,
    DataSourceProvider,
    GitHubDataSourceProvider,
    HackerNewsDataSourceProvider,
    HttpDataSourceProvider,
    MockDataSourceProvider,
    RoutingDataSourceProvider,
    create_data_source_provider,
)
from app.api.ai.providers.llm import (
    AnthropicProvider,
    LLMOptions,
    LLMProvider,
    LLMResponse,
    MockLLMProvider,
    OpenAIProvider,
    create_llm_provider,
)

__all__ = [
    "AnthropicProvider",
    "CacheProvider",
    "DataRequest",
    "DataResponse",
    "DataSourceProvider",
    "DatabaseCacheProvider",
    "GitHubDataSourceProvider",
    "HackerNewsDataSourceProvider",
    "HttpDataSourceProvider",
    "LLMOptions",
    "LLMProvider",
    "LLMResponse",
    "MemoryCacheProvider",
    "MockDataSourceProvider",
    "MockLLMProvider",
    "NullCacheProvider",
    "OpenAIProvider",
    "RoutingDataSourceProvider",
    "create_cache_provider",
    "create_data_source_provider",
    "create_llm_provider",
    "make_cache_key",
]
