"""
AI Service Unit Tests

Tests for the embedding providers with a mocked OpenAI client.
No external API calls - runs without network or API keys.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from noteweave.core.errors import ConfigurationError, ProviderError, TransientProviderError
from noteweave.services import ai
from noteweave.services.ai import (
    LocalEmbeddingProvider,
    MockEmbeddingProvider,
    OpenAIEmbeddingProvider,
    check_embedding_dimension,
    get_embedding_provider,
)

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/embeddings")


def _response(vectors: list[list[float]]) -> SimpleNamespace:
    # Shaped like the OpenAI SDK response; items deliberately out of order
    items = [SimpleNamespace(index=i, embedding=v) for i, v in enumerate(vectors)]
    return SimpleNamespace(data=list(reversed(items)))


def _status_error(cls: type[openai.APIStatusError], status: int) -> openai.APIStatusError:
    response = httpx.Response(status, request=_REQUEST)
    return cls("boom", response=response, body=None)


@pytest.mark.asyncio
async def test_openai_embed_calls_api():
    """
    Verify embed calls the OpenAI API correctly.

    Validates:
        - Correct model selection (text-embedding-3-small)
        - Requested dimensions and single-line input
        - Response parsing
    """
    mock_vector = [0.1] * 1536

    with patch("noteweave.services.ai.AsyncOpenAI") as MockClient:
        mock_instance = MockClient.return_value
        mock_instance.embeddings.create = AsyncMock(return_value=_response([mock_vector]))

        provider = OpenAIEmbeddingProvider(api_key="sk-test")
        vector = await provider.embed("Hello\nWorld")

    assert len(vector) == 1536
    assert vector[0] == 0.1
    mock_instance.embeddings.create.assert_called_once()
    _, kwargs = mock_instance.embeddings.create.call_args
    assert kwargs["model"] == "text-embedding-3-small"
    assert kwargs["input"] == ["Hello World"]
    assert kwargs["dimensions"] == 1536


@pytest.mark.asyncio
async def test_openai_batch_keeps_input_order():
    with patch("noteweave.services.ai.AsyncOpenAI") as MockClient:
        MockClient.return_value.embeddings.create = AsyncMock(
            return_value=_response([[1.0], [2.0], [3.0]])
        )
        provider = OpenAIEmbeddingProvider(api_key="sk-test", dimension=1)
        vectors = await provider.embed_batch(["a", "b", "c"])

    assert vectors == [[1.0], [2.0], [3.0]]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (_status_error(openai.RateLimitError, 429), TransientProviderError),
        (_status_error(openai.InternalServerError, 503), TransientProviderError),
        (openai.APIConnectionError(request=_REQUEST), TransientProviderError),
        (openai.APITimeoutError(request=_REQUEST), TransientProviderError),
        (_status_error(openai.BadRequestError, 400), ProviderError),
    ],
)
async def test_openai_error_classification(error, expected):
    with patch("noteweave.services.ai.AsyncOpenAI") as MockClient:
        MockClient.return_value.embeddings.create = AsyncMock(side_effect=error)
        provider = OpenAIEmbeddingProvider(api_key="sk-test")

        with pytest.raises(expected) as exc_info:
            await provider.embed("text")

    if expected is ProviderError:
        assert not isinstance(exc_info.value, TransientProviderError)


@pytest.mark.asyncio
async def test_input_truncated_before_submission():
    with patch("noteweave.services.ai.AsyncOpenAI") as MockClient:
        create = AsyncMock(return_value=_response([[0.5]]))
        MockClient.return_value.embeddings.create = create
        provider = OpenAIEmbeddingProvider(api_key="sk-test", dimension=1, max_chars=10)

        await provider.embed("x" * 50)

    assert create.call_args.kwargs["input"] == ["x" * 10]


@pytest.mark.asyncio
async def test_mock_provider_is_deterministic():
    provider = MockEmbeddingProvider(dimension=8)

    first = await provider.embed("same text")
    second = await provider.embed("same text")
    other = await provider.embed("other text")

    assert first == second
    assert first != other
    assert len(first) == 8


@pytest.mark.asyncio
async def test_batches_split_by_batch_size():
    provider = MockEmbeddingProvider(dimension=2, batch_size=2)

    with patch.object(provider, "_embed_many", wraps=provider._embed_many) as spy:
        vectors = await provider.embed_batch(["a", "b", "c"])

    assert len(vectors) == 3
    assert [len(call.args[0]) for call in spy.call_args_list] == [2, 1]


@pytest.mark.parametrize("api_key", [None, "mock", "MOCK"])
def test_provider_falls_back_to_mock_without_key(api_key):
    get_embedding_provider.cache_clear()
    try:
        with (
            patch.object(ai.settings, "EMBEDDING_PROVIDER", "openai"),
            patch.object(ai.settings, "OPENAI_API_KEY", api_key),
        ):
            assert isinstance(get_embedding_provider(), MockEmbeddingProvider)
    finally:
        get_embedding_provider.cache_clear()


def test_provider_selects_openai_with_key():
    get_embedding_provider.cache_clear()
    try:
        with (
            patch.object(ai.settings, "EMBEDDING_PROVIDER", "openai"),
            patch.object(ai.settings, "OPENAI_API_KEY", "sk-real"),
            patch("noteweave.services.ai.AsyncOpenAI"),
        ):
            assert isinstance(get_embedding_provider(), OpenAIEmbeddingProvider)
    finally:
        get_embedding_provider.cache_clear()


def test_local_provider_reports_model_dimension():
    """all-MiniLM-L6-v2 emits 384-dim vectors whatever EMBEDDING_DIMENSION says."""
    with patch.object(ai.settings, "EMBEDDING_DIMENSION", 1536):
        provider = LocalEmbeddingProvider(model_name="all-MiniLM-L6-v2")

    assert provider.dimension == 384


def test_dimension_mismatch_rejected_at_startup():
    provider = LocalEmbeddingProvider(model_name="all-MiniLM-L6-v2")

    with pytest.raises(ConfigurationError) as exc_info:
        check_embedding_dimension(provider, expected=1536)

    assert exc_info.value.details == {"provider": "local", "dimension": 384}
    check_embedding_dimension(provider, expected=384)


def test_configured_providers_fit_the_vector_column():
    with patch.object(ai.settings, "EMBEDDING_DIMENSION", 1536):
        check_embedding_dimension(MockEmbeddingProvider())
        with patch("noteweave.services.ai.AsyncOpenAI"):
            check_embedding_dimension(OpenAIEmbeddingProvider(api_key="sk-real"))


def test_unknown_local_model_checked_when_loaded():
    model = MagicMock()
    model.get_sentence_embedding_dimension.return_value = 768
    fake_module = SimpleNamespace(SentenceTransformer=MagicMock(return_value=model))
    provider = LocalEmbeddingProvider(model_name="custom-model", dimension=1024)

    try:
        with (
            patch.dict("sys.modules", {"sentence_transformers": fake_module}),
            pytest.raises(ProviderError, match="768-dim"),
        ):
            provider._get_model()
        assert LocalEmbeddingProvider._model is None
    finally:
        LocalEmbeddingProvider.reset()
