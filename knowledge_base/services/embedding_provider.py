"""Embedding provider clients (Cohere API and local fastembed)"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum

import httpx
from fastembed import TextEmbedding
from pydantic import ValidationError as PydanticValidationError

from knowledge_base.config import AppConfig, config
from knowledge_base.errors import EmbeddingProviderError
from knowledge_base.models.provider_response import parse_embed_response

logger = logging.getLogger(__name__)


class InputType(str, Enum):
    """Whether text is embedded for storage or as a search query"""

    SEARCH_DOCUMENT = "search_document"
    SEARCH_QUERY = "search_query"


class EmbeddingProvider(ABC):
    """Turns texts into vectors for a given input type"""

    model_name: str

    @abstractmethod
    async def embed(self, texts: list[str], input_type: InputType) -> list[list[float]]:
        """
        Embed texts

        Args:
            texts: Texts to embed
            input_type: Document or query mode

        Returns:
            list[list[float]]: One vector per text, in order

        Raises:
            EmbeddingProviderError: If the provider call fails
        """

    async def close(self) -> None:
        """Release provider resources"""
        pass


class CohereEmbeddingProvider(EmbeddingProvider):
    """HTTP client for the Cohere embed endpoint with retry on transient failures"""

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str | None = None,
        api_url: str | None = None,
        timeout_seconds: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else config.cohere_api_key
        self.model_name = model_name or config.embedding_model
        self.api_url = api_url or config.cohere_api_url
        self.max_retries = max_retries if max_retries is not None else config.embedding_max_retries
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else config.embedding_retry_backoff_seconds
        )
        timeout = timeout_seconds or config.embedding_timeout_seconds
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def __aenter__(self) -> "CohereEmbeddingProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _should_retry(self, status_code: int, attempt: int) -> bool:
        """Retry rate limiting and server errors while attempts remain"""
        if attempt >= self.max_retries:
            return False
        return status_code == 429 or status_code >= 500

    async def _backoff(self, attempt: int, reason: str) -> None:
        wait_time = self.backoff_seconds * (2**attempt)
        logger.warning(
            f"{reason} from embedding provider, "
            f"retry {attempt + 1}/{self.max_retries} after {wait_time}s"
        )
        await asyncio.sleep(wait_time)

    async def _post_with_retries(self, body: dict) -> httpx.Response:
        """Execute the embed request, retrying timeouts, network errors, 429 and 5xx"""
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        attempt = 0
        while True:
            try:
                response = await self.client.post(self.api_url, json=body, headers=headers)
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                error_type = "Timeout" if isinstance(e, httpx.TimeoutException) else "Network error"
                if attempt < self.max_retries:
                    await self._backoff(attempt, error_type)
                    attempt += 1
                    continue
                logger.error(f"Embedding request failed with {error_type.lower()}: {e}")
                raise EmbeddingProviderError(
                    f"{error_type} after {attempt + 1} attempts: {e}"
                ) from e
            except httpx.HTTPError as e:
                raise EmbeddingProviderError(f"Embedding request failed: {e}") from e

            if response.is_success:
                return response

            if self._should_retry(response.status_code, attempt):
                await self._backoff(attempt, f"HTTP {response.status_code}")
                attempt += 1
                continue

            logger.error(f"Embedding request failed with HTTP {response.status_code}")
            raise EmbeddingProviderError(
                f"HTTP {response.status_code} from embedding provider: {response.text[:200]}",
                status_code=response.status_code,
            )

    async def embed(self, texts: list[str], input_type: InputType) -> list[list[float]]:
        body = {
            "model": self.model_name,
            "texts": texts,
            "input_type": input_type.value,
            "embedding_types": ["float"],
        }
        response = await self._post_with_retries(body)

        try:
            payload = response.json()
        except ValueError as e:
            raise EmbeddingProviderError(f"Embedding provider returned invalid JSON: {e}") from e

        try:
            parsed = parse_embed_response(payload)
        except PydanticValidationError as e:
            raise EmbeddingProviderError(f"Malformed embedding response: {e}") from e

        return parsed.vectors()

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()


class FastEmbedProvider(EmbeddingProvider):
    """Generate embeddings locally with fastembed"""

    def __init__(self, model_name: str | None = None, cache_dir: str | None = None) -> None:
        self.model_name = model_name or "BAAI/bge-small-en-v1.5"
        try:
            self.model = TextEmbedding(
                model_name=self.model_name, cache_dir=cache_dir or config.fastembed_cache_dir
            )
        except Exception as e:
            # Unsupported model names and unusable cache directories surface here
            raise EmbeddingProviderError(
                f"Could not load local embedding model {self.model_name}: {e}"
            ) from e

    async def embed(self, texts: list[str], input_type: InputType) -> list[list[float]]:
        try:
            if input_type == InputType.SEARCH_QUERY:
                vectors = list(self.model.query_embed(texts))
            else:
                vectors = list(self.model.passage_embed(texts))
        except Exception as e:
            raise EmbeddingProviderError(f"Local embedding failed: {e}") from e

        # fastembed yields numpy arrays
        return [vector.tolist() for vector in vectors]


def create_embedding_provider(app_config: AppConfig | None = None) -> EmbeddingProvider:
    """Build the provider selected by configuration"""
    app_config = app_config or config

    if app_config.embedding_provider == "fastembed":
        return FastEmbedProvider(
            model_name=app_config.embedding_model, cache_dir=app_config.fastembed_cache_dir
        )

    if not app_config.cohere_api_key:
        logger.warning("COHERE_API_KEY is not set, embedding requests will be rejected")

    return CohereEmbeddingProvider(
        api_key=app_config.cohere_api_key,
        model_name=app_config.embedding_model,
        api_url=app_config.cohere_api_url,
        timeout_seconds=app_config.embedding_timeout_seconds,
        max_retries=app_config.embedding_max_retries,
        backoff_seconds=app_config.embedding_retry_backoff_seconds,
    )
