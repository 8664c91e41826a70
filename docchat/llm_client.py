"""HTTP clients for the embedding and generation services."""
from typing import List, Optional, Protocol, Sequence

import httpx
import structlog

from docchat import config
from docchat.errors import (
    EmbeddingServiceError,
    GenerationServiceError,
    InvalidConfigurationError,
)

logger = structlog.get_logger()


class Embedder(Protocol):
    """Maps texts to vectors, one per input, order preserved."""

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        ...


class Generator(Protocol):
    """Maps a prompt to the model's raw text output."""

    async def generate(self, prompt: str, max_tokens: int) -> str:
        ...


class EmbeddingClient:
    """Async client for an OpenAI-compatible /embeddings endpoint."""

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        model: str = None,
        batch_size: int = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the embedding client.

        Args:
            api_key: Bearer token (defaults to config.OPENAI_API_KEY)
            base_url: API base URL (defaults to config.EMBEDDING_BASE_URL)
            model: Embedding model (defaults to config.EMBEDDING_MODEL)
            batch_size: Texts per request (defaults to config.EMBEDDING_BATCH_SIZE)
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used by tests
        """
        self.api_key = config.OPENAI_API_KEY if api_key is None else api_key
        self.base_url = (base_url or config.EMBEDDING_BASE_URL).rstrip("/")
        self.model = model or config.EMBEDDING_MODEL
        self.batch_size = batch_size or config.EMBEDDING_BATCH_SIZE
        self.timeout = timeout or config.HTTP_TIMEOUT
        self._transport = transport

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed texts in sequential batches.

        Args:
            texts: Texts to embed

        Returns:
            List of embedding vectors in input order

        Raises:
            InvalidConfigurationError: If no API key is configured
            EmbeddingServiceError: On HTTP errors or malformed responses
        """
        if not self.api_key:
            raise InvalidConfigurationError("OPENAI_API_KEY is not set")

        texts = list(texts)
        if not texts:
            return []

        embeddings: List[List[float]] = []

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            for i in range(0, len(texts), self.batch_size):
                batch = texts[i : i + self.batch_size]
                embeddings.extend(await self._embed_batch(client, batch))

                logger.debug(
                    "embeddings_batch_generated",
                    batch_size=len(batch),
                    total_so_far=len(embeddings),
                )

        return embeddings

    async def _embed_batch(
        self, client: httpx.AsyncClient, batch: List[str]
    ) -> List[List[float]]:
        try:
            response = await client.post(
                f"{self.base_url}/embeddings",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"model": self.model, "input": batch},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(
                "embedding_request_failed",
                model=self.model,
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise EmbeddingServiceError(f"Embedding request failed: {e}") from e
        except ValueError as e:
            logger.error("embedding_response_not_json", error=str(e))
            raise EmbeddingServiceError(f"Invalid embedding response: {e}") from e

        return _parse_embeddings(data, expected=len(batch))


def _is_vector(value) -> bool:
    return (
        isinstance(value, list)
        and len(value) > 0
        and all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in value)
    )


def _parse_embeddings(data, expected: int) -> List[List[float]]:
    """Extract vectors from an /embeddings response, in input order.

    Raises:
        EmbeddingServiceError: Unless the response holds exactly `expected`
            non-empty numeric vectors of one shared length
    """
    items = data.get("data") if isinstance(data, dict) else None

    if (
        not isinstance(items, list)
        or len(items) != expected
        or not all(isinstance(item, dict) for item in items)
        or not all(isinstance(item.get("index", 0), int) for item in items)
    ):
        logger.error("embedding_response_malformed", expected=expected)
        raise EmbeddingServiceError(
            f"Malformed embedding response: expected {expected} items"
        )

    items = sorted(items, key=lambda item: item.get("index", 0))
    vectors = [item.get("embedding") for item in items]

    if not all(_is_vector(v) for v in vectors):
        logger.error("embedding_response_not_numeric", expected=expected)
        raise EmbeddingServiceError("Embedding response contains invalid vectors")

    lengths = {len(v) for v in vectors}
    if len(lengths) != 1:
        logger.error("embedding_lengths_differ", lengths=sorted(lengths))
        raise EmbeddingServiceError(
            f"Embedding response mixes vector lengths {sorted(lengths)}"
        )

    return [[float(x) for x in v] for v in vectors]


class GenerationClient:
    """Async client for the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = config.ANTHROPIC_API_KEY if api_key is None else api_key
        self.base_url = (base_url or config.ANTHROPIC_BASE_URL).rstrip("/")
        self.model = model or config.CHAT_MODEL
        self.timeout = timeout or config.HTTP_TIMEOUT
        self._transport = transport

    async def generate(self, prompt: str, max_tokens: int = None) -> str:
        """Send a single-turn prompt and return the text of the reply.

        Args:
            prompt: Full prompt text
            max_tokens: Output length bound (defaults to config.GENERATION_MAX_TOKENS)

        Returns:
            Concatenated text blocks of the model response

        Raises:
            InvalidConfigurationError: If no API key is configured
            GenerationServiceError: On HTTP errors or malformed responses
        """
        if not self.api_key:
            raise InvalidConfigurationError("ANTHROPIC_API_KEY is not set")

        max_tokens = max_tokens or config.GENERATION_MAX_TOKENS

        payload = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": config.ANTHROPIC_VERSION,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                logger.info(
                    "generation_request",
                    model=self.model,
                    prompt_length=len(prompt),
                    max_tokens=max_tokens,
                )

                response = await client.post(
                    f"{self.base_url}/v1/messages",
                    headers=headers,
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPError as e:
            logger.error(
                "generation_request_failed",
                model=self.model,
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise GenerationServiceError(f"Generation request failed: {e}") from e
        except ValueError as e:
            logger.error("generation_response_not_json", error=str(e))
            raise GenerationServiceError(f"Invalid generation response: {e}") from e

        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise GenerationServiceError("Generation response has no content")

        text = "".join(
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )

        logger.info(
            "generation_response",
            model=self.model,
            response_length=len(text),
            stop_reason=data.get("stop_reason"),
        )

        return text
