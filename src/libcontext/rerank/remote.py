"""Remote rerank APIs (Cohere, Jina) through litellm.rerank().

Both providers share one request/response shape: query + documents + top_n
in, ``results[{index, relevance_score}]`` out. The retry policy is uniform:

- 429, 5xx and transport failures are retried with exponential backoff
  (1s, 2s) for at most 3 attempts, then raise RerankRateLimitError,
  RerankServerError or RerankNetworkError.
- 401 raises RerankAuthenticationError at once.
- Any other 4xx raises RerankClientError at once, carrying the provider's
  message.

litellm's own retries stay off (no ``num_retries``), so this loop is the
only one in effect.
"""

from __future__ import annotations

import logging
import time

import litellm

from libcontext.errors import (
    ConfigError,
    RerankAuthenticationError,
    RerankClientError,
    RerankDeadlineError,
    RerankError,
    RerankNetworkError,
    RerankRateLimitError,
    RerankServerError,
)
from libcontext.rerank.base import RankedResult, Reranker

litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 1.0

_NETWORK_ERRORS: tuple[type[BaseException], ...] = (
    litellm.Timeout,
    litellm.APIConnectionError,
    ConnectionError,
    TimeoutError,
)


def classify_error(exc: BaseException) -> tuple[str, int | None]:
    """Map an exception from a rerank call to (kind, status_code).

    kind is one of ``"network"``, ``"auth"``, ``"rate_limit"``, ``"server"``,
    ``"client"`` or ``"unknown"``.
    """
    if isinstance(exc, _NETWORK_ERRORS):
        return "network", None
    status = getattr(exc, "status_code", None)
    if not isinstance(status, int):
        return "unknown", None
    if status == 401:
        return "auth", status
    if status == 429:
        return "rate_limit", status
    if status >= 500:
        return "server", status
    if 400 <= status < 500:
        return "client", status
    return "unknown", status


def _error_message(exc: BaseException) -> str:
    return getattr(exc, "message", None) or str(exc) or type(exc).__name__


class RemoteReranker(Reranker):
    """Shared client for rerank APIs; subclasses set the provider defaults."""

    label: str = ""
    litellm_provider: str = ""
    default_model: str = ""
    default_api_url: str = ""

    def __init__(
        self,
        api_key: str | None,
        model_name: str | None = None,
        api_url: str | None = None,
    ) -> None:
        if not api_key:
            raise ConfigError(
                f"{self.label} reranking provider requires an API key. "
                "Set RERANKING_API_KEY or reranking.api_key in libcontext.yaml."
            )
        self._api_key = api_key
        self.model_name = model_name or self.default_model
        self.api_url = api_url or self.default_api_url
        self._api_url_override = api_url

    def _score(self, query, documents, top_n, deadline):
        n = len(documents) if top_n is None else min(top_n, len(documents))
        response = self._request_with_retry(query, documents, n, deadline)
        results = getattr(response, "results", None)
        if results is None and isinstance(response, dict):
            results = response.get("results")
        if results is None:
            raise RerankError(f"Invalid response from {self.label} API", provider=self.name)

        ranked: list[RankedResult] = []
        for item in results:
            index = int(item["index"])
            if not 0 <= index < len(documents):
                raise RerankError(
                    f"{self.label} API returned out-of-range index {index}", provider=self.name
                )
            ranked.append(
                RankedResult(
                    content=documents[index],
                    score=float(item["relevance_score"]),
                    original_index=index,
                )
            )
        return ranked

    def _request(self, query: str, documents: list[str], top_n: int):
        kwargs: dict = {
            "model": f"{self.litellm_provider}/{self.model_name}",
            "query": query,
            "documents": documents,
            "top_n": top_n,
            "api_key": self._api_key,
        }
        if self._api_url_override:
            kwargs["api_base"] = self._api_url_override
        return litellm.rerank(**kwargs)

    def _request_with_retry(
        self,
        query: str,
        documents: list[str],
        top_n: int,
        deadline: float | None,
    ):
        attempt = 0
        while True:
            attempt += 1
            try:
                return self._request(query, documents, top_n)
            except Exception as exc:
                kind, status = classify_error(exc)
                self._raise_terminal(kind, status, attempt, exc)

                delay = BACKOFF_BASE_SECONDS * 2 ** (attempt - 1)
                if deadline is not None and time.monotonic() + delay >= deadline:
                    raise RerankDeadlineError(
                        f"{self.label} API deadline reached after {attempt} attempt(s)",
                        provider=self.name,
                        status_code=status,
                        attempts=attempt,
                    ) from exc
                logger.warning(
                    "%s rerank %s (attempt %d/%d), retrying in %.0fs",
                    self.label,
                    f"HTTP {status}" if status else "network error",
                    attempt,
                    MAX_ATTEMPTS,
                    delay,
                )
                time.sleep(delay)

    def _raise_terminal(self, kind: str, status: int | None, attempt: int, exc: Exception) -> None:
        """Raise unless *kind* is retryable and attempts remain."""
        common = {"provider": self.name, "status_code": status, "attempts": attempt}
        if kind == "auth":
            raise RerankAuthenticationError(
                f"{self.label} API authentication failed. Please check your API key.", **common
            ) from exc
        if kind == "client":
            raise RerankClientError(_error_message(exc), **common) from exc
        if kind == "unknown":
            raise RerankError(f"{self.label} API error: {_error_message(exc)}", **common) from exc
        if attempt < MAX_ATTEMPTS:
            return
        if kind == "rate_limit":
            raise RerankRateLimitError(
                f"{self.label} API rate limit exceeded after max retries", **common
            ) from exc
        if kind == "server":
            raise RerankServerError(
                f"{self.label} API server error ({status}) after max retries", **common
            ) from exc
        raise RerankNetworkError(f"{self.label} API network error after max retries", **common) from exc


class CohereReranker(RemoteReranker):
    name = "cohere"
    label = "Cohere"
    litellm_provider = "cohere"
    default_model = "rerank-english-v3.0"
    default_api_url = "https://api.cohere.ai/v1/rerank"


class JinaReranker(RemoteReranker):
    name = "jina"
    label = "Jina"
    litellm_provider = "jina_ai"
    default_model = "jina-reranker-v1-base-en"
    default_api_url = "https://api.jina.ai/v1/rerank"
