"""
Blocking client for a local Ollama server.

Used by the Ollama embedding provider and the Ollama query expander.
"""

from typing import Any, Dict, List, Optional

import requests

from contextrank.core.exceptions import ProviderUnavailableError
from contextrank.core.logging import logger


class OllamaClient:
    """
    Minimal Ollama HTTP client.

    Every failure (connection, timeout, HTTP status, malformed body) is
    raised as ProviderUnavailableError so callers can take the fallback path.
    """

    def __init__(self, base_url: str = "http://localhost:11434", timeout: float = 10.0) -> None:
        """Initialize the client.

        Args:
            base_url: Ollama server URL
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        logger.info("OllamaClient ready", base_url=self.base_url, timeout=timeout)

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            raise ProviderUnavailableError(
                f"Ollama request timed out after {self.timeout}s",
                code="OLLAMA_TIMEOUT",
                context={"url": url},
                cause=e,
            )
        except requests.RequestException as e:
            raise ProviderUnavailableError(
                f"Cannot reach Ollama at {self.base_url}: {e}",
                code="OLLAMA_UNREACHABLE",
                context={"url": url},
                cause=e,
            )

        if response.status_code != 200:
            raise ProviderUnavailableError(
                f"Ollama returned HTTP {response.status_code}",
                code="OLLAMA_HTTP_ERROR",
                context={"url": url, "status": response.status_code, "body": response.text[:200]},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderUnavailableError(
                "Ollama returned a non-JSON body", code="OLLAMA_NO_RESPONSE", cause=e
            )
        if not isinstance(data, dict):
            raise ProviderUnavailableError(
                "Ollama returned an unexpected body", code="OLLAMA_NO_RESPONSE"
            )
        return data

    def embed(self, model: str, texts: List[str]) -> List[List[float]]:
        """Embed several texts with one /api/embed call."""
        data = self._post("/api/embed", {"model": model, "input": texts})
        embeddings = data.get("embeddings")
        if not isinstance(embeddings, list) or len(embeddings) != len(texts):
            raise ProviderUnavailableError(
                "Ollama returned an unexpected number of embeddings",
                code="OLLAMA_NO_RESPONSE",
                context={"expected": len(texts)},
            )
        return embeddings

    def generate(self, model: str, prompt: str, options: Optional[Dict[str, Any]] = None) -> str:
        """Single non-streaming completion."""
        payload: Dict[str, Any] = {"model": model, "prompt": prompt, "stream": False}
        if options:
            payload["options"] = options
        data = self._post("/api/generate", payload)
        text = data.get("response")
        if not isinstance(text, str):
            raise ProviderUnavailableError(
                "Ollama returned no completion", code="OLLAMA_NO_RESPONSE"
            )
        return text

    def close(self) -> None:
        self.session.close()
