# app/infra/llm/openai_embedder.py
from __future__ import annotations
import logging
import os, time
from typing import List, Optional
from openai import OpenAI
from openai import APIConnectionError, APITimeoutError, InternalServerError, RateLimitError

from app.domain.ports import EmbedderPort

EMBED_MODEL       = os.getenv("EMBED_MODEL", "text-embedding-3-small")  # 1536 dim
EMBED_MAX_RETRIES = int(os.getenv("EMBED_MAX_RETRIES", "4"))
# hard API cap is 2048 inputs per request
EMBED_REQUEST_MAX = int(os.getenv("EMBED_REQUEST_MAX", "512"))

_TRANSIENT = (RateLimitError, APIConnectionError, APITimeoutError, InternalServerError)

logger = logging.getLogger("folheto.llm")


def openai_client(api_key: Optional[str] = None) -> OpenAI:
    """Sync client from env; OPENAI_BASE_URL / OPENAI_ORG / OPENAI_PROJECT are optional."""
    key = api_key or os.getenv("OPENAI_API_KEY")
    if not key:
        raise RuntimeError("OPENAI_API_KEY not set. Export it or add OPENAI_API_KEY=sk-*** to .env")
    kwargs = {"api_key": key}
    for env, arg in (("OPENAI_BASE_URL", "base_url"), ("OPENAI_ORG", "organization"), ("OPENAI_PROJECT", "project")):
        if os.getenv(env):
            kwargs[arg] = os.getenv(env)
    return OpenAI(**kwargs)


def _clean(text: str | None) -> str:
    # the API rejects empty input; newlines hurt older models
    return (text or " ").replace("\n", " ").strip() or " "


class OpenAIEmbedder(EmbedderPort):
    """Leaflet chunks and questions are embedded with the same model."""
    def __init__(self, *, model: str | None = None, api_key: str | None = None,
                 max_retries: int = EMBED_MAX_RETRIES, request_max: int = EMBED_REQUEST_MAX):
        self.model = model or EMBED_MODEL
        self.api_key = api_key
        self.max_retries = max_retries
        self.request_max = request_max
        self._client: OpenAI | None = None

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = openai_client(self.api_key)
        return self._client

    def _request(self, inputs: List[str]) -> List[List[float]]:
        delay = 1.0
        for attempt in range(self.max_retries + 1):
            try:
                rsp = self.client.embeddings.create(model=self.model, input=inputs)
                rows = sorted(rsp.data, key=lambda d: d.index)
                return [d.embedding for d in rows]
            except _TRANSIENT as e:
                if attempt == self.max_retries:
                    raise
                logger.warning("embeddings %s (attempt %d/%d), sleeping %.0fs",
                               type(e).__name__, attempt + 1, self.max_retries, delay)
                time.sleep(delay)
                delay = min(delay * 2, 8.0)
        return []

    def embed_query(self, text: str) -> List[float]:
        return self._request([_clean(text)])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        out: List[List[float]] = []
        for i in range(0, len(texts), self.request_max):
            out.extend(self._request([_clean(t) for t in texts[i:i + self.request_max]]))
        return out
