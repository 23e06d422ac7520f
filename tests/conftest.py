# tests/conftest.py
import asyncio
import hashlib
import re
from contextlib import asynccontextmanager
from typing import Callable, Dict, List, Optional

import fitz
import pytest

from app.domain.ports import ChatLlmPort, EmbedderPort, PortalSession
from app.services.prompt_service import PromptService

_TOKEN = re.compile(r"\w+", re.UNICODE)


class FakeEmbedder(EmbedderPort):
    """Hashed bag-of-words; texts sharing words get similar vectors."""
    def __init__(self, dim: int = 64):
        self.dim = dim
        self.batch_calls = 0
        self.query_calls = 0

    def _vec(self, text: str) -> List[float]:
        v = [0.0] * self.dim
        for tok in _TOKEN.findall((text or "").lower()):
            h = int.from_bytes(hashlib.md5(tok.encode("utf-8")).digest()[:4], "big")
            v[h % self.dim] += 1.0
        return v

    def embed_query(self, text: str) -> List[float]:
        self.query_calls += 1
        return self._vec(text)

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.batch_calls += 1
        return [self._vec(t) for t in texts]


class ScriptedLlm(ChatLlmPort):
    """Returns reply(system, user); records every call."""
    def __init__(self, reply: Callable[[str, str], str] | None = None, error: Exception | None = None):
        self.reply = reply or (lambda system, user: "Resposta de teste (ver página 1).")
        self.error = error
        self.calls: List[Dict] = []

    async def complete(self, *, system: str, user, temperature=None):
        self.calls.append({"system": system, "user": user, "temperature": temperature})
        if self.error is not None:
            raise self.error
        return {"answer": self.reply(system, user), "model": "scripted"}


class FakePortal(PortalSession):
    """
    In-memory portal.
      results: tier -> table rows; tiers not present answer 'no results'.
      pdfs:    row index -> bytes delivered through the 'side channel'.
    """
    def __init__(
        self,
        results: Dict[int, List[List[str]]],
        pdfs: Optional[Dict[int, bytes]] = None,
        click_error: Exception | None = None,
        search_error: Exception | None = None,
    ):
        self.results = results
        self.pdfs = pdfs or {}
        self.click_error = click_error
        self.search_error = search_error
        self.searched: List = []
        self.clicked: List[int] = []
        self.opened = 0
        self.closed = 0
        self._current: Optional[int] = None
        self._future: Optional[asyncio.Future] = None

    def _fut(self) -> asyncio.Future:
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
        return self._future

    async def search(self, attempt) -> bool:
        self.searched.append(attempt)
        if self.search_error is not None:
            raise self.search_error
        self._current = attempt.tier if attempt.tier in self.results else None
        return self._current is not None

    async def result_rows(self):
        return self.results.get(self._current, [])

    async def open_document(self, row_index: int) -> None:
        self.clicked.append(row_index)
        pdf = self.pdfs.get(row_index)
        fut = self._fut()
        if pdf is not None:
            asyncio.get_running_loop().call_later(0.01, lambda: fut.done() or fut.set_result(pdf))
        if self.click_error is not None:
            raise self.click_error

    async def await_first_pdf(self, timeout_ms: int):
        try:
            return await asyncio.wait_for(asyncio.shield(self._fut()), timeout_ms / 1000)
        except asyncio.TimeoutError:
            return None


def session_factory(portal: FakePortal):
    @asynccontextmanager
    async def _cm():
        portal.opened += 1
        try:
            yield portal
        finally:
            portal.closed += 1
    return _cm


def make_pdf(pages: List[str]) -> bytes:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def prompts() -> PromptService:
    return PromptService()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_portal_cls():
    return FakePortal


@pytest.fixture
def portal_factory():
    return session_factory


@pytest.fixture
def scripted_llm_cls():
    return ScriptedLlm


@pytest.fixture
def pdf_maker():
    return make_pdf
