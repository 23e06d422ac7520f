# app/services/leaflet_qa.py
from __future__ import annotations

import asyncio
import logging
import os
from typing import List

from app.domain.errors import AnsweringFailure
from app.domain.models import AnsweredQuestion, LeafletChunk
from app.domain.ports import ChatLlmPort, EmbedderPort
from app.infra.search.faiss_index import LeafletVectorIndex
from app.services.page_refs import extract_page_refs
from app.services.prompt_service import PromptService

RETRIEVAL_K       = int(os.getenv("RETRIEVAL_K", "6"))
RETRIEVAL_FETCH_K = int(os.getenv("RETRIEVAL_FETCH_K", "20"))
RETRIEVAL_LAMBDA  = float(os.getenv("RETRIEVAL_LAMBDA", "0.5"))
QA_TEMPERATURE    = float(os.getenv("LLM_TEMPERATURE", "0"))

logger = logging.getLogger("folheto.qa")


def cited_pages(chunks: List[LeafletChunk]) -> List[int]:
    return sorted({c.page_number for c in chunks})


class LeafletQuestionAnswerer:
    """
    Grounded Q&A over one leaflet index.

    Never raises to the caller: LLM/retrieval failures come back as the
    localized apology with success=False and `error` set.
    """
    def __init__(
        self,
        embedder: EmbedderPort,
        llm: ChatLlmPort,
        prompts: PromptService,
        k: int = RETRIEVAL_K,
        fetch_k: int = RETRIEVAL_FETCH_K,
        lambda_mult: float = RETRIEVAL_LAMBDA,
    ):
        self.embedder = embedder
        self.llm = llm
        self.prompts = prompts
        self.k = k
        self.fetch_k = fetch_k
        self.lambda_mult = lambda_mult

    def retrieve(self, index: LeafletVectorIndex, question: str) -> List[LeafletChunk]:
        qvec = self.embedder.embed_query(question)
        hits = index.max_marginal_relevance_search(
            qvec, k=self.k, fetch_k=self.fetch_k, lambda_mult=self.lambda_mult
        )
        return [c for c, _ in hits]

    async def answer(self, index: LeafletVectorIndex, question: str) -> AnsweredQuestion:
        if index.is_empty:
            logger.warning("question on empty leaflet index")
            return AnsweredQuestion(
                question=question,
                answer_text=self.prompts.message("empty_leaflet"),
                success=False,
                error="empty_leaflet",
            )

        try:
            # sync embedding call and its retry sleeps stay off the event loop
            chunks = await asyncio.to_thread(self.retrieve, index, question)
            pages = cited_pages(chunks)
            logger.info("retrieved %d chunks from pages %s", len(chunks), pages)

            out = await self.llm.complete(
                system=self.prompts.qa_system_prompt(),
                user=self.prompts.qa_user_prompt(question, chunks),
                temperature=QA_TEMPERATURE,
            )
            text = (out.get("answer") or "").strip()
            if not text:
                raise AnsweringFailure("language model returned an empty answer")
        except Exception as e:
            logger.exception("answering failed: %s", e)
            return AnsweredQuestion(
                question=question,
                answer_text=self.prompts.message("answer_error"),
                success=False,
                error=str(e) or type(e).__name__,
            )

        known_pages = {c.page_number for c in index.chunks}
        return AnsweredQuestion(
            question=question,
            answer_text=text,
            cited_pages=pages,
            source_chunks=chunks,
            success=True,
            mentioned_pages=extract_page_refs(text, known_pages),
        )
