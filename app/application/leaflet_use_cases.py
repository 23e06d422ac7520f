# app/application/leaflet_use_cases.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from app.domain.errors import DocumentParseError
from app.domain.models import AnsweredQuestion
from app.infra.cache.index_cache import LeafletIndexCache, pdf_key
from app.infra.search.faiss_index import LeafletVectorIndex
from app.services.leaflet_indexer import LeafletIndexer
from app.services.leaflet_qa import LeafletQuestionAnswerer
from app.services.prompt_service import PromptService

logger = logging.getLogger("folheto.qa")


class LeafletUseCase:
    """
    process / query / overview over raw PDF bytes.
    Indexes are cached by PDF hash for the process lifetime (see LeafletIndexCache).
    """
    def __init__(
        self,
        indexer: LeafletIndexer,
        answerer: LeafletQuestionAnswerer,
        cache: LeafletIndexCache,
        prompts: PromptService,
    ):
        self.indexer = indexer
        self.answerer = answerer
        self.cache = cache
        self.prompts = prompts

    async def index_for(self, pdf_bytes: bytes) -> LeafletVectorIndex:
        key = pdf_key(pdf_bytes)
        idx = self.cache.get(key)
        if idx is not None:
            logger.info("leaflet index cache hit %s", key[:12])
            return idx
        # PyMuPDF + embedding calls are blocking
        idx = await asyncio.to_thread(self.indexer.build_index, pdf_bytes)
        self.cache.put(key, idx)
        return idx

    async def process(self, pdf_bytes: bytes) -> Dict[str, Any]:
        try:
            idx = await self.index_for(pdf_bytes)
        except DocumentParseError as e:
            logger.error("leaflet processing failed: %s", e)
            return {"success": False, "documentCount": 0,
                    "message": self.prompts.message("process_error"), "error": str(e)}
        if idx.is_empty:
            return {"success": True, "documentCount": 0,
                    "message": self.prompts.message("empty_leaflet")}
        return {"success": True, "documentCount": len(idx),
                "message": self.prompts.message("process_ok", count=len(idx))}

    async def query(self, pdf_bytes: bytes, question: str) -> AnsweredQuestion:
        try:
            idx = await self.index_for(pdf_bytes)
        except DocumentParseError as e:
            logger.error("cannot answer, leaflet unreadable: %s", e)
            return AnsweredQuestion(
                question=question,
                answer_text=self.prompts.message("process_error"),
                success=False,
                error=str(e),
            )
        except Exception as e:
            # embedding outage while indexing counts as an answering failure
            logger.exception("cannot answer, indexing failed: %s", e)
            return AnsweredQuestion(
                question=question,
                answer_text=self.prompts.message("answer_error"),
                success=False,
                error=str(e) or type(e).__name__,
            )
        return await self.answerer.answer(idx, question)

    async def overview(self, pdf_bytes: bytes) -> AnsweredQuestion:
        return await self.query(pdf_bytes, self.prompts.message("overview_question"))


class IdentifyMedicineUseCase:
    def __init__(self, identifier):
        self.identifier = identifier

    async def execute(self, image_b64: str, mime: str = "image/jpeg"):
        # IdentificationError propagates; router maps it to a localized 422
        return await self.identifier.identify_medicine(image_b64, mime)
