# app/presentation/routers.py
from __future__ import annotations

import base64
import io
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from PIL import Image, UnidentifiedImageError

from app.application.fetch_leaflet_use_case import FetchLeafletUseCase
from app.application.leaflet_use_cases import IdentifyMedicineUseCase, LeafletUseCase
from app.container import (
    get_fetch_use_case, get_identify_use_case, get_leaflet_use_case, get_prompt_service,
)
from app.domain.errors import IdentificationError
from app.domain.models import AnsweredQuestion, MedicineIdentity
from app.presentation.schemas import (
    CandidateSchema, FetchLeafletResponse, IdentifyRequest, PdfPayload,
    ProcessResponse, QueryRequest, QueryResponse, SourceChunk,
)
from app.services.prompt_service import PromptService

# ──────────────────────────────────────────────────────────────────────
# Logging
# ──────────────────────────────────────────────────────────────────────
logger = logging.getLogger(__name__)

def _preview(s: str | None, n: int = 200) -> str:
    s = (s or "").strip()
    return s if len(s) <= n else s[:n] + "…"

def _to_query_response(res: AnsweredQuestion) -> QueryResponse:
    return QueryResponse(
        success=res.success,
        answer=res.answer_text,
        cited_pages=res.cited_pages,
        mentioned_pages=res.mentioned_pages,
        source_count=len(res.source_chunks),
        sources=[SourceChunk(page_number=c.page_number, text=c.text) for c in res.source_chunks],
        error=res.error,
    )

ALLOWED_CT = {"jpeg": "image/jpeg", "png": "image/png", "webp": "image/webp"}

router = APIRouter(prefix="/v1")

# ── IDENTIFY ──────────────────────────────────────────────────────
async def _identify(uc: IdentifyMedicineUseCase, prompts: PromptService, b64: str, mime: str):
    try:
        return await uc.execute(b64, mime)
    except IdentificationError as e:
        logger.warning("[identify] %s", e)
        raise HTTPException(status_code=422, detail=prompts.message("identify_error"))
    except Exception as e:
        logger.exception("[identify] failed")
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/identify", response_model=MedicineIdentity)
async def identify_json(
    req: IdentifyRequest,
    uc: IdentifyMedicineUseCase = Depends(get_identify_use_case),
    prompts: PromptService = Depends(get_prompt_service),
):
    b64 = req.image.split(",", 1)[1] if req.image.startswith("data:") else req.image
    return await _identify(uc, prompts, b64, req.mime())

@router.post("/identify-photo", response_model=MedicineIdentity)
async def identify_photo(
    img: UploadFile = File(...),
    uc: IdentifyMedicineUseCase = Depends(get_identify_use_case),
    prompts: PromptService = Depends(get_prompt_service),
):
    image_bytes = await img.read()
    if not image_bytes:
        raise HTTPException(status_code=400, detail="empty image")
    try:
        fmt = (Image.open(io.BytesIO(image_bytes)).format or "JPEG").lower()
    except UnidentifiedImageError:
        raise HTTPException(status_code=400, detail="file is not an image")
    mime = ALLOWED_CT.get(fmt)
    if mime is None:
        raise HTTPException(status_code=415, detail=f"unsupported image format: {fmt}")
    b64 = base64.b64encode(image_bytes).decode("ascii")
    return await _identify(uc, prompts, b64, mime)

# ── FETCH RCM ─────────────────────────────────────────────────────
@router.post("/leaflet/fetch", response_model=FetchLeafletResponse)
async def fetch_leaflet(
    identity: MedicineIdentity,
    uc: FetchLeafletUseCase = Depends(get_fetch_use_case),
):
    logger.info("[fetch] %s", identity.describe())
    try:
        res = await uc.execute(identity)
    except Exception as e:
        logger.exception("[fetch] unexpected failure")
        raise HTTPException(status_code=500, detail=str(e))

    logger.info("[fetch] status=%s tier=%s attempts=%s low_conf=%s",
                res.status, res.tier, res.attempts, res.low_confidence)
    return FetchLeafletResponse(
        status=res.status,
        document=res.document.as_base64() if res.document else None,
        document_kind=res.document.kind if res.document else "RCM",
        fi=None,
        match=CandidateSchema(**res.match.to_dict()) if res.match else None,
        low_confidence=res.low_confidence,
        tier=res.tier,
        attempts=res.attempts,
        message=res.message,
    )

# ── PROCESS / QUERY / OVERVIEW ────────────────────────────────────
@router.post("/leaflet/process", response_model=ProcessResponse)
async def process_leaflet(req: PdfPayload, uc: LeafletUseCase = Depends(get_leaflet_use_case)):
    try:
        out = await uc.process(req.pdf_bytes())
    except Exception as e:
        logger.exception("[process] failed")
        raise HTTPException(status_code=500, detail=str(e))
    return ProcessResponse(**out)

@router.post("/leaflet/query", response_model=QueryResponse)
async def query_leaflet(req: QueryRequest, uc: LeafletUseCase = Depends(get_leaflet_use_case)):
    logger.info("[query] q='%s'", _preview(req.question))
    res = await uc.query(req.pdf_bytes(), req.question)
    logger.info("[query] success=%s pages=%s", res.success, res.cited_pages)
    return _to_query_response(res)

@router.post("/leaflet/overview", response_model=QueryResponse)
async def leaflet_overview(req: PdfPayload, uc: LeafletUseCase = Depends(get_leaflet_use_case)):
    res = await uc.overview(req.pdf_bytes())
    return _to_query_response(res)
