# app/presentation/schemas.py
from __future__ import annotations
import base64, binascii
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Literal


def _strip_data_url(v: str) -> str:
    v = (v or "").strip()
    if v.startswith("data:") and "," in v:
        return v.split(",", 1)[1]
    return v


def decode_b64(v: str) -> bytes:
    return base64.b64decode(_strip_data_url(v), validate=True)


class _Camel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

# ── IDENTIFY ─────────────────────────────────────────────────────
class IdentifyRequest(_Camel):
    image: str = Field(..., description="data URL or bare base64 of the packaging photo")

    @field_validator("image")
    @classmethod
    def _check_image(cls, v: str) -> str:
        try:
            decode_b64(v)
        except (binascii.Error, ValueError) as e:
            raise ValueError("image is not valid base64") from e
        return v

    def mime(self) -> str:
        if self.image.startswith("data:") and ";" in self.image:
            return self.image[5:self.image.index(";")] or "image/jpeg"
        return "image/jpeg"

# ── FETCH (regulatory document) ─────────────────────────────────
class CandidateSchema(_Camel):
    display_name: str = Field(alias="displayName")
    active_substance_text: str = Field("", alias="activeSubstanceText")
    row_index: int = Field(alias="rowIndex")
    name_similarity: float = Field(alias="nameSimilarity")
    substance_similarity: float = Field(alias="substanceSimilarity")
    combined_similarity: float = Field(alias="combinedSimilarity")

class FetchLeafletResponse(_Camel):
    status: Literal["found", "not_found", "error"]
    document: Optional[str] = Field(None, description="base64 PDF")
    content_type: str = Field("application/pdf", alias="contentType")
    document_kind: str = Field("RCM", alias="documentKind")
    fi: Optional[str] = None
    match: Optional[CandidateSchema] = None
    low_confidence: bool = Field(False, alias="lowConfidence")
    tier: Optional[int] = None
    attempts: int = 0
    message: str = ""

# ── PROCESS / QUERY ──────────────────────────────────────────────
class PdfPayload(_Camel):
    pdf_base64: str = Field(..., alias="pdfBase64")

    @field_validator("pdf_base64")
    @classmethod
    def _check_pdf(cls, v: str) -> str:
        try:
            raw = decode_b64(v)
        except (binascii.Error, ValueError) as e:
            raise ValueError("pdfBase64 is not valid base64") from e
        if not raw:
            raise ValueError("pdfBase64 is empty")
        return v

    def pdf_bytes(self) -> bytes:
        return decode_b64(self.pdf_base64)

class QueryRequest(PdfPayload):
    question: str = Field(..., min_length=1)

class ProcessResponse(_Camel):
    success: bool
    document_count: int = Field(0, alias="documentCount")
    message: str = ""
    error: Optional[str] = None

class SourceChunk(_Camel):
    page_number: int = Field(alias="pageNumber")
    text: str

class QueryResponse(_Camel):
    success: bool
    answer: str
    cited_pages: List[int] = Field(default_factory=list, alias="citedPages")
    mentioned_pages: List[int] = Field(default_factory=list, alias="mentionedPages")
    source_count: int = Field(0, alias="sourceCount")
    sources: List[SourceChunk] = Field(default_factory=list)
    error: Optional[str] = None
