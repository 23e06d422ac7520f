# app/domain/models.py
from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class MedicineIdentity(BaseModel):
    """Search key produced by the vision model or the manual form."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    brand: str = ""
    active_substance: str = Field("", alias="activeSubstance")
    dosage: str = ""

    def describe(self) -> str:
        return f"{self.name or '?'} ({self.active_substance or '?'}, {self.dosage or '?'})"


class SearchAttempt(BaseModel):
    """One fallback tier: the subset of identity fields sent to the portal."""
    model_config = ConfigDict(populate_by_name=True)

    tier: int
    label: str
    name: Optional[str] = None
    active_substance: Optional[str] = Field(None, alias="activeSubstance")
    dosage: Optional[str] = None

    def fields(self) -> dict:
        return {
            "name": self.name,
            "active_substance": self.active_substance,
            "dosage": self.dosage,
        }

    def key(self) -> tuple:
        return (self.name or "", self.active_substance or "", self.dosage or "")


@dataclass
class SearchResultCandidate:
    display_name: str
    active_substance_text: str
    row_index: int
    name_similarity: float
    substance_similarity: float
    combined_similarity: float

    def to_dict(self) -> dict:
        return {
            "displayName": self.display_name,
            "activeSubstanceText": self.active_substance_text,
            "rowIndex": self.row_index,
            "nameSimilarity": round(self.name_similarity, 4),
            "substanceSimilarity": round(self.substance_similarity, 4),
            "combinedSimilarity": round(self.combined_similarity, 4),
        }


@dataclass
class RegulatoryDocument:
    content: bytes
    kind: str = "RCM"
    fi: Optional[bytes] = None   # patient leaflet; reserved, never fetched

    def as_base64(self) -> str:
        return base64.b64encode(self.content).decode("ascii")


@dataclass
class LeafletFetchResult:
    status: Literal["found", "not_found", "error"]
    document: Optional[RegulatoryDocument] = None
    match: Optional[SearchResultCandidate] = None
    low_confidence: bool = False
    tier: Optional[int] = None
    attempts: int = 0
    message: str = ""


@dataclass
class LeafletChunk:
    text: str
    page_number: int
    source_tag: str = "RCM"
    start: int = 0   # offset in the joined leaflet text


@dataclass
class AnsweredQuestion:
    question: str
    answer_text: str
    cited_pages: List[int] = field(default_factory=list)
    source_chunks: List[LeafletChunk] = field(default_factory=list)
    success: bool = True
    error: Optional[str] = None
    mentioned_pages: List[int] = field(default_factory=list)
