# app/services/leaflet_indexer.py
from __future__ import annotations

import logging
import os
import time
from bisect import bisect_right
from typing import List, Sequence, Tuple

from langchain_text_splitters import RecursiveCharacterTextSplitter

from app.domain.models import LeafletChunk
from app.domain.ports import EmbedderPort
from app.infra.pdf.pdf_reader import extract_pages
from app.infra.search.faiss_index import LeafletVectorIndex, build_leaflet_index

CHUNK_SIZE    = int(os.getenv("CHUNK_SIZE", "800"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "150"))
EMBED_BATCH   = int(os.getenv("EMBED_BATCH", "256"))

# tried in order; "" is the character-level last resort
SEPARATORS = ("\n\n", "\n", ". ", " ", "")
PAGE_JOINER = "\n\n"

logger = logging.getLogger("folheto.index")


def join_pages(pages: Sequence[str]) -> Tuple[str, List[int]]:
    """Concatenate pages with a paragraph break; return (text, start offset of each page)."""
    starts: List[int] = []
    parts: List[str] = []
    pos = 0
    for i, p in enumerate(pages):
        if i:
            parts.append(PAGE_JOINER)
            pos += len(PAGE_JOINER)
        starts.append(pos)
        parts.append(p)
        pos += len(p)
    return "".join(parts), starts


def make_splitter(chunk_size: int, chunk_overlap: int) -> RecursiveCharacterTextSplitter:
    # separators stay on the end of the chunk and nothing is stripped,
    # so every chunk is a verbatim slice found back at start_index
    return RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        separators=list(SEPARATORS),
        keep_separator="end",
        add_start_index=True,
        strip_whitespace=False,
    )


def chunk_pages(
    pages: Sequence[str],
    chunk_size: int = CHUNK_SIZE,
    chunk_overlap: int = CHUNK_OVERLAP,
    source_tag: str = "RCM",
) -> List[LeafletChunk]:
    """
    Overlapping chunks over the joined leaflet text.

    Boundaries: paragraph, line, ". ", space, character. Each chunk keeps its
    offset in the joined text (text == joined[start:start+len(text)]) and the
    page of its first non-blank character.
    """
    if chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be smaller than chunk_size")

    text, starts = join_pages(pages)
    if not text.strip():
        return []

    chunks: List[LeafletChunk] = []
    for doc in make_splitter(chunk_size, chunk_overlap).create_documents([text]):
        piece = doc.page_content
        if not piece.strip():
            continue
        start = doc.metadata["start_index"]
        lead = len(piece) - len(piece.lstrip())
        page_no = bisect_right(starts, start + lead)  # 1-based
        chunks.append(LeafletChunk(text=piece, page_number=page_no, source_tag=source_tag, start=start))
    return chunks


class LeafletIndexer:
    def __init__(
        self,
        embedder: EmbedderPort,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP,
        batch_size: int = EMBED_BATCH,
    ):
        self.embedder = embedder
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.batch_size = batch_size

    def chunk(self, pdf_bytes: bytes) -> List[LeafletChunk]:
        pages = extract_pages(pdf_bytes)  # DocumentParseError propagates
        return chunk_pages(pages, self.chunk_size, self.chunk_overlap)

    def build_index(self, pdf_bytes: bytes) -> LeafletVectorIndex:
        t0 = time.perf_counter()
        chunks = self.chunk(pdf_bytes)
        if not chunks:
            logger.warning("leaflet has no extractable text; building empty index")
        index = build_leaflet_index(chunks=chunks, embedder=self.embedder, batch_size=self.batch_size)
        logger.info("indexed %d chunks in %.0f ms", len(chunks), (time.perf_counter() - t0) * 1000)
        return index
