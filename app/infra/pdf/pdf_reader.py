# app/infra/pdf/pdf_reader.py
from __future__ import annotations

import logging
from typing import List

import fitz  # PyMuPDF

from app.domain.errors import DocumentParseError

logger = logging.getLogger("folheto.index")


def extract_pages(pdf_bytes: bytes) -> List[str]:
    """Plain text per page (index 0 = page 1). Unreadable bytes → DocumentParseError."""
    if not pdf_bytes:
        raise DocumentParseError("empty PDF payload")
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as e:
        raise DocumentParseError(f"cannot open PDF: {e}") from e

    try:
        if doc.needs_pass:
            raise DocumentParseError("PDF is password protected")
        pages = [page.get_text("text") or "" for page in doc]
    except DocumentParseError:
        raise
    except Exception as e:
        raise DocumentParseError(f"cannot read PDF text: {e}") from e
    finally:
        doc.close()

    logger.info("PDF loaded: %d pages, %d chars", len(pages), sum(len(p) for p in pages))
    return pages
