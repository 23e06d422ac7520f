# app/services/page_refs.py
from __future__ import annotations
import re
from typing import Iterable, List, Optional

# "página 3", "páginas 2-4", "pág. 3", "p. 3", "page 3", "secção 3", "(ver página 3)"
PAGE_REF = re.compile(
    r"\b(?:p[áa]ginas?|pages?|p[áa]g\.|p\.|sec[çc][ãa]o|se[çc][ãa]o|section|folha)\s*"
    r"(\d+)(?:\s*(?:-|–|—|a|to)\s*(\d+))?",
    re.IGNORECASE,
)

_MAX_RANGE = 50


def extract_page_refs(text: str, valid_pages: Optional[Iterable[int]] = None) -> List[int]:
    """Sorted unique page numbers mentioned in prose, optionally limited to pages that exist."""
    found = set()
    for m in PAGE_REF.finditer(text or ""):
        a = int(m.group(1))
        b = int(m.group(2)) if m.group(2) else a
        if b < a or b - a > _MAX_RANGE:
            b = a
        found.update(range(a, b + 1))
    found.discard(0)
    if valid_pages is not None:
        found &= set(valid_pages)
    return sorted(found)
