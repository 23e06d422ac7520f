# app/domain/similarity.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from app.domain.models import MedicineIdentity, SearchResultCandidate

NAME_WEIGHT = 0.7
SUBSTANCE_WEIGHT = 0.3

_WS = re.compile(r"\s+")
_NUMERIC = re.compile(r"^[\d\s.,/-]+$")


def normalize(s: str | None) -> str:
    return _WS.sub(" ", (s or "").strip().lower())


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance, unit cost for insert/delete/substitute."""
    if len(a) < len(b):
        a, b = b, a
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        cur = [i]
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            cur.append(min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + cost))
        prev = cur
    return prev[-1]


def similarity(a: str | None, b: str | None) -> float:
    """
    Fuzzy score in [0, 1] between two medicine strings.

      - equal after normalization      -> 1.0
      - one contains the other         -> 0.8
      - otherwise 1 - lev(longer, shorter) / len(longer)

    Known bias: the containment shortcut ignores length, so "ben" vs
    "ben-u-ron" scores 0.8 while edit distance alone would give ~0.33, and it
    can outrank a real near-exact match on a short name. Kept as is.
    """
    s1, s2 = normalize(a), normalize(b)
    if s1 == s2:
        return 1.0
    if s1 in s2 or s2 in s1:
        return 0.8
    longer, shorter = (s1, s2) if len(s1) >= len(s2) else (s2, s1)
    return (len(longer) - levenshtein(longer, shorter)) / len(longer)


def combined_similarity(name_sim: float, substance_sim: float) -> float:
    return NAME_WEIGHT * name_sim + SUBSTANCE_WEIGHT * substance_sim


# ── Result rows → candidates ────────────────────────────────────────

@dataclass
class ResultColumns:
    """
    Which table cells carry the name / active substance.
    None = heuristic: skip numeric and very short cells, first qualifying
    cell is the name, second is the active substance.
    """
    name_index: Optional[int] = None
    substance_index: Optional[int] = None
    min_cell_length: int = 3


def _qualifies(cell: str, min_len: int) -> bool:
    c = (cell or "").strip()
    return len(c) >= min_len and not _NUMERIC.match(c)


def _cell(cells: Sequence[str], i: Optional[int]) -> str:
    if i is None or i < 0 or i >= len(cells):
        return ""
    return (cells[i] or "").strip()


def pick_columns(cells: Sequence[str], columns: ResultColumns) -> tuple[str, str]:
    if columns.name_index is not None:
        name = _cell(cells, columns.name_index)
        substance = _cell(cells, columns.substance_index)
        return name, substance

    qualifying = [c.strip() for c in cells if _qualifies(c, columns.min_cell_length)]
    name = qualifying[0] if qualifying else ""
    if columns.substance_index is not None:
        substance = _cell(cells, columns.substance_index)
    else:
        substance = qualifying[1] if len(qualifying) > 1 else ""
    return name, substance


def row_to_candidate(
    cells: Sequence[str],
    identity: MedicineIdentity,
    row_index: int,
    columns: ResultColumns | None = None,
) -> Optional[SearchResultCandidate]:
    name, substance = pick_columns(cells, columns or ResultColumns())
    if not name:
        return None
    name_sim = similarity(name, identity.name) if identity.name else 0.0
    sub_sim = (
        similarity(substance, identity.active_substance)
        if identity.active_substance and substance else 0.0
    )
    return SearchResultCandidate(
        display_name=name,
        active_substance_text=substance,
        row_index=row_index,
        name_similarity=name_sim,
        substance_similarity=sub_sim,
        combined_similarity=combined_similarity(name_sim, sub_sim),
    )


def rows_to_candidates(
    rows: Sequence[Sequence[str]],
    identity: MedicineIdentity,
    columns: ResultColumns | None = None,
) -> List[SearchResultCandidate]:
    out: List[SearchResultCandidate] = []
    for i, cells in enumerate(rows):
        cand = row_to_candidate(cells, identity, i, columns)
        if cand is not None:
            out.append(cand)
    return out
