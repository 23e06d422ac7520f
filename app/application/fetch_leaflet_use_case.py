# app/application/fetch_leaflet_use_case.py
from __future__ import annotations

import asyncio
import logging
import os
from typing import List, Optional, Tuple

from app.domain.errors import AutomationError, InterceptionTimeout, NoResultsError
from app.domain.models import (
    LeafletFetchResult, MedicineIdentity, RegulatoryDocument,
    SearchAttempt, SearchResultCandidate,
)
from app.domain.ports import PortalSession, PortalSessionFactory
from app.domain.similarity import ResultColumns, rows_to_candidates
from app.services.prompt_service import PromptService

PDF_CAPTURE_TIMEOUT_MS = int(os.getenv("PDF_CAPTURE_TIMEOUT_MS", "30000"))
LOW_CONFIDENCE_THRESHOLD = 0.5

logger = logging.getLogger("folheto.fetch")


def build_search_attempts(identity: MedicineIdentity) -> List[SearchAttempt]:
    """
    Tiers, most specific first:
      1) name + substance + dosage   (dosage mismatch is the usual false negative)
      2) name + substance            (other strengths)
      3) name                        (formulation variants)
      4) substance                   (broadest)
    Tiers with no usable field, or identical to an earlier tier, are dropped.
    """
    name = (identity.name or "").strip() or None
    sub = (identity.active_substance or "").strip() or None
    dose = (identity.dosage or "").strip() or None

    plan = [
        (1, "name+substance+dosage", dict(name=name, active_substance=sub, dosage=dose)),
        (2, "name+substance", dict(name=name, active_substance=sub)),
        (3, "name", dict(name=name)),
        (4, "substance", dict(active_substance=sub)),
    ]
    out: List[SearchAttempt] = []
    seen = set()
    for tier, label, f in plan:
        if not any(f.values()):
            continue
        att = SearchAttempt(tier=tier, label=label, **f)
        if att.key() in seen:
            continue
        seen.add(att.key())
        out.append(att)
    return out


def select_best_match(candidates: List[SearchResultCandidate]) -> Optional[SearchResultCandidate]:
    best: Optional[SearchResultCandidate] = None
    for c in candidates:
        if best is None or c.combined_similarity > best.combined_similarity:
            best = c
    return best


class LeafletRetriever:
    """
    Portal search with progressive fallback, best-match selection and
    PDF capture. One portal session per fetch_leaflet() call.
    """
    def __init__(
        self,
        session_factory: PortalSessionFactory,
        columns: ResultColumns | None = None,
        capture_timeout_ms: int = PDF_CAPTURE_TIMEOUT_MS,
    ):
        self.session_factory = session_factory
        self.columns = columns
        self.capture_timeout_ms = capture_timeout_ms

    async def _search_tiers(
        self, session: PortalSession, identity: MedicineIdentity
    ) -> Tuple[SearchAttempt, List[SearchResultCandidate], int]:
        attempts = build_search_attempts(identity)
        for n, attempt in enumerate(attempts, 1):
            logger.info("=== attempt %d/%d (tier %d: %s) ===", n, len(attempts), attempt.tier, attempt.label)
            if not await session.search(attempt):
                logger.info("tier %d: no results", attempt.tier)
                continue
            rows = await session.result_rows()
            candidates = rows_to_candidates(rows, identity, self.columns)
            if candidates:
                logger.info("tier %d succeeded with %d candidate(s)", attempt.tier, len(candidates))
                return attempt, candidates, n
            logger.info("tier %d: table rendered but no usable rows", attempt.tier)
        raise NoResultsError(f"no results on any of {len(attempts)} tier(s) for {identity.describe()}")

    async def _capture(self, session: PortalSession, best: SearchResultCandidate) -> bytes:
        # click is best-effort; only the interceptor decides the outcome
        click = asyncio.ensure_future(session.open_document(best.row_index))
        click.add_done_callback(_swallow_click_error)
        try:
            pdf = await session.await_first_pdf(self.capture_timeout_ms)
        finally:
            if not click.done():
                click.cancel()
        if not pdf:
            raise InterceptionTimeout(f"no PDF within {self.capture_timeout_ms} ms")
        return pdf

    async def fetch_leaflet(self, identity: MedicineIdentity) -> LeafletFetchResult:
        """Raises AutomationError on hard automation failures (after teardown)."""
        logger.info("starting leaflet search for %s", identity.describe())
        attempts_made = 0
        async with self.session_factory() as session:
            try:
                attempt, candidates, attempts_made = await self._search_tiers(session, identity)
            except NoResultsError as e:
                logger.warning("%s", e)
                return LeafletFetchResult(status="not_found", attempts=len(build_search_attempts(identity)))

            best = select_best_match(candidates)
            low = best.combined_similarity < LOW_CONFIDENCE_THRESHOLD
            logger.info("best match: %r (combined=%.2f, name=%.2f, substance=%.2f)",
                        best.display_name, best.combined_similarity,
                        best.name_similarity, best.substance_similarity)
            if low:
                logger.warning("low confidence match (%.2f) for %s, proceeding",
                               best.combined_similarity, identity.describe())

            try:
                pdf = await self._capture(session, best)
            except InterceptionTimeout as e:
                logger.error("failed to retrieve PDF: %s", e)
                return LeafletFetchResult(
                    status="not_found", match=best, low_confidence=low,
                    tier=attempt.tier, attempts=attempts_made,
                )

        logger.info("retrieved PDF (%d bytes) from tier %d", len(pdf), attempt.tier)
        return LeafletFetchResult(
            status="found",
            document=RegulatoryDocument(content=pdf, kind="RCM"),
            match=best,
            low_confidence=low,
            tier=attempt.tier,
            attempts=attempts_made,
        )


def _swallow_click_error(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.info("document click failed (%s); waiting on capture anyway", exc)


class FetchLeafletUseCase:
    """Wraps the retriever with user-facing status messages."""
    def __init__(self, retriever: LeafletRetriever, prompts: PromptService):
        self.retriever = retriever
        self.prompts = prompts

    async def execute(self, identity: MedicineIdentity) -> LeafletFetchResult:
        try:
            res = await self.retriever.fetch_leaflet(identity)
        except AutomationError as e:
            logger.error("leaflet fetch aborted: %s", e)
            return LeafletFetchResult(status="error", message=self.prompts.message("fetch_error"))

        if res.status == "found":
            res.message = self.prompts.message(
                "fetch_low_confidence" if res.low_confidence else "fetch_found",
                name=res.match.display_name if res.match else identity.name,
            )
        else:
            res.message = self.prompts.message("fetch_not_found", name=identity.name or identity.active_substance)
        return res
