# app/infra/portal/infarmed_driver.py
from __future__ import annotations

import logging
import os
import re
from typing import List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from app.domain.errors import AutomationError
from app.domain.models import SearchAttempt
from app.domain.ports import PortalSession
from app.infra.portal.pdf_interceptor import PdfInterceptor
from app.infra.portal.results_parser import parse_result_rows
from app.infra.portal.selectors import PortalSelectors

UA = os.getenv("SCRAPER_USER_AGENT", "FolhetoAI/0.1 (+contact)")
HEADLESS = os.getenv("BROWSER_HEADLESS", "1") == "1"
PORTAL_TIMEOUT_MS = int(os.getenv("PORTAL_TIMEOUT_MS", "10000"))

logger = logging.getLogger("folheto.portal")


class PlaywrightPortalSession(PortalSession):
    """
    One headless Chromium (browser → context → page) per fetch.

        async with PlaywrightPortalSession() as s:
            if await s.search(attempt): rows = await s.result_rows()

    Teardown runs on every exit path; its own errors are logged and dropped.
    """
    def __init__(self, selectors: PortalSelectors | None = None, timeout_ms: int = PORTAL_TIMEOUT_MS):
        self.selectors = selectors or PortalSelectors.load()
        self.timeout_ms = timeout_ms
        self.interceptor = PdfInterceptor()
        self._pw = None
        self._browser = None
        self._context = None
        self._page = None

    # ── lifecycle ─────────────────────────────────────────────────────
    async def __aenter__(self) -> "PlaywrightPortalSession":
        try:
            self._pw = await async_playwright().start()
            self._browser = await self._pw.chromium.launch(headless=HEADLESS)
            self._context = await self._browser.new_context(user_agent=UA, accept_downloads=True)
            await self.interceptor.attach(self._context)
            self._page = await self._context.new_page()
        except PlaywrightError as e:
            await self._teardown()
            raise AutomationError(f"browser start failed: {e}") from e
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self._teardown()
        return False

    async def _teardown(self) -> None:
        await self.interceptor.detach()
        for label, obj, method in (
            ("page", self._page, "close"),
            ("context", self._context, "close"),
            ("browser", self._browser, "close"),
            ("playwright", self._pw, "stop"),
        ):
            if obj is None:
                continue
            try:
                await getattr(obj, method)()
            except Exception as e:
                logger.debug("%s %s error (ignoring): %s", label, method, e)
        self._page = self._context = self._browser = self._pw = None

    # ── PortalSession ─────────────────────────────────────────────────
    async def search(self, attempt: SearchAttempt) -> bool:
        page, sel = self._page, self.selectors
        if page is None:
            raise AutomationError("portal session is not open")

        logger.info("[tier %d/%s] searching name=%r substance=%r dosage=%r",
                    attempt.tier, attempt.label, attempt.name, attempt.active_substance, attempt.dosage)
        try:
            # fresh page per attempt; no stale form state
            await page.goto(sel.search_url, wait_until="networkidle", timeout=self.timeout_ms)

            for selector, value in (
                (sel.name_input, attempt.name),
                (sel.substance_input, attempt.active_substance),
                (sel.dosage_input, attempt.dosage),
            ):
                await page.fill(selector, value or "", timeout=self.timeout_ms)

            await page.click(sel.submit_button, timeout=self.timeout_ms)

            table = page.locator(sel.results_table)
            no_results = page.get_by_text(re.compile(sel.no_results_pattern, re.IGNORECASE))
            await table.or_(no_results).first.wait_for(state="visible", timeout=self.timeout_ms)

            if await no_results.count() and await no_results.first.is_visible():
                logger.info("[tier %d] portal says no results", attempt.tier)
                return False
            return True
        except PlaywrightTimeoutError as e:
            raise AutomationError(
                f"tier {attempt.tier}: neither results nor no-results message within {self.timeout_ms} ms"
            ) from e
        except PlaywrightError as e:
            raise AutomationError(f"tier {attempt.tier}: portal navigation failed: {e}") from e

    async def result_rows(self) -> List[List[str]]:
        try:
            html = await self._page.content()
        except PlaywrightError as e:
            raise AutomationError(f"cannot read results page: {e}") from e
        rows = parse_result_rows(html, self.selectors.result_rows)
        logger.info("found %d result rows", len(rows))
        return rows

    async def open_document(self, row_index: int) -> None:
        selector = self.selectors.document_link_for(row_index)
        logger.info("clicking document link for row %d", row_index)
        await self._page.click(selector, timeout=self.timeout_ms)

    async def await_first_pdf(self, timeout_ms: int) -> Optional[bytes]:
        return await self.interceptor.await_first_pdf(timeout_ms)


def playwright_session_factory(selectors: PortalSelectors | None = None):
    """PortalSessionFactory for production wiring."""
    shared = selectors or PortalSelectors.load()

    def _make() -> PlaywrightPortalSession:
        return PlaywrightPortalSession(selectors=shared)

    return _make
