# app/infra/portal/pdf_interceptor.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

logger = logging.getLogger("folheto.portal")


def looks_like_pdf(headers: dict) -> bool:
    ct = (headers.get("content-type") or "").lower()
    cd = (headers.get("content-disposition") or "").lower()
    return "application/pdf" in ct or ".pdf" in cd


class PdfInterceptor:
    """
    Routes every request of a browser context through itself and keeps the
    first PDF body it sees.

    Works at context level, so popups, new tabs, redirects and XHR are all
    seen regardless of the UI action that caused them. Download responses only
    expose their body through route.fetch(), not the 'response' event.
    Later PDFs are ignored.
    """
    def __init__(self):
        self._future: Optional[asyncio.Future] = None
        self._context: Any = None
        self.captured_url: Optional[str] = None

    def _ensure_future(self) -> asyncio.Future:
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
        return self._future

    @property
    def captured(self) -> bool:
        return self._future is not None and self._future.done()

    async def attach(self, context: Any) -> None:
        self._ensure_future()
        self._context = context
        await context.route("**/*", self._handle_route)

    async def detach(self) -> None:
        ctx, self._context = self._context, None
        if ctx is None:
            return
        try:
            await ctx.unroute_all(behavior="ignoreErrors")
        except Exception as e:
            logger.debug("interceptor detach ignored: %s", e)

    async def _handle_route(self, route) -> None:
        fut = self._ensure_future()
        try:
            response = await route.fetch()
        except Exception as e:
            logger.debug("route.fetch failed for %s: %s", _url(route), e)
            try:
                await route.continue_()
            except Exception as e2:
                logger.debug("route.continue_ ignored: %s", e2)
            return

        try:
            if not fut.done() and looks_like_pdf(response.headers or {}):
                body = await response.body()
                if body and not fut.done():
                    self.captured_url = _url(route)
                    logger.info("PDF response intercepted: %s (%d bytes)", self.captured_url, len(body))
                    fut.set_result(bytes(body))
            await route.fulfill(response=response)
        except Exception as e:
            # usually "Target page, context or browser has been closed"
            logger.debug("route handler after teardown ignored: %s", e)

    async def await_first_pdf(self, timeout_ms: int) -> Optional[bytes]:
        """First captured PDF, or None when nothing arrived within timeout_ms."""
        fut = self._ensure_future()
        try:
            return await asyncio.wait_for(asyncio.shield(fut), timeout=timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            logger.info("no PDF observed within %d ms", timeout_ms)
            return None


def _url(route) -> str:
    try:
        return route.request.url
    except Exception:
        return "?"
