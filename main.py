# main.py
from dotenv import load_dotenv
load_dotenv()

import os
import logging
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from app.presentation.routers import router as v1_router

app = FastAPI(
    title="Folheto-AI",
    version=os.getenv("APP_VERSION", "0.1.0"),
)

# --- logging config before anything logs ---
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app_logger = logging.getLogger("folheto.request")

@app.middleware("http")
async def log_requests(request: Request, call_next):
    app_logger.info(f"➡️ Incoming {request.method} {request.url.path}")
    try:
        response = await call_next(request)
        app_logger.info(f"⬅️ Completed {request.method} {request.url.path} -> {response.status_code}")
        return response
    except Exception:
        app_logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}")
        raise

# ─────────────────────────────────────────────────────────────
# CORS (env: CORS_ALLOW_ORIGINS="https://foo.com,https://bar.com")
# ─────────────────────────────────────────────────────────────
raw_origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
allow_origins = [o.strip().rstrip("/") for o in raw_origins.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials="*" not in allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ─────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────
app.include_router(v1_router, tags=["api"])

@app.get("/")
async def root():
    return {
        "name": "Folheto-AI",
        "version": os.getenv("APP_VERSION", "0.1.0"),
        "ok": True,
    }

@app.get("/healthz")
async def healthz():
    # Liveness: process is up
    return {"ok": True}

@app.get("/readyz")
async def readyz():
    """
    Readiness:
    - prompts/messages load from PROMPT_DIR / MESSAGES_CFG
    - portal selectors parse
    - Playwright importable (chromium itself is checked lazily per fetch)
    - OPENAI_API_KEY present (identify, embeddings, answers)
    """
    checks = {}
    ok = True

    try:
        from app.container import get_prompt_service
        get_prompt_service()
        checks["prompts"] = True
    except Exception as e:
        checks["prompts"] = False
        checks["prompts_error"] = str(e)
        ok = False

    try:
        from app.infra.portal.selectors import PortalSelectors
        checks["portal_url"] = PortalSelectors.load().search_url
    except Exception as e:
        checks["portal_url"] = None
        checks["portal_error"] = str(e)
        ok = False

    try:
        import playwright.async_api  # noqa: F401
        checks["playwright"] = True
    except ImportError as e:
        checks["playwright"] = False
        checks["playwright_error"] = str(e)
        ok = False

    checks["openai_configured"] = bool(os.getenv("OPENAI_API_KEY"))
    ok = ok and checks["openai_configured"]

    return {"ok": ok, **checks}

@app.options("/{rest_of_path:path}")
async def any_options(rest_of_path: str):
    return Response(status_code=204)
