# main.py
import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.status import HTTP_400_BAD_REQUEST, HTTP_504_GATEWAY_TIMEOUT

from config import AppConfig, load_config
from routers import auth, tasks
from storage import TaskStore
from token_manager import CredentialGate

logger = logging.getLogger(__name__)

STATIC_DIR = Path("static")
DEADLINE_METHODS = {"GET", "HEAD"}


# --- Error Handling ---
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Bad JSON bodies, wrong field types and non-numeric ids are all client errors (400)."""
    errors = exc.errors()
    if any(error.get("loc", ("",))[0] == "path" for error in errors):
        detail = "Invalid task ID"
    else:
        detail = "Invalid JSON"
    logger.warning("Validation error in %s %s: %s", request.method, request.url.path, detail)
    return JSONResponse(status_code=HTTP_400_BAD_REQUEST, content={"detail": detail})


# --- App Factory ---
def create_app(
    config: Optional[AppConfig] = None,
    store: Optional[TaskStore] = None,
    gate: Optional[CredentialGate] = None,
) -> FastAPI:
    """
    Builds the FastAPI application around one TaskStore and one CredentialGate.

    Both are created here (once per process) unless passed in, and are reached
    by the handlers through app.state.
    """
    if config is None:
        config = load_config()
    if store is None:
        store = TaskStore(config.data_file)
    if gate is None:
        gate = CredentialGate(config, config.config_file)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("TaskMate starting: %d task(s), %d token(s)", store.count(), gate.token_count())
        yield
        logger.info("TaskMate shutting down.")

    app = FastAPI(
        title="TaskMate",
        description="A small task tracker with token-protected writes.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.store = store
    app.state.gate = gate

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.middleware("http")
    async def request_deadline(request: Request, call_next):
        # Writes keep running in the thread pool after a timeout and would still
        # commit, so only reads are cut off.
        if request.method not in DEADLINE_METHODS:
            return await call_next(request)
        try:
            return await asyncio.wait_for(call_next(request), timeout=config.request_timeout)
        except asyncio.TimeoutError:
            logger.error("Request timed out: %s %s", request.method, request.url.path)
            return JSONResponse(status_code=HTTP_504_GATEWAY_TIMEOUT, content={"detail": "Request timed out"})

    # --- API Routers ---
    app.include_router(auth.router)
    app.include_router(tasks.router)

    # --- Health & Legacy Endpoints ---
    @app.get("/health", response_class=PlainTextResponse)
    def health():
        return "OK"

    @app.get("/api/config", deprecated=True)
    def legacy_config():
        return {"message": "Use token-based authentication"}

    # --- Web UI (optional) ---
    if STATIC_DIR.is_dir():
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

        @app.get("/", include_in_schema=False)
        def read_root():
            """Serves the bundled index.html."""
            return FileResponse(STATIC_DIR / "index.html")

    return app


# --- Main Entry Point ---
if __name__ == "__main__":
    from cli import main

    raise SystemExit(main())
