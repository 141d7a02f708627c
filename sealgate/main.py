import logging
import os
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from . import settings as agent_settings
from .client import SealApiClient
from .database import CredentialStore
from .models import AgentSettings
from .routes.external import ExternalRouter
from .routes.internal import InternalRouter
from .routes.tabs import TabsRouter
from .tabs import TabBridge
from .utils import origin_of

VERSION = "1.0.0"

logging.basicConfig(
    level=os.getenv("SEAL_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)


def create_app(
    settings: AgentSettings | None = None,
    store: CredentialStore | None = None,
    tabs: TabBridge | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Wire the agent. Collaborators can be injected; defaults come from settings."""
    settings = settings or agent_settings.load_settings()
    store = store or CredentialStore(agent_settings.data_dir())
    tabs = tabs or TabBridge()
    api = SealApiClient(settings.api_base, store, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Initialise the credential database
        await store.init()

        change = await store.record_version(VERSION)
        if change == "install":
            log.info("[Seal] Extension installed")
        elif change == "update":
            log.info("[Seal] Extension updated to %s", VERSION)

        yield

    app = FastAPI(title="Seal Agent", version=VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["POST"],
        allow_headers=["Content-Type"],
    )

    # Every rejection leaves as {"error": ...}, the shape both channels answer with.
    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": "Invalid request"}, status_code=400)

    extension_origin = f"chrome-extension://{settings.extension_id}"
    internal_router = InternalRouter(
        store=store,
        api=api,
        tabs=tabs,
        extension_origin=extension_origin,
        login_url=settings.login_url,
        gmail_url_pattern=settings.gmail_url_pattern,
    )
    external_router = ExternalRouter(
        store=store,
        allowed_origins=settings.allowed_origins,
        version=VERSION,
    )
    # Content scripts connect from the extension or from the Gmail page they run in
    tabs_router = TabsRouter(tabs, allowed_origins=[extension_origin, origin_of(settings.gmail_url_pattern)])

    app.include_router(internal_router.router)
    app.include_router(external_router.router)
    app.include_router(tabs_router.router)

    app.state.settings = settings
    app.state.store = store
    app.state.tabs = tabs

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "version": VERSION}

    return app


app = create_app()
