import logging
import secrets
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from commentboard.client import ProxyClient
from commentboard.config import Settings, get_settings
from commentboard.proxy import create_proxy_app
from commentboard.routers import comments, gate
from commentboard.storage import CommentStore, build_store
from commentboard.verifier import TurnstileVerifier

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


def create_site(settings: Settings, proxy_http: httpx.Client | None = None, verify_http: httpx.Client | None = None):
    """The pages: gate, board, static files."""
    site = FastAPI()
    site.state.settings = settings
    site.state.http = proxy_http or httpx.Client(timeout=settings.proxy_timeout)
    site.state.proxy = ProxyClient(settings.proxy_url, settings.auth_key_secret, site.state.http)
    site.state.verifier = TurnstileVerifier(
        settings.turnstile_secret_key,
        settings.turnstile_verify_url,
        verify_http or httpx.Client(timeout=settings.verify_timeout),
    )

    # routers
    site.include_router(gate.router)
    site.include_router(comments.router)

    # static files
    STATIC_DIR.mkdir(parents=True, exist_ok=True)
    site.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    session_secret = settings.session_secret
    if not session_secret:
        # verified sessions then only live as long as this process
        logger.warning("SESSION_SECRET is not set, using a random one")
        session_secret = secrets.token_urlsafe(32)
    site.add_middleware(SessionMiddleware, secret_key=session_secret, same_site="lax")
    site.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_allow_origin],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @site.get("/health")
    def health():
        return {"message": "comment board is running"}

    return site


def create_app(settings: Settings | None = None, store=None, proxy_http: httpx.Client | None = None,
               verify_http: httpx.Client | None = None, serve_proxy: bool = True):
    """Build the site, with the proxy mounted at /store next to it.

    `store` overrides the object store adapter picked from settings.
    `proxy_http` / `verify_http` override the HTTP clients used to reach the
    proxy and the challenge verifier.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    site = create_site(settings, proxy_http, verify_http)

    @asynccontextmanager
    async def lifespan(app):
        yield
        site.state.proxy.close()
        site.state.verifier.close()

    app = FastAPI(lifespan=lifespan)
    app.state.site = site

    # the proxy answers its own CORS, so it stays outside the site's middleware
    if serve_proxy:
        comment_store = CommentStore(store or build_store(settings), settings.store_key, settings.write_attempts)
        app.mount("/store", create_proxy_app(settings, comment_store))
    app.mount("/", site)
    return app


def create_standalone_proxy(settings: Settings | None = None):
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)
    return create_proxy_app(
        settings,
        CommentStore(build_store(settings), settings.store_key, settings.write_attempts),
    )
