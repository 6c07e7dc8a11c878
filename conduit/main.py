import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from conduit.cache import cache
from conduit.config import settings
from conduit.errors import ConduitError
from conduit.i18n import MESSAGES, MessageCatalog
from conduit.logging_config import setup_logging
from conduit.middleware import TimingMiddleware
from conduit.routers import articles, profiles, users

setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup; the cache disables itself when Redis is unreachable
    await cache.connect()
    yield
    # Shutdown
    await cache.disconnect()

app = FastAPI(
    title="Conduit API",
    description="Articles, tags, comments, favorites and follows",
    version="1.0.0",
    lifespan=lifespan,
)

# Swappable per app (tests install their own catalog)
app.state.messages = MessageCatalog(MESSAGES, fallback=settings.DEFAULT_LOCALE)

@app.exception_handler(ConduitError)
async def conduit_error_handler(request: Request, exc: ConduitError) -> JSONResponse:
    catalog: MessageCatalog = request.app.state.messages
    locale = catalog.negotiate(request.headers.get("accept-language"))
    message = catalog.translate(exc.key, locale, **exc.params)
    logger.debug("%s %s -> %s (%s)", request.method, request.url.path, exc.status_code, exc.key)
    headers = {"WWW-Authenticate": "Token"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": message}, headers=headers)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(users.router)
app.include_router(profiles.router)
app.include_router(articles.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0", "cache": cache.stats}
