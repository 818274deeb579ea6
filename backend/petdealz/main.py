import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from petdealz.auth.identity import SessionIdentity, TokenIdentity
from petdealz.config import Settings, get_settings
from petdealz.db import check_connection, create_db_and_tables, create_db_engine
from petdealz.errors import ListingError
from petdealz.policy import PhoneNumberPolicy
from petdealz.repository import ListingRepository
from petdealz.routers import auth_router, image_upload, listing
from petdealz.service import ListingService
from petdealz.storage.factory import build_media_store

logger = logging.getLogger(__name__)


def build_identity(settings: Settings, engine):
    if settings.auth_mode == "session":
        return SessionIdentity(engine, settings.session_cookie_name, settings.session_ttl_minutes)
    return TokenIdentity(
        engine,
        settings.secret_key,
        expire_minutes=settings.access_token_expire_minutes,
        algorithm=settings.algorithm,
    )


def startup(app: FastAPI, settings: Settings):
    """Build the service graph; any failure here aborts startup before traffic is accepted."""
    settings.validate()
    engine = create_db_engine(settings.database_url)
    check_connection(engine)
    create_db_and_tables(engine)

    identity = build_identity(settings, engine)
    store = build_media_store(settings, engine)
    app.state.engine = engine
    app.state.identity = identity
    app.state.listing_service = ListingService(
        store=store,
        repository=ListingRepository(engine),
        policy=PhoneNumberPolicy(),
        identity=identity,
        placeholder_url=settings.placeholder_media_url,
        upload_workers=settings.media_upload_workers,
    )
    logger.info(
        "Service ready (auth=%s, media=%s)", settings.auth_mode, settings.media_backend
    )


def shutdown(app: FastAPI):
    engine = getattr(app.state, "engine", None)
    app.state.listing_service = None
    app.state.identity = None
    app.state.engine = None
    if engine is not None:
        engine.dispose()


async def handle_listing_error(request: Request, exc: ListingError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def handle_unexpected_error(request: Request, exc: Exception):
    error_id = uuid.uuid4().hex
    logger.error("Unhandled error %s on %s %s", error_id, request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "errorId": error_id})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=settings.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        startup(app, settings)
        yield
        shutdown(app)

    app = FastAPI(title="PetDealz", lifespan=lifespan)
    app.state.listing_service = None
    app.state.identity = None
    app.state.engine = None

    app.add_exception_handler(ListingError, handle_listing_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    # Include routers
    app.include_router(auth_router.router)
    app.include_router(listing.router)
    app.include_router(image_upload.router)

    @app.get("/")
    def root():
        return {"message": "PetDealz backend is live"}

    @app.get("/health")
    def health():
        if app.state.listing_service is None:
            return JSONResponse(status_code=503, content={"status": "starting"})
        return {"status": "ok"}

    return app


app = create_app()
