from datetime import timedelta
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from blog_api import __version__
from blog_api.auth import CookieSigner, CredentialHasher
from blog_api.config import Settings, get_settings
from blog_api.database import Database
from blog_api.errors import install_error_handlers
from blog_api.log import logger, request_logging_middleware, setup_logging
from blog_api.routers import post_router, user_router
from blog_api.sessions import SessionStore, SessionStoreError, session_middleware


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application around explicitly constructed collaborators.

    The database, session store and hasher are created in the lifespan
    handler and hung on app.state; nothing is connected at import time.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(settings)
        database.init_schema()
        store = SessionStore(database, timedelta(seconds=settings.session_idle_seconds))
        try:
            purged = store.purge_expired()
            if purged:
                logger.info(f"Purged {purged} expired sessions")
        except SessionStoreError as e:
            logger.error(f"Could not purge expired sessions at startup: {e}")

        app.state.database = database
        app.state.session_store = store
        app.state.hasher = CredentialHasher.from_settings(settings)
        app.state.cookie_signer = CookieSigner(settings.session_secret_key)
        logger.info(f"blog-api {__version__} started ({settings.environment})")
        yield
        database.dispose()
        logger.info("blog-api stopped")

    app = FastAPI(
        title="Blog API",
        description="Posts with session-based authentication",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    install_error_handlers(app)

    # Registration order is inverse of execution order: the last added runs first.
    # Request flow: CORS -> request log -> session -> route dependencies -> handler
    app.middleware("http")(session_middleware)
    app.middleware("http")(request_logging_middleware)
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(user_router.router)
    app.include_router(post_router.router)

    @app.get("/")
    async def root():
        """
        Health check endpoint.
        """
        return {
            "status": "running",
            "version": __version__,
        }

    return app


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "blog_api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
