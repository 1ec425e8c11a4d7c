from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from grownet.config import settings
from grownet.database import engine
from grownet.logging_config import setup_logging
from grownet.middleware import logging_middleware
from grownet.presence import PresenceRegistry
from grownet.routers import (
    auth,
    connections,
    conversations,
    notifications,
    realtime,
    users,
)


def create_app() -> FastAPI:
    setup_logging(settings.log_level)

    application = FastAPI(title="GrowNet API")
    application.state.presence = PresenceRegistry()

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.middleware("http")(logging_middleware)

    application.include_router(auth.router)
    application.include_router(users.router)
    application.include_router(connections.router)
    application.include_router(conversations.router)
    application.include_router(notifications.router)
    application.include_router(realtime.router)

    @application.get("/health")
    def health():
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {"status": "healthy"}
        except Exception:
            return JSONResponse({"status": "unhealthy"}, status_code=503)

    return application


app = create_app()
