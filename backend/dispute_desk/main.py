from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from dispute_desk.api.v1 import auth, disputes, files, messages
from dispute_desk.core.config import Settings, get_settings
from dispute_desk.core.logging import setup_logging
from dispute_desk.core.exceptions import (
    DisputeDeskError,
    dispute_desk_exception_handler,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from dispute_desk.db.init_db import create_tables
from dispute_desk.services.context import ClientContext

logger = structlog.get_logger()


def create_app(settings: Optional[Settings] = None, context: Optional[ClientContext] = None) -> FastAPI:
    """
    Build the dashboard API. Tests pass a ready ClientContext; otherwise one
    is created from settings at startup and disposed at shutdown.
    """
    if settings is None:
        settings = context.settings if context is not None else get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("startup", project=settings.PROJECT_NAME, environment=settings.ENVIRONMENT)
        owned = None
        if getattr(app.state, "context", None) is None:
            owned = ClientContext.from_settings(settings)
            await create_tables(owned.engine)
            app.state.context = owned
        yield
        if owned is not None:
            await owned.aclose()
            app.state.context = None
        logger.info("shutdown")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="Customer-support dashboard for dispute reports and chats",
        lifespan=lifespan,
        docs_url=f"{settings.API_V1_STR}/docs",
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
    )
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DisputeDeskError, dispute_desk_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.get("/health", tags=["system"])
    async def health_check():
        """
        Public health check endpoint for load balancers.
        """
        return {"status": "ok", "environment": settings.ENVIRONMENT}

    app.include_router(auth.router, prefix=f"{settings.API_V1_STR}/auth", tags=["auth"])
    app.include_router(disputes.router, prefix=f"{settings.API_V1_STR}/disputes", tags=["disputes"])
    app.include_router(messages.router, prefix=f"{settings.API_V1_STR}/disputes", tags=["messages"])
    app.include_router(files.router, prefix="/files", tags=["files"])

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("dispute_desk.main:create_app", factory=True, host="0.0.0.0", port=8000, reload=True)
