"""
Banking Panel API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config import get_config
from ..logging_config import setup_logging
from .auth import PanelSystem, close_panel_system, get_panel_system
from .session import router as session_router
from .staff import router as staff_router
from .bank_details import router as bank_details_router
from .admin import router as admin_router
from .dashboard import router as dashboard_router


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as {"error": message}"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Render request validation errors as 400 {"error": message}"""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return JSONResponse(status_code=400, content={"error": "; ".join(messages) or "Invalid request"})


def create_app(system: Optional[PanelSystem] = None) -> FastAPI:
    """Create and configure the FastAPI application

    Passing ``system`` pins every request to it instead of the process-wide
    instance built from configuration.
    """
    config = system.config if system else get_config()
    setup_logging(config.log_level, log_format=config.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if system is None:
            close_panel_system()

    app = FastAPI(
        title="Banking Panel API",
        description="Staff bank-detail records, admin dashboards and staff provisioning",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    if system is not None:
        app.dependency_overrides[get_panel_system] = lambda: system

    # Include routers
    app.include_router(session_router, prefix="/auth", tags=["Auth"])
    app.include_router(staff_router, prefix="/api", tags=["Staff"])
    app.include_router(dashboard_router, prefix="/dashboard", tags=["Dashboard"])
    app.include_router(bank_details_router, prefix="/bank-details", tags=["Bank Details"])
    app.include_router(admin_router, prefix="/admin", tags=["Admin"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "banking_panel_api",
            "version": __version__
        }

    # Root endpoint
    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Banking Panel API",
            "version": __version__,
            "description": "Financial management panel for staff and administrators",
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "login": "/auth/login",
                "me": "/auth/me",
                "create_staff": "/api/create-staff",
                "dashboard": "/dashboard",
                "bank_details": "/bank-details",
                "admin": "/admin",
            }
        }

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    uvicorn.run(
        "banking_panel.api:create_app",
        factory=True,
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level=config.log_level.lower()
    )
