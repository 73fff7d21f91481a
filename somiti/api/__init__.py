"""
Somiti Ledger API Application Factory
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import get_config
from ..money import CURRENCY_CODE
from ..logging_config import setup_logging
from .dependencies import get_somiti_system, shutdown_somiti_system
from .members import router as members_router
from .loans import router as loans_router
from .installments import router as installments_router
from .deposits import router as deposits_router
from .reports import router as reports_router
from .notifications import router as notifications_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    shutdown_somiti_system()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Somiti Ledger API",
        description="Loan, installment and DPS ledger for a savings cooperative",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(members_router, prefix="/members", tags=["Members"])
    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(installments_router, prefix="/installments", tags=["Installments"])
    app.include_router(deposits_router, prefix="/dps", tags=["DPS"])
    app.include_router(reports_router, prefix="/reports", tags=["Reports"])
    app.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "somiti_ledger_api",
            "version": __version__
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Somiti Ledger API",
            "version": __version__,
            "currency": CURRENCY_CODE,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "members": "/members",
                "loans": "/loans",
                "installments": "/installments",
                "dps": "/dps",
                "reports": "/reports",
                "notifications": "/notifications",
            }
        }

    return app


app = create_app()


def run_server(host: str = None, port: int = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    uvicorn.run(
        "somiti.api:app",
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level="info"
    )


__all__ = ["app", "create_app", "get_somiti_system", "run_server"]
