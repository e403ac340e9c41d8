"""
Installment Engine API Application Factory
"""

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .. import __version__
from ..config import get_config
from ..errors import InstallmentError
from .customers import router as customers_router
from .installments import router as installments_router
from .misc_register import router as misc_register_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    config = get_config()
    app = FastAPI(
        title="Installment Engine API",
        description="Installment plans, payment application and customer misc balance ledger",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in config.cors_origins.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InstallmentError)
    async def installment_error_handler(request: Request, exc: InstallmentError):
        return JSONResponse(status_code=exc.http_status, content=jsonable_encoder(exc.to_dict()))

    # Include routers
    app.include_router(customers_router, prefix="/customers", tags=["Customers"])
    app.include_router(installments_router, prefix="/installments", tags=["Installments"])
    app.include_router(misc_register_router, prefix="/miscellaneousregister", tags=["Miscellaneous Register"])

    # Stored uploads (guarantor pictures)
    app.mount("/uploads", StaticFiles(directory=config.upload_dir, check_dir=False), name="uploads")

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "installment_engine_api",
            "version": __version__
        }

    # Root endpoint
    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Installment Engine API",
            "version": __version__,
            "description": "Installment financing engine",
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "customers": "/customers",
                "installments": "/installments",
                "miscellaneousregister": "/miscellaneousregister",
            }
        }

    return app


def run_server(host: str = "0.0.0.0", port: int = 8090, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "installment_engine.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
