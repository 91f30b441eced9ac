#!/usr/bin/env python3
"""
Wallet and match API - FastAPI Application

Usage:
    python -m web.backend.app

Then open:
    - http://localhost:8080/docs - API Documentation (Swagger UI)
"""

import os
import logging

from fastapi import FastAPI, HTTPException

from core.config_loader import load_config
from core.exceptions import ServiceException
from .exceptions import (
    service_exception_handler,
    http_exception_handler,
    general_exception_handler
)
from .routers import matches_router, wallet_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="JobMeter API",
    description="Job matches and prepaid wallet",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Register exception handlers
app.add_exception_handler(ServiceException, service_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Include routers
app.include_router(matches_router)
app.include_router(wallet_router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "jobmeter-web"}


def main():
    """Run the web server."""
    import uvicorn

    config = load_config(os.environ.get("CONFIG_PATH", "config.yaml"))
    logger.info(f"Starting web server on {config.web.host}:{config.web.port}")
    logger.info(f"API Docs: http://{config.web.host}:{config.web.port}/docs")

    uvicorn.run(
        "web.backend.app:app",
        host=config.web.host,
        port=config.web.port,
        reload=False,
        log_level="info"
    )


if __name__ == "__main__":
    main()
