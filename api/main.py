"""
Sales Ledger API - Main Application.

FastAPI application with CORS restricted to the configured frontend origin,
security headers on every response and one error mapping for domain errors.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.errors import register_error_handlers
from settings import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Cross-Origin-Opener-Policy": "same-origin",
}

# Create FastAPI application
app = FastAPI(
    title="Sales Ledger API",
    description="REST API for recording sales and reconciling gateway payments",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.allowed_origin],
    allow_credentials=False,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    for header, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    return response


register_error_handlers(app)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "sales-ledger-api",
        "payment_gateway": "configured" if settings.gateway_enabled else "disabled",
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Sales Ledger API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import auth, payments, sales

app.include_router(auth.router, prefix="/api", tags=["Auth"])
app.include_router(sales.router, prefix="/api", tags=["Sales"])
app.include_router(payments.router, prefix="/api", tags=["Payments"])


def run() -> None:
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
