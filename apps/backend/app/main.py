"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.auth.routes import router as auth_router
from app.api.automations.routes import router as automations_router
from app.api.customers.routes import router as customers_router
from app.api.segments.routes import router as segments_router
from app.core.config import get_settings
from app.db.session import async_engine

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    yield
    # Shutdown
    await async_engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description="Customer segmentation and lifecycle automation API",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/healthz")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "environment": settings.environment}


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["Authentication"])
app.include_router(segments_router, prefix="/api/segments", tags=["Segments"])
app.include_router(customers_router, prefix="/api/customers", tags=["Customers"])
app.include_router(automations_router, prefix="/api/automations", tags=["Automations"])
