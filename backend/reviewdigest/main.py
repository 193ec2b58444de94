"""FastAPI application entry point."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reviewdigest.api.routes import crawl, key_health
from reviewdigest.config import get_settings

settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Crawl paginated product reviews into a cached pros/cons digest",
    version="1.0.0",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(crawl.router, prefix="/api", tags=["crawl"])
app.include_router(key_health.router, prefix="/api/key-health", tags=["key-health"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
    }
