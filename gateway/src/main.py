import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from gateway.src.config import get_settings
from gateway.src.routes import health_router, pipelines_router, webhooks_router
from gateway.src.services.pipeline import get_definition

logger = logging.getLogger(__name__)

settings = get_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: refuse to serve webhooks with a broken workflow
    definition = get_definition()
    logger.info(f"Starting Shipline gateway for '{definition.name}' ({len(definition.steps)} steps)")
    yield
    logger.info("Shutting down Shipline gateway")

app = FastAPI(
    title="Shipline",
    description="Trigger-driven build pipeline runner",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health_router)
app.include_router(pipelines_router, prefix="/api")
app.include_router(webhooks_router, prefix="/api")

@app.get("/")
async def root():
    return {
        "name": "Shipline",
        "version": "0.1.0",
        "docs": "/docs"
    }
