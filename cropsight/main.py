# CropSight Plant Analysis API v1.0.0
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from cropsight.config import (
    OPENROUTER_API_KEY,
    LLM_MODEL_ANALYZER,
    LLM_MODEL_CLASSIFIER,
    LLM_MODEL_ADVISOR,
    CORS_ORIGINS,
    LOG_LEVEL,
)
from cropsight.dependencies import create_generation_client, limiter
from cropsight.routers import analysis, chat, health
from cropsight.routers.analysis import stage_error
from cropsight.services.pipeline.errors import PipelineError

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============================================================================#
# Lifespan Events
# ============================================================================#
@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    # Startup
    logger.info("=" * 60)
    logger.info("Starting CropSight Plant Analysis API")
    logger.info(f"OpenRouter API: {'✓' if OPENROUTER_API_KEY else '✗'}")
    logger.info(f"Models: analyzer={LLM_MODEL_ANALYZER}, classifier={LLM_MODEL_CLASSIFIER}, advisor={LLM_MODEL_ADVISOR}")
    logger.info("=" * 60)

    # A client set before startup (tests) is left alone
    owns_client = getattr(app_instance.state, "generation_client", None) is None
    if owns_client:
        app_instance.state.generation_client = create_generation_client()

    yield

    # Shutdown
    logger.info("Shutting down gracefully...")
    if owns_client:
        await app_instance.state.generation_client.aclose()
        app_instance.state.generation_client = None


# Initialize FastAPI app
app = FastAPI(
    title="CropSight Plant Analysis",
    description="Multimodal plant diagnosis and identification with a 3-agent pipeline",
    version="1.0.0",
    lifespan=lifespan
)

# Initialize Rate Limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    logger.error(f"Analysis failed: {exc}")
    return JSONResponse(status_code=502, content=stage_error(exc).model_dump())


app.include_router(health.router)
app.include_router(analysis.router)
app.include_router(chat.router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
