"""
Shared dependencies for the HTTP layer

The generation client is created once in the app lifespan and kept on
app.state; routes receive it (and an orchestrator built around it) via Depends.
"""

import logging
from fastapi import HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from cropsight.services.chat import AgronomistChat
from cropsight.services.generation import GenerationClient
from cropsight.services.pipeline.orchestrator import AnalysisOrchestrator
from cropsight.config import LLM_MODEL_CLASSIFIER

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)


def create_generation_client() -> GenerationClient:
    client = GenerationClient.from_settings(LLM_MODEL_CLASSIFIER)
    if not client.is_configured:
        logger.warning("OPENROUTER_API_KEY not set - analysis requests will fail")
    return client


def get_generation_client(request: Request) -> GenerationClient:
    client = getattr(request.app.state, "generation_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Generation service not available")
    return client


def get_orchestrator(request: Request) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(get_generation_client(request))


def get_agronomist_chat(request: Request) -> AgronomistChat:
    return AgronomistChat(get_generation_client(request))
