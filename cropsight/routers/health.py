import logging
from fastapi import APIRouter, Request

from cropsight.config import LLM_MODEL_ANALYZER, LLM_MODEL_CLASSIFIER, LLM_MODEL_ADVISOR

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def root():
    return {
        "status": "online",
        "service": "CropSight Plant Analysis",
        "version": "1.0.0",
        "features": [
            "Visual Symptom Analysis",
            "Grounded Diagnosis with Sources",
            "Species Identification",
            "Clarification Questions",
            "Treatment & Prevention Plans",
            "AI Agronomist Follow-up Chat",
        ]
    }


@router.get("/health")
async def health_check(request: Request):
    client = getattr(request.app.state, "generation_client", None)
    return {
        "status": "healthy",
        "version": "1.0.0",
        "services": {
            "generation": bool(client and client.is_configured),
        },
        "models": {
            "analyzer": LLM_MODEL_ANALYZER,
            "classifier": LLM_MODEL_CLASSIFIER,
            "advisor": LLM_MODEL_ADVISOR,
        }
    }
