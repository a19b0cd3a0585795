import asyncio
import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import TypeAdapter, ValidationError

from cropsight.dependencies import get_generation_client, get_orchestrator, limiter
from cropsight.models import (
    AnalysisResponse,
    ClarificationAnswerModel,
    StageErrorResponse,
    TipResponse,
)
from cropsight.services.generation import GenerationClient
from cropsight.services.images import InvalidImageError, prepare_images
from cropsight.services.pipeline import (
    AnalysisMode,
    AnalysisRequest,
    CropType,
    EnvironmentSnapshot,
    GrowthStage,
)
from cropsight.services.pipeline.errors import PipelineError
from cropsight.services.pipeline.orchestrator import AnalysisOrchestrator
from cropsight.services.pipeline.status import StageEventQueue
from cropsight.services.tips import get_quick_tip
from cropsight.prompts import ERROR_ANALYSIS_FAILED
from cropsight.config import ANALYZE_RATE_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter()

_answers_adapter = TypeAdapter(List[ClarificationAnswerModel])


def stage_error(e: PipelineError) -> StageErrorResponse:
    return StageErrorResponse(error=ERROR_ANALYSIS_FAILED, stage=e.stage_name, detail=e.detail)


def _parse_environment(
    temperature: Optional[float],
    humidity: Optional[float],
    soil_moisture: Optional[float],
) -> Optional[EnvironmentSnapshot]:
    readings = (temperature, humidity, soil_moisture)
    if all(r is None for r in readings):
        return None
    if any(r is None for r in readings):
        raise HTTPException(
            status_code=422,
            detail="temperature, humidity and soil_moisture must be sent together",
        )
    return EnvironmentSnapshot(temperature=temperature, humidity=humidity, soil_moisture=soil_moisture)


def _parse_prior_answers(raw: Optional[str]):
    if not raw:
        return ()
    try:
        answers = _answers_adapter.validate_json(raw)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid prior_answers: {e}")
    return tuple(a.to_answer() for a in answers)


async def analysis_request_form(
    images: List[UploadFile] = File(...),
    crop_type: str = Form(CropType.OTHER.value),
    growth_stage: str = Form(GrowthStage.VEGETATIVE.value),
    notes: str = Form(""),
    mode: AnalysisMode = Form(AnalysisMode.DIAGNOSIS),
    temperature: Optional[float] = Form(None),
    humidity: Optional[float] = Form(None),
    soil_moisture: Optional[float] = Form(None),
    prior_answers: Optional[str] = Form(None),
) -> AnalysisRequest:
    """Multipart form -> AnalysisRequest (images are re-encoded here)"""
    environment = _parse_environment(temperature, humidity, soil_moisture)
    answers = _parse_prior_answers(prior_answers)

    uploads = [await image.read() for image in images]
    try:
        payloads = prepare_images(uploads, [image.filename for image in images])
    except InvalidImageError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return AnalysisRequest(
        images=payloads,
        crop_type=crop_type,
        growth_stage=growth_stage,
        notes=notes,
        mode=mode,
        environment=environment,
        prior_answers=answers,
    )


@router.post("/analyze", response_model=AnalysisResponse)
@limiter.limit(ANALYZE_RATE_LIMIT)
async def analyze(
    request: Request,
    analysis_request: AnalysisRequest = Depends(analysis_request_form),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    # PipelineError is mapped to 502 by the app-level handler
    result = await orchestrator.analyze(analysis_request)
    return AnalysisResponse.from_result(result)


def _ndjson(payload: dict) -> str:
    return json.dumps(payload, ensure_ascii=False) + "\n"


@router.post("/analyze/stream")
@limiter.limit(ANALYZE_RATE_LIMIT)
async def analyze_stream(
    request: Request,
    analysis_request: AnalysisRequest = Depends(analysis_request_form),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Stage events as NDJSON lines, then one result or error line"""

    async def event_stream():
        queue = StageEventQueue()
        task = asyncio.create_task(orchestrator.analyze(analysis_request, on_status=queue))
        task.add_done_callback(lambda _: queue.close())
        try:
            async for event in queue:
                yield _ndjson({"event": "status", "stage": event.stage.value, "label": event.label})

            try:
                result = await task
            except PipelineError as e:
                yield _ndjson({"event": "error", **stage_error(e).model_dump()})
                return

            yield _ndjson({"event": "result", "result": AnalysisResponse.from_result(result).model_dump(mode="json")})
        finally:
            # client went away mid-run
            if not task.done():
                logger.info("Stream closed before analysis finished, cancelling")
                task.cancel()

    return StreamingResponse(event_stream(), media_type="application/x-ndjson")


@router.get("/tip", response_model=TipResponse)
async def quick_tip(client: GenerationClient = Depends(get_generation_client)):
    return TipResponse(tip=await get_quick_tip(client))
