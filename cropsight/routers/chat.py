import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from cropsight.dependencies import get_agronomist_chat, limiter
from cropsight.models import ChatRequest, ChatResponse, ChatStartRequest
from cropsight.services.chat import AgronomistChat, greeting
from cropsight.services.generation import GenerationError
from cropsight.prompts import ERROR_CHAT_FAILED, ERROR_NOT_A_PLANT
from cropsight.config import CHAT_RATE_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat")


def _require_plant(body: ChatStartRequest):
    if body.result.notAPlant:
        raise HTTPException(status_code=422, detail=ERROR_NOT_A_PLANT)


@router.post("/start", response_model=ChatResponse)
async def start_chat(body: ChatStartRequest):
    """Opening message for a result, shown before the user types anything"""
    _require_plant(body)
    return ChatResponse(reply=greeting(body.result.to_result()))


@router.post("", response_model=ChatResponse)
@limiter.limit(CHAT_RATE_LIMIT)
async def chat(
    request: Request,
    body: ChatRequest,
    agronomist: AgronomistChat = Depends(get_agronomist_chat),
):
    _require_plant(body)
    try:
        reply = await agronomist.reply(
            body.result.to_result(),
            [turn.to_message() for turn in body.history],
            body.message,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except GenerationError as e:
        logger.error(f"Agronomist chat failed: {e}")
        return JSONResponse(status_code=502, content={"error": ERROR_CHAT_FAILED, "detail": str(e)})

    return ChatResponse(reply=reply)
