import logging

from cropsight.services.generation import EmptyGenerationError, GenerationClient, GenerationError
from cropsight.utils.text_processing import normalize_whitespace
from cropsight.prompts import QUICK_TIP_PROMPT, QUICK_TIP_FALLBACK, QUICK_TIP_EMPTY_FALLBACK
from cropsight.config import LLM_MODEL_TIPS

logger = logging.getLogger(__name__)


async def get_quick_tip(client: GenerationClient, model: str = LLM_MODEL_TIPS) -> str:
    """
    One short farming tip.

    An empty answer gets QUICK_TIP_EMPTY_FALLBACK, a failed call QUICK_TIP_FALLBACK.
    """
    try:
        generation = await client.generate(QUICK_TIP_PROMPT, temperature=0.9, model=model)
    except EmptyGenerationError:
        logger.info("Quick tip came back empty, using default tip")
        return QUICK_TIP_EMPTY_FALLBACK
    except GenerationError as e:
        logger.warning(f"Quick tip generation failed, using fallback: {e}")
        return QUICK_TIP_FALLBACK

    tip = normalize_whitespace(generation.text).strip('"').strip()
    return tip or QUICK_TIP_EMPTY_FALLBACK
