"""
Advisor Agent

Responsibilities:
- Write the treatment plan (organic/cultural before chemical) and prevention tips
- In identification mode: identifying characteristics and growing conditions
- Never hand back an empty list for a real diagnosis
"""

import logging
from typing import Any, Dict, List

from cropsight.services.pipeline import (
    NOT_A_PLANT,
    AdviceOutcome,
    AnalysisMode,
    PipelineStage,
    VisualObservation,
)
from cropsight.services.pipeline.errors import StageGenerationFailure, StageParseFailure
from cropsight.services.generation import GenerationClient, GenerationError
from cropsight.utils.text_processing import clean_string_list, extract_json_object, truncate
from cropsight.prompts import (
    ADVISOR_DIAGNOSIS_PROMPT,
    ADVISOR_IDENTIFICATION_PROMPT,
    DEFAULT_CHARACTERISTICS,
    DEFAULT_GROWING_CONDITIONS,
    DEFAULT_PREVENTION,
    DEFAULT_TREATMENT,
    JSON_ONLY_SYSTEM_PROMPT,
)
from cropsight.config import LLM_MODEL_ADVISOR, PIPELINE_CONFIG

logger = logging.getLogger(__name__)

ADVICE_ITEM_COUNT = PIPELINE_CONFIG["ADVICE_ITEM_COUNT"]

ADVICE_SHAPE = {
    "type": "object",
    "properties": {
        "treatment": {"type": "array", "items": {"type": "string"}},
        "prevention": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["treatment", "prevention"],
}


def _defaults_for(mode: AnalysisMode):
    if mode == AnalysisMode.IDENTIFICATION:
        return DEFAULT_CHARACTERISTICS, DEFAULT_GROWING_CONDITIONS
    return DEFAULT_TREATMENT, DEFAULT_PREVENTION


def _required_list(data: Dict[str, Any], key: str, limit: int) -> List[str]:
    if key not in data or data[key] is None:
        raise ValueError(f"missing {key} list")
    return clean_string_list(data[key], limit=limit)


def parse_advice(
    data: Dict[str, Any],
    mode: AnalysisMode = AnalysisMode.DIAGNOSIS,
    count: int = ADVICE_ITEM_COUNT,
) -> AdviceOutcome:
    """
    Build an AdviceOutcome from the parsed model JSON.

    Raises:
        ValueError: a list is missing or holds non-string items
    """
    treatment = _required_list(data, "treatment", count)
    prevention = _required_list(data, "prevention", count)

    default_treatment, default_prevention = _defaults_for(mode)
    if not treatment:
        logger.warning("Advisor returned no treatment steps, using defaults")
        treatment = list(default_treatment[:count])
    if not prevention:
        logger.warning("Advisor returned no prevention tips, using defaults")
        prevention = list(default_prevention[:count])

    return AdviceOutcome(treatment=tuple(treatment), prevention=tuple(prevention))


class AdvisorAgent:
    """
    Agent 3: Treatment & Prevention
    Only runs on a committed (non-provisional) diagnosis
    """

    def __init__(self, client: GenerationClient, model: str = LLM_MODEL_ADVISOR, config: dict = None):
        self.client = client
        self.model = model
        self.config = {**PIPELINE_CONFIG, **(config or {})}
        self.temperature = self.config["ADVISOR_TEMPERATURE"]
        self.count = self.config["ADVICE_ITEM_COUNT"]

    async def advise(
        self,
        diagnosis: str,
        observation: VisualObservation,
        context: str,
        mode: AnalysisMode = AnalysisMode.DIAGNOSIS,
    ) -> AdviceOutcome:
        """
        Produce treatment and prevention lists for a diagnosis.

        Raises:
            StageGenerationFailure: the generation call failed
            StageParseFailure: the response could not be parsed into both lists
        """
        if diagnosis == NOT_A_PLANT:
            logger.info("AdvisorAgent: Not a plant, nothing to advise")
            return AdviceOutcome()

        logger.info(f"AdvisorAgent: Advising on '{diagnosis}' (mode={mode.value})")

        template = (
            ADVISOR_IDENTIFICATION_PROMPT
            if mode == AnalysisMode.IDENTIFICATION
            else ADVISOR_DIAGNOSIS_PROMPT
        )
        prompt = template.format(
            diagnosis=diagnosis,
            observation=observation.text,
            context=context or "(none)",
            count=self.count,
        )

        try:
            generation = await self.client.generate(
                prompt,
                response_shape=ADVICE_SHAPE,
                temperature=self.temperature,
                system=JSON_ONLY_SYSTEM_PROMPT,
                model=self.model,
            )
        except GenerationError as e:
            raise StageGenerationFailure(str(e), stage=PipelineStage.ADVISING) from e

        try:
            data = extract_json_object(generation.text)
            advice = parse_advice(data, mode=mode, count=self.count)
        except ValueError as e:
            logger.warning(f"Failed to parse advisor response: {e} | raw={truncate(generation.text)}")
            raise StageParseFailure(str(e), stage=PipelineStage.ADVISING) from e

        logger.info(f"AdvisorAgent: {len(advice.treatment)} treatment, {len(advice.prevention)} prevention")
        return advice
