"""
Analyzer Agent

Responsibilities:
- Reject images that do not show a plant
- Produce a clinical, diagnosis-free description of what is visible
  (color, lesions, pests, focus/image quality)
"""

import logging
from typing import Sequence

from cropsight.services.pipeline import (
    AnalysisMode,
    ImagePayload,
    PipelineStage,
    VisualObservation,
)
from cropsight.services.pipeline.errors import StageGenerationFailure, StageParseFailure
from cropsight.services.generation import GenerationClient, GenerationError
from cropsight.utils.text_processing import extract_json_object, normalize_whitespace, truncate
from cropsight.prompts import (
    ANALYZER_DIAGNOSIS_PROMPT,
    ANALYZER_IDENTIFICATION_PROMPT,
    JSON_ONLY_SYSTEM_PROMPT,
    NOT_A_PLANT_SENTINEL,
)
from cropsight.config import LLM_MODEL_ANALYZER, PIPELINE_CONFIG

logger = logging.getLogger(__name__)

OBSERVATION_SHAPE = {
    "type": "object",
    "properties": {
        "is_plant": {"type": "boolean"},
        "observation": {"type": "string"},
    },
    "required": ["is_plant", "observation"],
}


def parse_observation(raw_text: str) -> VisualObservation:
    """
    Turn the analyzer response into a tagged observation.

    The structured is_plant flag wins; the sentinel token is still honoured when
    the model answers in free text.

    Raises:
        ValueError: response has neither a usable JSON object nor plain text
    """
    try:
        data = extract_json_object(raw_text)
    except ValueError:
        text = normalize_whitespace(raw_text)
        if not text:
            raise
        if NOT_A_PLANT_SENTINEL in text:
            return VisualObservation.rejected()
        return VisualObservation(text=raw_text.strip())

    observation = data.get("observation")
    if observation is not None and not isinstance(observation, str):
        raise ValueError(f"observation must be a string, got {type(observation).__name__}")
    observation = (observation or "").strip()

    is_plant = data.get("is_plant")
    if is_plant is False or NOT_A_PLANT_SENTINEL in observation:
        return VisualObservation.rejected()
    if not observation:
        raise ValueError("missing observation text")
    return VisualObservation(text=observation)


class AnalyzerAgent:
    """
    Agent 1: Visual Observation
    Looks at the images and reports what is there, never what it means
    """

    def __init__(self, client: GenerationClient, model: str = LLM_MODEL_ANALYZER, config: dict = None):
        self.client = client
        self.model = model
        self.config = {**PIPELINE_CONFIG, **(config or {})}
        self.temperature = self.config["ANALYZER_TEMPERATURE"]

    async def observe(
        self,
        images: Sequence[ImagePayload],
        mode: AnalysisMode = AnalysisMode.DIAGNOSIS,
    ) -> VisualObservation:
        """
        Describe the plant in the images.

        Raises:
            ValueError: no images
            StageGenerationFailure: the generation call failed
            StageParseFailure: the response could not be parsed
        """
        if not images:
            raise ValueError("AnalyzerAgent.observe requires at least one image")

        logger.info(f"AnalyzerAgent: Observing {len(images)} image(s), mode={mode.value}")

        prompt = (
            ANALYZER_IDENTIFICATION_PROMPT
            if mode == AnalysisMode.IDENTIFICATION
            else ANALYZER_DIAGNOSIS_PROMPT
        )

        try:
            generation = await self.client.generate(
                prompt,
                images=list(images),
                response_shape=OBSERVATION_SHAPE,
                temperature=self.temperature,
                system=JSON_ONLY_SYSTEM_PROMPT,
                model=self.model,
            )
        except GenerationError as e:
            raise StageGenerationFailure(str(e), stage=PipelineStage.ANALYZING) from e

        try:
            observation = parse_observation(generation.text)
        except ValueError as e:
            logger.warning(f"Failed to parse analyzer response: {e} | raw={truncate(generation.text)}")
            raise StageParseFailure(str(e), stage=PipelineStage.ANALYZING) from e

        if observation.not_a_plant:
            logger.info("AnalyzerAgent: No plant detected")
        else:
            logger.info(f"AnalyzerAgent: Observation: {truncate(observation.text, 120)}")
        return observation
