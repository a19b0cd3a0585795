"""
Plant Analysis Orchestrator

Main entry point for the 3-agent pipeline:
1. AnalyzerAgent - Visual observation, rejects non-plant images
2. ClassifierAgent - Grounded diagnosis or clarification questions
3. AdvisorAgent - Treatment and prevention

States: ANALYZING -> CLASSIFYING -> (NEEDS_CLARIFICATION | ADVISING) -> DONE

Usage:
    from cropsight.services.generation import GenerationClient
    from cropsight.services.pipeline.orchestrator import AnalysisOrchestrator

    orchestrator = AnalysisOrchestrator(GenerationClient.from_settings(LLM_MODEL_CLASSIFIER))
    result = await orchestrator.analyze(request, on_status=print)
    if result.needs_clarification:
        answers = [ClarificationAnswer(q, ask_user(q)) for q in result.missing_info]
        result = await orchestrator.analyze(request.with_answers(answers))
"""

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Awaitable, Iterable, Optional, TypeVar

from cropsight.services.pipeline import (
    INCONCLUSIVE,
    NOT_A_PLANT,
    AnalysisRequest,
    AnalysisResult,
    ClarificationAnswer,
    ClassificationOutcome,
    PipelineStage,
)
from cropsight.services.pipeline.errors import PipelineError, StageGenerationFailure
from cropsight.services.pipeline.analyzer_agent import AnalyzerAgent
from cropsight.services.pipeline.classifier_agent import ClassifierAgent
from cropsight.services.pipeline.advisor_agent import AdvisorAgent
from cropsight.services.pipeline.status import StatusReporter
from cropsight.services.generation import GenerationClient
from cropsight.prompts import NO_SENSOR_DATA, USER_ANSWERS_MARKER
from cropsight.config import PIPELINE_CONFIG

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Shown while the user still has questions to answer
PENDING_DIAGNOSIS = "Needs More Information"


def build_context(request: AnalysisRequest) -> str:
    """Context block handed to the classifier and advisor"""
    lines = [
        f"Crop: {request.crop_type or 'Unknown'}",
        f"Growth stage: {request.growth_stage or 'Unknown'}",
        f"Mode: {request.mode.value}",
    ]
    if request.notes:
        lines.append(f"User notes: {request.notes}")

    lines.append(request.environment.describe() if request.environment else NO_SENSOR_DATA)

    if request.has_prior_answers:
        lines.append("")
        lines.append(USER_ANSWERS_MARKER)
        lines.append("USER ANSWERS:")
        lines.extend(answer.describe() for answer in request.prior_answers)

    return "\n".join(lines)


class AnalysisOrchestrator:
    """
    Plant Analysis Pipeline Orchestrator

    Holds no per-run state: concurrent analyze() calls are independent.
    """

    def __init__(
        self,
        client: Optional[GenerationClient] = None,
        analyzer: Optional[AnalyzerAgent] = None,
        classifier: Optional[ClassifierAgent] = None,
        advisor: Optional[AdvisorAgent] = None,
        config: dict = None,
    ):
        """
        Initialize the pipeline

        Args:
            client: generation client shared by the default agents
            analyzer / classifier / advisor: agent overrides (tests)
            config: PIPELINE_CONFIG overrides
        """
        if client is None and None in (analyzer, classifier, advisor):
            raise ValueError("AnalysisOrchestrator needs a client or all three agents")

        self.config = {**PIPELINE_CONFIG, **(config or {})}
        self.max_rounds = self.config["MAX_CLARIFICATION_ROUNDS"]

        # Initialize agents
        self.analyzer = analyzer or AnalyzerAgent(client, config=self.config)
        self.classifier = classifier or ClassifierAgent(client, config=self.config)
        self.advisor = advisor or AdvisorAgent(client, config=self.config)

    async def analyze(self, request: AnalysisRequest, on_status: Any = None) -> AnalysisResult:
        """
        Run the pipeline for one request.

        Args:
            request: images plus user context
            on_status: observer(s) for stage transitions, see StatusReporter

        Returns:
            AnalysisResult (not-a-plant, needs-clarification or final)

        Raises:
            PipelineError: a stage failed; .stage names it
            asyncio.CancelledError: the run was cancelled
        """
        start_time = time.time()
        reporter = StatusReporter.from_callback(on_status)
        mode = request.mode
        forced = request.clarification_round >= self.max_rounds
        context = build_context(request)

        logger.info(
            f"AnalysisOrchestrator.analyze: {len(request.images)} image(s), "
            f"crop={request.crop_type}, mode={mode.value}, round={request.clarification_round}"
        )

        # =================================================================
        # Stage 1: Visual observation
        # =================================================================
        await reporter.publish(PipelineStage.ANALYZING)
        observation = await self._run_stage(
            PipelineStage.ANALYZING,
            self.analyzer.observe(request.images, mode=mode),
        )

        if observation.not_a_plant:
            logger.info("  - Not a plant, skipping classifier and advisor")
            await reporter.publish(PipelineStage.DONE)
            return self._not_a_plant_result(request)

        # =================================================================
        # Stage 2: Classification
        # =================================================================
        await reporter.publish(PipelineStage.CLASSIFYING)
        outcome = await self._run_stage(
            PipelineStage.CLASSIFYING,
            self.classifier.classify(observation, context, forced=forced, mode=mode),
        )

        if outcome.is_provisional:
            if not forced:
                logger.info(f"  - Needs clarification: {list(outcome.clarification_questions)}")
                await reporter.publish(PipelineStage.NEEDS_CLARIFICATION)
                return self._clarification_result(request, outcome)
            outcome = self._finalize(outcome)

        if outcome.diagnosis == NOT_A_PLANT:
            await reporter.publish(PipelineStage.DONE)
            return self._not_a_plant_result(request)

        # =================================================================
        # Stage 3: Advice
        # =================================================================
        await reporter.publish(PipelineStage.ADVISING)
        advice = await self._run_stage(
            PipelineStage.ADVISING,
            self.advisor.advise(outcome.diagnosis, observation, context, mode=mode),
        )

        result = AnalysisResult(
            diagnosis=outcome.diagnosis,
            confidence=outcome.confidence,
            confidence_reason=outcome.confidence_reason,
            treatment=advice.treatment,
            prevention=advice.prevention,
            citations=outcome.citations,
            missing_info=None,
            mode=mode,
        )

        await reporter.publish(PipelineStage.DONE)
        elapsed = time.time() - start_time
        logger.info(
            f"AnalysisOrchestrator: {result.diagnosis} ({result.confidence}%), "
            f"{len(result.citations)} source(s) in {elapsed:.1f}s"
        )
        return result

    async def resume(
        self,
        request: AnalysisRequest,
        answers: Iterable[ClarificationAnswer],
        on_status: Any = None,
    ) -> AnalysisResult:
        """Re-enter the pipeline with the user's clarification answers"""
        return await self.analyze(request.with_answers(answers), on_status=on_status)

    async def _run_stage(self, stage: PipelineStage, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except asyncio.CancelledError:
            logger.warning(f"Analysis cancelled during {stage.value}")
            raise
        except PipelineError as e:
            if e.stage is None:
                e.stage = stage
            logger.error(f"Pipeline error: {e}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error in {stage.value}: {e}", exc_info=True)
            raise StageGenerationFailure(f"{type(e).__name__}: {e}", stage=stage) from e

    @staticmethod
    def _finalize(outcome: ClassificationOutcome) -> ClassificationOutcome:
        # Round limit reached: questions can no longer be asked
        logger.warning(
            f"  - Classifier still asked {len(outcome.clarification_questions)} question(s) "
            "after the clarification round, dropping them"
        )
        if not outcome.diagnosis:
            logger.warning("  - No provisional diagnosis either, marking inconclusive")
            return replace(outcome, diagnosis=INCONCLUSIVE, clarification_questions=())
        return replace(outcome, clarification_questions=())

    @staticmethod
    def _not_a_plant_result(request: AnalysisRequest) -> AnalysisResult:
        outcome = ClassificationOutcome.not_a_plant()
        return AnalysisResult(
            diagnosis=outcome.diagnosis,
            confidence=0,
            confidence_reason=outcome.confidence_reason,
            mode=request.mode,
        )

    @staticmethod
    def _clarification_result(request: AnalysisRequest, outcome: ClassificationOutcome) -> AnalysisResult:
        return AnalysisResult(
            diagnosis=outcome.diagnosis or PENDING_DIAGNOSIS,
            confidence=outcome.confidence,
            confidence_reason=outcome.confidence_reason,
            missing_info=outcome.clarification_questions,
            mode=request.mode,
        )
