"""
Classifier Agent

Responsibilities:
- Turn the visual observation + user context into a diagnosis (or species ID)
- Verify against web sources, ranked by authority
- Ask up to 3 clarification questions when only non-visual facts can separate candidates
- Commit to a diagnosis when the user already answered (forced finalization)
- Normalize confidence to an integer percentage
- Deduplicate and cap grounding citations
"""

import logging
import math
from typing import Any, Dict, List, Sequence
from urllib.parse import urlparse

from cropsight.services.pipeline import (
    INCONCLUSIVE,
    AnalysisMode,
    Citation,
    ClassificationOutcome,
    PipelineStage,
    SourceAuthority,
    VisualObservation,
)
from cropsight.services.pipeline.errors import StageGenerationFailure, StageParseFailure
from cropsight.services.generation import GenerationCitation, GenerationClient, GenerationError
from cropsight.utils.text_processing import (
    clean_string_list,
    extract_json_object,
    normalize_whitespace,
    truncate,
)
from cropsight.prompts import (
    CLASSIFIER_DIAGNOSIS_PROMPT,
    CLASSIFIER_IDENTIFICATION_PROMPT,
    FORCED_FINALIZATION_RULE,
    JSON_ONLY_SYSTEM_PROMPT,
    SOURCE_AUTHORITY_HIERARCHY,
    SOURCE_CHECK_RULES,
)
from cropsight.config import LLM_MODEL_CLASSIFIER, PIPELINE_CONFIG

logger = logging.getLogger(__name__)

# Configuration
MAX_CITATIONS = PIPELINE_CONFIG["MAX_CITATIONS"]
MAX_CLARIFICATION_QUESTIONS = PIPELINE_CONFIG["MAX_CLARIFICATION_QUESTIONS"]

CLASSIFICATION_SHAPE = {
    "type": "object",
    "properties": {
        "diagnosis": {"type": "string"},
        "confidence": {"type": "number", "description": "Confidence score between 0 and 100"},
        "confidenceReason": {"type": "string", "description": "Explanation for the confidence score"},
        "missingInfo": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Clarification questions, empty when the diagnosis is final",
        },
    },
    "required": ["diagnosis", "confidence", "confidenceReason", "missingInfo"],
}

_PRIMARY_SUFFIXES = (".edu", ".gov", ".mil", ".int")
# second-level academic/government zones, e.g. ac.uk, gov.au, edu.in
_PRIMARY_SECOND_LEVEL = ("ac", "edu", "gov", "go")
_PRIMARY_DOMAINS = {
    "fao.org",
    "cgiar.org",
    "cabi.org",
    "apsnet.org",
    "eppo.int",
    "plantwise.org",
    "nih.gov",
}
_SECONDARY_DOMAINS = {
    "rhs.org.uk",
    "missouribotanicalgarden.org",
    "almanac.com",
    "gardeningknowhow.com",
    "planetnatural.com",
    "britannica.com",
    "kew.org",
    "extension.org",
    "growveg.com",
    "ahs.org",
}
# Grounding redirect hosts hide the real site; the title carries its domain instead
_REDIRECT_HOSTS = ("vertexaisearch.cloud.google.com",)


def normalize_confidence(raw: Any) -> int:
    """
    Convert a reported confidence to an integer percentage.

    Values in (0, 1] are fractions and are scaled by 100; everything else is
    already a percentage. 0 stays 0. Result is clamped to [0, 100].

    Raises:
        ValueError: value is missing or not numeric
    """
    if raw is None or isinstance(raw, bool):
        raise ValueError(f"confidence is not numeric: {raw!r}")

    if isinstance(raw, str):
        cleaned = raw.strip().rstrip("%").strip()
        try:
            value = float(cleaned)
        except ValueError:
            raise ValueError(f"confidence is not numeric: {raw!r}") from None
    elif isinstance(raw, (int, float)):
        value = float(raw)
    else:
        raise ValueError(f"confidence is not numeric: {raw!r}")

    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"confidence is not finite: {raw!r}")

    if 0 < value <= 1:
        value *= 100

    # round half up, not banker's rounding
    percent = int(math.floor(value + 0.5))
    return max(0, min(100, percent))


def _host_of(uri: str) -> str:
    host = urlparse(uri).hostname or ""
    return host.lower().lstrip(".").removeprefix("www.")


def _matches_domain(host: str, domains) -> bool:
    return any(host == d or host.endswith("." + d) for d in domains)


def classify_source_authority(uri: str, title: str = "") -> SourceAuthority:
    """Rank a source by where it is published"""
    host = _host_of(uri)
    if any(host == h or host.endswith("." + h) for h in _REDIRECT_HOSTS):
        host = normalize_whitespace(title).lower().removeprefix("www.")
    if not host:
        return SourceAuthority.TERTIARY

    labels = host.split(".")
    if host.endswith(_PRIMARY_SUFFIXES) or _matches_domain(host, _PRIMARY_DOMAINS):
        return SourceAuthority.PRIMARY
    if len(labels) >= 3 and labels[-2] in _PRIMARY_SECOND_LEVEL:
        return SourceAuthority.PRIMARY
    if _matches_domain(host, _SECONDARY_DOMAINS):
        return SourceAuthority.SECONDARY
    return SourceAuthority.TERTIARY


def dedupe_citations(
    citations: Sequence[GenerationCitation],
    limit: int = MAX_CITATIONS,
) -> List[Citation]:
    """
    Deduplicate by URI (first occurrence wins), keep discovery order, cap at limit.
    Entries without a URI are dropped; a missing title falls back to the URI.
    """
    seen = set()
    unique: List[Citation] = []
    for item in citations:
        uri = (item.uri or "").strip()
        if not uri or uri in seen:
            continue
        seen.add(uri)
        title = normalize_whitespace(item.title) or uri
        unique.append(Citation(
            title=title,
            uri=uri,
            authority=classify_source_authority(uri, title),
        ))
        if len(unique) >= limit:
            break
    return unique


def parse_classification(
    data: Dict[str, Any],
    citations: Sequence[Citation] = (),
    forced: bool = False,
    max_questions: int = MAX_CLARIFICATION_QUESTIONS,
) -> ClassificationOutcome:
    """
    Build a ClassificationOutcome from the parsed model JSON.

    Raises:
        ValueError: required fields are missing or malformed
    """
    diagnosis = data.get("diagnosis")
    if diagnosis is not None and not isinstance(diagnosis, str):
        raise ValueError(f"diagnosis must be a string, got {type(diagnosis).__name__}")
    diagnosis = normalize_whitespace(diagnosis or "")

    reason = data.get("confidenceReason") or data.get("confidence_reason") or ""
    if not isinstance(reason, str):
        raise ValueError("confidenceReason must be a string")

    raw_questions = data.get("missingInfo")
    if raw_questions is None:
        raw_questions = data.get("missing_info")
    questions = clean_string_list(raw_questions, limit=max_questions)

    if questions and forced:
        logger.warning(f"Classifier asked {len(questions)} question(s) after user answers; dropping them")
        questions = []

    if "confidence" in data:
        confidence = normalize_confidence(data.get("confidence"))
    elif questions:
        confidence = 0
    else:
        raise ValueError("missing confidence")

    if not questions and not diagnosis:
        # ambiguous image: the model scored it but would not name a diagnosis
        logger.info("Classifier gave no diagnosis and no questions, marking inconclusive")
        diagnosis = INCONCLUSIVE

    return ClassificationOutcome(
        diagnosis=diagnosis,
        confidence=confidence,
        confidence_reason=normalize_whitespace(reason),
        citations=tuple(citations),
        clarification_questions=tuple(questions),
    )


class ClassifierAgent:
    """
    Agent 2: Evidence-Grounded Classification
    Decides between a clear match, an evidence gap (ask the user) or an inconclusive image
    """

    def __init__(self, client: GenerationClient, model: str = LLM_MODEL_CLASSIFIER, config: dict = None):
        self.client = client
        self.model = model
        self.config = {**PIPELINE_CONFIG, **(config or {})}
        self.temperature = self.config["CLASSIFIER_TEMPERATURE"]
        self.max_citations = self.config["MAX_CITATIONS"]
        self.max_questions = self.config["MAX_CLARIFICATION_QUESTIONS"]

    def build_prompt(self, observation: VisualObservation, context: str, forced: bool, mode: AnalysisMode) -> str:
        template = (
            CLASSIFIER_IDENTIFICATION_PROMPT
            if mode == AnalysisMode.IDENTIFICATION
            else CLASSIFIER_DIAGNOSIS_PROMPT
        )
        return template.format(
            observation=observation.text,
            context=context or "(none)",
            source_check=SOURCE_CHECK_RULES,
            hierarchy=SOURCE_AUTHORITY_HIERARCHY,
            max_questions=self.max_questions,
            forced_rule=FORCED_FINALIZATION_RULE if forced else "",
        )

    async def classify(
        self,
        observation: VisualObservation,
        context: str,
        *,
        forced: bool = False,
        mode: AnalysisMode = AnalysisMode.DIAGNOSIS,
    ) -> ClassificationOutcome:
        """
        Classify the observation.

        Args:
            observation: output of the AnalyzerAgent
            context: crop, growth stage, notes, sensor data, prior answers
            forced: the user already answered a clarification round; never ask again

        Raises:
            StageGenerationFailure: the generation call failed
            StageParseFailure: the response could not be parsed
        """
        if observation.not_a_plant:
            logger.info("ClassifierAgent: Not a plant, skipping remote call")
            return ClassificationOutcome.not_a_plant()

        logger.info(f"ClassifierAgent: Classifying (mode={mode.value}, forced={forced})")

        prompt = self.build_prompt(observation, context, forced, mode)

        try:
            generation = await self.client.generate(
                prompt,
                response_shape=CLASSIFICATION_SHAPE,
                temperature=self.temperature,
                grounded=True,
                system=JSON_ONLY_SYSTEM_PROMPT,
                model=self.model,
            )
        except GenerationError as e:
            raise StageGenerationFailure(str(e), stage=PipelineStage.CLASSIFYING) from e

        citations = dedupe_citations(generation.citations, limit=self.max_citations)

        try:
            data = extract_json_object(generation.text)
            outcome = parse_classification(
                data,
                citations=citations,
                forced=forced,
                max_questions=self.max_questions,
            )
        except ValueError as e:
            logger.warning(f"Failed to parse classifier response: {e} | raw={truncate(generation.text)}")
            raise StageParseFailure(str(e), stage=PipelineStage.CLASSIFYING) from e

        if outcome.is_provisional:
            logger.info(f"ClassifierAgent: Evidence gap, {len(outcome.clarification_questions)} question(s)")
        else:
            logger.info(
                f"ClassifierAgent: {outcome.diagnosis} ({outcome.confidence}%), "
                f"{len(outcome.citations)} source(s)"
            )
        return outcome
