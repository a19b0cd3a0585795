"""
Plant Analysis Pipeline for CropSight

3-Agent Architecture:
1. AnalyzerAgent - Clinical visual observation, rejects non-plant images
2. ClassifierAgent - Evidence-grounded diagnosis, confidence, citations, clarification questions
3. AdvisorAgent - Treatment steps and prevention tips

AnalysisOrchestrator sequences the agents and runs the clarification loop.
"""

import base64
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Optional, Tuple
from enum import Enum

NOT_A_PLANT = "Not a Plant"
HEALTHY_PLANT = "Healthy Plant"
# Image too poor, or evidence too thin, to commit to a diagnosis
INCONCLUSIVE = "Inconclusive"


class AnalysisMode(str, Enum):
    """What the user wants to know about the plant"""
    DIAGNOSIS = "DIAGNOSIS"             # disease / pest / deficiency
    IDENTIFICATION = "IDENTIFICATION"   # species


class CropType(str, Enum):
    TOMATO = "Tomato"
    WHEAT = "Wheat"
    RICE = "Rice"
    CORN = "Corn"
    SOYBEAN = "Soybean"
    POTATO = "Potato"
    OTHER = "Other"


class GrowthStage(str, Enum):
    SEEDLING = "Seedling"
    VEGETATIVE = "Vegetative"
    FLOWERING = "Flowering"
    FRUITING = "Fruiting"
    MATURITY = "Maturity"


class SourceAuthority(str, Enum):
    """Trust tier of a grounding citation"""
    PRIMARY = "primary"       # .edu / .gov / research institutions
    SECONDARY = "secondary"   # established horticultural publications
    TERTIARY = "tertiary"     # everything else


class PipelineStage(str, Enum):
    """States of one analysis run"""
    ANALYZING = "ANALYZING"
    CLASSIFYING = "CLASSIFYING"
    NEEDS_CLARIFICATION = "NEEDS_CLARIFICATION"
    ADVISING = "ADVISING"
    DONE = "DONE"

    @property
    def label(self) -> str:
        return _STAGE_LABELS[self]


_STAGE_LABELS = {
    PipelineStage.ANALYZING: "Agent 1 (Analyzer): Scanning visual symptoms...",
    PipelineStage.CLASSIFYING: "Agent 2 (Classifier): Cross-referencing trusted sources...",
    PipelineStage.NEEDS_CLARIFICATION: "Agent 2 (Classifier): Needs more details from you...",
    PipelineStage.ADVISING: "Agent 3 (Advisor): Drafting treatment plan...",
    PipelineStage.DONE: "Analysis complete",
}


def _coerce_text(value: Any) -> str:
    # CropType / GrowthStage members or free text
    if isinstance(value, Enum):
        return str(value.value)
    return str(value or "").strip()


@dataclass(frozen=True)
class ImagePayload:
    """One encoded image, opaque to the pipeline"""
    data: bytes
    mime_type: str = "image/jpeg"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("utf-8")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


@dataclass(frozen=True)
class EnvironmentSnapshot:
    """Sensor readings taken next to the plant (no enforced ranges)"""
    temperature: float
    humidity: float
    soil_moisture: float

    def describe(self) -> str:
        return (
            "Real-time sensor data:\n"
            f"- Temperature: {self.temperature:g}°C\n"
            f"- Humidity: {self.humidity:g}%\n"
            f"- Soil moisture: {self.soil_moisture:g}%\n"
            "(Use this to validate disease likelihood, e.g. fungal diseases thrive in high humidity.)"
        )


@dataclass(frozen=True)
class ClarificationAnswer:
    """The user's answer to one clarification question"""
    question: str
    answer: str

    def describe(self) -> str:
        return f"Q: {self.question} A: {self.answer or 'Skipped'}"


@dataclass(frozen=True)
class AnalysisRequest:
    """Input bundle for one analysis run"""
    images: Tuple[ImagePayload, ...]
    crop_type: str = CropType.OTHER.value
    growth_stage: str = GrowthStage.VEGETATIVE.value
    notes: str = ""
    mode: AnalysisMode = AnalysisMode.DIAGNOSIS
    environment: Optional[EnvironmentSnapshot] = None
    prior_answers: Tuple[ClarificationAnswer, ...] = ()

    def __post_init__(self):
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "images", tuple(self.images))
        object.__setattr__(self, "prior_answers", tuple(self.prior_answers))
        object.__setattr__(self, "crop_type", _coerce_text(self.crop_type))
        object.__setattr__(self, "growth_stage", _coerce_text(self.growth_stage))
        object.__setattr__(self, "notes", str(self.notes or "").strip())
        object.__setattr__(self, "mode", AnalysisMode(self.mode))
        if not self.images:
            raise ValueError("AnalysisRequest requires at least one image")

    @property
    def has_prior_answers(self) -> bool:
        """Prior-clarification marker: this run re-enters after a clarification round"""
        return bool(self.prior_answers)

    @property
    def clarification_round(self) -> int:
        return 1 if self.prior_answers else 0

    def with_answers(self, answers: Iterable[ClarificationAnswer]) -> "AnalysisRequest":
        """Build the re-entry request for the clarification loop"""
        return replace(self, prior_answers=tuple(self.prior_answers) + tuple(answers))


@dataclass(frozen=True)
class VisualObservation:
    """Output from AnalyzerAgent"""
    text: str
    not_a_plant: bool = False

    @classmethod
    def rejected(cls, reason: str = "") -> "VisualObservation":
        return cls(text=reason or "No plant detected", not_a_plant=True)


@dataclass(frozen=True)
class Citation:
    """A web source consulted while classifying"""
    title: str
    uri: str
    authority: SourceAuthority = SourceAuthority.TERTIARY

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "uri": self.uri, "authority": self.authority.value}


@dataclass(frozen=True)
class ClassificationOutcome:
    """Output from ClassifierAgent"""
    diagnosis: str
    confidence: int
    confidence_reason: str = ""
    citations: Tuple[Citation, ...] = ()
    clarification_questions: Tuple[str, ...] = ()

    @property
    def is_provisional(self) -> bool:
        # Provisional outcomes must not proceed to the AdvisorAgent
        return bool(self.clarification_questions)

    @classmethod
    def not_a_plant(cls, reason: str = "No plant detected") -> "ClassificationOutcome":
        return cls(diagnosis=NOT_A_PLANT, confidence=0, confidence_reason=reason)


@dataclass(frozen=True)
class AdviceOutcome:
    """Output from AdvisorAgent"""
    treatment: Tuple[str, ...] = ()
    prevention: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AnalysisResult:
    """Final result of the analysis pipeline"""
    diagnosis: str
    confidence: int
    confidence_reason: str = ""
    treatment: Tuple[str, ...] = ()
    prevention: Tuple[str, ...] = ()
    citations: Tuple[Citation, ...] = ()
    # Pipeline halted: questions the user must answer before a diagnosis is final
    missing_info: Optional[Tuple[str, ...]] = None
    mode: AnalysisMode = AnalysisMode.DIAGNOSIS

    @property
    def is_not_a_plant(self) -> bool:
        return self.diagnosis == NOT_A_PLANT

    @property
    def needs_clarification(self) -> bool:
        return bool(self.missing_info)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "diagnosis": self.diagnosis,
            "confidence": self.confidence,
            "confidenceReason": self.confidence_reason,
            "treatment": list(self.treatment),
            "prevention": list(self.prevention),
            "sources": [c.to_dict() for c in self.citations],
            "missingInfo": list(self.missing_info) if self.missing_info else None,
            "mode": self.mode.value,
        }


@dataclass(frozen=True)
class StageEvent:
    """Published before the orchestrator enters a stage"""
    stage: PipelineStage
    label: str = field(default="")

    def __post_init__(self):
        if not self.label:
            object.__setattr__(self, "label", self.stage.label)


# Export all components
__all__ = [
    "NOT_A_PLANT",
    "HEALTHY_PLANT",
    "INCONCLUSIVE",
    "AnalysisMode",
    "CropType",
    "GrowthStage",
    "SourceAuthority",
    "PipelineStage",
    "ImagePayload",
    "EnvironmentSnapshot",
    "ClarificationAnswer",
    "AnalysisRequest",
    "VisualObservation",
    "Citation",
    "ClassificationOutcome",
    "AdviceOutcome",
    "AnalysisResult",
    "StageEvent",
]
