from typing import List, Literal, Optional
from pydantic import BaseModel, Field

from cropsight.services.chat import ChatMessage
from cropsight.services.pipeline import (
    AnalysisMode,
    AnalysisResult,
    Citation,
    ClarificationAnswer,
    SourceAuthority,
)
from cropsight.prompts import ERROR_NOT_A_PLANT


class CitationModel(BaseModel):
    title: str
    uri: str
    authority: Literal["primary", "secondary", "tertiary"] = "tertiary"

    def to_citation(self) -> Citation:
        return Citation(title=self.title, uri=self.uri, authority=SourceAuthority(self.authority))


class ClarificationAnswerModel(BaseModel):
    question: str
    answer: str = ""

    def to_answer(self) -> ClarificationAnswer:
        return ClarificationAnswer(question=self.question.strip(), answer=self.answer.strip())


class AnalysisResponse(BaseModel):
    diagnosis: str
    confidence: int = Field(ge=0, le=100)
    confidenceReason: str = ""
    treatment: List[str] = []
    prevention: List[str] = []
    sources: List[CitationModel] = []
    missingInfo: Optional[List[str]] = None  # questions the user must answer first
    mode: AnalysisMode = AnalysisMode.DIAGNOSIS
    notAPlant: bool = False
    message: Optional[str] = None  # user-facing hint, set for non-plant images

    @classmethod
    def from_result(cls, result: AnalysisResult) -> "AnalysisResponse":
        return cls(
            **result.to_dict(),
            notAPlant=result.is_not_a_plant,
            message=ERROR_NOT_A_PLANT if result.is_not_a_plant else None,
        )

    def to_result(self) -> AnalysisResult:
        """Back to the pipeline type (the chat routes receive results from the client)"""
        return AnalysisResult(
            diagnosis=self.diagnosis,
            confidence=self.confidence,
            confidence_reason=self.confidenceReason,
            treatment=tuple(self.treatment),
            prevention=tuple(self.prevention),
            citations=tuple(source.to_citation() for source in self.sources),
            missing_info=tuple(self.missingInfo) if self.missingInfo else None,
            mode=self.mode,
        )


class StageErrorResponse(BaseModel):
    error: str
    stage: str
    detail: str = ""


class TipResponse(BaseModel):
    tip: str


class ChatMessageModel(BaseModel):
    role: Literal["user", "model"]
    text: str

    def to_message(self) -> ChatMessage:
        return ChatMessage(role=self.role, text=self.text)


class ChatStartRequest(BaseModel):
    result: AnalysisResponse


class ChatRequest(ChatStartRequest):
    history: List[ChatMessageModel] = []
    message: str = Field(min_length=1)


class ChatResponse(BaseModel):
    reply: str
