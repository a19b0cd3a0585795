"""
Pipeline error taxonomy

"Not a Plant" and "needs clarification" are result data, not errors.
Everything here aborts the run; nothing is retried.
"""

from typing import Optional

from cropsight.services.pipeline import PipelineStage


class PipelineError(Exception):
    """Analysis failed for a stage"""

    def __init__(self, detail: str, stage: Optional[PipelineStage] = None):
        super().__init__(detail)
        self.detail = detail
        self.stage = stage

    @property
    def stage_name(self) -> str:
        return self.stage.value if self.stage else "UNKNOWN"

    def __str__(self) -> str:
        return f"analysis failed for stage {self.stage_name}: {self.detail}"


class StageGenerationFailure(PipelineError):
    """The generation call for the stage failed (transport, quota, policy)"""


class StageParseFailure(PipelineError):
    """The stage got a response but could not extract the required fields"""
