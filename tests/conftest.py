"""
Shared fixtures: a scripted generation client and small test images.

The fake client answers generate() calls from a queue of scripted responses
(dict -> JSON text, str -> raw text, Generation -> as is, exception -> raised)
and records every call so tests can count calls per stage.
"""
import io
import json
import os
import sys

import pytest
from PIL import Image

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cropsight.services.generation import Generation, GenerationCitation
from cropsight.services.pipeline import AnalysisRequest, ImagePayload
from cropsight.services.pipeline.analyzer_agent import OBSERVATION_SHAPE
from cropsight.services.pipeline.classifier_agent import CLASSIFICATION_SHAPE
from cropsight.services.pipeline.advisor_agent import ADVICE_SHAPE

_STAGE_BY_SHAPE = {
    id(OBSERVATION_SHAPE): "analyzer",
    id(CLASSIFICATION_SHAPE): "classifier",
    id(ADVICE_SHAPE): "advisor",
}


class FakeGenerationClient:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    is_configured = True

    def push(self, *responses):
        self.responses.extend(responses)

    async def generate(
        self,
        prompt,
        images=None,
        response_shape=None,
        *,
        temperature=None,
        grounded=False,
        system=None,
        model=None,
        history=None,
    ):
        self.calls.append({
            "stage": _STAGE_BY_SHAPE.get(id(response_shape), "other"),
            "prompt": prompt,
            "images": list(images or []),
            "response_shape": response_shape,
            "temperature": temperature,
            "grounded": grounded,
            "system": system,
            "model": model,
            "history": list(history or []),
        })
        if not self.responses:
            raise AssertionError(f"unexpected generate() call #{len(self.calls)}")

        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, Generation):
            return item
        if isinstance(item, dict):
            return Generation(text=json.dumps(item))
        return Generation(text=item)

    def stage_calls(self, stage):
        return [c for c in self.calls if c["stage"] == stage]

    async def aclose(self):
        self.closed = True


def grounded(payload, *uris):
    """Classifier response with url citations (title = host part of the uri)"""
    citations = [GenerationCitation(title=uri.split("/")[2], uri=uri) for uri in uris]
    return Generation(text=json.dumps(payload), citations=citations)


def observation(text="Leaves show circular brown lesions with yellow halos."):
    return {"is_plant": True, "observation": text}


def diagnosis(name="Early Blight", confidence=85, reason="Verified by 4+ university sources", questions=None):
    return {
        "diagnosis": name,
        "confidence": confidence,
        "confidenceReason": reason,
        "missingInfo": questions or [],
    }


def advice(treatment=None, prevention=None):
    return {
        "treatment": treatment if treatment is not None else [
            "Remove infected lower leaves.",
            "Apply a copper-based organic fungicide.",
            "Use chlorothalonil if the disease keeps spreading.",
        ],
        "prevention": prevention if prevention is not None else [
            "Mulch around the base of the plant.",
            "Water at soil level in the morning.",
            "Rotate tomatoes with non-solanaceous crops.",
        ],
    }


def _jpeg_bytes(size=(64, 48), color=(40, 140, 60)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def fake_client():
    return FakeGenerationClient()


@pytest.fixture
def jpeg_bytes():
    return _jpeg_bytes()


@pytest.fixture
def leaf_request(jpeg_bytes):
    return AnalysisRequest(
        images=[ImagePayload(data=jpeg_bytes)],
        crop_type="Tomato",
        growth_stage="Flowering",
    )
