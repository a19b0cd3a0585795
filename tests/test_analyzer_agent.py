"""
Tests for AnalyzerAgent: tagged observation parsing and stage failure mapping
"""
import asyncio

import pytest

from conftest import FakeGenerationClient, observation
from cropsight.services.generation import GenerationError
from cropsight.services.pipeline import AnalysisMode, ImagePayload, PipelineStage
from cropsight.services.pipeline.analyzer_agent import AnalyzerAgent, parse_observation
from cropsight.services.pipeline.errors import StageGenerationFailure, StageParseFailure
from cropsight.prompts import JSON_ONLY_SYSTEM_PROMPT

IMAGES = [ImagePayload(data=b"\xff\xd8fake-1"), ImagePayload(data=b"\xff\xd8fake-2", mime_type="image/png")]


class TestParseObservation:
    def test_plant_observation(self):
        obs = parse_observation('{"is_plant": true, "observation": "Yellow spots on older leaves."}')
        assert obs.not_a_plant is False
        assert obs.text == "Yellow spots on older leaves."

    def test_is_plant_false(self):
        obs = parse_observation('{"is_plant": false, "observation": "A coffee mug on a desk."}')
        assert obs.not_a_plant is True

    @pytest.mark.parametrize("raw", [
        '{"is_plant": true, "observation": "NOT_A_PLANT"}',
        "NOT_A_PLANT",
        "The image shows a cat. NOT_A_PLANT",
    ])
    def test_sentinel_still_recognised(self, raw):
        assert parse_observation(raw).not_a_plant is True

    def test_free_text_fallback(self):
        obs = parse_observation("Leaves are uniformly green, no lesions or pests visible.")
        assert obs.not_a_plant is False
        assert obs.text.startswith("Leaves are uniformly green")

    @pytest.mark.parametrize("raw", ["", "   ", '{"is_plant": true, "observation": ""}', '{"is_plant": true}'])
    def test_empty_rejected(self, raw):
        with pytest.raises(ValueError):
            parse_observation(raw)

    def test_observation_must_be_text(self):
        with pytest.raises(ValueError):
            parse_observation('{"is_plant": true, "observation": ["spots"]}')


class TestAnalyzerAgent:
    def test_single_deterministic_call_with_all_images(self):
        client = FakeGenerationClient(observation())
        obs = asyncio.run(AnalyzerAgent(client).observe(IMAGES))

        assert len(client.calls) == 1
        call = client.calls[0]
        assert call["images"] == IMAGES
        assert call["temperature"] == 0.0
        assert call["grounded"] is False
        assert call["system"] == JSON_ONLY_SYSTEM_PROMPT
        assert "Do NOT name any disease" in call["prompt"]
        assert obs.not_a_plant is False

    def test_identification_prompt(self):
        client = FakeGenerationClient(observation("Heart-shaped leaves, alternate arrangement."))
        asyncio.run(AnalyzerAgent(client).observe(IMAGES, mode=AnalysisMode.IDENTIFICATION))
        assert "MORPHOLOGY" in client.calls[0]["prompt"]

    def test_no_images(self):
        with pytest.raises(ValueError):
            asyncio.run(AnalyzerAgent(FakeGenerationClient()).observe([]))

    def test_generation_failure(self):
        client = FakeGenerationClient(GenerationError("connection reset"))
        with pytest.raises(StageGenerationFailure) as exc_info:
            asyncio.run(AnalyzerAgent(client).observe(IMAGES))
        assert exc_info.value.stage == PipelineStage.ANALYZING
        assert isinstance(exc_info.value.__cause__, GenerationError)

    def test_parse_failure(self):
        client = FakeGenerationClient('{"is_plant": true}')
        with pytest.raises(StageParseFailure) as exc_info:
            asyncio.run(AnalyzerAgent(client).observe(IMAGES))
        assert exc_info.value.stage == PipelineStage.ANALYZING
