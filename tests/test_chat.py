"""
Tests for the agronomist follow-up chat
"""
import asyncio

import pytest

from conftest import FakeGenerationClient
from cropsight.services.chat import (
    AgronomistChat,
    ChatMessage,
    build_agronomist_prompt,
    greeting,
)
from cropsight.services.generation import GenerationError
from cropsight.services.pipeline import (
    NOT_A_PLANT,
    AnalysisMode,
    AnalysisResult,
    Citation,
    SourceAuthority,
)
from cropsight.config import CHAT_TEMPERATURE

BLIGHT = AnalysisResult(
    diagnosis="Early Blight",
    confidence=88,
    confidence_reason="Verified by 4+ university sources",
    treatment=("Remove infected leaves.", "Apply copper fungicide.", "Improve airflow."),
    prevention=("Mulch the soil.", "Water at the base.", "Rotate crops."),
    citations=(Citation("UMN Extension", "https://extension.umn.edu/blight", SourceAuthority.PRIMARY),),
)


class TestPrompt:
    def test_result_rendered(self):
        prompt = build_agronomist_prompt(BLIGHT)
        assert "Diagnosis: Early Blight (88% confidence: Verified by 4+ university sources)" in prompt
        assert "- Apply copper fungicide." in prompt
        assert "- Rotate crops." in prompt
        assert "UMN Extension (https://extension.umn.edu/blight)" in prompt
        assert "Mode: DIAGNOSIS" in prompt

    def test_empty_lists(self):
        result = AnalysisResult(diagnosis="Healthy Plant", confidence=95)
        prompt = build_agronomist_prompt(result)
        assert "(none)" in prompt
        assert "not given" in prompt

    def test_greeting_names_the_diagnosis(self):
        assert greeting(BLIGHT) == (
            "Hi! I'm your AI Agronomist. I see you have a **Early Blight** issue. "
            "How can I help you with this?"
        )

    def test_identification_greeting(self):
        result = AnalysisResult(diagnosis="Sunflower (Helianthus annuus)", confidence=90,
                                mode=AnalysisMode.IDENTIFICATION)
        assert "**Sunflower (Helianthus annuus)**" in greeting(result)
        assert "issue" not in greeting(result)


class TestReply:
    def test_reply_with_history(self):
        client = FakeGenerationClient("Wait 7 days after copper spray before harvest.")
        history = [
            ChatMessage("model", "Hi! How can I help?"),
            ChatMessage("user", "Can I still eat the tomatoes?"),
            ChatMessage("model", "Yes, if you wash them."),
        ]
        reply = asyncio.run(AgronomistChat(client, model="chat-model").reply(
            BLIGHT, history, "  How long after spraying?  ",
        ))

        assert reply == "Wait 7 days after copper spray before harvest."
        call = client.calls[0]
        assert call["prompt"] == "How long after spraying?"
        assert call["history"] == [
            ("model", "Hi! How can I help?"),
            ("user", "Can I still eat the tomatoes?"),
            ("model", "Yes, if you wash them."),
        ]
        assert "Early Blight" in call["system"]
        assert call["model"] == "chat-model"
        assert call["temperature"] == CHAT_TEMPERATURE
        assert call["grounded"] is False

    def test_history_capped_to_latest_turns(self):
        client = FakeGenerationClient("ok")
        history = [ChatMessage("user" if i % 2 else "model", f"turn {i}") for i in range(10)]
        asyncio.run(AgronomistChat(client, max_history=4).reply(BLIGHT, history, "next"))
        assert [text for _, text in client.calls[0]["history"]] == ["turn 6", "turn 7", "turn 8", "turn 9"]

    def test_zero_history_sends_none(self):
        client = FakeGenerationClient("ok")
        asyncio.run(AgronomistChat(client, max_history=0).reply(BLIGHT, [ChatMessage("user", "hi")], "next"))
        assert client.calls[0]["history"] == []

    @pytest.mark.parametrize("message", ["", "   "])
    def test_empty_message_rejected(self, message):
        client = FakeGenerationClient()
        with pytest.raises(ValueError):
            asyncio.run(AgronomistChat(client).reply(BLIGHT, [], message))
        assert client.calls == []

    def test_not_a_plant_rejected(self):
        client = FakeGenerationClient()
        result = AnalysisResult(diagnosis=NOT_A_PLANT, confidence=0)
        with pytest.raises(ValueError):
            asyncio.run(AgronomistChat(client).reply(result, [], "What is this?"))
        assert client.calls == []

    def test_generation_error_propagates(self):
        client = FakeGenerationClient(GenerationError("connection reset"))
        with pytest.raises(GenerationError):
            asyncio.run(AgronomistChat(client).reply(BLIGHT, [], "Help?"))

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            ChatMessage("assistant", "hi")
