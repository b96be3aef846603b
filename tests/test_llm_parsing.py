"""Tests for model JSON parsing and the single repair round-trip."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from contact_engine.core.llm import (
    REPAIR_SYSTEM_PROMPT,
    ImageInput,
    ModelOutputError,
    OpenRouterChatClient,
    complete_json_with_repair,
    parse_model_json,
)
from contact_engine.core.schemas_extraction import ContactExtraction
from tests.fakes.fake_llm import ScriptedModelClient

VALID_EXTRACTION = {
    "contact": {"fullName": "Jane Doe", "email": "jane@example.com", "tags": "lead, vip"},
    "confidenceByField": {"email": 0.9, "companyName": "high"},
    "evidence": {"email": "Seen in screenshot #1"},
}


class TestParseModelJson:
    def test_plain_object(self) -> None:
        assert parse_model_json('{"a": 1}') == {"a": 1}

    def test_code_fence_and_prose_are_ignored(self) -> None:
        raw = 'Here you go:\n```json\n{"contact": {"fullName": "Jane"}}\n```\nThanks!'
        assert parse_model_json(raw) == {"contact": {"fullName": "Jane"}}

    def test_no_object_raises(self) -> None:
        with pytest.raises(ModelOutputError):
            parse_model_json("I could not find a contact.")

    def test_broken_json_raises_decode_error(self) -> None:
        with pytest.raises(json.JSONDecodeError):
            parse_model_json('{"contact": {"fullName": "Jane",}')


class TestContactExtractionSchema:
    def test_coerces_loose_values(self) -> None:
        extraction = ContactExtraction.model_validate(VALID_EXTRACTION)

        assert extraction.contact.full_name == "Jane Doe"
        assert extraction.contact.tags == ["lead", "vip"]
        # Non-numeric confidences are dropped
        assert extraction.confidence_by_field == {"email": 0.9}

    def test_snake_case_keys_accepted(self) -> None:
        extraction = ContactExtraction.model_validate(
            {"contact": {"full_name": "Jane Doe", "linkedin_url": "https://linkedin.com/in/j"}}
        )
        assert extraction.contact.full_name == "Jane Doe"
        assert extraction.contact.linkedin_url == "https://linkedin.com/in/j"

    def test_null_contact_becomes_empty(self) -> None:
        extraction = ContactExtraction.model_validate({"contact": None})
        assert extraction.contact.full_name is None


@pytest.mark.asyncio
class TestCompleteJsonWithRepair:
    async def test_valid_output_needs_no_repair(self) -> None:
        client = ScriptedModelClient([f"```json\n{json.dumps(VALID_EXTRACTION)}\n```"])

        extraction, raw = await complete_json_with_repair(
            client, schema=ContactExtraction, system="sys", user="user"
        )

        assert extraction.contact.email == "jane@example.com"
        assert raw["contact"]["fullName"] == "Jane Doe"
        assert len(client.calls) == 1

    async def test_one_repair_round_trip(self) -> None:
        client = ScriptedModelClient(["not json at all", VALID_EXTRACTION])

        extraction, _ = await complete_json_with_repair(
            client,
            schema=ContactExtraction,
            system="sys",
            user="user",
            repair_example={"contact": {}},
        )

        assert extraction.contact.full_name == "Jane Doe"
        assert len(client.calls) == 2
        repair_call = client.calls[1]
        assert repair_call["system"] == REPAIR_SYSTEM_PROMPT
        assert "not json at all" in repair_call["user"]
        assert "Schema example" in repair_call["user"]

    async def test_second_failure_raises_without_leaking_output(self) -> None:
        client = ScriptedModelClient(["secret garbage", "still garbage"])

        with pytest.raises(ModelOutputError) as exc_info:
            await complete_json_with_repair(
                client, schema=ContactExtraction, system="sys", user="user"
            )

        assert "garbage" not in str(exc_info.value)
        assert len(client.calls) == 2

    async def test_schema_violation_triggers_repair(self) -> None:
        client = ScriptedModelClient([{"contact": "Jane Doe"}, VALID_EXTRACTION])

        extraction, _ = await complete_json_with_repair(
            client, schema=ContactExtraction, system="sys", user="user"
        )

        assert extraction.contact.full_name == "Jane Doe"
        assert len(client.calls) == 2

    async def test_empty_completion_triggers_repair(self) -> None:
        client = ScriptedModelClient(
            [ModelOutputError("Model returned empty content"), VALID_EXTRACTION]
        )

        extraction, _ = await complete_json_with_repair(
            client, schema=ContactExtraction, system="sys", user="user"
        )

        assert extraction.contact.full_name == "Jane Doe"
        assert client.calls[1]["system"] == REPAIR_SYSTEM_PROMPT

    async def test_images_are_forwarded(self) -> None:
        client = ScriptedModelClient([VALID_EXTRACTION])
        image = ImageInput(mime_type="image/png", data=b"\x89PNG")

        await complete_json_with_repair(
            client, schema=ContactExtraction, system="sys", user="user", images=[image]
        )

        assert client.calls[0]["images"] == [image]


def test_image_input_data_url() -> None:
    image = ImageInput(mime_type="image/png", data=b"abc")
    assert image.to_data_url() == "data:image/png;base64,YWJj"


def make_chat_response(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.mark.asyncio
class TestOpenRouterChatClient:
    async def test_empty_content_is_model_output_error(self, settings) -> None:
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(return_value=make_chat_response(""))

        with pytest.raises(ModelOutputError):
            await OpenRouterChatClient(settings, client=sdk).complete(system="sys", user="user")

    async def test_empty_first_completion_is_repaired(self, settings) -> None:
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(
            side_effect=[
                make_chat_response(None),
                make_chat_response(json.dumps(VALID_EXTRACTION)),
            ]
        )

        extraction, _ = await complete_json_with_repair(
            OpenRouterChatClient(settings, client=sdk),
            schema=ContactExtraction,
            system="sys",
            user="user",
        )

        assert extraction.contact.email == "jane@example.com"
        assert sdk.chat.completions.create.await_count == 2
        repair_request = sdk.chat.completions.create.await_args_list[1].kwargs
        assert repair_request["messages"][0]["content"] == REPAIR_SYSTEM_PROMPT
