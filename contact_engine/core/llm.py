"""Model chat client and lenient JSON parsing with a single repair round-trip."""

import base64
import json
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from contact_engine.core.config import Settings
from contact_engine.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


REPAIR_SYSTEM_PROMPT = "Return ONLY valid JSON. No markdown."

REPAIR_USER_PROMPT = """Fix this into valid JSON that matches the required schema. Return JSON only.

{example}Invalid output:

{previous_output}"""


class ModelOutputError(ValueError):
    """Model output could not be parsed into the expected schema."""


@dataclass
class ImageInput:
    """An image attachment sent to the model as a data URL."""

    mime_type: str
    data: bytes

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


class ModelClient(Protocol):
    """Chat-completion collaborator consumed by the extraction passes."""

    async def complete(
        self,
        *,
        system: str,
        user: str,
        images: list[ImageInput] | None = None,
        model: str | None = None,
        temperature: float = 0,
        response_schema: dict[str, Any] | None = None,
        max_tokens: int | None = None,
    ) -> str: ...


class OpenRouterChatClient:
    """ModelClient over an OpenAI-compatible chat-completions API (OpenRouter)."""

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None):
        self.settings = settings
        self.default_model = settings.EXTRACTION_MODEL
        self._client = client or AsyncOpenAI(
            api_key=settings.OPENROUTER_API_KEY,
            base_url=settings.OPENROUTER_BASE_URL,
            timeout=settings.MODEL_TIMEOUT_SECONDS,
            default_headers={
                "HTTP-Referer": settings.OPENROUTER_REFERER,
                "X-Title": settings.OPENROUTER_APP_TITLE,
            },
        )

    async def complete(
        self,
        *,
        system: str,
        user: str,
        images: list[ImageInput] | None = None,
        model: str | None = None,
        temperature: float = 0,
        response_schema: dict[str, Any] | None = None,
        max_tokens: int | None = None,
    ) -> str:
        if images:
            user_content: Any = [{"type": "text", "text": user}] + [
                {"type": "image_url", "image_url": {"url": image.to_data_url()}}
                for image in images
            ]
        else:
            user_content = user

        request: dict[str, Any] = {
            "model": model or self.default_model,
            "temperature": temperature,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user_content},
            ],
        }
        if max_tokens:
            request["max_tokens"] = max_tokens
        if response_schema:
            request["response_format"] = {"type": "json_schema", "json_schema": response_schema}

        response = await self._client.chat.completions.create(**request)
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ModelOutputError("Model returned empty content")
        return content


def parse_model_json(raw_output: str) -> Any:
    """
    Decode the JSON object embedded in a model completion.

    Models wrap JSON in prose or code fences, so only the slice between the
    first "{" and the last "}" is decoded.

    Raises:
        ModelOutputError: If no object is present
        json.JSONDecodeError: If the slice is not valid JSON
    """
    trimmed = (raw_output or "").strip()
    first = trimmed.find("{")
    last = trimmed.rfind("}")
    if first == -1 or last == -1 or last <= first:
        raise ModelOutputError("Model did not return JSON")
    return json.loads(trimmed[first : last + 1])


def parse_and_validate(raw_output: str, schema: type[T]) -> tuple[T, Any]:
    """Parse a completion and validate it, returning (model, raw_json)."""
    parsed = parse_model_json(raw_output)
    if not isinstance(parsed, dict):
        raise ModelOutputError("Model JSON is not an object")
    return schema.model_validate(parsed), parsed


async def complete_json_with_repair(
    model_client: ModelClient,
    *,
    schema: type[T],
    system: str,
    user: str,
    images: list[ImageInput] | None = None,
    model: str | None = None,
    response_schema: dict[str, Any] | None = None,
    repair_example: dict[str, Any] | None = None,
    max_tokens: int | None = None,
    context: dict[str, Any] | None = None,
) -> tuple[T, Any]:
    """
    Call the model and validate its JSON, with exactly one repair round-trip.

    Args:
        model_client: Chat collaborator
        schema: Pydantic model the JSON must validate against
        system: System instruction
        user: User message
        images: Optional image attachments
        model: Optional model override
        response_schema: Optional strict structured-output JSON schema
        repair_example: Optional example object shown in the repair prompt
        max_tokens: Optional completion limit
        context: Extra log fields (e.g. contact_id)

    Returns:
        Tuple of (validated model, raw decoded JSON)

    Raises:
        ModelOutputError: If the repaired output still does not validate
    """
    log_extra = context or {}

    raw_output = ""
    try:
        raw_output = await model_client.complete(
            system=system,
            user=user,
            images=images,
            model=model,
            temperature=0,
            response_schema=response_schema,
            max_tokens=max_tokens,
        )
        return parse_and_validate(raw_output, schema)
    except (json.JSONDecodeError, ValidationError, ModelOutputError) as e:
        logger.warning(
            f"{schema.__name__} output failed validation, attempting repair: {e}",
            extra=log_extra,
        )

    example = ""
    if repair_example is not None:
        example = f"Schema example:\n{json.dumps(repair_example, indent=2)}\n\n"

    try:
        repaired = await model_client.complete(
            system=REPAIR_SYSTEM_PROMPT,
            user=REPAIR_USER_PROMPT.format(example=example, previous_output=raw_output),
            model=model,
            temperature=0,
            max_tokens=max_tokens,
        )
        result = parse_and_validate(repaired, schema)
        logger.info(f"{schema.__name__} repair succeeded", extra=log_extra)
        return result
    except (json.JSONDecodeError, ValidationError, ModelOutputError) as e:
        logger.error(f"{schema.__name__} repair also failed: {e}", extra=log_extra)
        # Do NOT leak raw model output in exception
        raise ModelOutputError(
            f"Model output could not be validated to {schema.__name__}"
        ) from e
