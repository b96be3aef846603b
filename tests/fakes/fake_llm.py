"""Scripted model and research clients."""

import json
from collections.abc import AsyncIterator
from typing import Any

from contact_engine.core.schemas_research import ResearchResult


class ScriptedModelClient:
    """ModelClient returning queued responses in order and recording every call."""

    def __init__(self, responses: list[str | dict[str, Any] | Exception] | None = None):
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []

    def queue(self, response: str | dict[str, Any] | Exception) -> None:
        self.responses.append(response)

    async def complete(
        self,
        *,
        system: str,
        user: str,
        images=None,
        model=None,
        temperature: float = 0,
        response_schema=None,
        max_tokens=None,
    ) -> str:
        self.calls.append(
            {
                "system": system,
                "user": user,
                "images": images or [],
                "model": model,
                "response_schema": response_schema,
                "max_tokens": max_tokens,
            }
        )
        if not self.responses:
            raise AssertionError("ScriptedModelClient ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return response


class FakeBatchResearchClient:
    """ResearchClient with only the batch backend."""

    def __init__(self, result: ResearchResult | Exception):
        self.result = result
        self.briefs: list[str] = []

    async def research(self, brief: str) -> ResearchResult:
        self.briefs.append(brief)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeStreamingResearchClient(FakeBatchResearchClient):
    """ResearchClient that also streams raw chunks; fail_after raises mid-stream."""

    def __init__(
        self,
        chunks: list[dict[str, Any]],
        fail_after: int | None = None,
        result: ResearchResult | Exception | None = None,
    ):
        super().__init__(result or RuntimeError("batch backend should not be used"))
        self.chunks = chunks
        self.fail_after = fail_after

    async def stream_research(self, brief: str) -> AsyncIterator[dict[str, Any]]:
        self.briefs.append(brief)
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise RuntimeError("research stream dropped")
            yield chunk


def reasoning_chunk(*thoughts: str) -> dict[str, Any]:
    return {
        "object": "chat.reasoning",
        "choices": [{"delta": {"reasoning_steps": [{"thought": t} for t in thoughts]}}],
    }


def reasoning_done_chunk(
    search_results: list[dict[str, Any]] | None = None,
    images: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    return {
        "object": "chat.reasoning.done",
        "choices": [{"delta": {}}],
        "search_results": search_results or [],
        "images": images or [],
    }


def content_chunk(text: str) -> dict[str, Any]:
    return {"object": "chat.completion.chunk", "choices": [{"delta": {"content": text}}]}


def completion_done_chunk(
    content: str,
    search_results: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    chunk: dict[str, Any] = {
        "object": "chat.completion.done",
        "choices": [{"message": {"content": content}, "delta": {}}],
    }
    if search_results is not None:
        chunk["search_results"] = search_results
    return chunk
