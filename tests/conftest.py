"""Pytest configuration and fixtures."""

import os

import pytest

from tests.fakes.fake_llm import FakeBatchResearchClient, ScriptedModelClient
from tests.fakes.fake_stores import (
    OWNER_ID,
    InMemoryBlobStore,
    InMemoryCaptureStore,
    InMemoryContactStore,
    InMemoryWorkspaceStore,
)


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["OPENROUTER_API_KEY"] = "test-openrouter-key"
    os.environ["PERPLEXITY_API_KEY"] = "test-perplexity-key"
    os.environ["ENGINE_ENV"] = "test"


@pytest.fixture
def settings():
    from contact_engine.core.config import Settings

    return Settings()


@pytest.fixture
def model_client() -> ScriptedModelClient:
    return ScriptedModelClient()


@pytest.fixture
def contacts() -> InMemoryContactStore:
    return InMemoryContactStore()


@pytest.fixture
def captures() -> InMemoryCaptureStore:
    return InMemoryCaptureStore()


@pytest.fixture
def blobs() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def workspaces() -> InMemoryWorkspaceStore:
    return InMemoryWorkspaceStore({"ws-1": [OWNER_ID, "teammate-1"]})


@pytest.fixture
def services(settings, model_client, contacts, captures, blobs, workspaces):
    """Engine collaborators wired to in-memory fakes (research set per test)."""
    from contact_engine.core.schemas_research import ResearchResult
    from contact_engine.core.services import EngineServices

    return EngineServices(
        settings=settings,
        model_client=model_client,
        research_client=FakeBatchResearchClient(ResearchResult(content="")),
        contacts=contacts,
        captures=captures,
        blobs=blobs,
        workspaces=workspaces,
    )
