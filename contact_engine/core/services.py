"""Collaborator bundle shared by the capture graph, ingest and the API."""

from dataclasses import dataclass

from contact_engine.agents.deep_research import DeepResearchOrchestrator
from contact_engine.core.config import Settings
from contact_engine.core.llm import ModelClient, OpenRouterChatClient
from contact_engine.db.captures import CaptureStore, SupabaseCaptureStore
from contact_engine.db.contacts import ContactStore, SupabaseContactStore
from contact_engine.db.storage import BlobStore, SupabaseBlobStore
from contact_engine.db.workspaces import SupabaseWorkspaceStore, WorkspaceStore
from contact_engine.services.perplexity import PerplexityResearchClient, ResearchClient


@dataclass
class EngineServices:
    """Everything the pipeline talks to outside the process."""

    settings: Settings
    model_client: ModelClient
    research_client: ResearchClient
    contacts: ContactStore
    captures: CaptureStore
    blobs: BlobStore
    workspaces: WorkspaceStore

    def orchestrator(self) -> DeepResearchOrchestrator:
        return DeepResearchOrchestrator(
            model_client=self.model_client,
            research_client=self.research_client,
            contacts=self.contacts,
            blobs=self.blobs,
            settings=self.settings,
        )


def build_services(settings: Settings) -> EngineServices:
    """Production collaborators: OpenRouter, Perplexity and Supabase."""
    return EngineServices(
        settings=settings,
        model_client=OpenRouterChatClient(settings),
        research_client=PerplexityResearchClient(settings),
        contacts=SupabaseContactStore(table=settings.CONTACTS_TABLE),
        captures=SupabaseCaptureStore(table=settings.CAPTURES_TABLE),
        blobs=SupabaseBlobStore(bucket=settings.STORAGE_BUCKET),
        workspaces=SupabaseWorkspaceStore(table=settings.WORKSPACES_TABLE),
    )
