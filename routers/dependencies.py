from fastapi import HTTPException, Request

from services.enrichment_service import EnrichmentOrchestrator
from services.llm_client import CompletionClient


def get_orchestrator(request: Request) -> EnrichmentOrchestrator:
    orchestrator = getattr(request.app.state, "enrichment", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Enrichment is not configured")
    return orchestrator


def get_completion_client(request: Request) -> CompletionClient:
    client = getattr(request.app.state, "completion_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Completion client is not configured")
    return client
