"""
Handout processing endpoints (admin).
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from licenseprep.deps import Services, get_services
from licenseprep.routers.errors import domain_errors

router = APIRouter()


class ProcessRequest(BaseModel):
    steps: list[str] | None = None


class ProcessResponse(BaseModel):
    handout_id: str
    title: str
    steps: list[str]
    chunk_count: int | None = None
    embed_count: int | None = None
    question_count: int | None = None


class ProcessingStatusResponse(BaseModel):
    extracted: bool
    chunks: int
    embeddings: int
    questions: int
    is_processed: bool


class EmbedPendingResponse(BaseModel):
    embedded: int


@router.post("/embed-pending", response_model=EmbedPendingResponse)
async def embed_pending(services: Services = Depends(get_services)):
    """Embed chunks that are still missing vectors, across all handouts."""
    with domain_errors():
        embedded = await services.embedder.embed_all_pending()
    return EmbedPendingResponse(embedded=embedded)


@router.post("/{handout_id}/process", response_model=ProcessResponse)
async def process_handout(
    handout_id: str,
    request: ProcessRequest | None = None,
    services: Services = Depends(get_services),
):
    """Run the processing pipeline; step failures are reported, not raised."""
    with domain_errors():
        result = await services.processor.process(
            handout_id, request.steps if request else None
        )
    return ProcessResponse(**vars(result))


@router.get("/{handout_id}/status", response_model=ProcessingStatusResponse)
async def processing_status(handout_id: str, services: Services = Depends(get_services)):
    with domain_errors():
        result = await services.processor.status(handout_id)
    return ProcessingStatusResponse(**vars(result))
