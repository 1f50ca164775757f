"""
Application wiring.

Every component receives its collaborators explicitly; this module is the
only place that turns Settings into providers, stores and services.
"""

from dataclasses import dataclass

from fastapi import Request

from licenseprep.core.config import Settings
from licenseprep.services.challenges import ChallengeService
from licenseprep.services.embeddings.base import EmbeddingProvider
from licenseprep.services.embeddings.registry import create_embedding_provider
from licenseprep.services.files import FileStorage, LocalFileStorage
from licenseprep.services.llm.orchestrator import LLMOrchestrator, create_orchestrator
from licenseprep.services.pipeline.chunking import Chunker
from licenseprep.services.pipeline.embedding import Embedder
from licenseprep.services.pipeline.extraction import Extractor
from licenseprep.services.pipeline.processor import HandoutProcessor
from licenseprep.services.pipeline.questions import QuestionGenerator
from licenseprep.services.question_bank import QuestionBank
from licenseprep.services.rag.chat import ChatEngine
from licenseprep.services.rag.retriever import HybridRetriever
from licenseprep.services.store.base import ContentStore
from licenseprep.services.throttle import FixedDelayThrottle, NoThrottle, Throttle


@dataclass
class Services:
    settings: Settings
    store: ContentStore
    files: FileStorage
    llm: LLMOrchestrator | None
    embedder: Embedder
    extractor: Extractor
    chunker: Chunker
    generator: QuestionGenerator
    processor: HandoutProcessor
    retriever: HybridRetriever
    chat: ChatEngine
    challenges: ChallengeService
    question_bank: QuestionBank


_UNSET = object()


def _delay_throttle(delay: float) -> Throttle:
    return FixedDelayThrottle(delay) if delay > 0 else NoThrottle()


def build_services(
    settings: Settings,
    store: ContentStore,
    files: FileStorage | None = None,
    llm: LLMOrchestrator | None = _UNSET,
    embedding_provider: EmbeddingProvider | None = _UNSET,
    embed_throttle: Throttle | None = None,
    generate_throttle: Throttle | None = None,
) -> Services:
    """
    Build all components from settings.

    Collaborators passed explicitly (including an explicit None for the
    LLM or embedding provider) take precedence over the ones settings
    would create.
    """
    if llm is _UNSET:
        llm = create_orchestrator(settings)
    if embedding_provider is _UNSET:
        embedding_provider = create_embedding_provider(settings)
    files = files or LocalFileStorage(settings.upload_dir, max_size=settings.max_upload_size)

    embedder = Embedder(
        store,
        embedding_provider,
        batch_size=settings.embedding_batch_size,
        throttle=embed_throttle or _delay_throttle(settings.embedding_batch_delay),
    )
    extractor = Extractor(
        store,
        files,
        llm,
        min_pdf_text_chars=settings.min_pdf_text_chars,
        structure_max_chars=settings.structure_max_chars,
    )
    chunker = Chunker(
        store,
        extractor,
        chunk_size=settings.chunk_size_tokens,
        overlap=settings.chunk_overlap_tokens,
    )
    generator = QuestionGenerator(
        store,
        llm,
        throttle=generate_throttle or _delay_throttle(settings.question_chunk_delay),
    )
    retriever = HybridRetriever(
        store,
        embedder,
        match_threshold=settings.match_threshold,
        candidates=settings.search_candidates,
        limit=settings.search_limit,
        rrf_k=settings.rrf_k,
        min_term_length=settings.min_term_length,
    )

    return Services(
        settings=settings,
        store=store,
        files=files,
        llm=llm,
        embedder=embedder,
        extractor=extractor,
        chunker=chunker,
        generator=generator,
        processor=HandoutProcessor(store, extractor, chunker, embedder, generator),
        retriever=retriever,
        chat=ChatEngine(store, retriever, llm, history_window=settings.chat_history_window),
        challenges=ChallengeService(
            store,
            questions_per_challenge=settings.questions_per_challenge,
            difficulty_mix=settings.difficulty_mix,
        ),
        question_bank=QuestionBank(store),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
