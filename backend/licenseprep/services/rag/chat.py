"""
RAG Chat Engine

One chat turn:
1. Retrieve relevant chunks with the hybrid retriever
2. Format them into a numbered context block ([Source N: title - section])
3. Load the last N messages of the session, if any
4. Send history + one user turn carrying context and question
5. Persist the turn and this turn's grounding chunk ids on the session
6. Return the answer with its sources for citation rendering

Without a configured language model, or when the model call fails, the
engine answers with an explanatory message instead of raising.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from licenseprep.core.errors import InvalidInputError, SessionNotFoundError, UpstreamError
from licenseprep.models.enums import ChatRole, LicenseType
from licenseprep.services.llm.orchestrator import LLMOrchestrator
from licenseprep.services.pipeline.questions import license_label
from licenseprep.services.rag.retriever import HybridRetriever
from licenseprep.services.store.base import ContentStore
from licenseprep.services.store.records import ChatMessage, ChatSession, SearchHit

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TITLE = "New Chat"

NOT_CONFIGURED_MESSAGE = "Chat is not available. Please configure the OPENAI_API_KEY."
UNAVAILABLE_MESSAGE = (
    "The study assistant is temporarily unavailable. Please try again in a moment."
)

SYSTEM_PROMPT = """You are a helpful study assistant for California contractor license exam preparation.
You help students understand building codes, licensing requirements, and construction standards.

Your role is to:
- Answer questions accurately based on the provided study materials
- Explain concepts in clear, practical terms
- Reference specific codes, regulations, and section numbers when available
- Help students prepare for License A (General Engineering) and License B (General Building) exams

Guidelines:
- Always cite your sources using [Source N] format when referencing the provided context
- If the context doesn't contain enough information, say so clearly
- When discussing codes, be specific about which code (CBC, NEC, etc.) and section numbers
- For safety-related topics, emphasize the importance of proper training and compliance
- If asked about something outside contractor licensing, politely redirect

Student's license track: {license_label}"""


@dataclass
class ChatSource:
    title: str
    section: str | None
    chunk_id: str


@dataclass
class ChatReply:
    response: str
    sources: list[ChatSource] = field(default_factory=list)


def format_context(hits: list[SearchHit]) -> str:
    return "\n\n---\n\n".join(
        f"[Source {i}: {hit.handout_title} - {hit.metadata.get('section_title') or 'General'}]\n"
        f"{hit.content}"
        for i, hit in enumerate(hits, start=1)
    )


def build_user_turn(message: str, context_block: str) -> str:
    if not context_block:
        return message
    return (
        f"Context from study materials:\n{context_block}\n\n"
        f"Student question: {message}\n\n"
        "Provide a helpful answer based on the context above. "
        "Cite sources using [Source N] format."
    )


class ChatEngine:
    def __init__(
        self,
        store: ContentStore,
        retriever: HybridRetriever,
        llm: LLMOrchestrator | None,
        history_window: int = 10,
    ):
        self.store = store
        self.retriever = retriever
        self.llm = llm
        self.history_window = history_window

    async def chat(
        self,
        message: str,
        session_id: str | None = None,
        license_type: LicenseType = LicenseType.BOTH,
    ) -> ChatReply:
        if not message or not message.strip():
            raise InvalidInputError("Message is required")

        session = None
        if session_id:
            session = await self.store.get_session(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)

        if self.llm is None:
            return ChatReply(response=NOT_CONFIGURED_MESSAGE)

        hits = await self.retriever.search(message, license_type)
        history = []
        if session and self.history_window > 0:
            history = session.messages[-self.history_window :]

        messages = [m.to_prompt() for m in history]
        messages.append({"role": "user", "content": build_user_turn(message, format_context(hits))})

        try:
            answer = await self.llm.complete(
                SYSTEM_PROMPT.format(license_label=license_label(license_type)),
                messages,
                max_output_tokens=1024,
                temperature=0.3,
            )
        except UpstreamError as e:
            logger.warning("[Chat] Language model call failed: %s", e)
            return ChatReply(response=UNAVAILABLE_MESSAGE)

        if session is not None:
            now = datetime.utcnow()
            await self.store.save_session_turn(
                session.id,
                session.messages
                + [
                    ChatMessage(role=ChatRole.USER, content=message, timestamp=now),
                    ChatMessage(role=ChatRole.ASSISTANT, content=answer, timestamp=now),
                ],
                [hit.chunk_id for hit in hits],
            )

        logger.info("[Chat] Answered with %d sources (session=%s)", len(hits), session_id)
        return ChatReply(
            response=answer,
            sources=[
                ChatSource(
                    title=hit.handout_title,
                    section=hit.metadata.get("section_title"),
                    chunk_id=hit.chunk_id,
                )
                for hit in hits
            ],
        )

    async def create_session(
        self, student_id: str | None = None, title: str | None = None
    ) -> ChatSession:
        return await self.store.create_session(student_id, title or DEFAULT_SESSION_TITLE)

    async def get_session(self, session_id: str) -> ChatSession:
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session
