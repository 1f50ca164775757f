"""
Storage collaborator interface.

Every pipeline stage, the retriever, the chat engine and the challenge
service talk to storage only through this interface. Each method is a
single unit of work; implementations rely on the datastore's own atomicity
for single writes (chunk replacement, response upsert) rather than
application-level locks.
"""

from abc import ABC, abstractmethod
from datetime import date

from licenseprep.models.enums import LicenseType
from licenseprep.services.store.records import (
    ChallengeResponse,
    ChatMessage,
    ChatSession,
    Chunk,
    ChunkDraft,
    DailyChallenge,
    Handout,
    HandoutCounts,
    Question,
    QuestionFilter,
    SearchHit,
    StreakState,
)


class ContentStore(ABC):
    """Abstract persistence for handouts, chunks, questions, challenges and chat."""

    # ── Handouts ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def get_handout(self, handout_id: str) -> Handout | None: ...

    @abstractmethod
    async def save_extracted_text(self, handout_id: str, text: str) -> None:
        """Persist extracted text and flip the handout to processed."""
        ...

    @abstractmethod
    async def mark_processed(self, handout_id: str) -> None: ...

    @abstractmethod
    async def handout_counts(self, handout_id: str) -> HandoutCounts: ...

    # ── Chunks ───────────────────────────────────────────────────────────────

    @abstractmethod
    async def replace_chunks(
        self, handout_id: str, drafts: list[ChunkDraft]
    ) -> list[Chunk]:
        """
        Delete every chunk (and indexed vector) of the handout, then insert
        ``drafts`` with chunk_index = position in the list.
        """
        ...

    @abstractmethod
    async def list_chunks(self, handout_id: str) -> list[Chunk]:
        """All chunks of a handout ordered by chunk_index."""
        ...

    @abstractmethod
    async def get_chunk(self, chunk_id: str) -> Chunk | None: ...

    @abstractmethod
    async def get_neighbor_chunks(self, chunk: Chunk) -> list[Chunk]:
        """Chunks at chunk_index - 1 and + 1 of the same handout."""
        ...

    @abstractmethod
    async def chunks_missing_embeddings(
        self, handout_id: str | None = None, limit: int | None = None
    ) -> list[Chunk]:
        """Chunks without an embedding, optionally for one handout only."""
        ...

    @abstractmethod
    async def save_embeddings(
        self, chunks: list[Chunk], vectors: list[list[float]], model: str
    ) -> None: ...

    @abstractmethod
    async def match_chunks(
        self,
        query_embedding: list[float],
        threshold: float,
        count: int,
        license_filter: LicenseType | None = None,
    ) -> list[SearchHit]:
        """
        Vector search: chunks with similarity >= threshold, best first.
        A license filter matches chunks of that license or of "both".
        """
        ...

    @abstractmethod
    async def search_chunks_text(
        self,
        terms: list[str],
        count: int,
        license_filter: LicenseType | None = None,
    ) -> list[SearchHit]:
        """Full-text search matching any of ``terms``, most relevant first."""
        ...

    # ── Questions ────────────────────────────────────────────────────────────

    @abstractmethod
    async def insert_questions(self, questions: list[Question]) -> list[Question]: ...

    @abstractmethod
    async def get_question(self, question_id: str) -> Question | None: ...

    @abstractmethod
    async def get_questions(self, question_ids: list[str]) -> list[Question]: ...

    @abstractmethod
    async def list_questions(self, filters: QuestionFilter) -> tuple[list[Question], int]:
        """Unverified first, newest first; returns (page, total)."""
        ...

    @abstractmethod
    async def update_question(self, question_id: str, changes: dict) -> Question | None: ...

    @abstractmethod
    async def delete_question(self, question_id: str) -> bool: ...

    @abstractmethod
    async def verified_questions(self, license_type: LicenseType) -> list[Question]:
        """Verified questions for a license track (including "both")."""
        ...

    # ── Daily challenges ─────────────────────────────────────────────────────

    @abstractmethod
    async def get_challenge(self, challenge_id: str) -> DailyChallenge | None: ...

    @abstractmethod
    async def find_challenge(
        self, challenge_date: date, license_type: LicenseType
    ) -> DailyChallenge | None: ...

    @abstractmethod
    async def create_challenge(
        self, challenge_date: date, license_type: LicenseType, question_ids: list[str]
    ) -> DailyChallenge:
        """
        Insert a challenge; if one already exists for (date, license) the
        existing row is returned instead.
        """
        ...

    @abstractmethod
    async def student_responses(self, student_id: str) -> list[ChallengeResponse]: ...

    @abstractmethod
    async def challenge_responses(
        self, student_id: str, challenge_id: str
    ) -> list[ChallengeResponse]: ...

    @abstractmethod
    async def upsert_response(self, response: ChallengeResponse) -> bool:
        """
        Insert or overwrite the response for (student, challenge, question).
        Returns True when a new row was inserted, False on overwrite.
        """
        ...

    @abstractmethod
    async def get_streak(self, student_id: str) -> StreakState | None: ...

    @abstractmethod
    async def save_streak(self, student_id: str, streak: StreakState) -> None: ...

    # ── Chat sessions ────────────────────────────────────────────────────────

    @abstractmethod
    async def create_session(self, student_id: str | None, title: str) -> ChatSession: ...

    @abstractmethod
    async def get_session(self, session_id: str) -> ChatSession | None: ...

    @abstractmethod
    async def save_session_turn(
        self,
        session_id: str,
        messages: list[ChatMessage],
        context_chunk_ids: list[str],
    ) -> None:
        """Replace the message list and overwrite the grounding chunk ids."""
        ...
