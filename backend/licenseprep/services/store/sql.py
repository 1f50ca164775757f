"""
PostgreSQL implementation of the storage collaborator.

Rows live in Postgres (SQLAlchemy async + asyncpg); chunk vectors live in
the Chroma index. Every method opens its own session so independent reads
(e.g. the retriever's two strategies) can run concurrently.
"""

import logging
import uuid
from datetime import date, datetime

from sqlalchemy import delete, func, literal_column, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from licenseprep.models.chat_session import ChatSession as ChatSessionRow
from licenseprep.models.challenge import (
    ChallengeResponse as ChallengeResponseRow,
    DailyChallenge as DailyChallengeRow,
)
from licenseprep.models.chunk import HandoutChunk
from licenseprep.models.enums import ChatRole, LicenseType
from licenseprep.models.handout import Handout as HandoutRow
from licenseprep.models.question import Question as QuestionRow
from licenseprep.models.student import Student
from licenseprep.services.store.base import ContentStore
from licenseprep.services.store.records import (
    ChallengeResponse,
    ChatMessage,
    ChatSession,
    Chunk,
    ChunkDraft,
    DailyChallenge,
    EDITABLE_QUESTION_FIELDS,
    Handout,
    HandoutCounts,
    Question,
    QuestionFilter,
    SearchHit,
    StreakState,
)
from licenseprep.services.store.vector_index import ChromaVectorIndex

logger = logging.getLogger(__name__)

VERIFICATION_FIELDS = ("is_verified", "verified_by", "verified_at")


def _uuid(value: str | None) -> uuid.UUID | None:
    """Parse an id; malformed ids behave like missing records."""
    if value is None:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _str(value: uuid.UUID | None) -> str | None:
    return str(value) if value is not None else None


# ── Row → record mapping ─────────────────────────────────────────────────────

def _handout(row: HandoutRow) -> Handout:
    return Handout(
        id=str(row.id),
        title=row.title,
        file_path=row.file_path,
        file_type=row.file_type,
        license_type=row.license_type,
        extracted_text=row.extracted_text,
        is_processed=row.is_processed,
        processed_at=row.processed_at,
    )


def _chunk(row: HandoutChunk) -> Chunk:
    return Chunk(
        id=str(row.id),
        handout_id=str(row.handout_id),
        chunk_index=row.chunk_index,
        content=row.content,
        token_count=row.token_count,
        metadata=dict(row.chunk_metadata or {}),
        embedding_model=row.embedding_model,
        embedded_at=row.embedded_at,
    )


def _question(row: QuestionRow) -> Question:
    return Question(
        id=str(row.id),
        handout_id=_str(row.handout_id),
        source_chunk_id=_str(row.source_chunk_id),
        question_text=row.question_text,
        options=list(row.options),
        correct_answer=row.correct_answer,
        explanation=row.explanation,
        difficulty=row.difficulty,
        license_type=row.license_type,
        topic_tags=list(row.topic_tags or []),
        is_ai_generated=row.is_ai_generated,
        is_verified=row.is_verified,
        verified_by=row.verified_by,
        verified_at=row.verified_at,
        created_at=row.created_at,
    )


def _challenge(row: DailyChallengeRow) -> DailyChallenge:
    return DailyChallenge(
        id=str(row.id),
        challenge_date=row.challenge_date,
        license_type=row.license_type,
        question_ids=[str(q) for q in row.question_ids],
    )


def _response(row: ChallengeResponseRow) -> ChallengeResponse:
    return ChallengeResponse(
        student_id=str(row.student_id),
        challenge_id=str(row.challenge_id),
        question_id=str(row.question_id),
        selected_answer=row.selected_answer,
        is_correct=row.is_correct,
        answered_at=row.answered_at,
    )


def _session(row: ChatSessionRow) -> ChatSession:
    messages = []
    for m in row.messages or []:
        timestamp = m.get("timestamp")
        messages.append(
            ChatMessage(
                role=ChatRole(m["role"]),
                content=m["content"],
                timestamp=datetime.fromisoformat(timestamp) if timestamp else None,
            )
        )
    return ChatSession(
        id=str(row.id),
        student_id=_str(row.student_id),
        title=row.title,
        messages=messages,
        context_chunks=[str(c) for c in row.context_chunks or []],
    )


class SQLContentStore(ContentStore):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        vector_index: ChromaVectorIndex,
    ):
        self.session_factory = session_factory
        self.vector_index = vector_index

    # ── Handouts ─────────────────────────────────────────────────────────────

    async def get_handout(self, handout_id: str) -> Handout | None:
        key = _uuid(handout_id)
        if key is None:
            return None
        async with self.session_factory() as db:
            row = await db.get(HandoutRow, key)
            return _handout(row) if row else None

    async def save_extracted_text(self, handout_id: str, text: str) -> None:
        async with self.session_factory() as db:
            await db.execute(
                update(HandoutRow)
                .where(HandoutRow.id == _uuid(handout_id))
                .values(
                    extracted_text=text,
                    is_processed=True,
                    processed_at=datetime.utcnow(),
                )
            )
            await db.commit()

    async def mark_processed(self, handout_id: str) -> None:
        async with self.session_factory() as db:
            await db.execute(
                update(HandoutRow)
                .where(HandoutRow.id == _uuid(handout_id))
                .values(is_processed=True, processed_at=datetime.utcnow())
            )
            await db.commit()

    async def handout_counts(self, handout_id: str) -> HandoutCounts:
        key = _uuid(handout_id)
        async with self.session_factory() as db:
            chunks = await db.scalar(
                select(func.count()).where(HandoutChunk.handout_id == key)
            )
            embedded = await db.scalar(
                select(func.count()).where(
                    HandoutChunk.handout_id == key,
                    HandoutChunk.embedded_at.is_not(None),
                )
            )
            questions = await db.scalar(
                select(func.count()).where(QuestionRow.handout_id == key)
            )
        return HandoutCounts(
            chunks=chunks or 0, embedded_chunks=embedded or 0, questions=questions or 0
        )

    # ── Chunks ───────────────────────────────────────────────────────────────

    async def replace_chunks(
        self, handout_id: str, drafts: list[ChunkDraft]
    ) -> list[Chunk]:
        key = _uuid(handout_id)
        async with self.session_factory() as db:
            await db.execute(delete(HandoutChunk).where(HandoutChunk.handout_id == key))
            rows = [
                HandoutChunk(
                    handout_id=key,
                    chunk_index=index,
                    content=draft.content,
                    token_count=draft.token_count,
                    chunk_metadata=draft.metadata(),
                )
                for index, draft in enumerate(drafts)
            ]
            db.add_all(rows)
            await db.commit()
        # Stale vectors would otherwise keep matching deleted chunk ids
        await self.vector_index.delete_handout(str(key))
        return [_chunk(row) for row in rows]

    async def list_chunks(self, handout_id: str) -> list[Chunk]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(HandoutChunk)
                .where(HandoutChunk.handout_id == _uuid(handout_id))
                .order_by(HandoutChunk.chunk_index)
            )
            return [_chunk(row) for row in result.scalars().all()]

    async def get_chunk(self, chunk_id: str) -> Chunk | None:
        key = _uuid(chunk_id)
        if key is None:
            return None
        async with self.session_factory() as db:
            row = await db.get(HandoutChunk, key)
            return _chunk(row) if row else None

    async def get_neighbor_chunks(self, chunk: Chunk) -> list[Chunk]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(HandoutChunk)
                .where(
                    HandoutChunk.handout_id == _uuid(chunk.handout_id),
                    HandoutChunk.chunk_index.in_(
                        [chunk.chunk_index - 1, chunk.chunk_index + 1]
                    ),
                )
                .order_by(HandoutChunk.chunk_index)
            )
            return [_chunk(row) for row in result.scalars().all()]

    async def chunks_missing_embeddings(
        self, handout_id: str | None = None, limit: int | None = None
    ) -> list[Chunk]:
        stmt = (
            select(HandoutChunk)
            .where(HandoutChunk.embedded_at.is_(None))
            .order_by(HandoutChunk.handout_id, HandoutChunk.chunk_index)
        )
        if handout_id is not None:
            stmt = stmt.where(HandoutChunk.handout_id == _uuid(handout_id))
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return [_chunk(row) for row in result.scalars().all()]

    async def save_embeddings(
        self, chunks: list[Chunk], vectors: list[list[float]], model: str
    ) -> None:
        if not chunks:
            return
        async with self.session_factory() as db:
            result = await db.execute(
                select(HandoutRow.id, HandoutRow.license_type).where(
                    HandoutRow.id.in_(list({_uuid(c.handout_id) for c in chunks}))
                )
            )
            licenses = {str(hid): lic for hid, lic in result.all()}

            await self.vector_index.upsert(
                ids=[c.id for c in chunks],
                vectors=vectors,
                metadatas=[
                    {
                        "handout_id": c.handout_id,
                        "license_type": licenses.get(c.handout_id, LicenseType.BOTH).value,
                    }
                    for c in chunks
                ],
            )
            await db.execute(
                update(HandoutChunk)
                .where(HandoutChunk.id.in_([_uuid(c.id) for c in chunks]))
                .values(embedding_model=model, embedded_at=datetime.utcnow())
            )
            await db.commit()

    async def _hits_for(
        self, db: AsyncSession, scored_ids: list[tuple[uuid.UUID, float]]
    ) -> list[SearchHit]:
        if not scored_ids:
            return []
        result = await db.execute(
            select(HandoutChunk, HandoutRow.title)
            .join(HandoutRow, HandoutRow.id == HandoutChunk.handout_id)
            .where(HandoutChunk.id.in_([cid for cid, _ in scored_ids]))
        )
        rows = {row.id: (row, title) for row, title in result.all()}
        hits = []
        for cid, score in scored_ids:
            if cid not in rows:
                # Vector outlived its row (deleted handout); skip it
                continue
            row, title = rows[cid]
            hits.append(
                SearchHit(
                    chunk_id=str(row.id),
                    handout_id=str(row.handout_id),
                    handout_title=title,
                    content=row.content,
                    metadata=dict(row.chunk_metadata or {}),
                    score=score,
                )
            )
        return hits

    async def match_chunks(
        self,
        query_embedding: list[float],
        threshold: float,
        count: int,
        license_filter: LicenseType | None = None,
    ) -> list[SearchHit]:
        matches = await self.vector_index.query(query_embedding, count, license_filter)
        scored = [
            (_uuid(chunk_id), similarity)
            for chunk_id, similarity in matches
            if similarity >= threshold
        ]
        async with self.session_factory() as db:
            return await self._hits_for(db, scored)

    async def search_chunks_text(
        self,
        terms: list[str],
        count: int,
        license_filter: LicenseType | None = None,
    ) -> list[SearchHit]:
        if not terms:
            return []
        ts_query = func.to_tsquery("english", " | ".join(terms))
        ts_vector = func.to_tsvector("english", HandoutChunk.content)
        rank = func.ts_rank(ts_vector, ts_query).label("rank")

        stmt = (
            select(HandoutChunk.id, rank)
            .join(HandoutRow, HandoutRow.id == HandoutChunk.handout_id)
            .where(ts_vector.op("@@")(ts_query))
            .order_by(rank.desc())
            .limit(count)
        )
        if license_filter is not None:
            stmt = stmt.where(
                HandoutRow.license_type.in_([license_filter, LicenseType.BOTH])
            )

        async with self.session_factory() as db:
            result = await db.execute(stmt)
            scored = [(cid, float(score)) for cid, score in result.all()]
            return await self._hits_for(db, scored)

    # ── Questions ────────────────────────────────────────────────────────────

    async def insert_questions(self, questions: list[Question]) -> list[Question]:
        rows = [
            QuestionRow(
                handout_id=_uuid(q.handout_id),
                source_chunk_id=_uuid(q.source_chunk_id),
                question_text=q.question_text,
                options=q.options,
                correct_answer=q.correct_answer,
                explanation=q.explanation,
                difficulty=q.difficulty,
                license_type=q.license_type,
                topic_tags=q.topic_tags,
                is_ai_generated=q.is_ai_generated,
                is_verified=q.is_verified,
                verified_by=q.verified_by,
                verified_at=q.verified_at,
            )
            for q in questions
        ]
        async with self.session_factory() as db:
            db.add_all(rows)
            await db.commit()
        return [_question(row) for row in rows]

    async def get_question(self, question_id: str) -> Question | None:
        key = _uuid(question_id)
        if key is None:
            return None
        async with self.session_factory() as db:
            row = await db.get(QuestionRow, key)
            return _question(row) if row else None

    async def get_questions(self, question_ids: list[str]) -> list[Question]:
        keys = [k for k in (_uuid(q) for q in question_ids) if k is not None]
        if not keys:
            return []
        async with self.session_factory() as db:
            result = await db.execute(select(QuestionRow).where(QuestionRow.id.in_(keys)))
            by_id = {str(row.id): _question(row) for row in result.scalars().all()}
        return [by_id[q] for q in question_ids if q in by_id]

    async def list_questions(self, filters: QuestionFilter) -> tuple[list[Question], int]:
        stmt = select(QuestionRow)
        if filters.status == "verified":
            stmt = stmt.where(QuestionRow.is_verified.is_(True))
        elif filters.status == "unverified":
            stmt = stmt.where(QuestionRow.is_verified.is_(False))
        if filters.difficulty is not None:
            stmt = stmt.where(QuestionRow.difficulty == filters.difficulty)
        if filters.license_type is not None:
            stmt = stmt.where(QuestionRow.license_type == filters.license_type)
        if filters.search:
            stmt = stmt.where(QuestionRow.question_text.ilike(f"%{filters.search}%"))

        async with self.session_factory() as db:
            total = await db.scalar(select(func.count()).select_from(stmt.subquery()))
            result = await db.execute(
                stmt.order_by(QuestionRow.is_verified.asc(), QuestionRow.created_at.desc())
                .offset((filters.page - 1) * filters.page_size)
                .limit(filters.page_size)
            )
            return [_question(row) for row in result.scalars().all()], total or 0

    async def update_question(self, question_id: str, changes: dict) -> Question | None:
        key = _uuid(question_id)
        if key is None:
            return None
        async with self.session_factory() as db:
            row = await db.get(QuestionRow, key)
            if row is None:
                return None
            for name, value in changes.items():
                if name in EDITABLE_QUESTION_FIELDS or name in VERIFICATION_FIELDS:
                    setattr(row, name, value)
            await db.commit()
            return _question(row)

    async def delete_question(self, question_id: str) -> bool:
        key = _uuid(question_id)
        if key is None:
            return False
        async with self.session_factory() as db:
            result = await db.execute(delete(QuestionRow).where(QuestionRow.id == key))
            await db.commit()
            return result.rowcount > 0

    async def verified_questions(self, license_type: LicenseType) -> list[Question]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(QuestionRow)
                .where(
                    QuestionRow.is_verified.is_(True),
                    QuestionRow.license_type.in_([license_type, LicenseType.BOTH]),
                )
                .order_by(QuestionRow.created_at)
            )
            return [_question(row) for row in result.scalars().all()]

    # ── Daily challenges ─────────────────────────────────────────────────────

    async def get_challenge(self, challenge_id: str) -> DailyChallenge | None:
        key = _uuid(challenge_id)
        if key is None:
            return None
        async with self.session_factory() as db:
            row = await db.get(DailyChallengeRow, key)
            return _challenge(row) if row else None

    async def find_challenge(
        self, challenge_date: date, license_type: LicenseType
    ) -> DailyChallenge | None:
        async with self.session_factory() as db:
            row = await db.scalar(
                select(DailyChallengeRow).where(
                    DailyChallengeRow.challenge_date == challenge_date,
                    DailyChallengeRow.license_type == license_type,
                )
            )
            return _challenge(row) if row else None

    async def create_challenge(
        self, challenge_date: date, license_type: LicenseType, question_ids: list[str]
    ) -> DailyChallenge:
        async with self.session_factory() as db:
            await db.execute(
                pg_insert(DailyChallengeRow)
                .values(
                    id=uuid.uuid4(),
                    challenge_date=challenge_date,
                    license_type=license_type,
                    question_ids=[_uuid(q) for q in question_ids],
                    created_at=datetime.utcnow(),
                )
                .on_conflict_do_nothing(constraint="uq_challenge_date_license")
            )
            await db.commit()
        return await self.find_challenge(challenge_date, license_type)

    async def student_responses(self, student_id: str) -> list[ChallengeResponse]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(ChallengeResponseRow).where(
                    ChallengeResponseRow.student_id == _uuid(student_id)
                )
            )
            return [_response(row) for row in result.scalars().all()]

    async def challenge_responses(
        self, student_id: str, challenge_id: str
    ) -> list[ChallengeResponse]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(ChallengeResponseRow).where(
                    ChallengeResponseRow.student_id == _uuid(student_id),
                    ChallengeResponseRow.challenge_id == _uuid(challenge_id),
                )
            )
            return [_response(row) for row in result.scalars().all()]

    async def upsert_response(self, response: ChallengeResponse) -> bool:
        answered_at = response.answered_at or datetime.utcnow()
        stmt = pg_insert(ChallengeResponseRow).values(
            id=uuid.uuid4(),
            student_id=_uuid(response.student_id),
            challenge_id=_uuid(response.challenge_id),
            question_id=_uuid(response.question_id),
            selected_answer=response.selected_answer,
            is_correct=response.is_correct,
            answered_at=answered_at,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_challenge_response",
            set_={
                "selected_answer": stmt.excluded.selected_answer,
                "is_correct": stmt.excluded.is_correct,
                "answered_at": stmt.excluded.answered_at,
            },
        ).returning(literal_column("(xmax = 0)").label("inserted"))
        async with self.session_factory() as db:
            inserted = await db.scalar(stmt)
            await db.commit()
        return bool(inserted)

    async def get_streak(self, student_id: str) -> StreakState | None:
        key = _uuid(student_id)
        if key is None:
            return None
        async with self.session_factory() as db:
            row = await db.get(Student, key)
            if row is None:
                return None
            return StreakState(
                streak_count=row.streak_count,
                longest_streak=row.longest_streak,
                streak_freeze_available=row.streak_freeze_available,
                last_completed_on=row.last_challenge_completed_on,
            )

    async def save_streak(self, student_id: str, streak: StreakState) -> None:
        async with self.session_factory() as db:
            await db.execute(
                update(Student)
                .where(Student.id == _uuid(student_id))
                .values(
                    streak_count=streak.streak_count,
                    longest_streak=streak.longest_streak,
                    streak_freeze_available=streak.streak_freeze_available,
                    last_challenge_completed_on=streak.last_completed_on,
                )
            )
            await db.commit()

    # ── Chat sessions ────────────────────────────────────────────────────────

    async def create_session(self, student_id: str | None, title: str) -> ChatSession:
        row = ChatSessionRow(
            student_id=_uuid(student_id), title=title, messages=[], context_chunks=[]
        )
        async with self.session_factory() as db:
            db.add(row)
            await db.commit()
        return _session(row)

    async def get_session(self, session_id: str) -> ChatSession | None:
        key = _uuid(session_id)
        if key is None:
            return None
        async with self.session_factory() as db:
            row = await db.get(ChatSessionRow, key)
            return _session(row) if row else None

    async def save_session_turn(
        self,
        session_id: str,
        messages: list[ChatMessage],
        context_chunk_ids: list[str],
    ) -> None:
        payload = [
            {
                "role": m.role.value,
                "content": m.content,
                "timestamp": m.timestamp.isoformat() if m.timestamp else None,
            }
            for m in messages
        ]
        async with self.session_factory() as db:
            await db.execute(
                update(ChatSessionRow)
                .where(ChatSessionRow.id == _uuid(session_id))
                .values(
                    messages=payload,
                    context_chunks=[_uuid(c) for c in context_chunk_ids],
                    updated_at=datetime.utcnow(),
                )
            )
            await db.commit()
