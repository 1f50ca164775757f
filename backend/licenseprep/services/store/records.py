"""
Plain records exchanged with the storage collaborator.

Components never see ORM objects; every store implementation maps its own
rows onto these dataclasses. Ids are UUID strings.
"""

from dataclasses import dataclass, field
from datetime import date, datetime

from licenseprep.models.enums import ChatRole, Difficulty, FileKind, LicenseType


@dataclass
class Handout:
    id: str
    title: str
    file_path: str
    file_type: FileKind
    license_type: LicenseType
    extracted_text: str | None = None
    is_processed: bool = False
    processed_at: datetime | None = None


@dataclass
class ChunkDraft:
    """A chunk produced by the chunker, not yet persisted."""

    content: str
    token_count: int
    section_title: str
    section_summary: str
    chunk_of_section: int
    total_section_chunks: int

    def metadata(self) -> dict:
        return {
            "section_title": self.section_title,
            "section_summary": self.section_summary,
            "chunk_of_section": self.chunk_of_section,
            "total_section_chunks": self.total_section_chunks,
        }


@dataclass
class Chunk:
    id: str
    handout_id: str
    chunk_index: int
    content: str
    token_count: int
    metadata: dict = field(default_factory=dict)
    embedding_model: str | None = None
    embedded_at: datetime | None = None

    @property
    def section_title(self) -> str | None:
        return self.metadata.get("section_title")


@dataclass
class HandoutCounts:
    chunks: int
    embedded_chunks: int
    questions: int


@dataclass
class SearchHit:
    """A chunk returned by one retrieval strategy, with that strategy's raw score."""

    chunk_id: str
    handout_id: str
    handout_title: str
    content: str
    metadata: dict
    score: float


@dataclass
class Question:
    question_text: str
    options: list[str]
    correct_answer: str
    explanation: str
    difficulty: Difficulty
    license_type: LicenseType
    topic_tags: list[str] = field(default_factory=list)
    is_ai_generated: bool = False
    is_verified: bool = False
    verified_by: str | None = None
    verified_at: datetime | None = None
    handout_id: str | None = None
    source_chunk_id: str | None = None
    id: str | None = None
    created_at: datetime | None = None


@dataclass
class QuestionFilter:
    status: str = "all"  # "verified" | "unverified" | "all"
    difficulty: Difficulty | None = None
    license_type: LicenseType | None = None
    search: str = ""
    page: int = 1
    page_size: int = 50


@dataclass
class DailyChallenge:
    id: str
    challenge_date: date
    license_type: LicenseType
    question_ids: list[str]


@dataclass
class ChallengeResponse:
    student_id: str
    challenge_id: str
    question_id: str
    selected_answer: str
    is_correct: bool
    answered_at: datetime | None = None


@dataclass
class StreakState:
    streak_count: int = 0
    longest_streak: int = 0
    streak_freeze_available: bool = True
    last_completed_on: date | None = None


@dataclass
class ChatMessage:
    role: ChatRole
    content: str
    timestamp: datetime | None = None

    def to_prompt(self) -> dict:
        return {"role": self.role.value, "content": self.content}


@dataclass
class ChatSession:
    id: str
    student_id: str | None
    title: str
    messages: list[ChatMessage] = field(default_factory=list)
    context_chunks: list[str] = field(default_factory=list)


# Question fields an admin may edit directly; verification has its own operation
EDITABLE_QUESTION_FIELDS = frozenset(
    {
        "question_text",
        "options",
        "correct_answer",
        "explanation",
        "difficulty",
        "license_type",
        "topic_tags",
    }
)
