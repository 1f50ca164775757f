"""
Question bank review endpoints (admin).
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from licenseprep.deps import Services, get_services
from licenseprep.models.enums import Difficulty, LicenseType
from licenseprep.routers.errors import domain_errors
from licenseprep.services.store.records import QuestionFilter

router = APIRouter()


class QuestionResponse(BaseModel):
    id: str
    question_text: str
    options: list[str]
    correct_answer: str
    explanation: str
    difficulty: Difficulty
    license_type: LicenseType
    topic_tags: list[str]
    is_ai_generated: bool
    is_verified: bool
    verified_by: str | None = None
    verified_at: datetime | None = None
    handout_id: str | None = None
    source_chunk_id: str | None = None
    created_at: datetime | None = None


class QuestionListResponse(BaseModel):
    questions: list[QuestionResponse]
    total: int
    page: int
    page_size: int
    has_more: bool


class QuestionCreate(BaseModel):
    question_text: str
    options: list[str]
    correct_answer: str
    explanation: str
    difficulty: Difficulty
    license_type: LicenseType
    topic_tags: list[str] = []
    handout_id: str | None = None
    created_by: str | None = None


class QuestionUpdate(BaseModel):
    question_text: str | None = None
    options: list[str] | None = None
    correct_answer: str | None = None
    explanation: str | None = None
    difficulty: Difficulty | None = None
    license_type: LicenseType | None = None
    topic_tags: list[str] | None = None


class VerifyRequest(BaseModel):
    verifier: str | None = None


class DraftResponse(BaseModel):
    question: str
    options: list[str]
    correct_answer: str
    explanation: str
    difficulty: Difficulty
    topic_tags: list[str]


@router.get("", response_model=QuestionListResponse)
async def list_questions(
    status_filter: str = Query(default="all", alias="status"),
    difficulty: Difficulty | None = None,
    license_type: LicenseType | None = None,
    search: str = "",
    page: int = 1,
    page_size: int = 50,
    services: Services = Depends(get_services),
):
    """Unverified questions first, newest first."""
    with domain_errors():
        questions, total = await services.question_bank.list_questions(
            QuestionFilter(
                status=status_filter,
                difficulty=difficulty,
                license_type=license_type,
                search=search,
                page=page,
                page_size=page_size,
            )
        )
    return QuestionListResponse(
        questions=[QuestionResponse(**vars(q)) for q in questions],
        total=total,
        page=page,
        page_size=page_size,
        has_more=total > page * page_size,
    )


@router.post("", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
async def create_question(request: QuestionCreate, services: Services = Depends(get_services)):
    """Create a question by hand; manual questions are verified on creation."""
    with domain_errors():
        question = await services.question_bank.create_manual_question(**request.model_dump())
    return QuestionResponse(**vars(question))


@router.patch("/{question_id}", response_model=QuestionResponse)
async def update_question(
    question_id: str,
    request: QuestionUpdate,
    services: Services = Depends(get_services),
):
    with domain_errors():
        question = await services.question_bank.update_question(
            question_id, request.model_dump(exclude_none=True)
        )
    return QuestionResponse(**vars(question))


@router.post("/{question_id}/verify", response_model=QuestionResponse)
async def verify_question(
    question_id: str,
    request: VerifyRequest | None = None,
    services: Services = Depends(get_services),
):
    with domain_errors():
        question = await services.question_bank.verify_question(
            question_id, request.verifier if request else None
        )
    return QuestionResponse(**vars(question))


@router.post("/{question_id}/regenerate", response_model=DraftResponse | None)
async def regenerate_question(question_id: str, services: Services = Depends(get_services)):
    """Draft a replacement from the question's source chunk (not saved)."""
    with domain_errors():
        draft = await services.generator.regenerate_question(question_id)
    return DraftResponse(**draft.model_dump()) if draft else None


@router.delete("/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
async def reject_question(question_id: str, services: Services = Depends(get_services)):
    with domain_errors():
        await services.question_bank.reject_question(question_id)
