"""
Daily challenge endpoints.
"""

from datetime import date

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel

from licenseprep.deps import Services, get_services
from licenseprep.models.enums import LicenseType
from licenseprep.routers.errors import domain_errors

router = APIRouter()


class ChallengeQuestionResponse(BaseModel):
    id: str
    question_text: str
    options: list[str]
    answered: bool
    selected_answer: str | None = None
    is_correct: bool | None = None


class TodaysChallengeResponse(BaseModel):
    challenge_id: str
    questions: list[ChallengeQuestionResponse]
    completed: bool
    score: float | None = None


class SubmitRequest(BaseModel):
    student_id: str
    challenge_id: str
    question_id: str
    selected_answer: str


class SubmitResponse(BaseModel):
    is_correct: bool
    explanation: str
    completed: bool


class DailyRunRequest(BaseModel):
    challenge_date: date | None = None


class DailyRunResponse(BaseModel):
    challenges: dict[str, str | None]


@router.get("/today", response_model=TodaysChallengeResponse)
async def todays_challenge(
    student_id: str,
    license_type: LicenseType = LicenseType.B,
    services: Services = Depends(get_services),
):
    with domain_errors():
        challenge = await services.challenges.get_todays_challenge(student_id, license_type)

    if challenge is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No challenge available for today",
        )

    return TodaysChallengeResponse(
        challenge_id=challenge.challenge_id,
        questions=[ChallengeQuestionResponse(**vars(q)) for q in challenge.questions],
        completed=challenge.completed,
        score=challenge.score,
    )


@router.post("/respond", response_model=SubmitResponse)
async def submit_answer(request: SubmitRequest, services: Services = Depends(get_services)):
    with domain_errors():
        result = await services.challenges.submit_response(
            request.student_id,
            request.challenge_id,
            request.question_id,
            request.selected_answer,
        )
    return SubmitResponse(**vars(result))


@router.post("/daily", response_model=DailyRunResponse)
async def run_daily(
    request: DailyRunRequest | None = None,
    authorization: str | None = Header(default=None),
    services: Services = Depends(get_services),
):
    """Create today's A and B challenges; called by the external scheduler."""
    cron_secret = services.settings.cron_secret
    if cron_secret and authorization != f"Bearer {cron_secret}":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    with domain_errors():
        created = await services.challenges.run_daily_challenges(
            request.challenge_date if request else None
        )
    return DailyRunResponse(
        challenges={
            track.value: challenge.id if challenge else None
            for track, challenge in created.items()
        }
    )
