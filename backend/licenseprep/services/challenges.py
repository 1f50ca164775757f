"""
Daily challenges with wrong-answer spaced repetition.

Question selection, per difficulty tier of the mix (easy 2 / medium 2 /
hard 1 by default):
1. Questions this student previously got wrong, up to half the tier quota
2. Verified questions of the tier the student has never answered
3. If the set is still short, any verified question of the license track

The final set is shuffled so position never reveals difficulty.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from licenseprep.core.errors import (
    ChallengeNotFoundError,
    InvalidInputError,
    QuestionNotFoundError,
)
from licenseprep.models.enums import Difficulty, LicenseType
from licenseprep.services.store.base import ContentStore
from licenseprep.services.store.records import (
    ChallengeResponse,
    DailyChallenge,
    Question,
    StreakState,
)

logger = logging.getLogger(__name__)

DEFAULT_DIFFICULTY_MIX = {"easy": 2, "medium": 2, "hard": 1}
ANSWER_LETTERS = ("A", "B", "C", "D")
CHALLENGE_TRACKS = (LicenseType.A, LicenseType.B)


@dataclass
class ChallengeQuestion:
    id: str
    question_text: str
    options: list[str]
    answered: bool = False
    selected_answer: str | None = None
    is_correct: bool | None = None


@dataclass
class TodaysChallenge:
    challenge_id: str
    questions: list[ChallengeQuestion] = field(default_factory=list)
    completed: bool = False
    score: float | None = None


@dataclass
class SubmissionResult:
    is_correct: bool
    explanation: str
    completed: bool = False


def select_questions(
    questions: list[Question],
    history: list[ChallengeResponse],
    difficulty_mix: dict[str, int],
    total: int,
    rng: random.Random,
) -> list[str]:
    """Pick ``total`` question ids from ``questions`` given a student's history."""
    answered_ids = {r.question_id for r in history}
    incorrect_ids = {r.question_id for r in history if not r.is_correct}

    pool = list(questions)
    rng.shuffle(pool)

    selected: list[str] = []
    for tier, count in difficulty_mix.items():
        tier_pool = [q for q in pool if q.difficulty == Difficulty(tier)]

        review = [q.id for q in tier_pool if q.id in incorrect_ids][: math.ceil(count / 2)]
        selected.extend(review)

        remaining = count - len(review)
        if remaining > 0:
            fresh = [
                q.id
                for q in tier_pool
                if q.id not in answered_ids and q.id not in selected
            ][:remaining]
            selected.extend(fresh)

    if len(selected) < total:
        fill = [q.id for q in pool if q.id not in selected][: total - len(selected)]
        selected.extend(fill)

    rng.shuffle(selected)
    return selected[:total]


def advance_streak(streak: StreakState, completed_on: date) -> StreakState:
    """
    Streak after completing a challenge on ``completed_on``.

    A second completion on the same day changes nothing. A missed day
    spends the streak freeze if one is available, otherwise the streak
    restarts at 1.
    """
    last = streak.last_completed_on
    freeze = streak.streak_freeze_available

    if last == completed_on:
        return streak
    if last is not None and completed_on - last == timedelta(days=1):
        count = streak.streak_count + 1
    elif last is not None and completed_on > last and freeze:
        count = streak.streak_count + 1
        freeze = False
    else:
        count = 1

    return StreakState(
        streak_count=count,
        longest_streak=max(streak.longest_streak, count),
        streak_freeze_available=freeze,
        last_completed_on=completed_on,
    )


def _challenge_track(license_type: LicenseType) -> LicenseType:
    if license_type not in CHALLENGE_TRACKS:
        raise InvalidInputError("Daily challenges exist for license A or B only")
    return license_type


class ChallengeService:
    def __init__(
        self,
        store: ContentStore,
        questions_per_challenge: int = 5,
        difficulty_mix: dict[str, int] | None = None,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.questions_per_challenge = questions_per_challenge
        self.difficulty_mix = difficulty_mix or dict(DEFAULT_DIFFICULTY_MIX)
        self.rng = rng or random.Random()

    async def select_daily_questions(
        self, student_id: str, license_type: LicenseType
    ) -> list[str]:
        questions = await self.store.verified_questions(license_type)
        history = await self.store.student_responses(student_id)
        return select_questions(
            questions, history, self.difficulty_mix, self.questions_per_challenge, self.rng
        )

    async def create_daily_challenge(
        self, license_type: LicenseType, challenge_date: date | None = None
    ) -> DailyChallenge | None:
        """Create the shared challenge for a track and day, or return the existing one."""
        license_type = _challenge_track(license_type)
        challenge_date = challenge_date or datetime.utcnow().date()

        existing = await self.store.find_challenge(challenge_date, license_type)
        if existing is not None:
            return existing

        questions = await self.store.verified_questions(license_type)
        if len(questions) < self.questions_per_challenge:
            logger.warning(
                "[Challenge] Not enough questions for %s challenge (%d verified)",
                license_type.value,
                len(questions),
            )
            return None

        question_ids = select_questions(
            questions, [], self.difficulty_mix, self.questions_per_challenge, self.rng
        )
        challenge = await self.store.create_challenge(challenge_date, license_type, question_ids)
        logger.info(
            "[Challenge] %s challenge for %s: %s",
            license_type.value,
            challenge_date.isoformat(),
            challenge.id,
        )
        return challenge

    async def run_daily_challenges(
        self, challenge_date: date | None = None
    ) -> dict[LicenseType, DailyChallenge | None]:
        """Daily trigger entry point; safe to call several times a day."""
        return {
            track: await self.create_daily_challenge(track, challenge_date)
            for track in CHALLENGE_TRACKS
        }

    async def get_todays_challenge(
        self,
        student_id: str,
        license_type: LicenseType,
        today: date | None = None,
    ) -> TodaysChallenge | None:
        license_type = _challenge_track(license_type)
        today = today or datetime.utcnow().date()

        challenge = await self.store.find_challenge(today, license_type)
        if challenge is None:
            return None

        questions = await self.store.get_questions(challenge.question_ids)
        responses = {
            r.question_id: r
            for r in await self.store.challenge_responses(student_id, challenge.id)
        }

        items = []
        for q in questions:
            response = responses.get(q.id)
            items.append(
                ChallengeQuestion(
                    id=q.id,
                    question_text=q.question_text,
                    options=q.options,
                    answered=response is not None,
                    selected_answer=response.selected_answer if response else None,
                    is_correct=response.is_correct if response else None,
                )
            )

        answered = sum(1 for item in items if item.answered)
        correct = sum(1 for item in items if item.is_correct)
        return TodaysChallenge(
            challenge_id=challenge.id,
            questions=items,
            completed=bool(items) and answered == len(items),
            score=correct / answered if answered else None,
        )

    async def submit_response(
        self,
        student_id: str,
        challenge_id: str,
        question_id: str,
        selected_answer: str,
    ) -> SubmissionResult:
        selected = (selected_answer or "").strip().upper()
        if selected not in ANSWER_LETTERS:
            raise InvalidInputError(f"selected_answer must be one of A-D, got {selected_answer!r}")

        challenge = await self.store.get_challenge(challenge_id)
        if challenge is None:
            raise ChallengeNotFoundError(challenge_id)
        if question_id not in challenge.question_ids:
            raise InvalidInputError(f"Question {question_id} is not part of challenge {challenge_id}")

        question = await self.store.get_question(question_id)
        if question is None:
            raise QuestionNotFoundError(question_id)

        is_correct = selected == question.correct_answer
        inserted = await self.store.upsert_response(
            ChallengeResponse(
                student_id=student_id,
                challenge_id=challenge_id,
                question_id=question_id,
                selected_answer=selected,
                is_correct=is_correct,
            )
        )

        responses = await self.store.challenge_responses(student_id, challenge_id)
        completed = len(responses) == len(challenge.question_ids)
        # Only the submission that adds the last missing response completes it
        if completed and inserted:
            await self._record_completion(student_id)

        return SubmissionResult(
            is_correct=is_correct,
            explanation=question.explanation or "",
            completed=completed,
        )

    async def _record_completion(self, student_id: str) -> None:
        streak = await self.store.get_streak(student_id)
        if streak is None:
            logger.warning("[Challenge] No student record for %s; streak not updated", student_id)
            return

        updated = advance_streak(streak, datetime.utcnow().date())
        if updated is not streak:
            await self.store.save_streak(student_id, updated)
        logger.info(
            "[Challenge] Student %s completed a challenge, streak %d",
            student_id,
            updated.streak_count,
        )
