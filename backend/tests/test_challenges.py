import random
from datetime import date, datetime, timedelta

import pytest

from licenseprep.core.errors import ChallengeNotFoundError, InvalidInputError
from licenseprep.models.enums import Difficulty, LicenseType
from licenseprep.services.challenges import ChallengeService, advance_streak, select_questions
from licenseprep.services.store.records import ChallengeResponse, Question, StreakState

TODAY = date(2026, 3, 10)


def add_question(store, question_id, difficulty="medium", license_type=LicenseType.B,
                 correct="B", verified=True):
    question = Question(
        id=question_id,
        question_text=f"Question {question_id}?",
        options=["A. one", "B. two", "C. three", "D. four"],
        correct_answer=correct,
        explanation=f"Explanation for {question_id}.",
        difficulty=Difficulty(difficulty),
        license_type=license_type,
        is_verified=verified,
    )
    store.questions[question_id] = question
    return question


def add_bank(store, license_type=LicenseType.B, easy=3, medium=3, hard=2):
    for tier, count in (("easy", easy), ("medium", medium), ("hard", hard)):
        for i in range(count):
            add_question(store, f"{tier}-{i}", tier, license_type)


def service(store, seed=7):
    return ChallengeService(store, rng=random.Random(seed))


def wrong(student_id, question_id):
    return ChallengeResponse(student_id, "old-challenge", question_id, "A", False)


def test_review_pool_is_capped_at_half_the_tier_quota():
    """Three prior misses in a medium quota of 2: exactly one review, one fresh."""
    questions = [
        Question(f"m{i}?", [], "A", "", Difficulty.MEDIUM, LicenseType.B, id=f"m{i}") for i in range(6)
    ] + [
        Question(f"e{i}?", [], "A", "", Difficulty.EASY, LicenseType.B, id=f"e{i}") for i in range(3)
    ] + [
        Question(f"h{i}?", [], "A", "", Difficulty.HARD, LicenseType.B, id=f"h{i}") for i in range(2)
    ]
    history = [wrong("s", "m0"), wrong("s", "m1"), wrong("s", "m2")]

    for seed in range(20):
        selected = select_questions(
            questions, history, {"easy": 2, "medium": 2, "hard": 1}, 5, random.Random(seed)
        )
        medium = [q for q in selected if q.startswith("m")]
        assert len(selected) == 5
        assert len(medium) == 2
        assert len([q for q in medium if q in ("m0", "m1", "m2")]) == 1
        assert len([q for q in selected if q.startswith("e")]) == 2


def test_answered_correctly_is_not_fresh():
    questions = [Question(f"m{i}?", [], "A", "", Difficulty.MEDIUM, LicenseType.B, id=f"m{i}") for i in range(3)]
    history = [ChallengeResponse("s", "c", "m0", "A", True), ChallengeResponse("s", "c", "m1", "A", True)]

    selected = select_questions(questions, history, {"medium": 1}, 1, random.Random(1))

    assert selected == ["m2"]


def test_short_tiers_are_backfilled():
    questions = [Question(f"e{i}?", [], "A", "", Difficulty.EASY, LicenseType.B, id=f"e{i}") for i in range(6)]
    selected = select_questions(questions, [], {"easy": 2, "medium": 2, "hard": 1}, 5, random.Random(3))
    assert len(selected) == 5
    assert len(set(selected)) == 5


async def test_no_verified_questions_means_no_challenge(store):
    """Without enough verified questions no empty challenge is created."""
    add_bank(store, easy=0, medium=0, hard=0)
    add_question(store, "draft-1", verified=False)

    assert await service(store).create_daily_challenge(LicenseType.B, TODAY) is None
    assert store.challenges == {}

    for i in range(4):
        add_question(store, f"v{i}")
    assert await service(store).create_daily_challenge(LicenseType.B, TODAY) is None


async def test_daily_challenge_is_idempotent(store):
    add_bank(store)
    challenges = service(store)

    first = await challenges.create_daily_challenge(LicenseType.B, TODAY)
    second = await challenges.create_daily_challenge(LicenseType.B, TODAY)

    assert first.id == second.id
    assert len(first.question_ids) == 5
    assert len(set(first.question_ids)) == 5
    assert len(store.challenges) == 1


async def test_run_daily_challenges_covers_both_tracks(store):
    add_bank(store, license_type=LicenseType.BOTH)

    first = await service(store).run_daily_challenges(TODAY)
    again = await service(store).run_daily_challenges(TODAY)

    assert set(first) == {LicenseType.A, LicenseType.B}
    assert {k: v.id for k, v in first.items()} == {k: v.id for k, v in again.items()}


async def test_track_must_be_a_or_b(store):
    with pytest.raises(InvalidInputError):
        await service(store).create_daily_challenge(LicenseType.BOTH, TODAY)


async def test_correct_answer_is_recorded(store):
    add_question(store, "q1", correct="B")
    challenge = await store.create_challenge(TODAY, LicenseType.B, ["q1"])
    student = store.add_student()

    result = await service(store).submit_response(student, challenge.id, "q1", "B")

    assert result.is_correct is True
    assert result.explanation == "Explanation for q1."
    [row] = await store.challenge_responses(student, challenge.id)
    assert row.is_correct is True
    assert row.selected_answer == "B"


async def test_resubmission_overwrites(store):
    add_question(store, "q1", correct="B")
    add_question(store, "q2", correct="C")
    challenge = await store.create_challenge(TODAY, LicenseType.B, ["q1", "q2"])
    student = store.add_student()
    challenges = service(store)

    assert (await challenges.submit_response(student, challenge.id, "q1", "a")).is_correct is False
    assert (await challenges.submit_response(student, challenge.id, "q1", "B")).is_correct is True

    rows = await store.challenge_responses(student, challenge.id)
    assert [(r.question_id, r.is_correct) for r in rows] == [("q1", True)]


async def test_completion_advances_streak_once(store):
    add_bank(store)
    today = datetime.utcnow().date()
    challenges = service(store)
    challenge = await challenges.create_daily_challenge(LicenseType.B, today)
    student = store.add_student(
        StreakState(streak_count=3, longest_streak=3, last_completed_on=today - timedelta(days=1))
    )

    results = [
        await challenges.submit_response(student, challenge.id, qid, "B")
        for qid in challenge.question_ids
    ]

    assert [r.completed for r in results] == [False, False, False, False, True]
    assert store.streaks[student].streak_count == 4
    assert store.streaks[student].last_completed_on == today

    again = await challenges.submit_response(student, challenge.id, challenge.question_ids[0], "C")
    assert again.completed is True
    assert store.streaks[student].streak_count == 4


async def test_submission_errors(store):
    add_question(store, "q1")
    add_question(store, "outside")
    challenge = await store.create_challenge(TODAY, LicenseType.B, ["q1"])
    challenges = service(store)

    with pytest.raises(InvalidInputError):
        await challenges.submit_response("s", challenge.id, "q1", "E")
    with pytest.raises(ChallengeNotFoundError):
        await challenges.submit_response("s", "missing", "q1", "A")
    with pytest.raises(InvalidInputError):
        await challenges.submit_response("s", challenge.id, "outside", "A")
    assert store.responses == {}


async def test_todays_challenge_progress(store):
    add_question(store, "q1", correct="B")
    add_question(store, "q2", correct="C")
    add_question(store, "q3", correct="D")
    challenge = await store.create_challenge(TODAY, LicenseType.B, ["q1", "q2", "q3"])
    student = store.add_student()
    challenges = service(store)
    await challenges.submit_response(student, challenge.id, "q1", "B")
    await challenges.submit_response(student, challenge.id, "q2", "A")

    today = await challenges.get_todays_challenge(student, LicenseType.B, TODAY)

    assert today.challenge_id == challenge.id
    assert today.completed is False
    assert today.score == pytest.approx(0.5)
    assert [(q.id, q.answered, q.is_correct) for q in today.questions] == [
        ("q1", True, True),
        ("q2", True, False),
        ("q3", False, None),
    ]
    assert await challenges.get_todays_challenge(student, LicenseType.A, TODAY) is None


def test_streak_consecutive_day():
    streak = StreakState(streak_count=2, longest_streak=5, last_completed_on=date(2026, 3, 9))
    updated = advance_streak(streak, TODAY)
    assert (updated.streak_count, updated.longest_streak) == (3, 5)
    assert updated.streak_freeze_available is True


def test_streak_same_day_is_a_no_op():
    streak = StreakState(streak_count=2, longest_streak=2, last_completed_on=TODAY)
    assert advance_streak(streak, TODAY) is streak


def test_streak_gap_spends_freeze():
    streak = StreakState(streak_count=4, longest_streak=4, last_completed_on=date(2026, 3, 7))
    updated = advance_streak(streak, TODAY)
    assert (updated.streak_count, updated.longest_streak) == (5, 5)
    assert updated.streak_freeze_available is False

    later = advance_streak(updated, TODAY + timedelta(days=3))
    assert later.streak_count == 1
    assert later.longest_streak == 5


def test_first_completion_starts_streak():
    updated = advance_streak(StreakState(), TODAY)
    assert (updated.streak_count, updated.longest_streak, updated.last_completed_on) == (1, 1, TODAY)
