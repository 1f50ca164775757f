from licenseprep.models.enums import LicenseType, FileKind, Difficulty, ChatRole
from licenseprep.models.handout import Handout
from licenseprep.models.chunk import HandoutChunk
from licenseprep.models.question import Question
from licenseprep.models.challenge import DailyChallenge, ChallengeResponse
from licenseprep.models.student import Student
from licenseprep.models.chat_session import ChatSession

__all__ = [
    "LicenseType",
    "FileKind",
    "Difficulty",
    "ChatRole",
    "Handout",
    "HandoutChunk",
    "Question",
    "DailyChallenge",
    "ChallengeResponse",
    "Student",
    "ChatSession",
]
