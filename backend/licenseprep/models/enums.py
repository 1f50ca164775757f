from enum import Enum


class LicenseType(str, Enum):
    A = "A"  # General Engineering
    B = "B"  # General Building
    BOTH = "both"


class FileKind(str, Enum):
    PDF = "pdf"
    IMAGE = "image"
    TEXT = "text"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
