"""
Pydantic models for structured LLM output.

LLM JSON is an untrusted payload: every structure is validated against
these models before use, and callers fall back or skip on failure.
"""

import re

from pydantic import BaseModel, field_validator, model_validator

from licenseprep.models.enums import Difficulty


OPTION_LETTERS = ("A", "B", "C", "D")
OPTION_PREFIX = re.compile(r"^\s*([A-D])[.)]\s*\S")


class SectionSpec(BaseModel):
    title: str
    startIndex: int
    endIndex: int
    summary: str = ""


class GeneratedQuestion(BaseModel):
    question: str
    options: list[str]
    correct_answer: str
    explanation: str
    difficulty: Difficulty
    topic_tags: list[str] = []

    @field_validator("question", "explanation")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @field_validator("options")
    @classmethod
    def four_lettered_options(cls, options: list[str]) -> list[str]:
        if len(options) != len(OPTION_LETTERS):
            raise ValueError(f"expected 4 options, got {len(options)}")
        for letter, option in zip(OPTION_LETTERS, options):
            match = OPTION_PREFIX.match(option)
            if not match or match.group(1) != letter:
                raise ValueError(f"option {option!r} must start with '{letter}.'")
        return [o.strip() for o in options]

    @field_validator("correct_answer")
    @classmethod
    def normalize_letter(cls, value: str) -> str:
        letter = value.strip().rstrip(".)").upper()
        if letter not in OPTION_LETTERS:
            raise ValueError(f"correct_answer must be one of A-D, got {value!r}")
        return letter

    @field_validator("topic_tags")
    @classmethod
    def clean_tags(cls, tags: list[str]) -> list[str]:
        seen = []
        for tag in tags:
            tag = tag.strip().lower()
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    @model_validator(mode="after")
    def answer_matches_an_option(self) -> "GeneratedQuestion":
        letters = [OPTION_PREFIX.match(o).group(1) for o in self.options]
        if self.correct_answer not in letters:
            raise ValueError("correct_answer does not match any option")
        return self
