"""
Error taxonomy shared by the pipeline, retrieval and challenge services.

Routers map these onto HTTP status codes; pipeline steps catch them at the
step boundary and record them as "<step>: failed - <message>".
"""


class LicensePrepError(Exception):
    """Base class for all domain errors."""


class InvalidInputError(LicensePrepError):
    """Malformed request; rejected before any side effect."""


class NotFoundError(LicensePrepError):
    """A referenced record does not exist."""

    entity = "Record"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"{self.entity} not found: {record_id}")


class HandoutNotFoundError(NotFoundError):
    entity = "Handout"


class ChunkNotFoundError(NotFoundError):
    entity = "Chunk"


class QuestionNotFoundError(NotFoundError):
    entity = "Question"


class ChallengeNotFoundError(NotFoundError):
    entity = "Challenge"


class SessionNotFoundError(NotFoundError):
    entity = "Chat session"


class StoredFileNotFoundError(NotFoundError):
    entity = "File"


class ConfigurationError(LicensePrepError):
    """A provider required by this operation has no credentials configured."""


class UpstreamError(LicensePrepError):
    """An LLM or embedding provider call failed."""


class EmbeddingError(UpstreamError):
    """The embedding provider failed or returned an unusable batch."""


class StructuredOutputError(LicensePrepError):
    """The language model did not return output matching the expected shape."""

    def __init__(self, message: str, raw_output: str = ""):
        self.raw_output = raw_output
        super().__init__(message)
