"""
Study assistant chat endpoints.
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from licenseprep.deps import Services, get_services
from licenseprep.models.enums import ChatRole, LicenseType
from licenseprep.routers.errors import domain_errors

router = APIRouter()

SESSION_TITLE_CHARS = 50


class ChatRequest(BaseModel):
    message: str
    session_id: str | None = None
    student_id: str | None = None
    license_type: LicenseType = LicenseType.BOTH


class SourceResponse(BaseModel):
    title: str
    section: str | None = None
    chunk_id: str


class ChatResponse(BaseModel):
    response: str
    sources: list[SourceResponse]
    session_id: str | None = None


class MessageResponse(BaseModel):
    role: ChatRole
    content: str
    timestamp: datetime | None = None


class SessionResponse(BaseModel):
    id: str
    title: str
    messages: list[MessageResponse]


@router.post("", response_model=ChatResponse)
async def send_message(request: ChatRequest, services: Services = Depends(get_services)):
    """
    Answer a student question grounded in the handouts.

    Signed-in students without a session get one, titled after their
    first message; anonymous chat keeps no history.
    """
    with domain_errors():
        session_id = request.session_id
        if not session_id and request.student_id and request.message.strip():
            session = await services.chat.create_session(
                request.student_id, request.message[:SESSION_TITLE_CHARS]
            )
            session_id = session.id

        reply = await services.chat.chat(request.message, session_id, request.license_type)

    return ChatResponse(
        response=reply.response,
        sources=[SourceResponse(**vars(s)) for s in reply.sources],
        session_id=session_id,
    )


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, services: Services = Depends(get_services)):
    with domain_errors():
        session = await services.chat.get_session(session_id)
    return SessionResponse(
        id=session.id,
        title=session.title,
        messages=[MessageResponse(**vars(m)) for m in session.messages],
    )
