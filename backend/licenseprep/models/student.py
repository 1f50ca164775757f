import uuid
from datetime import date
from sqlalchemy import String, Integer, Boolean, Date
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from licenseprep.core.database import Base


class Student(Base):
    """Only the streak columns are owned here; profile CRUD lives elsewhere."""

    __tablename__ = "students"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    streak_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    streak_freeze_available: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    last_challenge_completed_on: Mapped[date | None] = mapped_column(Date, nullable=True)
