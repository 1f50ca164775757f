import uuid
from datetime import datetime
from sqlalchemy import String, Text, Boolean, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from licenseprep.core.database import Base
from licenseprep.models.enums import FileKind, LicenseType


class Handout(Base):
    __tablename__ = "handouts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_type: Mapped[FileKind] = mapped_column(SQLEnum(FileKind), nullable=False)
    license_type: Mapped[LicenseType] = mapped_column(
        SQLEnum(LicenseType), default=LicenseType.BOTH, nullable=False
    )
    extracted_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    # Relationships
    chunks: Mapped[list["HandoutChunk"]] = relationship(
        "HandoutChunk", back_populates="handout", cascade="all, delete-orphan"
    )
