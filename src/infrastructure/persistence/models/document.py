from datetime import datetime

from sqlalchemy import (JSON, BigInteger, CheckConstraint, DateTime,
                        ForeignKey, Index, String)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from src.domain.enums import DocumentStatus
from src.infrastructure.persistence.database import Base
from src.infrastructure.persistence.models.mixins import (CuidMixin,
                                                          VersionedMixin)
from src.shared.utils.datetime import utc_now


class Document(CuidMixin, VersionedMixin, Base):
    """
    Document metadata row. The bytes live in object storage.

    Inherits:
        - id: CUID primary key
        - version: optimistic concurrency counter

    Exactly one of ``storage_key`` (active) or ``trash_key`` (trashed) is the
    authoritative location of the object.
    """

    __tablename__ = "user_documents"

    uid: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # File metadata
    file_name: Mapped[str] = mapped_column(String, nullable=False)
    mimetype: Mapped[str | None] = mapped_column(String, nullable=True)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Storage
    storage_key: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=DocumentStatus.ACTIVE.value, index=True
    )
    trash_key: Mapped[str | None] = mapped_column(String, nullable=True)

    # Sharing (user id lists, kept as sets by the repository)
    shared_to: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    shared_from: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            f"status IN {tuple(DocumentStatus.values())}", name="user_documents_status_check"
        ),
        CheckConstraint(
            "(status = 'trashed' AND trash_key IS NOT NULL) "
            "OR (status = 'active' AND trash_key IS NULL)",
            name="user_documents_trash_key_check",
        ),
        Index("ix_user_documents_uid_status", "uid", "status"),
    )
