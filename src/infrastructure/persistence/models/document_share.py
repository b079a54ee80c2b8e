from datetime import datetime

from sqlalchemy import (CheckConstraint, DateTime, ForeignKey, Index, String,
                        Text)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from src.domain.enums import ShareType
from src.infrastructure.persistence.database import Base
from src.shared.utils.datetime import utc_now
from src.shared.utils.generators import generate_share_token


class DocumentShare(Base):
    """
    Share grant for a document.

    ``id`` is an unguessable token; public-link grants cache a signed URL
    with an absolute expiry, restricted grants never do.
    """

    __tablename__ = "document_shares"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=generate_share_token)
    doc_id: Mapped[str] = mapped_column(
        String, ForeignKey("user_documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    granting_uid: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    share_type: Mapped[str] = mapped_column(String, nullable=False)
    signed_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            f"share_type IN {tuple(ShareType.values())}", name="document_shares_type_check"
        ),
        Index("ix_document_shares_doc_created", "doc_id", "created_at"),
    )
