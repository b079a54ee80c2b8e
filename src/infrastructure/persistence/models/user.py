from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.persistence.database import Base
from src.infrastructure.persistence.models.mixins import (CuidMixin,
                                                          TimestampMixin)


class User(CuidMixin, TimestampMixin, Base):
    """
    Account reference used to resolve share recipients by email.

    Credentials and profile data live with the account service; only the
    identity and email are needed here.
    """

    __tablename__ = "user"

    email: Mapped[str] = mapped_column(String, unique=True, nullable=False, index=True)
