from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from unimark_admin.database.base import Base, IdMixin, TimestampMixin, utcnow

PROFILE_TYPE_SYSTEM = "System"
PROFILE_TYPE_STANDARD = "Standard"


class Profile(IdMixin, TimestampMixin, Base):
    """
    profiles:
    - name is unique
    - type is "System" or "Standard"; System profiles cannot be deleted
    """

    __tablename__ = "profiles"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=PROFILE_TYPE_STANDARD)


class ProfilePermissionSet(IdMixin, Base):
    __tablename__ = "profile_permission_sets"
    __table_args__ = (
        UniqueConstraint("profile_id", "permission_set_id", name="uq_profile_permission_set"),
    )

    profile_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    permission_set_id: Mapped[str] = mapped_column(
        ForeignKey("permission_sets.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
