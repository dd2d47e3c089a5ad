from typing import Optional

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from unimark_admin.database.base import Base, IdMixin, TimestampMixin


class Role(IdMixin, TimestampMixin, Base):
    """
    roles:
    - name is unique; the names in PROTECTED_ROLES (default "admin") cannot be deleted
    - parent_id forms an optional tree; updates reject cycles
    """

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    level: Mapped[str] = mapped_column(String(50), nullable=False, default="realm")
    parent_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("roles.id", ondelete="SET NULL"), nullable=True, index=True
    )
