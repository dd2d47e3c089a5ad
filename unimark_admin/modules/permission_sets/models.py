from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from unimark_admin.database.base import Base, IdMixin, TimestampMixin


class PermissionSet(IdMixin, TimestampMixin, Base):
    """
    permission_sets:
    - name is unique
    - table_count mirrors COUNT(permission_set_table_access) and is rewritten
      in the same transaction as every table access insert or delete
    """

    __tablename__ = "permission_sets"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    table_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class TableAccess(IdMixin, Base):
    __tablename__ = "permission_set_table_access"
    __table_args__ = (
        UniqueConstraint("permission_set_id", "table_name", name="uq_table_access_set_table"),
    )

    permission_set_id: Mapped[str] = mapped_column(
        ForeignKey("permission_sets.id"), nullable=False, index=True
    )
    table_name: Mapped[str] = mapped_column(String(255), nullable=False)
    can_create: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_update: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_delete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class FieldAccess(IdMixin, Base):
    __tablename__ = "permission_set_field_access"
    __table_args__ = (
        UniqueConstraint("table_access_id", "field_name", name="uq_field_access_table_field"),
    )

    table_access_id: Mapped[str] = mapped_column(
        ForeignKey("permission_set_table_access.id"), nullable=False, index=True
    )
    field_name: Mapped[str] = mapped_column(String(255), nullable=False)
    can_view: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_edit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
