"""
Guarded delete protocol shared by roles, profiles and permission sets.

The caller opens the transaction; the guard locks the parent row with
SELECT ... FOR UPDATE before counting dependents, so a concurrent assignment
cannot slip in between the count and the delete.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy import Select, delete, func, select
from sqlalchemy.orm import Session

from unimark_admin.core.errors import ConflictError, ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)


def lock_one(session: Session, statement: Select, not_found: str) -> Any:
    """Fetch a single row with a row lock or raise NotFoundError."""
    entity = session.scalars(statement.with_for_update()).first()
    if entity is None:
        raise NotFoundError(not_found)
    return entity


def count_rows(session: Session, column, *criteria) -> int:
    """Single aggregate COUNT(column) WHERE criteria."""
    return int(session.scalar(select(func.count(column)).where(*criteria)) or 0)


@dataclass(frozen=True)
class DeleteGuard:
    entity_label: str
    dependent_label: str
    count_dependents: Callable[[Session, Any], int]
    is_protected: Callable[[Any], bool] = lambda entity: False
    protected_error: Optional[str] = None
    protected_details: Optional[str] = None
    cleanup: Optional[Callable[[Session, Any], None]] = None

    @property
    def title(self) -> str:
        return self.entity_label[:1].upper() + self.entity_label[1:]

    def run(self, session: Session, statement: Select) -> str:
        entity = lock_one(session, statement, f"{self.title} not found")

        if self.is_protected(entity):
            logger.warning("Refused to delete protected %s %s", self.entity_label, entity.id)
            raise ForbiddenError(self.protected_error, details=self.protected_details)

        count = self.count_dependents(session, entity)
        if count > 0:
            logger.info(
                "Refused to delete %s %s: %d %s(s) assigned",
                self.entity_label, entity.id, count, self.dependent_label,
            )
            raise ConflictError(
                f"Cannot delete {self.entity_label} with assigned {self.dependent_label}s",
                details=(
                    f"{self.title} has {count} {self.dependent_label}(s) assigned. "
                    f"Remove {self.dependent_label}s from this {self.entity_label} before deleting."
                ),
            )

        if self.cleanup is not None:
            self.cleanup(session, entity)

        entity_id = entity.id
        session.execute(delete(type(entity)).where(type(entity).id == entity_id))
        logger.info("Deleted %s %s", self.entity_label, entity_id)
        return entity_id
