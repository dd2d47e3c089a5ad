"""INSERT ... ON CONFLICT for the dialects we run on (PostgreSQL, SQLite)."""

from typing import Any, Dict, List, Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session


def _dialect_insert(session: Session, model):
    bind = session.get_bind()
    dialect = bind.dialect.name if bind is not None else ""
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise NotImplementedError(f"Upsert is not supported on dialect {dialect!r}")


def insert_or_ignore(session: Session, model, values: Dict[str, Any], conflict_columns: List[str]) -> Optional[str]:
    """Insert a row unless the conflict key already exists.

    Returns the new row id, or None when the row was already there.
    """
    statement = (
        _dialect_insert(session, model)
        .values(**values)
        .on_conflict_do_nothing(index_elements=conflict_columns)
        .returning(model.id)
    )
    return session.execute(statement).scalar_one_or_none()


def upsert(
    session: Session,
    model,
    values: Dict[str, Any],
    conflict_columns: List[str],
    update_columns: List[str],
) -> str:
    """Insert a row or overwrite update_columns on conflict; returns the row id.

    With no update_columns the conflict key itself is rewritten, which still
    returns the existing id (insert-or-get).
    """
    statement = _dialect_insert(session, model).values(**values)
    columns = update_columns or conflict_columns
    statement = statement.on_conflict_do_update(
        index_elements=conflict_columns,
        set_={column: statement.excluded[column] for column in columns},
    ).returning(model.id)
    row_id = session.execute(statement).scalar_one()
    # Keep identity-map copies in step with what the statement wrote
    session.expire_all()
    return row_id
