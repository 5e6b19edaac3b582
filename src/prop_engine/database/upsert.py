"""Dialect-aware INSERT ... ON CONFLICT DO UPDATE.

The unique constraint decides whether a row exists, so concurrent writers of
the same key never produce duplicates; the last writer wins on the columns
listed in ``update_columns`` and every other column is left alone.
"""

from typing import Any, Dict, Iterable, Type

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def upsert(
    session: Session,
    model: Type,
    values: Dict[str, Any],
    index_elements: Iterable[str],
    update_columns: Iterable[str],
) -> int:
    """Insert ``values`` or update the conflicting row; return its primary key."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:
        raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")

    stmt = insert(model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(index_elements),
        set_={column: stmt.excluded[column] for column in update_columns},
    ).returning(model.id)

    return session.execute(stmt).scalar_one()
