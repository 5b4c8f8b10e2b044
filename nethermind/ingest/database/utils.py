from typing import Any, Sequence, Type

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import DeclarativeBase, Session

from nethermind.ingest.exceptions import DatabaseError


def session_dialect(db_session: Session) -> str:
    return db_session.get_bind().dialect.name


def dialect_insert(db_session: Session, db_model: Type[DeclarativeBase]):
    """
    Returns an INSERT construct for the session's database dialect.  Postgres and SQLite both support the
    ``ON CONFLICT`` clauses used by the ledger writers.
    """
    match session_dialect(db_session):
        case "postgresql":
            return postgresql.insert(db_model)
        case "sqlite":
            return sqlite.insert(db_model)
        case other:
            raise DatabaseError(f"Unsupported database dialect '{other}'.  Ledger writes require Postgres or SQLite")


def insert_ignore(db_session: Session, db_model: Type[DeclarativeBase], rows: Sequence[dict[str, Any]]):
    """Inserts rows, ignoring rows whose primary key already exists"""
    if len(rows) == 0:
        return

    primary_keys = [col.name for col in db_model.__table__.primary_key.columns]  # type: ignore[attr-defined]
    statement = dialect_insert(db_session, db_model).values(list(rows))
    db_session.execute(statement.on_conflict_do_nothing(index_elements=primary_keys))
