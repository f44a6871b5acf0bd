from contextlib import contextmanager
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError


# Dialekte mit atomarem INSERT ... ON CONFLICT DO UPDATE
UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}

# Treiber lehnen Werte teils ohne DBAPI-Fehler ab (z.B. sqlite3 bei int > 64 Bit)
STORE_ERRORS = (SQLAlchemyError, OverflowError, ValueError, TypeError)


class StoreError(Exception):
    """Single failure signal for anything the store rejects."""


class PersistenceGateway:
    """
    Only component that writes to the store. The session is handed in by the caller,
    one gateway per unit of work.
    """

    def __init__(self, session):
        self.session = session

    def append(self, model, record):
        try:
            row = model(**record)
            self.session.add(row)
            self.session.flush()
            return row
        except STORE_ERRORS as e:
            raise StoreError(f"Append into {model.__tablename__} failed: {e}") from e

    def upsert(self, model, key, record):
        """
        Insert-or-update on the natural key. Every column in record is overwritten on conflict,
        columns outside of record keep their stored value.
        """
        dialect = self.session.get_bind().dialect.name
        insert = UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise StoreError(f"Upsert not supported for dialect '{dialect}'")

        stmt = insert(model.__table__).values(**key, **record)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(key),
            set_={column: stmt.excluded[column] for column in record}
        )
        try:
            self.session.execute(stmt)
        except STORE_ERRORS as e:
            raise StoreError(f"Upsert into {model.__tablename__} failed for {key}: {e}") from e

    @contextmanager
    def transaction(self):
        try:
            yield self
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Commit failed: {e}") from e
        except Exception:
            self.session.rollback()
            raise
