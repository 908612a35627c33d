import logging

from sqlalchemy.dialects import mysql, postgresql, sqlite

from models import db

logger = logging.getLogger(__name__)


def run_atomically(operations, session=None):
    """Run each operation against one session and commit them together.

    Every operation is a callable taking the session. If any of them raises,
    nothing is committed: the session is rolled back and the error re-raised.
    Returns the list of the operations' return values.
    """
    session = session or db.session
    results = []
    try:
        for operation in operations:
            results.append(operation(session))
            session.flush()
        session.commit()
    except Exception:
        session.rollback()
        logger.debug("Unit of work rolled back after %d operation(s)", len(results))
        raise
    return results


def upsert(model, values, keys, update_columns, session=None):
    """INSERT a row, or UPDATE `update_columns` when a row with the same `keys` exists.

    Runs as one statement so concurrent writers for the same key never both
    insert. Does not commit.
    """
    session = session or db.session
    dialect = session.get_bind().dialect.name
    changes = {column: values[column] for column in update_columns}

    if dialect == "mysql":
        statement = mysql.insert(model).values(**values).on_duplicate_key_update(**changes)
    elif dialect in ("postgresql", "sqlite"):
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        statement = insert(model).values(**values).on_conflict_do_update(index_elements=keys, set_=changes)
    else:
        raise NotImplementedError(f"Upsert is not supported for the {dialect} dialect")

    session.execute(statement)
