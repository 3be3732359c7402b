"""Transaction helpers around the shared SQLAlchemy session."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .exceptions import LedgerError, StorageFailure
from .extensions import db


@contextmanager
def unit_of_work(action: str, *, commit: bool = True) -> Iterator[Session]:
    """Run a block as one transaction.

    On a storage error everything written inside the block is rolled back and a
    ``StorageFailure`` is raised. Domain errors also roll back and propagate
    unchanged. With ``commit=False`` the block is a guarded read.
    """
    session = db.session
    try:
        yield session
        if commit:
            session.commit()
    except LedgerError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        raise StorageFailure(f"Failed to {action}", cause=exc) from exc
