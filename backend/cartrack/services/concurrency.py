# Overview: Transaction and row-locking helpers shared by the lifecycle services.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError


class ConcurrencyError(ConflictError):
    """Another request changed the same cartridge first; the caller may retry."""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; the cartridge version_id
    counter still catches the lost update there.
    """
    return query.with_for_update()


@contextmanager
def atomic(description: str = "operation"):
    """
    One request, one transaction.

    Commits when the block finishes; rolls back and re-raises on any error.
    Stale optimistic-lock writes surface as ConcurrencyError. Nothing is
    retried here: transient failures go back to the caller.
    """
    try:
        yield db.session
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConcurrencyError(
            f"Concurrent modification detected during {description}; reload and try again"
        ) from exc
    except Exception:
        db.session.rollback()
        raise
