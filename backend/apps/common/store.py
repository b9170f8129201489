import logging
from contextlib import contextmanager

from django.db import DatabaseError, connection, transaction
from django.db.models import ProtectedError

from apps.common.errors import NotInitializedError, PersistenceError, ReferentialIntegrityError

logger = logging.getLogger(__name__)


def ensure_store_ready() -> None:
    try:
        connection.ensure_connection()
    except DatabaseError as exc:
        logger.error("Database connection unavailable: %s", exc)
        raise NotInitializedError() from exc


@contextmanager
def persist(action: str):
    """Run a write inside a transaction and translate database failures."""
    ensure_store_ready()
    try:
        with transaction.atomic():
            yield
    except ProtectedError as exc:
        logger.warning("Blocked %s: protected references remain", action)
        raise ReferentialIntegrityError() from exc
    except DatabaseError as exc:
        logger.exception("Failed to %s", action)
        raise PersistenceError(f"Failed to {action}.") from exc


def load_or_error(loader, *, what: str):
    """Return ``(rows, None)`` or ``([], message)`` when the read fails."""
    try:
        return loader(), None
    except DatabaseError:
        logger.exception("Failed to load %s", what)
        return [], f"Failed to load {what}."
