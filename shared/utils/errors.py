"""
shared/utils/errors.py
Client-facing text for database failures reported inside bulk responses
(broadcast deliveries, CSV import rows).
"""

from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings


def db_error_summary(exc: SQLAlchemyError) -> str:
    """
    The driver's own message, without the SQL statement or bound parameters.
    DEBUG mode returns the full SQLAlchemy text.
    """
    if settings.DEBUG:
        return str(exc)
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else type(exc).__name__
