"""
studio/utils/transactions.py
----------------------------
One place that owns commit / rollback for public service operations.

    result = run_atomic(session, 'Update Order', OrderSaveResult, work,
                        order_id=order_id)

`work()` validates first, then writes, and returns a successful result.
Whatever it raises is rolled back in full:

    StudioError     → failed result carrying the error kind + message
    SQLAlchemyError → generic "store" failure; original error + context
                      written to the audit log
    anything else   → generic "internal" failure, same audit treatment
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from studio.errors import StudioError, ValidationError
from studio.utils.logging import audit

logger = logging.getLogger(__name__)

STORE_FAILURE_MESSAGE = 'A database error occurred. Nothing was saved; please try again.'


def run_atomic(session, operation: str, result_cls, work, **context):
    try:
        result = work()
        session.commit()
        return result

    except StudioError as exc:
        session.rollback()
        logger.warning(f"{operation} rejected ({exc.kind}): {exc.message}")
        errors = exc.errors if isinstance(exc, ValidationError) else {}
        return result_cls.failed(exc.message, exc.kind, errors)

    except SQLAlchemyError as exc:
        session.rollback()
        audit(f"{operation} Error: {exc}", **context)
        return result_cls.failed(STORE_FAILURE_MESSAGE, 'store')

    except Exception as exc:
        session.rollback()
        logger.exception(f"{operation} crashed")
        audit(f"{operation} Error (unexpected): {exc!r}", **context)
        return result_cls.failed(STORE_FAILURE_MESSAGE, 'internal')
