"""Transaction helpers shared by the service layer."""
from __future__ import annotations

import logging
from typing import Callable, TypeVar

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .network import DEFAULT_OFFLINE_MESSAGE, BackendOfflineError, execute_with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_write(
    db: Session,
    operation: Callable[[], T],
    *,
    error_detail: str,
    offline_error_msg: str = DEFAULT_OFFLINE_MESSAGE,
) -> T:
    """Run a committing ``operation`` under retry, rolling back on failure.

    Database errors that are not worth retrying surface as HTTP 500 with
    ``error_detail``.
    """

    try:
        return execute_with_retry(operation, offline_error_msg=offline_error_msg, session=db)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(error_detail)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error_detail) from exc
    except (BackendOfflineError, HTTPException):
        db.rollback()
        raise


def run_read(db: Session, operation: Callable[[], T], *, offline_error_msg: str = DEFAULT_OFFLINE_MESSAGE) -> T:
    return execute_with_retry(operation, offline_error_msg=offline_error_msg, session=db)


__all__ = ["run_write", "run_read"]
