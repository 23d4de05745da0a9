# stalk/services/base.py
"""
Service base class for the sTalk backend.

Services own their session's unit of work: ``transaction()`` commits on
success and turns store failures into ``StoreException``. The
``measure_operation`` decorator times sync and async methods alike and feeds
the Prometheus registry.
"""

import asyncio
from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException, StoreException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class _OperationTimer:
    """Times one call of a measured method and reports it when finished."""

    def __init__(self, owner: Any, operation_name: str) -> None:
        self.owner = owner
        self.operation_name = operation_name
        self.started = time.perf_counter()
        self.error_type: Optional[str] = None

    def failed(self, exc: BaseException) -> None:
        self.error_type = type(exc).__name__

    def finish(self) -> None:
        elapsed = time.perf_counter() - self.started
        owner_logger = getattr(self.owner, "logger", logger)
        if elapsed > SLOW_OPERATION_SECONDS:
            owner_logger.warning(
                "Slow operation detected: %s took %.2fs", self.operation_name, elapsed
            )
        try:
            prometheus_metrics.record_service_operation(
                service=self.owner.__class__.__name__,
                operation=self.operation_name,
                duration=elapsed,
                status="error" if self.error_type else "success",
                error_type=self.error_type,
            )
        except Exception as exc:  # metrics must never break the operation
            logger.debug("Failed to record metrics for %s: %s", self.operation_name, exc)


class BaseService:
    """Session-bound service with a per-class logger."""

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Run a block as one unit of work.

            with self.transaction():
                self.repository.create(...)

        Commits when the block finishes. Store failures roll back and surface
        as StoreException; anything else rolls back and propagates unchanged.
        """
        try:
            yield self.db
            self.db.commit()
        except (SQLAlchemyError, RepositoryException) as exc:
            self.logger.error("Transaction failed: %s", exc)
            self.db.rollback()
            raise StoreException(f"Database operation failed: {exc}") from exc
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Record duration and outcome of a service method.

        Also usable on classes outside the BaseService hierarchy; a ``logger``
        attribute is used for slow-call warnings when present.
        """

        def decorator(func: F) -> F:
            if asyncio.iscoroutinefunction(func):

                @wraps(func)
                async def async_wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                    timer = _OperationTimer(self, operation_name)
                    try:
                        return await func(self, *args, **kwargs)
                    except Exception as exc:
                        timer.failed(exc)
                        raise
                    finally:
                        timer.finish()

                return cast(F, async_wrapper)

            @wraps(func)
            def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                timer = _OperationTimer(self, operation_name)
                try:
                    return func(self, *args, **kwargs)
                except Exception as exc:
                    timer.failed(exc)
                    raise
                finally:
                    timer.finish()

            return cast(F, wrapper)

        return decorator
