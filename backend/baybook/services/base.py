# backend/baybook/services/base.py
"""
Base Service Pattern for the bay booking engine.

Provides common functionality for all service classes including:
- Transaction management
- Logging
- Performance monitoring
- The injected clock every time-based decision reads
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import Clock, SystemClock
from ..core.exceptions import ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """
    Base class for all service layer components.

    Provides common patterns for:
    - Database session management
    - Logging
    - Transaction handling
    - Performance monitoring
    """

    # Class-level metrics storage
    _class_metrics: Dict[str, Dict[str, Dict[str, float]]] = {}

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        """
        Initialize base service.

        Args:
            db: Database session
            clock: Time source; wall-clock UTC when omitted
        """
        self.db = db
        self.clock: Clock = clock or SystemClock()
        self.logger = logging.getLogger(self.__class__.__name__)

    def now(self):
        return self.clock.now()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Context manager for database transactions.

        Usage:
            with self.transaction():
                self.repository.update(...)
                # commit is handled automatically
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except SQLAlchemyError as e:
            self.logger.error(f"Transaction failed: {str(e)}")
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {str(e)}")
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("reserve_booking")
            def reserve_booking(self, ...):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                start_time = time.perf_counter()
                success = False
                error_type = None

                try:
                    result = func(self, *args, **kwargs)
                    success = True
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - start_time

                    if hasattr(self, "_record_metric"):
                        self._record_metric(operation_name, elapsed, success)

                    if elapsed > SLOW_OPERATION_SECONDS and hasattr(self, "logger"):
                        self.logger.warning(
                            f"Slow operation detected: {operation_name} took {elapsed:.2f}s"
                        )

                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="success" if success else "error",
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator

    def _record_metric(self, operation: str, elapsed: float, success: bool) -> None:
        class_name = self.__class__.__name__
        metrics = BaseService._class_metrics.setdefault(class_name, {})
        metric_data = metrics.setdefault(
            operation,
            {
                "count": 0,
                "total_time": 0.0,
                "success_count": 0,
                "failure_count": 0,
                "max_time": 0.0,
            },
        )
        metric_data["count"] += 1
        metric_data["total_time"] += elapsed
        metric_data["max_time"] = max(metric_data["max_time"], elapsed)
        if success:
            metric_data["success_count"] += 1
        else:
            metric_data["failure_count"] += 1

    def get_metrics(self) -> Dict[str, Dict[str, float]]:
        """Per-operation counters for this service class."""
        return dict(BaseService._class_metrics.get(self.__class__.__name__, {}))
