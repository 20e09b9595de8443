"""
Error handling utilities for the travel deal notifier.

This module defines the error classes raised across the system, error
tracking for monitoring, and graceful degradation when the backing store
is unreachable.
"""

import functools
import inspect
import traceback
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from .logging import get_logger


class InputError(ValueError):
    """Malformed caller input: missing user id or an invalid deal record."""


class CollaboratorUnavailable(Exception):
    """An external collaborator (preference, history or queue store) failed."""

    def __init__(self, collaborator: str, message: str):
        super().__init__(f"{collaborator} unavailable: {message}")
        self.collaborator = collaborator


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""

    STORE = "store"
    CONFIGURATION = "configuration"
    DATA_VALIDATION = "data_validation"
    DELIVERY = "delivery"
    SCORING = "scoring"
    SYSTEM = "system"


@dataclass
class ErrorInfo:
    """Information about an error occurrence."""

    timestamp: datetime
    component: str
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    exception_type: str
    traceback: str
    context: Dict[str, Any]


class ErrorTracker:
    """
    Tracks errors and provides statistics for monitoring.
    """

    def __init__(self, max_errors: int = 1000):
        """
        Initialize error tracker.

        Args:
            max_errors: Maximum number of errors to keep in memory
        """
        self.max_errors = max_errors
        self.errors: List[ErrorInfo] = []
        self.error_counts: Dict[str, int] = {}
        self.logger = get_logger("error_tracker")

    def record_error(
        self,
        component: str,
        category: ErrorCategory,
        severity: ErrorSeverity,
        message: str,
        exception: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> ErrorInfo:
        """
        Record an error occurrence.

        Args:
            component: Component where error occurred
            category: Error category
            severity: Error severity
            message: Error message
            exception: Exception object if available
            context: Additional context information

        Returns:
            ErrorInfo object
        """
        error_info = ErrorInfo(
            timestamp=datetime.now(),
            component=component,
            category=category,
            severity=severity,
            message=message,
            exception_type=type(exception).__name__ if exception else "Unknown",
            traceback="".join(traceback.format_exception(exception))
            if exception
            else "",
            context=context or {},
        )

        self.errors.append(error_info)
        if len(self.errors) > self.max_errors:
            self.errors.pop(0)

        error_key = f"{component}.{category.value}.{severity.value}"
        self.error_counts[error_key] = self.error_counts.get(error_key, 0) + 1

        self.logger.warning(
            f"Error recorded: {message}",
            extra={
                "component": component,
                "category": category.value,
                "severity": severity.value,
                "exception_type": error_info.exception_type,
                "context": context,
            },
        )

        return error_info

    def get_error_stats(self) -> Dict[str, Any]:
        """Get error statistics."""
        last_hour = datetime.now() - timedelta(hours=1)

        return {
            "total_errors": len(self.errors),
            "errors_last_hour": len([e for e in self.errors if e.timestamp >= last_hour]),
            "error_counts": self.error_counts.copy(),
            "category_breakdown": {
                category.value: len([e for e in self.errors if e.category == category])
                for category in ErrorCategory
            },
        }

    def clear(self):
        """Forget all recorded errors."""
        self.errors.clear()
        self.error_counts.clear()


class GracefulDegradation:
    """
    Manages graceful degradation of system functionality.

    Lets the notification pipeline keep answering (with no notifications)
    while a collaborator is down, and remembers why.
    """

    def __init__(self):
        self.degraded_components: Dict[str, Dict[str, Any]] = {}
        self.logger = get_logger("graceful_degradation")

    def degrade_component(
        self,
        component: str,
        reason: str,
        fallback_behavior: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    ):
        """Mark a component as degraded."""
        self.degraded_components[component] = {
            "reason": reason,
            "fallback_behavior": fallback_behavior,
            "severity": severity.value,
            "timestamp": datetime.now().isoformat(),
        }

        self.logger.warning(
            f"Component degraded: {component}",
            extra={
                "component": component,
                "reason": reason,
                "fallback_behavior": fallback_behavior,
            },
        )

    def restore_component(self, component: str):
        """Restore a component from degraded state."""
        if component in self.degraded_components:
            del self.degraded_components[component]
            self.logger.info(f"Component restored: {component}")

    def is_degraded(self, component: str) -> bool:
        """Check if a component is in degraded state."""
        return component in self.degraded_components

    def get_all_degraded(self) -> Dict[str, Dict[str, Any]]:
        """Get all degraded components."""
        return self.degraded_components.copy()


_error_tracker: Optional[ErrorTracker] = None
_degradation_manager: Optional[GracefulDegradation] = None


def get_error_tracker() -> ErrorTracker:
    """Get the process-wide error tracker instance."""
    global _error_tracker
    if _error_tracker is None:
        _error_tracker = ErrorTracker()
    return _error_tracker


def get_degradation_manager() -> GracefulDegradation:
    """Get the process-wide graceful degradation manager."""
    global _degradation_manager
    if _degradation_manager is None:
        _degradation_manager = GracefulDegradation()
    return _degradation_manager


def with_error_handling(
    component: str,
    category: ErrorCategory,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    handled: Tuple[Type[Exception], ...] = (Exception,),
    fallback_value: Any = None,
    suppress_exceptions: bool = False,
):
    """
    Decorator for error recording and fail-safe fallbacks.

    Only exceptions listed in ``handled`` are recorded and, when
    ``suppress_exceptions`` is set, replaced by ``fallback_value``; anything
    else propagates untouched. A callable ``fallback_value`` is invoked to
    build a fresh fallback per call.

    Args:
        component: Component name
        category: Error category
        severity: Error severity
        handled: Exception types this decorator is responsible for
        fallback_value: Value to return on failure
        suppress_exceptions: Whether to suppress handled exceptions
    """

    def decorator(func: Callable) -> Callable:
        def _handle(e: Exception, args):
            # Methods of objects carrying their own tracker record there.
            tracker = getattr(args[0], "error_tracker", None) if args else None
            if not isinstance(tracker, ErrorTracker):
                tracker = get_error_tracker()
            tracker.record_error(
                component=component,
                category=category,
                severity=severity,
                message=f"Error in {func.__name__}: {str(e)}",
                exception=e,
                context={"function": func.__name__},
            )
            if not suppress_exceptions:
                raise e
            get_logger(component).warning(
                f"Suppressing exception in {func.__name__}: {str(e)}"
            )
            return fallback_value() if callable(fallback_value) else fallback_value

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except handled as e:
                return _handle(e, args)

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except handled as e:
                return _handle(e, args)

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
