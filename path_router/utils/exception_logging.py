"""
Exception formatting and logging that never raises, including for exception
groups raised out of task groups (e.g. by anyio inside streamed responses).
"""

import logging


def _safe_str(obj) -> str:
    """
    Safely convert an object to string, handling cases where __str__ or __repr__ might fail.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _safe_get_exceptions(exception_group) -> list:
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def find_exception_in_exception_groups(exception: BaseException, target_type):
    """
    Recursively search an exception and its sub-exceptions for the target type.

    Returns:
        The first exception matching the target type, or None if not found
    """
    if isinstance(exception, target_type):
        return exception
    if hasattr(exception, "exceptions"):
        for sub_exc in _safe_get_exceptions(exception):
            found = find_exception_in_exception_groups(sub_exc, target_type)
            if found is not None:
                return found
    return None


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with its traceback, and each sub-exception of a group.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]", "[Routes]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        sub_exceptions = _safe_get_exceptions(exception) if exception is not None else []
        if sub_exceptions:
            logger.log(
                level,
                f"{prefix} Exception with {len(sub_exceptions)} sub-exceptions: {_safe_str(exception)}",
            )
            for i, sub_exc in enumerate(sub_exceptions):
                logger.log(
                    level,
                    f"{prefix} Sub-exception {i+1}: {type(sub_exc).__name__}: {_safe_str(sub_exc)}",
                    exc_info=sub_exc,
                )
        else:
            logger.log(
                level,
                f"{prefix} Exception: {_safe_str(exception)}",
                exc_info=exception if exception is not None else False,
            )
    except Exception:
        # Logging must never take the request down with it
        try:
            logger.log(level, f"{prefix} Exception (logging failed)")
        except Exception:
            pass


def format_exception_message(exception: BaseException) -> str:
    """
    Format an exception message, including sub-exceptions for TaskGroup errors.

    Returns:
        A formatted string describing the exception
    """
    if exception is None:
        return "None"

    main_str = _safe_str(exception)
    sub_exceptions = _safe_get_exceptions(exception)
    if not sub_exceptions:
        return main_str or type(exception).__name__

    joined = "; ".join(
        f"{type(sub_exc).__name__}: {_safe_str(sub_exc)}" for sub_exc in sub_exceptions
    )
    return f"{main_str} (Sub-exceptions: {joined})"
