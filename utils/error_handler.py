"""
Error handling module for CrewRate.
Provides the application exception hierarchy, error logging and the
FastAPI exception handlers that turn errors into JSON responses.
"""

from __future__ import annotations
import inspect
import logging
import re
from datetime import datetime
from functools import wraps
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CrewRateError(Exception):
    """Base exception for all CrewRate errors"""
    status_code = 400

    def __init__(self, message: str, details: Optional[dict] = None, user_message: Optional[str] = None):
        self.message = message
        self.details = details or {}
        self.user_message = user_message or message
        super().__init__(self.message)


class DatabaseError(CrewRateError):
    """Rate card store errors"""
    status_code = 503


class CalculationError(CrewRateError):
    """Calculation-related errors"""
    status_code = 500


class ValidationError(CrewRateError):
    """Input validation errors"""
    pass


class RateNotFoundError(CrewRateError):
    """No rate card is effective for a pricing key.

    A precondition failure: the caller must abort and persist nothing.
    """
    status_code = 412


class InvariantViolation(CrewRateError):
    """Programmer error, e.g. a shift type missing from the label table."""
    status_code = 500


def log_error(error: Exception, context: Optional[dict] = None) -> str:
    """
    Log an error with full context and return error ID.

    Args:
        error: The exception that occurred
        context: Additional context (operation, parameters)

    Returns:
        Error ID for tracking
    """
    error_id = f"{datetime.now().timestamp():.0f}"

    error_details = {
        'error_id': error_id,
        'error_type': type(error).__name__,
        'error_message': str(error),
        'timestamp': datetime.now().isoformat(),
        'context': context or {}
    }

    if isinstance(error, CrewRateError) and not isinstance(error, InvariantViolation):
        logger.error(f"Application error {error_id}: {error_details}")
    else:
        logger.error(f"Unexpected error {error_id}: {error_details}", exc_info=error)

    return error_id


def safe_database_operation(operation_name: str):
    """
    Decorator for rate card store reads with automatic rollback.

    Usage:
        @safe_database_operation("fetch_rate_cards")
        def find_candidates(self, ...):
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except CrewRateError:
                raise
            except Exception as e:
                conn = kwargs.get('conn')
                if conn is not None:
                    try:
                        conn.rollback()
                        logger.info(f"Rolled back transaction for {operation_name}")
                    except Exception as rollback_error:
                        logger.error(f"Rollback failed for {operation_name}: {rollback_error}")

                if "database" in str(e).lower() or "postgres" in str(e).lower() or "psycopg" in type(e).__module__:
                    raise DatabaseError(
                        f"Database operation failed: {operation_name}",
                        details={'original_error': str(e)},
                        user_message="The rate card store is unavailable. Try again."
                    ) from e
                raise

        return wrapper
    return decorator


def validate_input(validation_rules: dict):
    """
    Decorator for argument validation.

    Usage:
        @validate_input({
            'company_id': {'type': str, 'non_empty': True},
            'quantity': {'min': 0},
        })
        def resolve(company_id, quantity):
            ...
    """
    def decorator(func):
        signature = inspect.signature(func)

        @wraps(func)
        def wrapper(*args, **kwargs):
            bound = signature.bind_partial(*args, **kwargs).arguments
            for param_name, rules in validation_rules.items():
                if param_name not in bound:
                    continue
                value = bound[param_name]

                if 'type' in rules and not isinstance(value, rules['type']):
                    raise ValidationError(
                        f"Invalid type for {param_name}",
                        details={'expected': rules['type'].__name__, 'got': type(value).__name__},
                    )

                if rules.get('non_empty') and not value:
                    raise ValidationError(
                        f"{param_name} is required",
                        details={'param': param_name},
                    )

                if 'min' in rules and value < rules['min']:
                    raise ValidationError(
                        f"{param_name} is below minimum",
                        details={'min': str(rules['min']), 'got': str(value)},
                    )

                if 'max' in rules and value > rules['max']:
                    raise ValidationError(
                        f"{param_name} exceeds maximum",
                        details={'max': str(rules['max']), 'got': str(value)},
                    )

            return func(*args, **kwargs)

        return wrapper
    return decorator


async def handle_application_error(request: Request, exc: CrewRateError) -> JSONResponse:
    """
    Handle application-specific errors with user-friendly messages.
    """
    error_id = log_error(exc, context={'path': request.url.path, 'method': request.method})

    return JSONResponse(
        status_code=exc.status_code,
        content={
            'error': sanitize_error_message(exc.user_message),
            'error_type': type(exc).__name__,
            'error_id': error_id,
            'details': exc.details,
        }
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected errors with generic message (no sensitive info).
    """
    error_id = log_error(exc, context={'path': request.url.path, 'method': request.method})

    return JSONResponse(
        status_code=500,
        content={
            'error': 'An unexpected error occurred',
            'error_id': error_id
        }
    )


def sanitize_error_message(message: str) -> str:
    """
    Remove sensitive information from error messages before showing to users.
    """
    # Remove file paths
    message = re.sub(r'(?:[A-Z]:)?[\\/][\w\\/\-\.]+\.py', '[PATH]', message)

    # Remove SQL queries
    message = re.sub(r'(SELECT|INSERT|UPDATE|DELETE)\s.*', '[QUERY]', message, flags=re.IGNORECASE)

    # Remove stack traces
    message = re.sub(r'File ".*", line \d+.*', '[TRACE]', message)

    return message
