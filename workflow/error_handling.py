"""Error handling and retry configuration for the contract workflow.

Provides the workflow exception hierarchy, retry logic for store I/O, and
decorators that turn exceptions into uniform WorkflowResult failures.
"""

from functools import wraps
from typing import Any, Callable, Optional, Type
import time
from loguru import logger

from workflow.models import ErrorKind, WorkflowResult


# Custom Exception Classes

class ContractWorkflowError(Exception):
    """Base exception for all contract workflow errors."""
    kind: ErrorKind = ErrorKind.VALIDATION_ERROR


class ContractNotFoundError(ContractWorkflowError):
    """Raised when the referenced contract id does not exist in the store."""
    kind = ErrorKind.NOT_FOUND

    def __init__(self, contract_id: Optional[str] = None):
        super().__init__("Contract not found")
        self.contract_id = contract_id


class NoReviewersAssignedError(ContractWorkflowError):
    """Raised when a review is recorded on a contract without reviewers."""
    kind = ErrorKind.NO_REVIEWERS_ASSIGNED


class NotAssignedReviewerError(ContractWorkflowError):
    """Raised when the reviewing identity is not on the reviewer list."""
    kind = ErrorKind.NOT_ASSIGNED_REVIEWER


class NotAssignedSignerError(ContractWorkflowError):
    """Raised when someone other than the assigned signer tries to sign."""
    kind = ErrorKind.NOT_ASSIGNED_SIGNER


class ReviewersIncompleteError(ContractWorkflowError):
    """Raised when approval is attempted before every reviewer has finished."""
    kind = ErrorKind.REVIEWERS_INCOMPLETE


class WorkflowValidationError(ContractWorkflowError):
    """Raised when required input is missing or malformed."""
    kind = ErrorKind.VALIDATION_ERROR


class InvalidTransitionError(ContractWorkflowError):
    """Raised when an operation is not allowed from the current status."""
    kind = ErrorKind.INVALID_TRANSITION


class ConflictError(ContractWorkflowError):
    """Raised when the stored record version differs from the caller's."""
    kind = ErrorKind.CONFLICT


class StoreError(ContractWorkflowError):
    """Raised when the persistence store cannot be read or written."""
    kind = ErrorKind.STORE_WRITE_FAILURE


# Retry Configuration

class RetryConfig:
    """Configuration for retry logic with exponential backoff."""

    def __init__(
        self,
        attempts: int = 3,
        exp_base: int = 2,
        initial_delay: float = 0.05,
        max_delay: float = 1.0,
    ):
        """Initialize retry configuration.

        Args:
            attempts: Maximum number of attempts
            exp_base: Base for exponential backoff calculation
            initial_delay: Initial delay in seconds
            max_delay: Maximum delay between retries in seconds
        """
        self.attempts = attempts
        self.exp_base = exp_base
        self.initial_delay = initial_delay
        self.max_delay = max_delay

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for a given attempt using exponential backoff.

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Delay in seconds
        """
        delay = self.initial_delay * (self.exp_base ** attempt)
        return min(delay, self.max_delay)


# Default retry configuration for store I/O (e.g. "database is locked")
STORE_RETRY_CONFIG = RetryConfig(
    attempts=3,
    exp_base=2,
    initial_delay=0.05,
    max_delay=1.0,
)


def retry_with_backoff(
    config: RetryConfig = STORE_RETRY_CONFIG,
    exceptions: tuple[Type[Exception], ...] = (Exception,)
) -> Callable:
    """Decorator to retry function execution with exponential backoff.

    Args:
        config: Retry configuration
        exceptions: Tuple of exception types to catch and retry

    Returns:
        Decorated function with retry logic
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            last_exception = None

            for attempt in range(config.attempts):
                try:
                    return func(*args, **kwargs)

                except exceptions as e:
                    last_exception = e

                    if attempt < config.attempts - 1:
                        delay = config.calculate_delay(attempt)
                        logger.warning(
                            f"Attempt {attempt + 1}/{config.attempts} failed, retrying in {delay}s",
                            function=func.__name__,
                            error=str(e),
                            error_type=type(e).__name__
                        )
                        time.sleep(delay)
                    else:
                        logger.error(
                            f"All {config.attempts} attempts failed",
                            function=func.__name__,
                            error=str(e),
                            error_type=type(e).__name__
                        )

            raise last_exception

        return wrapper
    return decorator


def handle_errors(
    error_type: Type[ContractWorkflowError],
    default_return: Any = None,
    reraise: bool = True
) -> Callable:
    """Decorator to handle errors and convert them to custom exception types.

    Args:
        error_type: Custom exception type to raise
        default_return: Default value to return on error (if not reraising)
        reraise: Whether to reraise the exception after logging

    Returns:
        Decorated function with error handling
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            try:
                return func(*args, **kwargs)

            except ContractWorkflowError:
                # Already a workflow exception, just reraise
                raise

            except Exception as e:
                logger.error(
                    f"Error in {func.__name__}",
                    error=str(e),
                    error_type=type(e).__name__
                )

                if reraise:
                    raise error_type(f"Error in {func.__name__}: {str(e)}") from e
                else:
                    return default_return

        return wrapper
    return decorator


def workflow_operation(failure_message: str) -> Callable:
    """Decorator that converts any exception from an engine mutator into a failed result.

    Precondition failures keep their own kind and message. Anything else is
    treated as a persistence failure and reported with ``failure_message``.

    Args:
        failure_message: User-facing message for unexpected failures

    Returns:
        Decorated function that always returns a WorkflowResult
    """
    def decorator(func: Callable[..., WorkflowResult]) -> Callable[..., WorkflowResult]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> WorkflowResult:
            try:
                return func(*args, **kwargs)

            except StoreError as e:
                logger.error(
                    f"{func.__name__} failed to persist",
                    operation=func.__name__,
                    error=str(e),
                )
                return WorkflowResult.fail(ErrorKind.STORE_WRITE_FAILURE, failure_message)

            except ContractWorkflowError as e:
                logger.warning(
                    f"{func.__name__} rejected",
                    operation=func.__name__,
                    error_kind=e.kind.value,
                    reason=str(e),
                )
                return WorkflowResult.fail(e.kind, str(e))

            except Exception as e:
                logger.exception(
                    f"Unexpected error in {func.__name__}",
                    operation=func.__name__,
                    error_type=type(e).__name__,
                )
                return WorkflowResult.fail(ErrorKind.STORE_WRITE_FAILURE, failure_message)

        return wrapper
    return decorator
