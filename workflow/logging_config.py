"""Logging configuration using Loguru for structured logging.

Provides contract-aware logging with JSON formatting, rotation, and retention policies.
"""

import sys
import time
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Optional
from loguru import logger


# Remove default handler
logger.remove()


def setup_logging(
    log_dir: str = "logs",
    level: str = "DEBUG",
    rotation: str = "100 MB",
    retention: str = "30 days",
    compression: str = "zip"
) -> None:
    """Configure Loguru logging with structured JSON format.

    Args:
        log_dir: Directory for log files
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        rotation: When to rotate log files
        retention: How long to keep old logs
        compression: Compression format for rotated logs
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()

    # Console handler with colored output
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        level=level,
        colorize=True
    )

    # Main application log
    logger.add(
        log_path / "contract_workflow_{time}.log",
        format="{time} | {level} | {name}:{function}:{line} | {message}",
        level=level,
        rotation=rotation,
        retention=retention,
        compression=compression,
        serialize=False
    )

    # JSON structured log for parsing and analysis
    logger.add(
        log_path / "contract_workflow_json_{time}.log",
        format="{time} | {level} | {name}:{function}:{line} | {message}",
        level=level,
        rotation=rotation,
        retention=retention,
        compression=compression,
        serialize=True
    )

    # Per-contract workflow trail
    def workflow_format(record):
        contract_id = record["extra"].get("contract_id", "unknown")
        operation = record["extra"].get("operation", "unknown")
        return f"{record['time']} | {record['level'].name} | {contract_id} | {operation} | {record['message']}\n"

    logger.add(
        log_path / "workflow_{time}.log",
        format=workflow_format,
        level="INFO",
        rotation=rotation,
        retention=retention,
        compression=compression,
        filter=lambda record: "contract_id" in record["extra"]
    )

    # Error-only log file
    logger.add(
        log_path / "errors_{time}.log",
        format="{time} | {level} | {name}:{function}:{line} | {message}",
        level="ERROR",
        rotation=rotation,
        retention=retention,
        compression=compression
    )

    logger.info("Logging system initialized", log_dir=log_dir, level=level)


def get_contract_logger(contract_id: str, operation: Optional[str] = None):
    """Get a logger bound to a specific contract and optionally an operation.

    Args:
        contract_id: Contract identifier
        operation: Optional workflow operation name

    Returns:
        Logger instance with contract context
    """
    context = {"contract_id": contract_id}
    if operation:
        context["operation"] = operation
    return logger.bind(**context)


def log_workflow_operation(operation: str) -> Callable:
    """Decorator to log a workflow operation with timing.

    The contract id is taken from the first positional argument after
    ``self`` or from the ``contract_id`` keyword.

    Args:
        operation: Name of the workflow operation

    Returns:
        Decorated function with logging
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            contract_id = kwargs.get("contract_id")
            if contract_id is None and len(args) > 1 and isinstance(args[1], str):
                contract_id = args[1]
            op_logger = get_contract_logger(contract_id or "new", operation)

            op_logger.debug(f"Starting {operation}", function=func.__name__)
            start_time = time.perf_counter()
            result = func(*args, **kwargs)
            duration = time.perf_counter() - start_time

            success = getattr(result, "success", True)
            op_logger.log(
                "INFO" if success else "WARNING",
                f"{operation} finished",
                function=func.__name__,
                success=success,
                duration_seconds=round(duration, 4)
            )
            return result

        return wrapper
    return decorator
