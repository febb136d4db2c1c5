"""
Core utilities and configuration for the billing migration service.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.exceptions import FetchError, WriteSweepError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()
"""

__all__ = [
    "settings",
    "setup_logging",
    # Exceptions
    "MigrationException",
    "FetchError",
    "ClassificationError",
    "MappingError",
    "MappingFieldError",
    "UnknownEntityType",
    "WriteError",
    "WriteSweepError",
    "RunStateError",
    "RunAlreadyActiveError",
    "NoResultsError",
    "RetryableError",
    "NonRetryableError",
    "NetworkError",
    "RateLimitError",
    "AuthenticationError",
]
