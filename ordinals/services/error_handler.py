"""
Error handling and recovery service for Ordinals indexer.

This service classifies failures raised while ingesting chainhook payloads,
logs each category at its severity, and provides the retry policy used by
outbound calls to the chainhook node.
"""

from typing import Any, Dict

import structlog

from ordinals.config import settings
from ordinals.utils.exceptions import (
    InvariantViolationError,
    MalformedEventError,
    OrderingError,
    StorageError,
)


class ErrorHandler:
    """Handle ingestion errors and recovery"""

    def __init__(self):
        """Initialize the error handler"""
        self.logger = structlog.get_logger()

    def handle_ingestion_error(self, error: Exception, context: Dict[str, Any]) -> bool:
        """
        Log an error that aborted a block's unit of work.

        Args:
            error: The exception that occurred
            context: Additional context about the block being processed

        Returns:
            True if the upstream may retry the delivery as-is, False otherwise
        """
        if isinstance(error, InvariantViolationError):
            self.logger.critical(
                "Ledger invariant violated",
                error=str(error),
                error_code=error.error_code,
                context=context,
            )
            return False

        if isinstance(error, OrderingError):
            self.logger.warning(
                "Block rejected as out of sequence",
                error=str(error),
                error_code=error.error_code,
                tip_height=error.tip_height,
                context=context,
            )
            return False

        if isinstance(error, MalformedEventError):
            self.logger.error(
                "Malformed block event",
                error=str(error),
                error_code=error.error_code,
                context=context,
            )
            return False

        if isinstance(error, StorageError):
            self.logger.error("Storage failure, block not committed", error=str(error), context=context)
            return True

        self.logger.error("Unexpected ingestion error", error=str(error), context=context)
        return True

    def handle_request_error(self, error: Exception, context: Dict[str, Any]) -> bool:
        """
        Handle failed requests to the chainhook node.

        Args:
            error: The exception that occurred
            context: Additional context about the error

        Returns:
            True if the operation should be retried, False otherwise
        """
        self.logger.error("Chainhook node request failed", error=str(error), context=context)
        return True

    def should_retry(self, attempt: int) -> bool:
        """
        Determine if an operation should be retried.

        Args:
            attempt: The current retry attempt number

        Returns:
            True if the operation should be retried, False otherwise
        """
        return attempt < settings.MAX_RETRIES

    def get_retry_delay(self, attempt: int) -> int:
        """
        Calculate the retry delay with exponential backoff.

        Args:
            attempt: The current retry attempt number

        Returns:
            The delay in seconds
        """
        delay = settings.RETRY_DELAY * (2 ** (attempt - 1))
        self.logger.info("Retrying operation", attempt=attempt, delay=delay)
        return delay
