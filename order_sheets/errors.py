"""
Error types for Order Sheets.

Provides specific exception types for the failure modes of document
assembly, with details and suggestions for the caller to display.
"""

from typing import Dict, List, Any


class OrderSheetsError(Exception):
    """Base exception for all Order Sheets errors."""

    def __init__(self, message: str, details: Dict[str, Any] = None, suggestions: List[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.suggestions = suggestions or []

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'details': self.details,
            'suggestions': self.suggestions
        }


class ValidationError(OrderSheetsError):
    """Raised when input records or arguments are invalid."""
    pass


class ConfigurationError(OrderSheetsError):
    """Raised when configuration is invalid or missing."""
    pass


class ProcessingError(OrderSheetsError):
    """Raised when the generation pipeline fails."""
    pass


class AcquisitionError(ProcessingError):
    """Raised when an image cannot be fetched."""

    def __init__(self, url: str, reason: str):
        super().__init__(
            f"Could not acquire image {url}: {reason}",
            details={'url': url, 'reason': reason},
            suggestions=[
                "Check that the image URL is reachable from this machine",
                "Verify the image host allows downloads without a browser session"
            ]
        )


class ImageDecodeError(ProcessingError):
    """Raised when fetched bytes are not a decodable image."""

    def __init__(self, url: str, reason: str):
        super().__init__(
            f"Could not decode image {url}: {reason}",
            details={'url': url, 'reason': reason},
            suggestions=["Ensure the URL points to a JPG, PNG or WEBP image"]
        )


class BarcodeError(ProcessingError):
    """Raised when a barcode cannot be rendered for a payload."""
    pass


class PlacementError(ProcessingError):
    """Raised when an image cannot be embedded into the document."""
    pass


class DocumentSaveError(ProcessingError):
    """Raised when the finished document cannot be written."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Failed to save document {path}: {reason}",
            details={'path': path, 'reason': reason},
            suggestions=[
                "Check that the output folder exists and is writable",
                "Free up disk space and retry the generation"
            ]
        )


class OrderFetchError(ProcessingError):
    """Raised when the order service returns an unusable response."""

    def __init__(self, reason: str, url: str = None):
        super().__init__(
            f"Failed to fetch orders: {reason}",
            details={'url': url, 'reason': reason},
            suggestions=[
                "Retry in a few moments",
                "Verify ORDERS_API_URL points to the order service"
            ]
        )


class GenerationInProgressError(OrderSheetsError):
    """Raised when a document for the same target is already being generated."""

    def __init__(self, target: str):
        super().__init__(
            f"A document for {target} is already being generated",
            details={'target': target},
            suggestions=["Wait for the current download to finish"]
        )


def create_error_recovery_suggestions(error: Exception) -> List[str]:
    """Recovery suggestions for any error, with a generic fallback."""
    suggestions = []

    if isinstance(error, OrderSheetsError):
        suggestions.extend(error.suggestions)

    if not suggestions:
        suggestions = [
            "Retry the download",
            "Contact support if the problem persists"
        ]

    return suggestions
