"""
Custom exceptions for permadoc library.

This module defines all custom exceptions used throughout the library
for better error handling and debugging.
"""

from typing import Optional, Dict, Any, List


class PermadocError(Exception):
    """Base exception for all permadoc related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} (Details: {details_str})"
        return self.message


class ConfigurationError(PermadocError):
    """Raised when there are configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.config_key = config_key
        details = details or {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, details)


class InvalidRequestError(PermadocError):
    """Raised for malformed calls, e.g. polling a document that was never posted."""
    pass


class ReadOnlyError(PermadocError):
    """Raised when a write is attempted on a client without a signing wallet."""
    pass


class DocumentError(PermadocError):
    """Base exception for errors tied to a single ledger transaction."""

    def __init__(self, message: str, transaction_id: Optional[str] = None, name: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.transaction_id = transaction_id
        self.name = name
        details = details or {}
        if transaction_id:
            details["transaction_id"] = transaction_id
        if name:
            details["name"] = name
        super().__init__(message, details)


class WriteRejectedError(DocumentError):
    """Raised when the ledger declines or errors a submission."""

    def __init__(self, message: str, transaction_id: Optional[str] = None, name: Optional[str] = None,
                 status: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        self.status = status
        details = details or {}
        if status is not None:
            details["status"] = status
        super().__init__(message, transaction_id=transaction_id, name=name, details=details)


class ConfirmationTimeoutError(DocumentError):
    """Raised when the retry budget is spent waiting for a transaction to be mined."""

    def __init__(self, message: str, transaction_id: Optional[str] = None, attempts: Optional[int] = None,
                 last_status: Optional[int] = None, last_error: Optional[Exception] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.attempts = attempts
        self.last_status = last_status
        self.last_error = last_error
        details = details or {}
        if attempts:
            details["attempts"] = attempts
        if last_status is not None:
            details["last_status"] = last_status
        if last_error:
            details["last_error"] = str(last_error)
        super().__init__(message, transaction_id=transaction_id, details=details)


class UnverifiedOwnerError(DocumentError):
    """Raised when a transaction is not owned by the admin identity under verified_only."""

    def __init__(self, message: str, transaction_id: Optional[str] = None, expected_owner: Optional[str] = None,
                 actual_owner: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.expected_owner = expected_owner
        self.actual_owner = actual_owner
        details = details or {}
        if expected_owner:
            details["expected_owner"] = expected_owner
        if actual_owner:
            details["actual_owner"] = actual_owner
        super().__init__(message, transaction_id=transaction_id, details=details)


class NotADocumentError(DocumentError):
    """Raised when a transaction lacks the system tags that mark it as a document."""

    def __init__(self, message: str, transaction_id: Optional[str] = None,
                 missing: Optional[List[str]] = None, details: Optional[Dict[str, Any]] = None):
        self.missing = missing or []
        details = details or {}
        if missing:
            details["missing"] = ",".join(missing)
        super().__init__(message, transaction_id=transaction_id, details=details)


class DocumentNotFoundError(DocumentError):
    """Raised when the index has no match for a name or tag query."""

    def __init__(self, message: str, name: Optional[str] = None, version: Optional[int] = None,
                 tags: Optional[Dict[str, str]] = None, details: Optional[Dict[str, Any]] = None):
        self.version = version
        self.tags = tags or {}
        details = details or {}
        if version is not None:
            details["version"] = version
        if tags:
            details["tags"] = tags
        super().__init__(message, name=name, details=details)
