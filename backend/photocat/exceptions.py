"""
Photocat Backend — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for every failure the upload pipeline
       and the record CRUD layer can produce.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return the `{error, details?}` JSON envelope with the right status.
Who:   Raised by services; caught by global handlers.

Exception Hierarchy:
    PhotocatError (base)               → 500
    ├── ClientInputError               → 400 (message returned verbatim)
    │   ├── PayloadTooLargeError       → 400 (upload over the size limit)
    │   ├── UnsupportedMediaTypeError  → 400 (declared type not allowed)
    │   └── UnsupportedFormatError     → 400 (bytes do not decode as an image)
    ├── NotFoundError                  → 404
    ├── WriteConflictError             → 409 (after the local retry budget)
    ├── ProcessingError                → 500 (transcode failed)
    ├── StoreUnavailableError          → 500 (blob store transport/auth failure)
    └── DatabaseError                  → 500 (record store failure)

Client-facing text:
    4xx errors surface `message` as-is. 5xx errors return a generic `error`
    string; `message` becomes `details` and `context` is only logged.
"""

from typing import Any, Dict, Optional


class PhotocatError(Exception):
    """
    Base exception for all Photocat application errors.

    Attributes:
        message:  Human-readable error description
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ClientInputError(PhotocatError):
    """
    Raised when client input fails validation.

    When:    Bad multipart body, missing file, disallowed type, size exceeded,
             malformed record payload.
    HTTP:    400 Bad Request

    Example response:
        {"error": "File type 'application/pdf' is not supported. Allowed: ..."}
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid request",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class PayloadTooLargeError(ClientInputError):
    """
    Raised the moment an upload stream exceeds the configured maximum.

    The stream is abandoned at that point; nothing has been decoded.
    """

    def __init__(self, max_size: int, context: Optional[Dict[str, Any]] = None):
        max_mb = max_size / (1024 * 1024)
        ctx = context or {}
        ctx["max_size"] = max_size
        super().__init__(
            message=f"File size exceeds maximum of {max_mb:.0f}MB. Please upload a smaller image.",
            field="image",
            context=ctx,
        )
        self.max_size = max_size


class UnsupportedMediaTypeError(ClientInputError):
    """Raised when the declared content-type of the file part is not allowed."""

    def __init__(
        self,
        content_type: str,
        allowed: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        allowed = sorted(allowed or [])
        ctx = context or {}
        ctx.update({"content_type": content_type, "allowed": allowed})
        super().__init__(
            message=(
                f"File type '{content_type or 'unknown'}' is not supported. "
                f"Allowed types: {', '.join(allowed)}"
            ),
            field="image",
            context=ctx,
        )
        self.content_type = content_type


class UnsupportedFormatError(ClientInputError):
    """
    Raised when the uploaded bytes cannot be decoded as an image.

    The declared type passed the allow-list but the content did not match
    it (truncated file, renamed document, decompression bomb).
    """

    def __init__(
        self,
        message: str = "The uploaded file could not be decoded as an image.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, field="image", context=context)


class NotFoundError(PhotocatError):
    """
    Raised when a requested record does not exist.

    HTTP:    404 Not Found
    """

    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class WriteConflictError(PhotocatError):
    """
    Raised when a record write loses a race with a concurrent writer.

    What:    Optimistic version check failed, or the database reported a
             serialization failure / deadlock.
    HTTP:    409 Conflict, but only after the retry combinator has used up
             its attempts. Inside the budget it is retried silently.
    """

    status_code = 409

    def __init__(
        self,
        message: str = "Write conflict, please retry",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ProcessingError(PhotocatError):
    """
    Raised when transcoding fails for a reason other than undecodable input.

    HTTP:    500 Internal Server Error. Not retried.
    """

    def __init__(
        self,
        message: str = "Image processing failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StoreUnavailableError(PhotocatError):
    """
    Raised when the blob store cannot be reached or rejects our credentials.

    HTTP:    500 Internal Server Error. No automatic retry.
    Note:    The record-delete path catches this and only logs it.
    """

    def __init__(
        self,
        message: str = "Blob storage is unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(PhotocatError):
    """
    Raised when record store operations fail unexpectedly.

    The message returned to the client is always generic; the SQL error is
    logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
