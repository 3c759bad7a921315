"""
Photocat Backend — Streaming Multipart Reader
===============================================

What:  Incremental multipart/form-data parser that extracts exactly one
       image file part while the request body is still arriving.
How:   Wraps python-multipart's low-level MultipartParser. Chunks are fed in
       as they are received; parser callbacks check the part headers and
       count file bytes, raising as soon as a limit is crossed.

Why not FastAPI's UploadFile:
    UploadFile is only handed to the route after the whole body has been
    spooled, so a 2 GB upload would be read completely before the size check
    could reject it. Here the check fires on the chunk that crosses the limit.

Checks, in the order they can fire:
    1. Request content-type must be multipart/form-data with a boundary
    2. Whole body may not exceed max_size + MULTIPART_OVERHEAD
    3. Part headers finished → declared content-type must be allow-listed
       (before a single file byte is buffered)
    4. File bytes may not exceed max_size
    5. At end: exactly one non-empty file part in the expected field
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from photocat.exceptions import (
    ClientInputError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
)

logger = logging.getLogger(__name__)

# Room for boundaries, part headers and small form fields around the file
MULTIPART_OVERHEAD = 64 * 1024

# Browsers and some clients send the non-standard alias
CONTENT_TYPE_ALIASES = {"image/jpg": "image/jpeg", "image/pjpeg": "image/jpeg"}


def normalize_content_type(value: Optional[str]) -> str:
    if not value:
        return ""
    ctype, _ = parse_options_header(value)
    normalized = ctype.decode("latin-1").strip().lower()
    return CONTENT_TYPE_ALIASES.get(normalized, normalized)


@dataclass
class ReceivedFile:
    """The buffered file part of an upload."""

    filename: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


class MultipartImageReader:
    """
    One-shot reader for a single upload request.

    Usage:
        reader = MultipartImageReader(request.headers["content-type"], ...)
        async for chunk in request.stream():
            reader.feed(chunk)
        received = reader.finish()
    """

    def __init__(
        self,
        content_type: Optional[str],
        field_name: str,
        max_size: int,
        allowed_types: FrozenSet[str],
    ):
        ctype, params = parse_options_header(content_type or "")
        if ctype.lower() != b"multipart/form-data":
            raise ClientInputError(
                message="Upload must be sent as multipart/form-data",
                context={"content_type": content_type},
            )
        boundary = params.get(b"boundary")
        if not boundary:
            raise ClientInputError(message="Multipart boundary is missing")

        self.field_name = field_name
        self.max_size = max_size
        self.allowed_types = allowed_types

        self._received = 0
        self._file_size = 0
        self._chunks: List[bytes] = []
        self._filename: Optional[str] = None
        self._content_type: Optional[str] = None
        self._capturing = False
        self._type_check_pending = False
        self._complete = False

        self._headers: Dict[bytes, bytes] = {}
        self._header_field = bytearray()
        self._header_value = bytearray()

        self._parser = MultipartParser(
            boundary,
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_end": self._on_end,
            },
        )

    # ── Feeding ───────────────────────────────────────────────────────────

    def feed(self, chunk: bytes) -> None:
        """Parse the next body chunk. Raises as soon as a limit is crossed."""
        if not chunk:
            return
        self._received += len(chunk)
        if self._received > self.max_size + MULTIPART_OVERHEAD:
            logger.warning("Upload body exceeded %d bytes, aborting stream", self._received)
            raise PayloadTooLargeError(self.max_size, context={"received": self._received})
        try:
            self._parser.write(chunk)
        except MultipartParseError as e:
            raise ClientInputError(
                message="Malformed multipart body",
                context={"error": str(e)},
            ) from e

    def finish(self) -> ReceivedFile:
        """Validate the completed body and return the file part."""
        try:
            self._parser.finalize()
        except MultipartParseError as e:
            raise ClientInputError(message="Malformed multipart body", context={"error": str(e)}) from e

        if not self._complete:
            raise ClientInputError(message="Multipart body ended before the closing boundary")
        if self._filename is None:
            raise ClientInputError(
                message=f"No file uploaded. Send the image in the '{self.field_name}' field.",
                field=self.field_name,
            )
        if self._file_size == 0:
            raise ClientInputError(message="Uploaded file is empty", field=self.field_name)

        return ReceivedFile(
            filename=self._filename,
            content_type=self._content_type or "",
            data=b"".join(self._chunks),
        )

    # ── Parser Callbacks ──────────────────────────────────────────────────

    def _on_part_begin(self) -> None:
        self._headers = {}
        self._capturing = False

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers[bytes(self._header_field).lower()] = bytes(self._header_value)
        self._header_field.clear()
        self._header_value.clear()

    def _on_headers_finished(self) -> None:
        _, params = parse_options_header(self._headers.get(b"content-disposition", b""))
        name = params.get(b"name", b"").decode("utf-8", "replace")
        if name != self.field_name:
            return

        filename = params.get(b"filename")
        if filename is None:
            raise ClientInputError(
                message=f"Field '{self.field_name}' must contain a file",
                field=self.field_name,
            )
        if self._filename is not None:
            raise ClientInputError(message="Only one image may be uploaded per request", field=self.field_name)

        content_type = normalize_content_type(self._headers.get(b"content-type", b"").decode("latin-1"))
        # An empty <input type=file> arrives as filename="" with
        # application/octet-stream; its type only matters if bytes follow.
        self._type_check_pending = filename == b""
        if not self._type_check_pending:
            self._check_content_type(content_type)

        self._filename = filename.decode("utf-8", "replace")
        self._content_type = content_type
        self._capturing = True

    def _check_content_type(self, content_type: str) -> None:
        if content_type not in self.allowed_types:
            raise UnsupportedMediaTypeError(content_type, allowed=list(self.allowed_types))

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if not self._capturing or end <= start:
            return
        if self._type_check_pending:
            self._check_content_type(self._content_type or "")
            self._type_check_pending = False
        self._file_size += end - start
        if self._file_size > self.max_size:
            logger.warning(
                "File part '%s' exceeded %d bytes, aborting stream",
                self._filename,
                self.max_size,
            )
            raise PayloadTooLargeError(self.max_size, context={"filename": self._filename})
        self._chunks.append(data[start:end])

    def _on_part_end(self) -> None:
        if self._capturing and self._type_check_pending:
            # Unnamed part with no bytes: nothing was selected
            self._filename = None
            self._content_type = None
            self._type_check_pending = False
        self._capturing = False

    def _on_end(self) -> None:
        self._complete = True
