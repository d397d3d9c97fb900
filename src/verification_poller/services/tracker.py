"""
Uploaded document tracking.

Status requests are only meaningful for documents that were successfully
uploaded. The tracker records those document IDs with their upload time,
which the 404 retry policy uses to tell "not processed yet" from "never
existed".
"""

import logging
import re
import time
from collections.abc import Callable

from ..utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

GUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def validate_document_id_format(document_id: object) -> str | None:
    """
    Validate that a document ID is a GUID.

    Args:
        document_id: Value to validate

    Returns:
        None if valid, otherwise a human-readable error message
    """
    if document_id is None or document_id == "":
        return "Document ID is required and cannot be null or empty."
    if not isinstance(document_id, str):
        return "Document ID must be a string."

    trimmed = document_id.strip()
    if not trimmed:
        return "Document ID cannot be empty or contain only whitespace."
    if len(trimmed) != 36:
        return (
            "Document ID must be 36 characters long (GUID format). "
            f"Received: {len(trimmed)} characters."
        )
    if not GUID_PATTERN.match(trimmed):
        return "Document ID must be in valid GUID format (xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx)."
    return None


def is_valid_document_id(document_id: object) -> bool:
    return validate_document_id_format(document_id) is None


class DocumentTracker:
    """
    Registry of successfully uploaded document IDs.

    Attributes:
        _uploads: Mapping of document ID to monotonic upload time (seconds)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._uploads: dict[str, float] = {}
        self._clock = clock

    def track(self, document_id: str, uploaded_at: float | None = None) -> None:
        """
        Record a successfully uploaded document.

        Args:
            document_id: Document GUID
            uploaded_at: Monotonic upload time, defaults to now

        Raises:
            ValidationError: If the ID is not a GUID
        """
        error = validate_document_id_format(document_id)
        if error is not None:
            raise ValidationError(error)
        self._uploads[document_id] = uploaded_at if uploaded_at is not None else self._clock()
        logger.debug(f"Tracking uploaded document {document_id}")

    def untrack(self, document_id: str) -> bool:
        """Stop tracking a document. Returns True if it was tracked."""
        removed = self._uploads.pop(document_id, None) is not None
        if removed:
            logger.debug(f"Stopped tracking document {document_id}")
        return removed

    def is_tracked(self, document_id: str) -> bool:
        return is_valid_document_id(document_id) and document_id in self._uploads

    def tracked_ids(self) -> list[str]:
        return list(self._uploads)

    def clear(self) -> int:
        """
        Forget every tracked document.

        Returns:
            Number of documents that were tracked
        """
        count = len(self._uploads)
        self._uploads.clear()
        logger.info(f"Cleared {count} tracked documents")
        return count

    def time_since_upload_ms(self, document_id: str) -> float | None:
        """Milliseconds since the document was tracked, or None if untracked."""
        uploaded_at = self._uploads.get(document_id)
        if uploaded_at is None:
            return None
        return (self._clock() - uploaded_at) * 1000

    def validate_for_status_request(self, document_id: str) -> None:
        """
        Check a document can be polled.

        Raises:
            ValidationError: If the ID is malformed or the document was never uploaded
        """
        error = validate_document_id_format(document_id)
        if error is not None:
            logger.warning(f"Document ID format validation failed for {document_id!r}: {error}")
            raise ValidationError(error)
        if document_id not in self._uploads:
            logger.warning(f"Document {document_id} is not tracked as uploaded")
            raise ValidationError(
                "Document not found in uploaded documents. The document may not have "
                "been uploaded successfully or the ID is incorrect.",
                code="DOCUMENT_NOT_TRACKED",
            )
