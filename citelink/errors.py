"""
Exception hierarchy for the citation engine.

Input and persistence failures abort an extraction and carry a precise
reason. Per-page scan failures are not exceptions: they are recorded as
PartialExtractionWarning values and the run continues.
"""

from dataclasses import dataclass
from typing import Any, Optional


class CitationEngineError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class InputError(CitationEngineError):
    """Raised when the inputs of an extraction are missing or unusable."""


class FileAccessError(InputError):
    """Raised when the PDF is missing or cannot be opened."""

    def __init__(self, path: str, reason: str = "PDF file not found",
                 details: Optional[dict[str, Any]] = None) -> None:
        details = details or {}
        details["path"] = path
        super().__init__(f"{reason}: {path}", details)
        self.path = path


class PaperNotFoundError(InputError):
    """Raised when the paper does not exist."""

    def __init__(self, paper_id: str, details: Optional[dict[str, Any]] = None) -> None:
        details = details or {}
        details["paper_id"] = paper_id
        super().__init__(f"Paper not found: {paper_id}", details)
        self.paper_id = paper_id


class PersistenceError(CitationEngineError):
    """Raised when the atomic replace of a paper's citations fails."""

    def __init__(self, message: str, paper_id: Optional[str] = None,
                 details: Optional[dict[str, Any]] = None) -> None:
        details = details or {}
        if paper_id:
            details["paper_id"] = paper_id
        super().__init__(message, details)


class ExtractionInProgressError(CitationEngineError):
    """Raised when an extraction for the same paper is already running."""

    def __init__(self, paper_id: str) -> None:
        super().__init__(f"Extraction already running for paper: {paper_id}", {"paper_id": paper_id})
        self.paper_id = paper_id


class ExtractionCancelled(CitationEngineError):
    """Raised when a cancellation token fires between pages or stages."""


@dataclass(frozen=True)
class PartialExtractionWarning:
    """A page that failed to load or scan; it contributes zero spans."""
    page_num: int
    message: str

    def __str__(self) -> str:
        return f"page {self.page_num}: {self.message}"
