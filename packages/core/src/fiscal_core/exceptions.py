"""Exceptions used inside fiscal-core.

Public operations never raise: extraction and canonicalization catch these
at their boundary and turn them into error messages, zero confidence or a
skipped row. They exist so the internal code can fail loudly and the
boundary can still report what went wrong.

Example:
    try:
        record = _extract_fields(text, filename)
    except ExtractionError as e:
        record = _empty_record(filename, e.message)
"""

from typing import Any, Optional


class FiscalCoreError(Exception):
    """Base exception for all fiscal-core errors.

    Attributes:
        message: Human-readable error description.
        details: Additional context, merged by subclasses.
        recoverable: Whether processing of other inputs can continue.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable!r})"
        )


class ExtractionError(FiscalCoreError):
    """Raised when a document cannot be read at all.

    Attributes:
        source: Display filename of the document.
        field: The field being extracted, if the failure is field-specific.
        document_type: "nfse" or "informe".

    Example:
        >>> raise ExtractionError(
        ...     "Document has no text layer",
        ...     source="nota_123.pdf",
        ...     document_type="nfse",
        ... )
        ExtractionError: Document has no text layer
    """

    def __init__(
        self,
        message: str,
        *,
        source: Optional[str] = None,
        field: Optional[str] = None,
        document_type: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message, details=details, recoverable=recoverable)
        self.source = source
        self.field = field
        self.document_type = document_type

        if source:
            self.details["source"] = source
        if field:
            self.details["field"] = field
        if document_type:
            self.details["document_type"] = document_type


class ValidationError(FiscalCoreError):
    """Raised when an input row does not fit the canonical schema.

    Attributes:
        field: The canonical field that failed.
        value: The offending value.
        constraint: What the field requires.

    Example:
        >>> raise ValidationError(
        ...     "Invoice row has no number",
        ...     field="number",
        ...     constraint="non-empty invoice number",
        ... )
        ValidationError: Invoice row has no number
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        constraint: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message, details=details, recoverable=recoverable)
        self.field = field
        self.value = value
        self.constraint = constraint

        if field:
            self.details["field"] = field
        if value is not None:
            self.details["value"] = value
        if constraint:
            self.details["constraint"] = constraint


__all__ = [
    "FiscalCoreError",
    "ExtractionError",
    "ValidationError",
]
