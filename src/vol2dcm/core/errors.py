"""Exception hierarchy for the vol2dcm pipeline."""

from __future__ import annotations


class Vol2DcmError(Exception):
    """Base class for all vol2dcm errors."""


class ValidationError(Vol2DcmError, ValueError):
    """Malformed volume, cross-section or conversion options."""


class FormatError(ValidationError):
    """Volume has the wrong dimensionality for the requested operation."""


class RangeError(Vol2DcmError, IndexError):
    """Slice index outside the volume."""


class EncodingError(Vol2DcmError, ValueError):
    """Pixel type or attribute value cannot be encoded as DICOM."""


class AllocationError(Vol2DcmError, RuntimeError):
    """A UID could not be generated."""


class SliceConversionError(Vol2DcmError, ValueError):
    """A slice failed during series conversion; the whole run is aborted.

    Carries the failing slice index and a redacted snapshot of the tag
    dictionary built for it (``None`` if the failure happened before the
    dictionary existed). The original exception is chained as ``__cause__``.
    """

    def __init__(self, slice_index: int, snapshot: dict | None, cause: BaseException):
        self.slice_index = slice_index
        self.snapshot = snapshot
        self.cause = cause
        super().__init__(
            f"Slice {slice_index} failed: {type(cause).__name__}: {cause}"
        )
