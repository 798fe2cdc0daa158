"""Core data structures: volumes, cross-sections, options and errors."""

from vol2dcm.core.errors import (
    AllocationError,
    EncodingError,
    FormatError,
    RangeError,
    SliceConversionError,
    ValidationError,
    Vol2DcmError,
)
from vol2dcm.core.types import ComponentType, ConversionOptions, EncodedSlice, Modality
from vol2dcm.core.volume import CrossSection, Volume

__all__ = [
    "AllocationError",
    "ComponentType",
    "ConversionOptions",
    "CrossSection",
    "EncodedSlice",
    "EncodingError",
    "FormatError",
    "Modality",
    "RangeError",
    "SliceConversionError",
    "ValidationError",
    "Vol2DcmError",
    "Volume",
]
