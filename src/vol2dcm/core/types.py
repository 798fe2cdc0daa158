"""Core data types for the vol2dcm pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np

from vol2dcm.core.errors import ValidationError

SLICE_PLACEHOLDER = "%04d"


class ComponentType(Enum):
    """Scalar kind of a single pixel component."""

    INT8 = "int8"
    UINT8 = "uint8"
    INT16 = "int16"
    UINT16 = "uint16"
    INT32 = "int32"
    UINT32 = "uint32"
    INT64 = "int64"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"

    @classmethod
    def from_dtype(cls, dtype: np.dtype | type | str) -> ComponentType:
        """Map a numpy dtype onto a component kind."""
        name = np.dtype(dtype).name
        try:
            return cls(name)
        except ValueError:
            raise ValidationError(f"Unsupported pixel dtype: {name}") from None

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(self.value)

    @property
    def is_signed(self) -> bool:
        return self.value.startswith("int")


class Modality(str, Enum):
    """DICOM modality codes accepted for the output series."""

    MR = "MR"
    CT = "CT"
    PT = "PT"
    US = "US"
    XA = "XA"
    CR = "CR"
    DX = "DX"
    MG = "MG"
    NM = "NM"
    OT = "OT"


@dataclass
class ConversionOptions:
    """Configuration for one volume-to-series conversion run."""

    filename_pattern: str = "slice_%04d.dcm"
    series_description: str | None = "Medical Image Series"
    series_number: int | None = 1
    instance_number_start: int = 1
    modality: Modality | str | None = Modality.OT
    series_instance_uid: str | None = None
    use_compression: bool = False
    strict_encoding: bool = False
    workers: int = 1

    def __post_init__(self):
        count = self.filename_pattern.count(SLICE_PLACEHOLDER)
        if count != 1:
            raise ValidationError(
                f"Filename pattern '{self.filename_pattern}' must contain exactly one "
                f"'{SLICE_PLACEHOLDER}' placeholder (found {count})"
            )
        if self.modality is not None and not isinstance(self.modality, Modality):
            try:
                self.modality = Modality(str(self.modality).upper())
            except ValueError:
                allowed = ", ".join(m.value for m in Modality)
                raise ValidationError(
                    f"Unknown modality '{self.modality}'. Choose one of: {allowed}"
                ) from None
        if self.instance_number_start < 0:
            raise ValidationError("instance_number_start must be >= 0")
        if self.series_number is not None and self.series_number < 0:
            raise ValidationError("series_number must be >= 0")
        if self.workers < 1:
            raise ValidationError("workers must be >= 1")

    def filename_for(self, index: int) -> str:
        """Substitute the zero-padded slice index into the filename pattern."""
        return self.filename_pattern.replace(SLICE_PLACEHOLDER, f"{index:04d}")


@dataclass
class PixelEncoding:
    """DICOM pixel-module encoding derived from a component kind."""

    bits_allocated: int
    signed: bool
    pixel_data_vr: str  # "OB", "OW" or "OL"

    @property
    def bits_stored(self) -> int:
        return self.bits_allocated

    @property
    def high_bit(self) -> int:
        return self.bits_stored - 1

    @property
    def pixel_representation(self) -> int:
        return 1 if self.signed else 0

    @property
    def dtype(self) -> np.dtype:
        """Little-endian numpy dtype of the encoded pixel samples."""
        kind = "i" if self.signed else "u"
        return np.dtype(f"<{kind}{self.bits_allocated // 8}")


@dataclass
class EncodedSlice:
    """One encoded DICOM instance of the output series."""

    filename: str
    data: bytes
    slice_index: int


@dataclass
class SliceOutcome:
    """Result-or-error value for a single slice of a conversion run."""

    slice_index: int
    result: EncodedSlice | None = None
    error: Exception | None = None
    snapshot: dict | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
