"""Encoder boundary: turns a (cross-section, dataset) pair into DICOM bytes."""

from __future__ import annotations

import copy
import io
import logging
from typing import Protocol

import numpy as np
import pydicom
from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.uid import ExplicitVRLittleEndian, RLELossless

from vol2dcm.core.errors import EncodingError
from vol2dcm.core.types import PixelEncoding
from vol2dcm.core.volume import CrossSection

logger = logging.getLogger("vol2dcm")

_PIXEL_DATA_VR = {8: "OB", 16: "OW", 32: "OL"}

# pydicom's RLE Lossless encoder handles 8 and 16-bit samples only
_RLE_BITS = (8, 16)


class SliceEncoder(Protocol):
    """Serialises one slice; implementations own the binary framing."""

    def encode(
        self,
        cross_section: CrossSection,
        dataset: Dataset,
        *,
        use_compression: bool = False,
    ) -> bytes:
        ...


def encoding_from_dataset(ds: Dataset) -> PixelEncoding:
    """Recover the pixel encoding the tag dictionary committed to."""
    bits = int(ds.BitsAllocated)
    if bits not in _PIXEL_DATA_VR:
        raise EncodingError(f"Unsupported BitsAllocated: {bits}")
    return PixelEncoding(bits, int(ds.PixelRepresentation) == 1, _PIXEL_DATA_VR[bits])


def check_compressible(encoding: PixelEncoding) -> None:
    """Raise if RLE Lossless cannot encode pixels of this width."""
    if encoding.bits_allocated not in _RLE_BITS:
        raise EncodingError(
            f"RLE Lossless does not support {encoding.bits_allocated}-bit pixels"
        )


def pixel_bytes(cross_section: CrossSection, encoding: PixelEncoding) -> bytes:
    """Little-endian pixel bytes of a cross-section in the target encoding.

    Samples of a different kind (e.g. float data under the default encoding)
    are rounded and clipped into the target integer range.
    """
    pixels = cross_section.pixel_array
    target = encoding.dtype
    if pixels.dtype != target:
        if pixels.dtype.kind == "f":
            pixels = np.rint(pixels)
        info = np.iinfo(target)
        pixels = np.clip(pixels, info.min, info.max).astype(target)
    return np.ascontiguousarray(pixels).tobytes()


class PydicomEncoder:
    """Writes each slice as a DICOM Part 10 file (Explicit VR Little Endian)."""

    def encode(
        self,
        cross_section: CrossSection,
        dataset: Dataset,
        *,
        use_compression: bool = False,
    ) -> bytes:
        ds = copy.deepcopy(dataset)

        file_meta = FileMetaDataset()
        file_meta.MediaStorageSOPClassUID = ds.SOPClassUID
        file_meta.MediaStorageSOPInstanceUID = ds.SOPInstanceUID
        file_meta.TransferSyntaxUID = ExplicitVRLittleEndian
        ds.file_meta = file_meta

        try:
            encoding = encoding_from_dataset(ds)
            ds.PixelData = pixel_bytes(cross_section, encoding)
            ds["PixelData"].VR = encoding.pixel_data_vr

            if use_compression:
                check_compressible(encoding)
                ds.compress(RLELossless, generate_instance_uid=False)

            buffer = io.BytesIO()
            pydicom.dcmwrite(buffer, ds, enforce_file_format=True)
        except EncodingError:
            raise
        except (ValueError, TypeError, AttributeError, NotImplementedError, RuntimeError) as e:
            raise EncodingError(
                f"Failed to encode slice {cross_section.index}: {e}"
            ) from e

        data = buffer.getvalue()
        logger.debug(f"Encoded slice {cross_section.index} ({len(data)} bytes)")
        return data
