"""Read a written DICOM series back into a volume."""

from __future__ import annotations

import io
import logging
from collections.abc import Iterable
from pathlib import Path

import numpy as np
import pydicom
from pydicom.errors import InvalidDicomError

from vol2dcm.core.errors import ValidationError
from vol2dcm.core.types import EncodedSlice
from vol2dcm.core.volume import Volume

logger = logging.getLogger("vol2dcm")

SeriesSource = Path | str | bytes | EncodedSlice


def _read_dataset(source: SeriesSource) -> pydicom.Dataset:
    if isinstance(source, EncodedSlice):
        source = source.data
    if isinstance(source, bytes):
        return pydicom.dcmread(io.BytesIO(source))
    return pydicom.dcmread(str(source))


def read_series(sources: Iterable[SeriesSource]) -> Volume:
    """Re-stack DICOM instances of one series into a 3D volume.

    Instances are ordered by InstanceNumber. Through-plane spacing and
    direction come from the distance between consecutive image positions,
    so a series written by :func:`vol2dcm.series.writer.convert_volume`
    reproduces the source geometry.
    """
    datasets = []
    for source in sources:
        try:
            datasets.append(_read_dataset(source))
        except InvalidDicomError as e:
            raise ValidationError(f"Not a DICOM instance: {e}") from e
    if not datasets:
        raise ValidationError("No DICOM instances to read")

    series_uids = {str(ds.SeriesInstanceUID) for ds in datasets}
    if len(series_uids) != 1:
        raise ValidationError(
            f"Instances belong to {len(series_uids)} different series"
        )

    datasets.sort(key=lambda ds: int(ds.InstanceNumber))
    arrays = [ds.pixel_array for ds in datasets]
    shapes = {a.shape for a in arrays}
    if len(shapes) != 1:
        raise ValidationError(f"Inconsistent slice shapes: {sorted(shapes)}")
    voxels = np.stack(arrays, axis=0)

    first = datasets[0]
    row_spacing, col_spacing = (float(v) for v in first.PixelSpacing)
    positions = np.array(
        [[float(v) for v in ds.ImagePositionPatient] for ds in datasets]
    )
    iop = [float(v) for v in first.ImageOrientationPatient]

    if len(datasets) > 1:
        step = positions[1] - positions[0]
        slice_spacing = float(np.linalg.norm(step))
    else:
        step = np.zeros(3)
        slice_spacing = 0.0
    if slice_spacing > 0:
        normal = step / slice_spacing
    else:
        normal = np.cross(iop[:3], iop[3:])
        slice_spacing = float(first.get("SpacingBetweenSlices", 1.0) or 1.0)

    direction = (
        iop[0], iop[1], normal[0],
        iop[3], iop[4], normal[1],
        iop[2], iop[5], normal[2],
    )

    logger.debug(
        f"Read {len(datasets)} instances of series {first.SeriesInstanceUID}"
    )
    return Volume.from_array(
        voxels,
        spacing=(col_spacing, row_spacing, slice_spacing),
        origin=tuple(positions[0]),
        direction=direction,
        components_per_pixel=int(first.SamplesPerPixel),
    )
