"""Cross-section extraction and slice position calculation."""

from __future__ import annotations

import copy

import numpy as np

from vol2dcm.core.errors import FormatError, RangeError
from vol2dcm.core.volume import CrossSection, Volume


def slice_position(volume: Volume, index: int) -> tuple[float, float, float]:
    """Physical (x, y, z) position of slice ``index``.

    The origin is advanced along the third column of the direction matrix,
    scaled by the through-plane spacing. In-plane spacing plays no part.
    """
    step = index * volume.spacing[2]
    d = volume.direction
    return (
        volume.origin[0] + step * d[0 * 3 + 2],
        volume.origin[1] + step * d[1 * 3 + 2],
        volume.origin[2] + step * d[2 * 3 + 2],
    )


def extract_cross_section(volume: Volume, index: int) -> CrossSection:
    """Extract slice ``index`` of a 3D volume as a 2D cross-section.

    The slab is copied out of the volume buffer, so the cross-section never
    aliases the (possibly shared) source data.

    Raises:
        FormatError: if the volume is not 3-dimensional.
        RangeError: if ``index`` is outside ``[0, size[2])``.
    """
    if volume.dimension != 3:
        raise FormatError(f"Volume must be 3D, got {volume.dimension}D")
    num_slices = volume.size[2]
    if not 0 <= index < num_slices:
        raise RangeError(f"Slice index {index} out of range [0, {num_slices})")

    slab_length = volume.size[0] * volume.size[1] * volume.components_per_pixel
    offset = index * slab_length
    slab = np.array(volume.data[offset:offset + slab_length], copy=True)

    x, y, z = slice_position(volume, index)
    d = volume.direction

    return CrossSection(
        index=index,
        size=(volume.size[0], volume.size[1]),
        spacing=(volume.spacing[0], volume.spacing[1]),
        direction=(d[0], d[1], d[3], d[4]),
        origin=(x, y),
        z_position=z,
        component_type=volume.component_type,
        components_per_pixel=volume.components_per_pixel,
        data=slab,
        metadata=copy.deepcopy(volume.metadata),
        slice_spacing=volume.spacing[2],
    )
