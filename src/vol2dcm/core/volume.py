"""Volume and cross-section data structures."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

from vol2dcm.core.errors import ValidationError
from vol2dcm.core.types import ComponentType


def _as_float_tuple(values, length: int, name: str) -> tuple[float, ...]:
    result = tuple(float(v) for v in values)
    if len(result) != length:
        raise ValidationError(f"{name} must have {length} components, got {len(result)}")
    if not all(math.isfinite(v) for v in result):
        raise ValidationError(f"{name} must be finite, got {result}")
    return result


def _readonly_view(data: np.ndarray) -> np.ndarray:
    view = np.ascontiguousarray(data).reshape(-1).view()
    view.flags.writeable = False
    return view


@dataclass(frozen=True)
class Volume:
    """Decoded N-dimensional image with physical geometry.

    ``size``, ``spacing`` and ``origin`` are in (x, y, z) order; ``direction``
    is the row-major direction-cosine matrix. ``data`` is a flat buffer laid
    out ``[z][y][x][component]``. All invariants are checked on construction
    and the buffer is exposed read-only.
    """

    size: tuple[int, ...]
    spacing: tuple[float, ...]
    origin: tuple[float, ...]
    direction: tuple[float, ...]
    data: np.ndarray
    component_type: ComponentType | None = None
    components_per_pixel: int = 1
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        size = tuple(int(s) for s in self.size)
        if not size or any(s <= 0 for s in size):
            raise ValidationError(f"Volume size must be positive, got {size}")
        dim = len(size)

        spacing = _as_float_tuple(self.spacing, dim, "spacing")
        if any(s <= 0 for s in spacing):
            raise ValidationError(f"spacing must be positive, got {spacing}")
        origin = _as_float_tuple(self.origin, dim, "origin")
        direction = _as_float_tuple(self.direction, dim * dim, "direction")

        if self.components_per_pixel < 1:
            raise ValidationError("components_per_pixel must be >= 1")

        data = np.asarray(self.data)
        component_type = self.component_type or ComponentType.from_dtype(data.dtype)
        if data.dtype.name != component_type.value:
            raise ValidationError(
                f"Buffer dtype {data.dtype} does not match component type "
                f"{component_type.value}"
            )
        expected = math.prod(size) * self.components_per_pixel
        if data.size != expected:
            raise ValidationError(
                f"Buffer length {data.size} does not match size {size} "
                f"x {self.components_per_pixel} components ({expected})"
            )

        object.__setattr__(self, "size", size)
        object.__setattr__(self, "spacing", spacing)
        object.__setattr__(self, "origin", origin)
        object.__setattr__(self, "direction", direction)
        object.__setattr__(self, "component_type", component_type)
        object.__setattr__(self, "data", _readonly_view(data))
        object.__setattr__(self, "metadata", dict(self.metadata))

    @classmethod
    def from_array(
        cls,
        array: np.ndarray,
        spacing=(1.0, 1.0, 1.0),
        origin=(0.0, 0.0, 0.0),
        direction=(1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0),
        components_per_pixel: int | None = None,
        metadata: dict | None = None,
    ) -> Volume:
        """Build a volume from a ``[z, y, x]`` or ``[z, y, x, c]`` array."""
        array = np.asarray(array)
        if components_per_pixel is None:
            components_per_pixel = array.shape[-1] if array.ndim == 4 else 1
        spatial = array.shape[:-1] if components_per_pixel > 1 else array.shape
        return cls(
            size=tuple(reversed(spatial)),
            spacing=spacing,
            origin=origin,
            direction=direction,
            data=array,
            components_per_pixel=components_per_pixel,
            metadata=metadata or {},
        )

    @property
    def dimension(self) -> int:
        return len(self.size)

    @property
    def num_slices(self) -> int:
        return self.size[-1]

    @property
    def shape(self) -> tuple[int, ...]:
        """Array shape in storage order: (z, y, x) or (z, y, x, c)."""
        shape = tuple(reversed(self.size))
        if self.components_per_pixel > 1:
            shape += (self.components_per_pixel,)
        return shape

    @property
    def voxels(self) -> np.ndarray:
        """Read-only view of the buffer in storage order."""
        return self.data.reshape(self.shape)


@dataclass
class CrossSection:
    """2D slice of a volume with its reduced spatial metadata."""

    index: int
    size: tuple[int, int]  # (columns, rows)
    spacing: tuple[float, float]
    direction: tuple[float, float, float, float]  # row-major 2x2
    origin: tuple[float, float]
    z_position: float
    component_type: ComponentType
    components_per_pixel: int
    data: np.ndarray  # flat, private copy of the slab
    metadata: dict = field(default_factory=dict)
    slice_spacing: float | None = None  # through-plane spacing of the source volume

    def __post_init__(self):
        expected = self.size[0] * self.size[1] * self.components_per_pixel
        if self.data.size != expected:
            raise ValidationError(
                f"Cross-section buffer length {self.data.size} != {expected}"
            )

    @property
    def dimension(self) -> int:
        return 2

    @property
    def rows(self) -> int:
        return self.size[1]

    @property
    def columns(self) -> int:
        return self.size[0]

    @property
    def position(self) -> tuple[float, float, float]:
        """Physical position of the first transmitted pixel."""
        return (self.origin[0], self.origin[1], self.z_position)

    @property
    def pixel_array(self) -> np.ndarray:
        """Pixels as ``[rows, columns]`` or ``[rows, columns, samples]``."""
        if self.components_per_pixel == 1:
            return self.data.reshape(self.rows, self.columns)
        return self.data.reshape(self.rows, self.columns, self.components_per_pixel)
