"""Load a volume from NumPy files for the command line."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from vol2dcm.core.errors import ValidationError
from vol2dcm.core.volume import Volume

logger = logging.getLogger("vol2dcm")

SUPPORTED_SUFFIXES = (".npy", ".npz")


def load_volume(path: Path) -> Volume:
    """Load a volume from a ``.npy`` array or a ``.npz`` archive.

    ``.npy`` holds a ``[z, y, x]`` (or ``[z, y, x, c]``) array and gets unit
    spacing, zero origin and identity direction. ``.npz`` holds ``data`` plus
    optional ``spacing``, ``origin`` and ``direction`` arrays in (x, y, z)
    order, and optional ``components`` (samples per pixel).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Path not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".npy":
        array = np.load(path, allow_pickle=False)
        logger.info(f"Loaded {path.name}: shape {array.shape}, dtype {array.dtype}")
        return Volume.from_array(array)

    if suffix == ".npz":
        with np.load(path, allow_pickle=False) as archive:
            if "data" not in archive:
                raise ValidationError(f"{path.name} has no 'data' array")
            array = archive["data"]
            kwargs = {}
            for key in ("spacing", "origin", "direction"):
                if key in archive:
                    kwargs[key] = tuple(archive[key].reshape(-1).tolist())
            if "components" in archive:
                kwargs["components_per_pixel"] = int(archive["components"])
        logger.info(f"Loaded {path.name}: shape {array.shape}, dtype {array.dtype}")
        return Volume.from_array(array, **kwargs)

    raise ValidationError(
        f"Unsupported input '{path.suffix}'. Supported: {', '.join(SUPPORTED_SUFFIXES)}"
    )
